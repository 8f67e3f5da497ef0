# =============================================================================
# Natours - CLI Command Tests
# =============================================================================

import json

import pytest

from app.errors import ValidationError
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User, Role

DEV_DATA = {
    'users': [
        {'name': 'Leo Gillespie', 'email': 'leo@example.com', 'password': 'pass1234',
         'role': 'guide'},
        {'name': 'Jennifer Hardy', 'email': 'jennifer@example.com', 'password': 'pass1234'},
    ],
    'tours': [
        {
            'name': 'The Forest Hiker',
            'duration': 5,
            'max_group_size': 25,
            'difficulty': 'easy',
            'price': 397,
            'summary': 'Breathtaking hike through the Canadian Banff National Park',
            'image_cover': 'tour-1-cover.jpg',
            'start_dates': ['2021-04-25T09:00:00.000Z', '2021-07-20T09:00:00.000Z'],
            'start_location': {'type': 'Point', 'coordinates': [-116.214531, 51.417611],
                               'description': 'Banff, CAN'},
            'guides': ['leo@example.com'],
        },
    ],
    'reviews': [
        {'review': 'Cras mollis nisi parturient mi nec aliquet.', 'rating': 5,
         'tour': 'The Forest Hiker', 'user': 'jennifer@example.com'},
    ],
}


@pytest.fixture
def dev_data_file(tmp_path):
    path = tmp_path / 'dev-data.json'
    path.write_text(json.dumps(DEV_DATA), encoding='utf-8')
    return path


class TestImportDevData:

    def test_import(self, runner, dev_data_file):
        result = runner.invoke(args=['import-dev-data', str(dev_data_file)])
        assert result.exit_code == 0, result.output
        assert 'Data successfully loaded: 2 users, 1 tours, 1 reviews.' in result.output

        tour = Tour.query.one()
        assert tour.slug == 'the-forest-hiker'
        assert [g.email for g in tour.guides] == ['leo@example.com']
        assert tour.ratings_quantity == 1
        assert tour.ratings_average == 5
        assert User.query.filter_by(email='leo@example.com').one().role is Role.GUIDE

    def test_tour_list_file(self, runner, tmp_path, guide_user):
        tours = [dict(DEV_DATA['tours'][0], guides=['steve@example.com'])]
        path = tmp_path / 'tours.json'
        path.write_text(json.dumps(tours), encoding='utf-8')

        result = runner.invoke(args=['import-dev-data', str(path)])
        assert result.exit_code == 0, result.output
        assert '0 users, 1 tours, 0 reviews' in result.output

    def test_unknown_guide(self, runner, tmp_path):
        tours = [dict(DEV_DATA['tours'][0], guides=['ghost@example.com'])]
        path = tmp_path / 'tours.json'
        path.write_text(json.dumps(tours), encoding='utf-8')

        result = runner.invoke(args=['import-dev-data', str(path)])
        assert result.exit_code != 0
        assert isinstance(result.exception, ValidationError)
        assert 'ghost@example.com' in result.exception.message

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(args=['import-dev-data', str(tmp_path / 'nope.json')])
        assert result.exit_code == 2


class TestDeleteDevData:

    def test_delete(self, runner, sample_booking, sample_review):
        result = runner.invoke(args=['delete-dev-data', '--yes'])
        assert result.exit_code == 0, result.output
        assert 'Data successfully deleted!' in result.output
        assert Tour.query.count() == 0
        assert User.query.count() == 0
        assert Review.query.count() == 0

    def test_delete_needs_confirmation(self, runner, sample_tours):
        result = runner.invoke(args=['delete-dev-data'], input='n\n')
        assert result.exit_code == 1
        assert Tour.query.count() == 3


def test_init_db(runner):
    result = runner.invoke(args=['init-db'])
    assert result.exit_code == 0
    assert 'Database initialized.' in result.output
