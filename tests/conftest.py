# =============================================================================
# Natours - Pytest Fixtures Configuration
# =============================================================================

import pytest
from unittest.mock import patch

from app import create_app
from app.blueprints.api.decorators import create_access_token
from app.config import Settings, get_settings
from app.extensions import db
from app.models.user import User, Role
from app.models.tour import Tour, Difficulty
from app.models.review import Review
from app.models.booking import Booking


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')
    application.config['UPLOAD_FOLDER'] = str(tmp_path)
    application.extensions['natours_settings'] = Settings.from_mapping(application.config)

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def sent_emails(app):
    """Capture outgoing emails instead of sending them."""
    with patch('app.utils.email._send_with_retry', return_value=True) as mock_send:
        yield mock_send


# =============================================================================
# User Fixtures
# =============================================================================

def make_user(name, email, role=Role.USER, password='pass1234'):
    user = User(name=name, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def regular_user(app):
    return make_user('Laura Wilson', 'laura@example.com')


@pytest.fixture
def other_user(app):
    return make_user('Ben Hadley', 'ben@example.com')


@pytest.fixture
def guide_user(app):
    return make_user('Steve Miller', 'steve@example.com', Role.GUIDE)


@pytest.fixture
def lead_guide_user(app):
    return make_user('Miyah Myles', 'miyah@example.com', Role.LEAD_GUIDE)


@pytest.fixture
def admin_user(app):
    return make_user('Jonas Schmedtmann', 'admin@example.com', Role.ADMIN)


# =============================================================================
# Tour Fixtures
# =============================================================================

def make_tour(name, price, difficulty=Difficulty.EASY, ratings_average=4.5, **extra):
    tour = Tour(
        name=name,
        duration=extra.pop('duration', 5),
        max_group_size=extra.pop('max_group_size', 25),
        difficulty=difficulty,
        ratings_average=ratings_average,
        price=price,
        summary=extra.pop('summary', f'Summary of {name}'),
        image_cover=extra.pop('image_cover', 'tour-cover.jpg'),
        **extra,
    )
    db.session.add(tour)
    db.session.commit()
    return tour


@pytest.fixture
def sample_tours(app):
    """Three public tours with distinct prices and ratings."""
    return [
        make_tour('The Forest Hiker', 397, Difficulty.EASY, 4.7,
                  start_dates=['2021-04-25T09:00:00', '2021-07-20T09:00:00'],
                  start_location={'type': 'Point', 'coordinates': [-116.214531, 51.417611],
                                  'description': 'Banff, CAN'}),
        make_tour('The Sea Explorer', 497, Difficulty.MEDIUM, 4.8,
                  start_dates=['2021-06-19T09:00:00', '2021-07-20T09:00:00'],
                  start_location={'type': 'Point', 'coordinates': [-80.185942, 25.774772],
                                  'description': 'Miami, USA'}),
        make_tour('The Snow Adventurer', 997, Difficulty.DIFFICULT, 4.5,
                  start_dates=['2022-01-05T10:00:00'],
                  start_location={'type': 'Point', 'coordinates': [-106.822318, 39.190872],
                                  'description': 'Aspen, USA'}),
    ]


@pytest.fixture
def secret_tour(app):
    return make_tour('The Secret Hideaway', 1500, Difficulty.MEDIUM, 4.9, secret_tour=True)


@pytest.fixture
def sample_review(app, sample_tours, regular_user):
    review = Review(review='Amazing!', rating=4, tour_id=sample_tours[0].id,
                    user_id=regular_user.id)
    db.session.add(review)
    db.session.flush()
    Review.calc_average_ratings(review.tour_id)
    db.session.commit()
    return review


@pytest.fixture
def sample_booking(app, sample_tours, regular_user):
    booking = Booking(tour_id=sample_tours[0].id, user_id=regular_user.id, price=397)
    db.session.add(booking)
    db.session.commit()
    return booking


# =============================================================================
# Auth Helpers
# =============================================================================

def token_for(user):
    """Helper: a valid access token for `user`."""
    return create_access_token(user.id, get_settings())


def auth_header(user_or_token):
    """Helper: build Authorization header."""
    token = user_or_token if isinstance(user_or_token, str) else token_for(user_or_token)
    return {'Authorization': f'Bearer {token}'}
