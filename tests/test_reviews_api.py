# =============================================================================
# Natours - Reviews API Tests
# =============================================================================

from app.extensions import db
from app.models.review import Review
from app.models.tour import Tour

from conftest import auth_header


def post_review(client, tour_id, user, **body):
    payload = {'review': 'Loved every minute of it', 'rating': 5}
    payload.update(body)
    return client.post(f'/api/v1/tours/{tour_id}/reviews', json=payload,
                       headers=auth_header(user))


class TestCreateReview:

    def test_nested_create_sets_tour_and_author(self, client, regular_user, sample_tours):
        tour_id = sample_tours[1].id
        resp = post_review(client, tour_id, regular_user)
        assert resp.status_code == 201
        doc = resp.get_json()['data']['data']
        assert doc['tour'] == tour_id
        assert doc['user']['name'] == 'Laura Wilson'

        tour = db.session.get(Tour, tour_id)
        assert tour.ratings_quantity == 1
        assert tour.ratings_average == 5

    def test_average_is_rounded(self, client, regular_user, other_user, sample_review):
        tour_id = sample_review.tour_id
        post_review(client, tour_id, other_user, rating=5)
        tour = db.session.get(Tour, tour_id)
        assert tour.ratings_quantity == 2
        assert tour.ratings_average == 4.5

    def test_flat_route_needs_tour(self, client, regular_user):
        resp = client.post('/api/v1/reviews', json={'review': 'Nice', 'rating': 4},
                           headers=auth_header(regular_user))
        assert resp.status_code == 400
        assert 'Review must belong to a tour.' in resp.get_json()['message']

    def test_only_users_may_review(self, client, guide_user, sample_tours):
        resp = post_review(client, sample_tours[0].id, guide_user)
        assert resp.status_code == 403

    def test_one_review_per_tour(self, client, regular_user, sample_review):
        resp = post_review(client, sample_review.tour_id, regular_user)
        assert resp.status_code == 400
        assert resp.get_json()['message'].startswith('Duplicate field value')

    def test_rating_out_of_range(self, client, regular_user, sample_tours):
        resp = post_review(client, sample_tours[0].id, regular_user, rating=6)
        assert resp.status_code == 400
        assert 'Rating must be between 0 and 5.' in resp.get_json()['message']


class TestListReviews:

    def test_requires_login(self, client, sample_review):
        assert client.get('/api/v1/reviews').status_code == 401

    def test_nested_list_is_scoped_to_tour(self, client, other_user, sample_review, sample_tours):
        post_review(client, sample_tours[2].id, other_user)
        headers = auth_header(other_user)

        everything = client.get('/api/v1/reviews', headers=headers).get_json()
        assert everything['results'] == 2

        nested = client.get(f'/api/v1/tours/{sample_review.tour_id}/reviews',
                            headers=headers).get_json()
        assert nested['results'] == 1
        assert nested['data']['data'][0]['review'] == 'Amazing!'

    def test_filter_by_tour_and_user(self, client, other_user, sample_review, sample_tours):
        post_review(client, sample_tours[2].id, other_user)
        headers = auth_header(other_user)

        by_tour = client.get(f'/api/v1/reviews?tour={sample_tours[2].id}',
                             headers=headers).get_json()
        assert by_tour['results'] == 1
        assert by_tour['data']['data'][0]['user']['id'] == other_user.id

        by_user = client.get(f'/api/v1/reviews?user={sample_review.user_id}&sort=tour',
                             headers=headers).get_json()
        assert [r['review'] for r in by_user['data']['data']] == ['Amazing!']

    def test_get_one(self, client, regular_user, sample_review):
        resp = client.get(f'/api/v1/reviews/{sample_review.id}', headers=auth_header(regular_user))
        assert resp.status_code == 200
        assert resp.get_json()['data']['data']['rating'] == 4


class TestChangeReview:

    def test_owner_updates_rating(self, client, regular_user, sample_review):
        resp = client.patch(f'/api/v1/reviews/{sample_review.id}',
                            json={'rating': 2, 'tour': 999},
                            headers=auth_header(regular_user))
        assert resp.status_code == 200
        doc = resp.get_json()['data']['data']
        assert doc['rating'] == 2
        assert doc['tour'] == sample_review.tour_id
        assert db.session.get(Tour, sample_review.tour_id).ratings_average == 2

    def test_other_user_cannot_update(self, client, other_user, sample_review):
        resp = client.patch(f'/api/v1/reviews/{sample_review.id}', json={'rating': 1},
                            headers=auth_header(other_user))
        assert resp.status_code == 403
        assert resp.get_json()['message'] == 'You do not have permission to perform this action.'

    def test_admin_cannot_update(self, client, admin_user, sample_review):
        resp = client.patch(f'/api/v1/reviews/{sample_review.id}', json={'rating': 1},
                            headers=auth_header(admin_user))
        assert resp.status_code == 403

    def test_admin_deletes_and_aggregates_reset(self, client, admin_user, sample_review):
        review_id, tour_id = sample_review.id, sample_review.tour_id
        resp = client.delete(f'/api/v1/reviews/{review_id}', headers=auth_header(admin_user))
        assert resp.status_code == 204
        assert db.session.get(Review, review_id) is None

        tour = db.session.get(Tour, tour_id)
        assert tour.ratings_quantity == 0
        assert tour.ratings_average == 0

    def test_other_user_cannot_delete(self, client, other_user, sample_review):
        resp = client.delete(f'/api/v1/reviews/{sample_review.id}',
                             headers=auth_header(other_user))
        assert resp.status_code == 403

    def test_missing_review(self, client, regular_user):
        resp = client.patch('/api/v1/reviews/404', json={'rating': 1},
                            headers=auth_header(regular_user))
        assert resp.status_code == 404
