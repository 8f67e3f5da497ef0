"""
Development data import and cleanup behind the `flask import-dev-data` and
`flask delete-dev-data` commands.

The import file is a JSON object:

    {
      "users":   [{"name": ..., "email": ..., "password": ..., "role": "guide"}],
      "tours":   [{"name": ..., "guides": ["guide@example.com"], ...}],
      "reviews": [{"review": ..., "rating": 5, "tour": "<tour name>", "user": "<email>"}]
    }

A top-level list is read as a list of tours. Guides and review authors are
referenced by email and reviews by tour name, so the file carries no ids.
"""
import logging

from app.blueprints.api.schemas import ReviewSchema, TourSchema, UserSchema
from app.errors import ValidationError
from app.extensions import db
from app.models.booking import Booking
from app.models.review import Review
from app.models.tour import Tour, tour_guides
from app.models.user import User
from app.services.stores import review_store, tour_store, user_store

logger = logging.getLogger(__name__)


def _user_id(email):
    user = User.query.filter_by(email=(email or '').strip().lower()).first()
    if user is None:
        raise ValidationError(f'Unknown user in dev data: {email}')
    return user.id


def _tour_id(name):
    tour = Tour.query.filter_by(name=name).first()
    if tour is None:
        raise ValidationError(f'Unknown tour in dev data: {name}')
    return tour.id


def import_data(data):
    """Insert users, then tours, then reviews. Returns the inserted counts."""
    if isinstance(data, list):
        data = {'tours': data}

    counts = {'users': 0, 'tours': 0, 'reviews': 0}

    for raw in data.get('users', []):
        raw = dict(raw)
        raw.setdefault('password_confirm', raw.get('password'))
        user_store.insert(UserSchema().load(raw))
        counts['users'] += 1

    for raw in data.get('tours', []):
        raw = dict(raw)
        raw['guides'] = [_user_id(email) for email in raw.get('guides', [])]
        tour_store.insert(TourSchema().load(raw))
        counts['tours'] += 1

    for raw in data.get('reviews', []):
        raw = dict(raw)
        raw['tour'] = _tour_id(raw.get('tour'))
        raw['user'] = _user_id(raw.get('user'))
        review_store.insert(ReviewSchema().load(raw))
        counts['reviews'] += 1

    logger.info(f"Imported dev data: {counts}")
    return counts


def delete_data():
    """Remove every booking, review, tour and user."""
    Booking.query.delete()
    Review.query.delete()
    db.session.execute(tour_guides.delete())
    Tour.query.delete()
    User.query.delete()
    db.session.commit()
    logger.info('Deleted all dev data')
