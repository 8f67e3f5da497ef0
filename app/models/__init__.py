"""
SQLAlchemy models for Natours.
All models are imported here for easy access.
"""
from app.models.user import User, Role
from app.models.tour import Tour, Difficulty, tour_guides
from app.models.review import Review
from app.models.booking import Booking

__all__ = [
    'User', 'Role',
    'Tour', 'Difficulty', 'tour_guides',
    'Review',
    'Booking',
]
