"""
Services package for Natours.
Contains business logic separated from routes.
"""

from app.services.booking_service import BookingService

__all__ = [
    'BookingService',
]
