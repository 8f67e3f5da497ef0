"""
API v1 Routes for bookings: Stripe checkout, the Stripe webhook and staff CRUD.
"""
import logging

from flask import jsonify, request

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import protect, restrict_to
from app.blueprints.api.factory import (
    create_one, delete_one, get_all, get_one, update_one,
)
from app.blueprints.api.schemas import BookingSchema
from app.config import get_settings
from app.extensions import limiter
from app.services.booking_service import BookingService
from app.services.stores import booking_store

logger = logging.getLogger(__name__)


@api_bp.route('/bookings/checkout-session/<int:tour_id>', methods=['GET'])
@protect
def get_checkout_session(tour_id, principal):
    """Start a Stripe Checkout for one seat on the tour."""
    session = BookingService.create_checkout_session(tour_id, principal, get_settings())
    return jsonify({'status': 'success', 'session': session}), 200


@api_bp.route('/bookings/webhook-checkout', methods=['POST'])
@limiter.limit('100 per minute')
def webhook_checkout():
    """Stripe webhook. Verified via the Stripe signature instead of a token."""
    result = BookingService.handle_webhook_event(
        request.get_data(),
        request.headers.get('Stripe-Signature', ''),
        get_settings(),
    )
    logger.info(f'Webhook processed: {result["event_type"]} (handled={result["handled"]})')
    return jsonify({'received': True}), 200


def _staff(view):
    return protect(restrict_to('admin', 'lead-guide')(view))


api_bp.add_url_rule(
    '/bookings', 'get_all_bookings',
    _staff(get_all(booking_store, BookingSchema)), methods=['GET'])
api_bp.add_url_rule(
    '/bookings', 'create_booking',
    _staff(create_one(booking_store, BookingSchema)), methods=['POST'])
api_bp.add_url_rule(
    '/bookings/<int:id>', 'get_booking',
    _staff(get_one(booking_store, BookingSchema)), methods=['GET'])
api_bp.add_url_rule(
    '/bookings/<int:id>', 'update_booking',
    _staff(update_one(booking_store, BookingSchema)), methods=['PATCH'])
api_bp.add_url_rule(
    '/bookings/<int:id>', 'delete_booking',
    _staff(delete_one(booking_store)), methods=['DELETE'])
