"""
Booking service for Natours.
Handles the Stripe Checkout session for a tour and the webhook that turns a
completed checkout into a Booking.
"""
import logging

import stripe

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models.booking import Booking
from app.models.tour import Tour
from app.models.user import User
from app.services.stores import booking_store, tour_store, user_store

logger = logging.getLogger(__name__)


class BookingService:
    """Service for tour checkout and Stripe webhooks."""

    @staticmethod
    def create_checkout_session(tour_id: int, user: User, settings) -> dict:
        """Create a Stripe Checkout Session for one seat on a tour.

        Args:
            tour_id: Tour being booked
            user: Authenticated customer
            settings: Application Settings (Stripe key, currency, app URL)

        Returns:
            Dict with the session id and the hosted checkout URL
        """
        tour = tour_store.find_by_id(tour_id)
        if tour is None:
            raise NotFoundError('No tour found with that ID')

        app_url = settings.app_url.rstrip('/')

        session = stripe.checkout.Session.create(
            api_key=settings.stripe_secret_key,
            payment_method_types=['card'],
            mode='payment',
            success_url=f'{app_url}/my-tours?alert=booking',
            cancel_url=f'{app_url}/tour/{tour.slug}',
            customer_email=user.email,
            client_reference_id=str(tour.id),
            line_items=[{
                'quantity': 1,
                'price_data': {
                    'currency': settings.stripe_currency,
                    'unit_amount': price_in_cents(tour.price),
                    'product_data': {
                        'name': f'{tour.name} Tour',
                        'description': tour.summary,
                        'images': [f'{app_url}/static/img/tours/{tour.image_cover}'],
                    },
                },
            }],
        )
        logger.info(f'Checkout session {session.id} created for tour {tour.id} ({user.email})')

        return {'id': session.id, 'url': session.url}

    @staticmethod
    def handle_webhook_event(payload: bytes, sig_header: str, settings) -> dict:
        """Handle incoming Stripe webhook event.

        Args:
            payload: Raw request body
            sig_header: Stripe-Signature header value
            settings: Application Settings (webhook secret)

        Returns:
            Dict with event type and processing result

        Raises:
            ValidationError: If the payload or its signature is invalid
        """
        try:
            event = stripe.Webhook.construct_event(
                payload, sig_header, settings.stripe_webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise ValidationError(f'Webhook error: {e}')

        event_type = event['type']
        result = {'event_type': event_type, 'handled': False}

        if event_type == 'checkout.session.completed':
            booking = BookingService._handle_checkout_completed(event['data']['object'])
            result['handled'] = booking is not None

        return result

    @staticmethod
    def _handle_checkout_completed(session_data) -> Booking:
        """Record the booking paid for in a completed checkout session."""
        tour_ref = session_data.get('client_reference_id')
        email = session_data.get('customer_email')
        amount_total = session_data.get('amount_total')
        session_id = session_data.get('id')

        tour = db.session.get(Tour, int(tour_ref)) if str(tour_ref or '').isdigit() else None
        user = user_store.find_one(email=email.lower()) if email else None

        if tour is None or user is None or amount_total is None:
            logger.warning(
                f'Checkout completed without a known tour/user '
                f'(tour={tour_ref}, email={email})'
            )
            return None

        if session_id:
            existing = Booking.query.filter_by(checkout_session_id=session_id).first()
            if existing is not None:
                logger.info(
                    f'Checkout session {session_id} already recorded as booking {existing.id}')
                return existing

        booking = booking_store.insert({
            'tour_id': tour.id,
            'user_id': user.id,
            'price': amount_total / 100,
            'checkout_session_id': session_id,
        })
        logger.info(f'Booking {booking.id} recorded for tour {tour.id} ({user.email})')
        return booking


def price_in_cents(price) -> int:
    return int(round(float(price) * 100))
