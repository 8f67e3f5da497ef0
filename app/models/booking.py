"""
Booking model, created after a successful Stripe checkout or by staff.
"""
from datetime import datetime

from app.extensions import db


class Booking(db.Model):
    """A paid (or pending) seat on a tour."""

    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    tour_id = db.Column(db.Integer, db.ForeignKey('tours.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    price = db.Column(db.Float, nullable=False)
    paid = db.Column(db.Boolean, default=True, nullable=False)
    # Stripe Checkout Session that paid for the booking; staff bookings have none
    checkout_session_id = db.Column(db.String(255), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    tour = db.relationship('Tour', back_populates='bookings', lazy='joined')
    user = db.relationship('User', back_populates='bookings', lazy='joined')

    def __repr__(self):
        return f'<Booking {self.id} tour={self.tour_id} user={self.user_id}>'
