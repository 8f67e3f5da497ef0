"""
Tour model with slug derivation and rating aggregates.
"""
import re
import unicodedata
from datetime import datetime
import enum

from sqlalchemy.orm import validates

from app.extensions import db
from app.errors import ValidationError


class Difficulty(enum.Enum):
    """Tour difficulty enumeration."""
    EASY = 'easy'
    MEDIUM = 'medium'
    DIFFICULT = 'difficult'


tour_guides = db.Table(
    'tour_guides',
    db.Column('tour_id', db.Integer, db.ForeignKey('tours.id'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
)


def slugify(name):
    """Lowercase, hyphenated ASCII form of a tour name."""
    normalized = unicodedata.normalize('NFKD', name)
    ascii_name = normalized.encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^a-z0-9]+', '-', ascii_name.lower()).strip('-')


class Tour(db.Model):
    """A bookable tour."""

    __tablename__ = 'tours'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), unique=True, nullable=False, index=True)
    slug = db.Column(db.String(60), index=True)
    duration = db.Column(db.Integer, nullable=False)
    max_group_size = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(
        db.Enum(Difficulty, values_callable=lambda items: [d.value for d in items]),
        nullable=False,
    )
    ratings_average = db.Column(db.Float, default=0, nullable=False)
    ratings_quantity = db.Column(db.Integer, default=0, nullable=False)
    price = db.Column(db.Float, nullable=False, index=True)
    price_discount = db.Column(db.Float)
    summary = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    image_cover = db.Column(db.String(255), nullable=False)
    images = db.Column(db.JSON, default=list)
    start_dates = db.Column(db.JSON, default=list)
    secret_tour = db.Column(db.Boolean, default=False, nullable=False)

    # GeoJSON-like point: {"type": "Point", "coordinates": [lng, lat], "address": ..., "description": ...}
    start_location = db.Column(db.JSON)
    locations = db.Column(db.JSON, default=list)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    guides = db.relationship('User', secondary=tour_guides, lazy='selectin')
    reviews = db.relationship(
        'Review',
        back_populates='tour',
        cascade='all, delete-orphan',
        order_by='Review.created_at.desc()'
    )
    bookings = db.relationship('Booking', back_populates='tour', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Tour {self.name}>'

    @validates('name')
    def _derive_slug(self, key, value):
        if value:
            self.slug = slugify(value)
        return value

    @validates('ratings_average')
    def _round_rating(self, key, value):
        return round(value * 10) / 10 if value is not None else value

    @property
    def duration_weeks(self):
        """Duration expressed in weeks."""
        return self.duration / 7 if self.duration else 0

    @property
    def start_coordinates(self):
        """(lat, lng) of the start location, or None."""
        coordinates = (self.start_location or {}).get('coordinates') or []
        if len(coordinates) != 2:
            return None
        lng, lat = coordinates
        return float(lat), float(lng)

    @property
    def parsed_start_dates(self):
        """start_dates as datetime objects, skipping unparseable values."""
        parsed = []
        for value in self.start_dates or []:
            try:
                parsed.append(datetime.fromisoformat(str(value).replace('Z', '+00:00')))
            except ValueError:
                continue
        return parsed

    def check_invariants(self):
        """Cross-field rules re-checked on every create and update."""
        if self.price_discount is not None and self.price is not None \
                and self.price_discount >= self.price:
            raise ValidationError(
                f'Invalid input data: Discount price ({self.price_discount:g}) '
                'should be below the regular price'
            )
