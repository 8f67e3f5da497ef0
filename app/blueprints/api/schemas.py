"""
Marshmallow schemas for API serialization and input validation.
Converts SQLAlchemy models to JSON-safe dictionaries and validates request
bodies before they reach an entity store.
"""
from datetime import datetime

from marshmallow import (
    EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates_schema,
)

from app.models.tour import Difficulty
from app.models.user import Role


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True
        unknown = EXCLUDE


def _iso_datetime(value):
    try:
        datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{value} is not an ISO date.')


class LocationSchema(BaseSchema):
    """GeoJSON-like point with an address."""
    type = fields.Str(load_default='Point', validate=validate.Equal('Point'))
    coordinates = fields.List(fields.Float(), validate=validate.Length(equal=2))
    address = fields.Str()
    description = fields.Str()
    day = fields.Int()


# ── User ────────────────────────────────────────────────────

class UserMinimalSchema(BaseSchema):
    """Minimal user representation (for nested references)."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    photo = fields.Str()


class UserSchema(BaseSchema):
    """Full user representation. Passwords are accepted but never dumped."""
    id = fields.Int(dump_only=True)
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, error='Please tell us your name.'),
        error_messages={'required': 'Please tell us your name.'},
    )
    email = fields.Email(
        required=True,
        error_messages={
            'required': 'Please provide your email.',
            'invalid': 'Please provide a valid email.',
        },
    )
    photo = fields.Str()
    role = fields.Enum(Role, by_value=True)
    password = fields.Str(
        load_only=True,
        required=True,
        validate=validate.Length(min=8, error='Password must have at least 8 characters.'),
        error_messages={'required': 'Please provide a password.'},
    )
    password_confirm = fields.Str(
        load_only=True,
        required=True,
        error_messages={'required': 'Please confirm your password.'},
    )
    created_at = fields.DateTime(format='iso', dump_only=True)
    version = fields.Int(dump_only=True)

    @pre_load
    def normalize_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('email'), str):
            data = dict(data)
            data['email'] = data['email'].strip().lower()
        return data

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if 'password' in data and data.get('password') != data.get('password_confirm'):
            raise ValidationError('Passwords are not the same.', 'password_confirm')


class PasswordSchema(BaseSchema):
    """New password plus confirmation (reset and update flows)."""
    password = fields.Str(
        required=True,
        validate=validate.Length(min=8, error='Password must have at least 8 characters.'),
        error_messages={'required': 'Please provide a password.'},
    )
    password_confirm = fields.Str(
        required=True,
        error_messages={'required': 'Please confirm your password.'},
    )

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if data.get('password') != data.get('password_confirm'):
            raise ValidationError('Passwords are not the same.', 'password_confirm')


# ── Review ──────────────────────────────────────────────────

class ReviewSchema(BaseSchema):
    """Review representation; the author is expanded on dump."""
    id = fields.Int(dump_only=True)
    review = fields.Str(
        required=True,
        validate=validate.Length(min=1, error='Review cannot be empty.'),
        error_messages={'required': 'Review cannot be empty.'},
    )
    rating = fields.Float(validate=validate.Range(
        min=0, max=5, error='Rating must be between 0 and 5.'))
    created_at = fields.DateTime(format='iso', dump_only=True)
    tour = fields.Int(
        attribute='tour_id',
        required=True,
        error_messages={'required': 'Review must belong to a tour.'},
    )
    user_id = fields.Int(
        data_key='user',
        load_only=True,
        required=True,
        error_messages={'required': 'Review must belong to a user.'},
    )
    user = fields.Nested(UserMinimalSchema, dump_only=True)
    version = fields.Int(dump_only=True)


# ── Tour ────────────────────────────────────────────────────

class TourSchema(BaseSchema):
    """Tour representation."""
    id = fields.Int(dump_only=True)
    name = fields.Str(
        required=True,
        validate=validate.Length(
            min=10, max=40,
            error='A tour name must have between {min} and {max} characters.'),
        error_messages={'required': 'A tour must have a name.'},
    )
    slug = fields.Str(dump_only=True)
    duration = fields.Int(
        required=True,
        validate=validate.Range(min=1),
        error_messages={'required': 'A tour must have a duration.'},
    )
    duration_weeks = fields.Float(dump_only=True)
    max_group_size = fields.Int(
        required=True,
        validate=validate.Range(min=1),
        error_messages={'required': 'A tour must have a group size.'},
    )
    difficulty = fields.Enum(
        Difficulty,
        by_value=True,
        required=True,
        error_messages={
            'required': 'A tour must have a difficulty.',
            'unknown': 'Difficulty is either easy, medium, or difficult.',
        },
    )
    ratings_average = fields.Float(validate=validate.Range(
        min=0, max=5, error='Rating must be between 0 and 5.'))
    ratings_quantity = fields.Int(validate=validate.Range(min=0))
    price = fields.Float(
        required=True,
        validate=validate.Range(min=0),
        error_messages={'required': 'A tour must have a price.'},
    )
    price_discount = fields.Float(allow_none=True)
    summary = fields.Str(
        required=True,
        validate=validate.Length(min=1),
        error_messages={'required': 'A tour must have a summary.'},
    )
    description = fields.Str(allow_none=True)
    image_cover = fields.Str(
        required=True,
        error_messages={'required': 'A tour must have a cover image.'},
    )
    images = fields.List(fields.Str())
    start_dates = fields.List(fields.Str(validate=_iso_datetime))
    secret_tour = fields.Bool()
    start_location = fields.Nested(LocationSchema, allow_none=True)
    locations = fields.List(fields.Nested(LocationSchema))
    guides = fields.Method('get_guides', deserialize='load_guides')
    created_at = fields.DateTime(format='iso', dump_only=True)
    version = fields.Int(dump_only=True)

    def get_guides(self, obj):
        return UserMinimalSchema(many=True).dump(obj.guides or [])

    def load_guides(self, value):
        if not isinstance(value, list) or not all(
                isinstance(v, int) and not isinstance(v, bool) for v in value):
            raise ValidationError('Guides must be a list of user ids.')
        return value

    @pre_load
    def strip_text(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ('summary', 'description'):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        return data

    @validates_schema
    def discount_below_price(self, data, **kwargs):
        discount = data.get('price_discount')
        price = data.get('price')
        if discount is not None and price is not None and discount >= price:
            raise ValidationError(
                f'Discount price ({discount:g}) should be below the regular price.',
                'price_discount',
            )


class TourDetailSchema(TourSchema):
    """Single-tour representation with its reviews expanded."""
    reviews = fields.Nested(
        ReviewSchema, many=True, dump_only=True, exclude=('tour', 'version'))


class TourMinimalSchema(BaseSchema):
    """Minimal tour reference."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    slug = fields.Str()


# ── Booking ─────────────────────────────────────────────────

class BookingSchema(BaseSchema):
    """Booking representation with the tour name and user expanded."""
    id = fields.Int(dump_only=True)
    tour_id = fields.Int(
        data_key='tour',
        load_only=True,
        required=True,
        error_messages={'required': 'Booking must belong to a tour.'},
    )
    user_id = fields.Int(
        data_key='user',
        load_only=True,
        required=True,
        error_messages={'required': 'Booking must belong to a user.'},
    )
    tour = fields.Nested(TourMinimalSchema, dump_only=True)
    user = fields.Nested(UserMinimalSchema, dump_only=True)
    price = fields.Float(
        required=True,
        validate=validate.Range(min=0),
        error_messages={'required': 'Booking must have a price.'},
    )
    paid = fields.Bool()
    created_at = fields.DateTime(format='iso', dump_only=True)
    version = fields.Int(dump_only=True)
