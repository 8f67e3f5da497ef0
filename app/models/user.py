"""
User model with role-based access and the password reset token flow.
"""
import hashlib
import secrets
from enum import Enum
from datetime import datetime, timedelta

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from app.extensions import db


class Role(str, Enum):
    """Roles a user can hold. Guides lead tours, lead guides manage them."""
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


# Reset tokens are valid for 10 minutes
RESET_TOKEN_LIFETIME = timedelta(minutes=10)


def hash_reset_token(token):
    """Digest stored in place of the emailed reset token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class User(UserMixin, db.Model):
    """User model with authentication and role management."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    photo = db.Column(db.String(255), default='default.jpg')
    role = db.Column(
        db.Enum(Role, values_callable=lambda roles: [r.value for r in roles]),
        default=Role.USER,
        nullable=False,
        index=True
    )
    password_hash = db.Column(db.String(256), nullable=False)
    password_changed_at = db.Column(db.DateTime, nullable=True)

    # Password reset
    password_reset_token = db.Column(db.String(64), nullable=True, index=True)
    password_reset_expires = db.Column(db.DateTime, nullable=True)

    active = db.Column(db.Boolean, default=True, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    reviews = db.relationship('Review', back_populates='user', cascade='all, delete-orphan')
    bookings = db.relationship('Booking', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def is_active(self):
        """Flask-Login hook; deactivated accounts cannot log in."""
        return bool(self.active)

    def set_password(self, password):
        """Hash and set user password.

        Changing the password of an existing account records the change time
        one second in the past, so a token issued right after the change is
        still accepted.
        """
        self.password_hash = generate_password_hash(password)
        if self.id is not None:
            self.password_changed_at = datetime.utcnow() - timedelta(seconds=1)

    def check_password(self, password):
        """Verify password against hash."""
        if not password or not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def changed_password_after(self, issued_at):
        """True when the password changed after a token issued at `issued_at`.

        `issued_at` is the JWT `iat` claim in seconds since the epoch (UTC).
        """
        if self.password_changed_at is None:
            return False
        changed = (self.password_changed_at - datetime(1970, 1, 1)).total_seconds()
        return issued_at < int(changed)

    def create_password_reset_token(self):
        """Generate a reset token, store its digest and return the plain token."""
        token = secrets.token_hex(32)
        self.password_reset_token = hash_reset_token(token)
        self.password_reset_expires = datetime.utcnow() + RESET_TOKEN_LIFETIME
        return token

    def clear_password_reset_token(self):
        """Clear the reset token after use or on email failure."""
        self.password_reset_token = None
        self.password_reset_expires = None

    @staticmethod
    def find_by_reset_token(token):
        """Find the active user holding an unexpired reset token."""
        return User.query.filter(
            User.password_reset_token == hash_reset_token(token),
            User.password_reset_expires > datetime.utcnow(),
            User.active.is_(True),
        ).first()

    def has_role(self, *roles):
        """Check if the user holds one of the given roles (names or Role members)."""
        return self.role in {Role(r) for r in roles}
