"""
JWT authentication decorators for the REST API.

`protect` verifies the bearer token (header or `jwt` cookie) and passes the
authenticated user to the view as the `principal` keyword argument. The
role and ownership decorators below it read that argument, so they must be
stacked under `protect`:

    @protect
    @restrict_to('admin', 'lead-guide')
    def view(principal, id): ...
"""
from functools import wraps
from datetime import datetime, timezone

import jwt
from flask import request

from app.config import get_settings
from app.errors import AppError, AuthenticationError, AuthorizationError, NotFoundError
from app.models.user import User

LOGGED_OUT = 'loggedout'


def create_access_token(user_id, settings):
    """Create a signed JWT for the user."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'iat': now,
        'exp': now + settings.jwt_expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm='HS256')


def decode_token(token, settings):
    """Decode and validate a JWT. PyJWT errors propagate to the error handler."""
    return jwt.decode(token, settings.jwt_secret, algorithms=['HS256'])


def token_from_request(req, use_header=True):
    """Bearer token from the Authorization header, else the jwt cookie."""
    if use_header:
        auth_header = req.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None
    cookie = req.cookies.get('jwt')
    if cookie and cookie != LOGGED_OUT:
        return cookie
    return None


def authenticate(token, settings):
    """Return the active user a token belongs to, or raise."""
    if not token:
        raise AuthenticationError('You are not logged in. Please log in to get access.')

    payload = decode_token(token, settings)

    try:
        user_id = int(payload['sub'])
    except (KeyError, ValueError, TypeError):
        raise jwt.InvalidTokenError('Token carries no valid subject.')

    user = User.query.filter(User.id == user_id, User.active.is_(True)).first()
    if user is None:
        raise AuthenticationError('The user belonging to the token no longer exists.')

    if user.changed_password_after(payload.get('iat', 0)):
        raise AuthenticationError('Your password recently changed. Please log in again.')

    return user


def load_user_from_cookie(req):
    """Flask-Login request loader: the user behind the jwt cookie, or None."""
    token = token_from_request(req, use_header=False)
    if not token:
        return None
    try:
        return authenticate(token, get_settings())
    except (AppError, jwt.InvalidTokenError):
        return None


def protect(f):
    """Decorator: require a valid token and pass the user as `principal`."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user = authenticate(token_from_request(request), get_settings())
        kwargs['principal'] = user
        return f(*args, **kwargs)
    return decorated


def restrict_to(*roles):
    """Decorator: the principal's role must be one of `roles`.

    Usage: @restrict_to('admin', 'lead-guide')
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            principal = kwargs.get('principal')
            if principal is None or not principal.has_role(*roles):
                raise AuthorizationError('You do not have permission to perform this action.')
            return f(*args, **kwargs)
        return decorated
    return decorator


def restrict_to_owner_and(store, owner_field, *roles):
    """Decorator: the principal must own the entity or hold one of `roles`.

    The entity is looked up by the `id` view argument; ownership compares
    `entity.<owner_field>` with the principal's id.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            principal = kwargs.get('principal')
            entity = store.find_by_id(kwargs.get('id'))
            if entity is None:
                raise NotFoundError('No document found with that ID')
            if principal is None:
                raise AuthorizationError('You do not have permission to perform this action.')
            if getattr(entity, owner_field) != principal.id and not (
                    roles and principal.has_role(*roles)):
                raise AuthorizationError('You do not have permission to perform this action.')
            return f(*args, **kwargs)
        return decorated
    return decorator
