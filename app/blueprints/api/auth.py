"""
API Authentication endpoints: signup, login, logout and the password flows.
A successful login or password change answers with a fresh JWT, both in the
body and as the HttpOnly `jwt` cookie the rendered pages read.
"""
import logging
from datetime import datetime, timezone

from flask import request, jsonify, url_for

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import LOGGED_OUT, create_access_token, protect
from app.blueprints.api.schemas import PasswordSchema, UserSchema
from app.config import get_settings
from app.errors import AppError, AuthenticationError, NotFoundError, ValidationError
from app.extensions import db, limiter
from app.models.user import User
from app.services.stores import user_store
from app.utils.email import send_password_reset_email, send_welcome_email

logger = logging.getLogger(__name__)

SIGNUP_FIELDS = ('name', 'email', 'password', 'password_confirm')


def _is_secure_request():
    return request.is_secure or request.headers.get('X-Forwarded-Proto') == 'https'


def set_auth_cookie(response, token, settings):
    """Store the token in the HttpOnly jwt cookie read by protect and the pages."""
    response.set_cookie(
        'jwt',
        token,
        expires=datetime.now(timezone.utc) + settings.jwt_cookie_expires_in,
        httponly=True,
        secure=_is_secure_request(),
        samesite='Lax',
    )
    return response


def clear_auth_cookie(response):
    """Replace the token with a placeholder that expires in 10 seconds."""
    response.set_cookie(
        'jwt',
        LOGGED_OUT,
        max_age=10,
        httponly=True,
        secure=_is_secure_request(),
        samesite='Lax',
    )
    return response


def send_token(user, status_code):
    """Respond with a new token for `user` and set it as the jwt cookie."""
    settings = get_settings()
    token = create_access_token(user.id, settings)

    response = jsonify({
        'status': 'success',
        'token': token,
        'data': {'user': UserSchema(exclude=('version',)).dump(user)},
    })
    set_auth_cookie(response, token, settings)
    return response, status_code


@api_bp.route('/users/signup', methods=['POST'])
@limiter.limit('10 per minute')
def signup():
    """Create a `user` account, send the welcome email and log the user in.

    Request body:
        {"name": "...", "email": "...", "password": "...", "password_confirm": "..."}
    """
    values = UserSchema(only=SIGNUP_FIELDS).load(request.get_json(silent=True) or {})
    user = user_store.insert(values)

    account_url = f"{get_settings().app_url.rstrip('/')}/me"
    if not send_welcome_email(user, account_url):
        logger.warning(f"Welcome email to {user.email} could not be sent")

    return send_token(user, 201)


@api_bp.route('/users/login', methods=['POST'])
@limiter.limit('10 per minute')
def login():
    """Exchange email and password for a token.

    Request body:
        {"email": "...", "password": "..."}
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        raise ValidationError('Please provide email and password!')

    user = user_store.find_one(email=email)
    if user is None or not user.check_password(password):
        raise AuthenticationError('Incorrect email or password.')

    return send_token(user, 200)


@api_bp.route('/users/logout', methods=['GET'])
def logout():
    """Overwrite the jwt cookie with a short-lived placeholder."""
    return clear_auth_cookie(jsonify({'status': 'success'})), 200


@api_bp.route('/users/forgot-password', methods=['POST'])
@limiter.limit('5 per minute')
def forgot_password():
    """Email a single-use reset link valid for 10 minutes."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()

    user = user_store.find_one(email=email) if email else None
    if user is None:
        raise NotFoundError('There is no user with that email address.')

    reset_token = user.create_password_reset_token()
    db.session.commit()

    reset_url = url_for('api.reset_password', token=reset_token, _external=True)
    if not send_password_reset_email(user, reset_url):
        user.clear_password_reset_token()
        db.session.commit()
        raise AppError('There was an error sending the email. Try again later!', 500)

    return jsonify({'status': 'success', 'message': 'Token sent to email!'}), 200


@api_bp.route('/users/reset-password/<token>', methods=['PATCH'])
def reset_password(token):
    """Set a new password using an emailed reset token."""
    user = User.find_by_reset_token(token)
    if user is None:
        raise ValidationError('Token is invalid or has expired')

    values = PasswordSchema().load(request.get_json(silent=True) or {})
    user.set_password(values['password'])
    user.clear_password_reset_token()
    db.session.commit()

    return send_token(user, 200)


@api_bp.route('/users/update-my-password', methods=['PATCH'])
@protect
def update_my_password(principal):
    """Change the password after re-entering the current one.

    Request body:
        {"password_current": "...", "password": "...", "password_confirm": "..."}
    """
    data = request.get_json(silent=True) or {}
    if not principal.check_password(data.get('password_current')):
        raise AuthenticationError('Your current password is wrong.')

    values = PasswordSchema().load(data)
    principal.set_password(values['password'])
    db.session.commit()

    return send_token(principal, 200)
