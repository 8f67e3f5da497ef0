"""
Error taxonomy and the single translator used by the app-level error handler.

Every exception raised while serving a request ends up in translate_error(),
which maps it to an AppError subclass. Operational errors carry a message that
is safe to show to the caller; anything else becomes an UnknownError whose
details stay in the server log.
"""
import jwt
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    """Base class for errors that are turned into an HTTP response."""

    status_code = 500
    is_operational = True

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self):
        return 'fail' if 400 <= self.status_code < 500 else 'error'


class ValidationError(AppError):
    status_code = 400


class DuplicateKeyError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class TokenError(AuthenticationError):
    pass


class TokenExpiredError(TokenError):
    pass


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UnknownError(AppError):
    status_code = 500
    is_operational = False


def _format_schema_messages(messages):
    """Flatten marshmallow's nested error dict into readable sentences."""
    parts = []
    if isinstance(messages, dict):
        for field, value in messages.items():
            for text in _format_schema_messages(value):
                parts.append(text if field == '_schema' else f'{field}: {text}')
    elif isinstance(messages, (list, tuple)):
        for value in messages:
            parts.extend(_format_schema_messages(value))
    else:
        parts.append(str(messages))
    return parts


def _duplicate_message(exc):
    detail = str(exc.orig)
    # sqlite: "UNIQUE constraint failed: tours.name"
    # postgres: 'duplicate key value violates unique constraint ... Key (name)=(x)'
    if 'UNIQUE constraint failed:' in detail:
        columns = detail.split('UNIQUE constraint failed:', 1)[1].strip()
        fields = ', '.join(c.split('.')[-1] for c in columns.split(','))
        return f'Duplicate field value for {fields}. Please use another value.'
    if 'Key (' in detail:
        key = detail.split('Key (', 1)[1].split(')', 1)[0]
        return f'Duplicate field value for {key}. Please use another value.'
    return 'Duplicate field value. Please use another value.'


def translate_error(exc):
    """Map any exception to an AppError instance."""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, SchemaValidationError):
        errors = _format_schema_messages(exc.messages)
        return ValidationError(f'Invalid input data: {". ".join(errors)}')

    if isinstance(exc, IntegrityError):
        lowered = str(exc.orig).lower()
        if 'unique' in lowered or 'duplicate' in lowered:
            return DuplicateKeyError(_duplicate_message(exc))
        return ValidationError('Invalid input data: a required relation or value is missing.')

    if isinstance(exc, StaleDataError):
        return ConflictError('The document was modified by another request. Please retry.')

    if isinstance(exc, jwt.ExpiredSignatureError):
        return TokenExpiredError('Token expired. Please log in again.')

    if isinstance(exc, jwt.InvalidTokenError):
        return TokenError('Invalid token. Please log in again.')

    if isinstance(exc, HTTPException):
        if exc.code == 404:
            return NotFoundError(exc.description)
        if exc.code == 429:
            return AppError('Too many requests from this IP, please try again later!', 429)
        error = AppError(exc.description or exc.name, exc.code or 500)
        error.is_operational = (exc.code or 500) < 500
        return error

    unknown = UnknownError('Something went wrong!')
    unknown.__cause__ = exc
    return unknown
