"""
Natours Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import secrets
import traceback
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, render_template, request, g, jsonify

from app.config import Settings, config
from app.errors import NotFoundError, translate_error
from app.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
        environment=os.environ.get('FLASK_ENV', 'production'),
        send_default_pii=False,
    )
    app.logger.info('Sentry error tracking initialized.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Resolved once; auth, booking and upload code read it through get_settings()
    app.extensions['natours_settings'] = Settings.from_mapping(app.config)

    # Initialize extensions
    init_extensions(app)

    # Enable response compression (gzip)
    from flask_compress import Compress
    Compress(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from app.blueprints.views import views_bp
    # REST API v1
    from app.blueprints.api import api_bp

    app.register_blueprint(views_bp)
    # REST API v1: JWT auth, no CSRF needed
    app.register_blueprint(api_bp, url_prefix='/api/v1')


def _is_api_request():
    """Check if the current request targets the API (returns JSON)."""
    return request.path.startswith('/api/')


def register_error_handlers(app):
    """Route every exception through translate_error and render it once."""

    @app.errorhandler(Exception)
    def handle_exception(exc):
        db.session.rollback()

        if request.url_rule is None and getattr(exc, 'code', None) == 404:
            error = NotFoundError(f"Can't find {request.path} on this server.")
        else:
            error = translate_error(exc)

        request_id = g.get('request_id', '-')
        if not error.is_operational:
            app.logger.error(
                'Unhandled %s on %s %s (request_id=%s)',
                type(exc).__name__, request.method, request.path, request_id,
                exc_info=exc,
            )
        elif error.status_code >= 500:
            app.logger.warning('%s: %s (request_id=%s)', type(error).__name__,
                               error.message, request_id)

        show_details = app.extensions['natours_settings'].show_error_details
        message = error.message if error.is_operational or show_details \
            else 'Something went very wrong!'

        if _is_api_request():
            body = {'status': error.status, 'message': message}
            if show_details:
                body['error'] = type(exc).__name__
                body['stack'] = ''.join(
                    traceback.format_exception(type(exc), exc, exc.__traceback__))
            return jsonify(body), error.status_code

        if not error.is_operational and not show_details:
            message = 'Please try again later.'
        return render_template('error.html', title='Something went wrong!', msg=message), \
            error.status_code


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database initialized.')

    @app.cli.command('import-dev-data')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def import_dev_data(path):
        """Load users, tours and reviews from a JSON file."""
        from app.services.dev_data import import_data

        with open(path, encoding='utf-8') as fh:
            data = json.load(fh)
        counts = import_data(data)
        click.echo(
            f"Data successfully loaded: {counts['users']} users, "
            f"{counts['tours']} tours, {counts['reviews']} reviews."
        )

    @app.cli.command('delete-dev-data')
    @click.confirmation_option(prompt='Delete all tours, users, reviews and bookings?')
    def delete_dev_data():
        """Delete every tour, user, review and booking."""
        from app.services.dev_data import delete_data

        delete_data()
        click.echo('Data successfully deleted!')


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud platforms)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    # Request ID middleware
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.csp_nonce = secrets.token_urlsafe(16)
        g.request_started = datetime.now(timezone.utc)

    if app.testing:
        return

    @app.after_request
    def log_request(response):
        if request.path.startswith('/static'):
            return response
        started = g.get('request_started')
        elapsed = (datetime.now(timezone.utc) - started).total_seconds() * 1000 if started else 0
        app.logger.info(
            '%s %s %s %dms',
            request.method,
            request.path,
            response.status_code,
            int(elapsed),
        )
        return response

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Natours startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Natours startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        if request.path.startswith('/static'):
            response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'
            return response

        # Echo the request id for log correlation
        response.headers['X-Request-ID'] = g.get('request_id', '-')

        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # Permissions policy (formerly Feature-Policy)
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Content Security Policy (nonce-based for scripts)
        if not app.debug:
            nonce = g.get('csp_nonce', '')
            response.headers['Content-Security-Policy'] = (
                "default-src 'self'; "
                f"script-src 'self' 'nonce-{nonce}' https://js.stripe.com; "
                "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
                "font-src 'self' https://fonts.gstatic.com; "
                "img-src 'self' data: https: blob:; "
                "connect-src 'self' https://api.stripe.com; "
                "frame-src 'self' https://js.stripe.com https://hooks.stripe.com; "
                "frame-ancestors 'self';"
            )

        return response
