"""
Flask extensions initialization.
Extensions are initialized here and bound to the app in the factory.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mailman import Mail
from flask_caching import Cache

# Database
db = SQLAlchemy()

# Database migrations
migrate = Migrate()

# Session for the rendered pages, backed by the jwt cookie
login_manager = LoginManager()
login_manager.login_view = 'views.login'
login_manager.login_message = 'Please log in to access this page.'
login_manager.login_message_category = 'warning'

# CSRF Protection
csrf = CSRFProtect()

# Rate Limiting
limiter = Limiter(key_func=get_remote_address)

# Email
mail = Mail()

# Caching
cache = Cache()


def init_extensions(app):
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)
    cache.init_app(app)

    # Exempt API blueprint from CSRF (uses JWT, not form posts)
    from app.blueprints.api import api_bp
    csrf.exempt(api_bp)

    from app.blueprints.api.decorators import load_user_from_cookie

    @login_manager.request_loader
    def load_user(req):
        """Resolve the logged-in user of a rendered page from the jwt cookie.

        Any problem with the cookie simply means nobody is logged in.
        """
        return load_user_from_cookie(req)
