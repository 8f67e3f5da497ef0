"""Views blueprint - server-rendered pages."""
from flask import Blueprint

views_bp = Blueprint('views', __name__, template_folder='templates')

from app.blueprints.views import routes  # noqa: F401, E402
