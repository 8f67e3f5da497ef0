"""
Rendered pages: tour overview and detail, login/signup, account and bookings.
The logged-in user comes from the `jwt` cookie through Flask-Login's request
loader, so these pages share their session with the REST API.
"""
from flask import render_template, redirect, url_for, flash, request
from flask_login import login_required, current_user
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError

from app.blueprints.api.auth import clear_auth_cookie, set_auth_cookie
from app.blueprints.api.decorators import create_access_token
from app.blueprints.api.schemas import UserSchema
from app.blueprints.views import views_bp
from app.blueprints.views.forms import LoginForm, SignupForm, UserDataForm
from app.config import get_settings
from app.errors import AppError, NotFoundError, translate_error
from app.extensions import db, limiter
from app.models.booking import Booking
from app.services.stores import tour_store, user_store
from app.utils.email import send_welcome_email
from app.utils.images import save_user_photo

ALERTS = {
    'booking': (
        "Your booking was successful! Please check your email for a confirmation. "
        "If your booking doesn't show up here immediately, please come back later."
    ),
}


@views_bp.context_processor
def inject_alert():
    """Expose the ?alert= banner message to every page."""
    return {'alert': ALERTS.get(request.args.get('alert', ''))}


def _login_response(user, endpoint='views.overview'):
    settings = get_settings()
    response = redirect(url_for(endpoint))
    return set_auth_cookie(response, create_access_token(user.id, settings), settings)


def _flash_error(exc):
    db.session.rollback()
    flash(translate_error(exc).message, 'error')


@views_bp.route('/')
def overview():
    """All public tours."""
    tours = tour_store.base_query().order_by(tour_store.model.created_at.desc()).all()
    return render_template('views/overview.html', title='All Tours', tours=tours)


@views_bp.route('/tour/<slug>')
def tour(slug):
    """Tour detail page with its guides and reviews."""
    found = tour_store.find_one(slug=slug)
    if found is None:
        raise NotFoundError('There is no tour with that name.')
    return render_template('views/tour.html', title=f'{found.name} Tour', tour=found)


@views_bp.route('/login', methods=['GET', 'POST'])
@limiter.limit('10 per minute', methods=['POST'])
def login():
    form = LoginForm()

    if form.validate_on_submit():
        user = user_store.find_one(email=form.email.data.strip().lower())
        if user and user.check_password(form.password.data):
            flash('Logged in successfully!', 'success')
            return _login_response(user)
        flash('Incorrect email or password.', 'error')

    return render_template('views/login.html', title='Log into your account', form=form)


@views_bp.route('/signup', methods=['GET', 'POST'])
@limiter.limit('10 per minute', methods=['POST'])
def signup():
    form = SignupForm()

    if form.validate_on_submit():
        try:
            values = UserSchema(only=('name', 'email', 'password', 'password_confirm')).load({
                'name': form.name.data,
                'email': form.email.data,
                'password': form.password.data,
                'password_confirm': form.password_confirm.data,
            })
            user = user_store.insert(values)
        except (AppError, SchemaValidationError, IntegrityError) as e:
            _flash_error(e)
        else:
            send_welcome_email(user, url_for('views.account', _external=True))
            flash('Welcome to Natours!', 'success')
            return _login_response(user, 'views.account')

    return render_template('views/signup.html', title='Create your account', form=form)


@views_bp.route('/logout')
def logout():
    return clear_auth_cookie(redirect(url_for('views.overview')))


@views_bp.route('/me')
@login_required
def account():
    form = UserDataForm(obj=current_user)
    return render_template('views/account.html', title='Your account', form=form)


@views_bp.route('/submit-user-data', methods=['POST'])
@login_required
def update_user_data():
    """Save name, email and photo from the account page."""
    form = UserDataForm()

    if form.validate_on_submit():
        stored = None
        try:
            values = UserSchema(only=('name', 'email'), partial=True).load({
                'name': form.name.data,
                'email': form.email.data,
            })
            if form.photo.data and form.photo.data.filename:
                stored = save_user_photo(
                    current_user, form.photo.data, get_settings().upload_folder)
                values.update(stored.fields)
            user_store.update_by_id(current_user.id, values)
        except (AppError, SchemaValidationError, IntegrityError) as e:
            if stored is not None:
                stored.discard()
            _flash_error(e)
        else:
            if stored is not None:
                stored.keep()
            flash('Data updated successfully!', 'success')
            return redirect(url_for('views.account'))

    for errors in form.errors.values():
        for error in errors:
            flash(error, 'error')
    return render_template('views/account.html', title='Your account', form=form)


@views_bp.route('/my-tours')
@login_required
def my_tours():
    """Tours the current user has booked."""
    bookings = Booking.query.filter_by(user_id=current_user.id).all()
    tour_ids = {b.tour_id for b in bookings}
    tours = tour_store.base_query().filter(tour_store.model.id.in_(tour_ids)).all() \
        if tour_ids else []
    return render_template('views/overview.html', title='My Tours', tours=tours)
