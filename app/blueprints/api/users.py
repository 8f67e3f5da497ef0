"""
API v1 Routes for users: the current user's own account and admin management.
"""
from app.blueprints.api import api_bp
from app.blueprints.api.decorators import protect, restrict_to
from app.blueprints.api.factory import delete_one, get_all, get_one, update_one
from app.blueprints.api.helpers import no_content
from app.blueprints.api.schemas import UserSchema
from app.config import get_settings
from app.errors import AppError, ValidationError
from app.extensions import db
from app.services.stores import user_store
from app.utils.images import save_user_photo

SELF_UPDATE_FIELDS = ('name', 'email')


# ── Context hooks ───────────────────────────────────────────

def set_user_id(ctx):
    """Point the request at the authenticated user's own record."""
    return ctx.replace(view_args={**ctx.view_args, 'id': ctx.principal.id})


def reject_password(ctx):
    """Password changes go through their own endpoints."""
    if 'password' in ctx.body or 'password_confirm' in ctx.body:
        raise ValidationError(
            'This route is not for password updates. Please use /update-my-password.')
    return ctx


def keep_self_update_fields(ctx):
    """A user may only change their own name and email (and photo, below)."""
    body = {k: v for k, v in ctx.body.items() if k in SELF_UPDATE_FIELDS}
    return ctx.replace(body=body)


def process_user_photo(ctx):
    photo = ctx.files.get('photo') if ctx.files else None
    if not photo or not photo.filename:
        return ctx
    stored = save_user_photo(ctx.principal, photo, get_settings().upload_folder)
    return ctx.replace(body={**ctx.body, **stored.fields}, uploads=ctx.uploads + (stored,))


# ── Current user ────────────────────────────────────────────

api_bp.add_url_rule(
    '/users/me', 'get_me',
    protect(get_one(user_store, UserSchema, hooks=[set_user_id])),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/users/update-me', 'update_me',
    protect(update_one(user_store, UserSchema, hooks=[
        set_user_id, reject_password, keep_self_update_fields, process_user_photo,
    ])),
    methods=['PATCH'],
)


@api_bp.route('/users/delete-me', methods=['DELETE'])
@protect
def delete_me(principal):
    """Deactivate the current account; it disappears from every lookup."""
    principal.active = False
    db.session.commit()
    return no_content()


# ── Administration ──────────────────────────────────────────

def create_user(principal=None):
    raise AppError('This route is not defined. Please use /signup instead.', 500)


api_bp.add_url_rule(
    '/users', 'get_all_users',
    protect(restrict_to('admin')(get_all(user_store, UserSchema))),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/users', 'create_user',
    protect(restrict_to('admin')(create_user)),
    methods=['POST'],
)
api_bp.add_url_rule(
    '/users/<int:id>', 'get_user',
    protect(restrict_to('admin')(get_one(user_store, UserSchema))),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/users/<int:id>', 'update_user',
    protect(restrict_to('admin')(update_one(user_store, UserSchema, hooks=[reject_password]))),
    methods=['PATCH'],
)
api_bp.add_url_rule(
    '/users/<int:id>', 'delete_user',
    protect(restrict_to('admin')(delete_one(user_store))),
    methods=['DELETE'],
)
