"""
API v1 Routes for reviews: standalone and nested under a tour
(/tours/<tour_id>/reviews).
"""
from app.blueprints.api import api_bp
from app.blueprints.api.decorators import protect, restrict_to, restrict_to_owner_and
from app.blueprints.api.factory import (
    create_one, delete_one, get_all, get_one, update_one,
)
from app.blueprints.api.schemas import ReviewSchema
from app.services.stores import review_store

EDITABLE_FIELDS = ('review', 'rating')


# ── Context hooks ───────────────────────────────────────────

def set_tour_id_filter(ctx):
    """On the nested route, list only the reviews of that tour."""
    if 'tour_id' in ctx.view_args:
        return ctx.replace(id_filter={'tour_id': ctx.view_args['tour_id']})
    return ctx


def set_tour_user_ids(ctx):
    """Default the review's tour to the route's and its author to the caller."""
    body = dict(ctx.body)
    if not body.get('tour') and 'tour_id' in ctx.view_args:
        body['tour'] = ctx.view_args['tour_id']
    if not body.get('user'):
        body['user'] = ctx.principal.id
    return ctx.replace(body=body)


def keep_editable_fields(ctx):
    body = {k: v for k, v in ctx.body.items() if k in EDITABLE_FIELDS}
    return ctx.replace(body=body)


# ── Routes ──────────────────────────────────────────────────

list_reviews = protect(get_all(review_store, ReviewSchema, hooks=[set_tour_id_filter]))
create_review = protect(restrict_to('user')(
    create_one(review_store, ReviewSchema, hooks=[set_tour_user_ids])))

api_bp.add_url_rule('/reviews', 'get_all_reviews', list_reviews, methods=['GET'])
api_bp.add_url_rule('/reviews', 'create_review', create_review, methods=['POST'])
api_bp.add_url_rule(
    '/tours/<int:tour_id>/reviews', 'get_tour_reviews', list_reviews, methods=['GET'])
api_bp.add_url_rule(
    '/tours/<int:tour_id>/reviews', 'create_tour_review', create_review, methods=['POST'])

api_bp.add_url_rule(
    '/reviews/<int:id>', 'get_review',
    protect(get_one(review_store, ReviewSchema)),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/reviews/<int:id>', 'update_review',
    protect(restrict_to_owner_and(review_store, 'user_id')(
        update_one(review_store, ReviewSchema, hooks=[keep_editable_fields]))),
    methods=['PATCH'],
)
api_bp.add_url_rule(
    '/reviews/<int:id>', 'delete_review',
    protect(restrict_to_owner_and(review_store, 'user_id', 'admin')(
        delete_one(review_store))),
    methods=['DELETE'],
)
