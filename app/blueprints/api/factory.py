"""
Handler factory: builds the list/get/create/update/delete views shared by
every resource.

Each view assembles a RequestContext from the incoming request, threads it
through the resource's hooks (plain functions `ctx -> ctx`) and then makes a
single entity-store call. Exceptions are not caught here: they reach the
app-level error handler, which translates and renders them.

    api_bp.add_url_rule(
        '/reviews', 'get_all_reviews',
        protect(get_all(review_store, ReviewSchema, hooks=[set_tour_id_filter])),
        methods=['GET'],
    )
"""
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Mapping, Optional

from flask import request

from app.blueprints.api.helpers import api_success, no_content
from app.errors import NotFoundError
from app.utils.api_features import APIFeatures

NOT_FOUND_MESSAGE = 'No document found with that ID'


@dataclass(frozen=True)
class RequestContext:
    """Everything a handler reads from the request, fixed before the store call."""
    params: Mapping[str, Any]
    body: Mapping[str, Any]
    view_args: Mapping[str, Any]
    files: Mapping[str, Any] = field(default_factory=dict)
    principal: Optional[Any] = None
    id_filter: Mapping[str, Any] = field(default_factory=dict)
    uploads: tuple = ()

    def replace(self, **changes):
        return replace(self, **changes)

    @property
    def entity_id(self):
        return self.view_args.get('id')


Hook = Callable[[RequestContext], RequestContext]


def _request_body():
    if request.is_json:
        return dict(request.get_json(silent=True) or {})
    return request.form.to_dict()


def build_context(view_args, principal=None):
    return RequestContext(
        params=request.args,
        body=_request_body(),
        view_args=dict(view_args),
        files=request.files,
        principal=principal,
    )


def run_hooks(ctx, hooks: Iterable[Hook]):
    for hook in hooks:
        ctx = hook(ctx)
    return ctx


def _settle_uploads(ctx, write):
    """Run the store write; keep uploaded files only if it succeeds."""
    try:
        doc = write()
    except Exception:
        for upload in ctx.uploads:
            upload.discard()
        raise
    for upload in ctx.uploads:
        if doc is None:
            upload.discard()
        else:
            upload.keep()
    return doc


def get_all(store, schema_cls, hooks=()):
    """List entities matching the query parameters (and any hook-set id filter)."""
    hooks = tuple(hooks)

    def handler(principal=None, **view_args):
        ctx = run_hooks(build_context(view_args, principal), hooks)
        features = (
            APIFeatures(store.find_matching(ctx.id_filter), ctx.params, store.model)
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        docs = features.query.all()
        options = features.projection.schema_options(schema_cls._declared_fields)
        data = schema_cls(many=True, **options).dump(docs)
        return api_success(data, results=len(docs))

    return handler


def get_one(store, schema_cls, expand=(), hooks=()):
    """Fetch one entity by id, optionally eager-loading the named relations."""
    hooks = tuple(hooks)
    expand = tuple(expand)

    def handler(principal=None, **view_args):
        ctx = run_hooks(build_context(view_args, principal), hooks)
        doc = store.find_by_id(ctx.entity_id, expand)
        if doc is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        data = schema_cls(exclude=('version',)).dump(doc)
        return api_success(data)

    return handler


def create_one(store, schema_cls, hooks=()):
    """Validate the body and persist a new entity (201)."""
    hooks = tuple(hooks)

    def handler(principal=None, **view_args):
        ctx = run_hooks(build_context(view_args, principal), hooks)
        doc = _settle_uploads(ctx, lambda: store.insert(schema_cls().load(ctx.body)))
        data = schema_cls(exclude=('version',)).dump(doc)
        return api_success(data, status=201)

    return handler


def update_one(store, schema_cls, hooks=()):
    """Apply a validated partial update; entity invariants are re-checked by the store."""
    hooks = tuple(hooks)

    def handler(principal=None, **view_args):
        ctx = run_hooks(build_context(view_args, principal), hooks)
        doc = _settle_uploads(ctx, lambda: store.update_by_id(
            ctx.entity_id, schema_cls(partial=True).load(ctx.body)))
        if doc is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        data = schema_cls(exclude=('version',)).dump(doc)
        return api_success(data)

    return handler


def delete_one(store, hooks=()):
    """Remove an entity; 204 with an empty body."""
    hooks = tuple(hooks)

    def handler(principal=None, **view_args):
        ctx = run_hooks(build_context(view_args, principal), hooks)
        doc = store.delete_by_id(ctx.entity_id)
        if doc is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        return no_content()

    return handler
