"""
API v1 Routes for tours: CRUD, the top-5-cheap alias, statistics and
geospatial lookups.
"""
from collections import defaultdict

from flask import jsonify
from sqlalchemy import func
from werkzeug.datastructures import MultiDict

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import protect, restrict_to
from app.blueprints.api.factory import (
    create_one, delete_one, get_all, get_one, update_one,
)
from app.blueprints.api.helpers import api_success, parse_latlng
from app.blueprints.api.schemas import TourDetailSchema, TourSchema
from app.config import get_settings
from app.errors import NotFoundError, ValidationError
from app.extensions import cache
from app.models.tour import Tour
from app.services.stores import tour_store
from app.utils.geo import distances_from, tours_within
from app.utils.images import save_tour_images

TOP_TOURS_PARAMS = {
    'limit': '5',
    'sort': '-ratings_average,price',
    'fields': 'name,price,ratings_average,summary,difficulty',
}

STATS_MIN_RATING = 4.5


# ── Context hooks ───────────────────────────────────────────

def alias_top_tours(ctx):
    """Preset the list parameters of the top-5-cheap alias."""
    params = MultiDict(ctx.params)
    for key, value in TOP_TOURS_PARAMS.items():
        params.setlist(key, [value])
    return ctx.replace(params=params)


def process_tour_images(ctx):
    """Resize uploaded cover and gallery images and add their filenames to the body."""
    if not ctx.files or not any(k in ctx.files for k in ('image_cover', 'images')):
        return ctx

    tour = tour_store.find_by_id(ctx.entity_id)
    if tour is None:
        raise NotFoundError('No document found with that ID')

    stored = save_tour_images(tour, ctx.files, get_settings().upload_folder)
    return ctx.replace(body={**ctx.body, **stored.fields}, uploads=ctx.uploads + (stored,))


# ── CRUD ────────────────────────────────────────────────────

api_bp.add_url_rule(
    '/tours', 'get_all_tours',
    get_all(tour_store, TourSchema),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/tours', 'create_tour',
    protect(restrict_to('admin', 'lead-guide')(create_one(tour_store, TourSchema))),
    methods=['POST'],
)
api_bp.add_url_rule(
    '/tours/top-5-cheap', 'top_tours',
    get_all(tour_store, TourSchema, hooks=[alias_top_tours]),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/tours/<int:id>', 'get_tour',
    get_one(tour_store, TourDetailSchema, expand=('reviews',)),
    methods=['GET'],
)
api_bp.add_url_rule(
    '/tours/<int:id>', 'update_tour',
    protect(restrict_to('admin', 'lead-guide')(
        update_one(tour_store, TourSchema, hooks=[process_tour_images]))),
    methods=['PATCH'],
)
api_bp.add_url_rule(
    '/tours/<int:id>', 'delete_tour',
    protect(restrict_to('admin', 'lead-guide')(delete_one(tour_store))),
    methods=['DELETE'],
)


# ── Statistics ──────────────────────────────────────────────

@cache.memoize(timeout=300)
def compute_tour_stats():
    """Per-difficulty aggregates over well-rated tours, cheapest first."""
    rows = (
        tour_store.base_query()
        .filter(Tour.ratings_average >= STATS_MIN_RATING)
        .with_entities(
            Tour.difficulty,
            func.count(Tour.id),
            func.sum(Tour.ratings_quantity),
            func.avg(Tour.ratings_average),
            func.avg(Tour.price),
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .group_by(Tour.difficulty)
        .all()
    )
    stats = [
        {
            'difficulty': difficulty.value.upper(),
            'num_tours': num_tours,
            'num_ratings': int(num_ratings or 0),
            'avg_rating': round(float(avg_rating), 2),
            'avg_price': round(float(avg_price), 2),
            'min_price': float(min_price),
            'max_price': float(max_price),
        }
        for difficulty, num_tours, num_ratings, avg_rating, avg_price, min_price, max_price in rows
    ]
    return sorted(stats, key=lambda s: s['avg_price'])


@api_bp.route('/tours/tour-stats', methods=['GET'])
def get_tour_stats():
    return api_success(compute_tour_stats())


@api_bp.route('/tours/monthly-plan/<int:year>', methods=['GET'])
@protect
@restrict_to('admin', 'lead-guide', 'guide')
def get_monthly_plan(year, principal=None):
    """Number of tour starts and tour names per month of `year`, busiest first."""
    months = defaultdict(list)
    for tour in tour_store.base_query().all():
        for start in tour.parsed_start_dates:
            if start.year == year:
                months[start.month].append(tour.name)

    plan = [
        {'month': month, 'num_tour_starts': len(names), 'tours': names}
        for month, names in months.items()
    ]
    plan.sort(key=lambda p: (-p['num_tour_starts'], p['month']))
    return api_success(plan[:12])


# ── Geospatial ──────────────────────────────────────────────

def _parse_distance(value):
    try:
        distance = float(value)
    except ValueError:
        raise ValidationError('Distance must be a number.')
    if distance < 0:
        raise ValidationError('Distance must be a positive number.')
    return distance


@api_bp.route('/tours/tours-within/<distance>/center/<latlng>/unit/<unit>', methods=['GET'])
def get_tours_within(distance, latlng, unit):
    """Tours starting within `distance` (mi or km) of the point lat,lng."""
    center = parse_latlng(latlng)
    found = tours_within(tour_store.base_query().all(), center, _parse_distance(distance), unit)
    data = TourSchema(many=True, exclude=('version',)).dump(found)
    return api_success(data, results=len(data))


@api_bp.route('/tours/distances/<latlng>/unit/<unit>', methods=['GET'])
def get_distances(latlng, unit):
    """Name and distance from lat,lng of every tour, nearest first."""
    center = parse_latlng(latlng)
    rows = distances_from(tour_store.base_query().all(), center, unit)
    return jsonify({'status': 'success', 'data': {'data': rows}}), 200
