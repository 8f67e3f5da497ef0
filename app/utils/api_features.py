"""
Query Modifier: turns list-endpoint query parameters into filter, sort,
projection and pagination directives on a SQLAlchemy query.

    features = (
        APIFeatures(Tour.query, request.args, Tour)
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )
    tours = features.query.all()

Parameters:
    page      1-based page number (default 1)
    limit     page size (default 100)
    sort      comma-separated fields, "-field" sorts descending (default -created_at)
    fields    comma-separated fields to return (default: all but the version field)
    <field>             equality; repeated values match any of them
    <field>[gte|gt|lte|lt]  comparison

A many-to-one relation name (tour, user) filters and sorts on its foreign key.

No query runs until the caller executes features.query.
"""
import enum
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipDirection, load_only

from app.errors import ValidationError

RESERVED_PARAMS = frozenset({'page', 'sort', 'limit', 'fields'})
COMPARISON_OPERATORS = ('gte', 'gt', 'lte', 'lt')
VERSION_FIELD = 'version'
ID_FIELD = 'id'
DEFAULT_SORT = '-created_at'
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 100

_OPERATOR_KEY = re.compile(r'^(?P<field>[A-Za-z_]\w*)\[(?P<op>gte|gt|lte|lt)\]$')


class Operator(str, enum.Enum):
    EQ = 'eq'
    GT = 'gt'
    GTE = 'gte'
    LT = 'lt'
    LTE = 'lte'


@dataclass(frozen=True)
class Predicate:
    """One typed comparison. An EQ predicate may hold a tuple of alternatives."""
    field: str
    op: Operator
    value: Any


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Projection:
    include: Optional[frozenset] = None
    exclude: frozenset = frozenset({VERSION_FIELD})

    def schema_options(self, declared_fields):
        """marshmallow Schema kwargs (`only` or `exclude`) limited to declared fields."""
        if self.include is not None:
            return {'only': tuple(f for f in sorted(self.include) if f in declared_fields)}
        return {'exclude': tuple(f for f in sorted(self.exclude) if f in declared_fields)}


@dataclass(frozen=True)
class QueryDirectives:
    filters: Tuple[Predicate, ...] = ()
    sort_keys: Tuple[SortKey, ...] = (SortKey('created_at', True),)
    projection: Projection = Projection()
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def skip(self):
        return self.page_size * (self.page - 1)

    @classmethod
    def from_params(cls, params):
        return cls(
            filters=parse_filters(params),
            sort_keys=parse_sort(_single(params, 'sort')),
            projection=parse_projection(_single(params, 'fields')),
            page=parse_positive_int(_single(params, 'page'), DEFAULT_PAGE),
            page_size=parse_positive_int(_single(params, 'limit'), DEFAULT_PAGE_SIZE),
        )


# ── Parameter parsing ───────────────────────────────────────

def _param_items(params):
    """Yield (key, value) with value a list of strings or a nested mapping."""
    if hasattr(params, 'lists'):
        for key, values in params.lists():
            yield key, list(values)
        return
    for key, value in (params or {}).items():
        if isinstance(value, Mapping):
            yield key, value
        elif isinstance(value, (list, tuple)):
            yield key, [str(v) for v in value]
        elif value is not None:
            yield key, [str(value)]


def _single(params, name):
    """Last value of a reserved parameter (repeated parameters: last one wins)."""
    for key, value in _param_items(params):
        if key == name and isinstance(value, list) and value:
            return value[-1]
    return None


def _as_eq_value(values):
    return values[0] if len(values) == 1 else tuple(values)


def parse_filters(params):
    """Build typed predicates from every non-reserved parameter."""
    predicates = []
    for key, value in _param_items(params):
        if key in RESERVED_PARAMS:
            continue
        if isinstance(value, Mapping):
            for op_name, op_value in value.items():
                if op_name not in COMPARISON_OPERATORS:
                    raise ValidationError(f'Invalid filter operator: {key}[{op_name}]')
                if isinstance(op_value, (list, tuple)):
                    op_value = op_value[-1]
                predicates.append(Predicate(key, Operator(op_name), str(op_value)))
            continue
        match = _OPERATOR_KEY.match(key)
        if match:
            predicates.append(Predicate(match['field'], Operator(match['op']), value[-1]))
        else:
            predicates.append(Predicate(key, Operator.EQ, _as_eq_value(value)))
    return tuple(predicates)


def _split_csv(value):
    return [part.strip() for part in value.split(',') if part.strip()]


def parse_sort(value):
    if not value or not _split_csv(value):
        value = DEFAULT_SORT
    keys = []
    for part in _split_csv(value):
        if part.startswith('-'):
            keys.append(SortKey(part[1:], True))
        else:
            keys.append(SortKey(part.lstrip('+'), False))
    return tuple(keys)


def parse_projection(value):
    fields = _split_csv(value) if value else []
    if not fields:
        return Projection()
    return Projection(include=frozenset(fields) | {ID_FIELD})


def parse_positive_int(value, default):
    """Positive integer from a request string; anything else yields the default."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


# ── Value coercion ──────────────────────────────────────────

def _bad_value(field, kind):
    return ValidationError(f'Invalid value for {field}: expected {kind}.')


def _coerce_one(field, column, raw):
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw

    if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
        try:
            return python_type(raw)
        except ValueError:
            allowed = ', '.join(m.value for m in python_type)
            raise _bad_value(field, f'one of {allowed}')
    if python_type is bool:
        text = str(raw).strip().lower()
        if text in {'1', 'true', 'yes'}:
            return True
        if text in {'0', 'false', 'no'}:
            return False
        raise _bad_value(field, 'a boolean')
    if python_type in (int, float, Decimal):
        try:
            return python_type(str(raw).strip())
        except (ValueError, InvalidOperation):
            raise _bad_value(field, 'a number')
    if python_type is datetime:
        try:
            parsed = datetime.fromisoformat(str(raw).strip().replace('Z', '+00:00'))
        except ValueError:
            raise _bad_value(field, 'an ISO date')
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    if python_type is date:
        try:
            return date.fromisoformat(str(raw).strip())
        except ValueError:
            raise _bad_value(field, 'an ISO date')
    if python_type in (dict, list):
        raise ValidationError(f'Filtering on {field} is not supported.')
    return raw


def _column_key(mapper, field):
    """Column attribute behind a field; a many-to-one relation stands for its foreign key."""
    if field in mapper.column_attrs:
        return field
    relation = mapper.relationships.get(field)
    if relation is not None and relation.direction is RelationshipDirection.MANYTOONE:
        local = list(relation.local_columns)
        if len(local) == 1:
            return mapper.get_property_by_column(local[0]).key
    return None


def _column(model, field, purpose):
    mapper = sa_inspect(model)
    key = _column_key(mapper, field)
    if key is None:
        raise ValidationError(f'Invalid {purpose} field: {field}')
    return getattr(model, key), mapper.column_attrs[key].columns[0]


def predicate_clause(model, predicate):
    """SQLAlchemy boolean clause for one predicate."""
    attribute, column = _column(model, predicate.field, 'filter')
    if predicate.op is Operator.EQ:
        if isinstance(predicate.value, tuple):
            values = [_coerce_one(predicate.field, column, v) for v in predicate.value]
            return attribute.in_(values)
        return attribute == _coerce_one(predicate.field, column, predicate.value)

    value = _coerce_one(predicate.field, column, predicate.value)
    if predicate.op is Operator.GT:
        return attribute > value
    if predicate.op is Operator.GTE:
        return attribute >= value
    if predicate.op is Operator.LT:
        return attribute < value
    return attribute <= value


# ── Chaining API ────────────────────────────────────────────

class APIFeatures:
    """Applies the four stages, in order, to one accumulating query."""

    def __init__(self, query, params, model):
        self.query = query
        self.params = params
        self.model = model
        self.filters = ()
        self.sort_keys = ()
        self.projection = Projection()
        self.page = DEFAULT_PAGE
        self.page_size = DEFAULT_PAGE_SIZE

    @property
    def directives(self):
        return QueryDirectives(
            filters=self.filters,
            sort_keys=self.sort_keys,
            projection=self.projection,
            page=self.page,
            page_size=self.page_size,
        )

    def filter(self):
        self.filters = parse_filters(self.params)
        clauses = [predicate_clause(self.model, p) for p in self.filters]
        if clauses:
            self.query = self.query.filter(*clauses)
        return self

    def sort(self):
        self.sort_keys = parse_sort(_single(self.params, 'sort'))
        order = []
        for key in self.sort_keys:
            attribute, _ = _column(self.model, key.field, 'sort')
            order.append(attribute.desc() if key.descending else attribute.asc())
        self.query = self.query.order_by(*order)
        return self

    def limit_fields(self):
        self.projection = parse_projection(_single(self.params, 'fields'))
        if self.projection.include is not None:
            mapper = sa_inspect(self.model)
            columns = [getattr(self.model, f) for f in sorted(self.projection.include)
                       if f in mapper.column_attrs]
            if columns:
                self.query = self.query.options(load_only(*columns))
        return self

    def paginate(self):
        self.page = parse_positive_int(_single(self.params, 'page'), DEFAULT_PAGE)
        self.page_size = parse_positive_int(_single(self.params, 'limit'), DEFAULT_PAGE_SIZE)
        skip = self.page_size * (self.page - 1)
        self.query = self.query.offset(skip).limit(self.page_size)
        return self
