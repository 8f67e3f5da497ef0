"""
Entity stores: the uniform create/read/update/delete contract the generic
API handlers are written against.

A store wraps one SQLAlchemy model. Subclasses narrow the base query (secret
tours, inactive users) or run follow-up work after a write (tour rating
aggregates after a review changes).
"""
from typing import Any, Generic, Iterable, Mapping, Optional, Protocol, TypeVar

from sqlalchemy.orm import Query, selectinload

from app.extensions import db
from app.models.booking import Booking
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User

T = TypeVar('T')


class ResourceStore(Protocol[T]):
    """Capability set every entity type exposes to the handler factory."""

    model: type

    def find_matching(self, id_filter: Optional[Mapping[str, Any]] = None) -> Query: ...

    def find_by_id(self, entity_id: int, expand: Iterable[str] = ()) -> Optional[T]: ...

    def insert(self, data: Mapping[str, Any]) -> T: ...

    def update_by_id(self, entity_id: int, data: Mapping[str, Any]) -> Optional[T]: ...

    def delete_by_id(self, entity_id: int) -> Optional[T]: ...


class ModelStore(Generic[T]):
    """SQLAlchemy-backed store for a single model.

    Writes commit immediately; the caller's error handler rolls the session
    back when any of them raise.
    """

    def __init__(self, model: type):
        self.model = model

    def base_query(self) -> Query:
        return self.model.query

    def find_matching(self, id_filter=None) -> Query:
        query = self.base_query()
        if id_filter:
            query = query.filter_by(**id_filter)
        return query

    def find_by_id(self, entity_id, expand=()):
        query = self.base_query()
        for relation in expand:
            query = query.options(selectinload(getattr(self.model, relation)))
        return query.filter(self.model.id == entity_id).first()

    def find_one(self, **criteria):
        return self.base_query().filter_by(**criteria).first()

    def insert(self, data):
        entity = self.model()
        self._assign(entity, data)
        self._check(entity)
        db.session.add(entity)
        db.session.flush()
        self.after_write(entity)
        db.session.commit()
        return entity

    def update_by_id(self, entity_id, data):
        entity = self.find_by_id(entity_id)
        if entity is None:
            return None
        self._assign(entity, data)
        self._check(entity)
        db.session.flush()
        self.after_write(entity)
        db.session.commit()
        return entity

    def delete_by_id(self, entity_id):
        entity = self.find_by_id(entity_id)
        if entity is None:
            return None
        db.session.delete(entity)
        db.session.flush()
        self.after_write(entity)
        db.session.commit()
        return entity

    def after_write(self, entity):
        """Hook run inside the write transaction, before commit."""

    def _assign(self, entity, data):
        for key, value in data.items():
            setattr(entity, key, value)

    @staticmethod
    def _check(entity):
        check = getattr(entity, 'check_invariants', None)
        if check is not None:
            check()


class TourStore(ModelStore[Tour]):
    """Secret tours never leave the store."""

    def __init__(self):
        super().__init__(Tour)

    def base_query(self):
        return Tour.query.filter(Tour.secret_tour.is_(False))

    def _assign(self, entity, data):
        data = dict(data)
        guide_ids = data.pop('guides', None)
        super()._assign(entity, data)
        if guide_ids is not None:
            guides = User.query.filter(User.id.in_(guide_ids)).all() if guide_ids else []
            entity.guides = guides


class UserStore(ModelStore[User]):
    """Deactivated users are hidden from every lookup."""

    def __init__(self):
        super().__init__(User)

    def base_query(self):
        return User.query.filter(User.active.is_(True))

    def _assign(self, entity, data):
        data = dict(data)
        password = data.pop('password', None)
        data.pop('password_confirm', None)
        super()._assign(entity, data)
        if password is not None:
            entity.set_password(password)


class ReviewStore(ModelStore[Review]):
    """Keeps the tour's rating aggregates in step with its reviews."""

    def __init__(self):
        super().__init__(Review)

    def after_write(self, entity):
        Review.calc_average_ratings(entity.tour_id)


class BookingStore(ModelStore[Booking]):
    def __init__(self):
        super().__init__(Booking)


tour_store = TourStore()
user_store = UserStore()
review_store = ReviewStore()
booking_store = BookingStore()
