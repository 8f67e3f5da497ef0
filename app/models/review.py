"""
Review model. Writing a review refreshes the rating aggregates of its tour.
"""
from datetime import datetime

from sqlalchemy import func

from app.extensions import db


class Review(db.Model):
    """A user's review of a tour; one per (tour, user)."""

    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('tour_id', 'user_id', name='uq_review_tour_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    review = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Float)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    tour_id = db.Column(db.Integer, db.ForeignKey('tours.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    tour = db.relationship('Tour', back_populates='reviews')
    user = db.relationship('User', back_populates='reviews', lazy='joined')

    def __repr__(self):
        return f'<Review {self.id} tour={self.tour_id} user={self.user_id}>'

    @staticmethod
    def calc_average_ratings(tour_id):
        """Recompute ratings_quantity and ratings_average on the tour."""
        from app.models.tour import Tour

        count, average = db.session.query(
            func.count(Review.id), func.avg(Review.rating)
        ).filter(Review.tour_id == tour_id).one()

        tour = db.session.get(Tour, tour_id)
        if tour is None:
            return
        tour.ratings_quantity = count or 0
        tour.ratings_average = float(average) if count else 0
