from datetime import timezone
from app.extensions import db
from sqlalchemy import and_, or_


class SourceScoreCache(db.Model):
    __tablename__ = 'source_score_cache'

    source_id = db.Column(db.Integer, db.ForeignKey('sources.id', ondelete='CASCADE'), primary_key=True)
    tier = db.Column(db.SmallInteger)
    raw_score = db.Column(db.Float)
    normalized_score = db.Column(db.Float)
    claim_count = db.Column(db.Integer, nullable=False, default=0)
    last_calculated_at = db.Column(db.DateTime(timezone=True))
    recalculation_requested_at = db.Column(db.DateTime(timezone=True))
    last_failed_at = db.Column(db.DateTime(timezone=True))

    source = db.relationship('Source', back_populates='score_cache')

    __table_args__ = (
        db.Index('ix_score_cache_tier', 'tier'),
        db.Index('ix_score_cache_requested', 'recalculation_requested_at'),
    )

    @classmethod
    def stale_filter(cls):
        return and_(
            cls.recalculation_requested_at.isnot(None),
            or_(
                cls.last_calculated_at.is_(None),
                cls.recalculation_requested_at > cls.last_calculated_at,
            ),
        )

    @property
    def is_stale(self):
        if self.recalculation_requested_at is None:
            return False
        if self.last_calculated_at is None:
            return True
        return as_naive_utc(self.recalculation_requested_at) > as_naive_utc(self.last_calculated_at)

    def to_dict(self):
        return {
            'source_id': self.source_id,
            'tier': self.tier,
            'raw_score': round(self.raw_score, 2) if self.raw_score is not None else None,
            'normalized_score': round(self.normalized_score, 2) if self.normalized_score is not None else None,
            'claim_count': self.claim_count or 0,
            'last_calculated_at': self.last_calculated_at.isoformat() if self.last_calculated_at else None,
            'is_stale': self.is_stale,
        }


def as_naive_utc(value):
    # SQLite hands back naive datetimes; everything is stored as UTC.
    return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value
