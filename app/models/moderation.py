from app.extensions import db
from sqlalchemy import func

TARGET_TYPES = ('source', 'claim', 'comment')


class ModerationLog(db.Model):
    """Append-only audit trail of moderator actions."""
    __tablename__ = 'moderation_logs'

    id = db.Column(db.Integer, primary_key=True)
    moderator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    action = db.Column(db.String(32), nullable=False)
    target_type = db.Column(db.String(16), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.Index('ix_moderation_logs_moderator', 'moderator_id'),
        db.Index('ix_moderation_logs_target', 'target_type', 'target_id'),
        db.Index('ix_moderation_logs_created', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'moderator_id': self.moderator_id,
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'reason': self.reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


FLAG_REASONS = ('spam', 'abuse', 'incorrect_info', 'duplicate')
FLAG_STATUSES = ('pending', 'resolved', 'dismissed')


class Flag(db.Model):
    """A member's report on a source, claim or comment, queued for moderators."""
    __tablename__ = 'flags'

    id = db.Column(db.Integer, primary_key=True)
    target_type = db.Column(db.String(16), nullable=False)
    target_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reason = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='pending')
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    resolved_at = db.Column(db.DateTime(timezone=True))

    flagger = db.relationship('User', foreign_keys=[user_id])

    __table_args__ = (
        # One open flag per member per item; resolved flags do not block a new one.
        db.Index(
            'uq_flags_pending_per_user', 'user_id', 'target_type', 'target_id', unique=True,
            postgresql_where=db.text("status = 'pending'"),
            sqlite_where=db.text("status = 'pending'"),
        ),
        db.Index(
            'ix_flags_pending', 'created_at',
            postgresql_where=db.text("status = 'pending'"),
        ),
        db.Index('ix_flags_target', 'target_type', 'target_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'reason': self.reason,
            'status': self.status,
            'flagger_id': self.user_id,
            'flagger_username': self.flagger.username if self.flagger else None,
            'resolved_by_user_id': self.resolved_by_user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
        }
