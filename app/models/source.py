from app.extensions import db
from sqlalchemy import func

MAX_DEPTH = 5
PATH_SEPARATOR = '.'
APPROVAL_STATUSES = ('pending', 'approved', 'rejected')


def split_path(path):
    """Decompose a materialized path ("1.4.9") into integer ids, root first."""
    return [int(part) for part in (path or '').split(PATH_SEPARATOR) if part]


class Source(db.Model):
    __tablename__ = 'sources'

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(64))
    description = db.Column(db.Text)
    url = db.Column(db.String(2048))
    parent_id = db.Column(db.Integer, db.ForeignKey('sources.id', ondelete='SET NULL'), nullable=True)
    path = db.Column(db.Text, nullable=False)
    depth = db.Column(db.Integer, nullable=False, default=0)
    approval_status = db.Column(db.String(16), nullable=False, default='pending')
    created_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=func.now())
    deleted_at = db.Column(db.DateTime(timezone=True))

    parent = db.relationship('Source', remote_side=[id], backref=db.backref('children', lazy='dynamic'))
    score_cache = db.relationship('SourceScoreCache', uselist=False, back_populates='source')

    __table_args__ = (
        db.UniqueConstraint('parent_id', 'slug', name='uq_sources_parent_slug'),
        # NULL parents never collide in a composite unique constraint, so roots
        # get their own partial index.
        db.Index(
            'uq_sources_root_slug', 'slug', unique=True,
            postgresql_where=db.text('parent_id IS NULL'),
            sqlite_where=db.text('parent_id IS NULL'),
        ),
        db.Index('ix_sources_parent', 'parent_id'),
        db.Index('ix_sources_depth', 'depth'),
        db.Index('ix_sources_path_pattern', 'path', postgresql_ops={'path': 'text_pattern_ops'}),
        db.CheckConstraint('depth >= 0 AND depth <= 5', name='ck_sources_max_depth'),
    )

    @property
    def path_ids(self):
        return split_path(self.path)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def to_dict(self):
        cache = self.score_cache
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'type': self.type,
            'description': self.description,
            'url': self.url,
            'parent_id': self.parent_id,
            'path': self.path,
            'depth': self.depth,
            'approval_status': self.approval_status,
            'created_by_user_id': self.created_by_user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'tier': cache.tier if cache else None,
            'claim_count': cache.claim_count if cache else 0,
        }


class SourceAncestorPath(db.Model):
    """One row per (source, ancestor) pair, self included."""
    __tablename__ = 'source_ancestor_paths'

    id = db.Column(db.Integer, primary_key=True)
    source_id = db.Column(db.Integer, db.ForeignKey('sources.id', ondelete='CASCADE'), nullable=False)
    ancestor_id = db.Column(db.Integer, db.ForeignKey('sources.id', ondelete='CASCADE'), nullable=False)
    path = db.Column(db.Text, nullable=False)
    path_type = db.Column(db.String(32), nullable=False, default='primary')
    depth = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.UniqueConstraint('source_id', 'ancestor_id', 'path_type', name='uq_ancestor_paths_pair'),
        db.Index('ix_ancestor_paths_source', 'source_id'),
        db.Index('ix_ancestor_paths_ancestor', 'ancestor_id'),
    )
