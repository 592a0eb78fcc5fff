from app.extensions import db
from sqlalchemy import func


class Claim(db.Model):
    __tablename__ = 'claims'

    id = db.Column(db.Integer, primary_key=True)
    source_id = db.Column(db.Integer, db.ForeignKey('sources.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    impact = db.Column(db.Integer, nullable=False)
    confidence = db.Column(db.Integer, nullable=False)
    helpful_votes = db.Column(db.Integer, nullable=False, default=0)
    not_helpful_votes = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=func.now())
    content_updated_at = db.Column(db.DateTime(timezone=True))
    deleted_at = db.Column(db.DateTime(timezone=True))

    source = db.relationship('Source', backref=db.backref('claims', lazy='dynamic'))
    author = db.relationship('User')

    __table_args__ = (
        db.Index('ix_claims_source', 'source_id'),
        db.Index('ix_claims_user', 'user_id'),
        db.Index('ix_claims_source_active', 'source_id', 'deleted_at'),
        db.CheckConstraint('impact >= 1 AND impact <= 5', name='ck_claims_impact_range'),
        db.CheckConstraint('confidence >= 1 AND confidence <= 5', name='ck_claims_confidence_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'source_id': self.source_id,
            'user_id': self.user_id,
            'author': self.author.username if self.author else None,
            'content': self.content,
            'impact': self.impact,
            'confidence': self.confidence,
            'helpful_votes': self.helpful_votes or 0,
            'not_helpful_votes': self.not_helpful_votes or 0,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'content_updated_at': self.content_updated_at.isoformat() if self.content_updated_at else None,
        }


class ClaimVote(db.Model):
    __tablename__ = 'claim_votes'

    claim_id = db.Column(db.Integer, db.ForeignKey('claims.id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    is_helpful = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        db.Index('ix_claim_votes_claim', 'claim_id'),
    )

    def to_dict(self):
        return {
            'claim_id': self.claim_id,
            'user_id': self.user_id,
            'is_helpful': self.is_helpful,
        }


class ClaimComment(db.Model):
    __tablename__ = 'claim_comments'

    id = db.Column(db.Integer, primary_key=True)
    claim_id = db.Column(db.Integer, db.ForeignKey('claims.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    is_dispute = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    deleted_at = db.Column(db.DateTime(timezone=True))

    __table_args__ = (
        db.Index('ix_claim_comments_claim', 'claim_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'claim_id': self.claim_id,
            'user_id': self.user_id,
            'content': self.content,
            'is_dispute': self.is_dispute,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
