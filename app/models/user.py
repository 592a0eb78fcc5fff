from app.extensions import db
from sqlalchemy import func

ROLES = ('member', 'moderator', 'admin')


class User(db.Model):
    """Identity mirrored from the external auth provider."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True)
    email = db.Column(db.String(256), nullable=False, unique=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    role = db.Column(db.String(16), nullable=False, default='member')
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    @property
    def is_moderator(self):
        return self.role in ('moderator', 'admin')

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email_verified': self.email_verified,
            'role': self.role,
        }
