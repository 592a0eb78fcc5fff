from app.extensions import db
from sqlalchemy import func


class SystemSetting(db.Model):
    """Operator-editable settings keyed by name (e.g. the recalculation schedule)."""
    __tablename__ = 'system_settings'

    key = db.Column(db.String(128), primary_key=True)
    value_json = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def get_value(cls, key, default=None):
        row = db.session.get(cls, key)
        return row.value_json if row else default

    @classmethod
    def set_value(cls, key, value):
        row = db.session.get(cls, key)
        if row is None:
            row = cls(key=key, value_json=value)
            db.session.add(row)
        else:
            row.value_json = value
        return row
