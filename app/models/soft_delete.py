"""
Soft Delete Mixin — forms and questions.

Authoring records are never physically removed once submissions may
reference them; they are flagged instead.

Usage:
    class Form(SoftDeleteMixin, db.Model):
        ...

    Form.query_active().filter_by(id=form_id).first()
"""

from datetime import datetime, timezone

from app.models import db


class SoftDeleteMixin:
    """Mixin that adds a deleted flag plus timestamp to any SQLAlchemy model."""

    deleted_flag = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime, nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_flag = True
        self.deleted_at = datetime.now(timezone.utc)

    def restore(self):
        """Restore a soft-deleted record."""
        self.deleted_flag = False
        self.deleted_at = None

    @property
    def is_deleted(self):
        return bool(self.deleted_flag)

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_flag.is_(False))
