"""
Form authoring models.

Models:
    - Form: a submittable form; optionally restricted to one initiating role
    - Question: a question on a form; answers reference it by id
"""

from datetime import datetime, timezone

from app.models import db
from app.models.soft_delete import SoftDeleteMixin


class Form(SoftDeleteMixin, db.Model):
    """A form users submit into its approval flow."""

    __tablename__ = "forms"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    initiator = db.Column(
        db.String(100),
        nullable=True,
        comment="Role name allowed to start the workflow; NULL = any authenticated user",
    )
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    questions = db.relationship(
        "Question", back_populates="form", lazy="dynamic", order_by="Question.id",
    )
    approval_flow = db.relationship("ApprovalFlow", back_populates="form", uselist=False)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "initiator": self.initiator,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Form {self.id}: {self.title[:40]}>"


class Question(SoftDeleteMixin, db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    form_id = db.Column(
        db.Integer, db.ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    question_text = db.Column(db.Text, nullable=False)
    question_type = db.Column(db.String(50), nullable=False, default="text")
    options = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    form = db.relationship("Form", back_populates="questions")

    def to_dict(self):
        return {
            "id": self.id,
            "form_id": self.form_id,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "options": self.options,
        }
