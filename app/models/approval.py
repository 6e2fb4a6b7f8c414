"""
Approval workflow models.

Models:
    - ApprovalFlow: per-form ordered list of {step, role_required}
    - FormResponse: one submission, i.e. one workflow instance
    - ResponseDetail: one answer of a submission (write-once)
    - Approval: one step's approver assignment and its decision

FormResponse is the aggregate root of its answers and approvals.  While a
response is ``pending`` it owns exactly one ``pending`` Approval, and that
approval carries the highest step_number of the response.  The
(response_id, step_number) unique constraint backs this at the database
level: two concurrent advances cannot both insert the same next step.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

RESPONSE_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED})
APPROVAL_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED})
DECISION_ACTIONS = frozenset({STATUS_APPROVED, STATUS_REJECTED})


class ApprovalFlow(db.Model):
    """
    Routing policy for one form.

    flow_definition is a JSON array of ``{"step": int, "role_required": str}``
    normalised (validated + sorted by step) when written through
    services/approval_flow_store.py.  Rows written by older clients may
    still hold a JSON-encoded string; readers accept both.
    """

    __tablename__ = "approval_flows"

    id = db.Column(db.Integer, primary_key=True)
    form_id = db.Column(
        db.Integer,
        db.ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    flow_definition = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    form = db.relationship("Form", back_populates="approval_flow")

    def to_dict(self):
        return {
            "id": self.id,
            "form_id": self.form_id,
            "flow_definition": self.flow_definition,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class FormResponse(db.Model):
    __tablename__ = "form_responses"

    id = db.Column(db.Integer, primary_key=True)
    form_id = db.Column(
        db.Integer, db.ForeignKey("forms.id"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True,
    )
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_PENDING,
        comment="pending | approved | rejected",
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    form = db.relationship("Form")
    user = db.relationship("User")
    details = db.relationship(
        "ResponseDetail", back_populates="response", lazy="dynamic",
        order_by="ResponseDetail.id",
    )
    approvals = db.relationship(
        "Approval", back_populates="response", lazy="dynamic",
        order_by="Approval.step_number",
    )

    @property
    def is_terminal(self):
        return self.status in (STATUS_APPROVED, STATUS_REJECTED)

    def to_dict(self):
        return {
            "id": self.id,
            "form_id": self.form_id,
            "form_title": self.form.title if self.form else None,
            "user_id": self.user_id,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<FormResponse #{self.id} form={self.form_id} {self.status}>"


class ResponseDetail(db.Model):
    __tablename__ = "response_details"

    id = db.Column(db.Integer, primary_key=True)
    response_id = db.Column(
        db.Integer, db.ForeignKey("form_responses.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    question_id = db.Column(db.Integer, db.ForeignKey("questions.id"), nullable=False)
    answer_text = db.Column(db.Text, nullable=True)

    response = db.relationship("FormResponse", back_populates="details")
    question = db.relationship("Question")

    def to_dict(self):
        return {
            "id": self.id,
            "question_id": self.question_id,
            "question_text": self.question.question_text if self.question else None,
            "answer_text": self.answer_text,
        }


class Approval(db.Model):
    """
    One approval step for a response.

    Business rules:
    - Created pending by the workflow engine, never by clients.
    - Decided exactly once, by the assigned approver (atomic claim in
      services/workflow_service.decide).
    - role_required is copied from the flow at creation time so the audit
      trail survives later flow edits.
    """

    __tablename__ = "approvals"

    id = db.Column(db.Integer, primary_key=True)
    response_id = db.Column(
        db.Integer, db.ForeignKey("form_responses.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    step_number = db.Column(db.Integer, nullable=False)
    role_required = db.Column(db.String(100), nullable=False)
    approver_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    status = db.Column(
        db.String(20), nullable=False, default=STATUS_PENDING,
        comment="pending | approved | rejected",
    )
    comment = db.Column(db.Text, nullable=True)
    decided_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("response_id", "step_number", name="uq_approval_response_step"),
        db.Index("ix_approvals_approver_status", "approver_id", "status"),
    )

    response = db.relationship("FormResponse", back_populates="approvals")
    approver = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "response_id": self.response_id,
            "step_number": self.step_number,
            "role_required": self.role_required,
            "approver_id": self.approver_id,
            "approver_name": self.approver.full_name if self.approver else None,
            "status": self.status,
            "comment": self.comment,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Approval #{self.id} response={self.response_id} step={self.step_number} {self.status}>"
