"""
Workflow State Machine — owns FormResponse / Approval state.

    pending ──(last step approved)──► approved
       │
       └────(any step rejected)─────► rejected

Design decisions:
    - ingest() and decide() each run as ONE transaction: either every row
      of the transition is written or none is.  Notifications are queued
      during the transaction and delivered only after commit; delivery
      failures are logged and never roll anything back.
    - decide() claims the open approval with a conditional UPDATE
      (id, approver, status='pending').  Of two concurrent deciders only one
      sees rowcount == 1; the other gets an authorization failure and
      creates nothing.  The (response_id, step_number) unique constraint is
      the database-level backstop.
    - Unresolvable approvers are handled by an explicit UnresolvedPolicy:
      ingestion auto-approves (forms without staffed governance are not
      blocked), later steps follow MIDFLOW_UNRESOLVED_POLICY (default
      "fail": the whole decision rolls back and the approval stays open).
    - Next-step approvers are always resolved against the ORIGINAL
      submitter's department/college, never the current approver's.
    - After every transition a pending response must own exactly one
      pending approval; anything else is logged at CRITICAL and raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ApproverNotFoundError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    WorkflowInvariantError,
)
from app.models import db
from app.models.approval import (
    DECISION_ACTIONS,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Approval,
    FormResponse,
    ResponseDetail,
)
from app.models.auth import User
from app.models.form import Form
from app.services.approval_flow_store import first_step, get_flow, step_after
from app.services.approver_resolver import UnresolvedPolicy, resolve_approver
from app.services.notification import NotificationService
from app.services.role_directory import is_admin

logger = logging.getLogger(__name__)

# ── Outcome kinds ─────────────────────────────────────────────────────────────

OUTCOME_ROUTED = "routed"                # submission assigned to its first approver
OUTCOME_AUTO_APPROVED = "auto_approved"  # closed as approved without a human decision
OUTCOME_ADVANCED = "advanced"            # step approved, next approver assigned
OUTCOME_COMPLETED = "completed"          # last step approved
OUTCOME_REJECTED = "rejected"            # step rejected, submission closed


@dataclass(frozen=True)
class WorkflowOutcome:
    """Result of a workflow transition.

    ``approval`` is the approval left open by the transition (None once the
    response is terminal); ``decided`` is the approval a decide() call acted on.
    """

    kind: str
    response: FormResponse
    approval: Approval | None = None
    decided: Approval | None = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "outcome": self.kind,
            "message": self.message,
            "response": self.response.to_dict(),
            "approval": self.approval.to_dict() if self.approval else None,
            "decided": self.decided.to_dict() if self.decided else None,
        }


@dataclass
class _Outbox:
    """Notifications queued inside a transaction, delivered after commit."""

    items: list = field(default_factory=list)

    def add(self, user_id, title, related_id, description, type):
        if user_id:
            self.items.append((user_id, title, related_id, description, type))

    def flush(self):
        for user_id, title, related_id, description, type_ in self.items:
            NotificationService.notify(user_id, title, related_id, description, type=type_)
        self.items.clear()


# ── Private helpers ────────────────────────────────────────────────────────────


def _midflow_policy() -> UnresolvedPolicy:
    raw = current_app.config.get("MIDFLOW_UNRESOLVED_POLICY", UnresolvedPolicy.FAIL.value)
    try:
        return UnresolvedPolicy(raw)
    except ValueError:
        raise ConfigurationError(
            f"MIDFLOW_UNRESOLVED_POLICY must be one of "
            f"{[p.value for p in UnresolvedPolicy]}, got {raw!r}"
        ) from None


def _auto_approve(response: FormResponse, form: Form, outbox: _Outbox, reason: str) -> WorkflowOutcome:
    response.status = STATUS_APPROVED
    message = f"Your submission for '{form.title}' was approved automatically: {reason}."
    outbox.add(response.user_id, "Form Approved", form.id, message, "form")
    logger.warning(
        "Submission auto-approved: %s", reason,
        extra={"form_id": form.id, "response_id": response.id, "user_id": response.user_id},
    )
    return WorkflowOutcome(OUTCOME_AUTO_APPROVED, response, message=message)


def _open_approval(response: FormResponse, step, approver: User, form: Form, outbox: _Outbox) -> Approval:
    approval = Approval(
        response_id=response.id,
        step_number=step.step,
        role_required=step.role_required,
        approver_id=approver.id,
        status=STATUS_PENDING,
    )
    db.session.add(approval)
    db.session.flush()
    outbox.add(
        approver.id,
        "Action Required: New Approval Request",
        approval.id,
        f"A submission for '{form.title}' is awaiting your approval (step {step.step}).",
        "approval",
    )
    return approval


def verify_single_open_approval(response: FormResponse) -> None:
    """Raise WorkflowInvariantError unless a pending response has exactly one
    open approval and that approval carries its highest step number."""
    if response.status != STATUS_PENDING:
        return
    rows = db.session.execute(
        select(Approval.step_number, Approval.status).where(Approval.response_id == response.id)
    ).all()
    open_steps = [step for step, status in rows if status == STATUS_PENDING]
    if len(open_steps) != 1 or open_steps[0] != max(step for step, _ in rows):
        logger.critical(
            "Workflow invariant violated: pending response has open steps %s of %d",
            open_steps, len(rows),
            extra={"response_id": response.id, "form_id": response.form_id},
        )
        raise WorkflowInvariantError(
            f"Response {response.id} is pending with open steps {open_steps}"
        )


# ── Public API ─────────────────────────────────────────────────────────────────


def ingest(
    form: Form,
    user: User,
    answers: list[dict],
    *,
    on_unresolved: UnresolvedPolicy = UnresolvedPolicy.AUTO_APPROVE,
) -> WorkflowOutcome:
    """Create a workflow instance for a validated submission.

    Persists the FormResponse and its answers, then either opens the first
    Approval or closes the response as approved when there is no usable
    flow or no approver for step one (subject to *on_unresolved*).

    Args:
        form:          The (existing, non-deleted) form being submitted.
        user:          The submitting user; their department/college scope
                       every approver lookup for this response.
        answers:       Validated ``[{question_id, answer_text}]``.
        on_unresolved: Policy when step one has no approver.

    Raises:
        ConfigurationError: step one names a role missing from the directory.
        ApproverNotFoundError: no approver and on_unresolved is FAIL.
    """
    outbox = _Outbox()
    try:
        response = FormResponse(form_id=form.id, user_id=user.id, status=STATUS_PENDING)
        db.session.add(response)
        db.session.flush()

        for answer in answers:
            db.session.add(ResponseDetail(
                response_id=response.id,
                question_id=answer["question_id"],
                answer_text=answer.get("answer_text"),
            ))

        step = first_step(get_flow(form.id))
        if step is None:
            outcome = _auto_approve(response, form, outbox, "no approval flow is configured")
        else:
            approver = resolve_approver(step.role_required, user)
            if approver is None:
                if on_unresolved is UnresolvedPolicy.FAIL:
                    raise ApproverNotFoundError(step.role_required, step.step, response.id)
                outcome = _auto_approve(
                    response, form, outbox,
                    f"no approver was found for role '{step.role_required}'",
                )
            else:
                approval = _open_approval(response, step, approver, form, outbox)
                outbox.add(
                    user.id,
                    "Submission Received",
                    response.id,
                    f"Your submission for '{form.title}' was received and sent to "
                    f"{step.role_required} for approval.",
                    "submission",
                )
                outcome = WorkflowOutcome(
                    OUTCOME_ROUTED, response, approval=approval,
                    message="Form submitted and routed for approval.",
                )
                logger.info(
                    "Submission routed to step %d (%s)", step.step, step.role_required,
                    extra={
                        "form_id": form.id,
                        "response_id": response.id,
                        "approval_id": approval.id,
                        "user_id": user.id,
                    },
                )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    outbox.flush()
    verify_single_open_approval(response)
    return outcome


def decide(
    approval_id: int,
    acting_user: User,
    action: str,
    comment: str | None = None,
    *,
    on_unresolved: UnresolvedPolicy | None = None,
) -> WorkflowOutcome:
    """Apply an approver's decision and advance or close the workflow.

    Args:
        approval_id:   The open approval being decided.
        acting_user:   Must be the approval's assigned approver.
        action:        "approved" or "rejected".
        comment:       Optional note stored on the approval.
        on_unresolved: Policy when the next step has no approver; defaults
                       to MIDFLOW_UNRESOLVED_POLICY.

    Raises:
        ValidationError: action is not approved/rejected.
        NotFoundError: no such approval.
        AuthorizationError: not the assigned approver, or already decided.
        ApproverNotFoundError: next step unstaffed and policy is FAIL
            (nothing is persisted; the approval stays pending).
        ConfigurationError: next step names an unknown role.
    """
    if action not in DECISION_ACTIONS:
        raise ValidationError(
            "action must be 'approved' or 'rejected'",
            details={"action": f"got {action!r}"},
        )
    policy = on_unresolved or _midflow_policy()
    comment = (comment or "").strip() or None
    outbox = _Outbox()
    next_step = None

    try:
        claimed = db.session.execute(
            update(Approval)
            .where(
                Approval.id == approval_id,
                Approval.approver_id == acting_user.id,
                Approval.status == STATUS_PENDING,
            )
            .values(status=action, comment=comment, decided_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        ).rowcount

        if claimed != 1:
            db.session.rollback()
            existing = db.session.get(Approval, approval_id)
            if existing is None:
                raise NotFoundError(resource="Approval", resource_id=approval_id)
            if existing.approver_id != acting_user.id:
                raise AuthorizationError("You are not the assigned approver for this approval")
            raise AuthorizationError(f"This approval has already been {existing.status}")

        approval = db.session.get(Approval, approval_id, populate_existing=True)
        response = db.session.get(FormResponse, approval.response_id, populate_existing=True)
        form = db.session.get(Form, response.form_id)

        if response.status != STATUS_PENDING:
            logger.critical(
                "Open approval found on a %s response", response.status,
                extra={"response_id": response.id, "approval_id": approval.id},
            )
            raise WorkflowInvariantError(
                f"Approval {approval.id} is open but response {response.id} is {response.status}"
            )

        log_extra = {
            "form_id": form.id,
            "response_id": response.id,
            "approval_id": approval.id,
            "user_id": acting_user.id,
        }

        if action == STATUS_REJECTED:
            response.status = STATUS_REJECTED
            outbox.add(
                response.user_id,
                "Submission Rejected",
                response.id,
                f"Your submission for '{form.title}' was rejected at step "
                f"{approval.step_number} ({approval.role_required})."
                + (f" Comment: {comment}" if comment else ""),
                "submission",
            )
            outcome = WorkflowOutcome(
                OUTCOME_REJECTED, response, decided=approval,
                message="Submission rejected.",
            )
            logger.info("Step %d rejected", approval.step_number, extra=log_extra)

        else:
            next_step = step_after(get_flow(response.form_id), approval.step_number)
            if next_step is None:
                response.status = STATUS_APPROVED
                outbox.add(
                    response.user_id,
                    "Submission Approved",
                    response.id,
                    f"Your submission for '{form.title}' has received final approval.",
                    "submission",
                )
                outcome = WorkflowOutcome(
                    OUTCOME_COMPLETED, response, decided=approval,
                    message="Final approval recorded.",
                )
                logger.info("Final step %d approved", approval.step_number, extra=log_extra)
            else:
                initiator = db.session.get(User, response.user_id)
                approver = resolve_approver(next_step.role_required, initiator)
                if approver is None:
                    if policy is UnresolvedPolicy.FAIL:
                        logger.error(
                            "Cannot advance: no approver for step %d (%s)",
                            next_step.step, next_step.role_required, extra=log_extra,
                        )
                        raise ApproverNotFoundError(
                            next_step.role_required, next_step.step, response.id,
                        )
                    auto = _auto_approve(
                        response, form, outbox,
                        f"no approver was found for role '{next_step.role_required}'",
                    )
                    outcome = WorkflowOutcome(
                        OUTCOME_AUTO_APPROVED, response, decided=approval, message=auto.message,
                    )
                else:
                    new_approval = _open_approval(response, next_step, approver, form, outbox)
                    outbox.add(
                        response.user_id,
                        "Submission Progress",
                        response.id,
                        f"Step {approval.step_number} of your submission for '{form.title}' "
                        f"was approved; it is now with {next_step.role_required}.",
                        "submission",
                    )
                    outcome = WorkflowOutcome(
                        OUTCOME_ADVANCED, response, approval=new_approval, decided=approval,
                        message="Approval recorded; routed to next step.",
                    )
                    logger.info(
                        "Step %d approved; advanced to step %d (%s)",
                        approval.step_number, next_step.step, next_step.role_required,
                        extra=log_extra,
                    )

        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        collided = str(next_step.step) if next_step is not None else None
        raise ConflictError("Approval", "step_number", collided) from None
    except Exception:
        db.session.rollback()
        raise

    outbox.flush()
    verify_single_open_approval(response)
    return outcome


# ── Queries ─────────────────────────────────────────────────────────────────


def list_pending_for_user(user: User) -> list[dict]:
    """Open approvals assigned to *user*, oldest first, with submission context."""
    approvals = db.session.execute(
        select(Approval)
        .where(Approval.approver_id == user.id, Approval.status == STATUS_PENDING)
        .order_by(Approval.created_at, Approval.id)
    ).scalars().all()

    items = []
    for approval in approvals:
        d = approval.to_dict()
        response = approval.response
        d["response"] = response.to_dict()
        d["initiator"] = response.user.to_dict() if response.user else None
        items.append(d)
    return items


def list_submissions_for_user(user: User) -> list[dict]:
    responses = db.session.execute(
        select(FormResponse)
        .where(FormResponse.user_id == user.id)
        .order_by(FormResponse.created_at.desc(), FormResponse.id.desc())
    ).scalars().all()
    return [r.to_dict() for r in responses]


def get_progress(response_id: int, viewer: User) -> dict:
    """Approval history and answers for a submission.

    Visible to the submitter, any approver assigned on it, and admins.
    """
    response = db.session.get(FormResponse, response_id)
    if response is None:
        raise NotFoundError(resource="FormResponse", resource_id=response_id)

    approvals = response.approvals.order_by(Approval.step_number).all()
    involved = {a.approver_id for a in approvals}
    if viewer.id != response.user_id and viewer.id not in involved and not is_admin(viewer):
        raise AuthorizationError("You are not allowed to view this submission")

    current = next((a for a in approvals if a.status == STATUS_PENDING), None)
    return {
        "response": response.to_dict(),
        "current_step": current.step_number if current else None,
        "approvals": [a.to_dict() for a in approvals],
        "answers": [d.to_dict() for d in response.details.all()],
    }
