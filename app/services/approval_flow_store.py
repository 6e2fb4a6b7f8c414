"""
Approval Flow Store — per-form routing policy.

A flow is an ordered list of ``{"step": int, "role_required": str}``.

Reads are forgiving: a flow stored as a JSON string is decoded, and anything
that does not decode to a list is treated as "no flow" so the submission is
auto-approved rather than blocked.  Writes are strict: definitions are
validated against the role directory and normalised (sorted by step) before
they are persisted, so configuration mistakes surface to the administrator
instead of to the next student who submits.

Step lookup is by number, not position: the step after N is the element whose
``step`` equals N + 1.  A gap in the numbering therefore ends the flow.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.approval import ApprovalFlow
from app.models.form import Form
from app.services.role_directory import RoleDirectory, get_role_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowStep:
    step: int
    role_required: str


def _as_step(item) -> FlowStep | None:
    """Convert a raw flow element to a FlowStep, or None if structurally invalid."""
    if not isinstance(item, dict):
        return None
    step = item.get("step")
    role = item.get("role_required")
    if isinstance(step, bool) or not isinstance(step, int) or step < 1:
        return None
    if not isinstance(role, str) or not role.strip():
        return None
    return FlowStep(step=step, role_required=role.strip())


# ── Read side ───────────────────────────────────────────────────────────────


def parse_flow_definition(raw) -> list:
    """Decode a stored flow_definition into a list (possibly empty).

    Accepts a native list or a JSON-encoded string.  Malformed JSON, None and
    non-list payloads all yield ``[]``.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Malformed flow_definition JSON treated as empty flow")
            return []
    if not isinstance(raw, list):
        return []
    return raw


def get_flow(form_id: int) -> list:
    """Return the parsed flow for a form, ``[]`` when none is configured."""
    flow = db.session.execute(
        select(ApprovalFlow).filter_by(form_id=form_id)
    ).scalar_one_or_none()
    if flow is None:
        return []
    return parse_flow_definition(flow.flow_definition)


def _step_number(item) -> int | None:
    if not isinstance(item, dict):
        return None
    step = item.get("step")
    if isinstance(step, bool) or not isinstance(step, int):
        return None
    return step


def first_step(flow: list) -> FlowStep | None:
    """The lowest-numbered step, or None if the flow is empty or that step is malformed.

    Legacy rows may be stored out of order, so position is not trusted.  An
    element with no usable step number at the head of the flow counts as a
    malformed first step.
    """
    if not flow:
        return None
    if _step_number(flow[0]) is None:
        return None
    numbered = [item for item in flow if _step_number(item) is not None]
    return _as_step(min(numbered, key=_step_number))


def step_after(flow: list, current_step_number: int) -> FlowStep | None:
    """Linear scan for the step numbered ``current_step_number + 1``."""
    wanted = current_step_number + 1
    for item in flow:
        if isinstance(item, dict) and item.get("step") == wanted:
            return _as_step(item)
    return None


# ── Write side ──────────────────────────────────────────────────────────────


def normalize_flow_definition(raw, directory: RoleDirectory | None = None) -> list[dict]:
    """Validate a flow definition for persistence and return it sorted by step.

    Raises:
        ValidationError: with a ``details`` map keyed by ``steps[i]`` for
            each offending element.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("flow_definition is not valid JSON") from None
    if not isinstance(raw, list) or not raw:
        raise ValidationError("A valid flow_definition array is required")

    if directory is None:
        directory = get_role_directory()
    errors: dict[str, str] = {}
    steps: list[FlowStep] = []
    seen: set[int] = set()

    for i, item in enumerate(raw):
        key = f"steps[{i}]"
        step = _as_step(item)
        if step is None:
            errors[key] = "each step needs a positive integer 'step' and a non-empty 'role_required'"
            continue
        if step.step in seen:
            errors[key] = f"duplicate step number {step.step}"
            continue
        if step.role_required not in directory:
            errors[key] = f"unknown role {step.role_required!r}"
            continue
        seen.add(step.step)
        steps.append(step)

    if errors:
        raise ValidationError("Invalid flow_definition", details=errors)

    steps.sort(key=lambda s: s.step)
    expected = steps[0].step
    for s in steps:
        if s.step != expected:
            logger.warning(
                "Flow has a gap before step %d; steps from %d on are unreachable",
                expected, s.step,
            )
            break
        expected += 1

    return [{"step": s.step, "role_required": s.role_required} for s in steps]


def _require_form(form_id) -> Form:
    form = db.session.get(Form, form_id) if form_id is not None else None
    if form is None or form.is_deleted:
        raise NotFoundError(resource="Form", resource_id=form_id)
    return form


def get_flow_record(form_id: int) -> ApprovalFlow:
    flow = db.session.execute(
        select(ApprovalFlow).filter_by(form_id=form_id)
    ).scalar_one_or_none()
    if flow is None:
        raise NotFoundError(resource="ApprovalFlow", resource_id=form_id)
    return flow


def create_flow(form_id: int, raw_definition) -> ApprovalFlow:
    """Attach a new flow to a form.  One flow per form."""
    form = _require_form(form_id)
    definition = normalize_flow_definition(raw_definition)

    existing = db.session.execute(
        select(ApprovalFlow.id).filter_by(form_id=form.id)
    ).first()
    if existing is not None:
        raise ConflictError("ApprovalFlow", "form_id", str(form.id))

    flow = ApprovalFlow(form_id=form.id, flow_definition=definition)
    db.session.add(flow)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("ApprovalFlow", "form_id", str(form.id)) from None

    logger.info(
        "Approval flow created",
        extra={"form_id": form.id, "steps": len(definition)},
    )
    return flow


def update_flow(form_id: int, raw_definition) -> ApprovalFlow:
    """Replace a form's flow definition.

    In-flight submissions keep their existing approvals; their next step is
    looked up in the new definition when the current one is decided.
    """
    _require_form(form_id)
    flow = get_flow_record(form_id)
    flow.flow_definition = normalize_flow_definition(raw_definition)
    db.session.commit()

    logger.info(
        "Approval flow updated",
        extra={"form_id": form_id, "steps": len(flow.flow_definition)},
    )
    return flow
