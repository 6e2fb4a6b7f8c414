"""
Submission Ingestion — validate a user's answers to a form and hand them to
the workflow engine.

Checks, in order:
    1. the form exists and is not soft-deleted        → NotFoundError
    2. the user holds the form's initiator role       → AuthorizationError
       (no initiator = any authenticated user; admins may always submit)
    3. answers is a non-empty list of
       {question_id: int, answer_text: str | None}
       whose questions all belong to this form         → ValidationError
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models import db
from app.models.auth import User
from app.models.form import Form, Question
from app.services import workflow_service
from app.services.role_directory import is_admin, normalize_role_name

logger = logging.getLogger(__name__)


def _validate_answers(form: Form, answers) -> list[dict]:
    if not isinstance(answers, list) or not answers:
        raise ValidationError(
            "answers must be a non-empty list",
            details={"answers": "required"},
        )

    errors: dict[str, str] = {}
    cleaned: list[dict] = []
    for i, item in enumerate(answers):
        key = f"answers[{i}]"
        if not isinstance(item, dict):
            errors[key] = "each answer must be an object"
            continue
        qid = item.get("question_id")
        if isinstance(qid, bool) or not isinstance(qid, int):
            errors[key] = "question_id must be an integer"
            continue
        text = item.get("answer_text")
        if text is not None and not isinstance(text, str):
            text = str(text)
        cleaned.append({"question_id": qid, "answer_text": text})

    if errors:
        raise ValidationError("Invalid answers", details=errors)

    wanted = {a["question_id"] for a in cleaned}
    known = set(
        db.session.execute(
            select(Question.id).where(
                Question.form_id == form.id,
                Question.id.in_(wanted),
                Question.deleted_flag.is_(False),
            )
        ).scalars()
    )
    unknown = sorted(wanted - known)
    if unknown:
        raise ValidationError(
            "answers reference questions that are not on this form",
            details={"question_id": unknown},
        )
    return cleaned


def submit_form(form_id: int, user: User, answers) -> workflow_service.WorkflowOutcome:
    """Validate and ingest a submission.  Returns the workflow outcome."""
    form = db.session.get(Form, form_id)
    if form is None or form.is_deleted:
        raise NotFoundError(resource="Form", resource_id=form_id)

    if form.initiator and not is_admin(user):
        if normalize_role_name(user.role_name) != normalize_role_name(form.initiator):
            logger.info(
                "Submission refused: role %r is not the initiator %r",
                user.role_name, form.initiator,
                extra={"form_id": form.id, "user_id": user.id},
            )
            raise AuthorizationError(
                f"Only users with role '{form.initiator}' can submit this form"
            )

    cleaned = _validate_answers(form, answers)
    return workflow_service.ingest(form, user, cleaned)
