"""
Form Submission Blueprint.

Routes:
  POST   /forms/<form_id>/submit          – submit answers into the form's approval flow
  GET    /forms/<response_id>/progress    – approval history + answers of a submission
  GET    /responses/mine                  – the caller's submissions
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from app import limiter
from app.blueprints import register_error_handlers
from app.middleware.permission_required import require_auth
from app.services import submission_service, workflow_service

logger = logging.getLogger(__name__)

form_bp = Blueprint("form_bp", __name__, url_prefix="/api/v1")
register_error_handlers(form_bp)


def _submit_limit():
    return current_app.config.get("SUBMIT_RATE_LIMIT", "30/minute")


@form_bp.route("/forms/<int:form_id>/submit", methods=["POST"])
@limiter.limit(_submit_limit)
@require_auth
def submit_form(form_id):
    """Submit a form.

    Body: { answers: [{question_id, answer_text}] }

    201 with the created response and, when routed, its first approval.
    """
    data = request.get_json(silent=True) or {}
    outcome = submission_service.submit_form(form_id, g.current_user, data.get("answers"))
    return jsonify(outcome.to_dict()), 201


@form_bp.route("/forms/<int:response_id>/progress", methods=["GET"])
@require_auth
def submission_progress(response_id):
    return jsonify(workflow_service.get_progress(response_id, g.current_user))


@form_bp.route("/responses/mine", methods=["GET"])
@require_auth
def my_submissions():
    items = workflow_service.list_submissions_for_user(g.current_user)
    return jsonify({"items": items, "total": len(items)})
