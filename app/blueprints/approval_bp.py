"""
Approval Workflow Blueprint.

Routes:
  POST   /approval/<approval_id>/action   – approve / reject an assigned step
  GET    /approval/pending                – my pending approvals
  GET    /approval/flow/<form_id>         – a form's approval flow    (admin)
  POST   /approval/flow                   – attach a flow to a form   (admin)
  PUT    /approval/flow                   – replace a form's flow     (admin)
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.blueprints import register_error_handlers
from app.middleware.permission_required import require_admin, require_auth
from app.services import approval_flow_store, workflow_service
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

approval_bp = Blueprint("approval_bp", __name__, url_prefix="/api/v1")
register_error_handlers(approval_bp)


# ═════════════════════════════════════════════════════════════════════════════
# DECISIONS
# ═════════════════════════════════════════════════════════════════════════════

@approval_bp.route("/approval/<int:approval_id>/action", methods=["POST"])
@require_auth
def take_action(approval_id):
    """Approve or reject an approval step.

    Body: { action: "approved" | "rejected", comment?: str }
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required")

    outcome = workflow_service.decide(
        approval_id, g.current_user, action, data.get("comment"),
    )
    return jsonify(outcome.to_dict())


@approval_bp.route("/approval/pending", methods=["GET"])
@require_auth
def pending_approvals():
    items = workflow_service.list_pending_for_user(g.current_user)
    return jsonify({"items": items, "total": len(items)})


# ═════════════════════════════════════════════════════════════════════════════
# FLOW CONFIGURATION
# ═════════════════════════════════════════════════════════════════════════════

@approval_bp.route("/approval/flow/<int:form_id>", methods=["GET"])
@require_admin
def get_flow(form_id):
    flow = approval_flow_store.get_flow_record(form_id)
    return jsonify(flow.to_dict())


def _flow_payload():
    data = request.get_json(silent=True) or {}
    form_id = data.get("form_id")
    if isinstance(form_id, bool) or not isinstance(form_id, int):
        return None, None, api_error(E.VALIDATION_REQUIRED, "form_id (integer) is required")
    if "flow_definition" not in data:
        return None, None, api_error(E.VALIDATION_REQUIRED, "flow_definition is required")
    return form_id, data["flow_definition"], None


@approval_bp.route("/approval/flow", methods=["POST"])
@require_admin
def create_flow():
    """Body: { form_id, flow_definition: [{step, role_required}] }"""
    form_id, definition, err = _flow_payload()
    if err:
        return err
    flow = approval_flow_store.create_flow(form_id, definition)
    logger.info("Flow created by user %s", g.current_user.id, extra={"form_id": form_id})
    return jsonify(flow.to_dict()), 201


@approval_bp.route("/approval/flow", methods=["PUT"])
@require_admin
def update_flow():
    form_id, definition, err = _flow_payload()
    if err:
        return err
    flow = approval_flow_store.update_flow(form_id, definition)
    logger.info("Flow updated by user %s", g.current_user.id, extra={"form_id": form_id})
    return jsonify(flow.to_dict())
