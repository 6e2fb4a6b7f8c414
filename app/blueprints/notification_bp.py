"""
Forms & Approvals Backend
Notification Blueprint.

Routes:
  GET    /notifications              – my notifications (unread by default; ?all=true for all)
  PUT    /notifications/<nid>        – mark one as read
  PUT    /notifications              – mark all as read
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from app.blueprints import pagination_args, register_error_handlers
from app.middleware.permission_required import require_auth
from app.services.notification import NotificationService
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")
register_error_handlers(notification_bp)


@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    user_id = g.current_user.id
    unread_only = request.args.get("all", "false").lower() != "true"
    limit, offset = pagination_args()
    items, total = NotificationService.list_for_user(
        user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(user_id),
    })


@notification_bp.route("/notifications/<int:nid>", methods=["PUT"])
@require_auth
def mark_notification_read(nid):
    notif = NotificationService.mark_read(nid, g.current_user.id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications", methods=["PUT"])
@require_auth
def mark_all_notifications_read():
    count = NotificationService.mark_all_read(g.current_user.id)
    logger.debug("Marked %d notifications read", count, extra={"user_id": g.current_user.id})
    return jsonify({"marked_read": count})
