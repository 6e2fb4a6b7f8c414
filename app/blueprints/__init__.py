"""
Forms & Approvals Backend
Blueprint registry and shared blueprint helpers.
"""

import logging

from flask import request
from sqlalchemy.exc import SQLAlchemyError

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
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def pagination_args(default_limit=50, max_limit=200):
    """Read limit/offset from the query string.

    Returns:
        (limit, offset)
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def register_error_handlers(bp):
    """Map the service exception hierarchy to JSON error responses on *bp*."""

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(AuthorizationError)
    def _handle_forbidden(error: AuthorizationError):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_STATE, str(error))

    @bp.errorhandler(ConfigurationError)
    def _handle_configuration(error: ConfigurationError):
        logger.error("Routing configuration error on %s: %s", request.endpoint, error)
        return api_error(E.CONFIGURATION, str(error))

    @bp.errorhandler(ApproverNotFoundError)
    def _handle_routing(error: ApproverNotFoundError):
        return api_error(
            E.ROUTING,
            str(error),
            details={"role_required": error.role_required, "step": error.step_number},
        )

    @bp.errorhandler(WorkflowInvariantError)
    def _handle_invariant(error: WorkflowInvariantError):
        return api_error(E.INTERNAL, "Workflow state is inconsistent; an administrator has been alerted")

    @bp.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error in %s", request.endpoint)
        return api_error(E.DATABASE, "Database error")

    return bp
