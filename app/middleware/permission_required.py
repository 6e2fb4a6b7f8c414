"""
Permission Decorators — route protection on top of the JWT middleware.

Usage:
    @bp.route("/approval/pending", methods=["GET"])
    @require_auth
    def pending():
        user = g.current_user
        ...

    @bp.route("/approval/flow", methods=["POST"])
    @require_roles("admin")
    def create_flow():
        ...

``require_roles`` compares case-insensitively.  The configured
ADMIN_ROLE_NAME always passes.
"""

import functools
import logging

from flask import g

from app.services.role_directory import is_admin, normalize_role_name
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def require_auth(f):
    """Decorator: 401 unless the request carries a valid token for an existing user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_roles(*role_names: str):
    """
    Decorator: require the authenticated user to hold one of *role_names*.

    Args:
        role_names: Role names, e.g. "admin", "hod"
    """
    allowed = {normalize_role_name(r) for r in role_names}

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")

            if not is_admin(user) and normalize_role_name(user.role_name) not in allowed:
                logger.warning(
                    "User %d denied: role %r not in %s on %s",
                    user.id, user.role_name, sorted(allowed), f.__name__,
                    extra={"user_id": user.id},
                )
                return api_error(
                    E.FORBIDDEN,
                    "Permission denied",
                    details={"required_any": sorted(allowed)},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator


# Admin-only: no role besides ADMIN_ROLE_NAME is allowed.
require_admin = require_roles()
