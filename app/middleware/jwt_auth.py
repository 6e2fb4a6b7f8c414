"""
JWT Auth Middleware — parses the Bearer token and loads the acting user.

Sets on ``flask.g`` for every /api/v1 request:
    g.jwt_user_id   — ``sub`` claim as int, or None
    g.current_user  — the loaded User, or None

Missing or invalid tokens do not block here; endpoints opt in with the
``require_auth`` decorator (app/middleware/permission_required.py), which
returns 401 when ``g.current_user`` is None.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.models import db
from app.models.auth import User
from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.current_user = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
            user_id = int(payload.get("sub"))
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token", extra={"path": path})
            return
        except (pyjwt.InvalidTokenError, TypeError, ValueError):
            logger.info("Invalid access token", extra={"path": path})
            return

        g.jwt_user_id = user_id
        g.current_user = db.session.get(User, user_id)
