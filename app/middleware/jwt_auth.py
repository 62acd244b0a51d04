"""
JWT Auth Middleware — parses the bearer token and sets ``g.jwt_user_id``.

The hook never rejects a request itself; endpoints decide through
``@login_required`` / ``@require_project_owner`` (app.middleware.ownership).
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
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

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
            g.jwt_user_id = int(payload["sub"])
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
        except (pyjwt.InvalidTokenError, KeyError, ValueError):
            logger.info("Invalid access token on %s", path)
