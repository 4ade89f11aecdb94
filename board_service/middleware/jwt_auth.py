"""
JWT Auth Middleware — parses the bearer token on every API request, sets g.jwt_*.

  Authorization: Bearer <token>   →  g.jwt_user_id

Requests under /api/v1/ without a valid access token are rejected with 401
before any view runs, except the paths in JWT_SKIP_PREFIXES. Loading the
user and its roles happens later, in the blueprint hook (current_actor).
"""

import logging

import jwt as pyjwt
from flask import g, request

from board_service.services.jwt_service import decode_access_token
from board_service.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None

        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return api_error(E.UNAUTHENTICATED, "Bearer token required")

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHENTICATED, "Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token on %s: %s", path, exc)
            return api_error(E.UNAUTHENTICATED, "Invalid token")

        try:
            g.jwt_user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return api_error(E.UNAUTHENTICATED, "Invalid token subject")
        return None
