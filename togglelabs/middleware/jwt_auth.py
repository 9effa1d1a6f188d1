"""
JWT Auth Middleware — parses the Bearer token and sets ``g.user_id``.

The middleware never rejects a request by itself: an absent, expired or
invalid token just leaves ``g.user_id`` as None. Routes that need an
identity are wrapped with ``login_required``.
"""

import functools
import logging

import jwt as pyjwt
from flask import g, request

from togglelabs.services.jwt_service import decode_access_token
from togglelabs.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/signin",
    "/api/v1/auth/signup",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.user_id = None

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
            g.user_id = payload.get("sub")
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s", path)
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Invalid token on %s: %s", path, exc)


def login_required(f):
    """Decorator: 401 unless the JWT middleware resolved an identity."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "user_id", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)

    return decorated
