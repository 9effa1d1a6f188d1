"""Standardised API error responses.

Usage
-----
    from togglelabs.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Feature flag not found")
    return api_error(E.VALIDATION_REQUIRED, "name is required")
"""

from __future__ import annotations

from flask import Flask, jsonify

from togglelabs.core.exceptions import (
    AuthenticationError,
    ConflictError,
    IdentityAssertionError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field-level validation errors, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app: Flask) -> None:
    """Map the platform exception hierarchy onto HTTP responses."""

    @app.errorhandler(NotFoundError)
    def _not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(PermissionDeniedError)
    def _forbidden(error: PermissionDeniedError):
        details = {"required": error.required} if error.required else None
        return api_error(E.FORBIDDEN, "Permission denied", details=details)

    @app.errorhandler(ValidationError)
    def _invalid(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @app.errorhandler(AuthenticationError)
    def _unauthorized(error: AuthenticationError):
        return api_error(E.UNAUTHORIZED, str(error) or "Invalid credentials")

    @app.errorhandler(PersistenceError)
    def _persistence(error: PersistenceError):
        app.logger.error("Persistence failure in %s: %r", error.operation, error.cause)
        return api_error(E.DATABASE, "Internal server error")

    @app.errorhandler(IdentityAssertionError)
    def _identity(error: IdentityAssertionError):
        app.logger.critical("Storage identifier contract violated: %s", error)
        return api_error(E.INTERNAL, "Internal server error")
