"""
Platform-wide exception hierarchy.

Stores and services raise these types; the app factory registers one
handler per type so every blueprint gets the same HTTP status mapping.

Usage:
    from togglelabs.core.exceptions import NotFoundError, PermissionDeniedError

    raise NotFoundError(resource="Organization", resource_id=org_id)
    raise PermissionDeniedError(user_id=user_id, organization_id=org_id)
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.

    Safe to surface to clients as a 404.

    Args:
        resource: Human-readable entity name (e.g. "Organization", "FeatureFlag").
        resource_id: The id that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class PermissionDeniedError(Exception):
    """Raised when an authenticated user is not allowed to act on an organization.

    Maps to HTTP 403.
    """

    def __init__(
        self,
        user_id: str | None,
        organization_id: str | None,
        required: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.organization_id = organization_id
        self.required = required
        msg = f"User {user_id} has no access to organization {organization_id}"
        if required:
            msg += f" (requires {required})"
        super().__init__(msg)


class PersistenceError(Exception):
    """Raised for any storage-layer failure other than "not found".

    The underlying driver exception is kept on ``cause`` for logging;
    HTTP callers only ever see an opaque 500.
    """

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage failure during {operation}")


class IdentityAssertionError(Exception):
    """Raised when the storage layer hands back an identifier of unexpected shape.

    This is a contract violation with the driver. Never retried.
    """

    def __init__(self, resource: str, value: object) -> None:
        self.resource = resource
        self.value = value
        super().__init__(f"Unable to assert identifier type for {resource}: {value!r}")


class ValidationError(Exception):
    """Raised when input is well-formed JSON but violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised when submitted credentials do not match. Maps to HTTP 401."""
