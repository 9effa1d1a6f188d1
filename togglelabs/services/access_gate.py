"""
Access-Control Gate — may this identity touch this organization's flags?

Reads need plain membership. Writes need COLLABORATOR or ADMIN, and
membership/invite administration needs ADMIN. No caching: every call
goes back to the Organization Store.

Usage:
    from togglelabs.services.access_gate import require_read, require_write

    require_read(org_store, g.user_id, organization_id)   # raises PermissionDeniedError
"""

from togglelabs.core.exceptions import PermissionDeniedError
from togglelabs.models.organization import ADMIN, COLLABORATOR
from togglelabs.services.organization_store import OrganizationStore


def can_read_flags(store: OrganizationStore, user_id: str | None, organization_id: str) -> bool:
    """True if ``user_id`` is a member of the organization.

    NotFoundError and PersistenceError from the store propagate.
    """
    if user_id is None:
        return False
    try:
        store.has_read_permission(user_id, organization_id)
    except PermissionDeniedError:
        return False
    return True


def require_read(store: OrganizationStore, user_id: str | None, organization_id: str) -> None:
    if user_id is None:
        raise PermissionDeniedError(user_id, organization_id)
    store.has_read_permission(user_id, organization_id)


def require_write(store: OrganizationStore, user_id: str | None, organization_id: str) -> str:
    if user_id is None:
        raise PermissionDeniedError(user_id, organization_id, required=COLLABORATOR)
    return store.has_permission_level(user_id, organization_id, COLLABORATOR)


def require_admin(store: OrganizationStore, user_id: str | None, organization_id: str) -> str:
    if user_id is None:
        raise PermissionDeniedError(user_id, organization_id, required=ADMIN)
    return store.has_permission_level(user_id, organization_id, ADMIN)
