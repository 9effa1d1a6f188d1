"""
Organization Store — persistence and permission queries for organizations.

Rules:
  - The SQLAlchemy session is injected; the store keeps no other state.
  - Every SQLAlchemyError is rolled back and re-raised as PersistenceError.
  - Missing organizations raise NotFoundError, never return None.
  - Every mutation refreshes ``updated_at`` and commits once.

Usage:
    from togglelabs.models import db
    from togglelabs.services.organization_store import OrganizationStore

    store = OrganizationStore(db.session)
    org_id = store.create(new_organization_record("Acme", user.id))
    store.has_read_permission(user.id, org_id)
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import Text, cast, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from togglelabs.core.exceptions import (
    ConflictError,
    IdentityAssertionError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from togglelabs.models.base import is_object_id, new_object_id, utcnow
from togglelabs.models.organization import (
    ADMIN,
    INVITE_PENDING,
    INVITE_STATUSES,
    PERMISSION_HIERARCHY,
    PERMISSION_LEVELS,
    Organization,
)

logger = logging.getLogger(__name__)


class OrganizationStore:
    """CRUD and membership checks over the ``organization`` collection."""

    def __init__(self, session: Session):
        self.session = session

    # ── Internal helpers ─────────────────────────────────────────────────

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("organization.%s failed: %s", operation, exc)
            raise PersistenceError(f"organization.{operation}", exc) from exc

    def _load(self, organization_id: str, for_update: bool = False) -> Organization:
        try:
            record = self.session.get(Organization, organization_id, with_for_update=for_update)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("organization.find_by_id %s failed: %s", organization_id, exc)
            raise PersistenceError("organization.find_by_id", exc) from exc
        if record is None:
            raise NotFoundError("Organization", organization_id)
        return record

    @staticmethod
    def _touch(record: Organization, *fields: str) -> None:
        for field in fields:
            flag_modified(record, field)
        record.updated_at = utcnow()

    # ── Create / read ────────────────────────────────────────────────────

    def create(self, record: Organization) -> str:
        """Persist a new organization under a fresh id and return the id."""
        record.id = new_object_id()
        self.session.add(record)
        self._commit("create")

        if not is_object_id(record.id):
            raise IdentityAssertionError("Organization", record.id)
        logger.info("Created organization %s (%s)", record.id, record.name)
        return record.id

    def find_by_id(self, organization_id: str) -> Organization:
        return self._load(organization_id)

    def find_for_user(self, user_id: str) -> list[Organization]:
        """Return every organization that lists ``user_id`` as a member.

        The SQL text match on the serialised ``members`` column narrows the
        scan; the exact membership check runs on the loaded rows.
        """
        try:
            rows = self.session.scalars(
                select(Organization)
                .where(cast(Organization.members, Text).contains(user_id, autoescape=True))
                .order_by(Organization.created_at, Organization.id)
            ).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError("organization.find_for_user", exc) from exc
        return [org for org in rows if org.member(user_id) is not None]

    # ── Permission queries ───────────────────────────────────────────────

    def has_read_permission(self, user_id: str, organization_id: str) -> None:
        """Succeed silently if ``user_id`` is a member, else PermissionDeniedError."""
        organization = self._load(organization_id)

        is_member = False
        for member in organization.members:
            if member["user_id"] == user_id:
                is_member = True
                break

        if not is_member:
            raise PermissionDeniedError(user_id, organization_id)

    def has_permission_level(self, user_id: str, organization_id: str, minimum: str) -> str:
        """Return the member's level if it satisfies ``minimum``.

        ADMIN satisfies every level, COLLABORATOR satisfies COLLABORATOR
        and READ_ONLY, READ_ONLY satisfies only itself.
        """
        if minimum not in PERMISSION_LEVELS:
            raise ValidationError(f"Unknown permission level {minimum!r}")
        organization = self._load(organization_id)
        member = organization.member(user_id)
        granted = PERMISSION_HIERARCHY.get(member["permission_level"], set()) if member else set()
        if minimum not in granted:
            raise PermissionDeniedError(user_id, organization_id, required=minimum)
        return member["permission_level"]

    # ── Membership mutations ─────────────────────────────────────────────

    @staticmethod
    def _check_level(level: str) -> None:
        if level not in PERMISSION_LEVELS:
            raise ValidationError(
                f"permission_level must be one of: {', '.join(PERMISSION_LEVELS)}",
                details={"permission_level": level},
            )

    @staticmethod
    def _ensure_admin_left(organization_id: str, members: list[dict]) -> None:
        if not any(m["permission_level"] == ADMIN for m in members):
            raise ValidationError(
                "An organization must keep at least one ADMIN",
                details={"organization_id": organization_id},
            )

    def add_member(self, organization_id: str, user_id: str, permission_level: str) -> Organization:
        self._check_level(permission_level)
        organization = self._load(organization_id, for_update=True)
        if organization.member(user_id) is not None:
            raise ConflictError("Member", "user_id", user_id)

        organization.members = [
            *organization.members,
            {"user_id": user_id, "permission_level": permission_level},
        ]
        self._touch(organization, "members")
        self._commit("add_member")
        logger.info("Organization %s: added member %s as %s", organization_id, user_id, permission_level)
        return organization

    def set_member_permission(
        self, organization_id: str, user_id: str, permission_level: str,
    ) -> Organization:
        self._check_level(permission_level)
        organization = self._load(organization_id, for_update=True)
        if organization.member(user_id) is None:
            raise NotFoundError("Member", user_id)

        members = [
            {**m, "permission_level": permission_level} if m["user_id"] == user_id else dict(m)
            for m in organization.members
        ]
        self._ensure_admin_left(organization_id, members)
        organization.members = members
        self._touch(organization, "members")
        self._commit("set_member_permission")
        return organization

    def remove_member(self, organization_id: str, user_id: str) -> Organization:
        organization = self._load(organization_id, for_update=True)
        if organization.member(user_id) is None:
            raise NotFoundError("Member", user_id)

        members = [dict(m) for m in organization.members if m["user_id"] != user_id]
        self._ensure_admin_left(organization_id, members)
        organization.members = members
        self._touch(organization, "members")
        self._commit("remove_member")
        logger.info("Organization %s: removed member %s", organization_id, user_id)
        return organization

    # ── Invites ──────────────────────────────────────────────────────────

    def add_invite(self, organization_id: str, email: str) -> Organization:
        """Record a PENDING invite. Acceptance is handled outside this store."""
        try:
            email = validate_email(email or "", check_deliverability=False).normalized.lower()
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})

        organization = self._load(organization_id, for_update=True)
        for invite in organization.invites:
            if invite["email"] == email and invite["status"] == INVITE_PENDING:
                raise ConflictError("Invite", "email", email)

        organization.invites = [*organization.invites, {"email": email, "status": INVITE_PENDING}]
        self._touch(organization, "invites")
        self._commit("add_invite")
        return organization

    def set_invite_status(self, organization_id: str, email: str, status: str) -> Organization:
        """Update the most recent invite for ``email``."""
        if status not in INVITE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(INVITE_STATUSES)}",
                details={"status": status},
            )
        email = (email or "").strip().lower()
        organization = self._load(organization_id, for_update=True)

        invites = [dict(i) for i in organization.invites]
        for invite in reversed(invites):
            if invite["email"] == email:
                invite["status"] = status
                break
        else:
            raise NotFoundError("Invite", email)

        organization.invites = invites
        self._touch(organization, "invites")
        self._commit("set_invite_status")
        return organization
