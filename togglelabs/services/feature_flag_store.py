"""
Feature Flag Store — flags and their revision history.

Rules:
  - The SQLAlchemy session is injected; the store keeps no other state.
  - Revisions are append-only. Their status moves draft -> live -> archived,
    and at most one revision per flag is live. Promoting a revision archives
    the previous live one in the same commit.
  - Only the fields in ``FLAG_PATCHABLE`` / ``REVISION_PATCHABLE`` can be
    changed through ``patch_fields``.
  - Every SQLAlchemyError is rolled back and re-raised as PersistenceError.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from togglelabs.core.exceptions import (
    ConflictError,
    IdentityAssertionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from togglelabs.models.base import is_object_id, new_object_id, utcnow
from togglelabs.models.feature_flag import (
    ARCHIVED,
    DRAFT,
    LIVE,
    REVISION_STATUSES,
    FeatureFlag,
    Revision,
    validate_rules,
    validate_value,
)

logger = logging.getLogger(__name__)

FLAG_PATCHABLE = frozenset({"name", "version"})
REVISION_PATCHABLE = frozenset({"default_value", "rules", "status"})


def live_revision(flag: FeatureFlag) -> Revision | None:
    """Return the flag's live revision, or None when nothing is live."""
    for rev in flag.revisions or []:
        if rev["status"] == LIVE:
            return rev
    return None


def _transition(revisions: list[dict], revision_id: str, status: str) -> None:
    """Move one revision to ``status`` in place, keeping a single live revision."""
    target = next((rev for rev in revisions if rev["id"] == revision_id), None)
    if target is None:
        raise NotFoundError("Revision", revision_id)
    if target["status"] == status:
        return
    if target["status"] == ARCHIVED:
        raise ValidationError(
            "Archived revisions cannot change status",
            details={"revision_id": revision_id, "status": status},
        )
    if status == DRAFT:
        raise ValidationError(
            "A live revision cannot return to draft",
            details={"revision_id": revision_id},
        )
    if status == LIVE:
        for rev in revisions:
            if rev["status"] == LIVE:
                rev["status"] = ARCHIVED
    target["status"] = status


class FeatureFlagStore:
    """CRUD and revision management over the ``feature_flag`` collection."""

    def __init__(self, session: Session):
        self.session = session

    # ── Internal helpers ─────────────────────────────────────────────────

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("feature_flag.%s failed: %s", operation, exc)
            raise PersistenceError(f"feature_flag.{operation}", exc) from exc

    def _load(self, flag_id: str, for_update: bool = False) -> FeatureFlag:
        try:
            record = self.session.get(FeatureFlag, flag_id, with_for_update=for_update)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("feature_flag.find_by_id %s failed: %s", flag_id, exc)
            raise PersistenceError("feature_flag.find_by_id", exc) from exc
        if record is None:
            raise NotFoundError("FeatureFlag", flag_id)
        return record

    def _save_revisions(self, flag: FeatureFlag, revisions: list[dict], operation: str) -> None:
        flag.revisions = revisions
        flag_modified(flag, "revisions")
        flag.updated_at = utcnow()
        self._commit(operation)

    @staticmethod
    def _copy_revisions(flag: FeatureFlag) -> list[dict]:
        return [{**rev, "rules": [dict(r) for r in rev.get("rules", [])]} for rev in flag.revisions]

    # ── Create / read ────────────────────────────────────────────────────

    def create(self, record: FeatureFlag) -> str:
        """Persist a new flag under a fresh id and return the id.

        Any id already set on ``record`` is replaced.
        """
        record.id = new_object_id()
        self.session.add(record)
        self._commit("create")

        if not is_object_id(record.id):
            raise IdentityAssertionError("FeatureFlag", record.id)
        logger.info(
            "Created feature flag %s (%s) in organization %s",
            record.id, record.name, record.organization_id,
        )
        return record.id

    def find_by_id(self, flag_id: str) -> FeatureFlag:
        return self._load(flag_id)

    def find_many(self, organization_id: str) -> list[FeatureFlag]:
        """All flags owned by ``organization_id``; an empty list when there are none."""
        try:
            return list(
                self.session.scalars(
                    select(FeatureFlag)
                    .where(FeatureFlag.organization_id == organization_id)
                    .order_by(FeatureFlag.created_at, FeatureFlag.id)
                ).all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("feature_flag.find_many %s failed: %s", organization_id, exc)
            raise PersistenceError("feature_flag.find_many", exc) from exc

    # ── Revision mutations ───────────────────────────────────────────────

    @staticmethod
    def _build_revision(flag: FeatureFlag, fields: dict) -> Revision:
        """Turn caller-supplied revision fields into a complete revision.

        Missing ``id`` gets a fresh one, missing ``status`` means draft and
        missing ``rules`` means no rules. ``default_value`` is required.
        """
        unknown = sorted(set(fields) - {"id", "user_id", "status", "default_value", "rules"})
        if unknown:
            raise ValidationError(
                f"Unknown revision fields: {', '.join(unknown)}",
                details={field: "unknown" for field in unknown},
            )
        if "default_value" not in fields:
            raise ValidationError("default_value is required", details={"default_value": "required"})

        status = fields.get("status", DRAFT)
        if status not in REVISION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(REVISION_STATUSES)}")
        revision_id = fields.get("id")
        if revision_id is not None and not is_object_id(revision_id):
            raise ValidationError("Revision id must be a 32-char hex string", details={"id": repr(revision_id)})

        return {
            "id": revision_id or new_object_id(),
            "user_id": fields.get("user_id"),
            "status": status,
            "default_value": validate_value(flag.type, fields["default_value"]),
            "rules": validate_rules(fields.get("rules"), flag.type),
        }

    def append_revision(self, flag_id: str, fields: dict) -> FeatureFlag:
        """Append a revision built from ``fields``.

        If it is live, the previous live revision is archived in the same
        commit. Raises ConflictError when the revision id already exists on
        the flag.
        """
        flag = self._load(flag_id, for_update=True)
        revision = self._build_revision(flag, fields)

        revisions = self._copy_revisions(flag)
        if any(rev["id"] == revision["id"] for rev in revisions):
            raise ConflictError("Revision", "id", revision["id"])
        if revision["status"] == LIVE:
            for rev in revisions:
                if rev["status"] == LIVE:
                    rev["status"] = ARCHIVED
        revisions.append(revision)

        self._save_revisions(flag, revisions, "append_revision")
        logger.info("Flag %s: appended revision %s (%s)", flag_id, revision["id"], revision["status"])
        return flag

    def promote_revision(self, flag_id: str, revision_id: str) -> FeatureFlag:
        """Make ``revision_id`` the live revision."""
        flag = self._load(flag_id, for_update=True)
        revisions = self._copy_revisions(flag)
        _transition(revisions, revision_id, LIVE)
        self._save_revisions(flag, revisions, "promote_revision")
        logger.info("Flag %s: revision %s is live", flag_id, revision_id)
        return flag

    def archive_revision(self, flag_id: str, revision_id: str) -> FeatureFlag:
        flag = self._load(flag_id, for_update=True)
        revisions = self._copy_revisions(flag)
        _transition(revisions, revision_id, ARCHIVED)
        self._save_revisions(flag, revisions, "archive_revision")
        logger.info("Flag %s: revision %s archived", flag_id, revision_id)
        return flag

    def patch_fields(self, flag_id: str, values: dict, revision_id: str | None = None) -> None:
        """Apply a validated partial update to a flag or to one of its revisions.

        Without ``revision_id`` only ``name`` and ``version`` may change. With
        it, ``default_value`` and ``rules`` may change on a draft revision and
        ``status`` may move forward (``live`` goes through promotion).
        """
        if not values:
            raise ValidationError("No fields to update")
        allowed = FLAG_PATCHABLE if revision_id is None else REVISION_PATCHABLE
        unknown = sorted(set(values) - allowed)
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(unknown)}",
                details={field: "not patchable" for field in unknown},
            )

        flag = self._load(flag_id, for_update=True)
        if revision_id is None:
            self._patch_flag(flag, values)
            flag.updated_at = utcnow()
            self._commit("patch_fields")
        else:
            revisions = self._copy_revisions(flag)
            self._patch_revision(flag, revisions, revision_id, values)
            self._save_revisions(flag, revisions, "patch_fields")
        logger.info("Flag %s: patched %s", flag_id, ", ".join(sorted(values)))

    @staticmethod
    def _patch_flag(flag: FeatureFlag, values: dict) -> None:
        name = values.get("name", flag.name)
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name must be a non-empty string")
        version = values.get("version", flag.version)
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise ValidationError("version must be a positive integer")

        flag.name = name.strip()
        flag.version = version

    @staticmethod
    def _patch_revision(flag: FeatureFlag, revisions: list[dict], revision_id: str, values: dict) -> None:
        target = next((rev for rev in revisions if rev["id"] == revision_id), None)
        if target is None:
            raise NotFoundError("Revision", revision_id)

        content_fields = {"default_value", "rules"} & set(values)
        if content_fields and target["status"] != DRAFT:
            raise ValidationError(
                "Only draft revisions can be edited",
                details={"revision_id": revision_id, "status": target["status"]},
            )
        if "default_value" in values:
            target["default_value"] = validate_value(flag.type, values["default_value"])
        if "rules" in values:
            target["rules"] = validate_rules(values["rules"], flag.type)
        if "status" in values:
            if values["status"] not in REVISION_STATUSES:
                raise ValidationError(f"status must be one of: {', '.join(REVISION_STATUSES)}")
            _transition(revisions, revision_id, values["status"])
