"""
Feature Flag Model — flags with an append-only revision history.

A flag belongs to exactly one organization (``organization_id``) and
embeds its revisions as a JSON list in chronological order; index 0 is
the first revision ever written. Each revision embeds its ordered rules.

Revision lifecycle: draft -> live -> archived. At most one revision is
live at a time; the store archives the previous live revision whenever
another one is promoted.
"""

import json
from typing import TypedDict

from togglelabs.core.exceptions import ValidationError
from togglelabs.models import db
from togglelabs.models.base import isoformat_utc, new_object_id, utcnow

# ── Revision status ──────────────────────────────────────────────────────
DRAFT = "draft"
LIVE = "live"
ARCHIVED = "archived"

REVISION_STATUSES = (DRAFT, LIVE, ARCHIVED)

# ── Flag value types ─────────────────────────────────────────────────────
BOOLEAN = "boolean"
JSON = "json"
STRING = "string"
NUMBER = "number"

FLAG_TYPES = (BOOLEAN, JSON, STRING, NUMBER)


class Rule(TypedDict):
    """Environment-scoped predicate/value pair. Order within a revision matters."""

    predicate: str
    value: str
    env: str
    is_enabled: bool


class Revision(TypedDict):
    """One snapshot of a flag's default value and rule set."""

    id: str
    user_id: str
    status: str
    default_value: str
    rules: list[Rule]


class FeatureFlag(db.Model):
    __tablename__ = "feature_flag"

    id = db.Column(db.String(32), primary_key=True)
    organization_id = db.Column(
        db.String(32),
        db.ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(db.String(32), nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    revisions = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def revision(self, revision_id: str) -> Revision | None:
        for rev in self.revisions or []:
            if rev["id"] == revision_id:
                return rev
        return None

    def to_dict(self):
        d = {
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "version": self.version,
            "name": self.name,
            "type": self.type,
            "revisions": [
                {**rev, "rules": [dict(r) for r in rev.get("rules", [])]}
                for rev in self.revisions or []
            ],
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }
        if self.id is not None:
            d = {"id": self.id, **d}
        return d

    def __repr__(self):
        return f"<FeatureFlag {self.id} {self.name!r} v{self.version}>"


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

def validate_value(flag_type: str, value) -> str:
    """Check that a string-encoded value parses as ``flag_type``."""
    if not isinstance(value, str):
        raise ValidationError("Flag values must be strings", details={"value": repr(value)})
    if flag_type == BOOLEAN and value not in ("true", "false"):
        raise ValidationError(
            "Boolean flag values must be 'true' or 'false'", details={"value": value},
        )
    if flag_type == NUMBER:
        try:
            float(value)
        except ValueError:
            raise ValidationError("Number flag values must be numeric", details={"value": value})
    if flag_type == JSON:
        try:
            json.loads(value)
        except ValueError:
            raise ValidationError("JSON flag values must be valid JSON", details={"value": value})
    return value


def make_rule(predicate: str, value: str, env: str, is_enabled: bool) -> Rule:
    return {
        "predicate": predicate,
        "value": value,
        "env": env,
        "is_enabled": is_enabled,
    }


def validate_rules(raw, flag_type: str | None = None) -> list[Rule]:
    """Build a rule list from untrusted JSON, preserving order.

    Every field is required; ``is_enabled`` must be a real boolean.
    Raises ValidationError with a per-field breakdown.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("rules must be a list")

    errors = {}
    rules: list[Rule] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            errors[f"rules[{idx}]"] = "must be an object"
            continue
        for field in ("predicate", "value", "env"):
            if not isinstance(item.get(field), str) or not item[field].strip():
                errors[f"rules[{idx}].{field}"] = "required"
        if not isinstance(item.get("is_enabled"), bool):
            errors[f"rules[{idx}].is_enabled"] = "must be a boolean"
        if not any(key.startswith(f"rules[{idx}]") for key in errors):
            if flag_type is not None:
                validate_value(flag_type, item["value"])
            rules.append(make_rule(item["predicate"], item["value"], item["env"], item["is_enabled"]))

    if errors:
        raise ValidationError("Invalid rules", details=errors)
    return rules


# ═══════════════════════════════════════════════════════════════
# Record construction
# ═══════════════════════════════════════════════════════════════

def new_revision_record(
    default_value: str,
    rules: list[Rule],
    user_id: str,
    status: str = DRAFT,
) -> Revision:
    """Build a revision with a fresh id. New revisions start as drafts."""
    if status not in REVISION_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(REVISION_STATUSES)}")
    return {
        "id": new_object_id(),
        "user_id": user_id,
        "status": status,
        "default_value": default_value,
        "rules": list(rules or []),
    }


def new_feature_flag_record(
    name: str,
    default_value: str,
    flag_type: str,
    rules: list[Rule],
    organization_id: str,
    user_id: str,
) -> FeatureFlag:
    """Build an unsaved flag at version 1 with a single draft revision."""
    if flag_type not in FLAG_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(FLAG_TYPES)}")
    validate_value(flag_type, default_value)

    now = utcnow()
    return FeatureFlag(
        organization_id=organization_id,
        user_id=user_id,
        version=1,
        name=name,
        type=flag_type,
        revisions=[new_revision_record(default_value, rules, user_id)],
        created_at=now,
        updated_at=now,
    )
