"""
Feature Flag Blueprint — flags and revisions inside an organization.

Reads need membership; every mutation needs COLLABORATOR or ADMIN.

  POST  /api/v1/organizations/<organization_id>/flags
  GET   /api/v1/organizations/<organization_id>/flags
  GET   /api/v1/organizations/<organization_id>/flags/<flag_id>
  PATCH /api/v1/organizations/<organization_id>/flags/<flag_id>
  POST  /api/v1/organizations/<organization_id>/flags/<flag_id>/revisions
  PATCH /api/v1/organizations/<organization_id>/flags/<flag_id>/revisions/<revision_id>
  POST  /api/v1/organizations/<organization_id>/flags/<flag_id>/revisions/<revision_id>/promote
  POST  /api/v1/organizations/<organization_id>/flags/<flag_id>/revisions/<revision_id>/archive
"""

from flask import Blueprint, g, jsonify

from togglelabs.core.exceptions import NotFoundError
from togglelabs.middleware.jwt_auth import login_required
from togglelabs.models import db
from togglelabs.models.feature_flag import (
    DRAFT,
    FeatureFlag,
    new_feature_flag_record,
    validate_rules,
)
from togglelabs.services.access_gate import require_read, require_write
from togglelabs.services.feature_flag_store import FeatureFlagStore
from togglelabs.services.organization_store import OrganizationStore
from togglelabs.utils.errors import E, api_error
from togglelabs.utils.helpers import json_object_body

feature_flag_bp = Blueprint(
    "feature_flag_bp", __name__,
    url_prefix="/api/v1/organizations/<organization_id>/flags",
)


def _stores() -> tuple[OrganizationStore, FeatureFlagStore]:
    return OrganizationStore(db.session), FeatureFlagStore(db.session)


def _flag_in_org(flags: FeatureFlagStore, organization_id: str, flag_id: str) -> FeatureFlag:
    """Load a flag, hiding flags of other organizations behind a 404."""
    flag = flags.find_by_id(flag_id)
    if flag.organization_id != organization_id:
        raise NotFoundError("FeatureFlag", flag_id)
    return flag


# ═══════════════════════════════════════════════════════════════
# Flags
# ═══════════════════════════════════════════════════════════════

@feature_flag_bp.route("", methods=["POST"])
@login_required
def create_flag(organization_id):
    """
    Create a flag with one draft revision.

    Body: { "name": "dark-mode", "type": "boolean", "default_value": "false", "rules": [] }
    """
    data, err = json_object_body()
    if err:
        return err
    name = (data.get("name") or "").strip()
    if not name or not data.get("type") or "default_value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "name, type and default_value are required")

    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)

    record = new_feature_flag_record(
        name=name,
        default_value=data["default_value"],
        flag_type=data["type"],
        rules=validate_rules(data.get("rules"), data["type"]),
        organization_id=organization_id,
        user_id=g.user_id,
    )
    flag_id = flags.create(record)
    return jsonify(flags.find_by_id(flag_id).to_dict()), 201


@feature_flag_bp.route("", methods=["GET"])
@login_required
def list_flags(organization_id):
    orgs, flags = _stores()
    require_read(orgs, g.user_id, organization_id)
    return jsonify([f.to_dict() for f in flags.find_many(organization_id)]), 200


@feature_flag_bp.route("/<flag_id>", methods=["GET"])
@login_required
def get_flag(organization_id, flag_id):
    orgs, flags = _stores()
    require_read(orgs, g.user_id, organization_id)
    return jsonify(_flag_in_org(flags, organization_id, flag_id).to_dict()), 200


@feature_flag_bp.route("/<flag_id>", methods=["PATCH"])
@login_required
def patch_flag(organization_id, flag_id):
    """Body: any of { "name": "...", "version": 2 }"""
    data, err = json_object_body()
    if err:
        return err
    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)
    _flag_in_org(flags, organization_id, flag_id)

    flags.patch_fields(flag_id, data)
    return jsonify(flags.find_by_id(flag_id).to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Revisions
# ═══════════════════════════════════════════════════════════════

@feature_flag_bp.route("/<flag_id>/revisions", methods=["POST"])
@login_required
def append_revision(organization_id, flag_id):
    """
    Append a revision (draft unless ``status`` says otherwise).

    Body: { "default_value": "true", "rules": [...], "status": "draft" }
    """
    data, err = json_object_body()
    if err:
        return err
    if "default_value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "default_value is required")

    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)
    _flag_in_org(flags, organization_id, flag_id)

    flag = flags.append_revision(flag_id, {
        "default_value": data["default_value"],
        "rules": data.get("rules"),
        "status": data.get("status", DRAFT),
        "user_id": g.user_id,
    })
    return jsonify(flag.to_dict()), 201


@feature_flag_bp.route("/<flag_id>/revisions/<revision_id>", methods=["PATCH"])
@login_required
def patch_revision(organization_id, flag_id, revision_id):
    """Body: any of { "default_value": "...", "rules": [...], "status": "live" }"""
    data, err = json_object_body()
    if err:
        return err
    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)
    _flag_in_org(flags, organization_id, flag_id)

    flags.patch_fields(flag_id, data, revision_id=revision_id)
    return jsonify(flags.find_by_id(flag_id).to_dict()), 200


@feature_flag_bp.route("/<flag_id>/revisions/<revision_id>/promote", methods=["POST"])
@login_required
def promote_revision(organization_id, flag_id, revision_id):
    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)
    _flag_in_org(flags, organization_id, flag_id)
    return jsonify(flags.promote_revision(flag_id, revision_id).to_dict()), 200


@feature_flag_bp.route("/<flag_id>/revisions/<revision_id>/archive", methods=["POST"])
@login_required
def archive_revision(organization_id, flag_id, revision_id):
    orgs, flags = _stores()
    require_write(orgs, g.user_id, organization_id)
    _flag_in_org(flags, organization_id, flag_id)
    return jsonify(flags.archive_revision(flag_id, revision_id).to_dict()), 200
