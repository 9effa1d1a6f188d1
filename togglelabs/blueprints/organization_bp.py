"""
Organization Blueprint — organizations, members and invites.

  POST   /api/v1/organizations                              — create (caller becomes ADMIN)
  GET    /api/v1/organizations                              — organizations the caller belongs to
  GET    /api/v1/organizations/<organization_id>            — members only
  POST   /api/v1/organizations/<organization_id>/members    — ADMIN only
  PUT    /api/v1/organizations/<organization_id>/members/<user_id>
  DELETE /api/v1/organizations/<organization_id>/members/<user_id>
  POST   /api/v1/organizations/<organization_id>/invites    — ADMIN only
  PUT    /api/v1/organizations/<organization_id>/invites    — ADMIN only
"""

from flask import Blueprint, g, jsonify

from togglelabs.core.exceptions import NotFoundError
from togglelabs.middleware.jwt_auth import login_required
from togglelabs.models import db
from togglelabs.models.organization import READ_ONLY, new_organization_record
from togglelabs.services.access_gate import require_admin, require_read
from togglelabs.services.organization_store import OrganizationStore
from togglelabs.services.user_service import get_user_by_id
from togglelabs.utils.errors import E, api_error
from togglelabs.utils.helpers import json_object_body

organization_bp = Blueprint("organization_bp", __name__, url_prefix="/api/v1/organizations")


def _store() -> OrganizationStore:
    return OrganizationStore(db.session)


@organization_bp.route("", methods=["POST"])
@login_required
def create_organization():
    data, err = json_object_body()
    if err:
        return err
    name = (data.get("name") or "").strip()
    if not name:
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    if len(name) > 200:
        return api_error(E.VALIDATION_INVALID, "name must be at most 200 characters")

    store = _store()
    organization_id = store.create(new_organization_record(name, g.user_id))
    return jsonify(store.find_by_id(organization_id).to_dict()), 201


@organization_bp.route("", methods=["GET"])
@login_required
def list_organizations():
    return jsonify([org.to_dict() for org in _store().find_for_user(g.user_id)]), 200


@organization_bp.route("/<organization_id>", methods=["GET"])
@login_required
def get_organization(organization_id):
    store = _store()
    require_read(store, g.user_id, organization_id)
    return jsonify(store.find_by_id(organization_id).to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════

@organization_bp.route("/<organization_id>/members", methods=["POST"])
@login_required
def add_member(organization_id):
    """Body: { "user_id": "...", "permission_level": "COLLABORATOR" }"""
    data, err = json_object_body()
    if err:
        return err
    user_id = data.get("user_id")
    if not user_id:
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")

    store = _store()
    require_admin(store, g.user_id, organization_id)
    if get_user_by_id(user_id) is None:
        raise NotFoundError("User", user_id)

    organization = store.add_member(organization_id, user_id, data.get("permission_level", READ_ONLY))
    return jsonify(organization.to_dict()), 201


@organization_bp.route("/<organization_id>/members/<user_id>", methods=["PUT"])
@login_required
def update_member(organization_id, user_id):
    data, err = json_object_body()
    if err:
        return err
    if not data.get("permission_level"):
        return api_error(E.VALIDATION_REQUIRED, "permission_level is required")

    store = _store()
    require_admin(store, g.user_id, organization_id)
    organization = store.set_member_permission(organization_id, user_id, data["permission_level"])
    return jsonify(organization.to_dict()), 200


@organization_bp.route("/<organization_id>/members/<user_id>", methods=["DELETE"])
@login_required
def remove_member(organization_id, user_id):
    store = _store()
    require_admin(store, g.user_id, organization_id)
    organization = store.remove_member(organization_id, user_id)
    return jsonify(organization.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Invites
# ═══════════════════════════════════════════════════════════════

@organization_bp.route("/<organization_id>/invites", methods=["POST"])
@login_required
def add_invite(organization_id):
    data, err = json_object_body()
    if err:
        return err
    if not data.get("email"):
        return api_error(E.VALIDATION_REQUIRED, "email is required")

    store = _store()
    require_admin(store, g.user_id, organization_id)
    organization = store.add_invite(organization_id, data["email"])
    return jsonify(organization.to_dict()), 201


@organization_bp.route("/<organization_id>/invites", methods=["PUT"])
@login_required
def update_invite(organization_id):
    """Body: { "email": "...", "status": "CANCELED" }"""
    data, err = json_object_body()
    if err:
        return err
    if not data.get("email") or not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "email and status are required")

    store = _store()
    require_admin(store, g.user_id, organization_id)
    organization = store.set_invite_status(organization_id, data["email"], data["status"])
    return jsonify(organization.to_dict()), 200
