"""
Auth Blueprint — sign-up and sign-in.

  POST /api/v1/auth/signup   — Create a user → identity token
  POST /api/v1/auth/signin   — Email + password → identity token
"""

from flask import Blueprint, jsonify

from togglelabs.services.jwt_service import generate_access_token
from togglelabs.services.user_service import authenticate_user, create_user
from togglelabs.utils.errors import E, api_error
from togglelabs.utils.helpers import json_object_body

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _auth_response(user):
    body = user.to_dict()
    body.pop("created_at", None)
    body["token"] = generate_access_token(user.id)
    return body


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """
    Register a user.

    Body: { "email": "...", "password": "...", "first_name": "...", "last_name": "..." }
    """
    data, err = json_object_body()
    if err:
        return err
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = create_user(
        email=email,
        password=password,
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )
    return jsonify(_auth_response(user)), 201


@auth_bp.route("/signin", methods=["POST"])
def signin():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data, err = json_object_body()
    if err:
        return err
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = authenticate_user(email, password)
    return jsonify(_auth_response(user)), 200
