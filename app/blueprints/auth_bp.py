"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/register    — Email + password → user + access token
  POST /api/v1/auth/login       — Email + password → user + access token
  GET  /api/v1/auth/me          — Current user profile
"""

import logging

from flask import Blueprint, g, jsonify

from app.blueprints import register_error_handlers
from app.middleware.ownership import login_required
from app.services.jwt_service import generate_access_token
from app.services.user_service import AuthenticationError, authenticate_user, create_user
from app.utils.errors import E, api_error
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


def _token_response(user, status):
    return jsonify({
        "user": user.to_dict(),
        "access_token": generate_access_token(user.id),
        "token_type": "Bearer",
    }), status


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and sign it in.

    Body: { "email": "...", "password": "...", "full_name": "..." }
    """
    data = json_body()
    user = create_user(
        (data.get("email") or "").strip(),
        data.get("password") or "",
        data.get("full_name"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return _token_response(user, 201)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    try:
        user = authenticate_user(email, password)
    except AuthenticationError as e:
        logger.info("Failed login for %s", email)
        return api_error(E.UNAUTHORIZED, str(e))

    return _token_response(user, 200)


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": g.current_user.to_dict()}), 200
