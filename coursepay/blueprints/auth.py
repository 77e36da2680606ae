"""Auth blueprint — /auth/*

Minimal session login for the purchase flow. Accounts are provisioned
elsewhere (or with `flask seed-admin`); this only establishes the
authenticated principal (id + email) the payment endpoints require.

CSRF protection stays on for every session-cookie endpoint. Clients fetch
a token from GET /auth/csrf-token and send it back in the X-CSRFToken
header on POST/PUT requests.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf
from werkzeug.security import check_password_hash

from coursepay.extensions import limiter
from coursepay.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ──────────────────────────────────────────────
# GET /auth/csrf-token
# ──────────────────────────────────────────────

@auth_bp.route("/csrf-token")
def csrf_token():
    """Token for the X-CSRFToken header, bound to this session."""
    return jsonify({"csrf_token": generate_csrf()}), 200


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute")
def login():
    """Email + password login. Accepts JSON or form data."""
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "Invalid email or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Your account has been deactivated."}), 403

    login_user(user, remember=bool(data.get("remember")))
    return jsonify({"id": user.id, "email": user.email, "is_admin": bool(user.is_admin)}), 200


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify({"status": "logged_out"}), 200


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({
        "id": current_user.id,
        "email": current_user.email,
        "is_admin": bool(current_user.is_admin),
    }), 200
