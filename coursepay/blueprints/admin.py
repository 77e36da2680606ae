"""Admin blueprint — /admin/*

Payment back-office for administrators.

Routes:
- GET /admin/payment-settings  — gateway settings, secret masked
- PUT /admin/payment-settings  — update gateway settings
- GET /admin/payments          — recent verified payments
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from coursepay.decorators import admin_required
from coursepay.errors import PaymentError, error_response
from coursepay.models.payment import Payment
from coursepay.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

PAYMENTS_PAGE_SIZE = 100


def _gateway_name():
    return request.args.get("gateway") or current_app.config["PAYMENT_GATEWAY_NAME"]


# ──────────────────────────────────────────────
# Payment gateway settings
# ──────────────────────────────────────────────

@admin_bp.route("/payment-settings", methods=["GET"])
@admin_required
def payment_settings():
    """Current gateway settings. secret_key_masked is '••••…' + last 4 chars."""
    try:
        settings = SettingsStore().get(_gateway_name(), current_user)
    except PaymentError as e:
        return error_response(e)
    return jsonify(settings), 200


@admin_bp.route("/payment-settings", methods=["PUT"])
@admin_required
def payment_settings_update():
    """Update gateway settings.

    Body: {public_key, secret_key, is_active}. Sending back the masked
    secret (or omitting it) keeps the stored secret unchanged.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "invalid_body", "message": "JSON body required."}), 400

    is_active = data.get("is_active", False)
    if not isinstance(is_active, bool):
        return jsonify({"error": "invalid_body", "message": "is_active must be a boolean."}), 400

    store = SettingsStore()
    try:
        store.upsert(
            _gateway_name(),
            current_user,
            public_key=data.get("public_key"),
            secret_key=data.get("secret_key"),
            is_active=is_active,
        )
        settings = store.get(_gateway_name(), current_user)
    except PaymentError as e:
        return error_response(e)

    return jsonify({"success": True, "settings": settings}), 200


# ──────────────────────────────────────────────
# Payments
# ──────────────────────────────────────────────

@admin_bp.route("/payments")
@admin_required
def payment_list():
    """Most recent verified payments, newest first."""
    query = Payment.query
    status = request.args.get("status")
    if status:
        query = query.filter_by(status=status)

    payments = (
        query.order_by(Payment.created_at.desc())
        .limit(PAYMENTS_PAGE_SIZE)
        .all()
    )
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200
