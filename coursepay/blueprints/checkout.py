"""Checkout blueprint — purchase a course and follow its verification.

Routes:
- POST /courses/<course_id>/checkout  — start hosted checkout, returns the redirect URL
- GET  /payments/callback             — redirect-back landing data for the poller
- GET  /payments/status               — JSON poll: is the buyer enrolled yet?
- GET  /payments/public-key           — gateway public key for the browser
"""

import logging

from flask import Blueprint, current_app, jsonify, request, url_for
from flask_login import current_user, login_required

from coursepay.errors import InvalidReference, PaymentError, error_response
from coursepay.extensions import limiter
from coursepay.services.checkout_service import CheckoutInitiator
from coursepay.services.enrollment_service import is_enrolled
from coursepay.services.references import CheckoutReference
from coursepay.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__)


# ──────────────────────────────────────────────
# POST /courses/<course_id>/checkout
# ──────────────────────────────────────────────

@checkout_bp.route("/courses/<course_id>/checkout", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def start_checkout(course_id):
    """Create a Paystack checkout session for the current user.

    Returns {authorization_url, access_code, reference}. The browser
    navigates to authorization_url; enrollment happens later via webhook.
    """
    initiator = CheckoutInitiator(SettingsStore())
    try:
        result = initiator.initiate(current_user, course_id)
    except PaymentError as e:
        logger.info(f"Checkout refused for user {current_user.id} course {course_id}: {e.code}")
        return error_response(e)
    except ValueError as e:
        logger.error(f"Checkout amount error for course {course_id}: {e}")
        return jsonify({"error": "invalid_price", "message": "This course has an invalid price."}), 422

    return jsonify(result.to_dict()), 200


# ──────────────────────────────────────────────
# GET /payments/callback
# ──────────────────────────────────────────────

@checkout_bp.route("/payments/callback")
@login_required
def payment_callback():
    """Where Paystack sends the buyer back after checkout.

    Paystack appends its own `reference`/`trxref`; we also passed
    course_id explicitly in the callback URL. Returns what the landing
    page needs to run the verification poller.
    """
    raw_reference = request.args.get("reference") or request.args.get("trxref")
    try:
        reference = CheckoutReference.parse(raw_reference)
    except InvalidReference as e:
        return error_response(e)

    course_id = request.args.get("course_id") or reference.course_id
    if course_id != reference.course_id:
        return error_response(InvalidReference("course_id does not match reference"))
    if reference.buyer_id != current_user.id:
        return jsonify({"error": "forbidden", "message": "Not your payment."}), 403

    return jsonify({
        "reference": str(reference),
        "course_id": reference.course_id,
        "enrolled": is_enrolled(current_user.id, reference.course_id),
        "status_url": url_for("checkout.payment_status", reference=str(reference)),
        "poll_interval": current_app.config["VERIFICATION_POLL_INTERVAL"],
        "poll_timeout": current_app.config["VERIFICATION_POLL_TIMEOUT"],
        "support_email": current_app.config["SUPPORT_EMAIL"],
    }), 200


# ──────────────────────────────────────────────
# GET /payments/status — AJAX poll
# ──────────────────────────────────────────────

@checkout_bp.route("/payments/status")
@login_required
def payment_status():
    """JSON endpoint polled by the landing page. Read-only.

    The course comes from the structured reference, and the reference
    must belong to the current user.
    """
    try:
        reference = CheckoutReference.parse(request.args.get("reference"))
    except InvalidReference as e:
        return error_response(e)

    if reference.buyer_id != current_user.id:
        return jsonify({"error": "forbidden", "message": "Not your payment."}), 403

    return jsonify({
        "enrolled": is_enrolled(current_user.id, reference.course_id),
        "course_id": reference.course_id,
    }), 200


# ──────────────────────────────────────────────
# GET /payments/public-key
# ──────────────────────────────────────────────

@checkout_bp.route("/payments/public-key")
def public_key():
    """Public key for initializing the processor's browser SDK."""
    try:
        key = SettingsStore().get_public_key(current_app.config["PAYMENT_GATEWAY_NAME"])
    except PaymentError:
        return jsonify({"error": "Payment gateway not configured or inactive"}), 400
    return jsonify({"public_key": key, "is_active": True}), 200
