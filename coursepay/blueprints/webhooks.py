"""Webhooks blueprint — /paystack/webhook

Receives Paystack webhook events. CSRF-exempt.
Raw body is required for signature verification.
"""

import logging

from flask import Blueprint, jsonify, request

from coursepay.extensions import limiter
from coursepay.services.settings_store import SettingsStore
from coursepay.services.webhook_service import SIGNATURE_HEADER, WebhookReceiver

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/paystack")


@webhooks_bp.route("/webhook", methods=["POST"])
@limiter.limit("120 per minute")
def paystack_webhook():
    """Receive and process Paystack webhook events.

    1. Get raw body (required for signature verification)
    2. Verify HMAC-SHA512 signature with the gateway secret
    3. Re-verify the transaction with Paystack, then enroll (idempotent)
    4. Return 200 to acknowledge, 4xx to reject, 5xx to ask for a retry

    CSRF is exempted for this blueprint in create_app().
    """
    payload = request.get_data()
    signature = request.headers.get(SIGNATURE_HEADER)

    outcome = WebhookReceiver(SettingsStore()).handle(payload, signature)

    if outcome.status_code >= 500:
        logger.error(f"Webhook processing failed: {outcome.detail}")
    return jsonify(outcome.to_dict()), outcome.status_code
