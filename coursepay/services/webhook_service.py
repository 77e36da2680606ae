"""Webhook service — authoritative payment -> enrollment path.

Each inbound call walks a small state machine:

    received -> signature_verified -> transaction_reverified -> enrolled
                                \\-> ignored   (non-charge events, 200)
    any step  -> rejected                     (4xx, or 5xx when retryable)

Response policy:
- Before the signature is verified, every failure is non-2xx.
- Bad signature, bad JSON, missing metadata, failed re-verification: 400.
- Events we don't act on and already-enrolled buyers: 200, so the
  processor does not retry pointlessly.
- Processor timeouts and unexpected errors after verification: 5xx, so the
  processor redelivers instead of the payment notification being lost.
"""

import enum
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from coursepay.errors import (
    DecryptionError,
    GatewayNotConfigured,
    MetadataMissing,
    PaymentError,
    SignatureInvalid,
    UpstreamVerificationFailed,
)
from coursepay.extensions import db
from coursepay.models.audit import AuditEvent
from coursepay.models.course import Course
from coursepay.models.payment import Payment
from coursepay.models.user import User
from coursepay.services import crypto_service
from coursepay.services.checkout_service import to_minor_units, verify_checkout_terms
from coursepay.services.db_utils import insert_if_absent
from coursepay.services.enrollment_service import enroll, is_enrolled
from coursepay.services.paystack_client import PaystackClient

logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"
SIGNATURE_HEADER = "X-Paystack-Signature"


class WebhookState(str, enum.Enum):
    RECEIVED = "received"
    SIGNATURE_VERIFIED = "signature_verified"
    TRANSACTION_REVERIFIED = "transaction_reverified"
    ENROLLED = "enrolled"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass
class WebhookOutcome:
    state: WebhookState
    status_code: int
    detail: str
    history: list = field(default_factory=list)

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def to_dict(self):
        if self.ok:
            return {"status": self.detail}
        return {"error": self.detail}


def _as_dict(metadata):
    """Paystack returns metadata as a dict, or as a JSON string in some
    integrations."""
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return {}
    return metadata if isinstance(metadata, dict) else {}


def _parse_paid_at(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None


class WebhookReceiver:
    """Processes one webhook delivery per handle() call."""

    def __init__(self, settings_store, client_factory=None, gateway_name=None):
        self.settings_store = settings_store
        self.client_factory = client_factory or PaystackClient.from_app_config
        self.gateway_name = gateway_name

    def handle(self, raw_body, signature):
        """Process a raw webhook body + signature header.

        Returns a WebhookOutcome; never raises.
        """
        history = [WebhookState.RECEIVED]

        def finish(state, status_code, detail):
            history.append(state)
            return WebhookOutcome(state, status_code, detail, history)

        if not signature:
            logger.warning("Webhook received without signature header")
            return finish(WebhookState.REJECTED, 400, "Missing signature")

        gateway_name = self.gateway_name or current_app.config["PAYMENT_GATEWAY_NAME"]

        # --- Load secret (failure here must trigger a processor retry) ---
        try:
            secret_key = self.settings_store.get_secret_for_server_use(
                gateway_name, require_active=False
            )
        except (GatewayNotConfigured, DecryptionError) as e:
            logger.error(f"Webhook cannot load {gateway_name} secret: {e}")
            return finish(WebhookState.REJECTED, 500, "Payment gateway not configured")

        # --- Signature verification (trust boundary) ---
        if not crypto_service.verify(raw_body, signature, secret_key):
            logger.warning("Webhook signature verification failed")
            return finish(WebhookState.REJECTED, 400, SignatureInvalid.default_message)
        history.append(WebhookState.SIGNATURE_VERIFIED)

        try:
            return self._process_verified(raw_body, secret_key, finish, history)
        except PaymentError as e:
            db.session.rollback()
            logger.warning(f"Webhook rejected: {e.code}: {e.message}")
            return finish(WebhookState.REJECTED, e.status_code, e.message)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error handling webhook: {e}", exc_info=True)
            return finish(WebhookState.REJECTED, 500, "Internal error")

    def _process_verified(self, raw_body, secret_key, finish, history):
        try:
            event = json.loads(raw_body)
        except (TypeError, ValueError):
            return finish(WebhookState.REJECTED, 400, "Invalid JSON body")
        if not isinstance(event, dict):
            return finish(WebhookState.REJECTED, 400, "Invalid JSON body")

        event_type = event.get("event")
        data = event.get("data") or {}
        reference = data.get("reference")
        logger.info(f"[webhook] {event_type} (ref={reference})")

        # --- Event filtering ---
        if event_type != CHARGE_SUCCESS:
            logger.debug(f"Ignoring webhook event type: {event_type}")
            return finish(WebhookState.IGNORED, 200, "ignored")

        # --- Metadata extraction ---
        metadata = _as_dict(data.get("metadata"))
        course_id = metadata.get("course_id")
        user_id = metadata.get("user_id")
        if not course_id or not user_id or not reference:
            raise MetadataMissing()
        course_id, user_id = str(course_id), str(user_id)

        course = db.session.get(Course, course_id)
        if course is None or db.session.get(User, user_id) is None:
            raise MetadataMissing(
                f"Unknown course {course_id} or user {user_id} in metadata"
            )

        # --- Re-verify with the processor; the webhook body is not trusted ---
        transaction = self.client_factory(secret_key).verify_transaction(reference)
        expected_amount, expected_currency = self._charged_terms(
            reference, course, transaction.get("metadata"), metadata
        )
        self._check_transaction(
            transaction, reference, expected_amount, expected_currency
        )
        history.append(WebhookState.TRANSACTION_REVERIFIED)

        # --- Idempotent enrollment ---
        if is_enrolled(user_id, course_id):
            self._record_payment(transaction, reference, user_id, course_id)
            db.session.commit()
            logger.info(f"Webhook replay for user {user_id} course {course_id}: already enrolled")
            return finish(WebhookState.ENROLLED, 200, "already_enrolled")

        _, created = enroll(
            user_id, course_id, source="paystack_webhook", reference=reference
        )
        self._record_payment(transaction, reference, user_id, course_id)
        db.session.commit()

        return finish(WebhookState.ENROLLED, 200, "enrolled" if created else "already_enrolled")

    @staticmethod
    def _charged_terms(reference, course, *candidates):
        """(amount_minor, currency) the buyer was charged at checkout.

        Taken from the first metadata dict carrying a valid terms signature
        for this reference. Without one, the course's current price applies.
        """
        for metadata in candidates:
            metadata = _as_dict(metadata)
            amount = metadata.get("amount_minor")
            currency = metadata.get("currency")
            signature = metadata.get("terms_signature")
            if amount is None or not currency or not signature:
                continue
            if verify_checkout_terms(reference, amount, currency, signature):
                return int(amount), str(currency).upper()
            logger.warning(f"Checkout terms signature mismatch for {reference}")

        currency = course.currency or current_app.config["PAYMENT_CURRENCY"]
        return to_minor_units(course.price), currency.upper()

    @staticmethod
    def _check_transaction(transaction, reference, expected_amount, expected_currency):
        """Raise UpstreamVerificationFailed unless the processor's record is a
        successful charge for this reference covering the charged terms."""
        status = transaction.get("status")
        if status != "success":
            raise UpstreamVerificationFailed(
                f"Transaction {reference} status is {status!r}, not 'success'"
            )
        if transaction.get("reference") and transaction["reference"] != reference:
            raise UpstreamVerificationFailed("Verified reference does not match webhook")

        currency = (transaction.get("currency") or "").upper()
        if currency != expected_currency:
            raise UpstreamVerificationFailed(
                f"Transaction {reference} currency {currency!r} is not {expected_currency}"
            )

        paid = transaction.get("amount")
        if not isinstance(paid, int) or paid < expected_amount:
            raise UpstreamVerificationFailed(
                f"Transaction {reference} amount {paid!r} below charged amount {expected_amount}"
            )

    @staticmethod
    def _record_payment(transaction, reference, user_id, course_id):
        """Insert the local Payment row once per reference."""
        created = insert_if_absent(Payment, {
            "id": str(uuid.uuid4()),
            "reference": reference,
            "user_id": user_id,
            "course_id": course_id,
            "amount_minor": transaction.get("amount"),
            "currency": transaction.get("currency") or current_app.config["PAYMENT_CURRENCY"],
            "status": transaction.get("status"),
            "channel": transaction.get("channel"),
            "paid_at": _parse_paid_at(transaction.get("paid_at") or transaction.get("paidAt")),
        }, ("reference",))
        if not created:
            logger.info(f"Payment {reference} already recorded")
            return

        db.session.add(AuditEvent(
            actor_user_id=None,
            action="payment.recorded",
            metadata_={
                "reference": reference,
                "user_id": user_id,
                "course_id": course_id,
                "amount_minor": transaction.get("amount"),
            },
        ))
        db.session.flush()
