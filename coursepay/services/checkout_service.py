"""Checkout service — starts a hosted Paystack checkout for one course.

Responsible for:
- Validating the course and the buyer's existing access
- Loading the active gateway secret at call time
- Exact major -> minor unit conversion
- Building a fresh reference and the callback URL the landing page polls from
- Signing the charged amount and currency into the checkout metadata
- Calling the processor's initialize endpoint

Nothing is persisted here. Enrollment only happens after the processor
confirms payment (see webhook_service).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from urllib.parse import urlencode

from flask import current_app

from coursepay.errors import (
    AlreadyEnrolled,
    DecryptionError,
    GatewayNotConfigured,
    ItemNotFound,
)
from coursepay.extensions import db
from coursepay.models.course import Course
from coursepay.services import crypto_service
from coursepay.services.enrollment_service import is_enrolled
from coursepay.services.paystack_client import PaystackClient
from coursepay.services.references import CheckoutReference

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(amount):
    """Convert a display-currency amount to the processor's minor unit.

    Decimal arithmetic throughout: 15000 -> 1500000, "99.5" -> 9950.
    Floats are converted through their shortest repr so 19.99 stays 19.99.
    Raises ValueError for negative amounts or sub-minor-unit precision.
    """
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a valid amount: {amount!r}")

    if not value.is_finite() or value < 0:
        raise ValueError(f"Not a valid amount: {amount!r}")

    minor = value * MINOR_UNITS_PER_MAJOR
    if minor != minor.to_integral_value():
        raise ValueError(f"Amount {amount!r} has more precision than the minor unit")
    return int(minor)


def _terms_message(reference, amount, currency):
    return f"{reference}|{amount}|{currency}"


def sign_checkout_terms(reference, amount, currency, key=None):
    """Server signature over the price charged for one reference.

    Sent in the checkout metadata so the webhook can hold the payment to
    the terms the buyer saw, even if the course price changes afterwards.
    """
    key = key or current_app.config["PAYMENT_ENCRYPTION_KEY"]
    return crypto_service.sign(_terms_message(reference, amount, currency), key)


def verify_checkout_terms(reference, amount, currency, signature, key=None):
    key = key or current_app.config["PAYMENT_ENCRYPTION_KEY"]
    return crypto_service.verify(
        _terms_message(reference, amount, currency), signature, key
    )


def build_callback_url(base_url, reference):
    """Landing page URL with course_id and reference as explicit params."""
    query = urlencode({
        "course_id": reference.course_id,
        "reference": str(reference),
    })
    return f"{base_url.rstrip('/')}/payments/callback?{query}"


@dataclass(frozen=True)
class CheckoutResult:
    authorization_url: str
    access_code: str
    reference: str

    def to_dict(self):
        return {
            "authorization_url": self.authorization_url,
            "access_code": self.access_code,
            "reference": self.reference,
        }


class CheckoutInitiator:
    """Creates hosted checkout sessions.

    settings_store supplies the gateway secret; client_factory turns that
    secret into a processor client (PaystackClient.from_app_config by default).
    """

    def __init__(self, settings_store, client_factory=None, gateway_name=None,
                 currency=None):
        self.settings_store = settings_store
        self.client_factory = client_factory or PaystackClient.from_app_config
        self.gateway_name = gateway_name
        self.currency = currency

    def initiate(self, buyer, course_id, callback_base_url=None):
        """Start checkout for buyer -> course_id.

        Raises ItemNotFound, AlreadyEnrolled, GatewayNotConfigured,
        UpstreamInitiationError or ProcessorUnavailable.
        """
        config = current_app.config
        gateway_name = self.gateway_name or config["PAYMENT_GATEWAY_NAME"]

        course = db.session.get(Course, str(course_id))
        if course is None or not course.is_purchasable:
            raise ItemNotFound()

        # Before any processor call: never charge for something already owned
        if is_enrolled(buyer.id, course.id):
            raise AlreadyEnrolled()

        amount = to_minor_units(course.price)
        if amount <= 0:
            raise ItemNotFound("This course is not available for purchase.")

        try:
            secret_key = self.settings_store.get_secret_for_server_use(gateway_name)
        except DecryptionError as e:
            logger.error(f"Cannot decrypt {gateway_name} secret: {e}")
            raise GatewayNotConfigured()

        reference = CheckoutReference.new(course.id, buyer.id)
        callback_url = build_callback_url(
            callback_base_url or config["APP_BASE_URL"], reference
        )

        currency = (self.currency or course.currency or config["PAYMENT_CURRENCY"]).upper()

        client = self.client_factory(secret_key)
        data = client.initialize_transaction(
            email=buyer.email,
            amount=amount,
            currency=currency,
            reference=str(reference),
            metadata={
                "course_id": course.id,
                "user_id": buyer.id,
                "course_title": course.title,
                "amount_minor": amount,
                "currency": currency,
                "terms_signature": sign_checkout_terms(str(reference), amount, currency),
            },
            callback_url=callback_url,
        )

        logger.info(
            f"Checkout initialized for user {buyer.id} course {course.id} "
            f"(ref={reference}, amount={amount})"
        )
        return CheckoutResult(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code", ""),
            reference=data.get("reference") or str(reference),
        )
