"""Paystack API client — the two calls the payment pipeline makes.

- initialize_transaction(): POST /transaction/initialize
- verify_transaction():     GET  /transaction/verify/<reference>

Both send the secret key as a Bearer token and use an explicit request
timeout. Timeouts and connection failures raise ProcessorUnavailable
(retryable); everything else the processor rejects raises the
operation-specific error with Paystack's own message preserved.
"""

import logging
from urllib.parse import quote

import requests
from flask import current_app

from coursepay.errors import (
    ProcessorUnavailable,
    UpstreamInitiationError,
    UpstreamVerificationFailed,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"
DEFAULT_TIMEOUT = 10


class PaystackClient:
    def __init__(self, secret_key, base_url=DEFAULT_BASE_URL, timeout=DEFAULT_TIMEOUT):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_app_config(cls, secret_key):
        return cls(
            secret_key,
            base_url=current_app.config.get("PAYSTACK_BASE_URL", DEFAULT_BASE_URL),
            timeout=current_app.config.get("PAYSTACK_TIMEOUT_SECONDS", DEFAULT_TIMEOUT),
        )

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _json_or_empty(resp):
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def initialize_transaction(self, email, amount, currency, reference,
                               metadata, callback_url):
        """Create a hosted checkout session.

        amount is in minor units (kobo). Returns the processor's data dict:
        {authorization_url, access_code, reference}.
        """
        payload = {
            "email": email,
            "amount": amount,
            "currency": currency,
            "reference": reference,
            "metadata": metadata,
            "callback_url": callback_url,
        }
        try:
            resp = requests.post(
                f"{self.base_url}/transaction/initialize",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            logger.warning(f"Paystack initialize unreachable for {reference}: {e}")
            raise ProcessorUnavailable()

        body = self._json_or_empty(resp)
        data = body.get("data") or {}
        if not resp.ok or not body.get("status"):
            raise UpstreamInitiationError(
                body.get("message") or f"Paystack returned HTTP {resp.status_code}"
            )
        if not data.get("authorization_url"):
            raise UpstreamInitiationError("Paystack response missing authorization_url")
        return data

    def verify_transaction(self, reference):
        """Fetch the processor's own record for a reference.

        Returns the transaction data dict. Raises UpstreamVerificationFailed
        if the processor does not confirm the lookup.
        """
        try:
            resp = requests.get(
                f"{self.base_url}/transaction/verify/{quote(reference, safe='')}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            logger.warning(f"Paystack verify unreachable for {reference}: {e}")
            raise ProcessorUnavailable()

        if resp.status_code >= 500:
            raise ProcessorUnavailable(
                f"Paystack verify returned HTTP {resp.status_code}"
            )

        body = self._json_or_empty(resp)
        if not resp.ok or not body.get("status") or not isinstance(body.get("data"), dict):
            raise UpstreamVerificationFailed(
                body.get("message") or f"Paystack returned HTTP {resp.status_code}"
            )
        return body["data"]
