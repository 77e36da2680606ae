"""Settings store — payment gateway credentials.

Responsible for:
- Admin read of gateway settings, with the secret masked to its last 4 chars
- Admin upsert, keeping the stored secret when a masked value comes back
- Server-internal cleartext secret for the checkout and webhook services
- Public key lookup for the browser

Settings are read from the database on every call (keys can rotate), and
updates are last-writer-wins.
"""

import logging

from coursepay.errors import DecryptionError, GatewayNotConfigured, PermissionDenied
from coursepay.extensions import db
from coursepay.models.audit import AuditEvent
from coursepay.models.payment_settings import PaymentGatewaySettings
from coursepay.services.crypto_service import SecretCipher

logger = logging.getLogger(__name__)

MASK_MARKER = "••••"
MASK_PREFIX = MASK_MARKER * 3
DECRYPT_ERROR_MASK = "Error decrypting key"


def mask_secret(secret):
    """'sk_test_abcd1234' -> '••••••••••••1234'."""
    if not secret:
        return ""
    return MASK_PREFIX + secret[-4:]


def is_masked(value):
    return bool(value) and (MASK_MARKER in value or value == DECRYPT_ERROR_MASK)


class SettingsStore:
    """Gateway settings backed by the payment_gateway_settings table."""

    def __init__(self, cipher=None):
        self._cipher = cipher

    @property
    def cipher(self):
        # Resolved lazily so a store can be built outside an app context
        if self._cipher is None:
            self._cipher = SecretCipher.from_app_config()
        return self._cipher

    @staticmethod
    def _require_admin(actor):
        if actor is None or not getattr(actor, "is_admin", False):
            raise PermissionDenied()

    @staticmethod
    def _load(gateway_name):
        return PaymentGatewaySettings.query.filter_by(name=gateway_name).first()

    # ── Admin operations ──

    def get(self, gateway_name, actor):
        """Settings for the admin screen. The secret is never returned."""
        self._require_admin(actor)
        row = self._load(gateway_name)

        masked = ""
        if row and row.secret_key:
            try:
                masked = mask_secret(self.cipher.decrypt(row.secret_key))
            except DecryptionError:
                logger.error(f"Stored secret for gateway {gateway_name} cannot be decrypted")
                masked = DECRYPT_ERROR_MASK

        return {
            "name": gateway_name,
            "public_key": row.public_key if row and row.public_key else "",
            "secret_key_masked": masked,
            "is_active": bool(row and row.is_active),
            "updated_at": (
                row.updated_at.isoformat() if row and row.updated_at else None
            ),
        }

    def upsert(self, gateway_name, actor, public_key, secret_key=None, is_active=False):
        """Create or update gateway settings.

        A missing, empty, or masked secret_key keeps the stored encrypted
        secret byte-for-byte; only a new cleartext value is re-encrypted.
        Returns the PaymentGatewaySettings row (committed).
        """
        self._require_admin(actor)
        row = self._load(gateway_name)
        if row is None:
            row = PaymentGatewaySettings(name=gateway_name)
            db.session.add(row)

        secret_changed = False
        if secret_key and not is_masked(secret_key):
            row.secret_key = self.cipher.encrypt(secret_key.strip())
            secret_changed = True

        row.public_key = (public_key or "").strip() or None
        row.is_active = bool(is_active)

        db.session.add(AuditEvent(
            actor_user_id=actor.id,
            action="payment_settings.updated",
            metadata_={
                "gateway": gateway_name,
                "is_active": row.is_active,
                "secret_changed": secret_changed,
            },
        ))
        db.session.commit()
        logger.info(
            f"Payment settings for {gateway_name} updated by {actor.id} "
            f"(active={row.is_active}, secret_changed={secret_changed})"
        )
        return row

    # ── Server-internal ──

    def get_secret_for_server_use(self, gateway_name, require_active=True):
        """Cleartext secret key. Never put this in a response.

        Raises GatewayNotConfigured when the gateway is missing, has no
        secret, or is inactive (unless require_active=False, which the
        webhook uses so payments taken before a deactivation still land);
        DecryptionError when the blob can't be decrypted.
        """
        row = self._load(gateway_name)
        if row is None or not row.secret_key:
            raise GatewayNotConfigured()
        if require_active and not row.is_active:
            raise GatewayNotConfigured()
        return self.cipher.decrypt(row.secret_key)

    def get_public_key(self, gateway_name):
        row = self._load(gateway_name)
        if row is None or not row.is_active or not row.public_key:
            raise GatewayNotConfigured("Payment gateway not configured or inactive.")
        return row.public_key
