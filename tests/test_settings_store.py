"""Tests for the settings store.

Covers:
- Masked admin reads (last 4 chars only)
- Masked round-trip leaves the stored secret untouched
- Rotation, admin-only access, audit trail
- Server-internal secret lookup and public key lookup
"""

import pytest

from coursepay.errors import DecryptionError, GatewayNotConfigured, PermissionDenied
from coursepay.extensions import db
from coursepay.models.audit import AuditEvent
from coursepay.models.payment_settings import PaymentGatewaySettings
from coursepay.services.crypto_service import SecretCipher
from coursepay.services.settings_store import (
    DECRYPT_ERROR_MASK,
    SettingsStore,
    is_masked,
    mask_secret,
)


def _row():
    return PaymentGatewaySettings.query.filter_by(name="paystack").first()


class TestMasking:

    def test_mask_keeps_last_four(self):
        assert mask_secret("sk_test_abcd1234") == "••••••••••••1234"

    def test_mask_empty(self):
        assert mask_secret("") == ""
        assert mask_secret(None) == ""

    def test_is_masked(self):
        assert is_masked("••••••••••••1234")
        assert is_masked(DECRYPT_ERROR_MASK)
        assert not is_masked("sk_test_abcd1234")
        assert not is_masked("")


class TestAdminRead:

    def test_get_masks_secret(self, seed_data, gateway_secret):
        settings = SettingsStore().get("paystack", seed_data["admin"])
        assert settings["secret_key_masked"] == "••••••••••••" + gateway_secret[-4:]
        assert gateway_secret not in str(settings)
        assert settings["public_key"].startswith("pk_test_")
        assert settings["is_active"] is True

    def test_get_unconfigured_gateway(self, seed_data):
        settings = SettingsStore().get("flutterwave", seed_data["admin"])
        assert settings["secret_key_masked"] == ""
        assert settings["public_key"] == ""
        assert settings["is_active"] is False

    def test_get_with_undecryptable_secret(self, seed_data):
        row = _row()
        row.secret_key = SecretCipher("some-rotated-key").encrypt("sk_test_zzzz9999")
        db.session.commit()

        settings = SettingsStore().get("paystack", seed_data["admin"])
        assert settings["secret_key_masked"] == DECRYPT_ERROR_MASK

    def test_non_admin_denied(self, seed_data):
        with pytest.raises(PermissionDenied):
            SettingsStore().get("paystack", seed_data["buyer"])

    def test_anonymous_denied(self, seed_data):
        with pytest.raises(PermissionDenied):
            SettingsStore().get("paystack", None)


class TestAdminUpsert:

    def test_masked_round_trip_keeps_secret(self, seed_data, gateway_secret):
        store = SettingsStore()
        blob_before = _row().secret_key

        masked = store.get("paystack", seed_data["admin"])["secret_key_masked"]
        store.upsert("paystack", seed_data["admin"], public_key="pk_test_new",
                     secret_key=masked, is_active=True)

        row = _row()
        assert row.secret_key == blob_before
        assert row.public_key == "pk_test_new"
        assert store.get_secret_for_server_use("paystack") == gateway_secret

    def test_omitted_secret_keeps_secret(self, seed_data, gateway_secret):
        store = SettingsStore()
        store.upsert("paystack", seed_data["admin"], public_key="pk_test_x",
                     secret_key=None, is_active=True)
        assert store.get_secret_for_server_use("paystack") == gateway_secret

    def test_new_secret_is_encrypted_and_rotates(self, seed_data):
        store = SettingsStore()
        store.upsert("paystack", seed_data["admin"], public_key="pk_test_x",
                     secret_key="sk_test_rotated5678", is_active=True)

        row = _row()
        assert "rotated" not in row.secret_key
        assert store.get_secret_for_server_use("paystack") == "sk_test_rotated5678"

    def test_creates_row_for_new_gateway(self, seed_data):
        store = SettingsStore()
        store.upsert("flutterwave", seed_data["admin"], public_key="FLWPUBK-1",
                     secret_key="FLWSECK-abcd", is_active=False)

        row = PaymentGatewaySettings.query.filter_by(name="flutterwave").first()
        assert row is not None
        assert row.is_active is False

    def test_upsert_writes_audit_event(self, seed_data):
        SettingsStore().upsert("paystack", seed_data["admin"], public_key="pk_test_x",
                               secret_key="sk_test_new0000", is_active=False)

        event = AuditEvent.query.filter_by(action="payment_settings.updated").first()
        assert event is not None
        assert event.actor_user_id == seed_data["admin_id"]
        assert event.metadata_["secret_changed"] is True
        assert event.metadata_["is_active"] is False
        assert "sk_test_new0000" not in str(event.metadata_)

    def test_non_admin_cannot_upsert(self, seed_data, gateway_secret):
        with pytest.raises(PermissionDenied):
            SettingsStore().upsert("paystack", seed_data["buyer"], public_key="pk",
                                   secret_key="sk_test_evil", is_active=True)
        assert SettingsStore().get_secret_for_server_use("paystack") == gateway_secret


class TestServerSecret:

    def test_inactive_gateway_not_configured(self, seed_data, gateway_secret):
        _row().is_active = False
        db.session.commit()

        store = SettingsStore()
        with pytest.raises(GatewayNotConfigured):
            store.get_secret_for_server_use("paystack")
        assert store.get_secret_for_server_use("paystack", require_active=False) == gateway_secret

    def test_missing_gateway_not_configured(self, seed_data):
        with pytest.raises(GatewayNotConfigured):
            SettingsStore().get_secret_for_server_use("flutterwave")

    def test_undecryptable_secret_raises(self, seed_data):
        _row().secret_key = "not-a-valid-blob"
        db.session.commit()
        with pytest.raises(DecryptionError):
            SettingsStore().get_secret_for_server_use("paystack")

    def test_public_key(self, seed_data):
        assert SettingsStore().get_public_key("paystack").startswith("pk_test_")

    def test_public_key_inactive(self, seed_data):
        _row().is_active = False
        db.session.commit()
        with pytest.raises(GatewayNotConfigured):
            SettingsStore().get_public_key("paystack")
