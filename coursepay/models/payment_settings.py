"""Payment gateway settings model.

One row per gateway name (unique). secret_key holds the AES-GCM blob
produced by crypto_service.SecretCipher, never the cleartext key.
Read and written through services.settings_store only.
"""

import uuid

from coursepay.extensions import db


class PaymentGatewaySettings(db.Model):
    __tablename__ = "payment_gateway_settings"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(50), unique=True, nullable=False)  # e.g. "paystack"
    public_key = db.Column(db.String(255), nullable=True)
    secret_key = db.Column(db.Text, nullable=True)  # encrypted blob (base64)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<PaymentGatewaySettings {self.name} active={self.is_active}>"
