"""Payment model (local record of verified processor transactions).

Written by the webhook receiver after the transaction has been re-verified
with the processor. reference is unique, so a replayed webhook never
records the same payment twice. Used by the admin payments list.
"""

import uuid

from coursepay.extensions import db


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    reference = db.Column(db.String(255), unique=True, nullable=False)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id"), nullable=True
    )
    amount_minor = db.Column(db.BigInteger, nullable=False)  # kobo / cents
    currency = db.Column(db.String(3), nullable=False)
    status = db.Column(db.String(50), nullable=False)  # processor status, e.g. "success"
    channel = db.Column(db.String(50), nullable=True)  # card | bank | ussd ...
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="payments")
    course = db.relationship("Course")

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.reference,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "amount_minor": self.amount_minor,
            "currency": self.currency,
            "status": self.status,
            "channel": self.channel,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }

    def __repr__(self):
        return f"<Payment {self.reference} ({self.status})>"
