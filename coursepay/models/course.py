"""Course model.

Only the fields the purchase flow reads. price is stored in the display
currency's major unit (e.g. naira) as an exact decimal; conversion to the
processor's minor unit happens at checkout time.
"""

import uuid

from coursepay.extensions import db


class Course(db.Model):
    __tablename__ = "courses"

    STATUSES = ["draft", "published", "archived"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="NGN")
    status = db.Column(
        db.String(20), nullable=False, default="draft"
    )  # draft | published | archived
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    enrollments = db.relationship(
        "Enrollment", back_populates="course", lazy="dynamic"
    )

    @property
    def is_purchasable(self):
        return self.status == "published"

    def __repr__(self):
        return f"<Course {self.slug} ({self.status})>"
