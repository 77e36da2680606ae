"""Enrollment model.

One row grants one user access to one course. The (user_id, course_id)
unique constraint is the only concurrency control in the payment pipeline:
whichever writer inserts first wins, every later insert is a no-op.
Rows are created by services.enrollment_service only.
"""

import uuid

from coursepay.extensions import db


class Enrollment(db.Model):
    __tablename__ = "enrollments"
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "course_id", name="uq_enrollments_user_course"
        ),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    course_id = db.Column(
        db.String(36), db.ForeignKey("courses.id"), nullable=False, index=True
    )
    progress_percentage = db.Column(db.Integer, nullable=False, default=0)
    source = db.Column(
        db.String(50), nullable=True
    )  # e.g. "paystack_webhook", "admin"
    reference = db.Column(db.String(255), nullable=True)  # payment reference
    enrolled_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # --- Relationships ---
    user = db.relationship("User", back_populates="enrollments")
    course = db.relationship("Course", back_populates="enrollments")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "progress_percentage": self.progress_percentage,
            "enrolled_at": (
                self.enrolled_at.isoformat() if self.enrolled_at else None
            ),
        }

    def __repr__(self):
        return f"<Enrollment user={self.user_id} course={self.course_id}>"
