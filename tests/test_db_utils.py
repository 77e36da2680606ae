"""Tests for insert_if_absent on dialects without ON CONFLICT support.

SQLite is reported as another dialect so the SAVEPOINT + IntegrityError
path runs against the test database.
"""

from unittest.mock import patch

import pytest

from coursepay.extensions import db
from coursepay.models.audit import AuditEvent
from coursepay.models.enrollment import Enrollment
from coursepay.models.payment import Payment
from coursepay.services.db_utils import insert_if_absent
from coursepay.services.enrollment_service import enroll

DIALECT_PATH = "coursepay.services.db_utils._dialect_name"


@pytest.fixture
def savepoint_dialect():
    with patch(DIALECT_PATH, return_value="mysql"):
        yield


def _enrollment_values(seed_data, row_id):
    return {
        "id": row_id,
        "user_id": seed_data["buyer_id"],
        "course_id": seed_data["course_id"],
        "source": "paystack_webhook",
    }


class TestSavepointFallback:

    def test_first_insert_written(self, seed_data, savepoint_dialect):
        created = insert_if_absent(
            Enrollment, _enrollment_values(seed_data, "row-1"), ("user_id", "course_id")
        )
        db.session.commit()

        assert created is True
        assert Enrollment.query.one().id == "row-1"

    def test_duplicate_returns_false(self, seed_data, savepoint_dialect):
        insert_if_absent(
            Enrollment, _enrollment_values(seed_data, "row-1"), ("user_id", "course_id")
        )
        db.session.commit()

        created = insert_if_absent(
            Enrollment, _enrollment_values(seed_data, "row-2"), ("user_id", "course_id")
        )

        assert created is False
        assert Enrollment.query.count() == 1
        assert Enrollment.query.one().id == "row-1"

    def test_session_usable_after_conflict(self, seed_data, savepoint_dialect):
        """The failed insert only rolls back its savepoint."""
        insert_if_absent(
            Enrollment, _enrollment_values(seed_data, "row-1"), ("user_id", "course_id")
        )
        db.session.add(AuditEvent(action="enrollment.created", metadata_={}))

        insert_if_absent(
            Enrollment, _enrollment_values(seed_data, "row-2"), ("user_id", "course_id")
        )
        db.session.commit()

        assert Enrollment.query.count() == 1
        assert AuditEvent.query.count() == 1

    def test_payment_reference_conflict(self, seed_data, savepoint_dialect):
        values = {
            "reference": "crs.ref.1",
            "user_id": seed_data["buyer_id"],
            "course_id": seed_data["course_id"],
            "amount_minor": 1500000,
            "currency": "NGN",
            "status": "success",
        }

        first = insert_if_absent(Payment, dict(values, id="pay-1"), ("reference",))
        second = insert_if_absent(Payment, dict(values, id="pay-2"), ("reference",))
        db.session.commit()

        assert (first, second) == (True, False)
        assert Payment.query.count() == 1

    def test_enroll_through_savepoint_path(self, seed_data, savepoint_dialect):
        _, created_first = enroll(seed_data["buyer_id"], seed_data["course_id"],
                                  source="paystack_webhook")
        _, created_second = enroll(seed_data["buyer_id"], seed_data["course_id"],
                                   source="poller")
        db.session.commit()

        assert (created_first, created_second) == (True, False)
        assert Enrollment.query.count() == 1
        assert AuditEvent.query.filter_by(action="enrollment.created").count() == 1
