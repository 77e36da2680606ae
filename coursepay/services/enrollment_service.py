"""Enrollment service — the single writer of enrollment rows.

enroll() is an atomic insert-if-not-exists on the (user_id, course_id)
unique constraint (see db_utils.insert_if_absent). A concurrent or repeated
call is an EnrollmentConflict internally and returns the existing row with
created=False; it never raises to the caller.
"""

import logging
import uuid

from coursepay.errors import EnrollmentConflict
from coursepay.extensions import db
from coursepay.models.audit import AuditEvent
from coursepay.models.enrollment import Enrollment
from coursepay.services.db_utils import insert_if_absent

logger = logging.getLogger(__name__)


def is_enrolled(user_id, course_id):
    """Point lookup on the (user_id, course_id) key."""
    return (
        db.session.query(Enrollment.id)
        .filter_by(user_id=str(user_id), course_id=str(course_id))
        .first()
        is not None
    )


def get_enrollment(user_id, course_id):
    return Enrollment.query.filter_by(
        user_id=str(user_id), course_id=str(course_id)
    ).first()


def _insert_enrollment(values):
    if not insert_if_absent(Enrollment, values, ("user_id", "course_id")):
        raise EnrollmentConflict()


def enroll(user_id, course_id, source, reference=None):
    """Grant user_id access to course_id exactly once.

    Returns (enrollment, created). Flushes but does not commit, so the
    caller owns the transaction boundary.
    """
    values = {
        "id": str(uuid.uuid4()),
        "user_id": str(user_id),
        "course_id": str(course_id),
        "progress_percentage": 0,
        "source": source,
        "reference": reference,
    }

    try:
        _insert_enrollment(values)
        created = True
    except EnrollmentConflict:
        created = False

    enrollment = get_enrollment(user_id, course_id)

    if not created:
        logger.info(f"Enrollment already exists for user {user_id} and course {course_id}")
        return enrollment, False

    db.session.add(AuditEvent(
        actor_user_id=None,
        action="enrollment.created",
        metadata_={
            "user_id": str(user_id),
            "course_id": str(course_id),
            "source": source,
            "reference": reference,
        },
    ))
    db.session.flush()
    logger.info(
        f"Enrolled user {user_id} into course {course_id} "
        f"(source={source}, ref={reference})"
    )
    return enrollment, True
