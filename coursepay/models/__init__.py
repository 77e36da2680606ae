# Models package — import all models here so Alembic can discover them.

from coursepay.models.user import User  # noqa: F401
from coursepay.models.course import Course  # noqa: F401
from coursepay.models.enrollment import Enrollment  # noqa: F401
from coursepay.models.payment_settings import PaymentGatewaySettings  # noqa: F401
from coursepay.models.payment import Payment  # noqa: F401
from coursepay.models.audit import AuditEvent  # noqa: F401
