"""Payment pipeline error taxonomy.

Every error carries a stable ``code`` (used in JSON responses) and the HTTP
status the blueprints answer with. Services raise these; blueprints turn
them into ``{"error": code, "message": ...}`` via ``error_response``.
"""

from flask import jsonify


class PaymentError(Exception):
    code = "payment_error"
    status_code = 500
    default_message = "Payment processing failed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class ItemNotFound(PaymentError):
    code = "item_not_found"
    status_code = 404
    default_message = "Course not found."


class AlreadyEnrolled(PaymentError):
    code = "already_enrolled"
    status_code = 409
    default_message = "You are already enrolled in this course."


class GatewayNotConfigured(PaymentError):
    code = "gateway_not_configured"
    status_code = 503
    default_message = "Payment gateway not configured."


class DecryptionError(PaymentError):
    code = "decryption_error"
    status_code = 500
    default_message = "Stored gateway secret could not be decrypted."


class UpstreamInitiationError(PaymentError):
    code = "upstream_initiation_error"
    status_code = 502
    default_message = "Failed to initialize payment."


class ProcessorUnavailable(PaymentError):
    """Timeout or connection failure talking to the processor. Retryable."""

    code = "processor_unavailable"
    status_code = 503
    default_message = "Payment processor is unreachable. Please try again."


class SignatureInvalid(PaymentError):
    code = "signature_invalid"
    status_code = 400
    default_message = "Invalid signature."


class MetadataMissing(PaymentError):
    code = "metadata_missing"
    status_code = 400
    default_message = "Missing course_id or user_id in metadata."


class UpstreamVerificationFailed(PaymentError):
    code = "upstream_verification_failed"
    status_code = 400
    default_message = "Transaction verification failed."


class InvalidReference(PaymentError):
    code = "invalid_reference"
    status_code = 400
    default_message = "Malformed payment reference."


class PermissionDenied(PaymentError):
    code = "forbidden"
    status_code = 403
    default_message = "Administrator access required."


class EnrollmentConflict(PaymentError):
    """Unique (user, course) violation. Caught inside the enrollment writer."""

    code = "enrollment_conflict"
    status_code = 200
    default_message = "Enrollment already exists."


def error_response(error):
    """Render a PaymentError as a JSON response tuple."""
    return jsonify(error.to_dict()), error.status_code
