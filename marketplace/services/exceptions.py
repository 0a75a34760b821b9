"""
Service-layer errors.

Views and model transitions raise these; ApiErrorMiddleware turns them into
the JSON error envelope, and the HTML views show ``str(error)`` as a message.
"""


class ServiceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message="", details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self):
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(ServiceError):
    status_code = 400
    code = "validation_error"


class InvalidInput(ValidationFailed):
    """Raised by the pricing engine for inputs it cannot price."""


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class Conflict(ServiceError):
    """State-machine guard or uniqueness violation."""

    status_code = 409
    code = "conflict"


class PaymentDeclined(ServiceError):
    status_code = 400
    code = "payment_declined"


class ExternalServiceError(ServiceError):
    status_code = 502
    code = "external_service_error"
