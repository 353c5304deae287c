"""Domain exceptions raised by services.

Each carries the HTTP status and a machine readable code. The API maps them
to ``{"detail": message}`` responses; the chat gateway emits them as
``error {code, message}`` events.
"""


class ServiceError(Exception):
    """Base exception for service layer failures."""

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(ServiceError):
    """Request is well-formed but cannot be honoured."""

    status_code = 400
    code = "bad_request"


class UnauthorizedError(ServiceError):
    """Missing or invalid credentials."""

    status_code = 401
    code = "unauthorized"


class ForbiddenError(ServiceError):
    """Caller does not own or belong to the resource."""

    status_code = 403
    code = "forbidden"


class NotFoundError(ServiceError):
    """Resource does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    """Resource already exists."""

    status_code = 409
    code = "conflict"


class RateLimitedError(ServiceError):
    """Caller exceeded a rate limit."""

    status_code = 429
    code = "rate_limited"


class BadGatewayError(ServiceError):
    """An upstream service (storage, SMS, push) failed."""

    status_code = 502
    code = "bad_gateway"
