# app/common/exceptions.py
# ===========================
# Domain exceptions raised by services and mapped to HTTP responses in main.py
# ===========================


class ServiceError(Exception):
    """Base exception for service-layer failures."""
    status_code = 400

    def __init__(self, detail: str = "Request failed"):
        super().__init__(detail)
        self.detail = detail


class BadRequestError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    """Bad credentials or an invalid token. Messages stay vague."""
    status_code = 401

    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(detail)


class PermissionDeniedError(ServiceError):
    status_code = 403

    def __init__(self, detail: str = "You are not allowed to perform this action"):
        super().__init__(detail)


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class EventFullError(BadRequestError):
    """Raised when accepting a participant would exceed max_participants."""

    def __init__(self, detail: str = "Event has reached the maximum number of participants"):
        super().__init__(detail)
