from typing import Optional


class VisitorPassError(Exception):
    """Base class for every recoverable error raised by the gateway."""

    message = "Visitor pass operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class PassValidationError(VisitorPassError):
    message = "Invalid input"


class PassNotFound(VisitorPassError):
    message = "Visitor pass not found"


class NotAuthenticated(VisitorPassError):
    message = "Please login again"


class QREncodeError(VisitorPassError):
    message = "Could not generate pass. Please try again."


class InvalidPassPayload(VisitorPassError):
    message = "Not a visitor pass QR code"


class BackendUnavailable(VisitorPassError):
    message = "Backend unreachable"


class BackendError(VisitorPassError):
    """Non-2xx answer from the community backend."""

    message = "request failed"

    def __init__(self, message: Optional[str] = None, status_code: int = 502, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self):
        return f"{self.message} (status {self.status_code})"
