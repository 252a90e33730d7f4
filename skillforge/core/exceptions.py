from typing import List, Optional


class AppException(Exception):
    """Base error translated into the response envelope by the app handlers."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        errors: Optional[List[dict]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.errors = errors
        super().__init__(message)


class ValidationFailed(AppException):
    def __init__(self, message: str = "Validation failed", errors=None):
        super().__init__(message, 400, errors)


class Unauthenticated(AppException):
    def __init__(self, message: str = "Access token required"):
        super().__init__(message, 401)


class Forbidden(AppException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, 403)


class NotFound(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class Conflict(AppException):
    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message, 409)


class UpstreamUnavailable(AppException):
    def __init__(self, message: str = "Upstream service unavailable"):
        super().__init__(message, 502)


class AIServiceUnavailable(UpstreamUnavailable):
    def __init__(self, message: str = "AI service temporarily unavailable"):
        super().__init__(message)
