"""Custom exception classes"""

from typing import Any, Optional


class DispatchException(Exception):
    """Base exception for the recommendation service"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(DispatchException):
    """Exception for validation errors (bad coordinates, bad working hours)"""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundException(DispatchException):
    """Exception for resource not found errors"""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class ExternalServiceException(DispatchException):
    """Exception for external service errors"""

    def __init__(self, service: str, message: str, status_code: int = 502):
        full_message = f"External service error ({service}): {message}"
        self.service = service
        super().__init__(full_message, status_code=status_code)


class ProviderTransportException(ExternalServiceException):
    """Distance provider could not be reached or answered with a transient failure"""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__("distance_matrix", message)


class CacheUnavailableException(ExternalServiceException):
    """Cache backend could not be read or written"""

    def __init__(self, message: str):
        super().__init__("cache", message, status_code=503)
