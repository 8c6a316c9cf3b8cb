# lessonbook/core/exceptions.py
"""
Domain exceptions for the slot, hold and availability services.

Services raise these; the API layer turns them into JSON error bodies
(``{"error": ..., "code": ...}``) with the matching status code.
"""
from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__.replace("Exception", "")
        self.details = details or {}
        super().__init__(self.message)

    def to_response_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(DomainException):
    """Raised when input is well-formed JSON but breaks a business rule."""

    status_code = status.HTTP_400_BAD_REQUEST


class SlotStartedException(ValidationException):
    """Raised when trying to hold a slot whose start time has already passed."""

    def __init__(self, message: str = "This slot has already started. Please pick another time.", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when the current state of a resource does not allow the transition."""

    status_code = status.HTTP_409_CONFLICT


class HoldExpiredException(ConflictException):
    """Raised when confirming a booking after the hold has run out."""

    def __init__(self, message: str = "Hold expired. Please pick the slot again.", **kwargs):
        super().__init__(message, **kwargs)


class UnauthorizedException(DomainException):
    """Raised when there is no valid session."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller's role or ownership does not permit the action."""

    status_code = status.HTTP_403_FORBIDDEN
