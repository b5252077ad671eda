"""Errors raised by the intake pipeline and lifecycle; mapped to HTTP responses in main.py."""
from __future__ import annotations

from typing import Optional


class IntakeError(Exception):
    """Base error carrying the HTTP status and, when known, the offending logical field."""

    status_code: int = 400

    def __init__(self, message: str, field: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        self.field = field
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Response envelope for this error."""
        body: dict = {"success": False, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationFailed(IntakeError):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[dict[str, str]] = None):
        super().__init__(message, field)
        self.errors = errors or {}

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class LoanNotFound(IntakeError):
    status_code = 404

    def __init__(self, message: str = "Loan not found"):
        super().__init__(message, field="loanId")


class ApplicationNotFound(IntakeError):
    status_code = 404

    def __init__(self, message: str = "Application not found"):
        super().__init__(message)


class NotAuthenticated(IntakeError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotAuthorized(IntakeError):
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotificationFailed(IntakeError):
    """The confirmation email for an already saved application could not be sent."""

    status_code = 502

    def __init__(self, message: str, application_number: Optional[str] = None):
        super().__init__(message)
        self.application_number = application_number

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.application_number:
            body["data"] = {"applicationNumber": self.application_number}
        return body
