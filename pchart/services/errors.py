"""
Domain errors raised by the service layer.

Each error carries a human readable message, a details dict and the HTTP
status the API layer renders it with.
"""
from typing import Dict, Optional


class PChartError(Exception):
    """Base class for all domain errors."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class LockConflictError(PChartError):
    """The production order is locked by a different user."""
    status_code = 423


class InvalidTransitionError(PChartError):
    """Operation or request is not in a state that allows the action."""
    status_code = 409


class DomainValidationError(PChartError):
    """Input violates a business rule (quantities, line number, ...)."""
    status_code = 422


class NotFoundError(PChartError):
    status_code = 404


class PermissionDeniedError(PChartError):
    status_code = 403


class DuplicateError(PChartError):
    """Unique key clash in a catalog."""
    status_code = 409
