from __future__ import annotations


class DashboardError(Exception):
    """Base class for errors surfaced to the dashboard user."""


class ValidationError(DashboardError, ValueError):
    """Local input failure; raised before any network call."""


class OrderValidationError(ValidationError):
    """Raised when an order draft fails validation."""


class DraftLockedError(ValidationError):
    """Raised when the draft is edited while a request is in flight."""


class AccountSetupError(ValidationError):
    """Raised when an account registration form fails validation."""


class TransportError(DashboardError):
    """REST or streaming channel failure."""


class SubmissionTimeoutError(TransportError):
    """Raised when a verify/confirm round trip gets no response in time."""


class DomainError(DashboardError):
    """Error string returned by the server inside a response."""
