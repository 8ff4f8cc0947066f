"""Error hierarchy for the accounts API.

Every error carries the HTTP status it maps to plus the ``message`` and
``error`` fields of the ``{success: false, message, error}`` envelope.
"""
from typing import Optional


class AccountsApiError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        self.error = error or message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InvalidRequestError(AccountsApiError):
    """Raised for missing or malformed client input."""

    status_code = 400


class TransactionRejected(InvalidRequestError):
    """Raised when a credit or debit fails validation. Nothing was written."""


class AuthenticationError(AccountsApiError):
    """Raised when no usable identity could be established."""

    status_code = 401


class PermissionDeniedError(AccountsApiError):
    """Raised when an identified user lacks the rights for a request."""

    status_code = 403


class NotFoundError(AccountsApiError):
    """Raised when a referenced resource does not exist."""

    status_code = 404


class PolicyServiceError(Exception):
    """Raised when the policy-decision service fails or is unreachable."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Policy service error {status_code}: {detail}")
