"""Validation helpers for balance-changing operations.

Each helper returns a ``ValidationResult`` rather than raising so callers
can chain checks and pick the status code themselves.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from accounts_api.store.base import AccountStore


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str


def validate_account_status(store: AccountStore, account_id: str) -> ValidationResult:
    """Check the account exists and is neither frozen nor closed."""
    account = store.get_account_by_id(account_id)

    if account is None:
        return ValidationResult(False, "Account not found")
    if account.status == "frozen":
        return ValidationResult(False, "Account is frozen")
    if account.status == "closed":
        return ValidationResult(False, "Account is closed")

    return ValidationResult(True, "Account is valid")


def validate_sufficient_funds(store: AccountStore, account_id: str, amount: Decimal) -> ValidationResult:
    """
    Check the balance covers ``amount``.

    Status is not checked here; debits must also call
    ``validate_account_status``.
    """
    account = store.get_account_by_id(account_id)

    if account is None:
        return ValidationResult(False, "Account not found")
    if account.balance < amount:
        return ValidationResult(False, "Insufficient funds")

    return ValidationResult(True, "Sufficient funds available")


def validate_amount(amount: Any) -> ValidationResult:
    """Amount must be a finite number strictly greater than zero."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        return ValidationResult(False, "Invalid amount")

    value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    if not value.is_finite() or value <= 0:
        return ValidationResult(False, "Invalid amount")

    return ValidationResult(True, "Amount is valid")


def validate_description(description: Optional[str]) -> ValidationResult:
    if not description or not description.strip():
        return ValidationResult(False, "Description is required")
    return ValidationResult(True, "Description is valid")
