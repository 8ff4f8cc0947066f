"""Transaction service: posts credits and debits to an account."""
import threading
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from accounts_api import metrics
from accounts_api.exceptions import AccountsApiError, NotFoundError, TransactionRejected
from accounts_api.logging import get_logger, log_transaction
from accounts_api.schemas import Transaction, TransactionDraft, TransactionType
from accounts_api.services.validation import (
    validate_account_status,
    validate_amount,
    validate_description,
    validate_sufficient_funds,
)
from accounts_api.store.base import AccountStore, epoch_millis

logger = get_logger(__name__)

REFERENCE_PREFIXES = {"debit": "DEB", "credit": "CRD"}

CENTS = Decimal("0.01")


def to_cents(amount) -> Decimal:
    """Convert a request amount to a Decimal rounded half-up to whole cents."""
    value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class AccountLocks:
    """Hands out one lock per account id so mutations on an account run one at a time."""

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def for_account(self, account_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(account_id, threading.Lock())


_account_locks = AccountLocks()


@dataclass(frozen=True)
class PostedTransaction:
    """A written ledger entry and the balance it left behind."""
    transaction: Transaction
    new_balance: Decimal


class TransactionService:
    """
    Service for balance-changing operations.

    Each credit or debit:
    1. Rejects a non-positive or non-finite amount
    2. Rejects an empty description
    3. Rejects missing, frozen or closed accounts
    4. Rejects debits the balance cannot cover
    5. Writes the ledger entry and the new balance as one unit

    Validation and the write happen while holding the account's lock, so two
    concurrent debits cannot both pass the funds check on a stale balance.
    """

    def __init__(self, store: AccountStore, locks: Optional[AccountLocks] = None):
        """
        Initialize the transaction service.

        Args:
            store: Account store to read from and write to
            locks: Per-account lock registry (defaults to the process-wide one)
        """
        self.store = store
        self.locks = locks or _account_locks

    def credit(self, account_id: str, amount, description, employee_id: str,
               reference: Optional[str] = None) -> PostedTransaction:
        return self.process(account_id, "credit", amount, description, employee_id, reference)

    def debit(self, account_id: str, amount, description, employee_id: str,
              reference: Optional[str] = None) -> PostedTransaction:
        return self.process(account_id, "debit", amount, description, employee_id, reference)

    def process(
        self,
        account_id: str,
        transaction_type: TransactionType,
        amount,
        description: Optional[str],
        employee_id: str,
        reference: Optional[str] = None,
    ) -> PostedTransaction:
        """
        Apply a credit or debit to an account.

        Args:
            account_id: Target account
            transaction_type: "credit" or "debit"
            amount: Amount to move; rounded half-up to cents, must then be at least 0.01
            description: Free-text description; must not be blank
            employee_id: Employee id of the authorized caller
            reference: Caller reference; generated as DEB/CRD + epoch ms if omitted

        Returns:
            PostedTransaction with the new ledger entry and resulting balance

        Raises:
            TransactionRejected: If any validation step fails (nothing is written)
            NotFoundError: If the account does not exist
        """
        start_time = time.perf_counter()

        try:
            amount = self._check_request(account_id, amount, description)
            with self.locks.for_account(account_id):
                posted = self._apply(account_id, transaction_type, amount, description, employee_id, reference)
        except AccountsApiError as e:
            metrics.record_transaction(transaction_type, completed=False)
            logger.warning(
                "transaction_rejected",
                account_id=account_id,
                transaction_type=transaction_type,
                reason=e.message,
                outcome="rejected",
            )
            raise

        metrics.record_transaction(transaction_type, completed=True, amount=posted.transaction.amount)
        log_transaction(
            logger=logger,
            account_id=account_id,
            transaction_id=posted.transaction.id,
            transaction_type=transaction_type,
            amount=posted.transaction.amount,
            balance_after=posted.new_balance,
            employee_id=employee_id,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        return posted

    def _check_request(self, account_id: str, amount, description: Optional[str]) -> Decimal:
        """
        Checks that need no lock. Returns the amount rounded to cents.

        Unknown accounts are rejected here so no lock is ever created for them.
        """
        if not validate_amount(amount).valid:
            raise TransactionRejected("Invalid amount", "Amount must be greater than 0")

        try:
            amount = to_cents(amount)
        except InvalidOperation:
            raise TransactionRejected("Invalid amount", "Amount is out of range")
        if amount <= 0:
            raise TransactionRejected("Invalid amount", "Amount must be at least 0.01")

        if not validate_description(description).valid:
            raise TransactionRejected("Description is required", "Transaction description cannot be empty")

        if self.store.get_account_by_id(account_id) is None:
            raise NotFoundError("Account not found", f"Account with ID {account_id} does not exist")

        return amount

    def _apply(
        self,
        account_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        employee_id: str,
        reference: Optional[str],
    ) -> PostedTransaction:
        status = validate_account_status(self.store, account_id)
        if not status.valid:
            if status.message == "Account not found":
                raise NotFoundError(status.message, f"Account with ID {account_id} does not exist")
            raise TransactionRejected(status.message, "Account validation failed")

        if transaction_type == "debit":
            funds = validate_sufficient_funds(self.store, account_id, amount)
            if not funds.valid:
                raise TransactionRejected(funds.message, "Insufficient funds for debit transaction")

        account = self.store.get_account_by_id(account_id)
        if transaction_type == "credit":
            new_balance = account.balance + amount
        else:
            new_balance = account.balance - amount

        draft = TransactionDraft(
            account_id=account_id,
            type=transaction_type,
            amount=amount,
            currency=account.currency,
            description=description,
            reference=reference or f"{REFERENCE_PREFIXES[transaction_type]}{epoch_millis()}",
            initiated_by="employee",
            employee_id=employee_id,
            balance_after=new_balance,
        )
        transaction = self.store.post_transaction(draft)

        return PostedTransaction(transaction=transaction, new_balance=new_balance)
