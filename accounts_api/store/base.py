"""Repository interface for accounts, employees and the transaction ledger."""
import secrets
import string
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from accounts_api.schemas import Account, Transaction, TransactionDraft, User

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def new_transaction_id() -> str:
    """Generate ``txn_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"txn_{epoch_millis()}_{suffix}"


def build_transaction(draft: TransactionDraft) -> Transaction:
    """Stamp a draft with a fresh id, the current time and ``completed`` status."""
    return Transaction(
        **draft.model_dump(),
        id=new_transaction_id(),
        status="completed",
        timestamp=utcnow(),
    )


class AccountStore(ABC):
    """
    Storage capability used by the services and route handlers.

    Implementations own their records exclusively. Callers receive copies
    and must not hold on to them past the current request.
    """

    @abstractmethod
    def load(self) -> None:
        """Load the fixture collections. Never raises on unreadable fixtures."""

    # Users
    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    # Accounts
    @abstractmethod
    def get_account_by_id(self, account_id: str) -> Optional[Account]:
        ...

    @abstractmethod
    def get_accounts_by_customer(self, customer_id: str) -> list[Account]:
        ...

    @abstractmethod
    def update_account_balance(self, account_id: str, new_balance: Decimal) -> bool:
        """Overwrite the balance and bump ``updated_at``. False if the account is unknown."""

    # Ledger
    @abstractmethod
    def get_transactions_by_account(
        self,
        account_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        type: Optional[str] = None,
    ) -> list[Transaction]:
        """Most recent first; ``offset`` is applied before ``limit``."""

    @abstractmethod
    def count_transactions(self, account_id: str, type: Optional[str] = None) -> int:
        ...

    @abstractmethod
    def add_transaction(self, draft: TransactionDraft) -> Transaction:
        """Append a completed ledger entry at the head of the ledger."""

    @abstractmethod
    def post_transaction(self, draft: TransactionDraft) -> Transaction:
        """
        Record ``draft`` and set the account balance to ``draft.balance_after``
        as one unit: either both writes happen or neither does.

        Raises:
            NotFoundError: If the account does not exist.
        """

    # Terms
    @abstractmethod
    def get_terms(self) -> dict[str, Any]:
        ...
