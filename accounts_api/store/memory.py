"""In-memory store backed by the JSON fixtures. Nothing survives a restart."""
import threading
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from accounts_api.exceptions import NotFoundError
from accounts_api.schemas import Account, Transaction, TransactionDraft, User
from accounts_api.store.base import AccountStore, build_transaction, utcnow
from accounts_api.store.fixtures import load_fixtures


class InMemoryAccountStore(AccountStore):
    """
    Account store holding the fixture collections in process memory.

    Lookups are linear scans over small lists. All writes go through a
    single re-entrant lock so a ledger insert and its balance update are
    never observed half-applied.
    """

    def __init__(self, fixtures_dir: Path):
        self.fixtures_dir = fixtures_dir
        self._accounts: list[Account] = []
        self._users: list[User] = []
        self._transactions: list[Transaction] = []
        self._terms: dict[str, Any] = {}
        self._lock = threading.RLock()

    def load(self) -> None:
        fixtures = load_fixtures(self.fixtures_dir)
        with self._lock:
            self._accounts = fixtures.accounts
            self._users = fixtures.users
            self._transactions = fixtures.transactions
            self._terms = fixtures.terms

    # Users

    def get_user_by_username(self, username: str) -> Optional[User]:
        user = next((u for u in self._users if u.username == username), None)
        return user.model_copy(deep=True) if user else None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        user = next((u for u in self._users if u.id == user_id), None)
        return user.model_copy(deep=True) if user else None

    # Accounts

    def _find_account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self._accounts if a.id == account_id), None)

    def get_account_by_id(self, account_id: str) -> Optional[Account]:
        account = self._find_account(account_id)
        return account.model_copy() if account else None

    def get_accounts_by_customer(self, customer_id: str) -> list[Account]:
        return [a.model_copy() for a in self._accounts if a.customer_id == customer_id]

    def update_account_balance(self, account_id: str, new_balance: Decimal) -> bool:
        with self._lock:
            account = self._find_account(account_id)
            if account is None:
                return False
            account.balance = new_balance
            account.updated_at = utcnow()
            return True

    # Ledger

    def _filter(self, account_id: str, type: Optional[str]) -> list[Transaction]:
        return [
            t for t in self._transactions
            if t.account_id == account_id and (type is None or t.type == type)
        ]

    def get_transactions_by_account(
        self,
        account_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        type: Optional[str] = None,
    ) -> list[Transaction]:
        # sorted() is stable, so records sharing a timestamp keep ledger order
        transactions = sorted(
            self._filter(account_id, type),
            key=lambda t: t.timestamp,
            reverse=True,
        )
        if offset:
            transactions = transactions[offset:]
        if limit:
            transactions = transactions[:limit]
        return transactions

    def count_transactions(self, account_id: str, type: Optional[str] = None) -> int:
        return len(self._filter(account_id, type))

    def add_transaction(self, draft: TransactionDraft) -> Transaction:
        transaction = build_transaction(draft)
        with self._lock:
            self._transactions.insert(0, transaction)
        return transaction

    def post_transaction(self, draft: TransactionDraft) -> Transaction:
        with self._lock:
            transaction = self.add_transaction(draft)
            if not self.update_account_balance(draft.account_id, draft.balance_after):
                self._transactions.remove(transaction)
                raise NotFoundError(
                    "Account not found",
                    f"Account with ID {draft.account_id} does not exist",
                )
            return transaction

    # Terms

    def get_terms(self) -> dict[str, Any]:
        return self._terms
