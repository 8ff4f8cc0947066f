"""SQLAlchemy-backed account store, seeded from the fixtures on first load."""
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from accounts_api.database import Base, create_session_factory
from accounts_api.exceptions import NotFoundError
from accounts_api.logging import get_logger
from accounts_api.models import AccountRow, TransactionRow, UserRow
from accounts_api.schemas import Account, Transaction, TransactionDraft, User
from accounts_api.store.base import AccountStore, build_transaction, utcnow
from accounts_api.store.fixtures import load_fixtures

logger = get_logger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        customer_id=row.customer_id,
        account_number=row.account_number,
        account_type=row.account_type,
        balance=row.balance,
        currency=row.currency,
        status=row.status,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        employee_id=row.employee_id,
        username=row.username,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        department=row.department,
        role=row.role,
        permissions=list(row.permissions or []),
        is_active=row.is_active,
        last_login=_aware(row.last_login),
        created_at=_aware(row.created_at),
    )


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        account_id=row.account_id,
        type=row.type,
        amount=row.amount,
        currency=row.currency,
        description=row.description,
        reference=row.reference,
        status=row.status,
        initiated_by=row.initiated_by,
        employee_id=row.employee_id,
        timestamp=_aware(row.timestamp),
        balance_after=row.balance_after,
    )


def _transaction_row(transaction: Transaction) -> TransactionRow:
    return TransactionRow(**transaction.model_dump())


class SqlAccountStore(AccountStore):
    """
    Account store persisted through SQLAlchemy.

    ``post_transaction`` runs inside one database transaction with the
    account row locked, so the ledger insert and the balance update commit
    or roll back together.
    """

    def __init__(self, engine: Engine, fixtures_dir: Path, session_factory: Optional[sessionmaker] = None):
        self.engine = engine
        self.fixtures_dir = fixtures_dir
        self.session_factory = session_factory or create_session_factory(engine)
        self._terms: dict[str, Any] = {}

    def load(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        fixtures = load_fixtures(self.fixtures_dir)
        self._terms = fixtures.terms

        with self.session_factory() as session, session.begin():
            if session.scalar(select(func.count()).select_from(AccountRow)):
                logger.info("database_already_seeded")
                return

            session.add_all(AccountRow(**a.model_dump()) for a in fixtures.accounts)
            session.add_all(UserRow(**u.model_dump()) for u in fixtures.users)
            session.flush()
            session.add_all(_transaction_row(t) for t in fixtures.transactions)

        logger.info(
            "database_seeded",
            account_count=len(fixtures.accounts),
            user_count=len(fixtures.users),
            transaction_count=len(fixtures.transactions),
        )

    # Users

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self.session_factory() as session:
            row = session.scalar(select(UserRow).where(UserRow.username == username))
            return _to_user(row) if row else None

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self.session_factory() as session:
            row = session.get(UserRow, user_id)
            return _to_user(row) if row else None

    # Accounts

    def get_account_by_id(self, account_id: str) -> Optional[Account]:
        with self.session_factory() as session:
            row = session.get(AccountRow, account_id)
            return _to_account(row) if row else None

    def get_accounts_by_customer(self, customer_id: str) -> list[Account]:
        with self.session_factory() as session:
            rows = session.scalars(
                select(AccountRow)
                .where(AccountRow.customer_id == customer_id)
                .order_by(AccountRow.id)
            )
            return [_to_account(row) for row in rows]

    def _set_balance(self, session: Session, account_id: str, new_balance: Decimal) -> bool:
        row = session.scalar(
            select(AccountRow).where(AccountRow.id == account_id).with_for_update()
        )
        if row is None:
            return False
        row.balance = new_balance
        row.updated_at = utcnow()
        return True

    def update_account_balance(self, account_id: str, new_balance: Decimal) -> bool:
        with self.session_factory() as session, session.begin():
            return self._set_balance(session, account_id, new_balance)

    # Ledger

    def _ledger_query(self, account_id: str, type: Optional[str]):
        query = select(TransactionRow).where(TransactionRow.account_id == account_id)
        if type is not None:
            query = query.where(TransactionRow.type == type)
        return query

    def get_transactions_by_account(
        self,
        account_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        type: Optional[str] = None,
    ) -> list[Transaction]:
        query = self._ledger_query(account_id, type).order_by(TransactionRow.timestamp.desc())
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)

        with self.session_factory() as session:
            return [_to_transaction(row) for row in session.scalars(query)]

    def count_transactions(self, account_id: str, type: Optional[str] = None) -> int:
        query = select(func.count()).select_from(
            self._ledger_query(account_id, type).subquery()
        )
        with self.session_factory() as session:
            return session.scalar(query) or 0

    def add_transaction(self, draft: TransactionDraft) -> Transaction:
        transaction = build_transaction(draft)
        with self.session_factory() as session, session.begin():
            session.add(_transaction_row(transaction))
        return transaction

    def post_transaction(self, draft: TransactionDraft) -> Transaction:
        transaction = build_transaction(draft)
        with self.session_factory() as session, session.begin():
            if not self._set_balance(session, draft.account_id, draft.balance_after):
                raise NotFoundError(
                    "Account not found",
                    f"Account with ID {draft.account_id} does not exist",
                )
            session.add(_transaction_row(transaction))
        return transaction

    # Terms

    def get_terms(self) -> dict[str, Any]:
        return self._terms
