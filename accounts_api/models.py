"""SQLAlchemy ORM models for the SQL-backed account store."""
from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Numeric, String, Text
)

from accounts_api.database import Base


class AccountRow(Base):
    """A customer deposit account."""
    __tablename__ = "accounts"

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    account_number = Column(String(32), nullable=False, unique=True)
    account_type = Column(String(16), nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class UserRow(Base):
    """An employee user of the internal API."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    employee_id = Column(String(64), nullable=False)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(Text)
    first_name = Column(Text)
    last_name = Column(Text)
    department = Column(Text)
    role = Column(String(64), nullable=False)
    permissions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True))


class TransactionRow(Base):
    """Ledger entry. Rows are inserted, never updated."""
    __tablename__ = "transactions"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), ForeignKey("accounts.id"), nullable=False, index=True)
    type = Column(String(8), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    description = Column(Text, nullable=False)
    reference = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="completed")
    initiated_by = Column(String(16), nullable=False)
    employee_id = Column(String(64))
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    balance_after = Column(Numeric(18, 2), nullable=False)
