"""Pydantic schemas for domain records and request/response validation.

Wire format is camelCase (``accountId``, ``balanceAfter``); Python code uses
snake_case attribute names. Money is held as ``Decimal`` and rendered as a
JSON number.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

AccountType = Literal["checking", "savings"]
AccountStatus = Literal["active", "frozen", "closed"]
TransactionType = Literal["credit", "debit"]
TransactionStatus = Literal["completed", "pending", "failed", "pending_review"]
Initiator = Literal["customer", "employee", "system", "external"]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# DOMAIN RECORDS
# =============================================================================

class Account(CamelModel):
    """A customer deposit account."""
    id: str
    customer_id: str
    account_number: str
    account_type: AccountType
    balance: Money
    currency: str
    status: AccountStatus
    created_at: datetime
    updated_at: datetime


class User(CamelModel):
    """An employee allowed to operate the internal API."""
    id: str
    employee_id: str
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    role: str
    permissions: list[str] = Field(default_factory=list)
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TransactionDraft(CamelModel):
    """Everything a ledger entry needs except id, timestamp and status."""
    account_id: str
    type: TransactionType
    amount: Money
    currency: str
    description: str
    reference: str
    initiated_by: Initiator = "employee"
    employee_id: Optional[str] = None
    balance_after: Money


class Transaction(TransactionDraft):
    """An immutable ledger entry."""
    model_config = ConfigDict(frozen=True)

    id: str
    status: TransactionStatus
    timestamp: datetime


# =============================================================================
# REQUESTS
# =============================================================================

class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: Optional[str] = None
    password: Optional[str] = None


class TransactionRequest(CamelModel):
    """Request body for POST /accounts/{account_id}/credit and /debit."""
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    employee_id: Optional[str] = None


# =============================================================================
# RESPONSES
# =============================================================================

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope shared by every endpoint."""
    success: bool = True
    message: str
    data: Optional[DataT] = None


class ErrorResponse(BaseModel):
    """Failure envelope produced by the exception handlers."""
    success: bool = False
    message: str
    error: str


class LoginData(BaseModel):
    user: User
    token: str


class VerifyData(BaseModel):
    user: User
    valid: bool = True


class LogoutData(BaseModel):
    message: str


class BalanceData(CamelModel):
    """Response data for GET /accounts/{account_id}/balance."""
    account_id: str
    balance: Money
    currency: str
    status: AccountStatus
    last_updated: datetime


class TransactionResult(CamelModel):
    """Response data for a processed credit or debit."""
    success: bool = True
    message: str
    transaction: Transaction
    new_balance: Money


class Pagination(CamelModel):
    page: int
    limit: int
    has_more: bool


class TransactionPage(CamelModel):
    """Response data for GET /accounts/{account_id}/transactions."""
    transactions: list[Transaction]
    pagination: Pagination


TermsDocument = dict[str, Any]
