"""Account route handlers: lookups, balance, credit/debit and history."""
import time
from typing import Optional

from fastapi import APIRouter, Depends

from accounts_api.api.deps import RequireAccess, get_store, get_transaction_service
from accounts_api.config import settings
from accounts_api.exceptions import NotFoundError
from accounts_api.logging import get_logger
from accounts_api.schemas import (
    Account,
    ApiResponse,
    BalanceData,
    Pagination,
    TransactionPage,
    TransactionRequest,
    TransactionResult,
    TransactionType,
    User,
)
from accounts_api.services.transactions import TransactionService
from accounts_api.store.base import AccountStore

logger = get_logger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])
customers_router = APIRouter(prefix="/customers", tags=["accounts"])

view_accounts = RequireAccess("view_accounts")
view_transactions = RequireAccess("view_transactions")
basic_operations = RequireAccess("basic_operations")


def _get_account_or_404(store: AccountStore, account_id: str) -> Account:
    account = store.get_account_by_id(account_id)
    if account is None:
        logger.warning("account_not_found", account_id=account_id, outcome="not_found")
        raise NotFoundError("Account not found", f"Account with ID {account_id} does not exist")
    return account


@router.get("/{account_id}/balance", response_model=ApiResponse[BalanceData])
async def get_balance(
    account_id: str,
    user: User = Depends(view_accounts),
    store: AccountStore = Depends(get_store),
):
    """Current balance, currency and status of an account."""
    account = _get_account_or_404(store, account_id)

    return ApiResponse[BalanceData](
        message="Balance retrieved successfully",
        data=BalanceData(
            account_id=account.id,
            balance=account.balance,
            currency=account.currency,
            status=account.status,
            last_updated=account.updated_at,
        ),
    )


@router.get("/{account_id}", response_model=ApiResponse[Account])
async def get_account(
    account_id: str,
    user: User = Depends(view_accounts),
    store: AccountStore = Depends(get_store),
):
    """Full account record."""
    account = _get_account_or_404(store, account_id)
    return ApiResponse[Account](message="Account retrieved successfully", data=account)


async def _post_transaction(
    transaction_type: TransactionType,
    account_id: str,
    request_body: TransactionRequest,
    user: User,
    service: TransactionService,
) -> ApiResponse[TransactionResult]:
    start_time = time.perf_counter()

    logger.info(
        f"{transaction_type}_requested",
        account_id=account_id,
        employee_id=user.employee_id,
        requested_by=request_body.employee_id,
    )

    posted = service.process(
        account_id=account_id,
        transaction_type=transaction_type,
        amount=request_body.amount,
        description=request_body.description,
        employee_id=user.employee_id,
        reference=request_body.reference,
    )

    logger.info(
        f"{transaction_type}_completed",
        account_id=account_id,
        transaction_id=posted.transaction.id,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        outcome="success",
    )

    label = transaction_type.capitalize()
    return ApiResponse[TransactionResult](
        message=f"{label} processed successfully",
        data=TransactionResult(
            message=f"{label} transaction completed successfully",
            transaction=posted.transaction,
            new_balance=posted.new_balance,
        ),
    )


@router.post("/{account_id}/debit", response_model=ApiResponse[TransactionResult])
async def debit_account(
    account_id: str,
    request_body: TransactionRequest,
    user: User = Depends(basic_operations),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Debit an account.

    Rejected with 400 for a non-positive amount, a missing description,
    a frozen or closed account, or insufficient funds.
    """
    return await _post_transaction("debit", account_id, request_body, user, service)


@router.post("/{account_id}/credit", response_model=ApiResponse[TransactionResult])
async def credit_account(
    account_id: str,
    request_body: TransactionRequest,
    user: User = Depends(basic_operations),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Credit an account.

    Rejected with 400 for a non-positive amount, a missing description,
    or a frozen or closed account.
    """
    return await _post_transaction("credit", account_id, request_body, user, service)


@router.get("/{account_id}/transactions", response_model=ApiResponse[TransactionPage])
async def get_transactions(
    account_id: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    type: Optional[TransactionType] = None,
    user: User = Depends(view_transactions),
    store: AccountStore = Depends(get_store),
):
    """
    Paginated transaction history, most recent first.

    ``page`` starts at 1. ``limit`` defaults to the configured page size and
    is capped at the configured maximum. ``type`` filters to credits or debits.
    """
    _get_account_or_404(store, account_id)

    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else settings.default_page_size
    limit = min(limit, settings.max_page_size)
    offset = (page - 1) * limit

    transactions = store.get_transactions_by_account(account_id, limit=limit, offset=offset, type=type)
    total = store.count_transactions(account_id, type=type)

    return ApiResponse[TransactionPage](
        message="Transactions retrieved successfully",
        data=TransactionPage(
            transactions=transactions,
            pagination=Pagination(
                page=page,
                limit=limit,
                has_more=offset + len(transactions) < total,
            ),
        ),
    )


@customers_router.get("/{customer_id}/accounts", response_model=ApiResponse[list[Account]])
async def get_customer_accounts(
    customer_id: str,
    user: User = Depends(view_accounts),
    store: AccountStore = Depends(get_store),
):
    """All accounts owned by a customer. An unknown customer has none."""
    accounts = store.get_accounts_by_customer(customer_id)
    return ApiResponse[list[Account]](message="Accounts retrieved successfully", data=accounts)
