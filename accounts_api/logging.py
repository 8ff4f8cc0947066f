"""
Structured JSON logging.

Every entry carries ``timestamp``, ``level``, ``logger`` and ``event`` (the
first positional argument). Inside a request the middleware adds
``request_id`` and, once the caller is authenticated, ``user_id``.
"""
import logging
import sys
import uuid
from contextvars import ContextVar
from decimal import Decimal
from typing import Any, Optional

import structlog

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="")


def add_request_context(
    logger: structlog.typing.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if request_id_ctx.get():
        event_dict["request_id"] = request_id_ctx.get()
    if user_id_ctx.get():
        event_dict["user_id"] = user_id_ctx.get()
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through the stdlib root logger as one JSON object per line."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            add_request_context,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(request_id: str) -> None:
    request_id_ctx.set(request_id)


def set_user_context(user_id: str) -> None:
    """Attach the authenticated user to the current request's log entries."""
    user_id_ctx.set(user_id)


def clear_request_context() -> None:
    request_id_ctx.set("")
    user_id_ctx.set("")


def generate_request_id() -> str:
    return str(uuid.uuid4())


def log_transaction(
    logger: structlog.stdlib.BoundLogger,
    account_id: str,
    transaction_id: str,
    transaction_type: str,
    amount: Decimal,
    balance_after: Decimal,
    employee_id: str,
    duration_ms: float,
) -> None:
    """Log a processed credit/debit with standard fields."""
    logger.info(
        "transaction_processed",
        account_id=account_id,
        transaction_id=transaction_id,
        transaction_type=transaction_type,
        amount=str(amount),
        balance_after=str(balance_after),
        employee_id=employee_id,
        outcome="completed",
        duration_ms=round(duration_ms, 2),
    )
