"""Fixture file loading: the static JSON seed data behind both stores."""
import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter

from accounts_api.logging import get_logger
from accounts_api.schemas import Account, Transaction, User

logger = get_logger(__name__)

T = TypeVar("T")

ACCOUNTS_FILE = "accounts.json"
USERS_FILE = "users.json"
TRANSACTIONS_FILE = "transactions.json"
TERMS_FILE = "terms.json"


@dataclass
class FixtureSet:
    """The four collections read at startup."""
    accounts: list[Account] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    terms: dict[str, Any] = field(default_factory=dict)


def _read(path: Path, adapter: TypeAdapter[T], default: T, parse_float=float) -> T:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"), parse_float=parse_float)
        return adapter.validate_python(raw)
    except (OSError, ValueError) as e:
        # ValueError covers both malformed JSON and pydantic validation errors
        logger.error(
            "fixture_load_failed",
            file=str(path),
            error=str(e),
        )
        return default


def load_fixtures(fixtures_dir: Path) -> FixtureSet:
    """
    Read accounts, users, transactions and terms from ``fixtures_dir``.

    A file that is missing or malformed yields an empty collection so the
    service still starts.
    """
    fixtures = FixtureSet(
        accounts=_read(fixtures_dir / ACCOUNTS_FILE, TypeAdapter(list[Account]), [], parse_float=Decimal),
        users=_read(fixtures_dir / USERS_FILE, TypeAdapter(list[User]), []),
        transactions=_read(fixtures_dir / TRANSACTIONS_FILE, TypeAdapter(list[Transaction]), [], parse_float=Decimal),
        terms=_read(fixtures_dir / TERMS_FILE, TypeAdapter(dict[str, Any]), {}),
    )

    logger.info(
        "fixtures_loaded",
        fixtures_dir=str(fixtures_dir),
        account_count=len(fixtures.accounts),
        user_count=len(fixtures.users),
        transaction_count=len(fixtures.transactions),
    )
    return fixtures
