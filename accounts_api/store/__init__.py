"""Account stores: in-memory fixtures or a SQL database seeded from them."""
from accounts_api.config import Settings
from accounts_api.store.base import AccountStore
from accounts_api.store.memory import InMemoryAccountStore


def create_store(settings: Settings) -> AccountStore:
    """Build the store selected by ``settings.storage_backend`` (not yet loaded)."""
    if settings.storage_backend == "database":
        from accounts_api.database import create_db_engine
        from accounts_api.store.sql import SqlAccountStore

        return SqlAccountStore(create_db_engine(settings.database_url), settings.fixtures_dir)
    return InMemoryAccountStore(settings.fixtures_dir)


__all__ = ["AccountStore", "InMemoryAccountStore", "create_store"]
