"""Service layer for the consumer accounts API."""
from accounts_api.services.authorization import (
    AuthorizationStrategy,
    DelegatedPolicyStrategy,
    LocalTokenStrategy,
    create_strategy,
)
from accounts_api.services.policy_client import PolicyClient
from accounts_api.services.transactions import TransactionService

__all__ = [
    "AuthorizationStrategy",
    "DelegatedPolicyStrategy",
    "LocalTokenStrategy",
    "PolicyClient",
    "TransactionService",
    "create_strategy",
]
