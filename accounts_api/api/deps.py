"""FastAPI dependencies: the store, the authorization strategy and access guards."""
from typing import Optional

from fastapi import Depends, Request

from accounts_api.exceptions import AuthenticationError, PermissionDeniedError
from accounts_api.logging import set_user_context
from accounts_api.schemas import User
from accounts_api.services.authorization import AuthorizationStrategy
from accounts_api.services.transactions import TransactionService
from accounts_api.store.base import AccountStore


def get_store(request: Request) -> AccountStore:
    return request.app.state.store


def get_strategy(request: Request) -> AuthorizationStrategy:
    return request.app.state.strategy


def get_transaction_service(store: AccountStore = Depends(get_store)) -> TransactionService:
    return TransactionService(store)


class RequireAccess:
    """
    Guard a route with the configured authorization strategy.

    Denials without a resolved identity are 401, denials for a known user
    are 403. With ``permission`` set, the user must also hold that
    permission string.
    """

    def __init__(self, permission: Optional[str] = None):
        self.permission = permission

    async def __call__(
        self,
        request: Request,
        strategy: AuthorizationStrategy = Depends(get_strategy),
    ) -> Optional[User]:
        authorization = request.headers.get("authorization")
        decision = await strategy.authorize(
            request.method,
            request.url.path,
            authorization,
            dict(request.headers),
        )

        if not decision.allowed:
            if decision.user is None:
                raise AuthenticationError(
                    "Unauthorized" if authorization else "Authentication required",
                    decision.error or "Missing authorization header",
                )
            raise PermissionDeniedError("Access denied", decision.error or "Access denied")

        user = decision.user
        if self.permission is None:
            if user is not None:
                set_user_context(user.id)
            return user

        if user is None:
            raise AuthenticationError("Authentication required", "Missing authorization header")
        if self.permission not in user.permissions:
            raise PermissionDeniedError(
                "Insufficient permissions",
                f"User does not have {self.permission} permission",
            )

        set_user_context(user.id)
        return user


async def require_identity(
    request: Request,
    strategy: AuthorizationStrategy = Depends(get_strategy),
) -> User:
    """Resolve the bearer token to an active user, without an authorization decision."""
    result = await strategy.authenticate(request.headers.get("authorization"))
    if not result.authenticated:
        raise AuthenticationError(result.error, "Authentication token rejected")

    set_user_context(result.user.id)
    return result.user
