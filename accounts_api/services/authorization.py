"""
Authorization strategies.

A request moves through
``unauthenticated -> token presented -> decoded/invalid -> user found/not found
-> active/inactive -> allowed/denied``. Route handlers only see the final
``AuthorizationDecision``; which strategy produced it is a configuration
choice:

- ``LocalTokenStrategy`` decodes the unsigned base64 token itself and allows
  any active user.
- ``DelegatedPolicyStrategy`` resolves the token through the policy service
  and asks it for an allow/deny verdict. Any failure talking to the service
  is a deny.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from accounts_api import metrics
from accounts_api.config import Settings
from accounts_api.exceptions import PolicyServiceError
from accounts_api.logging import get_logger
from accounts_api.schemas import User
from accounts_api.services.credentials import (
    decode_local_token,
    encode_local_token,
    now_millis,
    policy_token_for,
)
from accounts_api.services.policy_client import PolicyClient
from accounts_api.store.base import AccountStore

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

PUBLIC_ENDPOINTS = (
    ("GET", "/"),
    ("GET", "/health"),
    ("GET", "/status"),
    ("OPTIONS", "*"),
)


def is_public_endpoint(method: str, path: str) -> bool:
    """True for requests that bypass authorization entirely."""
    method = method.upper()
    return any(
        method == public_method and (public_path == "*" or public_path == path)
        for public_method, public_path in PUBLIC_ENDPOINTS
    )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


@dataclass
class AuthResult:
    """Outcome of resolving a bearer token to a user."""
    user: Optional[User] = None
    error: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


@dataclass
class AuthorizationDecision:
    """Allow/deny verdict for one request; ``user`` is set whenever identity was resolved."""
    allowed: bool
    user: Optional[User] = None
    error: Optional[str] = None


class AuthorizationStrategy(ABC):
    """Interface shared by the local and delegated strategies."""

    name: str = ""

    def __init__(self, store: AccountStore):
        self.store = store

    @abstractmethod
    async def authenticate(self, authorization: Optional[str]) -> AuthResult:
        """Resolve the ``Authorization`` header to an active user."""

    @abstractmethod
    async def _decide(
        self,
        method: str,
        path: str,
        authorization: Optional[str],
        headers: dict[str, str],
    ) -> AuthorizationDecision:
        ...

    @abstractmethod
    def issue_token(self, user: User) -> str:
        """Token handed to ``user`` at login."""

    async def authorize(
        self,
        method: str,
        path: str,
        authorization: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> AuthorizationDecision:
        """Decide whether the request may proceed."""
        if is_public_endpoint(method, path):
            metrics.record_authorization(self.name, "public")
            return AuthorizationDecision(allowed=True)

        decision = await self._decide(method.upper(), path, authorization, headers or {})

        if decision.allowed:
            outcome = "allowed"
        elif decision.user is None:
            outcome = "unauthenticated"
        else:
            outcome = "denied"
        metrics.record_authorization(self.name, outcome)

        if not decision.allowed:
            logger.info(
                "authorization_denied",
                strategy=self.name,
                method=method,
                path=path,
                username=decision.user.username if decision.user else None,
                error=decision.error,
                outcome=outcome,
            )
        return decision

    async def health(self) -> dict[str, Any]:
        """Dependency status reported by /health and /status."""
        return {"status": "operational", "provider": self.name}


class LocalTokenStrategy(AuthorizationStrategy):
    """Decode unsigned base64 JSON tokens locally. Any active user is allowed."""

    name = "local"

    def __init__(self, store: AccountStore, token_ttl_seconds: int):
        super().__init__(store)
        self.token_ttl_seconds = token_ttl_seconds

    async def authenticate(self, authorization: Optional[str]) -> AuthResult:
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthResult(error="Missing or invalid authorization header")

        try:
            payload = decode_local_token(token)
        except ValueError:
            return AuthResult(error="Invalid token")

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return AuthResult(error="Invalid token")
        if exp < now_millis():
            return AuthResult(error="Token expired")

        user_id = payload.get("userId")
        user = self.store.get_user_by_id(user_id) if isinstance(user_id, str) else None
        if user is None or not user.is_active:
            return AuthResult(error="Invalid user")

        return AuthResult(user=user)

    async def _decide(self, method, path, authorization, headers) -> AuthorizationDecision:
        result = await self.authenticate(authorization)
        if not result.authenticated:
            return AuthorizationDecision(allowed=False, error=result.error)
        return AuthorizationDecision(allowed=True, user=result.user)

    def issue_token(self, user: User) -> str:
        return encode_local_token(user.id, self.token_ttl_seconds)


class DelegatedPolicyStrategy(AuthorizationStrategy):
    """Resolve identity and obtain allow/deny from the external policy service."""

    name = "delegated"

    def __init__(self, store: AccountStore, client: PolicyClient):
        super().__init__(store)
        self.client = client

    async def authenticate(self, authorization: Optional[str]) -> AuthResult:
        token = extract_bearer_token(authorization)
        if token is None:
            return AuthResult(error="Missing or invalid authorization header")

        try:
            policy_user = await self.client.find_user_by_token(token)
        except PolicyServiceError:
            return AuthResult(error="Token validation service unavailable")

        if policy_user is None:
            return AuthResult(error="Invalid token")
        if policy_user.exp and policy_user.exp * 1000 < now_millis():
            return AuthResult(error="Token expired")

        user = self.store.get_user_by_username(policy_user.username)
        if user is None or not user.is_active or not policy_user.active:
            return AuthResult(error="Invalid user")

        return AuthResult(user=user)

    async def _decide(self, method, path, authorization, headers) -> AuthorizationDecision:
        user = None
        if authorization:
            result = await self.authenticate(authorization)
            if not result.authenticated:
                return AuthorizationDecision(allowed=False, error=result.error)
            user = result.user

        decision_input: dict[str, Any] = {
            "request": {
                "http": {
                    "method": method,
                    "path": path,
                    "headers": headers,
                },
            },
        }
        if user is not None:
            decision_input["user"] = {
                "id": user.id,
                "username": user.username,
                "role": user.role,
                "permissions": user.permissions,
                "isActive": user.is_active,
            }

        try:
            allowed = await self.client.decide(decision_input)
        except PolicyServiceError as e:
            return AuthorizationDecision(allowed=False, user=user, error=e.detail)

        if not allowed:
            return AuthorizationDecision(allowed=False, user=user, error="Access denied")
        return AuthorizationDecision(allowed=True, user=user)

    def issue_token(self, user: User) -> str:
        return policy_token_for(user.username)

    async def health(self) -> dict[str, Any]:
        healthy, error = await self.client.health_check()
        status = {
            "status": "operational" if healthy else "error",
            "provider": self.name,
            "url": self.client.base_url,
        }
        if error:
            status["error"] = error
        return status


def create_strategy(settings: Settings, store: AccountStore) -> AuthorizationStrategy:
    """Build the strategy selected by ``settings.auth_strategy``."""
    if settings.auth_strategy == "delegated":
        return DelegatedPolicyStrategy(
            store,
            PolicyClient(settings.policy_url, settings.policy_timeout_seconds),
        )
    return LocalTokenStrategy(store, settings.token_ttl_seconds)
