"""Client for the external policy-decision service."""
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from accounts_api.config import settings
from accounts_api.exceptions import PolicyServiceError
from accounts_api.logging import get_logger
from accounts_api import metrics

logger = get_logger(__name__)

USERS_PATH = "/v1/data/users"
DECISION_PATH = "/v1/data/main/allow"
HEALTH_PATH = "/health"


class PolicyUserEntry(BaseModel):
    """One user record as returned by ``GET /v1/data/users``."""
    token: Optional[str] = None
    role: Optional[str] = None
    permissions: list[str] = []
    active: Optional[bool] = True
    exp: Optional[int] = None  # epoch seconds


class PolicyUsersResult(BaseModel):
    users: dict[str, PolicyUserEntry] = {}


class PolicyUsersResponse(BaseModel):
    result: PolicyUsersResult = PolicyUsersResult()


@dataclass
class PolicyUser:
    """An identity as the policy service knows it."""
    username: str
    role: Optional[str] = None
    permissions: list[str] = field(default_factory=list)
    active: bool = True
    exp: Optional[int] = None  # epoch seconds


class PolicyClient:
    """Client for user lookup and allow/deny decisions against the policy service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the policy client.

        Args:
            base_url: Base URL of the policy service. Defaults to settings.policy_url.
            timeout: Per-request timeout in seconds. Defaults to settings.policy_timeout_seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or settings.policy_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.policy_timeout_seconds
        self.transport = transport

    async def _request(self, operation: str, method: str, path: str, json: Optional[dict] = None) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            PolicyServiceError: On non-2xx responses, timeouts and connection errors
        """
        url = f"{self.base_url}{path}"
        start_time = time.perf_counter()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(method, url, json=json)
                response.raise_for_status()
                data = response.json()

            except httpx.HTTPStatusError as e:
                duration_seconds = time.perf_counter() - start_time
                logger.error(
                    "policy_http_error",
                    operation=operation,
                    status_code=e.response.status_code,
                    duration_ms=round(duration_seconds * 1000, 2),
                    outcome="error",
                )
                metrics.record_policy_request(operation, False, duration_seconds, error_type="http_error")
                raise PolicyServiceError(e.response.status_code, f"Policy service returned {e.response.status_code}")

            except httpx.RequestError as e:
                duration_seconds = time.perf_counter() - start_time
                error_type = "timeout" if isinstance(e, httpx.TimeoutException) else "connection_error"
                logger.error(
                    "policy_request_error",
                    operation=operation,
                    duration_ms=round(duration_seconds * 1000, 2),
                    error=str(e),
                    error_type=error_type,
                    outcome="error",
                )
                metrics.record_policy_request(operation, False, duration_seconds, error_type=error_type)
                raise PolicyServiceError(503, "Policy service unavailable")

            except ValueError as e:
                duration_seconds = time.perf_counter() - start_time
                logger.error("policy_invalid_response", operation=operation, error=str(e))
                metrics.record_policy_request(operation, False, duration_seconds, error_type="invalid_response")
                raise PolicyServiceError(502, "Policy service returned an invalid response")

        duration_seconds = time.perf_counter() - start_time
        logger.info(
            "policy_request_completed",
            operation=operation,
            duration_ms=round(duration_seconds * 1000, 2),
            outcome="success",
        )
        metrics.record_policy_request(operation, True, duration_seconds)
        return data

    async def find_user_by_token(self, token: str) -> Optional[PolicyUser]:
        """
        Resolve a bearer token to the user the policy service holds it for.

        Returns:
            The matching PolicyUser, or None if no user holds the token

        Raises:
            PolicyServiceError: If the policy service cannot be queried or
                answers with a payload of the wrong shape
        """
        data = await self._request("lookup_user", "GET", USERS_PATH)
        try:
            users = PolicyUsersResponse.model_validate(data).result.users
        except ValidationError as e:
            logger.error("policy_invalid_response", operation="lookup_user", error=str(e))
            metrics.POLICY_REQUEST_FAILURES.labels(error_type="invalid_response").inc()
            raise PolicyServiceError(502, "Policy service returned an invalid response")

        for username, entry in users.items():
            if entry.token is not None and entry.token == token:
                return PolicyUser(
                    username=username,
                    role=entry.role,
                    permissions=entry.permissions,
                    active=entry.active is not False,
                    exp=entry.exp,
                )
        return None

    async def decide(self, decision_input: dict[str, Any]) -> bool:
        """
        Ask the policy service whether a request is allowed.

        Returns:
            True only when the service answers ``{"result": true}``

        Raises:
            PolicyServiceError: If the policy service cannot be queried
        """
        data = await self._request("decide", "POST", DECISION_PATH, json={"input": decision_input})
        return isinstance(data, dict) and data.get("result") is True

    async def health_check(self) -> tuple[bool, Optional[str]]:
        """Return (healthy, error message)."""
        try:
            await self._request("health", "GET", HEALTH_PATH)
        except PolicyServiceError as e:
            return False, e.detail
        return True, None
