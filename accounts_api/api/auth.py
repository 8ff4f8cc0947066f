"""Authentication route handlers: login, logout, token verification."""
from fastapi import APIRouter, Depends

from accounts_api import metrics
from accounts_api.api.deps import get_store, get_strategy, require_identity
from accounts_api.exceptions import AuthenticationError, InvalidRequestError
from accounts_api.logging import get_logger
from accounts_api.schemas import ApiResponse, LoginData, LoginRequest, LogoutData, User, VerifyData
from accounts_api.services.authorization import AuthorizationStrategy
from accounts_api.services.credentials import validate_credentials
from accounts_api.store.base import AccountStore

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=ApiResponse[LoginData])
async def login(
    request_body: LoginRequest,
    store: AccountStore = Depends(get_store),
    strategy: AuthorizationStrategy = Depends(get_strategy),
):
    """
    Exchange demo credentials for a bearer token.

    The token format depends on the configured authorization strategy.
    """
    username, password = request_body.username, request_body.password

    if not username or not password:
        metrics.record_login("missing_credentials")
        raise InvalidRequestError("Username and password are required", "Missing credentials")

    user = store.get_user_by_username(username)
    if user is None:
        metrics.record_login("invalid_credentials")
        logger.warning("login_failed", username=username, reason="unknown_user")
        raise AuthenticationError("Invalid credentials", "User not found")

    if not validate_credentials(username, password):
        metrics.record_login("invalid_credentials")
        logger.warning("login_failed", username=username, reason="bad_password")
        raise AuthenticationError("Invalid credentials", "Authentication failed")

    if not user.is_active:
        metrics.record_login("inactive")
        logger.warning("login_failed", username=username, reason="inactive")
        raise AuthenticationError("Account is inactive", "User account disabled")

    token = strategy.issue_token(user)

    metrics.record_login("success")
    logger.info("login_succeeded", username=username, strategy=strategy.name)

    return ApiResponse[LoginData](
        message="Authentication successful",
        data=LoginData(user=user, token=token),
    )


@router.post("/logout", response_model=ApiResponse[LogoutData])
async def logout(user: User = Depends(require_identity)):
    """Acknowledge logout. Tokens are not revoked; the client discards its copy."""
    logger.info("logout", username=user.username)
    return ApiResponse[LogoutData](
        message="Logout successful",
        data=LogoutData(message="Successfully logged out"),
    )


@router.get("/verify", response_model=ApiResponse[VerifyData])
async def verify(user: User = Depends(require_identity)):
    """Confirm the bearer token is valid and return its user."""
    return ApiResponse[VerifyData](
        message="Token is valid",
        data=VerifyData(user=user, valid=True),
    )
