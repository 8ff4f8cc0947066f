"""
EA Financial Consumer Accounts Internal API

A FastAPI service used by bank employees to look up customer accounts,
post credits and debits, review transaction history and read the bank's
terms and procedures.

Storage:
--------
Accounts, employees, the transaction ledger and the terms document are
seeded from JSON fixtures at startup, held either in process memory or in a
SQL database. Nothing else is persisted.

Authorization:
--------------
Every route except the public ones (/, /health, /status, /metrics and CORS
preflight) goes through one configured strategy:

1. local: unsigned base64 tokens decoded in process; any active user passes
2. delegated: identity and allow/deny come from an external policy service,
   and any failure reaching it is a deny

Account routes additionally require a permission string on the user
(view_accounts, view_transactions, basic_operations).
"""
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from accounts_api import metrics
from accounts_api.api import router
from accounts_api.config import Settings, settings as default_settings
from accounts_api.exceptions import AccountsApiError
from accounts_api.logging import (
    configure_logging,
    get_logger,
    set_request_context,
    clear_request_context,
    generate_request_id,
)
from accounts_api.schemas import ErrorResponse
from accounts_api.services.authorization import AuthorizationStrategy, create_strategy
from accounts_api.store import AccountStore, create_store

# Configure structured logging
configure_logging(default_settings.log_level)
logger = get_logger(__name__)

UNLOGGED_PATHS = ("/health", "/metrics")


def _error_response(status_code: int, message: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error).model_dump(),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    app_settings: Settings = app.state.settings
    strategy: AuthorizationStrategy = app.state.strategy

    logger.info(
        "service_starting",
        service_name=app_settings.service_name,
        storage_backend=app_settings.storage_backend,
        auth_strategy=strategy.name,
    )

    dependency = await strategy.health()
    if dependency["status"] != "operational":
        logger.warning(
            "authorization_dependency_unavailable",
            provider=strategy.name,
            error=dependency.get("error"),
        )

    logger.info("service_started", service_name=app_settings.service_name)

    yield

    logger.info("service_stopping", service_name=app_settings.service_name)


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[AccountStore] = None,
    strategy: Optional[AuthorizationStrategy] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        app_settings: Settings to use (defaults to the environment-loaded settings)
        store: A loaded account store; built from settings and loaded if omitted
        strategy: Authorization strategy; built from settings if omitted
    """
    app_settings = app_settings or default_settings

    if store is None:
        store = create_store(app_settings)
        store.load()
    strategy = strategy or create_strategy(app_settings, store)

    app = FastAPI(
        title=app_settings.app_name,
        description="Internal API for consumer account operations",
        version=app_settings.version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.store = store
    app.state.strategy = strategy

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """
        Middleware for request tracing, logging, and metrics.

        Sets up request context with:
        - request_id: Unique identifier for tracing
        - Timing for duration_ms calculation
        - Prometheus metrics collection
        """
        method = request.method
        path = request.url.path

        # Preflight with CORS headers is answered by CORSMiddleware before this point
        if method == "OPTIONS":
            return Response(status_code=204)

        # Skip logging/metrics for health and metrics endpoints
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        # Generate and set request ID
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_context(request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()

        logger.info("request_received", method=method, path=path)

        try:
            response = await call_next(request)

            duration_seconds = time.perf_counter() - start_time

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_seconds * 1000, 2),
            )

            # Label by route template so account ids don't explode cardinality
            route = request.scope.get("route")
            endpoint = getattr(route, "path", path)
            metrics.record_http_request(method, endpoint, response.status_code, duration_seconds)

            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as e:
            duration_seconds = time.perf_counter() - start_time

            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round(duration_seconds * 1000, 2),
                error=str(e),
            )
            metrics.record_http_request(method, path, 500, duration_seconds)

            raise

        finally:
            clear_request_context()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    @app.exception_handler(AccountsApiError)
    async def accounts_api_error_handler(request: Request, exc: AccountsApiError):
        """Handle domain errors with the standard failure envelope."""
        return _error_response(exc.status_code, exc.message, exc.error)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies and parameters are client errors (400)."""
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.warning("request_validation_failed", path=request.url.path, error=details)
        return _error_response(400, "Invalid request", details or "Request validation failed")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, message, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        """Anything unexpected becomes a generic 500; details stay in the logs."""
        logger.exception("unhandled_error", path=request.url.path, error=str(exc))
        return _error_response(500, "Internal server error", "An unexpected error occurred")

    # Include API routes
    app.include_router(router)

    @app.get("/")
    async def root():
        """Service information and endpoint map."""
        return {
            "name": app_settings.app_name,
            "version": app_settings.version,
            "description": "Internal API for consumer account operations",
            "endpoints": {
                "authentication": {
                    "login": "POST /auth/login",
                    "logout": "POST /auth/logout",
                    "verify": "GET /auth/verify",
                },
                "accounts": {
                    "getAccount": "GET /accounts/:accountId",
                    "getBalance": "GET /accounts/:accountId/balance",
                    "debitAccount": "POST /accounts/:accountId/debit",
                    "creditAccount": "POST /accounts/:accountId/credit",
                    "getTransactions": "GET /accounts/:accountId/transactions",
                    "getCustomerAccounts": "GET /customers/:customerId/accounts",
                },
                "terms": {
                    "getAllTerms": "GET /terms",
                    "getGeneralTerms": "GET /terms/general",
                    "getEmployeeProcedures": "GET /terms/employee-procedures",
                    "getRegulatoryDisclosures": "GET /terms/regulatory",
                    "getAccountPolicies": "GET /terms/account-policies",
                    "getTransactionLimits": "GET /terms/transaction-limits",
                },
            },
            "authorization": {
                "strategy": app.state.strategy.name,
                "policy_url": app_settings.policy_url if app.state.strategy.name == "delegated" else None,
            },
            "timestamp": _now(),
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        dependency = await app.state.strategy.health()
        healthy = dependency["status"] == "operational"

        return {
            "status": "healthy" if healthy else "degraded",
            "service": app_settings.service_name,
            "version": app_settings.version,
            "timestamp": _now(),
            "dependencies": {"authorization": dependency},
        }

    @app.get("/status")
    async def status():
        """Per-component operational status."""
        dependency = await app.state.strategy.health()

        return {
            "status": "operational",
            "services": {
                "authentication": "operational",
                "accounts": "operational",
                "terms": "operational",
                "authorization": "operational" if dependency["status"] == "operational" else "degraded",
                "database": f"operational ({app_settings.storage_backend})",
            },
            "authorization_provider": dependency,
            "timestamp": _now(),
        }

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3001)
