"""
API tests for the accounts service.

These drive the full FastAPI app through TestClient with a fresh
fixture-backed store per test.
"""
import json
from decimal import Decimal
from unittest.mock import patch

import httpx
from fastapi.testclient import TestClient

from accounts_api.config import Settings
from accounts_api.main import create_app
from accounts_api.services.authorization import DelegatedPolicyStrategy
from accounts_api.services.policy_client import PolicyClient


# =============================================================================
# PUBLIC ENDPOINTS
# =============================================================================

class TestPublicEndpoints:
    """Endpoints that need no token."""

    def test_root_lists_endpoints(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["endpoints"]["accounts"]["creditAccount"] == "POST /accounts/:accountId/credit"
        assert data["authorization"]["strategy"] == "local"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["authorization"]["status"] == "operational"

    def test_status(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        assert response.json()["services"]["accounts"] == "operational"

    def test_metrics(self, client):
        client.get("/")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_options_returns_204(self, client):
        response = client.options("/accounts/acc_001/debit")

        assert response.status_code == 204

    def test_cors_preflight(self, client):
        response = client.options(
            "/accounts/acc_001/debit",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_unknown_route_is_404_envelope(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["success"] is False


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestLogin:
    """Test POST /auth/login."""

    def test_login_success(self, client):
        response = client.post("/auth/login", json={"username": "mjohnson", "password": "password456"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Authentication successful"
        assert data["data"]["user"]["username"] == "mjohnson"
        assert data["data"]["user"]["employeeId"] == "emp_67890"
        assert data["data"]["token"]

    def test_missing_credentials(self, client):
        response = client.post("/auth/login", json={"username": "mjohnson"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Username and password are required"

    def test_wrong_password(self, client):
        response = client.post("/auth/login", json={"username": "mjohnson", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_unknown_user(self, client):
        response = client.post("/auth/login", json={"username": "ghost", "password": "password456"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_inactive_user(self, client):
        response = client.post("/auth/login", json={"username": "slee", "password": "password000"})

        assert response.status_code == 401
        assert response.json()["message"] == "Account is inactive"


class TestVerifyAndLogout:
    """Test GET /auth/verify and POST /auth/logout."""

    def test_verify_valid_token(self, client, manager_headers):
        response = client.get("/auth/verify", headers=manager_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Token is valid"
        assert data["data"]["valid"] is True
        assert data["data"]["user"]["username"] == "mjohnson"

    def test_verify_without_token(self, client):
        response = client.get("/auth/verify")

        assert response.status_code == 401
        assert response.json()["message"] == "Missing or invalid authorization header"

    def test_verify_garbage_token(self, client):
        response = client.get("/auth/verify", headers={"Authorization": "Bearer garbage!"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    def test_logout(self, client, manager_headers):
        response = client.post("/auth/logout", headers=manager_headers)

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Successfully logged out"


# =============================================================================
# ACCOUNTS
# =============================================================================

class TestAccountReads:
    """Test account, balance and customer lookups."""

    def test_get_balance(self, client, manager_headers):
        response = client.get("/accounts/acc_001/balance", headers=manager_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Balance retrieved successfully"
        assert data["data"]["accountId"] == "acc_001"
        assert data["data"]["balance"] == 2500.75
        assert data["data"]["currency"] == "USD"
        assert data["data"]["status"] == "active"

    def test_get_account(self, client, manager_headers):
        response = client.get("/accounts/acc_003", headers=manager_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["customerId"] == "cust_002"
        assert data["balance"] == 750.25

    def test_unknown_account(self, client, manager_headers):
        response = client.get("/accounts/acc_999/balance", headers=manager_headers)

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Account not found"

    def test_missing_header_is_401(self, client):
        response = client.get("/accounts/acc_001/balance")

        assert response.status_code == 401
        assert response.json()["message"] == "Authentication required"

    def test_bad_token_is_401(self, client):
        response = client.get("/accounts/acc_001/balance", headers={"Authorization": "Bearer garbage!"})

        assert response.status_code == 401
        data = response.json()
        assert data["message"] == "Unauthorized"
        assert data["error"] == "Invalid token"

    def test_customer_accounts(self, client, manager_headers):
        response = client.get("/customers/cust_001/accounts", headers=manager_headers)

        assert response.status_code == 200
        assert {a["id"] for a in response.json()["data"]} == {"acc_001", "acc_002"}

    def test_unknown_customer_has_no_accounts(self, client, manager_headers):
        response = client.get("/customers/cust_999/accounts", headers=manager_headers)

        assert response.status_code == 200
        assert response.json()["data"] == []


class TestCreditDebitFlow:
    """Login, read a balance, credit, then see the credit in history."""

    def test_credit_then_history(self, client, manager_headers):
        balance = client.get("/accounts/acc_001/balance", headers=manager_headers)
        assert balance.json()["data"]["balance"] == 2500.75

        response = client.post(
            "/accounts/acc_001/credit",
            json={"amount": 250.00, "description": "Cash deposit"},
            headers=manager_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Credit processed successfully"
        result = data["data"]
        assert result["success"] is True
        assert result["message"] == "Credit transaction completed successfully"
        assert result["newBalance"] == 2750.75
        assert result["transaction"]["type"] == "credit"
        assert result["transaction"]["amount"] == 250.0
        assert result["transaction"]["balanceAfter"] == 2750.75
        assert result["transaction"]["employeeId"] == "emp_67890"
        assert result["transaction"]["reference"].startswith("CRD")

        history = client.get("/accounts/acc_001/transactions?limit=1", headers=manager_headers)

        assert history.status_code == 200
        page = history.json()["data"]
        assert len(page["transactions"]) == 1
        assert page["transactions"][0]["id"] == result["transaction"]["id"]
        assert page["pagination"] == {"page": 1, "limit": 1, "hasMore": True}

    def test_debit(self, client, manager_headers, store):
        response = client.post(
            "/accounts/acc_004/debit",
            json={"amount": 25.5, "description": "Cash withdrawal", "reference": "W-1"},
            headers=manager_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Debit processed successfully"
        assert data["data"]["newBalance"] == 100.0
        assert data["data"]["transaction"]["reference"] == "W-1"
        assert store.get_account_by_id("acc_004").balance == Decimal("100.00")

    def test_body_employee_id_is_not_recorded(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_002/credit",
            json={"amount": 10, "description": "Deposit", "employeeId": "emp_spoofed"},
            headers=manager_headers,
        )

        assert response.json()["data"]["transaction"]["employeeId"] == "emp_67890"

    def test_insufficient_funds(self, client, manager_headers, store):
        response = client.post(
            "/accounts/acc_004/debit",
            json={"amount": 500, "description": "Too much"},
            headers=manager_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient funds"
        assert store.get_account_by_id("acc_004").balance == Decimal("125.50")

    def test_frozen_account(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_006/credit",
            json={"amount": 10, "description": "Deposit"},
            headers=manager_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Account is frozen"

    def test_zero_amount(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_001/debit",
            json={"amount": 0, "description": "Nothing"},
            headers=manager_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid amount"

    def test_missing_description(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_001/credit",
            json={"amount": 10},
            headers=manager_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Description is required"

    def test_non_numeric_amount(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_001/credit",
            json={"amount": "lots", "description": "Deposit"},
            headers=manager_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request"

    def test_unknown_account(self, client, manager_headers):
        response = client.post(
            "/accounts/acc_999/credit",
            json={"amount": 10, "description": "Deposit"},
            headers=manager_headers,
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Account not found"

    def test_representative_cannot_debit(self, client, rep_headers, store):
        response = client.post(
            "/accounts/acc_001/debit",
            json={"amount": 10, "description": "Withdrawal"},
            headers=rep_headers,
        )

        assert response.status_code == 403
        data = response.json()
        assert data["message"] == "Insufficient permissions"
        assert data["error"] == "User does not have basic_operations permission"
        assert store.get_account_by_id("acc_001").balance == Decimal("2500.75")

    def test_representative_can_read(self, client, rep_headers):
        response = client.get("/accounts/acc_001/balance", headers=rep_headers)

        assert response.status_code == 200


class TestTransactionHistory:
    """Test GET /accounts/{id}/transactions paging and filters."""

    def test_default_page(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions", headers=manager_headers)

        assert response.status_code == 200
        page = response.json()["data"]
        assert [t["id"] for t in page["transactions"]][:2] == ["txn_007", "txn_006"]
        assert page["pagination"] == {"page": 1, "limit": 10, "hasMore": False}

    def test_second_page(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions?page=2&limit=5", headers=manager_headers)

        page = response.json()["data"]
        assert [t["id"] for t in page["transactions"]] == ["txn_002", "txn_001"]
        assert page["pagination"]["hasMore"] is False

    def test_exact_page_boundary_has_no_more(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions?limit=7", headers=manager_headers)

        assert response.json()["data"]["pagination"]["hasMore"] is False

    def test_type_filter(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions?type=debit", headers=manager_headers)

        transactions = response.json()["data"]["transactions"]
        assert transactions and all(t["type"] == "debit" for t in transactions)

    def test_out_of_range_paging_falls_back(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions?page=0&limit=1000", headers=manager_headers)

        pagination = response.json()["data"]["pagination"]
        assert pagination["page"] == 1
        assert pagination["limit"] == 100

    def test_non_integer_page(self, client, manager_headers):
        response = client.get("/accounts/acc_001/transactions?page=abc", headers=manager_headers)

        assert response.status_code == 400

    def test_empty_history(self, client, manager_headers):
        response = client.get("/accounts/acc_005/transactions", headers=manager_headers)

        page = response.json()["data"]
        assert page["transactions"] == []
        assert page["pagination"]["hasMore"] is False


# =============================================================================
# TERMS
# =============================================================================

class TestTerms:
    """Test the terms document routes."""

    def test_all_terms(self, client, rep_headers):
        response = client.get("/terms", headers=rep_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Terms and conditions retrieved successfully"
        assert "general_terms" in data["data"]

    def test_transaction_limits(self, client, rep_headers):
        response = client.get("/terms/transaction-limits", headers=rep_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Transaction limits retrieved successfully"

    def test_employee_procedures(self, client, rep_headers):
        response = client.get("/terms/employee-procedures", headers=rep_headers)

        sections = response.json()["data"]["sections"]
        assert sections["transaction_processing"]["manual_override_limit"] == 1000.0

    def test_unknown_section(self, client, rep_headers):
        response = client.get("/terms/pirate-code", headers=rep_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Terms section not found"

    def test_terms_require_token(self, client):
        response = client.get("/terms")

        assert response.status_code == 401


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestUnexpectedErrors:
    """Unhandled exceptions become a generic 500 envelope."""

    def test_store_failure_is_500(self, store, manager_headers):
        client = TestClient(create_app(Settings(auth_strategy="local"), store=store), raise_server_exceptions=False)

        with patch.object(store, "get_account_by_id", side_effect=RuntimeError("disk on fire")):
            response = client.get("/accounts/acc_001/balance", headers=manager_headers)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Internal server error"
        assert "disk on fire" not in response.text


# =============================================================================
# DELEGATED AUTHORIZATION
# =============================================================================

def policy_handler(allow_paths=()):
    """Fake policy service: knows mjohnson, allows only ``allow_paths``."""
    users = {
        "mjohnson": {
            "token": "mjohnson_token_456",
            "role": "manager",
            "permissions": ["view_accounts", "view_transactions", "basic_operations"],
            "active": True,
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/data/users":
            return httpx.Response(200, json={"result": {"users": users}})
        if request.url.path == "/v1/data/main/allow":
            path = json.loads(request.content)["input"]["request"]["http"]["path"]
            return httpx.Response(200, json={"result": path in allow_paths})
        return httpx.Response(200, json={})

    return handler


def delegated_client(store, handler) -> TestClient:
    client = PolicyClient("http://policy.test", timeout=1.0, transport=httpx.MockTransport(handler))
    app = create_app(
        Settings(auth_strategy="delegated", policy_url="http://policy.test"),
        store=store,
        strategy=DelegatedPolicyStrategy(store, client),
    )
    return TestClient(app)


class TestDelegatedApi:
    """Route behaviour under the delegated strategy."""

    def test_login_returns_policy_token(self, store):
        client = delegated_client(store, policy_handler())

        response = client.post("/auth/login", json={"username": "mjohnson", "password": "password456"})

        assert response.json()["data"]["token"] == "mjohnson_token_456"

    def test_allowed_request(self, store):
        client = delegated_client(store, policy_handler(allow_paths=("/accounts/acc_001/balance",)))

        response = client.get(
            "/accounts/acc_001/balance",
            headers={"Authorization": "Bearer mjohnson_token_456"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["balance"] == 2500.75

    def test_denied_request_is_403(self, store):
        client = delegated_client(store, policy_handler())

        response = client.get(
            "/accounts/acc_001/balance",
            headers={"Authorization": "Bearer mjohnson_token_456"},
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Access denied"

    def test_unknown_token_is_401(self, store):
        client = delegated_client(store, policy_handler())

        response = client.get("/accounts/acc_001/balance", headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401

    def test_policy_outage_fails_closed(self, store):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = delegated_client(store, handler)

        response = client.get(
            "/accounts/acc_001/balance",
            headers={"Authorization": "Bearer mjohnson_token_456"},
        )
        health = client.get("/health")

        assert response.status_code == 401
        assert response.json()["error"] == "Token validation service unavailable"
        assert health.json()["status"] == "degraded"

    def test_malformed_policy_answer_is_401_not_500(self, store):
        def handler(request):
            if request.url.path == "/v1/data/users":
                return httpx.Response(200, json={"result": {"users": [{"token": "mjohnson_token_456"}]}})
            return httpx.Response(200, json={"result": True})

        client = delegated_client(store, handler)
        client = TestClient(client.app, raise_server_exceptions=False)

        response = client.get(
            "/accounts/acc_001/balance",
            headers={"Authorization": "Bearer mjohnson_token_456"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Token validation service unavailable"


class TestMoneyRounding:
    """Sub-cent amounts are rounded before the balance is computed."""

    def test_response_matches_stored_balance(self, client, manager_headers, store):
        response = client.post(
            "/accounts/acc_001/credit",
            json={"amount": 10.006, "description": "Deposit"},
            headers=manager_headers,
        )

        result = response.json()["data"]
        assert result["transaction"]["amount"] == 10.01
        assert result["newBalance"] == 2510.76
        assert store.get_account_by_id("acc_001").balance == Decimal("2510.76")
