from fastapi import FastAPI
from pydantic import BaseModel

app = FastAPI(title="Mock Policy Server", version="1.0.0")

USERS = {
    "jsmith": {
        "token": "jsmith_token_123",
        "role": "senior_representative",
        "department": "Customer Service",
        "permissions": ["view_accounts", "view_transactions", "basic_operations"],
        "active": True,
    },
    "mjohnson": {
        "token": "mjohnson_token_456",
        "role": "manager",
        "department": "Account Management",
        "permissions": [
            "view_accounts", "view_transactions", "basic_operations",
            "advanced_operations", "approve_transactions", "manage_users",
        ],
        "active": True,
    },
    "rbrown": {
        "token": "rbrown_token_789",
        "role": "representative",
        "department": "Customer Service",
        "permissions": ["view_accounts", "view_transactions"],
        "active": True,
    },
    "slee": {
        "token": "slee_token_000",
        "role": "analyst",
        "department": "Risk Analysis",
        "permissions": ["view_accounts", "view_transactions"],
        "active": False,
    },
}

# (method, path suffix) -> permission; first match wins
RULES = [
    ("POST", "/debit", "basic_operations"),
    ("POST", "/credit", "basic_operations"),
    ("GET", "/transactions", "view_transactions"),
    ("GET", "", "view_accounts"),
]


class DecisionRequest(BaseModel):
    input: dict


@app.get("/health")
def health(): return {}


@app.get("/v1/data/users")
def users(): return {"result": {"users": USERS}}


@app.post("/v1/data/main/allow")
def allow(body: DecisionRequest):
    http = body.input.get("request", {}).get("http", {})
    user = body.input.get("user")
    if not user or not user.get("isActive"):
        return {"result": False}

    method, path = http.get("method"), http.get("path", "")
    if path.startswith("/terms") or path.startswith("/auth"):
        return {"result": True}
    for rule_method, suffix, permission in RULES:
        if method == rule_method and path.endswith(suffix):
            return {"result": permission in user.get("permissions", [])}
    return {"result": False}
