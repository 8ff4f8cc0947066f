"""Demo credentials and token encoding.

Passwords are a fixed table and local tokens are unsigned base64 JSON, so
anyone can mint one. Suitable for the demo environment only.
"""
import base64
import binascii
import hmac
import json
import time
from typing import Any, Optional

DEMO_CREDENTIALS: dict[str, str] = {
    "jsmith": "password123",
    "mjohnson": "password456",
    "rbrown": "password789",
    "slee": "password000",
}

# Tokens the demo policy service holds for each user
DEMO_POLICY_TOKENS: dict[str, str] = {
    "jsmith": "jsmith_token_123",
    "mjohnson": "mjohnson_token_456",
    "rbrown": "rbrown_token_789",
    "slee": "slee_token_000",
}

URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def now_millis() -> int:
    return int(time.time() * 1000)


def validate_credentials(username: str, password: str) -> bool:
    expected = DEMO_CREDENTIALS.get(username)
    if expected is None:
        return False
    return hmac.compare_digest(expected.encode(), password.encode())


def encode_local_token(user_id: str, ttl_seconds: int, issued_at_ms: Optional[int] = None) -> str:
    """Build ``base64({"userId", "exp", "iat"})`` with times in epoch milliseconds."""
    iat = issued_at_ms if issued_at_ms is not None else now_millis()
    payload = {"userId": user_id, "exp": iat + ttl_seconds * 1000, "iat": iat}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def decode_local_token(token: str) -> dict[str, Any]:
    """
    Decode a local token payload. No signature is checked.

    Standard and URL-safe alphabets are both accepted, with or without
    ``=`` padding.

    Raises:
        ValueError: If the token is not base64 encoded JSON object
    """
    normalized = token.translate(URLSAFE_TO_STANDARD).rstrip("=")
    normalized += "=" * (-len(normalized) % 4)
    try:
        raw = base64.b64decode(normalized, validate=True)
    except binascii.Error as e:
        raise ValueError("token is not base64") from e

    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("token payload is not an object")
    return payload


def policy_token_for(username: str) -> str:
    """Token the policy service knows ``username`` by."""
    return DEMO_POLICY_TOKENS.get(username) or f"{username}_token_{now_millis()}"
