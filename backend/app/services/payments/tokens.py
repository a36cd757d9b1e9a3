"""
Tinkoff Acquiring request signatures

The token is the SHA-256 hex digest of the concatenated values of every
top-level scalar field plus the terminal Password, ordered by key name.
Nested objects (DATA, Receipt) and the Token itself are excluded.
"""
import hashlib
import hmac
from typing import Any, Dict, Mapping


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def generate_token(params: Mapping[str, Any], password: str) -> str:
    """
    Sign a request or notification payload

    Args:
        params: Payload fields
        password: Terminal password

    Returns:
        Hex-encoded SHA-256 token
    """
    values: Dict[str, str] = {
        key: _stringify(value)
        for key, value in params.items()
        if key != "Token" and value is not None and not isinstance(value, (dict, list))
    }
    values["Password"] = password
    joined = "".join(values[key] for key in sorted(values))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def verify_token(payload: Mapping[str, Any], password: str) -> bool:
    """Check the Token field of a gateway notification"""
    received = payload.get("Token")
    if not received or not isinstance(received, str):
        return False
    return hmac.compare_digest(received.lower(), generate_token(payload, password))
