"""
Bitfinex API v2 Authentication Helper
======================================

HMAC-SHA384 signature generation for Bitfinex v2 private REST endpoints.

Security:
- Never logs API keys/secrets
- The serialized body returned with the headers is the exact payload that
  was signed; send it verbatim

Reference:
- https://docs.bitfinex.com/reference/rest-auth-general
"""

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional, Tuple


def generate_signature(api_secret: str, nonce: str, path: str, body: str = "") -> str:
    """
    Generate HMAC-SHA384 signature for Bitfinex v2 authenticated requests.

    Args:
        api_secret: API secret key (must not be logged)
        nonce: Unique nonce (microsecond timestamp as string)
        path: API path (e.g., "/v2/auth/r/wallets")
        body: JSON body as string

    Returns:
        Hex-encoded HMAC-SHA384 signature (96 hex chars)
    """
    # Signature payload format: /api{path}{nonce}{body}
    signature_payload = f"/api{path}{nonce}{body}"

    h = hmac.new(
        api_secret.encode('utf-8'),
        signature_payload.encode('utf-8'),
        hashlib.sha384
    )

    return h.hexdigest()


def build_auth_request(
    api_key: str,
    api_secret: str,
    path: str,
    body: Optional[Dict[str, Any]] = None,
) -> Tuple[Dict[str, str], str]:
    """
    Build headers and the serialized body for a private REST request.

    Args:
        api_key: API key (must not be logged)
        api_secret: API secret (must not be logged)
        path: API path (e.g., "/v2/auth/w/order/submit")
        body: Optional request body as dict (defaults to an empty object)

    Returns:
        (headers, body_str) - headers carry bfx-nonce, bfx-apikey, bfx-signature
    """
    nonce = str(int(time.time() * 1_000_000))
    body_str = json.dumps(body if body is not None else {})
    signature = generate_signature(api_secret, nonce, path, body_str)

    headers = {
        "bfx-nonce": nonce,
        "bfx-apikey": api_key,
        "bfx-signature": signature,
        "Content-Type": "application/json"
    }

    return headers, body_str
