"""Client-side bearer token inspection.

Claims are decoded without verifying the signature: this only decides whether
a request would be wasted on a stale token, it is not a trust boundary.
"""
from __future__ import annotations
import binascii
import json
import time
from typing import Any, Dict, Optional

import jwt
from jwt.utils import base64url_decode

ACCESS_TOKEN_BUFFER_SECONDS = 60
REFRESH_TOKEN_BUFFER_SECONDS = 300


def decode_claims(token: str) -> Dict[str, Any]:
    """Decode the payload segment of a JWT.

    Only the middle segment is read; the header and signature may be opaque.

    Raises:
        jwt.PyJWTError: If the token is not a decodable three-segment JWT
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise jwt.DecodeError("Not a three-segment token")
    try:
        claims = json.loads(base64url_decode(parts[1]))
    except (binascii.Error, ValueError) as e:
        raise jwt.DecodeError(f"Invalid payload segment: {e}") from e
    if not isinstance(claims, dict):
        raise jwt.DecodeError("Payload is not a JSON object")
    return claims


def is_token_expired(token: str, buffer_seconds: int = ACCESS_TOKEN_BUFFER_SECONDS,
                     now: Optional[float] = None) -> bool:
    """Check whether a token is expired or expires within ``buffer_seconds``.

    Malformed tokens count as expired so the caller re-authenticates instead
    of sending garbage. Tokens without an ``exp`` claim count as valid.

    Args:
        token: Encoded JWT
        buffer_seconds: Safety margin before the real expiry
        now: Current epoch seconds (defaults to ``time.time()``)

    Returns:
        True if the token should not be used
    """
    try:
        claims = decode_claims(token)
    except jwt.PyJWTError:
        return True

    exp = claims.get("exp")
    if exp is None:
        return False
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return True

    current = time.time() if now is None else now
    return current >= exp - buffer_seconds
