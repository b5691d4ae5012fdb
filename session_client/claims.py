"""
Client-side JWT claim decoding for expiry checks.
Signature is NOT verified here; the API does that. We only read `exp` to decide when to renew.
Anything we cannot read is treated as expired (fail-closed).
"""
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any

import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Claims:
    exp: float
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


def decode_claims(token: str) -> Claims | DecodeFailure:
    """Decode the payload segment of a JWT. Returns Claims, or DecodeFailure with a reason."""
    if not isinstance(token, str) or not token:
        return DecodeFailure("token is empty or not a string")
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.debug("Failed to decode token payload: %s", e)
        return DecodeFailure(f"malformed token: {e}")
    if not isinstance(payload, dict):
        return DecodeFailure("payload is not a JSON object")
    exp = payload.get("exp")
    # bool is an int subclass; a boolean exp is not a timestamp
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        logger.debug("Token payload has no usable exp claim")
        return DecodeFailure("missing or non-numeric exp claim")
    try:
        exp_value = float(exp)
    except OverflowError:
        logger.debug("Token exp claim out of range")
        return DecodeFailure("exp claim out of range")
    if not math.isfinite(exp_value):
        return DecodeFailure("exp claim out of range")
    return Claims(exp=exp_value, payload=payload)


def expiration_time(token: str) -> float | None:
    """Expiry of the token in milliseconds since epoch, or None if it cannot be read."""
    claims = decode_claims(token)
    if isinstance(claims, DecodeFailure):
        return None
    return claims.exp * 1000


def is_expired(token: str, now: float | None = None) -> bool:
    """True if claims are unreadable or exp <= current time (seconds granularity)."""
    claims = decode_claims(token)
    if isinstance(claims, DecodeFailure):
        return True
    current = math.floor(time.time() if now is None else now)
    return claims.exp <= current


def is_expiring_soon(token: str, threshold_minutes: float = 5, now: float | None = None) -> bool:
    """True if claims are unreadable or the token expires within threshold_minutes."""
    expires_ms = expiration_time(token)
    if expires_ms is None:
        return True
    now_ms = (time.time() if now is None else now) * 1000
    return expires_ms < now_ms + threshold_minutes * 60 * 1000
