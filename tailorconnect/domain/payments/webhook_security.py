"""
Payment callback signature verification

The payment collaborator signs the raw request body with HMAC-SHA256 and
sends the hex digest in the X-Payment-Signature header. An optional
X-Payment-Timestamp header is checked against MAX_WEBHOOK_AGE_SECONDS.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

from ... import config

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"
TIMESTAMP_HEADER = "X-Payment-Timestamp"

# Maximum age of a signed callback in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """True when the timestamp is absent or within ``max_age`` seconds of now"""
    if not timestamp:
        return True

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid payment callback timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Payment callback timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


async def verify_payment_signature(request: Request) -> bytes:
    """
    FastAPI dependency verifying a signed payment callback.

    Returns:
        The raw request body

    Raises:
        HTTPException: 500 when no secret is configured, 401 on a missing,
            stale or mismatched signature
    """
    secret = config.PAYMENT_WEBHOOK_SECRET
    if not secret:
        logger.error("❌ PAYMENT_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Payment webhook not configured")

    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")
    if not verify_timestamp(request.headers.get(TIMESTAMP_HEADER)):
        raise HTTPException(status_code=401, detail="Stale payment callback")

    expected = compute_hmac_sha256(secret, body)
    if not constant_time_compare(signature.lower(), expected):
        logger.warning(f"🚫 Invalid payment signature for {request.url.path}")
        raise HTTPException(status_code=401, detail="Invalid payment signature")

    return body
