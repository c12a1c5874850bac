"""
Webhook Signing

HMAC-SHA256 over ``"<timestamp>.<raw JSON body>"``, sent as
``X-Reserve-Signature: t=<timestamp>,v1=<hex digest>``.

Receivers recompute the digest over the exact bytes they received and
compare in constant time; verify_signature does that and also rejects
timestamps outside a tolerance window.

Usage:
    body = serialize_body(envelope)
    ts = str(int(time.time()))
    header = signature_header(ts, compute_signature(secret, ts, body))
"""

import hashlib
import hmac
import json
import time
from typing import Any, List, Mapping, Optional, Tuple

SIGNATURE_VERSION = "v1"
DEFAULT_TOLERANCE_SECONDS = 300


def serialize_body(envelope: Mapping[str, Any]) -> str:
    """Compact JSON in insertion order, the exact bytes that get signed."""
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def signature_input(timestamp: str, body: str) -> str:
    return f"{timestamp}.{body}"


def compute_signature(secret: str, timestamp: str, body: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        signature_input(timestamp, body).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def signature_header(timestamp: str, signature: str) -> str:
    return f"t={timestamp},{SIGNATURE_VERSION}={signature}"


def parse_signature_header(header: str) -> Tuple[Optional[str], List[str]]:
    """Split a signature header into its timestamp and v1 signatures."""
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_VERSION and value:
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    secret: str,
    header: str,
    body: str,
    tolerance_seconds: Optional[int] = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Check a received signature header against the raw request body.

    Args:
        secret: Shared signing secret
        header: Value of X-Reserve-Signature
        body: Raw request body as received
        tolerance_seconds: Maximum clock skew; None disables the check
        now: Current unix time, defaults to time.time()

    Returns:
        True if any v1 signature matches and the timestamp is fresh
    """
    timestamp, signatures = parse_signature_header(header)
    if not timestamp or not signatures:
        return False

    if tolerance_seconds is not None:
        try:
            sent_at = int(timestamp)
        except ValueError:
            return False
        current = time.time() if now is None else now
        if abs(current - sent_at) > tolerance_seconds:
            return False

    expected = compute_signature(secret, timestamp, body)
    return any(hmac.compare_digest(expected, candidate) for candidate in signatures)
