"""Session token minting and validation.

A session token is the base64 text of ``"<issued_at_ms>-<nonce>"``. Tokens
carry no server-side state and cannot be revoked: the only property checked
is freshness of the embedded timestamp. Anyone able to read this module can
mint a valid token, so the token is a deterrent against casual hot-linking,
not an authentication mechanism.
"""

import base64
import binascii
import secrets
import time
from typing import Optional

MAX_AGE_MS = 5 * 60 * 1000
CLOCK_SKEW_MS = 1000


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def mint_token(issued_at_ms: Optional[int] = None, nonce: Optional[str] = None) -> str:
    """Mint a token the way the in-page client does before an authenticated fetch.

    Args:
        issued_at_ms: Issue timestamp (default: now)
        nonce: Random component (default: 16 random hex chars)

    Returns:
        Base64 encoded token
    """
    if issued_at_ms is None:
        issued_at_ms = now_ms()
    if nonce is None:
        nonce = secrets.token_hex(8)
    raw = f"{issued_at_ms}-{nonce}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_token(token: Optional[str]) -> Optional[tuple[int, str]]:
    """Decode a token into ``(issued_at_ms, nonce)``.

    Returns None for a missing token, invalid base64, non UTF-8 content,
    fewer than two dash-separated fields or a non-numeric timestamp.
    """
    if not token:
        return None

    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None

    parts = decoded.split("-")
    if len(parts) < 2:
        return None

    timestamp_field = parts[0].strip()
    if not (timestamp_field.isascii() and timestamp_field.isdecimal()):
        return None

    return int(timestamp_field), "-".join(parts[1:])


def validate_token(
    token: Optional[str],
    now: Optional[int] = None,
    max_age_ms: int = MAX_AGE_MS,
    clock_skew_ms: int = CLOCK_SKEW_MS,
) -> bool:
    """Check that a token is well-formed and fresh.

    Valid iff ``now - max_age_ms < issued_at <= now + clock_skew_ms``.

    Args:
        token: Token from the X-Session-Token header
        now: Current time in milliseconds (default: wall clock)
        max_age_ms: Maximum token age
        clock_skew_ms: Tolerance for timestamps slightly in the future

    Returns:
        True if the token is valid
    """
    decoded = decode_token(token)
    if decoded is None:
        return False

    issued_at, _nonce = decoded
    if now is None:
        now = now_ms()

    return now - issued_at < max_age_ms and issued_at <= now + clock_skew_ms
