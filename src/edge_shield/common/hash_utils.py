"""Hash utilities for cache and queue keys.

Stored requests are looked up by a fixed-width hash of their identity so the
indexed column stays small regardless of URL length.
"""

import hashlib
from typing import Optional


def compute_cache_key_hash(url: str) -> str:
    """Compute a deterministic hash for a cached request.

    Args:
        url: Full request URL (the request's cache identity)

    Returns:
        32-character hex hash string
    """
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def compute_request_hash(
    method: str,
    url: str,
    body: Optional[bytes] = None,
) -> str:
    """Compute a deterministic hash for a queued mutating request.

    Two submissions with the same method, URL and body collapse onto one
    queue entry.

    Args:
        method: HTTP method
        url: Full request URL
        body: Request body

    Returns:
        32-character hex hash string
    """
    digest = hashlib.md5()
    digest.update(method.upper().encode("utf-8"))
    digest.update(b"|")
    digest.update(url.encode("utf-8"))
    digest.update(b"|")
    digest.update(body or b"")
    return digest.hexdigest()
