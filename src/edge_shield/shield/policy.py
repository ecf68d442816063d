"""Access policy for protected images.

The policy is a heuristic deterrent against hot-linking and scraping. Every
signal it looks at (referer, user-agent, marker headers, the session token)
is supplied by the client and can be forged by anyone who controls their
request headers. It raises the cost of casual downloading; it is not a
security boundary and must not be relied on as one.

Decision procedure, first match wins:

1. Serving from a local development host: allow
2. User-agent matches an automated client signature: deny
3. Image-tag request (destination ``image``) with a valid referer: allow
4. Marker headers plus a fresh session token plus a valid referer: allow
5. Direct navigation: deny
6. Anything else: deny
"""

import logging
from collections.abc import Callable
from typing import Optional
from urllib.parse import urlsplit

from edge_shield.common import metrics
from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import EdgeRequest, PolicyDecision
from edge_shield.shield.token import now_ms, validate_token

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Image-Auth"
AUTH_SENTINEL = "protected"
SESSION_TOKEN_HEADER = "X-Session-Token"
PROTECTED_FLAG_HEADER = "X-Protected-Image"
PROTECTED_FLAG_SENTINEL = "true"

# Reason codes (observability only)
REASON_DEV_BYPASS = "development_host"
REASON_AUTOMATED_CLIENT = "automated_client"
REASON_IMAGE_TAG = "image_tag_referer"
REASON_AUTHENTICATED = "authenticated_fetch"
REASON_DIRECT_NAVIGATION = "direct_navigation"
REASON_UNAUTHENTICATED = "unauthenticated"

URL_LOG_LIMIT = 100
REFERER_LOG_LIMIT = 50

TokenValidator = Callable[[Optional[str], int, int, int], bool]


def is_direct_navigation(request: EdgeRequest) -> bool:
    """Whether a request looks like a user opening an image URL directly.

    True for top-level navigations, and for requests that neither carry the
    protected-image marker nor declare a resource kind (what a browser
    address bar or a bare HTTP client produces).
    """
    if request.mode == "navigate":
        return True
    return request.header(PROTECTED_FLAG_HEADER) is None and not request.destination


def _origin_of(value: str) -> Optional[str]:
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


class AccessPolicyEngine:
    """Allow/deny decisions for protected image requests."""

    def __init__(
        self,
        config: ShieldConfig,
        token_validator: TokenValidator = validate_token,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Immutable shield configuration
            token_validator: Session token check (default: freshness check)
            clock: Millisecond clock used when no time is passed to decide()
        """
        self.config = config
        self._validate_token = token_validator
        self._clock = clock

    def decide(self, request: EdgeRequest, now: Optional[int] = None) -> PolicyDecision:
        """Decide whether a protected image request may be fetched.

        Args:
            request: Protected image request that missed the cache
            now: Current time in milliseconds (default: engine clock)

        Returns:
            PolicyDecision with a reason code
        """
        if now is None:
            now = self._clock()

        referer = request.header("Referer")

        # Gated on where we are deployed, never on anything the client sends
        if self.config.is_development:
            return self._record(request, referer, PolicyDecision.allow(REASON_DEV_BYPASS))

        user_agent = request.header("User-Agent") or ""
        if self.is_automated_client(user_agent):
            logger.info(
                "Blocking automated client (user_agent=%s)",
                user_agent[:URL_LOG_LIMIT],
            )
            return self._record(
                request, referer, PolicyDecision.deny(REASON_AUTOMATED_CLIENT)
            )

        has_valid_referer = self.is_valid_referer(referer)

        if request.destination == "image" and has_valid_referer:
            return self._record(request, referer, PolicyDecision.allow(REASON_IMAGE_TAG))

        if has_valid_referer and self.has_valid_auth(request, now):
            return self._record(
                request, referer, PolicyDecision.allow(REASON_AUTHENTICATED)
            )

        if is_direct_navigation(request):
            return self._record(
                request, referer, PolicyDecision.deny(REASON_DIRECT_NAVIGATION)
            )

        return self._record(request, referer, PolicyDecision.deny(REASON_UNAUTHENTICATED))

    def is_automated_client(self, user_agent: str) -> bool:
        """Match the user-agent against known tool and crawler signatures."""
        return any(signature in user_agent for signature in self.config.bot_signatures)

    def is_valid_referer(self, referer: Optional[str]) -> bool:
        """Check that the referer points back at this site.

        Accepted: referers under the serving origin, referers mentioning the
        local development marker, and referers whose origin is allow-listed.
        The serving-origin match requires a path separator after the origin
        so look-alike hosts such as ``<origin>.evil.example`` are rejected.
        """
        if not referer:
            return False
        origin = self.config.serving_origin.rstrip("/")
        if referer == origin or referer.startswith(origin + "/"):
            return True
        if self.config.dev_marker in referer:
            return True
        return _origin_of(referer) in self.config.allowed_origins

    def has_valid_auth(self, request: EdgeRequest, now: int) -> bool:
        """Check the marker headers and session token set by the app's fetch."""
        if request.header(AUTH_HEADER) != AUTH_SENTINEL:
            return False
        if request.header(PROTECTED_FLAG_HEADER) != PROTECTED_FLAG_SENTINEL:
            return False
        token = request.header(SESSION_TOKEN_HEADER)
        if not token:
            return False
        return self._validate_token(
            token,
            now,
            self.config.token_max_age_ms,
            self.config.token_clock_skew_ms,
        )

    def _record(
        self,
        request: EdgeRequest,
        referer: Optional[str],
        decision: PolicyDecision,
    ) -> PolicyDecision:
        """Emit the observability record for a decision and return it."""
        logger.info(
            "Image policy %s (reason=%s, url=%s, referer=%s)",
            decision.decision.value,
            decision.reason,
            request.url[:URL_LOG_LIMIT],
            referer[:REFERER_LOG_LIMIT] if referer else "none",
        )
        metrics.POLICY_DECISIONS.labels(
            decision=decision.decision.value, reason=decision.reason
        ).inc()
        return decision
