"""Tiered cache strategies, one per request class.

Each strategy is a straight sequence of at most two awaits (cache lookup,
network fetch) and always ends with a response: network failures are turned
into class-specific responses here and never escape to the caller.

Cache writes are detached. They run as background tasks the request path
never awaits, and their failures are logged and dropped.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from edge_shield.cache.store import CacheStore
from edge_shield.common import metrics
from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import EdgeRequest, EdgeResponse, RequestClass
from edge_shield.shield.classifier import RequestClassifier
from edge_shield.shield.fetcher import Fetcher, NetworkError
from edge_shield.shield.policy import AccessPolicyEngine, is_direct_navigation

logger = logging.getLogger(__name__)

PROTECTION_REASON_HEADER = "X-Protection-Reason"
CACHEABLE_METHOD = "GET"

DIRECT_NAVIGATION_PAGE = (
    "<!DOCTYPE html><html><head><title>403 Forbidden</title><style>"
    "body{font-family:Arial,sans-serif;display:flex;justify-content:center;"
    "align-items:center;height:100vh;margin:0;background:#f5f5f5;}"
    "div{text-align:center;padding:2rem;background:white;border-radius:8px;"
    "box-shadow:0 2px 10px rgba(0,0,0,0.1);}h1{color:#e74c3c;margin:0 0 1rem;}"
    "p{color:#666;}</style></head><body><div><h1>&#x1F512; Access Denied</h1>"
    "<p>Direct access to images is not allowed.</p>"
    "<p>Please view images through the portfolio.</p></div></body></html>"
)


def direct_navigation_response() -> EdgeResponse:
    return EdgeResponse(
        status=403,
        status_text="Forbidden",
        headers={
            "Content-Type": "text/html",
            PROTECTION_REASON_HEADER: "Direct navigation blocked",
        },
        body=DIRECT_NAVIGATION_PAGE.encode("utf-8"),
    )


def policy_denied_response() -> EdgeResponse:
    return EdgeResponse(
        status=403,
        status_text="Forbidden",
        headers={
            "Content-Type": "text/plain",
            PROTECTION_REASON_HEADER: "Unauthorized access attempt detected",
        },
        body=b"403 Forbidden - Image Protection Active",
    )


def network_unavailable_response() -> EdgeResponse:
    return EdgeResponse(
        status=503,
        status_text="Service Unavailable",
        headers={"Content-Type": "application/json"},
        body=json.dumps({"error": "Network unavailable"}).encode("utf-8"),
    )


def offline_response() -> EdgeResponse:
    return EdgeResponse(
        status=503,
        status_text="Service Unavailable",
        headers={"Content-Type": "text/plain"},
        body=b"Offline - Content not available",
    )


def image_unavailable_response() -> EdgeResponse:
    return EdgeResponse(status=404, status_text="Not Found", body=b"")


class StrategySelector:
    """Route classified requests through their caching strategy."""

    def __init__(
        self,
        config: ShieldConfig,
        store: CacheStore,
        fetcher: Fetcher,
        classifier: Optional[RequestClassifier] = None,
        policy: Optional[AccessPolicyEngine] = None,
    ) -> None:
        """Initialize the selector.

        Args:
            config: Immutable shield configuration
            store: Cache store holding the tiers
            fetcher: Network fetcher
            classifier: Request classifier (default: built from config)
            policy: Access policy engine (default: built from config)
        """
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.classifier = classifier or RequestClassifier(config)
        self.policy = policy or AccessPolicyEngine(config)
        self._pending_writes: set[asyncio.Task] = set()
        self._strategies: dict[
            RequestClass, Callable[[EdgeRequest], Awaitable[EdgeResponse]]
        ] = {
            RequestClass.STATIC_ASSET: self.handle_static_asset,
            RequestClass.PROTECTED_IMAGE: self.handle_protected_image,
            RequestClass.DYNAMIC: self.handle_dynamic,
            RequestClass.GENERIC: self.handle_generic,
        }

    async def handle(self, request: EdgeRequest) -> EdgeResponse:
        """Classify a request and run its strategy."""
        request_class = self.classifier.classify(request)
        metrics.REQUESTS.labels(request_class=request_class.value).inc()
        logger.debug("%s %s classified as %s", request.method, request.url, request_class.value)
        return await self._strategies[request_class](request)

    async def handle_static_asset(self, request: EdgeRequest) -> EdgeResponse:
        """Cache-first; on a miss fetch and persist into the static tier."""
        cached = await self._lookup(self.config.static_tier, request)
        if cached is not None:
            return cached

        try:
            response = await self.fetcher.fetch(request)
        except NetworkError:
            metrics.NETWORK_FAILURES.labels(request_class=RequestClass.STATIC_ASSET.value).inc()
            return offline_response()

        self.persist(self.config.static_tier, request, response)
        return response

    async def handle_protected_image(self, request: EdgeRequest) -> EdgeResponse:
        """Cache-first; on a miss run the access checks before fetching."""
        cached = await self._lookup(self.config.image_tier, request)
        if cached is not None:
            return cached

        if self._is_image_path(request) and is_direct_navigation(request):
            logger.info("Blocking direct navigation to image: %.100s", request.url)
            return direct_navigation_response()

        decision = self.policy.decide(request)
        if not decision.allowed:
            return policy_denied_response()

        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            logger.error("Image fetch failed for %s: %s", request.url, e)
            metrics.NETWORK_FAILURES.labels(
                request_class=RequestClass.PROTECTED_IMAGE.value
            ).inc()
            return await self._placeholder_image()

        logger.debug("Image fetch response %d for %s", response.status, request.url)
        if response.ok:
            self.persist(self.config.image_tier, request, response)
        return response

    async def handle_dynamic(self, request: EdgeRequest) -> EdgeResponse:
        """Network only; failures become a 503 JSON body."""
        try:
            return await self.fetcher.fetch(request)
        except NetworkError:
            metrics.NETWORK_FAILURES.labels(request_class=RequestClass.DYNAMIC.value).inc()
            return network_unavailable_response()

    async def handle_generic(self, request: EdgeRequest) -> EdgeResponse:
        """Network first, falling back to the catch-all tier."""
        try:
            response = await self.fetcher.fetch(request)
        except NetworkError:
            metrics.NETWORK_FAILURES.labels(request_class=RequestClass.GENERIC.value).inc()
            cached = await self._lookup(self.config.catchall_tier, request)
            return cached if cached is not None else offline_response()

        if response.ok and response.response_type == "basic":
            self.persist(self.config.catchall_tier, request, response)
        return response

    def persist(self, tier_name: str, request: EdgeRequest, response: EdgeResponse) -> None:
        """Write a copy of the response into a tier without waiting for it.

        Only GET responses are stored; anything else would overwrite the GET
        entry for the same URL.
        """
        if request.method != CACHEABLE_METHOD:
            return
        task = asyncio.create_task(self._write(tier_name, request, response.clone()))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def drain(self) -> None:
        """Wait for all detached cache writes issued so far."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def _write(self, tier_name: str, request: EdgeRequest, response: EdgeResponse) -> None:
        try:
            tier = await self.store.open(tier_name)
            await tier.put(request, response)
        except Exception as e:
            logger.debug("Cache write to %s failed for %s: %s", tier_name, request.url, e)

    async def _lookup(self, tier_name: str, request: EdgeRequest) -> Optional[EdgeResponse]:
        # Tiers answer GET only; other methods always go to the network
        if request.method != CACHEABLE_METHOD:
            return None
        try:
            tier = await self.store.open(tier_name)
            cached = await tier.lookup(request)
        except Exception as e:
            logger.warning("Cache lookup in %s failed for %s: %s", tier_name, request.url, e)
            cached = None
        metrics.CACHE_LOOKUPS.labels(
            tier=tier_name, result="hit" if cached is not None else "miss"
        ).inc()
        return cached

    def _is_image_path(self, request: EdgeRequest) -> bool:
        try:
            return request.path.startswith(self.config.protected_image_prefix)
        except ValueError:
            return False

    async def _placeholder_image(self) -> EdgeResponse:
        placeholder = EdgeRequest(
            url=self.config.absolute_url(self.config.placeholder_image_path)
        )
        try:
            cached = await self.store.match(placeholder)
        except Exception as e:
            logger.warning("Placeholder lookup failed: %s", e)
            cached = None
        return cached if cached is not None else image_unavailable_response()
