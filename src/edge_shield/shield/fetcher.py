"""Network fetcher forwarding edge requests to the origin server."""

import logging
from typing import Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

import httpx

from edge_shield.common.schemas import EdgeRequest, EdgeResponse

logger = logging.getLogger(__name__)

# Hop-by-hop and edge-only headers that must not be forwarded upstream
_SKIP_REQUEST_HEADERS = frozenset(
    {
        "host",
        "connection",
        "keep-alive",
        "transfer-encoding",
        "upgrade",
        "content-length",
        "accept-encoding",
    }
)
# httpx has already decoded the body, so these no longer describe it
_SKIP_RESPONSE_HEADERS = frozenset(
    {"connection", "keep-alive", "transfer-encoding", "content-encoding", "content-length"}
)


class NetworkError(Exception):
    """The upstream request failed before producing a usable response."""

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class Fetcher(Protocol):
    """Anything able to turn a request into a response."""

    async def fetch(self, request: EdgeRequest) -> EdgeResponse:
        ...


class NetworkFetcher:
    """Fetch requests from the origin with httpx.

    Requests addressed to the serving origin are rewritten onto the upstream
    URL; other absolute URLs are fetched as-is. Non-2xx statuses are ordinary
    responses; any httpx request failure raises NetworkError.
    """

    def __init__(
        self,
        serving_origin: str,
        upstream_url: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            serving_origin: Origin clients address (scheme://host[:port])
            upstream_url: Where serving-origin requests are forwarded to
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a mock transport)
        """
        self.serving_origin = serving_origin.rstrip("/")
        self.upstream_url = (upstream_url or serving_origin).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    def upstream_target(self, url: str) -> str:
        """Map a client-facing URL onto the upstream server."""
        if not url.startswith(self.serving_origin):
            return url
        upstream = urlsplit(self.upstream_url)
        parts = urlsplit(url)
        path = upstream.path.rstrip("/") + parts.path
        return urlunsplit((upstream.scheme, upstream.netloc, path, parts.query, ""))

    def response_type_for(self, url: str) -> str:
        return "basic" if url.startswith(self.serving_origin) else "cors"

    async def fetch(self, request: EdgeRequest) -> EdgeResponse:
        """Fetch a request from the network.

        Raises:
            NetworkError: On any transport-level failure
        """
        target = self.upstream_target(request.url)
        headers = {
            name: value
            for name, value in request.headers.items()
            if name not in _SKIP_REQUEST_HEADERS
        }

        try:
            response = await self._client.request(
                request.method,
                target,
                headers=headers,
                content=request.body or None,
            )
        except httpx.RequestError as e:
            logger.warning("Upstream fetch failed for %s: %s", target, e)
            raise NetworkError(str(e) or type(e).__name__, url=request.url) from e
        except httpx.InvalidURL as e:
            raise NetworkError(f"Invalid upstream URL: {e}", url=request.url) from e

        logger.debug("Upstream %s %s -> %d", request.method, target, response.status_code)
        return EdgeResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers={
                name: value
                for name, value in response.headers.items()
                if name.lower() not in _SKIP_RESPONSE_HEADERS
            },
            body=response.content,
            response_type=self.response_type_for(request.url),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
