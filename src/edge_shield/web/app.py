"""ASGI application exposing the edge layer."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from edge_shield import __version__
from edge_shield.cache.database_store import DatabaseCacheStore
from edge_shield.cache.generation import GenerationInstallError, GenerationManager
from edge_shield.cache.store import CacheStore, MemoryCacheStore
from edge_shield.common.config import CacheBackend, ShieldSettings
from edge_shield.common.database import DatabaseManager
from edge_shield.common.logging import configure_logging
from edge_shield.common.metrics import render_metrics
from edge_shield.common.schemas import EdgeRequest, EdgeResponse
from edge_shield.notifications import render_notification, resolve_click
from edge_shield.shield.fetcher import Fetcher, NetworkFetcher
from edge_shield.shield.strategies import StrategySelector
from edge_shield.sync.retry_queue import SYNC_TAGS, DeferredRetryQueue

logger = logging.getLogger(__name__)

CONTROL_PREFIX = "/_shield"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class QueuedRequestIn(BaseModel):
    """A submission the application wants replayed on the next sync."""

    url: str
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class NotificationClickIn(BaseModel):
    """A click on a displayed notification or one of its action buttons."""

    action: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


def to_edge_request(request: Request, serving_origin: str, body: bytes) -> EdgeRequest:
    """Convert an inbound Starlette request into an EdgeRequest.

    The URL is rebuilt on the serving origin so cache identity does not depend
    on which host name the client used to reach this process. Destination and
    mode come from the browser's Sec-Fetch-* headers; ``empty`` means no
    declared resource kind.
    """
    url = serving_origin + request.url.path
    if request.url.query:
        url += "?" + request.url.query

    destination = request.headers.get("sec-fetch-dest", "")
    if destination == "empty":
        destination = ""

    return EdgeRequest(
        url=url,
        method=request.method,
        destination=destination,
        mode=request.headers.get("sec-fetch-mode", "no-cors"),
        headers=dict(request.headers),
        body=body,
    )


def to_starlette_response(response: EdgeResponse) -> Response:
    return Response(
        content=response.body,
        status_code=response.status,
        headers=response.headers,
    )


def create_app(
    settings: Optional[ShieldSettings] = None,
    fetcher: Optional[Fetcher] = None,
    store: Optional[CacheStore] = None,
    db_manager: Optional[DatabaseManager] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Shield settings (default: read from the environment)
        fetcher: Network fetcher (default: httpx client to the upstream)
        store: Cache store (default: chosen by settings.cache_backend)
        db_manager: Database manager (default: settings.effective_database_url)

    Returns:
        Configured FastAPI application
    """
    settings = settings or ShieldSettings()
    config = settings.to_config()

    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = NetworkFetcher(
            serving_origin=settings.serving_origin,
            upstream_url=settings.upstream_url,
            timeout=settings.upstream_timeout,
        )

    if db_manager is None:
        database_url = settings.effective_database_url
        if database_url.startswith("sqlite") and ":memory:" not in database_url:
            Path(settings.shield_data_dir).mkdir(parents=True, exist_ok=True)
        db_manager = DatabaseManager(database_url)

    if store is None:
        if settings.cache_backend is CacheBackend.DATABASE:
            store = DatabaseCacheStore(db_manager)
        else:
            store = MemoryCacheStore()

    selector = StrategySelector(config, store, fetcher)
    generations = GenerationManager(config, store, fetcher)
    retry_queue = DeferredRetryQueue(db_manager, fetcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        logger.info("Starting Edge Shield %s for %s", __version__, settings.serving_origin)
        await db_manager.create_tables()

        try:
            await generations.install()
        except GenerationInstallError as e:
            logger.warning("Cache generation install failed: %s", e)
        else:
            if settings.auto_activate:
                await generations.activate()

        yield

        logger.info("Stopping Edge Shield")
        await selector.drain()
        if owns_fetcher and isinstance(fetcher, NetworkFetcher):
            await fetcher.aclose()
        await db_manager.dispose()

    app = FastAPI(
        title="Edge Shield",
        description="Tiered caching and heuristic image protection",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.config = config
    app.state.store = store
    app.state.fetcher = fetcher
    app.state.selector = selector
    app.state.generations = generations
    app.state.retry_queue = retry_queue
    app.state.db_manager = db_manager

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Server error"})

    @app.get(f"{CONTROL_PREFIX}/health")
    async def health() -> dict[str, Any]:
        """Liveness plus the current cache generation."""
        return {
            "status": "ok",
            "version": __version__,
            "generation": generations.generation,
            "state": generations.state.value,
        }

    @app.get(f"{CONTROL_PREFIX}/metrics")
    async def metrics() -> Response:
        """Prometheus metrics in text exposition format."""
        return Response(
            content=render_metrics(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.post(f"{CONTROL_PREFIX}/skip-waiting")
    async def skip_waiting() -> dict[str, Any]:
        """Force activation of an installed generation."""
        activated = await generations.skip_waiting()
        return {"activated": activated, "state": generations.state.value}

    @app.post(f"{CONTROL_PREFIX}/queue/{{queue}}", status_code=202)
    async def enqueue(queue: str, item: QueuedRequestIn) -> dict[str, Any]:
        """Queue a submission for replay on the next sync."""
        known_queues = {tag.queue for tag in SYNC_TAGS.values()}
        if queue not in known_queues:
            raise HTTPException(status_code=404, detail=f"Unknown queue: {queue}")
        added = await retry_queue.enqueue(
            queue,
            EdgeRequest(
                url=config.absolute_url(item.url),
                method=item.method,
                headers=item.headers,
                body=item.body.encode("utf-8"),
            ),
        )
        return {"queued": added, "pending": await retry_queue.pending(queue)}

    @app.post(f"{CONTROL_PREFIX}/sync/{{tag}}")
    async def sync(tag: str) -> dict[str, Any]:
        """Replay the queue for a sync tag (connectivity restored)."""
        if tag not in SYNC_TAGS:
            raise HTTPException(status_code=404, detail=f"Unknown sync tag: {tag}")
        stats = await retry_queue.sync(tag)
        return stats.as_dict()

    @app.post(f"{CONTROL_PREFIX}/notifications/render")
    async def render_push(request: Request) -> Response:
        """Turn a raw push payload into notification options (204 when empty)."""
        notification = render_notification(await request.body())
        if notification is None:
            return Response(status_code=204)
        return JSONResponse(content=asdict(notification))

    @app.post(f"{CONTROL_PREFIX}/notifications/click")
    async def notification_click(click: NotificationClickIn) -> dict[str, Any]:
        """Resolve the URL a notification click opens; null only dismisses."""
        return {"url": resolve_click(click.action, click.data)}

    @app.api_route("/{full_path:path}", methods=PROXY_METHODS)
    async def intercept(request: Request, full_path: str) -> Response:
        """Route every other request through the edge strategies."""
        edge_request = to_edge_request(request, settings.serving_origin, await request.body())
        edge_response = await selector.handle(edge_request)
        return to_starlette_response(edge_response)

    return app
