"""Deferred retry queue for mutating requests that failed while offline.

The application queues contact form and analytics submissions it could not
deliver. When connectivity returns, a sync signal replays the queue for the
matching tag; a request leaves the queue only after an ``ok`` response.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, select

from edge_shield.common.database import DatabaseManager
from edge_shield.common.hash_utils import compute_request_hash
from edge_shield.common.models import DeferredRequest
from edge_shield.common.schemas import EdgeRequest
from edge_shield.shield.fetcher import Fetcher, NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncTag:
    """A sync signal and the queue it drains."""

    tag: str
    queue: str
    url_fragment: str


SYNC_TAGS: dict[str, SyncTag] = {
    "background-sync-contact": SyncTag(
        tag="background-sync-contact",
        queue="contact-form",
        url_fragment="/api/contact",
    ),
    "background-sync-analytics": SyncTag(
        tag="background-sync-analytics",
        queue="analytics",
        url_fragment="/api/analytics",
    ),
}


class SyncStats:
    """Statistics from a sync run."""

    def __init__(self, tag: str) -> None:
        self.tag = tag
        self.attempted: int = 0
        self.delivered: int = 0
        self.failed: int = 0
        self.skipped: int = 0

    def as_dict(self) -> dict[str, int | str]:
        return {
            "tag": self.tag,
            "attempted": self.attempted,
            "delivered": self.delivered,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    def __repr__(self) -> str:
        return (
            f"SyncStats(tag={self.tag}, attempted={self.attempted}, "
            f"delivered={self.delivered}, failed={self.failed}, "
            f"skipped={self.skipped})"
        )


class DeferredRetryQueue:
    """Persisted queue of requests to replay on a sync signal."""

    def __init__(self, db: DatabaseManager, fetcher: Fetcher) -> None:
        """Initialize the queue.

        Args:
            db: Database manager holding the deferred_requests table
            fetcher: Network fetcher used for replays
        """
        self.db = db
        self.fetcher = fetcher

    async def enqueue(self, queue: str, request: EdgeRequest) -> bool:
        """Queue a request for later delivery.

        Identical submissions (same method, URL and body) are stored once.

        Returns:
            True if a new entry was added
        """
        request_hash = compute_request_hash(request.method, request.url, request.body)
        async with self.db.session_scope() as session:
            existing = await session.scalar(
                select(DeferredRequest.id)
                .where(DeferredRequest.queue == queue)
                .where(DeferredRequest.request_hash == request_hash)
            )
            if existing is not None:
                logger.debug("Request already queued in %s: %s", queue, request.url)
                return False
            session.add(
                DeferredRequest(
                    queue=queue,
                    request_hash=request_hash,
                    url=request.url,
                    method=request.method,
                    headers=dict(request.headers),
                    body=request.body,
                )
            )
        logger.info("Queued %s %s for background sync (%s)", request.method, request.url, queue)
        return True

    async def pending(self, queue: Optional[str] = None) -> int:
        """Count queued requests, optionally for one queue."""
        stmt = select(func.count()).select_from(DeferredRequest)
        if queue is not None:
            stmt = stmt.where(DeferredRequest.queue == queue)
        async with self.db.session_scope() as session:
            return (await session.scalar(stmt)) or 0

    async def sync(self, tag: str) -> SyncStats:
        """Replay the queue associated with a sync tag.

        Each matching request is fetched once. Delivered requests are removed;
        failures stay queued with their attempt count bumped. A failure never
        stops the remaining replays.

        Raises:
            ValueError: If the tag is unknown
        """
        sync_tag = SYNC_TAGS.get(tag)
        if sync_tag is None:
            raise ValueError(f"Unknown sync tag: {tag}")

        stats = SyncStats(tag)
        async with self.db.session_scope() as session:
            rows = (
                await session.scalars(
                    select(DeferredRequest)
                    .where(DeferredRequest.queue == sync_tag.queue)
                    .order_by(DeferredRequest.id)
                )
            ).all()

        for row in rows:
            if sync_tag.url_fragment not in row.url:
                stats.skipped += 1
                continue

            stats.attempted += 1
            request = EdgeRequest(
                url=row.url,
                method=row.method,
                headers=dict(row.headers or {}),
                body=row.body or b"",
            )
            error: Optional[str] = None
            try:
                response = await self.fetcher.fetch(request)
                if not response.ok:
                    error = f"HTTP {response.status}"
            except NetworkError as e:
                error = str(e)

            async with self.db.session_scope() as session:
                if error is None:
                    await session.execute(
                        delete(DeferredRequest).where(DeferredRequest.id == row.id)
                    )
                    stats.delivered += 1
                else:
                    stored = await session.get(DeferredRequest, row.id)
                    if stored is not None:
                        stored.attempts += 1
                        stored.last_error = error
                    stats.failed += 1
                    logger.error("Failed to sync %s: %s", row.url, error)

        logger.info("Background sync completed: %s", stats)
        return stats
