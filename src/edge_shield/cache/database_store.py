"""Cache store persisted through SQLAlchemy.

Tiers are rows of the ``cached_responses`` table sharing a tier name, so a
tier becomes visible in ``list_tier_names`` once it holds an entry.
"""

import logging
from typing import Optional

from sqlalchemy import delete, select

from edge_shield.common.database import DatabaseManager
from edge_shield.common.hash_utils import compute_cache_key_hash
from edge_shield.common.models import CachedResponse
from edge_shield.common.schemas import EdgeRequest, EdgeResponse

logger = logging.getLogger(__name__)


def _to_response(row: CachedResponse) -> EdgeResponse:
    return EdgeResponse(
        status=row.status,
        status_text=row.status_text,
        headers=dict(row.headers or {}),
        body=row.body or b"",
        response_type=row.response_type,
    )


class DatabaseTier:
    """A tier backed by rows of ``cached_responses``."""

    def __init__(self, name: str, db: DatabaseManager) -> None:
        self.name = name
        self.db = db

    async def lookup(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        key_hash = compute_cache_key_hash(request.cache_key)
        async with self.db.session_scope() as session:
            row = await session.scalar(
                select(CachedResponse)
                .where(CachedResponse.tier == self.name)
                .where(CachedResponse.key_hash == key_hash)
            )
            return _to_response(row) if row is not None else None

    async def put(self, request: EdgeRequest, response: EdgeResponse) -> None:
        key_hash = compute_cache_key_hash(request.cache_key)
        async with self.db.session_scope() as session:
            row = await session.scalar(
                select(CachedResponse)
                .where(CachedResponse.tier == self.name)
                .where(CachedResponse.key_hash == key_hash)
            )
            if row is None:
                row = CachedResponse(tier=self.name, key_hash=key_hash)
                session.add(row)
            row.url = request.url
            row.method = request.method
            row.status = response.status
            row.status_text = response.status_text
            row.headers = dict(response.headers)
            row.body = response.body
            row.response_type = response.response_type

    async def delete(self, request: EdgeRequest) -> bool:
        key_hash = compute_cache_key_hash(request.cache_key)
        async with self.db.session_scope() as session:
            result = await session.execute(
                delete(CachedResponse)
                .where(CachedResponse.tier == self.name)
                .where(CachedResponse.key_hash == key_hash)
            )
            return bool(result.rowcount)  # type: ignore[attr-defined]

    async def keys(self) -> list[EdgeRequest]:
        async with self.db.session_scope() as session:
            rows = await session.execute(
                select(CachedResponse.url, CachedResponse.method)
                .where(CachedResponse.tier == self.name)
                .order_by(CachedResponse.id)
            )
            return [EdgeRequest(url=url, method=method) for url, method in rows.all()]


class DatabaseCacheStore:
    """Cache store whose tiers survive restarts."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def open(self, tier_name: str) -> DatabaseTier:
        return DatabaseTier(tier_name, self.db)

    async def match(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        """Look a request up across all tiers, oldest entry first."""
        key_hash = compute_cache_key_hash(request.cache_key)
        async with self.db.session_scope() as session:
            row = await session.scalar(
                select(CachedResponse)
                .where(CachedResponse.key_hash == key_hash)
                .order_by(CachedResponse.id)
                .limit(1)
            )
            return _to_response(row) if row is not None else None

    async def list_tier_names(self) -> set[str]:
        async with self.db.session_scope() as session:
            rows = await session.execute(select(CachedResponse.tier).distinct())
            return {name for (name,) in rows.all()}

    async def delete_tier(self, tier_name: str) -> bool:
        async with self.db.session_scope() as session:
            result = await session.execute(
                delete(CachedResponse).where(CachedResponse.tier == tier_name)
            )
            count = result.rowcount or 0  # type: ignore[attr-defined]
        logger.debug("Deleted %d entries from cache tier %s", count, tier_name)
        return count > 0
