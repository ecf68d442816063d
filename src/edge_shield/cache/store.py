"""Cache store interface and the in-memory implementation.

A store holds named tiers; each tier maps a request's cache identity to a
response. There is no per-entry expiry: entries live until their tier is
deleted by the generation manager.
"""

import logging
from typing import Optional, Protocol

from edge_shield.common.schemas import EdgeRequest, EdgeResponse

logger = logging.getLogger(__name__)


class TierHandle(Protocol):
    """An opened cache tier."""

    name: str

    async def lookup(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        ...

    async def put(self, request: EdgeRequest, response: EdgeResponse) -> None:
        ...

    async def delete(self, request: EdgeRequest) -> bool:
        ...

    async def keys(self) -> list[EdgeRequest]:
        ...


class CacheStore(Protocol):
    """A collection of named cache tiers."""

    async def open(self, tier_name: str) -> TierHandle:
        ...

    async def match(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        ...

    async def list_tier_names(self) -> set[str]:
        ...

    async def delete_tier(self, tier_name: str) -> bool:
        ...


class MemoryTier:
    """Dict-backed tier. Last write wins."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, tuple[EdgeRequest, EdgeResponse]] = {}

    async def lookup(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        entry = self._entries.get(request.cache_key)
        if entry is None:
            return None
        return entry[1].clone()

    async def put(self, request: EdgeRequest, response: EdgeResponse) -> None:
        self._entries[request.cache_key] = (request, response.clone())

    async def delete(self, request: EdgeRequest) -> bool:
        return self._entries.pop(request.cache_key, None) is not None

    async def keys(self) -> list[EdgeRequest]:
        return [stored for stored, _ in self._entries.values()]


class MemoryCacheStore:
    """In-process cache store, lost on restart."""

    def __init__(self) -> None:
        self._tiers: dict[str, MemoryTier] = {}

    async def open(self, tier_name: str) -> MemoryTier:
        """Open a tier, creating it on first use."""
        tier = self._tiers.get(tier_name)
        if tier is None:
            tier = MemoryTier(tier_name)
            self._tiers[tier_name] = tier
            logger.debug("Created cache tier %s", tier_name)
        return tier

    async def match(self, request: EdgeRequest) -> Optional[EdgeResponse]:
        """Look a request up in every tier, in creation order."""
        for tier in self._tiers.values():
            response = await tier.lookup(request)
            if response is not None:
                return response
        return None

    async def list_tier_names(self) -> set[str]:
        return set(self._tiers)

    async def delete_tier(self, tier_name: str) -> bool:
        """Delete a tier and all its entries."""
        deleted = self._tiers.pop(tier_name, None) is not None
        if deleted:
            logger.debug("Deleted cache tier %s", tier_name)
        return deleted
