"""Cache generation lifecycle.

A generation is the version label baked into every tier name. Installing a
generation pre-populates its static tier; activating it deletes every tier
that does not belong to it, which is the only way cached entries expire.
"""

import logging
from enum import Enum

from edge_shield.cache.store import CacheStore
from edge_shield.common.config import ShieldConfig
from edge_shield.common.schemas import EdgeRequest, EdgeResponse
from edge_shield.shield.fetcher import Fetcher, NetworkError

logger = logging.getLogger(__name__)


class GenerationState(str, Enum):
    """Lifecycle state of the current generation."""

    NEW = "new"
    INSTALLED = "installed"
    ACTIVE = "active"


class GenerationInstallError(Exception):
    """Raised when the static asset manifest cannot be fully cached."""


class GenerationStats:
    """Statistics from an activation."""

    def __init__(self) -> None:
        self.tiers_kept: list[str] = []
        self.tiers_deleted: list[str] = []

    @property
    def total_deleted(self) -> int:
        return len(self.tiers_deleted)

    def __repr__(self) -> str:
        return (
            f"GenerationStats(kept={sorted(self.tiers_kept)}, "
            f"deleted={sorted(self.tiers_deleted)})"
        )


class GenerationManager:
    """Install and activate cache generations."""

    def __init__(self, config: ShieldConfig, store: CacheStore, fetcher: Fetcher) -> None:
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self._state = GenerationState.NEW

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def generation(self) -> str:
        return self.config.cache_generation

    async def install(self) -> int:
        """Fetch the whole asset manifest into the static tier.

        All-or-nothing: every asset is fetched before anything is written, and
        one failure aborts the install.

        Returns:
            Number of assets cached

        Raises:
            GenerationInstallError: If any asset fails to fetch
        """
        logger.info(
            "Installing cache generation %s (%d static assets)",
            self.generation,
            len(self.config.static_assets),
        )

        fetched: list[tuple[EdgeRequest, EdgeResponse]] = []
        for asset in self.config.static_assets:
            request = EdgeRequest(url=self.config.absolute_url(asset))
            try:
                response = await self.fetcher.fetch(request)
            except NetworkError as e:
                raise GenerationInstallError(f"Failed to fetch {asset}: {e}") from e
            if not response.ok:
                raise GenerationInstallError(
                    f"Failed to fetch {asset}: HTTP {response.status}"
                )
            fetched.append((request, response))

        tier = await self.store.open(self.config.static_tier)
        for request, response in fetched:
            await tier.put(request, response.clone())

        self._state = GenerationState.INSTALLED
        logger.info("Installed %d assets into %s", len(fetched), self.config.static_tier)
        return len(fetched)

    async def activate(self) -> GenerationStats:
        """Delete every tier that does not belong to the current generation.

        Returns:
            GenerationStats listing kept and deleted tiers
        """
        stats = GenerationStats()
        current = set(self.config.current_tiers)

        for name in sorted(await self.store.list_tier_names()):
            if name in current:
                stats.tiers_kept.append(name)
                continue
            await self.store.delete_tier(name)
            stats.tiers_deleted.append(name)

        self._state = GenerationState.ACTIVE
        logger.info("Activated cache generation %s: %s", self.generation, stats)
        return stats

    async def skip_waiting(self) -> bool:
        """Activate an installed generation immediately.

        Returns:
            True if this call performed the activation
        """
        if self._state is not GenerationState.INSTALLED:
            logger.debug("Skip-waiting ignored in state %s", self._state.value)
            return False
        await self.activate()
        return True
