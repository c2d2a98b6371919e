"""
Pool Source - discovery of markets from the pool index.

Each pool contributes two markets, so the price feed can be driven by
whatever pools exist instead of a hand-maintained market list.
"""

from typing import Dict, Iterable, List, Optional, Protocol

from relayer.core.market import Pool


class PoolSource(Protocol):
    """Paginated pool index."""

    async def fetch_pools(
        self,
        page: int,
        per_page: int,
        created_by: Optional[str] = None,
    ) -> List[Pool]:
        """Pools on the requested page, oldest first."""
        ...


class InMemoryPoolSource:
    """Pool index held in process memory, optionally keyed by creator."""

    def __init__(self, pools: Optional[Iterable[Pool]] = None):
        self._pools: List[Pool] = []
        self._creators: Dict[str, str] = {}
        for pool in pools or ():
            self.add_pool(pool)

    def add_pool(self, pool: Pool, created_by: Optional[str] = None) -> None:
        self._pools.append(pool)
        if created_by is not None:
            self._creators[pool.pool_id] = created_by.lower()

    async def fetch_pools(
        self,
        page: int,
        per_page: int,
        created_by: Optional[str] = None,
    ) -> List[Pool]:
        pools = self._pools
        if created_by:
            pools = [p for p in pools if self._creators.get(p.pool_id) == created_by.lower()]
        start = (page - 1) * per_page
        return pools[start:start + per_page]
