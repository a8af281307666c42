"""Marketplace sections for browsing pages.

Composes the "recently viewed", "based on your interests" and "trending"
sections for a scope, making sure no product appears in more than one of
them. Each section's source is fetched on its own; a failing source only
empties its own section.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Set, TypeVar

from starlette.concurrency import run_in_threadpool

from storerec.api.metrics import metrics_service
from storerec.config import SectionLimits
from storerec.models import PoolFilters, Product, Scope
from storerec.recommender.affinity import AffinityTracker
from storerec.recommender.interleave import SupportsIntegers, interleave_by_shop
from storerec.recommender.providers import ProductPoolProvider

# Configure module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Sections:
    recently_viewed: List[Product] = field(default_factory=list)
    interest_based: List[Product] = field(default_factory=list)
    trending: List[Product] = field(default_factory=list)
    shown_ids: Set[str] = field(default_factory=set)
    last_search: Optional[str] = None


def exclude_shown(
    products: Iterable[Product],
    shown_ids: Set[str],
    category_filter_active: bool = False,
) -> List[Product]:
    """Drop products already shown in the sections from a listing grid.

    A category-filtered listing must stay exhaustive, so nothing is
    dropped while a filter is active.
    """
    if category_filter_active:
        return list(products)
    return [p for p in products if p.id not in shown_ids]


class SectionComposer:
    """Build the three marketplace sections for one session.

    Args:
        tracker: The session's affinity journal.
        pool_provider: Source of product pools and by-id lookups.
        limits: Section sizes.
        rng: Randomness for shop interleaving in marketplace scope.
    """

    def __init__(
        self,
        tracker: AffinityTracker,
        pool_provider: ProductPoolProvider,
        limits: Optional[SectionLimits] = None,
        rng: Optional[SupportsIntegers] = None,
    ):
        self.tracker = tracker
        self.pool_provider = pool_provider
        self.limits = limits or SectionLimits()
        self.rng = rng

    async def _attempt(
        self,
        source: str,
        fetch: Callable[[], Awaitable[T]],
        default: T,
    ) -> T:
        try:
            return await fetch()
        except Exception as e:
            metrics_service.record_fetch_failure(source)
            logger.warning(
                "Section source failed, leaving section empty",
                extra={"source": source, "error": str(e), "error_type": type(e).__name__},
            )
            return default

    def _take(
        self,
        pool: Sequence[Product],
        shown: Set[str],
        scope: Scope,
        limit: int,
    ) -> List[Product]:
        fresh: List[Product] = []
        seen: Set[str] = set()
        for product in pool:
            if product.id in shown or product.id in seen:
                continue
            seen.add(product.id)
            fresh.append(product)
        if scope.is_marketplace:
            fresh = interleave_by_shop(fresh, self.rng)
        return fresh[:limit]

    async def _recently_viewed(self, shown: Set[str]) -> List[Product]:
        recent_ids = [r.id for r in await run_in_threadpool(self.tracker.get_recently_viewed)]
        recent_ids = recent_ids[: self.limits.recently_viewed]
        if not recent_ids:
            return []

        resolved = await self._attempt(
            "recently_viewed",
            lambda: self.pool_provider.fetch_by_ids(recent_ids),
            [],
        )
        # Keep recency order and drop ids that no longer resolve
        by_id = {p.id: p for p in resolved}
        products = [by_id[i] for i in recent_ids if i in by_id]
        shown.update(p.id for p in products)
        return products

    async def _interest_based(self, scope: Scope, shown: Set[str]) -> List[Product]:
        top_categories = await run_in_threadpool(
            self.tracker.get_top_categories, self.limits.interest_categories
        )
        filters = PoolFilters(
            category_ids=frozenset(top_categories) if top_categories else None,
            limit=self.limits.pool_size,
        )
        pool = await self._attempt(
            "interest_based",
            lambda: self.pool_provider.fetch(scope, filters),
            [],
        )
        products = self._take(pool, shown, scope, self.limits.interest_based)
        shown.update(p.id for p in products)
        return products

    async def _trending(self, scope: Scope, shown: Set[str]) -> List[Product]:
        pool = await self._attempt(
            "trending",
            lambda: self.pool_provider.fetch(scope, PoolFilters(limit=self.limits.pool_size)),
            [],
        )
        products = self._take(pool, shown, scope, self.limits.trending)
        shown.update(p.id for p in products)
        return products

    async def compose_sections(self, scope: Optional[Scope] = None) -> Sections:
        """Compose all sections for ``scope``; never raises.

        Sections are built in order so that each one can skip the ids the
        earlier ones already used.
        """
        scope = scope or Scope()
        start_time = time.time()
        shown: Set[str] = set()
        sections = Sections(shown_ids=shown)

        try:
            sections.last_search = await run_in_threadpool(self.tracker.get_last_search)
            sections.recently_viewed = await self._recently_viewed(shown)
            sections.interest_based = await self._interest_based(scope, shown)
            sections.trending = await self._trending(scope, shown)
        except Exception as e:
            logger.error(
                "Section composition failed, returning partial sections",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )

        total_time = time.time() - start_time
        metrics_service.record_computation("sections", total_time * 1000)
        logger.info(
            "Composed sections",
            extra={
                "shop_id": scope.shop_id,
                "recently_viewed": len(sections.recently_viewed),
                "interest_based": len(sections.interest_based),
                "trending": len(sections.trending),
                "total_time_ms": round(total_time * 1000, 2),
            },
        )
        return sections
