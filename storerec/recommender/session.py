"""Product page loading with stale-result protection.

A viewer can move to another product before the fetches for the previous
one resolve. Every load takes a token from ``LivenessGuard``; only the
most recently started load for a view may publish its result, so a slow
earlier load never overwrites a newer page.
"""

import asyncio
import itertools
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from storerec.api.exceptions import ProductNotFoundError
from storerec.api.metrics import metrics_service
from storerec.config import RecommenderConfig
from storerec.models import Category, PoolFilters, Product, Scope, SellerMode
from storerec.recommender.affinity import AffinityTracker
from storerec.recommender.categories import CategoryIndex
from storerec.recommender.interleave import SupportsIntegers
from storerec.recommender.pipeline import compute_explore_more, compute_related
from storerec.recommender.providers import CategoryProvider, ProductPoolProvider

# Configure module logger
logger = logging.getLogger(__name__)


class LivenessGuard:
    """Hands out tokens per view; only the newest token of a view is live.

    A view is forgotten once its newest load calls ``end``, so the guard
    only holds views with a load in flight.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._current: Dict[str, int] = {}

    def begin(self, view: str) -> int:
        token = next(self._counter)
        self._current[view] = token
        return token

    def is_live(self, view: str, token: int) -> bool:
        return self._current.get(view) == token

    def end(self, view: str, token: int) -> None:
        """Forget ``view`` if ``token`` is still its newest load."""
        if self._current.get(view) == token:
            del self._current[view]

    def __len__(self) -> int:
        return len(self._current)


@dataclass
class ProductPage:
    focal: Product
    mode: SellerMode
    related: List[Product] = field(default_factory=list)
    explore_more: List[Product] = field(default_factory=list)


class ProductPageLoader:
    """Fetch inputs concurrently and run the candidate pipeline for a page.

    Args:
        category_provider: Source of the scope's category list.
        pool_provider: Source of candidate pools and the focal product.
        config: Pipeline parameters.
        rng: Randomness for shop interleaving.
        guard: Liveness guard; share one per client to coordinate views.
    """

    def __init__(
        self,
        category_provider: CategoryProvider,
        pool_provider: ProductPoolProvider,
        config: Optional[RecommenderConfig] = None,
        rng: Optional[SupportsIntegers] = None,
        guard: Optional[LivenessGuard] = None,
    ):
        self.category_provider = category_provider
        self.pool_provider = pool_provider
        self.config = config or RecommenderConfig()
        self.rng = rng
        self.guard = guard or LivenessGuard()
        self._published: "OrderedDict[str, ProductPage]" = OrderedDict()

    def current(self, view: str) -> Optional[ProductPage]:
        """The last page published for ``view``.

        Only the ``config.published_pages`` most recently published views
        are remembered; older ones answer None.
        """
        return self._published.get(view)

    def _publish(self, view: str, page: ProductPage) -> None:
        self._published[view] = page
        self._published.move_to_end(view)
        while len(self._published) > max(self.config.published_pages, 0):
            self._published.popitem(last=False)

    async def _fetch_inputs(self, product_id: str, scope: Scope):
        results = await asyncio.gather(
            self.category_provider.fetch(scope),
            self.pool_provider.fetch_by_ids([product_id]),
            self.pool_provider.fetch(scope, PoolFilters(limit=self.config.pool_size)),
            return_exceptions=True,
        )
        categories, focal_matches, pool = results

        for source, result in (("categories", categories), ("focal", focal_matches), ("pool", pool)):
            if isinstance(result, BaseException):
                metrics_service.record_fetch_failure(source)
                logger.warning(
                    "Product page fetch failed",
                    extra={
                        "source": source,
                        "product_id": product_id,
                        "error": str(result),
                        "error_type": type(result).__name__,
                    },
                )

        if isinstance(categories, BaseException):
            categories = []
        if isinstance(focal_matches, BaseException):
            focal_matches = []
        if isinstance(pool, BaseException):
            pool = []
        return categories, focal_matches, pool

    async def load(
        self,
        view: str,
        product_id: str,
        scope: Optional[Scope] = None,
        tracker: Optional[AffinityTracker] = None,
        k: Optional[int] = None,
    ) -> Optional[ProductPage]:
        """Load the page for ``product_id`` into ``view``.

        Args:
            view: Identifies the page slot, e.g. one per client session.
            product_id: Focal product.
            scope: Marketplace or single shop; decides the seller mode.
            tracker: When given, the focal product is recorded as viewed.
            k: Related list size, defaulting to the configured limit.

        Returns:
            The computed page, or None when a newer load for the same view
            started meanwhile. A stale load never changes ``current(view)``.

        Raises:
            ProductNotFoundError: If the focal product does not resolve.
        """
        scope = scope or Scope()
        token = self.guard.begin(view)
        try:
            return await self._load(view, token, product_id, scope, tracker, k)
        finally:
            self.guard.end(view, token)

    async def _load(
        self,
        view: str,
        token: int,
        product_id: str,
        scope: Scope,
        tracker: Optional[AffinityTracker],
        k: Optional[int],
    ) -> Optional[ProductPage]:
        start_time = time.time()

        categories, focal_matches, pool = await self._fetch_inputs(product_id, scope)
        if not self.guard.is_live(view, token):
            metrics_service.record_stale_result()
            logger.info("Discarding stale product page", extra={"view": view, "product_id": product_id})
            return None

        focal = next((p for p in focal_matches if p.id == product_id), None)
        if focal is None:
            logger.warning("Focal product not found", extra={"product_id": product_id})
            raise ProductNotFoundError(product_id)

        if tracker is not None:
            # Journal stores may touch the disk
            await run_in_threadpool(tracker.track_product_view, focal)

        page = self.build_page(focal, pool, categories, scope.mode, k)

        if not self.guard.is_live(view, token):
            metrics_service.record_stale_result()
            return None
        self._publish(view, page)

        total_time = time.time() - start_time
        metrics_service.record_computation("product_page", total_time * 1000)
        logger.info(
            "Product page computed",
            extra={
                "view": view,
                "product_id": product_id,
                "mode": scope.mode.value,
                "pool_size": len(pool),
                "num_related": len(page.related),
                "num_explore_more": len(page.explore_more),
                "total_time_ms": round(total_time * 1000, 2),
            },
        )
        return page

    def build_page(
        self,
        focal: Product,
        pool: List[Product],
        categories: List[Category],
        mode: SellerMode,
        k: Optional[int] = None,
    ) -> ProductPage:
        """Run the synchronous pipeline over already fetched inputs."""
        index = CategoryIndex.build(categories)
        candidates = [p for p in pool if p.id != focal.id]
        related = compute_related(
            focal,
            candidates,
            index,
            mode,
            k=self.config.related_limit if k is None else k,
            band_low=self.config.price_band_low,
            band_high=self.config.price_band_high,
        )
        explore_more = compute_explore_more(focal, candidates, related, index, mode, self.rng)
        return ProductPage(focal=focal, mode=mode, related=related, explore_more=explore_more)
