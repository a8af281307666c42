"""Shared engine state for the API.

The engine (catalog, journal store, page loader) is built once from the
service configuration and cached at module level, the same way every
request reuses it. Tests swap it out through ``app.dependency_overrides``
or ``set_engine``.
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Header

from storerec.api.exceptions import MissingSessionError
from storerec.config import ServiceConfig
from storerec.recommender.affinity import AffinityStore, AffinityTracker
from storerec.recommender.interleave import SupportsIntegers
from storerec.recommender.providers import (
    CategoryProvider,
    CategoryProviderView,
    CsvCatalog,
    FileStore,
    InMemoryCatalog,
    MemoryStore,
    PersistentStore,
    ProductPoolProvider,
)
from storerec.recommender.sections import SectionComposer
from storerec.recommender.session import LivenessGuard, ProductPageLoader

# Configure module logger
logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-ID"

# Cache for the engine built from configuration
_engine: Optional["Engine"] = None


class Engine:
    """Everything a request needs, wired together once."""

    def __init__(
        self,
        config: ServiceConfig,
        pool_provider: ProductPoolProvider,
        category_provider: CategoryProvider,
        store: Optional[PersistentStore],
        rng: Optional[SupportsIntegers] = None,
    ):
        self.config = config
        self.pool_provider = pool_provider
        self.category_provider = category_provider
        self.store = store
        self.rng = rng
        self.guard = LivenessGuard()
        self.loader = ProductPageLoader(
            category_provider,
            pool_provider,
            config=config.recommender,
            rng=rng,
            guard=self.guard,
        )

    def tracker(self, session_id: Optional[str]) -> AffinityTracker:
        """Affinity journal of ``session_id``.

        Without a session the journal lives in a throwaway store, so
        anonymous requests never read or write another client's history.
        """
        if session_id is None:
            return AffinityTracker(
                AffinityStore(MemoryStore(), namespace="anonymous"),
                limits=self.config.recommender.journals,
            )
        return AffinityTracker(
            AffinityStore(self.store, namespace=session_id),
            limits=self.config.recommender.journals,
        )

    @staticmethod
    def product_view(session_id: Optional[str]) -> str:
        """Liveness view for product pages; one per request without a session."""
        if session_id is None:
            return f"anonymous:{uuid.uuid4().hex}:product"
        return f"{session_id}:product"

    def composer(self, session_id: Optional[str]) -> SectionComposer:
        return SectionComposer(
            self.tracker(session_id),
            self.pool_provider,
            limits=self.config.recommender.sections,
            rng=self.rng,
        )


def build_engine(config: ServiceConfig) -> Engine:
    """Create the engine described by ``config``.

    Raises:
        TransientFetchError: If the configured CSV catalog cannot be read.
    """
    if config.data_dir is not None:
        catalog: InMemoryCatalog = CsvCatalog(
            config.data_dir, default_currency=config.default_currency
        )
    else:
        logger.warning("No data directory configured, starting with an empty catalog")
        catalog = InMemoryCatalog(default_currency=config.default_currency)

    store: PersistentStore
    if config.store_dir is not None:
        store = FileStore(config.store_dir)
    else:
        store = MemoryStore()

    return Engine(
        config=config,
        pool_provider=catalog,
        category_provider=CategoryProviderView(catalog),
        store=store,
    )


def get_engine() -> Engine:
    """FastAPI dependency returning the cached engine."""
    global _engine

    if _engine is None:
        logger.info("Building recommendation engine")
        _engine = build_engine(ServiceConfig.from_env())
    return _engine


def set_engine(engine: Optional[Engine]) -> None:
    """Replace (or with None, drop) the cached engine."""
    global _engine
    _engine = engine


def get_session_id(
    x_session_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    """Session id from the ``X-Session-ID`` header, or None without one."""
    if x_session_id is None or not x_session_id.strip():
        return None
    return x_session_id.strip()


def require_session_id(
    session_id: Optional[str] = Depends(get_session_id),
) -> str:
    """Session id for endpoints that read or clear a session's journal.

    Raises:
        MissingSessionError: If the request carries no session header.
    """
    if session_id is None:
        raise MissingSessionError(SESSION_HEADER)
    return session_id
