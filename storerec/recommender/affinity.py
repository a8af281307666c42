"""Per-session affinity journal.

Tracks recently viewed products, recent searches and per-category view
counts for one viewer. Everything here is best-effort: a broken or
missing store makes reads come back empty and writes do nothing, and no
error ever reaches the caller.
"""

import json
import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

from storerec.api.exceptions import StorageUnavailable
from storerec.config import DEFAULT_TOP_CATEGORIES, JournalLimits
from storerec.models import (
    CategoryAffinity,
    Product,
    SearchRecord,
    ViewedProductRecord,
)
from storerec.recommender.providers import PersistentStore

# Configure module logger
logger = logging.getLogger(__name__)

RECENTLY_VIEWED = "recentlyViewed"
SEARCH_HISTORY = "searchHistory"
CATEGORY_VIEWS = "categoryViews"
JOURNALS = (RECENTLY_VIEWED, SEARCH_HISTORY, CATEGORY_VIEWS)


class AffinityStore:
    """JSON journals for one session, kept in a ``PersistentStore``.

    This is the only place that touches the store. Failures are turned
    into ``StorageUnavailable`` and then discarded here: ``load`` returns
    an empty journal and ``save`` / ``remove`` become no-ops.
    """

    def __init__(self, store: Optional[PersistentStore], namespace: str = "default"):
        self.store = store
        self.namespace = namespace

    def key(self, journal: str) -> str:
        return f"storerec:{self.namespace}:{journal}"

    def load(self, journal: str) -> List[Dict[str, Any]]:
        key = self.key(journal)
        try:
            raw = self._get(key)
            if raw is None:
                return []
            data = json.loads(raw)
        except StorageUnavailable as e:
            logger.warning("Journal read failed", extra={"key": key, "error": e.message})
            return []
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(
                "Corrupt journal payload, starting empty",
                extra={"key": key, "error": str(e)},
            )
            return []

        if not isinstance(data, list):
            logger.warning("Journal payload is not a list", extra={"key": key})
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def save(self, journal: str, entries: List[Dict[str, Any]]) -> None:
        key = self.key(journal)
        try:
            self._call(key, "set", json.dumps(entries).encode("utf-8"))
        except StorageUnavailable as e:
            logger.warning("Journal write ignored", extra={"key": key, "error": e.message})

    def remove(self, journal: str) -> None:
        key = self.key(journal)
        try:
            self._call(key, "remove")
        except StorageUnavailable as e:
            logger.warning("Journal clear ignored", extra={"key": key, "error": e.message})

    def _get(self, key: str) -> Optional[bytes]:
        return self._call(key, "get")

    def _call(self, key: str, method: str, *args: Any) -> Any:
        if self.store is None:
            raise StorageUnavailable(key, RuntimeError("no persistent store configured"))
        try:
            return getattr(self.store, method)(key, *args)
        except StorageUnavailable:
            raise
        except Exception as e:
            raise StorageUnavailable(key, e) from e


def _viewed_from_dict(entry: Dict[str, Any]) -> Optional[ViewedProductRecord]:
    try:
        return ViewedProductRecord(
            id=str(entry["id"]),
            title=str(entry.get("title") or ""),
            category_id=entry.get("category_id"),
            viewed_at=int(entry.get("viewed_at") or 0),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _search_from_dict(entry: Dict[str, Any]) -> Optional[SearchRecord]:
    try:
        return SearchRecord(
            query=str(entry["query"]),
            searched_at=int(entry.get("searched_at") or 0),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _affinity_from_dict(entry: Dict[str, Any]) -> Optional[CategoryAffinity]:
    try:
        return CategoryAffinity(
            category_id=str(entry["category_id"]),
            view_count=int(entry.get("view_count") or 0),
            last_viewed_at=int(entry.get("last_viewed_at") or 0),
        )
    except (KeyError, TypeError, ValueError):
        return None


class AffinityTracker:
    """Record browsing signals for a session and read them back.

    ``track_product_view`` and ``track_search`` are fire-and-forget: any
    failure inside them is logged and dropped on purpose, so callers can
    invoke them as side effects of rendering without guarding the call.

    Args:
        store: The session's journals.
        limits: Journal caps.
        clock: Returns the current time in seconds; timestamps are stored
            as integer milliseconds.
    """

    def __init__(
        self,
        store: AffinityStore,
        limits: Optional[JournalLimits] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limits = limits or JournalLimits()
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # ----- writes -----

    def track_product_view(self, product: Product) -> None:
        """Move ``product`` to the front of the recently viewed journal."""
        try:
            self._record_view(product)
        except Exception as e:
            logger.error(
                "Failed to track product view",
                extra={"product_id": getattr(product, "id", None), "error": str(e)},
                exc_info=True,
            )

    def track_search(self, query: str) -> None:
        """Move ``query`` to the front of the search history."""
        if not query or not query.strip():
            return
        try:
            self._record_search(query.strip())
        except Exception as e:
            logger.error(
                "Failed to track search",
                extra={"error": str(e)},
                exc_info=True,
            )

    def _record_view(self, product: Product) -> None:
        now = self._now_ms()
        record = ViewedProductRecord(
            id=product.id,
            title=product.title,
            category_id=product.category_id,
            viewed_at=now,
        )
        history = [r for r in self.get_recently_viewed() if r.id != product.id]
        updated = [record] + history
        self.store.save(
            RECENTLY_VIEWED,
            [asdict(r) for r in updated[: self.limits.recent_products]],
        )

        if product.category_id:
            self._record_category(product.category_id, now)

    def _record_category(self, category_id: str, now: int) -> None:
        affinities = self._load_affinities()
        for affinity in affinities:
            if affinity.category_id == category_id:
                affinity.view_count += 1
                affinity.last_viewed_at = now
                break
        else:
            affinities.append(CategoryAffinity(category_id, 1, now))

        affinities.sort(key=lambda a: a.view_count, reverse=True)
        self.store.save(
            CATEGORY_VIEWS,
            [asdict(a) for a in affinities[: self.limits.category_tracking]],
        )

    def _record_search(self, query: str) -> None:
        record = SearchRecord(query=query, searched_at=self._now_ms())
        folded = query.casefold()
        history = [s for s in self.get_search_history() if s.query.casefold() != folded]
        updated = [record] + history
        self.store.save(
            SEARCH_HISTORY,
            [asdict(s) for s in updated[: self.limits.search_history]],
        )

    # ----- reads -----

    def get_recently_viewed(self) -> List[ViewedProductRecord]:
        records = [_viewed_from_dict(e) for e in self.store.load(RECENTLY_VIEWED)]
        return [r for r in records if r is not None]

    def get_search_history(self) -> List[SearchRecord]:
        records = [_search_from_dict(e) for e in self.store.load(SEARCH_HISTORY)]
        return [r for r in records if r is not None]

    def get_last_search(self) -> Optional[str]:
        history = self.get_search_history()
        return history[0].query if history else None

    def _load_affinities(self) -> List[CategoryAffinity]:
        records = [_affinity_from_dict(e) for e in self.store.load(CATEGORY_VIEWS)]
        return [r for r in records if r is not None]

    def get_category_affinities(self) -> List[CategoryAffinity]:
        affinities = self._load_affinities()
        affinities.sort(key=lambda a: a.view_count, reverse=True)
        return affinities

    def get_top_categories(self, limit: int = DEFAULT_TOP_CATEGORIES) -> List[str]:
        """Category ids ordered by view count, most viewed first."""
        if limit <= 0:
            return []
        return [a.category_id for a in self.get_category_affinities()[:limit]]

    # ----- resets -----

    def clear_recently_viewed(self) -> None:
        self.store.remove(RECENTLY_VIEWED)

    def clear_search_history(self) -> None:
        self.store.remove(SEARCH_HISTORY)

    def clear_all(self) -> None:
        for journal in JOURNALS:
            self.store.remove(journal)
