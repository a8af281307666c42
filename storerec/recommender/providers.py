"""Collaborator interfaces consumed by the engine, and their implementations.

The engine never talks to a database or a browser store directly. It
consumes a ``CategoryProvider``, a ``ProductPoolProvider`` and a
``PersistentStore``; this module defines those protocols together with
in-memory versions (used by tests and the default service), a CSV-backed
catalog loaded with pandas, and a directory-backed store.
"""

import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

import pandas as pd

from storerec.api.exceptions import StorageUnavailable, TransientFetchError
from storerec.config import DEFAULT_CURRENCY
from storerec.models import (
    Category,
    PoolFilters,
    Product,
    Scope,
    normalize_products,
)

# Configure module logger
logger = logging.getLogger(__name__)

PRODUCTS_FILENAME = "products.csv"
CATEGORIES_FILENAME = "categories.csv"


class CategoryProvider(Protocol):
    async def fetch(self, scope: Scope) -> List[Category]:
        ...


class ProductPoolProvider(Protocol):
    async def fetch(
        self,
        scope: Scope,
        filters: Optional[PoolFilters] = None,
    ) -> List[Product]:
        ...

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Product]:
        ...


class PersistentStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryCatalog:
    """Category and product provider over lists held in memory.

    Products are kept in insertion order, which doubles as the "most
    broadly available" order used for trending pools.
    """

    def __init__(
        self,
        products: Iterable[Any] = (),
        categories: Iterable[Category] = (),
        shop_categories: Optional[Dict[str, List[Category]]] = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self.products = normalize_products(products, default_currency)
        self.categories = list(categories)
        self.shop_categories = shop_categories or {}

    async def fetch(
        self,
        scope: Scope,
        filters: Optional[PoolFilters] = None,
    ) -> List[Product]:
        return _filter_pool(self.products, scope, filters)

    async def fetch_by_ids(self, ids: Sequence[str]) -> List[Product]:
        return _resolve_ids(self.products, ids)

    async def fetch_categories(self, scope: Scope) -> List[Category]:
        if scope.shop_id is not None and scope.shop_id in self.shop_categories:
            return list(self.shop_categories[scope.shop_id])
        return list(self.categories)


class CategoryProviderView:
    """Expose a catalog's ``fetch_categories`` as a ``CategoryProvider``."""

    def __init__(self, catalog: Any):
        self.catalog = catalog

    async def fetch(self, scope: Scope) -> List[Category]:
        return await self.catalog.fetch_categories(scope)


class CsvCatalog(InMemoryCatalog):
    """Catalog loaded from ``products.csv`` and ``categories.csv``.

    ``products.csv`` needs an ``id`` column; ``price``, ``currency``,
    ``title``, ``category_id``, ``shop_id`` and ``photo_url`` are read when
    present and any other column is passed through as a display field.
    ``categories.csv`` needs ``id`` and ``parent_id``.
    """

    def __init__(self, data_dir: Path, default_currency: str = DEFAULT_CURRENCY):
        self.data_dir = Path(data_dir)
        products = self._load_products(self.data_dir / PRODUCTS_FILENAME)
        categories = self._load_categories(self.data_dir / CATEGORIES_FILENAME)
        super().__init__(
            products=products,
            categories=categories,
            default_currency=default_currency,
        )
        logger.info(
            "Loaded CSV catalog",
            extra={
                "data_dir": str(self.data_dir),
                "num_products": len(self.products),
                "num_categories": len(self.categories),
            },
        )

    @staticmethod
    def _read_csv(path: Path) -> pd.DataFrame:
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except (OSError, ValueError) as e:
            raise TransientFetchError(str(path), e) from e
        if "id" not in df.columns:
            raise TransientFetchError(
                str(path), ValueError("CSV missing required column: id")
            )
        return df

    def _load_products(self, path: Path) -> List[Dict[str, Any]]:
        df = self._read_csv(path)
        # Empty cells come through as "" and are dropped so the normalizer
        # sees them as absent
        return [
            {k: v for k, v in row.items() if v != ""}
            for row in df.to_dict(orient="records")
        ]

    def _load_categories(self, path: Path) -> List[Category]:
        if not path.exists():
            logger.warning(
                "No categories file, category tiers will be skipped",
                extra={"path": str(path)},
            )
            return []
        df = self._read_csv(path)
        if "parent_id" not in df.columns:
            df["parent_id"] = ""
        return [
            Category(id=str(row["id"]), parent_id=row["parent_id"] or None)
            for row in df.to_dict(orient="records")
        ]


def _filter_pool(
    products: Sequence[Product],
    scope: Scope,
    filters: Optional[PoolFilters],
) -> List[Product]:
    pool = [
        p for p in products
        if scope.is_marketplace or p.shop_id == scope.shop_id
    ]
    if filters is not None and filters.category_ids:
        pool = [p for p in pool if p.category_id in filters.category_ids]
    if filters is not None and filters.limit is not None:
        pool = pool[: max(filters.limit, 0)]
    return pool


def _resolve_ids(products: Sequence[Product], ids: Sequence[str]) -> List[Product]:
    by_id = {p.id: p for p in products}
    return [by_id[i] for i in ids if i in by_id]


class MemoryStore:
    """Dict-backed ``PersistentStore``."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class FileStore:
    """``PersistentStore`` keeping one file per key under ``root``.

    Files are named after the SHA-256 of the key, so distinct keys never
    share a file and no key can point outside ``root``.

    OS errors are raised as ``StorageUnavailable``; callers decide whether
    to swallow them.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.root / f"{digest}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailable(key, e) from e

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_bytes(value)
            tmp.replace(path)
        except OSError as e:
            raise StorageUnavailable(key, e) from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageUnavailable(key, e) from e
