"""Canonical data model for the recommendation engine.

Upstream product payloads come in several shapes depending on which
endpoint produced them. ``normalize_product`` is the single adapter that
turns any of them into the canonical ``Product``; nothing past the
ingestion boundary looks at raw payloads.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from storerec.api.exceptions import DataIntegrityWarning
from storerec.config import DEFAULT_CURRENCY

# Configure module logger
logger = logging.getLogger(__name__)

_ID_KEYS = ("id", "productId", "product_id")
_PRICE_KEYS = ("price", "priceNum", "amount")
_CATEGORY_KEYS = ("categoryId", "category_id")
_SHOP_KEYS = ("shopId", "shop_id", "tenantId", "tenant_id")
_PHOTO_KEYS = ("photoUrl", "photo_url")
_CONSUMED_KEYS = frozenset(
    _ID_KEYS
    + _PRICE_KEYS
    + _CATEGORY_KEYS
    + _SHOP_KEYS
    + _PHOTO_KEYS
    + ("title", "currency", "images", "category", "tenant")
)


class SellerMode(str, Enum):
    """Whether candidates come from one shop or span many."""

    SINGLE = "single-seller"
    MULTI = "multi-seller"


@dataclass(frozen=True)
class Category:
    """A node of the category forest."""

    id: str
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class Product:
    """Canonical product shape seen by the pipeline.

    ``extra`` carries display fields (description, stock, shop name, ...)
    that the algorithms never read.
    """

    id: str
    price: float = 0.0
    currency: str = DEFAULT_CURRENCY
    title: str = ""
    category_id: Optional[str] = None
    shop_id: Optional[str] = None
    image_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Scope:
    """Marketplace-wide when ``shop_id`` is None, single-shop otherwise."""

    shop_id: Optional[str] = None

    @property
    def is_marketplace(self) -> bool:
        return self.shop_id is None

    @property
    def mode(self) -> SellerMode:
        return SellerMode.MULTI if self.is_marketplace else SellerMode.SINGLE


@dataclass(frozen=True)
class PoolFilters:
    """Optional narrowing of a product pool fetch."""

    category_ids: Optional[FrozenSet[str]] = None
    limit: Optional[int] = None


@dataclass
class ViewedProductRecord:
    id: str
    title: str
    category_id: Optional[str]
    viewed_at: int


@dataclass
class SearchRecord:
    query: str
    searched_at: int


@dataclass
class CategoryAffinity:
    category_id: str
    view_count: int
    last_viewed_at: int


def _first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _nested_id(raw: Mapping[str, Any], key: str) -> Any:
    nested = raw.get(key)
    if isinstance(nested, Mapping):
        return nested.get("id")
    return None


def _parse_price(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0.0
    # NaN and negative prices disable price tiers the same way 0 does
    if price != price or price < 0:
        return 0.0
    return price


def _image_url(raw: Mapping[str, Any]) -> Optional[str]:
    images = raw.get("images")
    if isinstance(images, list) and images and isinstance(images[0], Mapping):
        url = images[0].get("webUrl") or images[0].get("url")
        if url:
            return str(url)
    photo = _first_present(raw, _PHOTO_KEYS)
    return str(photo) if photo else None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def normalize_product(
    raw: Any,
    default_currency: str = DEFAULT_CURRENCY,
) -> Product:
    """Convert an upstream product payload into a canonical ``Product``.

    Args:
        raw: A ``Product`` (returned unchanged) or a mapping in any of the
            shapes produced by the storefront endpoints.
        default_currency: Currency used when the payload carries none.

    Returns:
        The canonical product.

    Raises:
        DataIntegrityWarning: If the payload is not a mapping or has no id.
    """
    if isinstance(raw, Product):
        return raw
    if not isinstance(raw, Mapping):
        raise DataIntegrityWarning(
            "Product payload is not a mapping",
            details={"payload_type": type(raw).__name__},
        )

    product_id = _first_present(raw, _ID_KEYS)
    if product_id is None:
        raise DataIntegrityWarning(
            "Product payload has no id",
            details={"keys": sorted(str(k) for k in raw.keys())},
        )

    category_id = _first_present(raw, _CATEGORY_KEYS)
    if category_id is None:
        category_id = _nested_id(raw, "category")

    shop_id = _first_present(raw, _SHOP_KEYS)
    if shop_id is None:
        shop_id = _nested_id(raw, "tenant")

    extra = {k: v for k, v in raw.items() if k not in _CONSUMED_KEYS}
    tenant = raw.get("tenant")
    if isinstance(tenant, Mapping) and tenant.get("name"):
        extra.setdefault("shop_name", tenant["name"])

    return Product(
        id=str(product_id),
        price=_parse_price(_first_present(raw, _PRICE_KEYS)),
        currency=str(raw.get("currency") or default_currency),
        title=str(raw.get("title") or ""),
        category_id=_optional_str(category_id),
        shop_id=_optional_str(shop_id),
        image_url=_image_url(raw),
        extra=extra,
    )


def normalize_products(
    raws: Iterable[Any],
    default_currency: str = DEFAULT_CURRENCY,
) -> List[Product]:
    """Normalize a batch of payloads, skipping the ones that cannot be read."""
    products: List[Product] = []
    for raw in raws:
        try:
            products.append(normalize_product(raw, default_currency))
        except DataIntegrityWarning as e:
            logger.warning(
                "Skipping malformed product payload",
                extra={"error": e.message, "details": e.details},
            )
    return products
