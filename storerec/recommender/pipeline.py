"""Candidate pipeline for product pages.

Builds the "related" list for a focal product from an ordered ladder of
matching tiers, and derives the "explore more" list from whatever the
ladder did not pick.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from storerec.config import DEFAULT_RELATED_LIMIT, PRICE_BAND_HIGH, PRICE_BAND_LOW
from storerec.models import Product, SellerMode
from storerec.recommender.categories import CategoryIndex
from storerec.recommender.interleave import SupportsIntegers, interleave_by_shop

# Configure module logger
logger = logging.getLogger(__name__)

Tier = Callable[[Product], bool]


def price_band(
    price: Optional[float],
    low: float = PRICE_BAND_LOW,
    high: float = PRICE_BAND_HIGH,
) -> Optional[Tuple[float, float]]:
    """Inclusive price window around ``price``, or None when price is unset."""
    if not price or price <= 0:
        return None
    return price * low, price * high


def _in_band(product: Product, band: Optional[Tuple[float, float]]) -> bool:
    if band is None:
        return False
    return band[0] <= product.price <= band[1]


def _in_categories(product: Product, categories: Set[str]) -> bool:
    return product.category_id is not None and product.category_id in categories


def build_tiers(
    focal: Product,
    category_index: CategoryIndex,
    mode: SellerMode,
    band: Optional[Tuple[float, float]],
) -> List[Tuple[str, Tier]]:
    """Return the ordered ``(name, predicate)`` ladder for ``focal``.

    Tiers whose inputs are missing (no category, no price, no shop) are
    left out entirely. The unconditional fallback is not part of the
    ladder; ``compute_related`` applies it only when every tier came up
    empty.
    """
    tiers: List[Tuple[str, Tier]] = []
    own = category_index.subtree(focal.category_id)

    def same_shop(p: Product) -> bool:
        return focal.shop_id is not None and p.shop_id == focal.shop_id

    if mode == SellerMode.MULTI and own and focal.shop_id is not None:
        if band is not None:
            tiers.append(
                ("same_shop_category_band",
                 lambda p: same_shop(p) and _in_categories(p, own) and _in_band(p, band))
            )
        tiers.append(
            ("same_shop_category", lambda p: same_shop(p) and _in_categories(p, own))
        )

    if own:
        if band is not None:
            tiers.append(
                ("category_band", lambda p: _in_categories(p, own) and _in_band(p, band))
            )
        tiers.append(("category", lambda p: _in_categories(p, own)))

    for ancestor in category_index.ancestors(focal.category_id):
        branch = category_index.subtree(ancestor)
        if band is not None:
            tiers.append(
                (f"ancestor:{ancestor}:band",
                 lambda p, b=branch: _in_categories(p, b) and _in_band(p, band))
            )
        tiers.append(
            (f"ancestor:{ancestor}", lambda p, b=branch: _in_categories(p, b))
        )

    if band is not None:
        tiers.append(("band", lambda p: _in_band(p, band)))

    return tiers


def compute_related(
    focal: Product,
    pool: Sequence[Product],
    category_index: CategoryIndex,
    mode: SellerMode = SellerMode.SINGLE,
    k: int = DEFAULT_RELATED_LIMIT,
    band_low: float = PRICE_BAND_LOW,
    band_high: float = PRICE_BAND_HIGH,
) -> List[Product]:
    """Pick up to ``k`` related products for ``focal``.

    Tiers run in priority order. Inside a tier products keep their pool
    order, an id already taken by an earlier tier is skipped, and the
    ladder stops as soon as ``k`` products are collected. When no tier
    matches anything, the first ``k`` pool products are used instead.

    Args:
        focal: Product being viewed.
        pool: Candidate products. The focal product is ignored if present.
        category_index: Index over the scope's categories.
        mode: ``MULTI`` adds same-shop tiers ahead of the category tiers.
        k: Maximum number of products to return.
        band_low: Lower price band multiplier.
        band_high: Upper price band multiplier.

    Returns:
        Related products, earlier tiers first.
    """
    if k <= 0:
        return []

    band = price_band(focal.price, band_low, band_high)
    candidates = [p for p in pool if p.id != focal.id]

    related: List[Product] = []
    taken: Set[str] = set()

    def collect(name: str, matches: Tier) -> None:
        added = 0
        for product in candidates:
            if len(related) >= k:
                break
            if product.id in taken or not matches(product):
                continue
            related.append(product)
            taken.add(product.id)
            added += 1
        if added:
            logger.debug(
                "Tier contributed products",
                extra={"focal_id": focal.id, "tier": name, "added": added},
            )

    for name, matches in build_tiers(focal, category_index, mode, band):
        if len(related) >= k:
            break
        collect(name, matches)

    if not related:
        collect("fallback", lambda p: True)

    return related


def _partition_by_category(
    products: Iterable[Product],
    categories: Set[str],
) -> Tuple[List[Product], List[Product]]:
    inside: List[Product] = []
    outside: List[Product] = []
    for product in products:
        (inside if _in_categories(product, categories) else outside).append(product)
    return inside, outside


def compute_explore_more(
    focal: Product,
    pool: Sequence[Product],
    related: Sequence[Product],
    category_index: CategoryIndex,
    mode: SellerMode = SellerMode.SINGLE,
    rng: Optional[SupportsIntegers] = None,
) -> List[Product]:
    """Everything in ``pool`` that is neither ``focal`` nor already related.

    Products in the focal product's category subtree come first, the rest
    after, each group in pool order. In multi-seller mode both groups are
    interleaved by shop before being joined.
    """
    excluded = {focal.id}
    excluded.update(p.id for p in related)

    residual: List[Product] = []
    for product in pool:
        if product.id in excluded:
            continue
        excluded.add(product.id)
        residual.append(product)

    inside, outside = _partition_by_category(
        residual, category_index.subtree(focal.category_id)
    )
    if mode == SellerMode.MULTI:
        inside = interleave_by_shop(inside, rng)
        outside = interleave_by_shop(outside, rng)

    return inside + outside
