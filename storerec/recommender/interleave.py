"""Shop interleaving.

Reorders a seller-tagged product list so consecutive items avoid sharing
a shop, while keeping each shop's own items in their original order.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Protocol, Sequence

import numpy as np

from storerec.models import Product

# Configure module logger
logger = logging.getLogger(__name__)

# Bucket key shared by every product without a shop id
_NO_SHOP = object()


class SupportsIntegers(Protocol):
    """The slice of ``numpy.random.Generator`` the shuffle needs."""

    def integers(self, low: int, high: int) -> int:
        ...


def shuffle_in_place(items: List, rng: SupportsIntegers) -> None:
    """Fisher-Yates shuffle driven by ``rng.integers(0, i + 1)``."""
    for i in range(len(items) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        items[i], items[j] = items[j], items[i]


def interleave_by_shop(
    products: Sequence[Product],
    rng: Optional[SupportsIntegers] = None,
) -> List[Product]:
    """Round-robin merge of per-shop buckets in a shuffled bucket order.

    Products are grouped into buckets by ``shop_id`` in first-seen order;
    products without a shop share one bucket. The bucket order (never the
    order inside a bucket) is shuffled, then each sweep pops the front item
    of every non-empty bucket until all are drained.

    Adjacent items differ in shop whenever more than one bucket still had
    items when the second one was placed. Once a single bucket is left its
    remaining items come out back to back; that tail is unavoidable.

    Args:
        products: Products to reorder.
        rng: Source of randomness for the bucket shuffle. Defaults to a
            fresh ``numpy.random.default_rng()``.

    Returns:
        A new list holding the same products.
    """
    if len(products) < 2:
        return list(products)

    buckets: Dict[object, Deque[Product]] = {}
    for product in products:
        key = product.shop_id if product.shop_id is not None else _NO_SHOP
        buckets.setdefault(key, deque()).append(product)

    order = list(buckets.values())
    if len(order) > 1:
        shuffle_in_place(order, rng if rng is not None else np.random.default_rng())

    result: List[Product] = []
    while len(result) < len(products):
        for bucket in order:
            if bucket:
                result.append(bucket.popleft())

    logger.debug(
        "Interleaved products by shop",
        extra={"num_products": len(result), "num_shops": len(order)},
    )
    return result
