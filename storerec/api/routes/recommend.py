"""Recommendation endpoints for the StoreRec API.

Product pages get a "related" list and an "explore more" list; browsing
pages get the three personalized marketplace sections.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from storerec.api.dependencies import Engine, get_engine, get_session_id
from storerec.api.exceptions import SupersededRequestError
from storerec.models import Product, Scope

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(tags=["recommendations"])


class ProductOut(BaseModel):
    """Product as returned to the presentation layer."""

    id: str
    title: str = ""
    price: float = 0.0
    currency: str
    category_id: Optional[str] = None
    shop_id: Optional[str] = None
    image_url: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(**product.to_dict())


def _to_out(products: List[Product]) -> List[ProductOut]:
    return [ProductOut.from_product(p) for p in products]


class ProductPageResponse(BaseModel):
    """Response model for product page recommendations.

    Attributes:
        product_id: The focal product.
        mode: "single-seller" inside a shop, "multi-seller" marketplace-wide.
        related: Up to ``k`` closely related products.
        explore_more: Every other candidate, same category first.
    """

    product_id: str = Field(..., description="Focal product ID")
    mode: str = Field(..., description="Seller mode used for the candidate tiers")
    related: List[ProductOut] = Field(..., description="Related products")
    explore_more: List[ProductOut] = Field(..., description="Explore more products")


class SectionsResponse(BaseModel):
    """Response model for the browsing page sections."""

    recently_viewed: List[ProductOut]
    interest_based: List[ProductOut]
    trending: List[ProductOut]
    shown_ids: List[str] = Field(
        ..., description="IDs a default listing grid should leave out"
    )
    last_search: Optional[str] = None


@router.get(
    "/products/{product_id}/recommendations",
    response_model=ProductPageResponse,
)
async def get_product_recommendations(
    product_id: str,
    shop_id: Optional[str] = None,
    k: Optional[int] = Query(default=None, ge=0, le=50),
    engine: Engine = Depends(get_engine),
    session_id: Optional[str] = Depends(get_session_id),
) -> ProductPageResponse:
    """Get related and explore-more products for a product page.

    Also records the view in the session's affinity journal. Requests
    without an ``X-Session-ID`` header are neither tracked nor ever
    superseded by another client.

    Args:
        product_id: Product being viewed.
        shop_id: Restrict candidates to one shop (single-seller mode).
            Omit for the marketplace-wide view.
        k: Override the number of related products.

    Raises:
        ProductNotFoundError: If the product does not resolve.
        SupersededRequestError: If a newer page load for the same session
            started before this one finished.

    Example:
        GET /products/p-42/recommendations?shop_id=s-1
    """
    logger.info(
        f"Computing product page for {product_id}",
        extra={"product_id": product_id, "shop_id": shop_id, "session_id": session_id},
    )

    view = engine.product_view(session_id)
    page = await engine.loader.load(
        view,
        product_id,
        Scope(shop_id=shop_id),
        tracker=engine.tracker(session_id),
        k=k,
    )
    if page is None:
        raise SupersededRequestError(view)

    return ProductPageResponse(
        product_id=page.focal.id,
        mode=page.mode.value,
        related=_to_out(page.related),
        explore_more=_to_out(page.explore_more),
    )


@router.get("/sections", response_model=SectionsResponse)
async def get_sections(
    shop_id: Optional[str] = None,
    engine: Engine = Depends(get_engine),
    session_id: Optional[str] = Depends(get_session_id),
) -> SectionsResponse:
    """Get the recently viewed, interest-based and trending sections.

    Always answers 200; a section whose source failed is simply empty.
    Without an ``X-Session-ID`` header the sections are those of a new
    session.
    """
    sections = await engine.composer(session_id).compose_sections(Scope(shop_id=shop_id))
    return SectionsResponse(
        recently_viewed=_to_out(sections.recently_viewed),
        interest_based=_to_out(sections.interest_based),
        trending=_to_out(sections.trending),
        shown_ids=sorted(sections.shown_ids),
        last_search=sections.last_search,
    )
