"""Final normalisation and completeness check for a product candidate."""

from __future__ import annotations

from storefront.errors import ExtractionIncomplete
from storefront.scraper.extractor import absolute_url
from storefront.scraper.models import ExtractedProduct, ProductFields, coerce_price

__all__ = ["assemble", "coerce_price"]


def assemble(candidate: ProductFields, base_url: str) -> ExtractedProduct:
    """Return the finished product for *candidate*.

    Relative image URLs are resolved against *base_url*; one that cannot be
    resolved to an http(s) URL is dropped.

    Raises:
        ExtractionIncomplete: No name was found by any stage.  The candidate
            is attached as ``partial`` for diagnosis.
    """
    if not candidate.has("name"):
        raise ExtractionIncomplete(partial=candidate)

    image_url = candidate.image_url
    if image_url:
        image_url = absolute_url(image_url, base_url)

    return ExtractedProduct(
        name=candidate.name,
        description=candidate.description,
        price=coerce_price(candidate.price),
        original_price=coerce_price(candidate.original_price),
        image_url=image_url,
        brand=candidate.brand,
        specifications=dict(candidate.specifications),
    )
