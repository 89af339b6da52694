"""Data models for the product scraping pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

DESCRIPTION_MAX_CHARS = 500

_NON_NUMERIC = re.compile(r"[^0-9.]")

# Scalar product fields in the order the admin form shows them.
SCALAR_FIELDS = ("name", "description", "price", "original_price", "image_url", "brand")


@dataclass
class FetchedPage:
    """The body of a successfully fetched product page."""

    final_url: str
    html: str
    fetched_with_agent: str
    redirects: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Shared coercion helpers
# ---------------------------------------------------------------------------

def clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def coerce_price(value: Any) -> Optional[float]:
    """Turn a scraped price into a positive float, or ``None``.

    Strings keep only digits and decimal points (``"৳ 1,999.00"`` → 1999.0).
    Anything that still does not parse, or is not positive, is a missing
    price rather than ``0`` so a product is never stored as free by
    accident.  Models answer ``0`` for "not found".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(_NON_NUMERIC.sub("", value))
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _clean_specs(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {
        str(k).strip(): str(v).strip()
        for k, v in value.items()
        if k is not None and v is not None and str(k).strip()
    }


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------

class ProductFields(BaseModel):
    """Partial product data gathered by the extraction stages.

    Every field is optional.  Prices are parsed on the way in, so a field
    that is present always holds a usable positive number.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    brand: Optional[str] = None
    specifications: dict[str, str] = Field(default_factory=dict)

    @field_validator("name", "description", "image_url", "brand", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return clean_text(v)

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, v: Optional[str]) -> Optional[str]:
        return v[:DESCRIPTION_MAX_CHARS] if v else v

    @field_validator("price", "original_price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> Optional[float]:
        return coerce_price(v)

    @field_validator("specifications", mode="before")
    @classmethod
    def _specs(cls, v: Any) -> dict[str, str]:
        return _clean_specs(v)

    def has(self, name: str) -> bool:
        return getattr(self, name) is not None

    def missing(self) -> list[str]:
        """Names of the scalar fields that are still absent."""
        return [name for name in SCALAR_FIELDS if not self.has(name)]

    def fill_gaps(self, other: Optional["ProductFields"]) -> "ProductFields":
        """Return a copy where only absent fields are taken from *other*.

        Values already present are never replaced.  Specifications are merged
        key by key with existing keys winning.
        """
        if other is None:
            return self.model_copy(deep=True)
        update: dict[str, Any] = {
            name: getattr(other, name)
            for name in SCALAR_FIELDS
            if not self.has(name) and other.has(name)
        }
        update["specifications"] = {**other.specifications, **self.specifications}
        return self.model_copy(update=update, deep=True)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class ExtractedProduct(BaseModel):
    """The assembled, validated product handed back to the caller."""

    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    image_url: Optional[str] = None
    brand: Optional[str] = None
    specifications: dict[str, str] = Field(default_factory=dict)


@dataclass
class ScrapeResult:
    """What a successful pipeline run returns."""

    product: ExtractedProduct
    source_url: str
    final_url: str
