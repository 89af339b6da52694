"""Deterministic product extraction from raw page markup.

Three families of extractors, all pure and all tolerant of garbage input
(they return ``None`` rather than raise):

* linked data: ``<script type="application/ld+json">`` Product objects;
* page metadata: Open Graph ``og:*`` meta tags;
* heuristics: regex price and main-image detectors.

:data:`EXTRACTION_STEPS` chains them in priority order.  Each step receives
the accumulator built so far and may only fill fields that are still absent.
"""

from __future__ import annotations

import html as html_lib
import json
import re
from typing import Any, Callable, Iterator, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from storefront.scraper.models import ProductFields, clean_text, coerce_price


# ---------------------------------------------------------------------------
# Linked data (schema.org Product)
# ---------------------------------------------------------------------------

def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class LinkedDataOffer(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    price: Optional[str] = None
    low_price: Optional[str] = Field(default=None, alias="lowPrice")
    high_price: Optional[str] = Field(default=None, alias="highPrice")

    @field_validator("price", "low_price", "high_price", mode="before")
    @classmethod
    def _scalar(cls, v: Any) -> Optional[str]:
        return clean_text(_first(v))


class LinkedDataProduct(BaseModel):
    """The subset of a schema.org ``Product`` node this scraper understands.

    Shapes vary wildly between shops, so every field is normalised in a
    ``before`` validator and anything unrecognised collapses to ``None``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    offers: Optional[LinkedDataOffer] = None
    additional_property: dict[str, str] = Field(default_factory=dict, alias="additionalProperty")

    @field_validator("name", "description", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return clean_text(v)

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, v: Any) -> Optional[str]:
        v = _first(v)
        if isinstance(v, dict):  # ImageObject
            v = v.get("url") or v.get("contentUrl")
        return clean_text(v)

    @field_validator("brand", mode="before")
    @classmethod
    def _brand(cls, v: Any) -> Optional[str]:
        v = _first(v)
        if isinstance(v, dict):  # Brand / Organization
            v = v.get("name")
        return clean_text(v)

    @field_validator("offers", mode="before")
    @classmethod
    def _offers(cls, v: Any) -> Optional[dict]:
        v = _first(v)
        return v if isinstance(v, dict) else None

    @field_validator("additional_property", mode="before")
    @classmethod
    def _properties(cls, v: Any) -> dict[str, str]:
        if isinstance(v, dict):
            v = [v]
        if not isinstance(v, list):
            return {}
        specs: dict[str, str] = {}
        for prop in v:
            if not isinstance(prop, dict):
                continue
            name = clean_text(prop.get("name"))
            value = clean_text(_first(prop.get("value")))
            if name and value:
                specs.setdefault(name, value)
        return specs

    def to_fields(self) -> ProductFields:
        offer = self.offers or LinkedDataOffer()
        return ProductFields(
            name=self.name,
            description=self.description,
            price=coerce_price(offer.price) or coerce_price(offer.low_price),
            original_price=offer.high_price,
            image_url=self.image,
            brand=self.brand,
            specifications=self.additional_property,
        )


def _is_product(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    types = node.get("@type")
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        return False
    # Accept "Product" as well as IRIs such as "https://schema.org/Product".
    return any(
        isinstance(t, str) and re.split(r"[/:#]", t)[-1] == "Product" for t in types
    )


def _candidate_nodes(data: Any) -> Iterator[Any]:
    """Yield top-level objects, then members of their ``@graph``."""
    for item in data if isinstance(data, list) else [data]:
        if not isinstance(item, dict):
            continue
        yield item
        graph = item.get("@graph")
        if isinstance(graph, list):
            yield from graph


def extract_linked_data(html: str, base_url: str) -> Optional[ProductFields]:
    """Return fields from the first schema.org Product found in *html*.

    Blocks that are not valid JSON, or that contain no Product, are skipped
    and the scan continues with the next block.  Relative image URLs are left
    for the assembler to resolve.
    """
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script", attrs={"type": re.compile(r"ld\+json", re.I)}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw.strip(), strict=False)
        except ValueError:
            continue

        for node in _candidate_nodes(data):
            if not _is_product(node):
                continue
            try:
                return LinkedDataProduct.model_validate(node).to_fields()
            except ValidationError:
                break
    return None


# ---------------------------------------------------------------------------
# Page metadata (Open Graph)
# ---------------------------------------------------------------------------

def extract_page_metadata(html: str) -> Optional[dict[str, str]]:
    """Return ``og:*`` meta tags as ``{"title": ..., "image": ...}``.

    Attribute order does not matter; both ``property="og:..."`` and
    ``name="og:..."`` are honoured.  The first occurrence of a key wins.
    """
    soup = BeautifulSoup(html, "html.parser")
    og: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        key = (tag.get("property") or tag.get("name") or "").strip().lower()
        content = (tag.get("content") or "").strip()
        if key.startswith("og:") and len(key) > 3 and content:
            og.setdefault(key[3:], content)
    return og or None


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"

_PRICE_PATTERNS = [
    re.compile(r"[\"']price[\"']\s*:\s*[\"']?" + _NUMBER, re.IGNORECASE),
    re.compile(r"data-price=[\"']\s*" + _NUMBER, re.IGNORECASE),
    # First number inside an element whose class mentions "price"; nested
    # tags are skipped so attribute values are never mistaken for prices.
    re.compile(
        r"class=[\"'][^\"']*price[^\"']*[\"'][^>]*>(?:<[^>]*>|[^<\d])*?" + _NUMBER,
        re.IGNORECASE,
    ),
    re.compile(r"৳\s*" + _NUMBER),
    re.compile(r"\$\s*" + _NUMBER),
    re.compile(r"₹\s*" + _NUMBER),
]

_IMAGE_PATTERNS = [
    re.compile(r"<img[^>]*class=[\"'][^\"']*product[^\"']*[\"'][^>]*src=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"<img[^>]*id=[\"'][^\"']*product[^\"']*[\"'][^>]*src=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"<img[^>]*src=[\"']([^\"']+)[\"'][^>]*class=[\"'][^\"']*main[^\"']*[\"']", re.IGNORECASE),
    re.compile(r"data-zoom-image=[\"']([^\"']+)[\"']", re.IGNORECASE),
    re.compile(r"data-large_image=[\"']([^\"']+)[\"']", re.IGNORECASE),
]

_TITLE_PATTERN = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)


def parse_number(text: str) -> Optional[float]:
    """``"2,499.00"`` → ``2499.0``; ``None`` unless the result is positive."""
    try:
        value = float(text.replace(",", ""))
    except ValueError:
        return None
    return value if value > 0 else None


def absolute_url(url: str, base_url: str) -> Optional[str]:
    """Resolve *url* against *base_url*; ``None`` unless the result is http(s)."""
    url = html_lib.unescape(url.strip())
    if not url or url.startswith("data:"):
        return None
    try:
        resolved = urljoin(base_url, url)
        scheme = urlsplit(resolved).scheme
    except ValueError:  # e.g. an unbalanced "[" in the host
        return None
    if scheme not in ("http", "https"):
        return None
    return resolved


def extract_price(html: str) -> Optional[float]:
    """Return the first positive price matched by :data:`_PRICE_PATTERNS`."""
    for pattern in _PRICE_PATTERNS:
        match = pattern.search(html)
        if match:
            price = parse_number(match.group(1))
            if price is not None:
                return price
    return None


def extract_image(html: str, base_url: str) -> Optional[str]:
    """Return the main product image URL, made absolute against *base_url*."""
    for pattern in _IMAGE_PATTERNS:
        match = pattern.search(html)
        if match:
            resolved = absolute_url(match.group(1), base_url)
            if resolved:
                return resolved
    return None


def extract_title(html: str) -> Optional[str]:
    """Return the text content of the first ``<title>`` tag."""
    match = _TITLE_PATTERN.search(html)
    if match:
        return clean_text(html_lib.unescape(match.group(1)))
    return None


# ---------------------------------------------------------------------------
# Ordered merge steps
# ---------------------------------------------------------------------------

ExtractionStep = Callable[[str, str, ProductFields], ProductFields]


def linked_data_step(html: str, base_url: str, acc: ProductFields) -> ProductFields:
    return acc.fill_gaps(extract_linked_data(html, base_url))


def page_metadata_step(html: str, base_url: str, acc: ProductFields) -> ProductFields:
    og = extract_page_metadata(html)
    if not og:
        return acc
    return acc.fill_gaps(
        ProductFields(
            name=og.get("title"),
            description=og.get("description"),
            image_url=og.get("image"),
        )
    )


def heuristic_price_step(html: str, base_url: str, acc: ProductFields) -> ProductFields:
    if acc.has("price"):
        return acc
    return acc.fill_gaps(ProductFields(price=extract_price(html)))


def heuristic_image_step(html: str, base_url: str, acc: ProductFields) -> ProductFields:
    if acc.has("image_url"):
        return acc
    return acc.fill_gaps(ProductFields(image_url=extract_image(html, base_url)))


EXTRACTION_STEPS: tuple[ExtractionStep, ...] = (
    linked_data_step,
    page_metadata_step,
    heuristic_price_step,
    heuristic_image_step,
)


def run_extractors(
    html: str,
    base_url: str,
    steps: tuple[ExtractionStep, ...] = EXTRACTION_STEPS,
) -> ProductFields:
    """Fold *steps* over an empty accumulator and return the result."""
    acc = ProductFields()
    for step in steps:
        acc = step(html, base_url, acc)
    return acc
