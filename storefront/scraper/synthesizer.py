"""Generative-model fallback for pages the deterministic extractors miss.

Runs only when a name or a price is still missing.  The page is cleaned and
truncated, sent to the completion service with a fixed JSON-shape
instruction, and the answer fills gaps beneath the fields already found.
A generated value never replaces a deterministic one.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment
from pydantic import ValidationError

from storefront.config import settings
from storefront.errors import UpstreamServiceUnavailable
from storefront.llm import CompletionService, CompletionUnavailable
from storefront.scraper.extractor import extract_image, extract_price, extract_title
from storefront.scraper.models import ProductFields

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a product data extractor. Extract product information from HTML.
Return ONLY a valid JSON object (no markdown, no code blocks):
{
  "name": "product name",
  "description": "concise description max 500 chars",
  "price": 0,
  "original_price": null,
  "image_url": "absolute URL to main product image",
  "brand": "brand name or null",
  "specifications": {}
}
For price, extract numeric value only. Look for:
- Schema.org data, meta tags, price classes
- Currency symbols: ৳, $, ₹, €, £
- Product images in main content area
Return null for fields you cannot find."""

_STRIPPED_TAGS = ["script", "style", "noscript", "nav", "footer", "header"]
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def needs_synthesis(fields: ProductFields) -> bool:
    return not fields.has("name") or not fields.has("price")


def clean_html(html: str, max_chars: Optional[int] = None) -> str:
    """Strip non-content markup, collapse whitespace and truncate."""
    limit = settings.synth_max_chars if max_chars is None else max_chars
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    return re.sub(r"\s+", " ", str(soup)).strip()[:limit]


def parse_completion(text: str) -> ProductFields:
    """Parse the model's reply into fields.

    Unknown keys are ignored and malformed values collapse to ``None`` via the
    :class:`ProductFields` validators.

    Raises:
        ValueError: The reply is not a JSON object.
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("completion is not a JSON object")
    try:
        return ProductFields.model_validate(data)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def _heuristic_fallback(html: str, url: str) -> ProductFields:
    return ProductFields(
        name=extract_title(html),
        price=extract_price(html),
        image_url=extract_image(html, url),
    )


async def synthesize(
    html: str,
    url: str,
    known: ProductFields,
    completion: CompletionService,
) -> ProductFields:
    """Fill the gaps in *known* using the completion service.

    Returns *known* untouched when nothing is missing.

    Raises:
        UpstreamServiceUnavailable: The service is unconfigured or unreachable
            and *known* has no name to fall back on.  The exception carries
            *known* as ``partial``.
    """
    if not needs_synthesis(known):
        return known

    logger.info("[synthesize] missing %s for %s; asking the model", known.missing(), url)
    user_prompt = f"URL: {url}\n\nExtract product data:\n{clean_html(html)}"

    try:
        reply = await completion.complete(SYSTEM_PROMPT, user_prompt)
    except CompletionUnavailable as exc:
        if known.has("name"):
            logger.info("[synthesize] model unavailable (%s); returning partial data", exc)
            return known
        raise UpstreamServiceUnavailable(
            "AI service unavailable and no product name found", partial=known
        ) from exc

    try:
        generated = parse_completion(reply)
    except ValueError as exc:
        logger.warning("[synthesize] could not parse model reply: %s", exc)
        return known.fill_gaps(_heuristic_fallback(html, url))

    return known.fill_gaps(generated)
