"""Product URL scraping endpoint.

Routes
------
POST /products/scrape    Body: {"url": "https://..."}    → scrape_product

Responses
---------
200  {"success": true,  "product": {...}, "sourceUrl": "..."}
4xx  {"success": false, "error": "...", "partial": {...}?}
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from storefront.auth import IdentityResolver, bearer_token
from storefront.llm import CompletionService
from storefront.scraper.models import ExtractedProduct
from storefront.scraper.pipeline import scrape_product

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ScrapeRequest(BaseModel):
    url: Optional[str] = None


class ScrapeResponse(BaseModel):
    success: bool
    product: ExtractedProduct
    sourceUrl: str


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_identity_resolver(request: Request) -> IdentityResolver:
    return request.app.state.identity


def get_completion_service(request: Request) -> CompletionService:
    return request.app.state.completion


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/scrape", response_model=ScrapeResponse)
async def scrape_product_endpoint(
    body: ScrapeRequest,
    authorization: Optional[str] = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
    completion: CompletionService = Depends(get_completion_service),
) -> dict[str, Any]:
    """Extract product fields from the page at ``body.url``.

    Only administrators may call this; the URL is not even looked at until the
    caller is confirmed.  Pipeline failures are rendered by the app-level
    ``PipelineError`` handler.
    """
    credential = bearer_token(authorization)
    result = await scrape_product(
        body.url or "", credential, identity=identity, completion=completion
    )
    return {
        "success": True,
        "product": result.product.model_dump(),
        "sourceUrl": result.source_url,
    }
