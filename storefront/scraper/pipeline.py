"""Product scraping pipeline: from an admin-supplied URL to a product.

``scrape_product`` runs every stage in order and stops at the first typed
failure:

    authorize → validate → fetch → extract → synthesize (if needed) → assemble

Nothing is persisted and nothing is retried; the caller stores the returned
product.
"""

from __future__ import annotations

import logging
from typing import Optional

from storefront.auth import IdentityResolver, authorize_admin
from storefront.errors import PipelineError
from storefront.llm import CompletionService
from storefront.scraper.assembler import assemble
from storefront.scraper.extractor import run_extractors
from storefront.scraper.fetcher import fetch_page
from storefront.scraper.models import ScrapeResult
from storefront.scraper.synthesizer import synthesize
from storefront.scraper.validator import validate_url

logger = logging.getLogger(__name__)


async def scrape_product(
    url: str,
    credential: Optional[str],
    *,
    identity: IdentityResolver,
    completion: Optional[CompletionService] = None,
) -> ScrapeResult:
    """Extract structured product data from *url* on behalf of an admin.

    Args:
        url: The product page to scrape.
        credential: The caller's bearer token.
        identity: Resolves the token and confirms the admin role.  Both
            checks run before any outbound request to *url*.
        completion: The generative fallback.  Defaults to a service built
            from ``settings``; an unconfigured one is simply skipped.

    Returns:
        A :class:`ScrapeResult` with the assembled product.

    Raises:
        PipelineError: One of its subclasses, depending on the stage that
            failed.  ``ExtractionIncomplete`` carries the partial product.
    """
    completion = completion or CompletionService()

    # ------------------------------------------------------------------
    # 1. Admin gate (no network access to the target before this)
    # ------------------------------------------------------------------
    principal = await authorize_admin(identity, credential)

    # ------------------------------------------------------------------
    # 2 & 3. Validate, then fetch (every redirect hop re-validated)
    # ------------------------------------------------------------------
    validate_url(url)
    logger.info("[scrape] user %s requested %s", principal.user_id, url)
    try:
        page = await fetch_page(url)
    except PipelineError as exc:
        logger.warning("[scrape] %s: %s", type(exc).__name__, exc.message)
        raise

    # ------------------------------------------------------------------
    # 4. Deterministic extractors
    # ------------------------------------------------------------------
    candidate = run_extractors(page.html, page.final_url)
    logger.info("[extract] still missing after structured data: %s", candidate.missing())

    # ------------------------------------------------------------------
    # 5 & 6. Generative fallback, then final validation
    # ------------------------------------------------------------------
    try:
        candidate = await synthesize(page.html, page.final_url, candidate, completion)
        product = assemble(candidate, page.final_url)
    except PipelineError as exc:
        logger.warning("[scrape] %s for %s: %s", type(exc).__name__, url, exc.message)
        raise

    logger.info("[scrape] extracted %r from %s", product.name, page.final_url)
    return ScrapeResult(product=product, source_url=url, final_url=page.final_url)
