"""HTTP fetcher with user-agent rotation and per-hop redirect validation."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit

import httpx

from storefront.config import settings
from storefront.errors import BlockedRedirect, FetchFailed, InvalidUrl
from storefront.scraper.models import FetchedPage
from storefront.scraper.validator import validate_url

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Request identity
# ---------------------------------------------------------------------------
# Tried in order.  Some shops only serve real markup to browsers, others
# only to well-known crawlers.
USER_AGENTS = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
]

_BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9,bn;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _browser_headers(user_agent: str, referer: str) -> dict[str, str]:
    """Headers that make one attempt look like an ordinary page view."""
    return {**_BASE_HEADERS, "User-Agent": user_agent, "Referer": referer}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _get_following_safe_redirects(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
) -> tuple[httpx.Response, list[str]]:
    """GET *url*, following redirects by hand so every hop is validated.

    Returns the final response and the list of hop URLs.

    Raises:
        BlockedRedirect: A hop points at an address the validator rejects.
            Nothing from that hop is requested.
        httpx.TooManyRedirects: More than ``settings.max_redirects`` hops.
    """
    request = client.build_request("GET", url, headers=headers)
    hops: list[str] = []

    while True:
        response = await client.send(request, follow_redirects=False)
        next_request = response.next_request
        if next_request is None:
            return response, hops

        await response.aclose()
        target = str(next_request.url)
        try:
            validate_url(target)
        except InvalidUrl as exc:
            raise BlockedRedirect(f"Redirect to {target} was blocked: {exc.message}") from exc

        hops.append(target)
        if len(hops) > settings.max_redirects:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=next_request)
        request = next_request


async def _rotate_user_agents(url: str, budget: float) -> FetchedPage:
    """Try each user agent in turn until one returns a usable page."""
    referer = _origin(url)

    async with httpx.AsyncClient(follow_redirects=False, timeout=budget) as client:
        for user_agent in USER_AGENTS:
            short_ua = user_agent[:30]
            try:
                response, hops = await _get_following_safe_redirects(
                    client, url, _browser_headers(user_agent, referer)
                )
            except httpx.HTTPError as exc:
                logger.info("[fetch] %s failed with UA %r: %s", url, short_ua, exc)
                continue

            if not response.is_success:
                logger.info(
                    "[fetch] %s returned HTTP %d with UA %r", url, response.status_code, short_ua
                )
                continue

            html = response.text
            if not html.strip():
                logger.info("[fetch] %s returned an empty body with UA %r", url, short_ua)
                continue

            final_url = str(response.url)
            try:
                validate_url(final_url)
            except InvalidUrl as exc:
                raise BlockedRedirect(f"Final URL {final_url} was blocked: {exc.message}") from exc

            logger.info("[fetch] fetched %s (%d chars) with UA %r", final_url, len(html), short_ua)
            return FetchedPage(
                final_url=final_url,
                html=html,
                fetched_with_agent=user_agent,
                redirects=hops,
            )

    raise FetchFailed()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def fetch_page(url: str, timeout: float | None = None) -> FetchedPage:
    """Fetch *url* and return a :class:`FetchedPage`.

    Each entry of :data:`USER_AGENTS` is tried sequentially until one yields a
    2xx response with a non-empty body.  One deadline (``timeout``, default
    ``settings.fetch_timeout``) covers the whole rotation; when it expires the
    in-flight request is cancelled.

    Raises:
        InvalidUrl: *url* itself fails validation.
        BlockedRedirect: A redirect hop or the final URL fails validation.
        FetchFailed: Every user agent failed, or the deadline expired.
    """
    validate_url(url)
    budget = settings.fetch_timeout if timeout is None else timeout

    try:
        return await asyncio.wait_for(_rotate_user_agents(url, budget), budget)
    except asyncio.TimeoutError as exc:
        logger.warning("[fetch] %s timed out after %.1fs", url, budget)
        raise FetchFailed(f"Timed out after {budget:g}s while fetching the URL.") from exc
