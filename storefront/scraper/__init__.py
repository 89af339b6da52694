"""Scraper package: product URL validation, fetch and extraction."""

from storefront.scraper.assembler import assemble
from storefront.scraper.extractor import run_extractors
from storefront.scraper.fetcher import fetch_page
from storefront.scraper.models import ExtractedProduct, FetchedPage, ProductFields, ScrapeResult
from storefront.scraper.pipeline import scrape_product
from storefront.scraper.validator import is_safe_url, validate_url

__all__ = [
    "scrape_product",
    "validate_url",
    "is_safe_url",
    "fetch_page",
    "run_extractors",
    "assemble",
    "FetchedPage",
    "ProductFields",
    "ExtractedProduct",
    "ScrapeResult",
]
