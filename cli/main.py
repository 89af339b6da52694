"""Storefront scraper CLI: operator entry-point.

Usage:
    python cli/main.py --help

Commands:
    check-url   → run the SSRF validator only
    extract     → run the deterministic extractors over a saved HTML file
    scrape      → run the full pipeline as an admin, print the JSON envelope
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from storefront.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
import os
from typing import Optional

import typer

from storefront.auth import SupabaseIdentityResolver
from storefront.config import configure_logging
from storefront.errors import InvalidUrl, PipelineError
from storefront.scraper.extractor import extract_page_metadata, run_extractors
from storefront.scraper.pipeline import scrape_product
from storefront.scraper.validator import validate_url

app = typer.Typer(
    name="storefront-scrape",
    help="Storefront product scraper CLI.",
    no_args_is_help=True,
)


def _echo_json(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command("check-url")
def check_url(
    url: str = typer.Argument(..., help="URL to check against the SSRF rules."),
) -> None:
    """Report whether a URL would be accepted for fetching."""
    try:
        validate_url(url)
    except InvalidUrl as exc:
        typer.echo(f"[check-url] BLOCKED  {url}  ({exc.message})")
        raise typer.Exit(1)
    typer.echo(f"[check-url] OK  {url}")


@app.command("extract")
def extract(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved HTML file."),
    base_url: str = typer.Option(..., "--base-url", help="URL the page was saved from."),
    show_metadata: bool = typer.Option(False, "--metadata", help="Also print og:* tags."),
) -> None:
    """Run the deterministic extractors offline and print what they find."""
    html = path.read_text(encoding="utf-8", errors="replace")
    fields = run_extractors(html, base_url)
    payload: dict = {"fields": fields.model_dump(), "missing": fields.missing()}
    if show_metadata:
        payload["metadata"] = extract_page_metadata(html) or {}
    _echo_json(payload)


@app.command("scrape")
def scrape(
    url: str = typer.Argument(..., help="Product page URL."),
    token: Optional[str] = typer.Option(
        None, "--token", help="Admin access token (defaults to $STOREFRONT_TOKEN)."
    ),
) -> None:
    """Scrape a product URL exactly as the admin endpoint would."""
    configure_logging()
    credential = token or os.environ.get("STOREFRONT_TOKEN")

    try:
        result = asyncio.run(
            scrape_product(url, credential, identity=SupabaseIdentityResolver())
        )
    except PipelineError as exc:
        payload: dict = {"success": False, "error": exc.message}
        if exc.partial is not None:
            payload["partial"] = exc.partial.model_dump()
        _echo_json(payload)
        raise typer.Exit(1)

    _echo_json(
        {
            "success": True,
            "product": result.product.model_dump(),
            "sourceUrl": result.source_url,
        }
    )


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
