"""Tests for the storefront-scrape CLI."""

import json
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from cli.main import app
from storefront.errors import ExtractionIncomplete, Forbidden
from storefront.scraper.models import ExtractedProduct, ProductFields, ScrapeResult

runner = CliRunner()

_PAGE = """
<html><head>
  <meta property="og:title" content="Desk Lamp">
  <meta property="og:site_name" content="Shop">
</head><body><div data-price="1,250"></div></body></html>
"""


def test_check_url_ok():
    result = runner.invoke(app, ["check-url", "https://shop.example.com/p/1"])
    assert result.exit_code == 0
    assert "[check-url] OK" in result.stdout


def test_check_url_blocked():
    result = runner.invoke(app, ["check-url", "http://169.254.169.254/latest/"])
    assert result.exit_code == 1
    assert "[check-url] BLOCKED" in result.stdout


def test_extract_prints_fields_and_missing(tmp_path):
    page = tmp_path / "page.html"
    page.write_text(_PAGE, encoding="utf-8")

    result = runner.invoke(
        app, ["extract", str(page), "--base-url", "https://shop.example.com/p/1", "--metadata"]
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["fields"]["name"] == "Desk Lamp"
    assert payload["fields"]["price"] == 1250.0
    assert "image_url" in payload["missing"]
    assert payload["metadata"] == {"title": "Desk Lamp", "site_name": "Shop"}


def test_extract_missing_file(tmp_path):
    result = runner.invoke(
        app, ["extract", str(tmp_path / "nope.html"), "--base-url", "https://x.com/"]
    )
    assert result.exit_code != 0


def test_scrape_success(monkeypatch):
    monkeypatch.setenv("STOREFRONT_TOKEN", "env-token")
    fake = AsyncMock(
        return_value=ScrapeResult(
            product=ExtractedProduct(name="Desk Lamp", price=1250.0),
            source_url="https://shop.example.com/p/1",
            final_url="https://shop.example.com/p/1",
        )
    )

    with patch("cli.main.scrape_product", fake):
        result = runner.invoke(app, ["scrape", "https://shop.example.com/p/1"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["success"] is True
    assert payload["product"]["name"] == "Desk Lamp"
    assert payload["sourceUrl"] == "https://shop.example.com/p/1"
    assert fake.call_args.args == ("https://shop.example.com/p/1", "env-token")


def test_scrape_token_option_wins(monkeypatch):
    monkeypatch.setenv("STOREFRONT_TOKEN", "env-token")
    fake = AsyncMock(side_effect=Forbidden())

    with patch("cli.main.scrape_product", fake):
        result = runner.invoke(app, ["scrape", "https://shop.example.com/p/1", "--token", "cli-token"])

    assert result.exit_code == 1
    assert json.loads(result.stdout) == {"success": False, "error": "Admin access required"}
    assert fake.call_args.args[1] == "cli-token"


def test_scrape_failure_prints_partial():
    fake = AsyncMock(side_effect=ExtractionIncomplete(partial=ProductFields(price=99.0)))

    with patch("cli.main.scrape_product", fake):
        result = runner.invoke(app, ["scrape", "https://shop.example.com/p/1", "--token", "t"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["success"] is False
    assert payload["partial"]["price"] == 99.0
