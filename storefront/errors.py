"""Typed failures raised by the product scraping pipeline.

Every failure the pipeline can report is a :class:`PipelineError` subclass.
The HTTP layer renders any of them as::

    {"success": false, "error": "<message>", "partial": {...}?}

with the class's ``status_code``.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base class for every terminal pipeline failure."""

    status_code: int = 400
    default_message: str = "Failed to scrape URL"

    def __init__(self, message: str | None = None, *, partial: Any = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.partial = partial


# ---------------------------------------------------------------------------
# Authorization: raised before any network access
# ---------------------------------------------------------------------------

class Unauthorized(PipelineError):
    status_code = 401
    default_message = "Authorization required"


class Forbidden(PipelineError):
    status_code = 403
    default_message = "Admin access required"


# ---------------------------------------------------------------------------
# Input: raised before the fetch or as soon as a redirect is observed
# ---------------------------------------------------------------------------

class InvalidUrl(PipelineError):
    default_message = "Invalid URL"


class BlockedRedirect(PipelineError):
    default_message = "Redirect to a disallowed address was blocked"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class FetchFailed(PipelineError):
    default_message = "Could not fetch the URL. The website might be blocking requests."


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionIncomplete(PipelineError):
    default_message = (
        "Could not extract product information. "
        "The page may require JavaScript or have an unusual structure."
    )


class UpstreamServiceUnavailable(ExtractionIncomplete):
    """The generative fallback was needed but could not be reached.

    Subclasses :class:`ExtractionIncomplete` because the observable outcome is
    the same: no product name could be determined.
    """

    default_message = "AI service unavailable and no structured data found"
