"""FastAPI application factory.

Collaborators
-------------
``app.state.identity``    Admin identity resolver (Supabase by default).
``app.state.completion``  Generative completion service (may be unconfigured).

Both are passed to :func:`create_app` and read back through FastAPI
dependencies, so tests can supply fakes either way.

Routers
-------
    /products  product URL scraping
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.routers import scrape as scrape_router
from storefront.auth import IdentityResolver, SupabaseIdentityResolver
from storefront.config import configure_logging
from storefront.errors import PipelineError
from storefront.llm import CompletionService

logger = logging.getLogger(__name__)


def _failure(status_code: int, error: str, partial: object = None) -> JSONResponse:
    content: dict = {"success": False, "error": error}
    if partial is not None:
        content["partial"] = partial.model_dump() if hasattr(partial, "model_dump") else partial
    return JSONResponse(status_code=status_code, content=content)


async def _pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return _failure(exc.status_code, exc.message, exc.partial)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _failure(400, "Request body must be JSON of the form {\"url\": \"...\"}")


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while scraping: %s", exc)
    return _failure(500, str(exc) or "Failed to scrape URL")


def create_app(
    identity: Optional[IdentityResolver] = None,
    completion: Optional[CompletionService] = None,
) -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    configure_logging()

    app = FastAPI(
        title="Storefront Product Scraper",
        description=(
            "Turns an arbitrary product-page URL into structured product "
            "fields for the store admin panel."
        ),
        version="0.1.0",
    )
    app.state.identity = identity or SupabaseIdentityResolver()
    app.state.completion = completion or CompletionService()

    # The admin panel is served from a different origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    app.add_exception_handler(PipelineError, _pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(scrape_router.router, prefix="/products", tags=["products"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


# Module-level instance used by uvicorn:
#   uvicorn storefront.api.app:app --reload
app = create_app()
