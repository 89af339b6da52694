"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from storefront.api import app

    uvicorn storefront.api:app --reload
"""

from storefront.api.app import app

__all__ = ["app"]
