"""Admin identity checks for the scraping endpoint.

The store's user accounts and roles live in Supabase.  This module consumes
two narrow questions from it:

* who does this bearer token belong to?  (``resolve_principal``)
* does that user hold the admin role?    (``has_admin_role``)

Both fail closed: any transport error, non-2xx answer or missing
configuration is treated as "no".
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx

from storefront.config import settings
from storefront.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller, not yet known to be an administrator."""

    user_id: str
    email: Optional[str] = None
    access_token: str = field(default="", repr=False)


def bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        Unauthorized: The header is missing or not a bearer credential.
    """
    if not authorization:
        raise Unauthorized()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid authorization header")
    return token.strip()


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class IdentityResolver(ABC):
    """Answers the two questions the pipeline asks about a caller."""

    @abstractmethod
    async def resolve_principal(self, credential: str) -> Principal:
        """Return the principal for *credential*.  Raise ``Unauthorized`` otherwise."""

    @abstractmethod
    async def has_admin_role(self, principal: Principal) -> bool:
        """Return ``True`` only on a positive confirmation of the admin role."""


# ---------------------------------------------------------------------------
# Supabase implementation
# ---------------------------------------------------------------------------

class SupabaseIdentityResolver(IdentityResolver):
    """Resolve callers through Supabase Auth and the ``user_roles`` table.

    Every request is made with the caller's own token so row-level security
    applies exactly as it does for the admin UI.
    """

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "apikey": settings.supabase_anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def resolve_principal(self, credential: str) -> Principal:
        if not settings.supabase_configured:
            logger.error("[auth] SUPABASE_URL / SUPABASE_ANON_KEY not set; refusing request")
            raise Unauthorized("Authentication service not configured")

        try:
            async with httpx.AsyncClient(timeout=settings.auth_timeout) as client:
                resp = await client.get(
                    f"{settings.supabase_url.rstrip('/')}/auth/v1/user",
                    headers=self._headers(credential),
                )
        except httpx.HTTPError as exc:
            logger.warning("[auth] user lookup failed: %s", exc)
            raise Unauthorized("Invalid or expired token") from exc

        if not resp.is_success:
            raise Unauthorized("Invalid or expired token")
        try:
            user = resp.json()
        except ValueError as exc:
            raise Unauthorized("Invalid or expired token") from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise Unauthorized("Invalid or expired token")

        return Principal(user_id=str(user["id"]), email=user.get("email"), access_token=credential)

    async def has_admin_role(self, principal: Principal) -> bool:
        if not settings.supabase_configured:
            return False
        try:
            async with httpx.AsyncClient(timeout=settings.auth_timeout) as client:
                resp = await client.get(
                    f"{settings.supabase_url.rstrip('/')}/rest/v1/user_roles",
                    params={
                        "select": "role",
                        "user_id": f"eq.{principal.user_id}",
                        "role": f"eq.{settings.admin_role}",
                    },
                    headers=self._headers(principal.access_token),
                )
                resp.raise_for_status()
                rows = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[auth] role lookup failed for %s: %s", principal.user_id, exc)
            return False

        return isinstance(rows, list) and any(
            isinstance(row, dict) and row.get("role") == settings.admin_role for row in rows
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def authorize_admin(resolver: IdentityResolver, credential: Optional[str]) -> Principal:
    """Return the caller's principal if, and only if, they are an admin.

    Raises:
        Unauthorized: Missing or invalid credential.
        Forbidden: Valid credential without a confirmed admin role.
    """
    if not credential:
        raise Unauthorized()

    principal = await resolver.resolve_principal(credential)
    try:
        is_admin = await resolver.has_admin_role(principal)
    except Exception as exc:
        logger.warning("[auth] role check raised for %s: %s", principal.user_id, exc)
        is_admin = False

    if is_admin is not True:
        logger.info("[auth] admin role check failed for user %s", principal.user_id)
        raise Forbidden()
    return principal
