"""Tests for the admin identity checks.

Supabase is mocked with ``respx``; every failure path must end in "no".
"""

from __future__ import annotations

import httpx
import pytest
import respx

from storefront.auth import (
    IdentityResolver,
    Principal,
    SupabaseIdentityResolver,
    authorize_admin,
    bearer_token,
)
from storefront.config import settings
from storefront.errors import Forbidden, Unauthorized

_SUPABASE = "https://proj.supabase.co"
_USER_URL = f"{_SUPABASE}/auth/v1/user"
_ROLES_URL = f"{_SUPABASE}/rest/v1/user_roles"


@pytest.fixture(autouse=True)
def supabase_settings(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", _SUPABASE)
    monkeypatch.setattr(settings, "supabase_anon_key", "anon-key")
    monkeypatch.setattr(settings, "admin_role", "admin")


class StubResolver(IdentityResolver):
    def __init__(self, is_admin=True, role_error: Exception | None = None) -> None:
        self.is_admin = is_admin
        self.role_error = role_error
        self.resolved: list[str] = []

    async def resolve_principal(self, credential: str) -> Principal:
        self.resolved.append(credential)
        if credential == "bad":
            raise Unauthorized("Invalid or expired token")
        return Principal(user_id="u-1", access_token=credential)

    async def has_admin_role(self, principal: Principal) -> bool:
        if self.role_error is not None:
            raise self.role_error
        return self.is_admin


# ---------------------------------------------------------------------------
# bearer_token
# ---------------------------------------------------------------------------

class TestBearerToken:
    def test_extracts_token(self) -> None:
        assert bearer_token("Bearer abc.def") == "abc.def"
        assert bearer_token("bearer   xyz ") == "xyz"

    @pytest.mark.parametrize("header", [None, "", "Basic dXNlcjpwYXNz", "Bearer", "Bearer   ", "abc"])
    def test_rejects_missing_or_malformed(self, header) -> None:
        with pytest.raises(Unauthorized):
            bearer_token(header)


# ---------------------------------------------------------------------------
# SupabaseIdentityResolver
# ---------------------------------------------------------------------------

class TestResolvePrincipal:
    async def test_returns_principal(self) -> None:
        with respx.mock:
            route = respx.get(_USER_URL).mock(
                return_value=httpx.Response(200, json={"id": "u-42", "email": "a@shop.com"})
            )
            principal = await SupabaseIdentityResolver().resolve_principal("tok")

        assert principal == Principal(user_id="u-42", email="a@shop.com", access_token="tok")
        sent = route.calls.last.request.headers
        assert sent["Authorization"] == "Bearer tok"
        assert sent["apikey"] == "anon-key"

    async def test_token_not_in_repr(self) -> None:
        assert "secret" not in repr(Principal(user_id="u", access_token="secret"))

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(401, json={"msg": "invalid JWT"}),
            httpx.Response(200, json={"email": "no-id@shop.com"}),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json=["u-1"]),
        ],
    )
    async def test_bad_answers_are_unauthorized(self, response: httpx.Response) -> None:
        with respx.mock:
            respx.get(_USER_URL).mock(return_value=response)
            with pytest.raises(Unauthorized):
                await SupabaseIdentityResolver().resolve_principal("tok")

    async def test_transport_error_is_unauthorized(self) -> None:
        with respx.mock:
            respx.get(_USER_URL).mock(side_effect=httpx.ConnectError("down"))
            with pytest.raises(Unauthorized):
                await SupabaseIdentityResolver().resolve_principal("tok")

    async def test_unconfigured_is_unauthorized(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "supabase_url", "")
        with respx.mock(assert_all_called=False) as mock:
            with pytest.raises(Unauthorized):
                await SupabaseIdentityResolver().resolve_principal("tok")
        assert mock.calls.call_count == 0


class TestHasAdminRole:
    _principal = Principal(user_id="u-42", access_token="tok")

    async def test_admin_row_confirms(self) -> None:
        with respx.mock:
            route = respx.get(_ROLES_URL).mock(
                return_value=httpx.Response(200, json=[{"role": "admin"}])
            )
            assert await SupabaseIdentityResolver().has_admin_role(self._principal) is True

        params = route.calls.last.request.url.params
        assert params["user_id"] == "eq.u-42"
        assert params["role"] == "eq.admin"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json=[]),
            httpx.Response(200, json=[{"role": "editor"}]),
            httpx.Response(200, json={"role": "admin"}),
            httpx.Response(500, text="boom"),
            httpx.Response(200, text="<html>"),
        ],
    )
    async def test_anything_else_is_no(self, response: httpx.Response) -> None:
        with respx.mock:
            respx.get(_ROLES_URL).mock(return_value=response)
            assert await SupabaseIdentityResolver().has_admin_role(self._principal) is False

    async def test_transport_error_is_no(self) -> None:
        with respx.mock:
            respx.get(_ROLES_URL).mock(side_effect=httpx.ReadTimeout("slow"))
            assert await SupabaseIdentityResolver().has_admin_role(self._principal) is False


# ---------------------------------------------------------------------------
# authorize_admin
# ---------------------------------------------------------------------------

class TestAuthorizeAdmin:
    async def test_admin_passes(self) -> None:
        principal = await authorize_admin(StubResolver(), "tok")
        assert principal.user_id == "u-1"

    @pytest.mark.parametrize("credential", [None, ""])
    async def test_missing_credential_never_reaches_resolver(self, credential) -> None:
        resolver = StubResolver()
        with pytest.raises(Unauthorized):
            await authorize_admin(resolver, credential)
        assert resolver.resolved == []

    async def test_invalid_token(self) -> None:
        with pytest.raises(Unauthorized):
            await authorize_admin(StubResolver(), "bad")

    async def test_non_admin_forbidden(self) -> None:
        with pytest.raises(Forbidden) as exc_info:
            await authorize_admin(StubResolver(is_admin=False), "tok")
        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize("answer", [None, 1, "yes"])
    async def test_only_true_confirms(self, answer) -> None:
        with pytest.raises(Forbidden):
            await authorize_admin(StubResolver(is_admin=answer), "tok")

    async def test_role_check_error_is_forbidden(self) -> None:
        with pytest.raises(Forbidden):
            await authorize_admin(StubResolver(role_error=RuntimeError("db down")), "tok")

    async def test_end_to_end_against_supabase(self) -> None:
        with respx.mock:
            respx.get(_USER_URL).mock(return_value=httpx.Response(200, json={"id": "u-7"}))
            respx.get(_ROLES_URL).mock(return_value=httpx.Response(200, json=[]))
            with pytest.raises(Forbidden):
                await authorize_admin(SupabaseIdentityResolver(), "tok")
