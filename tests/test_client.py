"""Tests for the Xyte API client."""

import httpx
import pytest

from xyte_tui.client import XyteClient
from xyte_tui.errors import AuthError, HttpError, ValidationError
from xyte_tui.profiles import EnvSecretStore


def make_xyte_client(profiles, secrets, handler) -> tuple[XyteClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return XyteClient(http=http, profiles=profiles, secrets=secrets), http


class TestRequests:
    @pytest.mark.asyncio
    async def test_auth_header_and_url(self, profiles, secrets) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"devices": []})

        client, http = make_xyte_client(profiles, secrets, handler)
        async with http:
            body = await client.organization.get_devices("acme", query={"space_id": "s1"})

        assert body == {"devices": []}
        assert seen[0].headers["Authorization"] == "org-secret"
        assert str(seen[0].url) == "https://hub.xyte.io/core/v1/organization/devices?space_id=s1"

    @pytest.mark.asyncio
    async def test_tenant_hub_url_wins(self, profiles, secrets) -> None:
        profiles.upsert_tenant("acme", hub_base_url="https://eu.hub.example/")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        client, http = make_xyte_client(profiles, secrets, handler)
        async with http:
            body = await client.organization.mark_resolved(None, "t1")

        assert body is None
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://eu.hub.example/core/v1/organization/tickets/t1/resolved"

    @pytest.mark.asyncio
    async def test_error_status_raises_http_error(self, profiles, secrets) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "slow down"})

        client, http = make_xyte_client(profiles, secrets, handler)
        async with http:
            with pytest.raises(HttpError) as exc_info:
                await client.organization.get_incidents()

        assert exc_info.value.status == 429
        assert exc_info.value.endpoint_key == "organization.incidents.getIncidents"
        assert exc_info.value.details == {"error": "slow down"}

    @pytest.mark.asyncio
    async def test_plain_text_body(self, profiles, secrets) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="pong")

        client, http = make_xyte_client(profiles, secrets, handler)
        async with http:
            assert await client.organization.get_organization_info() == "pong"


class TestCredentials:
    @pytest.mark.asyncio
    async def test_missing_secret_names_env_var(self, profiles) -> None:
        client, http = make_xyte_client(profiles, EnvSecretStore({}), lambda request: httpx.Response(200))
        async with http:
            with pytest.raises(AuthError, match=r"\$XYTE_ORG_API_KEY"):
                await client.organization.get_devices()

    @pytest.mark.asyncio
    async def test_missing_partner_slot(self, profiles, secrets) -> None:
        client, http = make_xyte_client(profiles, secrets, lambda request: httpx.Response(200))
        async with http:
            with pytest.raises(AuthError, match="no xyte-partner key slot"):
                await client.partner.get_tickets()

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, profiles, secrets) -> None:
        client, http = make_xyte_client(profiles, secrets, lambda request: httpx.Response(200))
        async with http:
            with pytest.raises(AuthError, match="does not exist"):
                await client.organization.get_spaces("ghost")

    @pytest.mark.asyncio
    async def test_empty_ids_rejected(self, profiles, secrets) -> None:
        client, http = make_xyte_client(profiles, secrets, lambda request: httpx.Response(200))
        async with http:
            with pytest.raises(ValidationError):
                await client.organization.get_space("acme", "")
            with pytest.raises(ValidationError):
                await client.partner.close_ticket("acme", "")
