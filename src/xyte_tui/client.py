"""Xyte API client.

XyteClient receives an injected httpx.AsyncClient and resolves the tenant and
its active key slot on every call, so switching tenants or rotating a key
takes effect without rebuilding the client.

Calls are grouped by scope: ``client.organization`` uses the xyte-org key,
``client.partner`` the xyte-partner key. Failures surface as the typed errors
in xyte_tui.errors; classification into connection states happens in
xyte_tui.connectivity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from xyte_tui.config import ApiConfig
from xyte_tui.errors import AuthError, HttpError, ValidationError
from xyte_tui.profiles import EnvSecretStore, ProfileStore, secret_env_var


@dataclass
class OrganizationApi:
    """Organization-scope endpoints (xyte-org key)."""

    client: XyteClient

    async def get_organization_info(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-org", "GET", "/core/v1/organization/info",
            tenant_id=tenant_id, endpoint_key="organization.getOrganizationInfo",
        )

    async def get_devices(self, tenant_id: str | None = None, query: dict[str, Any] | None = None) -> Any:
        return await self.client.request(
            "xyte-org", "GET", "/core/v1/organization/devices",
            tenant_id=tenant_id, params=query, endpoint_key="organization.devices.getDevices",
        )

    async def get_incidents(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-org", "GET", "/core/v1/organization/incidents",
            tenant_id=tenant_id, endpoint_key="organization.incidents.getIncidents",
        )

    async def get_spaces(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-org", "GET", "/core/v1/organization/spaces",
            tenant_id=tenant_id, endpoint_key="organization.spaces.getSpaces",
        )

    async def get_space(self, tenant_id: str | None, space_id: str) -> Any:
        if not space_id:
            raise ValidationError("space_id is required.")
        return await self.client.request(
            "xyte-org", "GET", f"/core/v1/organization/spaces/{space_id}",
            tenant_id=tenant_id, endpoint_key="organization.spaces.getSpace",
        )

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-org", "GET", "/core/v1/organization/tickets",
            tenant_id=tenant_id, endpoint_key="organization.tickets.getTickets",
        )

    async def mark_resolved(self, tenant_id: str | None, ticket_id: str) -> Any:
        if not ticket_id:
            raise ValidationError("ticket_id is required.")
        return await self.client.request(
            "xyte-org", "POST", f"/core/v1/organization/tickets/{ticket_id}/resolved",
            tenant_id=tenant_id, endpoint_key="organization.tickets.markResolved",
        )


@dataclass
class PartnerApi:
    """Partner-scope endpoints (xyte-partner key)."""

    client: XyteClient

    async def get_devices(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-partner", "GET", "/partner/v1/devices",
            tenant_id=tenant_id, endpoint_key="partner.devices.getDevices",
        )

    async def get_tickets(self, tenant_id: str | None = None) -> Any:
        return await self.client.request(
            "xyte-partner", "GET", "/partner/v1/tickets",
            tenant_id=tenant_id, endpoint_key="partner.tickets.getTickets",
        )

    async def close_ticket(self, tenant_id: str | None, ticket_id: str) -> Any:
        if not ticket_id:
            raise ValidationError("ticket_id is required.")
        return await self.client.request(
            "xyte-partner", "POST", f"/partner/v1/tickets/{ticket_id}/close",
            tenant_id=tenant_id, endpoint_key="partner.tickets.closeTicket",
        )


@dataclass
class XyteClient:
    """
    Xyte API client with injected httpx client.

    Attributes:
        http: httpx.AsyncClient used for every request (no base_url needed;
            the hub URL comes from the tenant profile or ApiConfig)
        profiles: Tenant profile store
        secrets: Source of key slot secrets
        api: Default hub URL and timeout

    Example:
        async with httpx.AsyncClient() as http:
            client = XyteClient(http=http, profiles=store, secrets=EnvSecretStore())
            devices = await client.organization.get_devices()
    """

    http: httpx.AsyncClient
    profiles: ProfileStore
    secrets: EnvSecretStore
    api: ApiConfig = field(default_factory=ApiConfig)

    def __post_init__(self) -> None:
        self.organization = OrganizationApi(self)
        self.partner = PartnerApi(self)

    def _resolve(self, provider: str, tenant_id: str | None) -> tuple[str, str]:
        """Return (base_url, secret) for a call, or raise AuthError."""
        tenant_id = tenant_id or self.profiles.get_active_tenant_id()
        if not tenant_id:
            raise AuthError("Missing API key: no active tenant is configured.")
        tenant = self.profiles.get_tenant(tenant_id)
        if tenant is None:
            raise AuthError(f"Missing API key: tenant {tenant_id!r} does not exist in profile.")
        slot = tenant.active_slot(provider)
        if slot is None:
            raise AuthError(f"Missing API key: no {provider} key slot for tenant {tenant_id!r}.")
        secret = self.secrets.get(provider, slot.slot_id)
        if secret is None:
            raise AuthError(
                f"Missing API key for {provider} slot {slot.slot_id!r} "
                f"(set ${secret_env_var(provider, slot.slot_id)})."
            )
        return (tenant.hub_base_url or self.api.hub_base_url).rstrip("/"), secret

    async def request(
        self,
        provider: str,
        method: str,
        path: str,
        *,
        tenant_id: str | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        endpoint_key: str | None = None,
    ) -> Any:
        """Send one authenticated request and return the decoded body.

        Raises:
            AuthError: No tenant, slot or secret for the provider
            HttpError: Non-2xx response
            httpx.TransportError: Connection failures and timeouts
        """
        base_url, secret = self._resolve(provider, tenant_id)
        response = await self.http.request(
            method,
            base_url + path,
            params=params,
            json=json,
            headers={"Authorization": secret, "Accept": "application/json"},
            timeout=self.api.timeout_seconds,
        )
        if response.is_error:
            raise HttpError(
                f"{endpoint_key or path} failed with HTTP {response.status_code} {response.reason_phrase}".rstrip(),
                status=response.status_code,
                status_text=response.reason_phrase,
                endpoint_key=endpoint_key,
                details=_decode(response),
            )
        return _decode(response)


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", "").lower():
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
