# src/xyte_tui/readiness.py

"""Setup readiness: is there a tenant, a usable key, and does it connect?

The dashboard screens only make sense once a tenant with at least one Xyte
key is configured. evaluate_readiness() checks that, optionally probes the
API, and reports what is missing together with the next steps to take.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from xyte_tui.connectivity import ConnectionState, ConnectivityResult, not_checked, probe_connectivity
from xyte_tui.profiles import PROVIDERS, EnvSecretStore, ProfileStore, TenantProfile

if TYPE_CHECKING:
    from xyte_tui.client import XyteClient


class ReadinessState(Enum):
    READY = "ready"
    NEEDS_SETUP = "needs_setup"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ProviderReadiness:
    provider: str
    slot_count: int
    active_slot_id: str | None
    active_slot_name: str | None
    has_active_secret: bool


@dataclass(frozen=True)
class ReadinessCheck:
    """Result of evaluate_readiness()."""

    state: ReadinessState
    tenant_id: str | None = None
    tenant: TenantProfile | None = None
    missing_items: list[str] = field(default_factory=list)
    recommended_actions: list[str] = field(default_factory=list)
    providers: list[ProviderReadiness] = field(default_factory=list)
    connectivity: ConnectivityResult = field(default_factory=not_checked)

    @property
    def ready(self) -> bool:
        return self.state is ReadinessState.READY

    @property
    def connection_state(self) -> ConnectionState:
        return self.connectivity.state


def _state_from_connection(connectivity: ConnectivityResult) -> ReadinessState:
    if connectivity.state in (ConnectionState.CONNECTED, ConnectionState.NOT_CHECKED):
        return ReadinessState.READY
    if connectivity.state in (ConnectionState.AUTH_REQUIRED, ConnectionState.MISSING_KEY):
        return ReadinessState.NEEDS_SETUP
    return ReadinessState.DEGRADED


async def evaluate_readiness(
    profiles: ProfileStore,
    secrets: EnvSecretStore,
    *,
    tenant_id: str | None = None,
    client: XyteClient | None = None,
    check_connectivity: bool = False,
) -> ReadinessCheck:
    """Check tenant, key slots and (optionally) API connectivity.

    Args:
        profiles: Tenant profile store
        secrets: Secret source for key slots
        tenant_id: Tenant to check; defaults to the active tenant
        client: API client used for the connectivity probe
        check_connectivity: Probe the API when a credential is present

    Returns:
        ReadinessCheck; NEEDS_SETUP whenever anything is missing
    """
    tenant_id = tenant_id or profiles.get_active_tenant_id()
    if not tenant_id:
        return ReadinessCheck(
            state=ReadinessState.NEEDS_SETUP,
            missing_items=["No active tenant is configured."],
            recommended_actions=['Run "xyte-tui tenant add <tenant-id>" to create a tenant profile.'],
        )

    tenant = profiles.get_tenant(tenant_id)
    if tenant is None:
        return ReadinessCheck(
            state=ReadinessState.NEEDS_SETUP,
            tenant_id=tenant_id,
            missing_items=[f'Active tenant "{tenant_id}" does not exist in profile.'],
            recommended_actions=['Run "xyte-tui tenant add" to recreate the active tenant profile.'],
        )

    missing: list[str] = []
    actions: list[str] = []
    providers = []
    for provider in PROVIDERS:
        active = tenant.active_slot(provider)
        providers.append(
            ProviderReadiness(
                provider=provider,
                slot_count=len(tenant.slots_for(provider)),
                active_slot_id=active.slot_id if active else None,
                active_slot_name=active.name if active else None,
                has_active_secret=bool(active and secrets.has(provider, active.slot_id)),
            )
        )

    has_credential = any(p.has_active_secret for p in providers)
    if not has_credential:
        missing.append("No active Xyte API key slot is configured (xyte-org / xyte-partner / xyte-device).")
        actions.append(
            'Run "xyte-tui tenant slot-add <tenant-id> xyte-org <name>" and export the key '
            "in XYTE_ORG_API_KEY."
        )

    connectivity = not_checked()
    if client is not None and check_connectivity and has_credential:
        connectivity = await probe_connectivity(client, tenant.id)
        if connectivity.state in (ConnectionState.AUTH_REQUIRED, ConnectionState.MISSING_KEY):
            missing.append(f"Connectivity check requires updated credentials: {connectivity.message}")
            actions.append("Update the active key slot secret and refresh (r).")
        elif connectivity.state is not ConnectionState.CONNECTED:
            actions.append("Use refresh (r) to retry, or check network access to the Xyte hub.")

    state = ReadinessState.NEEDS_SETUP if missing else _state_from_connection(connectivity)
    return ReadinessCheck(
        state=state,
        tenant_id=tenant.id,
        tenant=tenant,
        missing_items=missing,
        recommended_actions=actions,
        providers=providers,
        connectivity=connectivity,
    )
