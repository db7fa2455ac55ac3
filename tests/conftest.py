"""Shared test fixtures for xyte-tui."""

from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from xyte_tui.config import Config
from xyte_tui.logging import EventLog
from xyte_tui.profiles import EnvSecretStore, ProfileStore
from xyte_tui.session import SessionContext


def make_client(
    *,
    org_info: Any = None,
    devices: Any = None,
    incidents: Any = None,
    spaces: Any = None,
    space: Any = None,
    tickets: Any = None,
    partner_devices: Any = None,
    partner_tickets: Any = None,
) -> SimpleNamespace:
    """Fake XyteClient: organization/partner namespaces of AsyncMocks.

    Pass an exception instance as a value to make that call raise.
    """

    def call(value: Any, default: Any) -> AsyncMock:
        if isinstance(value, BaseException):
            return AsyncMock(side_effect=value)
        return AsyncMock(return_value=default if value is None else value)

    return SimpleNamespace(
        organization=SimpleNamespace(
            get_organization_info=call(org_info, {"name": "Acme"}),
            get_devices=call(devices, {"devices": []}),
            get_incidents=call(incidents, {"incidents": []}),
            get_spaces=call(spaces, {"spaces": []}),
            get_space=call(space, {"id": "s1", "name": "HQ"}),
            get_tickets=call(tickets, {"tickets": []}),
            mark_resolved=AsyncMock(return_value={"ok": True}),
        ),
        partner=SimpleNamespace(
            get_devices=call(partner_devices, {"devices": []}),
            get_tickets=call(partner_tickets, {"tickets": []}),
            close_ticket=AsyncMock(return_value={"ok": True}),
        ),
    )


def make_device(index: int = 1, **extra: Any) -> dict[str, Any]:
    return {"id": f"dev-{index}", "name": f"Display {index}", "status": "online", **extra}


def make_incident(index: int = 1, severity: str = "high", **extra: Any) -> dict[str, Any]:
    return {"id": f"inc-{index}", "title": f"Incident {index}", "severity": severity, "status": "open", **extra}


def make_ticket(index: int = 1, **extra: Any) -> dict[str, Any]:
    return {"id": f"tic-{index}", "subject": f"Ticket {index}", "status": "open", **extra}


def make_space(index: int = 1, **extra: Any) -> dict[str, Any]:
    return {"id": f"space-{index}", "name": f"Room {index}", **extra}


@pytest.fixture
def profiles(tmp_path: Path) -> ProfileStore:
    """Profile store with one active tenant and a default xyte-org slot."""
    store = ProfileStore(tmp_path / "profiles.toml")
    store.upsert_tenant("acme", "Acme Corp")
    store.add_key_slot("acme", "xyte-org", "default")
    return store


@pytest.fixture
def secrets() -> EnvSecretStore:
    return EnvSecretStore({"XYTE_ORG_API_KEY": "org-secret"})


@pytest.fixture
def client() -> SimpleNamespace:
    return make_client()


@pytest.fixture
def session(client, profiles, secrets) -> SessionContext:
    """Ready session over the fake client; retries without delays."""
    config = Config()
    config.retry.base_delay_ms = 0
    return SessionContext(
        client=client,
        profiles=profiles,
        secrets=secrets,
        config=config,
        event_log=EventLog(None),
    )
