# src/xyte_tui/session.py

"""Per-run session context shared by screens, the app and headless mode.

One SessionContext is created per process run and passed explicitly to every
screen controller. It owns the readiness cache, the provider override and the
hooks screens use to talk back to the UI (status line, error surface,
prompts).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from xyte_tui.client import XyteClient
from xyte_tui.config import Config
from xyte_tui.logging import EventLog
from xyte_tui.profiles import PROVIDERS, EnvSecretStore, ProfileStore
from xyte_tui.readiness import ReadinessCheck, evaluate_readiness
from xyte_tui.retry import RetryPolicy

Prompt = Callable[[str, str], Awaitable[str | None]]


async def _no_prompt(message: str, initial: str = "") -> str | None:
    return None


@dataclass
class SessionContext:
    """Everything a screen needs besides its own state."""

    client: XyteClient
    profiles: ProfileStore
    secrets: EnvSecretStore
    config: Config = field(default_factory=Config)
    event_log: EventLog = field(default_factory=EventLog)
    tenant_override: str | None = None
    readiness: ReadinessCheck | None = None
    provider_override: str | None = None  # One of PROVIDERS, or None for all
    # UI hooks; headless mode leaves the defaults in place
    on_status: Callable[[str], None] = lambda text: None
    on_error: Callable[[BaseException | str], None] = lambda error: None
    on_repaint: Callable[[], None] = lambda: None
    prompt: Prompt = _no_prompt

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.config.retry.to_policy()

    def get_active_tenant_id(self) -> str | None:
        return self.tenant_override or self.profiles.get_active_tenant_id()

    async def refresh_readiness(self, check_connectivity: bool = True) -> ReadinessCheck:
        """Re-evaluate readiness and cache the result."""
        self.event_log.log("readiness.refresh.start", {"checkConnectivity": check_connectivity})
        self.readiness = await evaluate_readiness(
            self.profiles,
            self.secrets,
            tenant_id=self.get_active_tenant_id(),
            client=self.client,
            check_connectivity=check_connectivity,
        )
        self.event_log.log(
            "readiness.refresh.done",
            {"state": self.readiness.state.value, "connection": self.readiness.connection_state.value},
        )
        return self.readiness

    def cycle_provider_override(self) -> str | None:
        """Step the provider filter through None -> each provider -> None."""
        order: list[str | None] = [None, *PROVIDERS]
        self.provider_override = order[(order.index(self.provider_override) + 1) % len(order)]
        return self.provider_override

    def set_status(self, text: str) -> None:
        self.on_status(text)

    def request_repaint(self) -> None:
        self.on_repaint()

    def show_error(self, error: BaseException | str) -> None:
        self.on_error(error)

    def debug_log(self, event: str, data: dict[str, Any] | None = None) -> None:
        self.event_log.log(event, data)

    async def confirm_write(self, label: str, token: str) -> bool:
        """Ask the user to type ``token`` before a destructive action."""
        answer = await self.prompt(f'Type "{token}" to confirm: {label}', "")
        return answer == token


@asynccontextmanager
async def open_session(
    config: Config,
    *,
    tenant_override: str | None = None,
    event_log: EventLog | None = None,
) -> AsyncIterator[SessionContext]:
    """Build a SessionContext over a fresh HTTP client; closes both on exit."""
    profiles = ProfileStore(config.profiles_path)
    secrets = EnvSecretStore()
    event_log = event_log or EventLog()
    async with httpx.AsyncClient() as http:
        try:
            yield SessionContext(
                client=XyteClient(http=http, profiles=profiles, secrets=secrets, api=config.api),
                profiles=profiles,
                secrets=secrets,
                config=config,
                event_log=event_log,
                tenant_override=tenant_override,
            )
        finally:
            event_log.close()
