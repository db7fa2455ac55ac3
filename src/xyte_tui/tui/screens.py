# src/xyte_tui/tui/screens.py

"""Screen controllers.

A controller owns one screen's data and selection state and turns it into
ScenePanels. It knows nothing about Textual: the app mounts it, forwards keys
to it and paints whatever panels() returns. Rendering is wrapped in a
RenderFallbackGuard so a payload that repeatedly breaks formatting degrades
the screen to raw values instead of failing every repaint.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from xyte_tui.connectivity import ConnectionState
from xyte_tui.errors import error_text
from xyte_tui.loaders import (
    LoadOutcome,
    SpaceDrilldown,
    get_space_id,
    get_space_name,
    load_dashboard,
    load_devices,
    load_incidents,
    load_space_drilldown,
    load_spaces,
    load_tickets,
)
from xyte_tui.session import SessionContext
from xyte_tui.tui.dispatch import ArrowResult
from xyte_tui.tui.guards import RenderFallbackGuard
from xyte_tui.tui.input import InputEvent
from xyte_tui.tui.navigation import SCREEN_PANE_CONFIG, SCREEN_TITLES, clamp_index, move_pane_with_boundary
from xyte_tui.tui.scene import (
    ScenePanel,
    config_rows,
    scene_config,
    scene_dashboard,
    scene_devices,
    scene_incidents,
    scene_setup,
    scene_spaces,
    scene_tickets,
    setup_provider_rows,
)
from xyte_tui.tui.selection import SelectionChange, SelectionOrigin, StaleSafeSelectionLoader
from xyte_tui.tui.serialize import payload_summary, safe_search_text

FROZEN_LINES = (
    "Render fallback mode enabled.",
    "Previous render errors were repeated. Refresh (r) after reducing payload complexity.",
)

SELECTION_DEBOUNCE_SECONDS = 0.12
RESOLVE_DOUBLE_TAP_SECONDS = 0.65


def _is_search_key(event: InputEvent) -> bool:
    return event.character == "/" or event.key.name == "slash"


def _raw(item: Any, keys: tuple[str, ...], default: str) -> str:
    if isinstance(item, dict):
        for key in keys:
            if item.get(key) is not None:
                return str(item[key])
    return default


class ScreenController:
    """Base class for all screens.

    Subclasses set ``id``, implement refresh() and build_panels(), and map
    their pane ids to panel ids in ``pane_panels`` so the app can highlight
    the focused pane.
    """

    id = ""
    detail_noun = "screen"
    pane_panels: dict[str, str] = {}

    def __init__(self) -> None:
        self.context: SessionContext | None = None
        self.mounted = False
        self.generation = 0
        self.panes = SCREEN_PANE_CONFIG[self.id].panes
        self.active_pane = SCREEN_PANE_CONFIG[self.id].default_pane
        self.scroll_offsets: dict[str, int] = {}
        self.render_guard = RenderFallbackGuard()

    @property
    def title(self) -> str:
        return SCREEN_TITLES[self.id]

    @property
    def available_panes(self) -> tuple[str, ...]:
        return self.panes

    @property
    def ctx(self) -> SessionContext:
        if self.context is None:
            raise RuntimeError(f"Screen {self.id} is not mounted")
        return self.context

    # ─── Lifecycle ───

    def mount(self, context: SessionContext) -> None:
        self.context = context
        self.mounted = True
        self.generation += 1
        guards = context.config.guards
        self.render_guard.threshold = guards.render_fallback_threshold
        self.render_guard.window = guards.repeat_window_seconds

    def unmount(self) -> None:
        self.mounted = False

    def is_current(self, generation: int) -> bool:
        """True while the mount that started a load is still the active one.

        Controllers are reused across remounts, so a load that finishes after
        the screen was left and reopened must not overwrite the newer data.
        """
        return self.mounted and generation == self.generation

    async def refresh(self) -> None:
        raise NotImplementedError

    def focus(self) -> str | None:
        """Panel id of the active pane."""
        return self.pane_panels.get(self.active_pane)

    def log(self, event: str, **data: Any) -> None:
        if self.context is not None:
            self.context.debug_log(event, {"screen": self.id, **data})

    def report_outcome(self, outcome: LoadOutcome[Any]) -> None:
        """Status line for a failed load; a clean load leaves fallback mode."""
        if outcome.error is not None:
            self.ctx.set_status(f"{self.title} {outcome.connection_state.value}: {outcome.error.message}")
            self.log("screen.data.fetch.error", message=outcome.error.message, state=outcome.connection_state.value)
        else:
            self.render_guard.reset()

    # ─── Keys ───

    def claims_horizontal_arrows(self) -> bool:
        return False

    async def handle_arrow(self, direction: str) -> ArrowResult:
        if direction in ("left", "right"):
            pane, boundary = move_pane_with_boundary(self.panes, self.active_pane, direction)
            if boundary:
                return ArrowResult.BOUNDARY
            self.active_pane = pane
            self.ctx.set_status(f"Pane: {pane}")
            return ArrowResult.HANDLED
        delta = {"up": -1, "down": 1}.get(direction, 0)
        if not delta:
            return ArrowResult.UNHANDLED
        self.move(delta)
        return ArrowResult.HANDLED

    def move(self, delta: int) -> None:
        """Scroll the active pane."""
        self.scroll_offsets[self.active_pane] = max(0, self.scroll_offsets.get(self.active_pane, 0) + delta)

    async def handle_key(self, event: InputEvent) -> bool:
        return False

    # ─── Rendering ───

    def build_panels(self) -> list[ScenePanel]:
        raise NotImplementedError

    def fallback_panels(self, lines: list[str]) -> list[ScenePanel]:
        return [ScenePanel.text_panel(f"{self.id}-fallback", self.title, lines)]

    def panels(self) -> list[ScenePanel]:
        """Current panels, degraded to raw values when rendering keeps failing."""
        self.log("screen.render.start")
        if self.render_guard.frozen:
            self.log("screen.render.complete", frozen=True)
            return self.fallback_panels(list(FROZEN_LINES))
        try:
            panels = self.build_panels()
        except Exception as e:
            message = error_text(e)
            state = self.render_guard.record_failure(message)
            self.log("screen.render.error", message=message, count=state.count, frozen=self.render_guard.frozen)
            self.log("screen.render.fallback.applied")
            return self.fallback_panels(
                [
                    f"Unable to render {self.detail_noun} detail safely.",
                    f"Reason: {message}",
                    "Try narrowing search/filter and refresh.",
                ]
            )
        self.render_guard.record_success()
        self.log("screen.render.complete", frozen=False)
        return panels


class ListScreen(ScreenController):
    """A screen built around one filterable, selectable table."""

    table_pane = ""
    table_panel = ""
    detail_panel = ""
    detail_title = ""
    search_prompt = "Search (empty clears):"
    raw_columns = ("ID", "Name", "Status", "Space")

    def __init__(self) -> None:
        super().__init__()
        self.items: list[Any] = []
        self.filtered: list[Any] = []
        self.search_text = ""
        self.selected_index = 0

    @property
    def selected(self) -> Any:
        if not self.filtered:
            return None
        return self.filtered[clamp_index(self.selected_index, len(self.filtered))]

    def matches(self, item: Any, needle: str) -> bool:
        return needle in safe_search_text(item)

    def apply_filter(self) -> None:
        needle = self.search_text.lower()
        self.filtered = [item for item in self.items if self.matches(item, needle)] if needle else list(self.items)
        self.selected_index = clamp_index(self.selected_index, len(self.filtered))

    def select(self, index: int, origin: SelectionOrigin) -> SelectionChange:
        before = self.selected_index
        self.selected_index = clamp_index(index, len(self.filtered))
        self.log("nav.selection", pane=self.active_pane, before=before, after=self.selected_index, origin=origin.value)
        return SelectionChange(self.selected_index, origin)

    def on_selection(self, change: SelectionChange) -> None:
        """Hook for screens that load detail on selection."""

    def move(self, delta: int) -> None:
        if self.active_pane != self.table_pane:
            super().move(delta)
            return
        self.on_selection(self.select(self.selected_index + delta, SelectionOrigin.USER))

    async def prompt_filter(self) -> bool:
        """Ask for a new filter; returns True when the filter changed."""
        value = await self.ctx.prompt(self.search_prompt, self.search_text)
        if not self.mounted or value is None:
            return False
        self.search_text = value.strip()
        self.selected_index = 0
        self.apply_filter()
        return True

    async def handle_key(self, event: InputEvent) -> bool:
        if _is_search_key(event):
            await self.prompt_filter()
            return True
        if event.key.name == "enter" and self.active_pane == self.table_pane:
            # Open the selected record in the detail pane
            detail_pane = next((p for p, panel in self.pane_panels.items() if panel == self.detail_panel), None)
            if detail_pane is not None:
                self.active_pane = detail_pane
            return True
        return False

    def raw_row(self, item: Any, index: int) -> list[str]:
        return [
            _raw(item, ("id", "_id"), f"row-{index + 1}"),
            _raw(item, ("name", "title"), "n/a"),
            _raw(item, ("status", "state"), "unknown"),
            _raw(item, ("space_name", "space_id"), "n/a"),
        ]

    def fallback_panels(self, lines: list[str]) -> list[ScenePanel]:
        return [
            ScenePanel.table_panel(
                self.table_panel,
                self.title,
                self.raw_columns,
                [self.raw_row(item, i) for i, item in enumerate(self.filtered)],
            ),
            ScenePanel.text_panel(self.detail_panel, self.detail_title, lines),
        ]


# ─────────────────────────────────────────────────────────────────────────────
# Setup and config
# ─────────────────────────────────────────────────────────────────────────────


class SetupScreen(ScreenController):
    id = "setup"
    detail_noun = "setup"
    pane_panels = {"providers-table": "setup-providers", "checklist-box": "setup-checklist"}

    async def refresh(self) -> None:
        await self.ctx.refresh_readiness(check_connectivity=True)

    def build_panels(self) -> list[ScenePanel]:
        readiness = self.ctx.readiness
        if readiness is None:
            return [ScenePanel.text_panel("setup-checklist", "Checklist", ["Checking setup readiness..."])]
        return scene_setup(
            tenant_id=readiness.tenant_id,
            readiness_state=readiness.state.value,
            connection_state=readiness.connection_state.value,
            missing_items=readiness.missing_items,
            recommended_actions=readiness.recommended_actions,
            provider_rows=setup_provider_rows(readiness),
        )

    async def handle_key(self, event: InputEvent) -> bool:
        ch = event.character
        if ch == "c":
            await self.ctx.refresh_readiness(check_connectivity=True)
            self.ctx.set_status("Connectivity probe complete.")
            return True

        if ch == "a":
            tenant_id = ((await self.ctx.prompt("Tenant id:", "")) or "").strip()
            if not self.mounted or not tenant_id:
                return True
            name = ((await self.ctx.prompt("Tenant display name:", tenant_id)) or "").strip() or tenant_id
            self.ctx.profiles.upsert_tenant(tenant_id, name)
            self.ctx.profiles.set_active_tenant(tenant_id)
            await self.refresh()
            self.ctx.set_status(f"Tenant {tenant_id} configured and active.")
            return True

        if ch == "u":
            tenants = self.ctx.profiles.list_tenants()
            hint = self.ctx.profiles.get_active_tenant_id() or (tenants[0].id if tenants else "")
            tenant_id = ((await self.ctx.prompt("Set active tenant id:", hint)) or "").strip()
            if not self.mounted or not tenant_id:
                return True
            try:
                self.ctx.profiles.set_active_tenant(tenant_id)
            except ValueError as e:
                self.ctx.set_status(str(e))
                return True
            await self.refresh()
            self.ctx.set_status(f"Active tenant set to {tenant_id}.")
            return True

        return False


class ConfigScreen(ScreenController):
    id = "config"
    detail_noun = "config"
    pane_panels = {"providers-table": "config-providers", "slots-table": "config-slots", "actions-box": "config-actions"}

    def __init__(self) -> None:
        super().__init__()
        self.doctor_status: str | None = None

    async def refresh(self) -> None:
        await self.ctx.refresh_readiness(check_connectivity=False)

    def build_panels(self) -> list[ScenePanel]:
        tenant_id = self.ctx.get_active_tenant_id()
        tenant = self.ctx.profiles.get_tenant(tenant_id) if tenant_id else None
        rows = config_rows(tenant, self.ctx.secrets, self.ctx.provider_override)
        return scene_config(
            tenant_id=tenant_id,
            provider_rows=rows.provider_rows,
            slot_rows=rows.slot_rows,
            selected_provider=rows.selected_provider,
            selected_slot=rows.selected_slot,
            doctor_status=self.doctor_status,
        )

    async def handle_key(self, event: InputEvent) -> bool:
        ch = event.character
        if ch == "p":
            provider = self.ctx.cycle_provider_override()
            self.ctx.set_status(f"Provider filter: {provider or 'all'}")
            return True

        if ch == "c":
            readiness = await self.ctx.refresh_readiness(check_connectivity=True)
            self.doctor_status = f"{readiness.connection_state.value}: {readiness.connectivity.message}"
            tenant_id = readiness.tenant_id
            if readiness.connectivity.state is ConnectionState.CONNECTED and readiness.tenant is not None and tenant_id:
                for provider in readiness.providers:
                    if provider.has_active_secret and provider.active_slot_id:
                        self.ctx.profiles.mark_validated(tenant_id, provider.provider, provider.active_slot_id)
            self.ctx.set_status("Connectivity doctor executed.")
            return True

        return False


# ─────────────────────────────────────────────────────────────────────────────
# Operational screens
# ─────────────────────────────────────────────────────────────────────────────


class DashboardScreen(ScreenController):
    id = "dashboard"
    detail_noun = "dashboard"
    pane_panels = {
        "kpi": "dashboard-kpis",
        "provider": "dashboard-provider",
        "incidents": "dashboard-incidents",
        "tickets": "dashboard-tickets",
    }

    def __init__(self) -> None:
        super().__init__()
        self.tenant_id: str | None = None
        self.devices: list[Any] = []
        self.incidents: list[Any] = []
        self.tickets: list[Any] = []
        self.ticket_mode: str | None = None

    async def refresh(self) -> None:
        generation = self.generation
        tenant_id = self.ctx.get_active_tenant_id()
        self.log("screen.data.fetch.start", tenantId=tenant_id)
        outcome = await load_dashboard(self.ctx.client, tenant_id, self.ctx.retry_policy)
        if not self.is_current(generation):
            return
        self.tenant_id = tenant_id
        self.devices = outcome.data.devices
        self.incidents = outcome.data.incidents
        self.tickets = outcome.data.tickets
        self.ticket_mode = outcome.data.ticket_mode
        self.log(
            "screen.data.fetch.complete",
            tenantId=tenant_id,
            connectionState=outcome.connection_state.value,
            retry=outcome.retry.to_dict(),
        )
        self.report_outcome(outcome)

    def build_panels(self) -> list[ScenePanel]:
        return scene_dashboard(
            tenant_id=self.tenant_id,
            devices=self.devices,
            incidents=self.incidents,
            tickets=self.tickets,
            provider=self.ctx.provider_override,
            ticket_mode=self.ticket_mode,
        )


class DevicesScreen(ListScreen):
    id = "devices"
    detail_noun = "device"
    pane_panels = {"devices-table": "devices-table", "detail-box": "devices-detail"}
    table_pane = "devices-table"
    table_panel = "devices-table"
    detail_panel = "devices-detail"
    detail_title = "Device Detail"
    search_prompt = "Search devices (empty clears):"

    async def refresh(self) -> None:
        generation = self.generation
        tenant_id = self.ctx.get_active_tenant_id()
        self.log("screen.data.fetch.start", tenantId=tenant_id)
        outcome = await load_devices(self.ctx.client, tenant_id, self.ctx.retry_policy)
        if not self.is_current(generation):
            return
        self.items = outcome.data
        self.log(
            "screen.data.fetch.complete",
            tenantId=tenant_id,
            count=len(self.items),
            connectionState=outcome.connection_state.value,
            retry=outcome.retry.to_dict(),
            payload=payload_summary(self.items),
        )
        self.report_outcome(outcome)
        self.apply_filter()

    def build_panels(self) -> list[ScenePanel]:
        return scene_devices(search_text=self.search_text, selected_index=self.selected_index, devices=self.filtered)


class IncidentsScreen(ListScreen):
    id = "incidents"
    detail_noun = "incident"
    pane_panels = {"incidents-table": "incidents-table", "detail-box": "incidents-detail", "triage-box": "incidents-triage"}
    table_pane = "incidents-table"
    table_panel = "incidents-table"
    detail_panel = "incidents-detail"
    detail_title = "Incident Detail"
    search_prompt = "Severity filter (e.g. high/critical):"
    raw_columns = ("ID", "Name", "Status", "Device")

    def matches(self, item: Any, needle: str) -> bool:
        return needle in _raw(item, ("severity", "priority"), "").lower()

    async def prompt_filter(self) -> bool:
        changed = await super().prompt_filter()
        if changed:
            self.search_text = self.search_text.lower()
        return changed

    async def refresh(self) -> None:
        generation = self.generation
        tenant_id = self.ctx.get_active_tenant_id()
        self.log("screen.data.fetch.start", tenantId=tenant_id)
        outcome = await load_incidents(self.ctx.client, tenant_id, self.ctx.retry_policy)
        if not self.is_current(generation):
            return
        self.items = outcome.data
        self.log("screen.data.fetch.complete", tenantId=tenant_id, count=len(self.items))
        self.report_outcome(outcome)
        self.apply_filter()

    def raw_row(self, item: Any, index: int) -> list[str]:
        return [*super().raw_row(item, index)[:3], _raw(item, ("device_id",), "n/a")]

    def build_panels(self) -> list[ScenePanel]:
        return scene_incidents(
            severity_filter=self.search_text, selected_index=self.selected_index, incidents=self.filtered
        )


class TicketsScreen(ListScreen):
    id = "tickets"
    detail_noun = "ticket"
    pane_panels = {"tickets-table": "tickets-table", "detail-box": "tickets-detail", "draft-box": "tickets-draft"}
    table_pane = "tickets-table"
    table_panel = "tickets-table"
    detail_panel = "tickets-detail"
    detail_title = "Ticket Detail"
    search_prompt = "Search tickets (empty clears):"
    raw_columns = ("ID", "Subject", "Status", "Priority")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self.mode = "organization"
        self._clock = clock
        self._last_resolve_tap = float("-inf")

    async def refresh(self) -> None:
        generation = self.generation
        tenant_id = self.ctx.get_active_tenant_id()
        self.log("screen.data.fetch.start", tenantId=tenant_id)
        outcome = await load_tickets(self.ctx.client, tenant_id, self.ctx.retry_policy)
        if not self.is_current(generation):
            return
        self.mode = outcome.data.mode
        self.items = outcome.data.tickets
        self.log("screen.data.fetch.complete", tenantId=tenant_id, count=len(self.items), mode=self.mode)
        self.report_outcome(outcome)
        self.apply_filter()

    def raw_row(self, item: Any, index: int) -> list[str]:
        return [
            _raw(item, ("id", "_id"), f"row-{index + 1}"),
            _raw(item, ("subject", "title"), "n/a"),
            _raw(item, ("status", "state"), "unknown"),
            _raw(item, ("priority",), "n/a"),
        ]

    def build_panels(self) -> list[ScenePanel]:
        return scene_tickets(
            mode=self.mode, search_text=self.search_text, selected_index=self.selected_index, tickets=self.filtered
        )

    async def resolve_selected(self) -> bool:
        """Resolve (organization) or close (partner) the selected ticket after confirmation."""
        ticket = self.selected
        if ticket is None:
            self.ctx.set_status("No ticket selected.")
            return False
        if not await self.ctx.confirm_write("Resolve ticket", "resolve"):
            self.ctx.set_status("Resolve action canceled.")
            return False
        ticket_id = _raw(ticket, ("id", "_id"), "")
        if not ticket_id:
            self.ctx.set_status("Selected ticket has no id.")
            return False

        self.ctx.set_status("Resolving ticket...")
        tenant_id = self.ctx.get_active_tenant_id()
        try:
            if self.mode == "organization":
                await self.ctx.client.organization.mark_resolved(tenant_id, ticket_id)
            else:
                await self.ctx.client.partner.close_ticket(tenant_id, ticket_id)
        except Exception as e:
            self.ctx.show_error(e)
            return False
        self.ctx.set_status(f"Ticket {ticket_id} resolved.")
        self.log("ticket.resolved", ticketId=ticket_id, mode=self.mode)
        return True

    async def handle_key(self, event: InputEvent) -> bool:
        if event.character == "R":
            await self.resolve_selected()
            return True
        if event.character == "r":
            # A quick double "r" also resolves; a single "r" falls through to refresh
            now = self._clock()
            double_tap = now - self._last_resolve_tap <= RESOLVE_DOUBLE_TAP_SECONDS
            self._last_resolve_tap = now
            if double_tap:
                await self.resolve_selected()
                return True
            return False
        return await super().handle_key(event)


class SpacesScreen(ListScreen):
    """Space list with a drilldown into the selected space.

    Moving the cursor schedules a drilldown after a short debounce; Enter loads
    immediately. Drilldowns that finish after a newer one started are dropped.
    """

    id = "spaces"
    detail_noun = "space"
    pane_panels = {"spaces-table": "spaces-list", "detail-box": "spaces-detail", "devices-table": "spaces-devices"}
    table_pane = "spaces-table"
    table_panel = "spaces-list"
    detail_panel = "spaces-detail"
    detail_title = "Space Detail"
    search_prompt = "Search spaces (empty clears):"
    raw_columns = ("ID", "Name", "Status", "Path")

    def __init__(self, debounce: float = SELECTION_DEBOUNCE_SECONDS) -> None:
        super().__init__()
        self.debounce = debounce
        self.tenant_id: str | None = None
        self.devices_cache: list[Any] = []
        self.selected_space_id: str | None = None
        self.space_detail: Any = None
        self.devices_in_space: list[Any] = []
        self.selected_device_index = 0
        self.pane_status = "No space selected."
        self.loading = False
        self._debounce_task: asyncio.Task | None = None
        self.drilldown = StaleSafeSelectionLoader(load=self._load_drilldown, apply=self._apply_drilldown)

    def unmount(self) -> None:
        super().unmount()
        self._cancel_debounce()

    def raw_row(self, item: Any, index: int) -> list[str]:
        return [
            _raw(item, ("id", "space_id", "_id"), f"space-{index + 1}"),
            _raw(item, ("name", "title"), "n/a"),
            _raw(item, ("status", "state"), "unknown"),
            _raw(item, ("path", "full_path"), "n/a"),
        ]

    # ─── Data ───

    async def refresh(self) -> None:
        generation = self.generation
        tenant_id = self.ctx.get_active_tenant_id()
        self.log("screen.data.fetch.start", tenantId=tenant_id)
        spaces, devices = await asyncio.gather(
            load_spaces(self.ctx.client, tenant_id, self.ctx.retry_policy),
            load_devices(self.ctx.client, tenant_id, self.ctx.retry_policy),
        )
        if not self.is_current(generation):
            return
        self.tenant_id = tenant_id
        self.items = spaces.data
        self.devices_cache = devices.data
        self.log("screen.data.fetch.complete", tenantId=tenant_id, count=len(self.items))
        self.apply_filter()
        self.report_outcome(spaces)
        if self.filtered:
            self._cancel_debounce()
            await self.load_selection(self.selected_index)

    def apply_filter(self) -> None:
        super().apply_filter()
        if not self.filtered:
            self.selected_index = 0
            self.selected_space_id = None
            self.space_detail = None
            self.devices_in_space = []
            self.selected_device_index = 0
            self.pane_status = "No spaces matched the current filter."
            self.loading = False
            return
        ids = [get_space_id(space) for space in self.filtered]
        index = ids.index(self.selected_space_id) if self.selected_space_id in ids else 0
        self.on_selection(self.select(index, SelectionOrigin.PROGRAMMATIC))

    async def _load_drilldown(self, index: int) -> tuple[int, int, Any, LoadOutcome[SpaceDrilldown] | None]:
        generation = self.generation
        selected = self.filtered[index] if index < len(self.filtered) else None
        if selected is None:
            return generation, index, None, None
        outcome = await load_space_drilldown(
            self.ctx.client, self.tenant_id, get_space_id(selected), self.devices_cache, self.ctx.retry_policy
        )
        return generation, index, selected, outcome

    def _apply_drilldown(self, result: tuple[int, int, Any, LoadOutcome[SpaceDrilldown] | None]) -> None:
        generation, index, selected, outcome = result
        if not self.is_current(generation):
            return
        self.loading = False
        self.selected_index = index
        self.selected_device_index = 0
        if selected is None or outcome is None:
            self.selected_space_id = None
            self.space_detail = None
            self.devices_in_space = []
            self.pane_status = "No space selected."
            return
        self.selected_space_id = get_space_id(selected)
        self.space_detail = outcome.data.space_detail
        self.devices_in_space = outcome.data.devices_in_space
        error = f" | {outcome.error.message}" if outcome.error else ""
        self.pane_status = f"{outcome.data.pane_status}{error} ({get_space_name(selected)})"

    async def load_selection(self, index: int) -> bool:
        """Drill into the space at ``index``; False when a newer load won."""
        if not self.mounted:
            return False
        self.selected_index = clamp_index(index, len(self.filtered))
        self.loading = True
        self.pane_status = "Loading selected space..."
        self.log("spaces.drilldown.start", index=self.selected_index)
        applied = await self.drilldown(self.selected_index)
        if not applied:
            self.log("spaces.drilldown.stale", index=index)
        return applied

    # ─── Selection ───

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    async def _debounced_load(self, index: int) -> None:
        await asyncio.sleep(self.debounce)
        self._debounce_task = None
        try:
            if await self.load_selection(index):
                self.ctx.request_repaint()
        except Exception as e:
            self.ctx.show_error(e)

    def on_selection(self, change: SelectionChange) -> None:
        if not change.from_user:
            return
        self._cancel_debounce()
        self._debounce_task = asyncio.ensure_future(self._debounced_load(change.index))

    def move(self, delta: int) -> None:
        if self.active_pane == "devices-table":
            self.selected_device_index = clamp_index(self.selected_device_index + delta, len(self.devices_in_space))
            return
        super().move(delta)

    async def handle_key(self, event: InputEvent) -> bool:
        if _is_search_key(event):
            if await self.prompt_filter() and self.filtered:
                self._cancel_debounce()
                await self.load_selection(self.selected_index)
            return True
        if event.key.name == "enter" and self.active_pane == self.table_pane:
            self._cancel_debounce()
            await self.load_selection(self.selected_index)
            return True
        return False

    def build_panels(self) -> list[ScenePanel]:
        return scene_spaces(
            search_text=self.search_text,
            selected_index=self.selected_index,
            loading=self.loading,
            pane_status=self.pane_status,
            spaces=self.filtered,
            space_detail=self.space_detail,
            devices_in_space=self.devices_in_space,
        )


SCREEN_CLASSES: dict[str, type[ScreenController]] = {
    "setup": SetupScreen,
    "config": ConfigScreen,
    "dashboard": DashboardScreen,
    "spaces": SpacesScreen,
    "devices": DevicesScreen,
    "incidents": IncidentsScreen,
    "tickets": TicketsScreen,
}


def create_screens() -> dict[str, ScreenController]:
    return {screen_id: cls() for screen_id, cls in SCREEN_CLASSES.items()}
