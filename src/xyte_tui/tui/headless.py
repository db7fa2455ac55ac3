# src/xyte_tui/tui/headless.py

"""Headless snapshot mode: the same scenes, written as NDJSON frames.

Each frame is one JSON object per line on stdout, carrying the screen's panels
and a meta block with the session's navigation, refresh and connectivity
state. Frames are numbered from 0 and the numbering never skips, so a consumer
can detect lost lines.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TextIO

from xyte_tui.connectivity import ConnectionState
from xyte_tui.loaders import (
    get_space_id,
    load_dashboard,
    load_devices,
    load_incidents,
    load_space_drilldown,
    load_spaces,
    load_tickets,
)
from xyte_tui.readiness import ReadinessCheck
from xyte_tui.session import SessionContext
from xyte_tui.tui.animation import LOGO_COMPACT, startup_frames
from xyte_tui.tui.navigation import SCREEN_PANE_CONFIG, SCREEN_TITLES, TAB_ORDER
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
from xyte_tui.tui.serialize import PREVIEW_TRUNCATED, TRUNCATED_MARKER

SCHEMA_VERSION = "xyte.headless.frame.v1"
TABLE_FORMAT = "compact-v1"
NAVIGATION_MODE = "pane-focus"

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ─────────────────────────────────────────────────────────────────────────────
# Frames
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HeadlessFrame:
    session_id: str
    sequence: int
    timestamp: str
    screen: str
    title: str
    status: str
    tenant_id: str | None
    motion_enabled: bool
    motion_phase: int
    logo: str
    panels: tuple[ScenePanel, ...]
    meta: dict[str, Any] = field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION
    mode: str = "headless"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "sequence": self.sequence,
            "mode": self.mode,
            "screen": self.screen,
            "title": self.title,
            "status": self.status,
        }
        if self.tenant_id is not None:
            data["tenantId"] = self.tenant_id
        data.update(
            {
                "motionEnabled": self.motion_enabled,
                "motionPhase": self.motion_phase,
                "logo": self.logo,
                "panels": [panel.to_dict() for panel in self.panels],
                "meta": self.meta,
            }
        )
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def default_meta() -> dict[str, Any]:
    return {
        "inputState": "idle",
        "queueDepth": 0,
        "droppedEvents": 0,
        "transitionState": "idle",
        "refreshState": "idle",
        "navigationMode": NAVIGATION_MODE,
        "availablePanes": [],
        "activePane": "",
        "tabNavBoundary": None,
        "renderSafety": "ok",
        "tableFormat": TABLE_FORMAT,
        "contract": {
            "frameVersion": SCHEMA_VERSION,
            "tableFormat": TABLE_FORMAT,
            "navigationMode": NAVIGATION_MODE,
        },
    }


def create_headless_frame(
    *,
    session_id: str,
    sequence: int,
    screen: str,
    title: str,
    status: str,
    motion_enabled: bool,
    motion_phase: int,
    logo: str,
    panels: Sequence[ScenePanel],
    tenant_id: str | None = None,
    meta: dict[str, Any] | None = None,
    clock: Clock = _utc_now,
) -> HeadlessFrame:
    """Build one frame; ``meta`` overrides the default meta key by key."""
    return HeadlessFrame(
        session_id=session_id,
        sequence=sequence,
        timestamp=_iso_timestamp(clock()),
        screen=screen,
        title=title,
        status=status,
        tenant_id=tenant_id,
        motion_enabled=motion_enabled,
        motion_phase=motion_phase,
        logo=logo,
        panels=tuple(panels),
        meta={**default_meta(), **(meta or {})},
    )


def with_navigation_meta(screen: str, **meta: Any) -> dict[str, Any]:
    """Navigation meta for a screen at its default pane, plus extra keys.

    Keys whose value is None are dropped, except tabNavBoundary.
    """
    panes = SCREEN_PANE_CONFIG[screen]
    base: dict[str, Any] = {
        "tableFormat": TABLE_FORMAT,
        "tabId": screen,
        "tabOrder": list(TAB_ORDER),
        "tabNavBoundary": None,
        "renderSafety": "ok",
        "activePane": panes.default_pane,
        "availablePanes": list(panes.panes),
        "navigationMode": NAVIGATION_MODE,
    }
    base.update({key: value for key, value in meta.items() if value is not None})
    return base


def get_refresh_state(connection_state: ConnectionState, retried: bool = False) -> str:
    if connection_state in (ConnectionState.CONNECTED, ConnectionState.NOT_CHECKED):
        return "idle"
    if retried:
        return "retrying"
    return "error"


def infer_render_safety(panels: Sequence[ScenePanel]) -> str:
    for panel in panels:
        for line in panel.lines or ():
            if PREVIEW_TRUNCATED in line or TRUNCATED_MARKER in line:
                return "truncated"
    return "ok"


# ─────────────────────────────────────────────────────────────────────────────
# Text rendering
# ─────────────────────────────────────────────────────────────────────────────

MAX_TEXT_ROWS = 20


def _panel_as_text(panel: dict[str, Any]) -> str:
    lines = [f"== {panel.get('title', '')} =="]
    if panel.get("status"):
        lines.append(f"[{panel['status']}]")

    kind = panel.get("kind")
    if kind == "stats":
        lines += [f"{stat['label']}: {stat['value']}" for stat in panel.get("stats") or []]
    elif kind == "table" and panel.get("table"):
        header = " | ".join(panel["table"]["columns"])
        rows = panel["table"]["rows"]
        lines.append(header)
        lines.append("-" * min(100, len(header)))
        lines += [" | ".join(str(cell) for cell in row) for row in rows[:MAX_TEXT_ROWS]]
        if len(rows) > MAX_TEXT_ROWS:
            lines.append(f"... {len(rows) - MAX_TEXT_ROWS} more rows")
    elif kind == "text" and panel.get("text"):
        lines += panel["text"]["lines"]
    return "\n".join(lines)


def render_frame_as_text(frame: HeadlessFrame | dict[str, Any]) -> str:
    """Human-readable rendering of one frame (object or parsed JSON)."""
    data = frame.to_dict() if isinstance(frame, HeadlessFrame) else frame
    sections = [
        data.get("logo", ""),
        f"Contract: {data.get('schemaVersion')}",
        f"Session: {data.get('sessionId')} #{data.get('sequence')}",
        f"Screen: {data.get('screen')}",
        f"Title: {data.get('title')}",
        f"Status: {data.get('status')}",
        f"Tenant: {data.get('tenantId') or 'none'}",
        f"Motion: {'on' if data.get('motionEnabled') else 'off'} (phase={data.get('motionPhase')})",
    ]
    sections += [_panel_as_text(panel) for panel in data.get("panels") or []]
    return "\n\n".join(sections)


# ─────────────────────────────────────────────────────────────────────────────
# Renderer
# ─────────────────────────────────────────────────────────────────────────────


def _operational_status(title: str, outcome: Any) -> str:
    if outcome.error is not None:
        return f"{title} {outcome.connection_state.value}: {outcome.error.message}"
    return f"{title} snapshot"


def _connection_meta(outcome: Any) -> dict[str, Any]:
    connection: dict[str, Any] = {"state": outcome.connection_state.value}
    if outcome.error is not None:
        connection["error"] = outcome.error.message
    return connection


class HeadlessRenderer:
    """Writes startup frames, then one snapshot per cycle.

    Args:
        session: Session context (client, profiles, secrets, config)
        screen: Requested screen id
        motion_enabled: Reported in every frame
        follow: Keep emitting snapshots until stopped
        interval_ms: Delay between follow cycles (clamped to the configured minimum)
        output: Stream for NDJSON lines (default stdout)
        clock: Frame timestamp source
        session_id: Frame session id (default a fresh uuid4)
        sleep: Awaitable sleep between cycles (seconds); default waits on the stop event
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        screen: str = "dashboard",
        motion_enabled: bool = False,
        follow: bool = False,
        interval_ms: int | None = None,
        output: TextIO | None = None,
        clock: Clock = _utc_now,
        session_id: str | None = None,
        sleep: Sleep | None = None,
    ):
        headless = session.config.headless
        self.session = session
        self.screen = screen
        self.motion_enabled = motion_enabled
        self.follow = follow
        self.interval_ms = max(headless.min_interval_ms, interval_ms or headless.interval_ms)
        self.session_id = session_id or str(uuid.uuid4())
        self._output = output or sys.stdout
        self._clock = clock
        self._sleep = sleep
        self._sequence = 0
        self._written = 0
        self._phase = 0
        self._running = False
        self._broken_pipe = False
        self._stop_event = asyncio.Event()

    @property
    def frames_written(self) -> int:
        """Frames that reached the output; a broken pipe stops the count."""
        return self._written

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()

    def _next_sequence(self) -> int:
        current = self._sequence
        self._sequence += 1
        return current

    def _frame(self, **kwargs: Any) -> HeadlessFrame:
        return create_headless_frame(
            session_id=self.session_id,
            sequence=self._next_sequence(),
            motion_enabled=self.motion_enabled,
            clock=self._clock,
            **kwargs,
        )

    def _write(self, frame: HeadlessFrame) -> bool:
        if self._broken_pipe:
            return False
        try:
            self._output.write(frame.to_json() + "\n")
            self._output.flush()
        except BrokenPipeError:
            self._broken_pipe = True
            return False
        self._written += 1
        return True

    async def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)

    # ─── Frame builders ───

    def write_startup(self) -> None:
        for index, startup in enumerate(startup_frames()):
            self._write(
                self._frame(
                    screen="setup",
                    title=startup.title,
                    status=startup.status,
                    motion_phase=index,
                    logo=startup.banner,
                    panels=[],
                    meta=with_navigation_meta(
                        "setup",
                        startup=True,
                        inputState="idle",
                        queueDepth=0,
                        droppedEvents=0,
                        transitionState="idle",
                        refreshState="idle",
                    ),
                )
            )

    def _setup_panels(self, readiness: ReadinessCheck) -> list[ScenePanel]:
        return scene_setup(
            tenant_id=readiness.tenant_id,
            readiness_state=readiness.state.value,
            connection_state=readiness.connection_state.value,
            missing_items=readiness.missing_items,
            recommended_actions=readiness.recommended_actions,
            provider_rows=setup_provider_rows(readiness),
        )

    def _setup_frame(self, readiness: ReadinessCheck, redirected_from: str | None) -> HeadlessFrame:
        panels = self._setup_panels(readiness)
        return self._frame(
            screen="setup",
            title="Setup",
            status="Setup complete" if readiness.ready else "Setup required",
            tenant_id=readiness.tenant_id,
            motion_phase=self._phase,
            logo=LOGO_COMPACT,
            panels=panels,
            meta=with_navigation_meta(
                "setup",
                renderSafety=infer_render_safety(panels),
                readiness=readiness.state.value,
                connection=readiness.connectivity.to_dict(),
                blocking=not readiness.ready,
                redirectedFrom=redirected_from,
                refreshState=get_refresh_state(readiness.connection_state),
            ),
        )

    def _config_frame(self, readiness: ReadinessCheck) -> HeadlessFrame:
        rows = config_rows(readiness.tenant, self.session.secrets, self.session.provider_override)
        panels = scene_config(
            tenant_id=readiness.tenant_id,
            provider_rows=rows.provider_rows,
            slot_rows=rows.slot_rows,
            selected_provider=rows.selected_provider,
            selected_slot=rows.selected_slot,
            doctor_status=f"{readiness.connection_state.value}: {readiness.connectivity.message}",
        )
        return self._frame(
            screen="config",
            title="Config",
            status="Config snapshot",
            tenant_id=readiness.tenant_id,
            motion_phase=self._phase,
            logo=LOGO_COMPACT,
            panels=panels,
            meta=with_navigation_meta(
                "config",
                renderSafety=infer_render_safety(panels),
                readiness=readiness.state.value,
                connection=readiness.connectivity.to_dict(),
                blocking=False,
                refreshState=get_refresh_state(readiness.connection_state),
            ),
        )

    async def _operational_frame(self, screen: str, tenant_id: str | None, readiness: ReadinessCheck) -> HeadlessFrame:
        client = self.session.client
        policy = self.session.retry_policy
        title = SCREEN_TITLES[screen]
        extra: dict[str, Any] = {}

        if screen == "dashboard":
            outcome = await load_dashboard(client, tenant_id, policy)
            panels = scene_dashboard(
                tenant_id=tenant_id,
                devices=outcome.data.devices,
                incidents=outcome.data.incidents,
                tickets=outcome.data.tickets,
                provider=self.session.provider_override,
                ticket_mode=outcome.data.ticket_mode,
            )
        elif screen == "devices":
            outcome = await load_devices(client, tenant_id, policy)
            panels = scene_devices(search_text="", selected_index=0, devices=outcome.data)
        elif screen == "incidents":
            outcome = await load_incidents(client, tenant_id, policy)
            panels = scene_incidents(severity_filter="", selected_index=0, incidents=outcome.data)
        elif screen == "tickets":
            outcome = await load_tickets(client, tenant_id, policy)
            panels = scene_tickets(
                mode=outcome.data.mode, search_text="", selected_index=0, tickets=outcome.data.tickets
            )
        else:
            outcome = await load_spaces(client, tenant_id, policy)
            selected = outcome.data[0] if outcome.data else None
            space_id = get_space_id(selected) if selected is not None else ""
            detail = None
            devices_in_space: list[Any] = []
            pane_status = "Loading selected space..." if selected is not None else "No spaces found for tenant."
            drilldown_retry = None
            if space_id:
                drilldown = await load_space_drilldown(client, tenant_id, space_id, [], policy)
                detail = drilldown.data.space_detail
                devices_in_space = drilldown.data.devices_in_space
                pane_status = drilldown.data.pane_status
                drilldown_retry = drilldown.retry.to_dict()
                if drilldown.error is not None:
                    extra["drilldownError"] = drilldown.error.message
            panels = scene_spaces(
                search_text="",
                selected_index=0,
                loading=False,
                pane_status=pane_status,
                spaces=outcome.data,
                space_detail=detail,
                devices_in_space=devices_in_space,
            )

        connection = {**_connection_meta(outcome), **extra}
        retry: dict[str, Any] = outcome.retry.to_dict()
        if screen == "spaces":
            retry = {"spaces": retry, "drilldown": drilldown_retry}

        return self._frame(
            screen=screen,
            title=title,
            status=_operational_status(title, outcome),
            tenant_id=tenant_id,
            motion_phase=self._phase,
            logo=LOGO_COMPACT,
            panels=panels,
            meta=with_navigation_meta(
                screen,
                renderSafety=infer_render_safety(panels),
                readiness=readiness.state.value,
                connection=connection,
                retry=retry,
                refreshState=get_refresh_state(outcome.connection_state, outcome.retry.retried),
            ),
        )

    def _reconnect_frame(self, readiness: ReadinessCheck) -> HeadlessFrame:
        return self._frame(
            screen="setup",
            title="Reconnect",
            status=f"Retrying connectivity in {self.interval_ms}ms",
            tenant_id=readiness.tenant_id,
            motion_phase=self._phase,
            logo=LOGO_COMPACT,
            panels=self._setup_panels(readiness),
            meta=with_navigation_meta(
                "setup",
                readiness=readiness.state.value,
                connection=readiness.connectivity.to_dict(),
                retry={"attempt": self._phase, "nextDelayMs": self.interval_ms},
                refreshState="retrying",
            ),
        )

    async def snapshot(self) -> HeadlessFrame:
        """Evaluate readiness and build the frame for the requested screen."""
        tenant_id = self.session.get_active_tenant_id()
        readiness = await self.session.refresh_readiness(check_connectivity=True)
        blocked = not readiness.ready and self.screen not in ("setup", "config")
        screen = "setup" if blocked else self.screen

        if screen == "setup":
            return self._setup_frame(readiness, self.screen if blocked else None)
        if screen == "config":
            return self._config_frame(readiness)
        return await self._operational_frame(screen, tenant_id, readiness)

    # ─── Main loop ───

    async def run(self) -> int:
        """Emit frames until done, stopped by a signal, or the reader goes away.

        Returns:
            Number of frames written
        """
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                continue
            installed.append(sig)

        self._running = True
        try:
            self.write_startup()
            while self._running and not self._broken_pipe:
                frame = await self.snapshot()
                if not self._write(frame):
                    break
                self._phase += 1
                if not self.follow:
                    break

                connectivity = self.session.readiness.connectivity if self.session.readiness else None
                if (
                    connectivity is not None
                    and connectivity.retriable
                    and connectivity.state is not ConnectionState.CONNECTED
                ):
                    self._write(self._reconnect_frame(self.session.readiness))
                    self._phase += 1

                await self._wait(self.interval_ms / 1000)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            self.session.event_log.log("headless.stopped", {"frames": self._written, "brokenPipe": self._broken_pipe})
        return self._written


async def run_headless(session: SessionContext, **options: Any) -> int:
    return await HeadlessRenderer(session, **options).run()
