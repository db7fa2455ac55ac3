"""Interactive operator dashboard for the Xyte fleet.

Philosophy: one session, one input queue, one mounted screen.
- Every key goes through the InputController; handlers never overlap
- The mounted screen's refreshes go through its ScreenRuntime
- Errors surface through the ErrorStormGuard, which shuts the session down
  loudly instead of looping on popups
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import json
from collections.abc import Awaitable
from typing import Any

from rich.console import RenderableType
from rich.table import Table
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import Input, Label, Static

from xyte_tui.config import Config
from xyte_tui.logging import EventLog
from xyte_tui.session import SessionContext, open_session
from xyte_tui.tui.animation import STARTUP_TITLE, pulse_char, startup_frames
from xyte_tui.tui.dispatch import ArrowResult, DispatchOutcome, KeyHandlers, dispatch_key
from xyte_tui.tui.guards import ErrorStormGuard
from xyte_tui.tui.input import InputController, InputEvent
from xyte_tui.tui.navigation import GLOBAL_SCREEN_KEYS, SCREEN_TITLES, TAB_ORDER, help_lines, next_tab
from xyte_tui.tui.runtime import RefreshReason, RefreshState, RefreshStatus, ScreenRuntime
from xyte_tui.tui.scene import ScenePanel
from xyte_tui.tui.screens import ListScreen, ScreenController, create_screens

UNGATED_SCREENS = ("setup", "config")


def can_open_screen(screen_id: str, ready: bool) -> bool:
    """Operational screens need a ready setup; setup and config are always open."""
    return screen_id in UNGATED_SCREENS or ready


def format_footer(
    *,
    readiness: str | None,
    runtime: RefreshStatus,
    queue_depth: int,
    dropped: int,
    transition: str,
    status: str,
) -> str:
    """Footer line: readiness, refresh/input counters, then the status text."""
    runtime_part = (
        f"refresh={runtime.state.value}{'+queued' if runtime.refresh_queued else ''} "
        f"stale={runtime.stale_discarded} in={queue_depth} drop={dropped} tx={transition}"
    )
    detail = f"{status} | err={runtime.last_error}" if runtime.last_error else status
    return f" @ {readiness or 'status=unknown'} | {runtime_part} | {detail}"


def render_panel(panel: ScenePanel, *, selected_row: int | None = None, scroll: int = 0) -> RenderableType:
    """Rich renderable for one scene panel."""
    if panel.kind == "stats":
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold")
        grid.add_column()
        for stat in panel.stats or ():
            grid.add_row(stat.label, str(stat.value))
        return grid

    if panel.kind == "table":
        table = Table(box=None, expand=True, header_style="bold reverse", pad_edge=False)
        for column in panel.columns or ():
            table.add_column(column, no_wrap=True, overflow="ellipsis")
        for index, row in enumerate(panel.rows or ()):
            table.add_row(*(str(cell) for cell in row), style="reverse blue" if index == selected_row else None)
        return table

    return Text("\n".join((panel.lines or ())[scroll:]))


# ─────────────────────────────────────────────────────────────────────────────
# Widgets
# ─────────────────────────────────────────────────────────────────────────────


class PanelBox(Static):
    """One scene panel, bordered, titled with the panel title."""

    DEFAULT_CSS = """
    PanelBox {
        height: 1fr;
        padding: 0 1;
        border: solid $primary;
        border-title-align: left;
        border-subtitle-align: right;
    }

    PanelBox.-active {
        border: double $accent;
    }
    """

    def show(self, panel: ScenePanel, *, active: bool, selected_row: int | None = None, scroll: int = 0) -> None:
        self.border_title = panel.title
        self.border_subtitle = panel.status or ""
        self.set_class(active, "-active")
        self.update(render_panel(panel, selected_row=selected_row, scroll=scroll))


class HelpScreen(ModalScreen[None]):
    """Key help overlay."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("enter", "close", "Close"),
        Binding("q", "close", "Close"),
    ]

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }

    HelpScreen > Static {
        width: 80%;
        height: auto;
        max-height: 90%;
        padding: 1 2;
        border: solid $primary;
        border-title-align: left;
    }
    """

    def compose(self) -> ComposeResult:
        help_box = Static("\n".join([*help_lines(), "", "Press Escape, Enter or q to close."]))
        help_box.border_title = "Keys"
        yield help_box

    def action_close(self) -> None:
        self.dismiss(None)


class ErrorScreen(ModalScreen[None]):
    """Transient error popup; closes itself after ``seconds``."""

    BINDINGS = [Binding("escape", "close", "Close"), Binding("enter", "close", "Close")]

    DEFAULT_CSS = """
    ErrorScreen {
        align: center middle;
    }

    ErrorScreen > Static {
        width: 70%;
        height: auto;
        padding: 1 2;
        border: solid $error;
        border-title-align: left;
    }
    """

    def __init__(self, message: str, seconds: float = 4.0):
        super().__init__()
        self.message = message
        self.seconds = seconds

    def compose(self) -> ComposeResult:
        box = Static(Text(f"Error: {self.message}"))
        box.border_title = "XYTE"
        yield box

    def on_mount(self) -> None:
        self.set_timer(self.seconds, self.action_close)

    def action_close(self) -> None:
        if self.is_current:
            self.dismiss(None)


class PromptScreen(ModalScreen[str | None]):
    """Single-line text prompt; Escape cancels with None."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    PromptScreen {
        align: center middle;
    }

    PromptScreen > Vertical {
        width: 70%;
        height: auto;
        padding: 1 2;
        border: solid $accent;
    }
    """

    def __init__(self, message: str, initial: str = ""):
        super().__init__()
        self.message = message
        self.initial = initial

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(self.message)
            yield Input(value=self.initial, id="prompt-input")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


# ─────────────────────────────────────────────────────────────────────────────
# App
# ─────────────────────────────────────────────────────────────────────────────


class XyteApp(App):
    """Interactive session over the Xyte screens."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header {
        height: 1;
        background: $primary;
        color: $text;
    }

    #startup {
        height: 1fr;
        content-align: center middle;
    }

    #body {
        height: 1fr;
        layout: grid;
        grid-size: 2;
    }

    #status-bar {
        height: 1;
        background: $panel;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit_session", "Quit", priority=True, show=False),
    ]

    def __init__(self, session: SessionContext, *, initial_screen: str = "dashboard", motion: bool = True):
        super().__init__()
        self.session = session
        self.config = session.config
        self.initial_screen = initial_screen
        self.motion = motion
        self.controllers = create_screens()
        self.active: ScreenController | None = None
        self.active_id = initial_screen
        self.runtime: ScreenRuntime | None = None
        self.runtime_status = RefreshStatus()
        self.transition_state = "idle"
        self.status_text = "Starting..."
        self.shutting_down = False
        self.prompt_active = False
        self.help_active = False
        self.pulse_phase = 0
        self.pulse_timer: Timer | None = None
        self._mount_counter = 0
        self._boxes: dict[str, PanelBox] = {}
        self._background_tasks: set[asyncio.Task] = set()
        self._resources = contextlib.ExitStack()
        self._last_runtime_line = ""

        guards = self.config.guards
        self.error_guard = ErrorStormGuard(
            shutdown=self.end_session,
            show_modal=self._show_error_modal,
            set_error_status=self._mark_error,
            threshold=guards.error_storm_threshold,
            window=guards.repeat_window_seconds,
            event_log=session.event_log,
        )
        self.input_controller = InputController(
            self.handle_input,
            is_critical=self.is_critical,
            max_queue_size=self.config.input.max_queue_size,
            on_error=lambda e: self.report_error("input.controller", e),
        )

        session.on_status = self.set_status
        session.on_error = lambda error: self.report_error("screen.action", error)
        session.prompt = self.prompt
        session.on_repaint = self.paint_screen

    @property
    def modal_active(self) -> bool:
        return self.prompt_active or self.help_active or self.error_guard.modal_active

    def compose(self) -> ComposeResult:
        yield Static(f" {STARTUP_TITLE} ", id="header")
        yield Static("", id="startup")
        yield Container(id="body")
        yield Static("", id="status-bar")

    def on_mount(self) -> None:
        """Acquire session resources; each one is released by end_session()."""
        self.title = "xyte-tui"
        log = self.session.event_log
        self._resources.callback(log.close)
        self._resources.callback(lambda: self.session.debug_log("app.shutdown.complete"))

        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_loop_exception)
        self._resources.callback(loop.set_exception_handler, previous_handler)

        if self.motion:
            self.pulse_timer = self.set_interval(self.config.tui.pulse_interval, self._pulse)
            self._resources.callback(self._stop_pulse)

        self._resources.callback(self._release_screen)
        self._resources.callback(self._stop_input)

        self.session.debug_log("app.interactive.start", {"initialScreen": self.initial_screen, "motionEnabled": self.motion})
        self._spawn(self._start_session())

    def on_unmount(self) -> None:
        self.end_session()

    # ─── Lifecycle ───

    async def _start_session(self) -> None:
        frames = startup_frames()
        shown = frames if self.motion else frames[-1:]
        for frame in shown:
            self._set_startup(f"{frame.banner}\n\n{frame.status}")
            if self.motion:
                await asyncio.sleep(self.config.tui.startup_frame_delay)
        try:
            await self.session.refresh_readiness(check_connectivity=False)
        except Exception as e:
            self.report_error("app.start.readiness", e)
        self._set_startup(None)
        await self.mount_screen(self.initial_screen)

    def _set_startup(self, text: str | None) -> None:
        try:
            startup = self.query_one("#startup", Static)
        except NoMatches:
            return
        startup.display = text is not None
        startup.update(text or "")

    def end_session(self) -> None:
        """The single exit path for quit, error storms and app exit."""
        if self.shutting_down:
            return
        self.shutting_down = True
        self.error_guard.begin_shutdown()
        self.session.debug_log("app.shutdown.start", {"activeScreen": self.active_id})
        try:
            self._resources.close()
        finally:
            self.exit()

    def _stop_input(self) -> None:
        self.input_controller.cancel()
        for task in list(self._background_tasks):
            task.cancel()

    def _stop_pulse(self) -> None:
        if self.pulse_timer is not None:
            self.pulse_timer.stop()
            self.pulse_timer = None

    def _release_screen(self) -> None:
        if self.runtime is not None:
            self.runtime.cancel_pending_for_unmount()
            self.runtime = None
        if self.active is not None:
            self.active.unmount()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def action_quit_session(self) -> None:
        self.input_controller.dispatch(InputEvent.from_key("ctrl+c"))

    # ─── Errors ───

    def report_error(self, source: str, error: BaseException | str) -> None:
        self.error_guard.report(source, error)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        error = context.get("exception") or context.get("message", "unknown loop error")
        self.session.debug_log("process.loop.exception", {"error": error})
        self.report_error("loop", error)

    def _show_error_modal(self, message: str) -> None:
        self.push_screen(
            ErrorScreen(message, self.config.guards.error_modal_seconds),
            callback=lambda _: self.error_guard.modal_closed(),
        )

    def _mark_error(self, message: str) -> None:
        self.runtime_status = dataclasses.replace(self.runtime_status, state=RefreshState.ERROR, last_error=message)
        self.render_footer()

    # ─── Screens ───

    async def mount_screen(self, screen_id: str) -> None:
        self._mount_counter += 1
        token = self._mount_counter
        self.transition_state = "switching"
        self.session.debug_log("screen.mount.request", {"requested": screen_id, "token": token})
        self.set_status(f"Switching to {screen_id}...")

        readiness = self.session.readiness
        next_id = screen_id if can_open_screen(screen_id, readiness is not None and readiness.ready) else "setup"
        if next_id != screen_id:
            self.session.debug_log(
                "screen.mount.redirect",
                {"requested": screen_id, "redirectedTo": next_id, "readinessState": readiness.state.value if readiness else None},
            )
            self.set_status(f"Setup required before opening {screen_id}. Redirected to Setup.")

        self._release_screen()
        if self.active is not None:
            self.session.debug_log("screen.unmount", {"id": self.active.id})

        screen = self.controllers[next_id]
        screen.mount(self.session)
        self.active = screen
        self.active_id = next_id

        self.runtime = ScreenRuntime(
            self._screen_refresh(screen, token),
            on_status=self._on_runtime_status,
            on_error=lambda e: self.report_error("screen.runtime", e),
        )
        self.runtime.set_mount_token(token)
        self.runtime_status = self.runtime.get_status()
        self.transition_state = "idle"
        self.session.debug_log("screen.mount.active", {"id": next_id, "token": token})
        self.set_status(f"Active screen: {screen.title}")
        self.paint_screen()

        self.runtime.run_refresh(RefreshReason.MOUNT)
        self._spawn(self._check_readiness(token, "screen.mount.readiness"))

    def _screen_refresh(self, screen: ScreenController, token: int):
        async def refresh() -> None:
            if token != self._mount_counter or self.shutting_down:
                self.session.debug_log(
                    "screen.refresh.skip",
                    {"id": screen.id, "token": token, "latestToken": self._mount_counter, "shuttingDown": self.shutting_down},
                )
                return
            self.session.debug_log("screen.refresh.start", {"id": screen.id, "reason": self.runtime_status.reason})
            await screen.refresh()
            self.session.debug_log("screen.refresh.complete", {"id": screen.id})
            self.paint_screen()

        return refresh

    def _on_runtime_status(self, status: RefreshStatus) -> None:
        self.runtime_status = status
        line = json.dumps(dataclasses.asdict(status), default=str)
        if line != self._last_runtime_line:
            self._last_runtime_line = line
            self.session.debug_log("screen.runtime.status", {"id": self.active_id, **dataclasses.asdict(status)})
        self.render_footer()

    async def _check_readiness(self, token: int | None, source: str) -> None:
        """Re-check readiness; leave an operational screen that is no longer allowed."""
        try:
            readiness = await self.session.refresh_readiness(check_connectivity=True)
        except Exception as e:
            self.report_error(source, e)
            return
        if self.shutting_down or (token is not None and token != self._mount_counter):
            return
        if not readiness.ready and self.active_id not in UNGATED_SCREENS:
            self.set_status(f"Setup required before opening {self.active_id}. Redirected to Setup.")
            await self.mount_screen("setup")
            return
        if token is None:
            self.set_status("Screen refreshed.")
        self.paint_screen()

    # ─── Input ───

    def on_key(self, event: events.Key) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        event.stop()
        event.prevent_default()
        result = self.input_controller.dispatch(InputEvent.from_key(event.key, event.character))
        self.session.debug_log(
            "input.enqueue",
            {"key": event.key, "bypassed": result.bypassed, "queueDepth": result.queue_depth, "droppedEvents": result.dropped_events},
        )
        self.render_footer()

    def is_critical(self, event: InputEvent) -> bool:
        if event.key.full == "ctrl+c":
            return True
        return not self.modal_active and (event.character == "q" or event.key.full == "q")

    async def handle_input(self, event: InputEvent) -> None:
        if self.shutting_down:
            return
        if self.is_critical(event):
            self.session.debug_log("input.critical", {"key": event.key.full})
            self.end_session()
            return

        screen = self.active
        handlers = KeyHandlers(handle_global=self._guarded_global)
        if screen is not None:
            handlers.handle_arrow = self._guarded_arrow(screen)
            handlers.handle_screen = self._guarded_screen(screen)
            handlers.claims_horizontal_arrows = screen.claims_horizontal_arrows

        outcome = await dispatch_key(event, handlers, modal_active=self.modal_active)
        state = self.input_controller.get_state()
        self.session.debug_log(
            "input.dispatch",
            {
                "screen": screen.id if screen else None,
                "key": event.key.full,
                "ch": None if self.modal_active else event.character,
                "modalActive": self.modal_active,
                "result": outcome.value,
                "queueDepth": state.queue_depth,
                "droppedEvents": state.dropped_events,
            },
        )
        if outcome is not DispatchOutcome.BLOCKED and not self.shutting_down:
            self.paint_screen()

    def _guarded_arrow(self, screen: ScreenController):
        async def handle(direction: str) -> ArrowResult:
            try:
                return await screen.handle_arrow(direction)
            except Exception as e:
                self.session.debug_log("input.arrow.error", {"screen": screen.id, "key": direction, "error": e})
                self.report_error("input.arrow", e)
                return ArrowResult.HANDLED

        return handle

    def _guarded_screen(self, screen: ScreenController):
        async def handle(event: InputEvent) -> bool:
            try:
                return await screen.handle_key(event)
            except Exception as e:
                self.session.debug_log("input.screen.error", {"screen": screen.id, "key": event.key.full, "error": e})
                self.report_error("input.screen", e)
                return True

        return handle

    async def _guarded_global(self, event: InputEvent) -> None:
        try:
            await self.handle_global(event)
        except Exception as e:
            self.session.debug_log("input.global.error", {"key": event.key.full, "error": e})
            self.report_error("input.global", e)

    async def handle_global(self, event: InputEvent) -> None:
        name, ch = event.key.name, event.character
        if name in ("left", "right"):
            await self.mount_screen(next_tab(self.active_id, name))
            return
        if ch in GLOBAL_SCREEN_KEYS:
            await self.mount_screen(GLOBAL_SCREEN_KEYS[ch])
            return
        if ch == "r":
            self.session.debug_log("screen.refresh.request", {"id": self.active_id, "via": "global-r"})
            if self.runtime is not None:
                self.runtime.run_refresh(RefreshReason.MANUAL)
            self._spawn(self._check_readiness(None, "global.refresh"))
            return
        if ch == "?" or name == "escape":
            self.show_help()

    def show_help(self) -> None:
        self.help_active = True

        def closed(_: None) -> None:
            self.help_active = False

        self.push_screen(HelpScreen(), callback=closed)

    async def prompt(self, message: str, initial: str = "") -> str | None:
        """Show a text prompt and wait for the answer (None when cancelled)."""
        loop = asyncio.get_running_loop()
        answer: asyncio.Future[str | None] = loop.create_future()

        def done(value: str | None) -> None:
            if not answer.done():
                answer.set_result(value)

        self.prompt_active = True
        self.session.debug_log("ui.prompt.open", {"message": message})
        try:
            self.push_screen(PromptScreen(message, initial), callback=done)
            return await answer
        finally:
            self.prompt_active = False

    # ─── Rendering ───

    def set_status(self, text: str) -> None:
        self.status_text = text
        self.render_footer()

    def _pulse(self) -> None:
        self.pulse_phase += 1
        self.render_header()

    def render_header(self) -> None:
        tabs = " ".join(
            f"[{SCREEN_TITLES[t].upper()}]" if t == self.active_id else SCREEN_TITLES[t].lower() for t in TAB_ORDER
        )
        pulse = f" {pulse_char(self.pulse_phase)}" if self.motion else ""
        try:
            self.query_one("#header", Static).update(Text(f" {STARTUP_TITLE}{pulse} | {tabs} "))
        except NoMatches:
            pass

    def render_footer(self) -> None:
        readiness = self.session.readiness
        input_state = self.input_controller.get_state()
        line = format_footer(
            readiness=(
                f"{readiness.state.value}/{readiness.connection_state.value} tenant={readiness.tenant_id or 'none'}"
                if readiness
                else None
            ),
            runtime=self.runtime_status,
            queue_depth=input_state.queue_depth,
            dropped=input_state.dropped_events,
            transition=self.transition_state,
            status=self.status_text,
        )
        try:
            self.query_one("#status-bar", Static).update(Text(line))
        except NoMatches:
            pass

    def paint_screen(self) -> None:
        """Paint the mounted screen's current panels."""
        screen = self.active
        if screen is None:
            return
        try:
            body = self.query_one("#body", Container)
        except NoMatches:
            return

        panels = screen.panels()
        if [p.id for p in panels] != list(self._boxes):
            body.remove_children()
            self._boxes = {panel.id: PanelBox() for panel in panels}
            body.mount_all(self._boxes.values())

        focused = screen.focus()
        for panel in panels:
            selected_row = None
            if isinstance(screen, ListScreen) and panel.id == screen.table_panel:
                selected_row = screen.selected_index
            pane = next((p for p, pid in screen.pane_panels.items() if pid == panel.id), None)
            self._boxes[panel.id].show(
                panel,
                active=panel.id == focused,
                selected_row=selected_row,
                scroll=screen.scroll_offsets.get(pane, 0) if pane else 0,
            )
        self.render_header()
        self.render_footer()


async def _run_interactive(
    config: Config,
    *,
    tenant: str | None,
    initial_screen: str,
    motion: bool,
    event_log: EventLog | None,
) -> None:
    async with open_session(config, tenant_override=tenant, event_log=event_log) as session:
        app = XyteApp(session, initial_screen=initial_screen, motion=motion)
        await app.run_async()


def run_tui(
    config: Config,
    *,
    tenant: str | None = None,
    initial_screen: str = "dashboard",
    motion: bool = True,
    event_log: EventLog | None = None,
) -> None:
    """Run the interactive session until the user quits."""
    asyncio.run(
        _run_interactive(config, tenant=tenant, initial_screen=initial_screen, motion=motion, event_log=event_log)
    )
