# tests/test_app.py
"""Tests for the interactive app."""

import asyncio
from unittest.mock import MagicMock

import pytest

from xyte_tui.profiles import EnvSecretStore
from xyte_tui.tui.input import InputEvent
from xyte_tui.tui.runtime import RefreshState, RefreshStatus
from xyte_tui.tui.scene import ScenePanel


def test_app_instantiates(session):
    """XyteApp wires itself into the session without starting."""
    from xyte_tui.tui.app import XyteApp

    app = XyteApp(session, initial_screen="devices", motion=False)

    assert app.active is None
    assert set(app.controllers) == {"setup", "config", "dashboard", "spaces", "devices", "incidents", "tickets"}
    assert session.prompt == app.prompt


def test_can_open_screen():
    """Only setup and config open before setup is complete."""
    from xyte_tui.tui.app import can_open_screen

    assert can_open_screen("setup", False)
    assert can_open_screen("config", False)
    assert not can_open_screen("devices", False)
    assert can_open_screen("devices", True)


def test_format_footer():
    """Footer shows readiness, runtime counters and the status text."""
    from xyte_tui.tui.app import format_footer

    idle = format_footer(
        readiness="ready",
        runtime=RefreshStatus(),
        queue_depth=0,
        dropped=0,
        transition="idle",
        status="Active screen: Devices",
    )
    assert idle == " @ ready | refresh=idle stale=0 in=0 drop=0 tx=idle | Active screen: Devices"

    busy = format_footer(
        readiness=None,
        runtime=RefreshStatus(state=RefreshState.ERROR, refresh_queued=True, stale_discarded=2, last_error="boom"),
        queue_depth=3,
        dropped=1,
        transition="switching",
        status="Switching to tickets...",
    )
    assert busy.startswith(" @ status=unknown | refresh=error+queued stale=2 in=3 drop=1 tx=switching")
    assert busy.endswith("| Switching to tickets... | err=boom")


def test_render_panel_kinds():
    """Every panel kind renders to something Rich can print."""
    from rich.console import Console

    from xyte_tui.tui.app import render_panel

    console = Console(width=60, record=True)
    console.print(render_panel(ScenePanel.stats_panel("s", "S", [("Devices", 4)])))
    console.print(render_panel(ScenePanel.table_panel("t", "T", ["ID"], [["dev-1"]]), selected_row=0))
    console.print(render_panel(ScenePanel.text_panel("x", "X", ["one", "two", "three"]), scroll=1))

    text = console.export_text()
    assert "Devices" in text and "4" in text
    assert "dev-1" in text
    assert "one" not in text and "three" in text


def test_quit_key_is_critical_unless_modal(session):
    """q quits from the main view; ctrl+c always does."""
    from xyte_tui.tui.app import XyteApp

    app = XyteApp(session, motion=False)

    assert app.is_critical(InputEvent.from_key("q", "q"))
    assert app.is_critical(InputEvent.from_key("ctrl+c"))
    app.help_active = True
    assert not app.is_critical(InputEvent.from_key("q", "q"))
    assert app.is_critical(InputEvent.from_key("ctrl+c"))


@pytest.mark.asyncio
async def test_mounts_initial_screen_and_quits(session):
    """The app mounts the requested screen once setup is ready; q ends the session."""
    from xyte_tui.tui.app import XyteApp

    app = XyteApp(session, initial_screen="devices", motion=False)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert app.active_id == "devices"
        assert app.active is not None and app.active.mounted

        await pilot.press("q")
        await pilot.pause(0.1)

    assert app.shutting_down
    assert not app.controllers["devices"].mounted


@pytest.mark.asyncio
async def test_redirects_to_setup_when_not_ready(session):
    """Operational screens fall back to setup without a usable key."""
    from xyte_tui.tui.app import XyteApp

    session.secrets = EnvSecretStore({})
    app = XyteApp(session, initial_screen="devices", motion=False)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert app.active_id == "setup"
        assert not app.controllers["devices"].mounted
    session.client.organization.get_devices.assert_not_awaited()


@pytest.mark.asyncio
async def test_error_storm_ends_session_and_releases_resources(session):
    """Repeated identical errors shut down through the single exit path."""
    from xyte_tui.tui.app import XyteApp

    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    app = XyteApp(session, initial_screen="devices", motion=True)
    async with app.run_test() as pilot:
        await pilot.pause(0.2)
        assert loop.get_exception_handler() == app._on_loop_exception
        timer = app.pulse_timer
        assert timer is not None
        timer.stop = MagicMock(wraps=timer.stop)
        app.input_controller._spawn(asyncio.sleep(60))
        in_flight = set(app.input_controller._tasks)
        assert in_flight

        for _ in range(app.error_guard.threshold):
            app.report_error("screen.runtime", "upstream returned 500")
        await asyncio.sleep(0)

        assert app.shutting_down
        assert loop.get_exception_handler() == previous_handler
        timer.stop.assert_called_once()
        assert app.pulse_timer is None
        assert all(task.cancelled() for task in in_flight)
        assert app.input_controller.get_state().queue_depth == 0
