"""Tests for headless NDJSON frames."""

import io
import json
from datetime import datetime, timezone

import pytest

from tests.conftest import make_device, make_space
from xyte_tui.connectivity import ConnectionState
from xyte_tui.errors import HttpError
from xyte_tui.profiles import EnvSecretStore
from xyte_tui.tui.headless import (
    SCHEMA_VERSION,
    HeadlessRenderer,
    create_headless_frame,
    get_refresh_state,
    render_frame_as_text,
    with_navigation_meta,
)
from xyte_tui.tui.scene import ScenePanel

FIXED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_renderer(session, **kwargs) -> tuple[HeadlessRenderer, io.StringIO]:
    output = io.StringIO()
    renderer = HeadlessRenderer(session, output=output, clock=lambda: FIXED, session_id="sess-1", **kwargs)
    return renderer, output


def frames(output: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in output.getvalue().splitlines()]


class TestFrameShape:
    def test_camel_case_keys_and_timestamp(self) -> None:
        frame = create_headless_frame(
            session_id="s",
            sequence=3,
            screen="devices",
            title="Devices",
            status="ok",
            motion_enabled=False,
            motion_phase=0,
            logo="XYTE",
            panels=[ScenePanel.text_panel("p", "P", ["x"])],
            clock=lambda: FIXED,
        )

        data = frame.to_dict()
        assert data["schemaVersion"] == SCHEMA_VERSION
        assert data["timestamp"] == "2024-05-01T12:00:00.000Z"
        assert data["sessionId"] == "s"
        assert "tenantId" not in data
        assert data["meta"]["contract"]["tableFormat"] == "compact-v1"
        assert data["meta"]["refreshState"] == "idle"

    def test_navigation_meta_drops_none(self) -> None:
        meta = with_navigation_meta("spaces", redirectedFrom=None, readiness="ready")

        assert meta["activePane"] == "spaces-table"
        assert meta["availablePanes"] == ["spaces-table", "detail-box", "devices-table"]
        assert meta["tabNavBoundary"] is None
        assert "redirectedFrom" not in meta
        assert meta["readiness"] == "ready"

    @pytest.mark.parametrize(
        "state,retried,expected",
        [
            (ConnectionState.CONNECTED, False, "idle"),
            (ConnectionState.NOT_CHECKED, True, "idle"),
            (ConnectionState.NETWORK_ERROR, True, "retrying"),
            (ConnectionState.AUTH_REQUIRED, False, "error"),
        ],
    )
    def test_refresh_state(self, state, retried, expected) -> None:
        assert get_refresh_state(state, retried) == expected

    def test_text_rendering(self) -> None:
        frame = create_headless_frame(
            session_id="s",
            sequence=0,
            screen="devices",
            title="Devices",
            status="Devices snapshot",
            motion_enabled=True,
            motion_phase=2,
            logo="XYTE",
            panels=[ScenePanel.table_panel("t", "Devices", ["ID", "Name"], [["d1", "Lobby"]], status="filter=none")],
            tenant_id="acme",
        )

        text = render_frame_as_text(json.loads(frame.to_json()))

        assert "Session: s #0" in text
        assert "Tenant: acme" in text
        assert "Motion: on (phase=2)" in text
        assert "== Devices ==\n[filter=none]\nID | Name" in text
        assert "d1 | Lobby" in text


class TestHeadlessRenderer:
    @pytest.mark.asyncio
    async def test_once_writes_startup_then_snapshot(self, session, client) -> None:
        client.organization.get_devices.return_value = {"devices": [make_device()]}
        renderer, output = make_renderer(session, screen="devices")

        written = await renderer.run()

        lines = frames(output)
        assert written == 6
        assert [f["sequence"] for f in lines] == list(range(6))
        assert all(f["meta"]["startup"] for f in lines[:5])
        assert all(f["screen"] == "setup" for f in lines[:5])

        last = lines[-1]
        assert last["screen"] == "devices"
        assert last["tenantId"] == "acme"
        assert last["status"] == "Devices snapshot"
        assert last["meta"]["readiness"] == "ready"
        assert last["meta"]["connection"] == {"state": "connected"}
        assert [p["id"] for p in last["panels"]] == ["devices-table", "devices-detail"]

    @pytest.mark.asyncio
    async def test_follow_sequence_is_consecutive(self, session) -> None:
        waits = []

        async def sleep(seconds: float) -> None:
            waits.append(seconds)
            if len(waits) == 3:
                renderer.stop()

        renderer, output = make_renderer(session, screen="dashboard", follow=True, sleep=sleep)
        written = await renderer.run()

        lines = frames(output)
        assert written == len(lines) == 8
        assert [f["sequence"] for f in lines] == list(range(8))
        assert [f["motionPhase"] for f in lines[5:]] == [0, 1, 2]
        assert waits == [renderer.interval_ms / 1000] * 3

    @pytest.mark.asyncio
    async def test_not_ready_redirects_to_setup(self, session, profiles) -> None:
        session.secrets = EnvSecretStore({})
        renderer, output = make_renderer(session, screen="tickets")

        await renderer.run()

        last = frames(output)[-1]
        assert last["screen"] == "setup"
        assert last["status"] == "Setup required"
        assert last["meta"]["blocking"] is True
        assert last["meta"]["redirectedFrom"] == "tickets"

    @pytest.mark.asyncio
    async def test_config_screen_never_redirected(self, session) -> None:
        session.secrets = EnvSecretStore({})
        renderer, output = make_renderer(session, screen="config")

        await renderer.run()

        last = frames(output)[-1]
        assert last["screen"] == "config"
        assert last["meta"]["blocking"] is False

    @pytest.mark.asyncio
    async def test_spaces_snapshot_includes_drilldown(self, session, client) -> None:
        client.organization.get_spaces.return_value = {"spaces": [make_space(1)]}
        client.organization.get_devices.return_value = {"devices": [make_device(space_id="space-1")]}
        renderer, output = make_renderer(session, screen="spaces")

        await renderer.run()

        last = frames(output)[-1]
        assert set(last["meta"]["retry"]) == {"spaces", "drilldown"}
        devices_panel = last["panels"][2]
        assert devices_panel["id"] == "spaces-devices"
        assert len(devices_panel["table"]["rows"]) == 1

    @pytest.mark.asyncio
    async def test_follow_emits_reconnect_when_probe_retriable(self, session, client) -> None:
        client.organization.get_organization_info.side_effect = HttpError("busy", status=503)
        client.partner.get_devices.side_effect = HttpError("busy", status=503)

        async def sleep(seconds: float) -> None:
            renderer.stop()

        renderer, output = make_renderer(session, screen="setup", follow=True, sleep=sleep)
        await renderer.run()

        lines = frames(output)
        assert [f["title"] for f in lines[5:]] == ["Setup", "Reconnect"]
        assert lines[-1]["meta"]["refreshState"] == "retrying"

    @pytest.mark.asyncio
    async def test_broken_pipe_stops_output(self, session, client) -> None:
        class ClosedPipe(io.StringIO):
            def write(self, s: str) -> int:
                raise BrokenPipeError

        renderer = HeadlessRenderer(session, output=ClosedPipe(), follow=True)

        await renderer.run()

        client.organization.get_organization_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_written_count_stops_at_broken_pipe(self, session) -> None:
        """Frames built after the reader went away are not counted."""

        class ClosingPipe(io.StringIO):
            def write(self, s: str) -> int:
                if self.getvalue().count("\n") >= 3:
                    raise BrokenPipeError
                return super().write(s)

        output = ClosingPipe()
        renderer = HeadlessRenderer(session, output=output, follow=True)

        written = await renderer.run()

        assert written == 3
        assert renderer.frames_written == 3
        assert len(frames(output)) == 3
