"""Tests for ScreenRuntime refresh coalescing and stale discard."""

import asyncio

import pytest

from xyte_tui.tui.runtime import RefreshReason, RefreshState, RefreshStatus, ScreenRuntime


class TestScreenRuntime:
    @pytest.mark.asyncio
    async def test_refreshes_during_flight_coalesce(self) -> None:
        """Any number of requests during a flight produce at most 2 executions."""
        release = asyncio.Event()
        runs = 0

        async def refresh() -> None:
            nonlocal runs
            runs += 1
            await release.wait()

        runtime = ScreenRuntime(refresh)
        runtime.run_refresh(RefreshReason.MOUNT)
        for _ in range(10):
            runtime.run_refresh(RefreshReason.MANUAL)
        assert runtime.get_status().refresh_queued

        release.set()
        await runtime.wait_idle()

        assert runs == 2
        status = runtime.get_status()
        assert status.state is RefreshState.IDLE
        assert not status.refresh_in_flight
        assert not status.refresh_queued

    @pytest.mark.asyncio
    async def test_single_request_runs_once(self) -> None:
        runs = 0

        async def refresh() -> None:
            nonlocal runs
            runs += 1

        runtime = ScreenRuntime(refresh)
        runtime.run_refresh(RefreshReason.MOUNT)
        await runtime.wait_idle()

        assert runs == 1

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_reports(self) -> None:
        errors: list[BaseException] = []

        async def refresh() -> None:
            raise RuntimeError("load failed")

        runtime = ScreenRuntime(refresh, on_error=errors.append)
        runtime.run_refresh(RefreshReason.MANUAL)
        await runtime.wait_idle()

        status = runtime.get_status()
        assert status.state is RefreshState.ERROR
        assert status.last_error == "load failed"
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self) -> None:
        fail = True

        async def refresh() -> None:
            if fail:
                raise RuntimeError("load failed")

        runtime = ScreenRuntime(refresh)
        runtime.run_refresh(RefreshReason.MANUAL)
        await runtime.wait_idle()
        fail = False
        runtime.run_refresh(RefreshReason.MANUAL)
        await runtime.wait_idle()

        assert runtime.get_status().last_error is None
        assert runtime.get_status().state is RefreshState.IDLE

    @pytest.mark.asyncio
    async def test_unmount_discards_in_flight_result(self) -> None:
        release = asyncio.Event()
        errors: list[BaseException] = []

        async def refresh() -> None:
            await release.wait()
            raise RuntimeError("late failure")

        runtime = ScreenRuntime(refresh, on_error=errors.append)
        runtime.set_mount_token(1)
        runtime.run_refresh(RefreshReason.MOUNT)
        await asyncio.sleep(0)
        runtime.cancel_pending_for_unmount()

        release.set()
        await runtime.wait_idle()

        status = runtime.get_status()
        assert status.stale_discarded == 1
        assert status.last_error is None
        assert errors == []

    @pytest.mark.asyncio
    async def test_status_callback_sees_loading_then_idle(self) -> None:
        seen: list[RefreshStatus] = []

        async def refresh() -> None:
            await asyncio.sleep(0)

        runtime = ScreenRuntime(refresh, on_status=seen.append)
        runtime.run_refresh(RefreshReason.MOUNT)
        await runtime.wait_idle()

        assert seen[0].state is RefreshState.LOADING
        assert seen[0].reason is RefreshReason.MOUNT
        assert seen[-1].state is RefreshState.IDLE
