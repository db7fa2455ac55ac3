"""Tests for the render fallback and error storm guards."""

from unittest.mock import MagicMock

from xyte_tui.tui.guards import ErrorAction, ErrorStormGuard, RenderFallbackGuard, RepeatWindow


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_storm_guard(clock: FakeClock, **kwargs) -> tuple[ErrorStormGuard, MagicMock, MagicMock, MagicMock]:
    shutdown = MagicMock()
    show_modal = MagicMock()
    stderr = MagicMock()
    guard = ErrorStormGuard(
        shutdown=shutdown,
        show_modal=show_modal,
        clock=clock,
        write_stderr=stderr,
        **kwargs,
    )
    return guard, shutdown, show_modal, stderr


class TestRepeatWindow:
    def test_same_message_inside_window_counts_up(self) -> None:
        state = RepeatWindow().update("boom", 0.0).update("boom", 1.0)
        assert state.count == 2

    def test_different_message_restarts(self) -> None:
        state = RepeatWindow().update("boom", 0.0).update("other", 0.5)
        assert state.count == 1
        assert state.message == "other"

    def test_gap_over_window_restarts(self) -> None:
        state = RepeatWindow().update("boom", 0.0).update("boom", 2.5)
        assert state.count == 1
        assert state.started_at == 2.5


class TestRenderFallbackGuard:
    def test_three_identical_failures_trip(self) -> None:
        clock = FakeClock()
        guard = RenderFallbackGuard(clock=clock)
        for _ in range(2):
            guard.record_failure("bad payload")
            clock.now += 0.5
        assert not guard.frozen
        guard.record_failure("bad payload")
        assert guard.frozen

    def test_different_message_resets_count(self) -> None:
        clock = FakeClock()
        guard = RenderFallbackGuard(clock=clock)
        guard.record_failure("a")
        guard.record_failure("a")
        state = guard.record_failure("b")
        assert state.count == 1
        assert not guard.frozen

    def test_gap_resets_count(self) -> None:
        clock = FakeClock()
        guard = RenderFallbackGuard(clock=clock)
        guard.record_failure("a")
        guard.record_failure("a")
        clock.now += 2.1
        assert guard.record_failure("a").count == 1
        assert not guard.frozen

    def test_reset_leaves_fallback(self) -> None:
        guard = RenderFallbackGuard(threshold=1)
        guard.record_failure("a")
        assert guard.frozen
        guard.record_success()
        assert guard.frozen
        guard.reset()
        assert not guard.frozen
        assert guard.state.count == 0


class TestErrorStormGuard:
    def test_five_identical_errors_shut_down(self) -> None:
        clock = FakeClock()
        guard, shutdown, show_modal, stderr = make_storm_guard(clock)

        actions = []
        for _ in range(5):
            actions.append(guard.report("screen.runtime", "boom"))
            guard.modal_closed()
            clock.now += 0.1

        assert actions[-1] is ErrorAction.STORM
        shutdown.assert_called_once()
        assert guard.shutting_down
        assert "error storm detected" in stderr.call_args.args[1]

    def test_four_identical_errors_do_not(self) -> None:
        clock = FakeClock()
        guard, shutdown, show_modal, _ = make_storm_guard(clock)

        for _ in range(4):
            assert guard.report("screen.runtime", RuntimeError("boom")) is ErrorAction.MODAL
            guard.modal_closed()

        shutdown.assert_not_called()
        assert show_modal.call_count == 4

    def test_reentrant_error_goes_to_stderr(self) -> None:
        guard, _, show_modal, stderr = make_storm_guard(FakeClock())

        assert guard.report("a", "first") is ErrorAction.MODAL
        assert guard.report("b", "second") is ErrorAction.REENTRANT

        show_modal.assert_called_once_with("first")
        stderr.assert_called_once_with("b", "second")

    def test_after_shutdown_only_stderr(self) -> None:
        guard, shutdown, show_modal, stderr = make_storm_guard(FakeClock())
        guard.begin_shutdown()

        assert guard.report("late", "oops") is ErrorAction.STDERR
        show_modal.assert_not_called()
        shutdown.assert_not_called()
        stderr.assert_called_once_with("late", "oops")

    def test_modal_failure_requests_shutdown(self) -> None:
        guard, shutdown, show_modal, stderr = make_storm_guard(FakeClock())
        show_modal.side_effect = RuntimeError("no screen")

        assert guard.report("x", "boom") is ErrorAction.DISPLAY_FAILED
        shutdown.assert_called_once()
        assert not guard.modal_active
        assert "failed to display error" in stderr.call_args.args[1]

    def test_error_status_set_before_modal(self) -> None:
        set_status = MagicMock()
        guard, _, _, _ = make_storm_guard(FakeClock(), set_error_status=set_status)

        guard.report("screen.runtime", "boom")

        set_status.assert_called_once_with("boom")
