# src/xyte_tui/tui/runtime.py

"""Refresh coordination for one mounted screen.

ScreenRuntime guarantees at most one refresh of a screen runs at a time.
Requests that arrive while one is running collapse into a single follow-up
run. Results of runs that were overtaken (the screen was unmounted, or a newer
run started) are counted and discarded instead of being applied.

Staleness is tracked with two integer tokens: a mount token, bumped on every
unmount, and a refresh token, bumped on every run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from xyte_tui.errors import error_text


class RefreshReason(Enum):
    MOUNT = "mount"
    MANUAL = "manual"
    BACKGROUND = "background"
    READINESS = "readiness"


class RefreshState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    RETRYING = "retrying"
    ERROR = "error"


@dataclass(frozen=True)
class RefreshStatus:
    """Snapshot of a runtime, emitted on every state change."""

    state: RefreshState = RefreshState.IDLE
    refresh_in_flight: bool = False
    refresh_queued: bool = False
    stale_discarded: int = 0
    last_error: str | None = None
    reason: RefreshReason | None = None


class ScreenRuntime:
    """Serializes and de-duplicates refreshes of one screen.

    Args:
        refresh: Coroutine factory performing the screen's refresh
        on_status: Called with a RefreshStatus after every state change
        on_error: Called with the exception of a failed, still-current run
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[None]],
        *,
        on_status: Callable[[RefreshStatus], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ):
        self._refresh = refresh
        self._on_status = on_status
        self._on_error = on_error
        self._mount_token = 0
        self._refresh_token = 0
        self._in_flight = False
        self._queued = False
        self._stale_discarded = 0
        self._last_error: str | None = None
        self._state = RefreshState.IDLE
        self._reason: RefreshReason | None = None
        self._tasks: set[asyncio.Task] = set()

    def get_status(self) -> RefreshStatus:
        return RefreshStatus(
            state=self._state,
            refresh_in_flight=self._in_flight,
            refresh_queued=self._queued,
            stale_discarded=self._stale_discarded,
            last_error=self._last_error,
            reason=self._reason,
        )

    def set_mount_token(self, token: int) -> None:
        self._mount_token = token

    def cancel_pending_for_unmount(self) -> None:
        """Invalidate every in-flight run; their results will be discarded."""
        self._mount_token += 1
        self._refresh_token += 1
        self._in_flight = False
        self._queued = False
        self._state = RefreshState.IDLE
        self._reason = None
        self._emit()

    def run_refresh(self, reason: RefreshReason) -> None:
        """Request a refresh; returns immediately.

        If a refresh is already running the request is queued; any number of
        queued requests produce one follow-up run.
        """
        self._reason = reason
        if self._in_flight:
            self._queued = True
            self._state = RefreshState.RETRYING
            self._emit()
            return
        self._start(self._mount_token)

    async def wait_idle(self) -> None:
        """Wait until no refresh task is running (including follow-ups)."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _start(self, expected_mount: int) -> None:
        # Runs synchronously so a second run_refresh in the same tick sees in-flight
        self._in_flight = True
        self._queued = False
        self._state = RefreshState.LOADING
        self._emit()
        self._refresh_token += 1
        task = asyncio.ensure_future(self._run(expected_mount, self._refresh_token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, expected_mount: int, token: int) -> bool:
        return expected_mount == self._mount_token and token == self._refresh_token

    async def _run(self, expected_mount: int, token: int) -> None:
        failure: Exception | None = None
        try:
            await self._refresh()
        except asyncio.CancelledError:
            if self._is_current(expected_mount, token):
                self._in_flight = False
            raise
        except Exception as e:
            failure = e

        if not self._is_current(expected_mount, token):
            self._stale_discarded += 1
            self._emit()
            return

        if failure is None:
            self._last_error = None
            self._state = RefreshState.IDLE
        else:
            self._last_error = error_text(failure)
            self._state = RefreshState.ERROR
            if self._on_error is not None:
                self._on_error(failure)
        self._emit()

        self._in_flight = False
        if self._queued:
            self._queued = False
            self._state = RefreshState.RETRYING
            self._emit()
            self._start(expected_mount)
            return
        self._emit()

    def _emit(self) -> None:
        if self._on_status is not None:
            self._on_status(self.get_status())
