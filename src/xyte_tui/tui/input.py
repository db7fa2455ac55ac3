# src/xyte_tui/tui/input.py

"""Bounded, ordered keyboard input queue.

Key events arrive faster than screens can handle them (holding an arrow key
while a table reloads). InputController keeps one bounded FIFO per session and
one drain task that awaits each handler before starting the next, so handlers
never overlap. When the queue is full the oldest pending event is dropped.

Critical keys (quit) skip the queue entirely so the user can always leave,
even while a slow handler is running.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

DEFAULT_MAX_QUEUE_SIZE = 48


@dataclass(frozen=True)
class KeyInfo:
    """Normalized key: bare name plus modifiers.

    ``full`` is the complete key string including modifiers, e.g. "ctrl+c".
    """

    name: str
    full: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False


@dataclass(frozen=True)
class InputEvent:
    """One keystroke as seen by the input pipeline."""

    key: KeyInfo
    character: str | None = None
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def from_key(cls, key: str, character: str | None = None) -> InputEvent:
        """Build an event from a terminal key string such as "ctrl+shift+left"."""
        parts = key.split("+")
        modifiers = set(parts[:-1])
        return cls(
            key=KeyInfo(
                name=parts[-1],
                full=key,
                ctrl="ctrl" in modifiers,
                meta="meta" in modifiers or "alt" in modifiers,
                shift="shift" in modifiers,
            ),
            character=character,
        )


@dataclass(frozen=True)
class InputDispatchResult:
    accepted: bool
    bypassed: bool
    queue_depth: int
    dropped_events: int


@dataclass(frozen=True)
class InputControllerState:
    queue_depth: int
    dropped_events: int
    in_flight: bool


def default_is_critical(event: InputEvent) -> bool:
    """Quit keys: "q" or ctrl+c."""
    return event.character == "q" or event.key.name == "q" or event.key.full == "ctrl+c"


class InputController:
    """Serializes key handling through a bounded FIFO.

    Args:
        handle: Async handler awaited once per event
        is_critical: Predicate for events that bypass the queue
        max_queue_size: Pending events kept before the oldest is dropped (min 1)
        on_error: Receives exceptions raised by the handler

    Example:
        controller = InputController(handle=app.handle_key, max_queue_size=64)
        controller.dispatch(InputEvent.from_key("down"))
    """

    def __init__(
        self,
        handle: Callable[[InputEvent], Awaitable[None]],
        *,
        is_critical: Callable[[InputEvent], bool] = default_is_critical,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        on_error: Callable[[BaseException], None] | None = None,
    ):
        self._handle = handle
        self._is_critical = is_critical
        self._max_queue_size = max(1, max_queue_size)
        self._on_error = on_error
        self._queue: deque[InputEvent] = deque()
        self._in_flight = False
        self._dropped = 0
        self._tasks: set[asyncio.Task] = set()

    def get_state(self) -> InputControllerState:
        return InputControllerState(
            queue_depth=len(self._queue),
            dropped_events=self._dropped,
            in_flight=self._in_flight,
        )

    def dispatch(self, event: InputEvent) -> InputDispatchResult:
        """Accept one event; never blocks.

        Must be called from within a running event loop.
        """
        if self._is_critical(event):
            self._spawn(self._run_critical(event))
            return InputDispatchResult(
                accepted=True,
                bypassed=True,
                queue_depth=len(self._queue),
                dropped_events=self._dropped,
            )

        if len(self._queue) >= self._max_queue_size:
            self._queue.popleft()
            self._dropped += 1
        self._queue.append(event)

        if not self._in_flight:
            # Claimed before the task runs so a burst of dispatches starts one drain
            self._in_flight = True
            self._spawn(self._drain())

        return InputDispatchResult(
            accepted=True,
            bypassed=False,
            queue_depth=len(self._queue),
            dropped_events=self._dropped,
        )

    def clear(self) -> None:
        """Drop all pending events. The event being handled finishes normally."""
        self._queue.clear()

    def cancel(self) -> None:
        """Clear the queue and cancel the drain and any critical handlers."""
        self.clear()
        for task in list(self._tasks):
            task.cancel()

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _report(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)

    async def _run_critical(self, event: InputEvent) -> None:
        try:
            await self._handle(event)
        except Exception as e:
            self._report(e)

    async def _drain(self) -> None:
        try:
            while self._queue:
                event = self._queue.popleft()
                try:
                    await self._handle(event)
                except Exception as e:
                    self._report(e)
        finally:
            self._in_flight = False
