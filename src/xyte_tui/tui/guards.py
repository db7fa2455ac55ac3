# src/xyte_tui/tui/guards.py

"""Escalation guards for repeated failures.

Both guards count identical failure messages inside a short sliding window:

- RenderFallbackGuard (per screen): after a few identical render failures the
  screen stops formatting payloads and shows raw values instead.
- ErrorStormGuard (per session): after more identical errors the session gives
  up, reports on stderr and shuts down instead of looping on error popups.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from xyte_tui.errors import error_text
from xyte_tui.logging import EventLog, diagnostic


@dataclass(frozen=True)
class RepeatWindow:
    """Count of one repeated message since ``started_at``."""

    message: str = ""
    count: int = 0
    started_at: float = 0.0

    def update(self, message: str, now: float, window: float = 2.0) -> RepeatWindow:
        """Count another occurrence; a new message or an expired window restarts at 1."""
        if message == self.message and now - self.started_at <= window:
            return RepeatWindow(message=message, count=self.count + 1, started_at=self.started_at)
        return RepeatWindow(message=message, count=1, started_at=now)


class RenderFallbackGuard:
    """Per-screen switch into raw fallback rendering.

    Args:
        threshold: Identical failures inside the window that trip fallback mode
        window: Window length in seconds
        clock: Monotonic clock (seconds)
    """

    def __init__(
        self,
        *,
        threshold: int = 3,
        window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.window = window
        self._clock = clock
        self._state = RepeatWindow()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        """True once fallback mode has tripped, until a successful refresh."""
        return self._frozen

    @property
    def state(self) -> RepeatWindow:
        return self._state

    def record_failure(self, message: str) -> RepeatWindow:
        self._state = self._state.update(message, self._clock(), self.window)
        if self._state.count >= self.threshold:
            self._frozen = True
        return self._state

    def record_success(self) -> None:
        """A clean render resets the failure count (fallback mode stays on)."""
        self._state = RepeatWindow()

    def reset(self) -> None:
        """A successful refresh leaves fallback mode."""
        self._state = RepeatWindow()
        self._frozen = False


class ErrorAction(Enum):
    """What ErrorStormGuard.report() did with an error."""

    STDERR = "stderr"  # Session already shutting down
    STORM = "storm"  # Threshold reached; shutdown requested
    MODAL = "modal"  # Shown in the error popup
    REENTRANT = "reentrant"  # Popup already up; written to stderr
    DISPLAY_FAILED = "display_failed"  # Popup could not be shown; shutdown requested


class ErrorStormGuard:
    """Session-wide error surface with storm detection.

    Args:
        shutdown: Requests session shutdown
        show_modal: Displays an error popup; may raise
        set_error_status: Marks the current screen's runtime as errored
        threshold: Identical errors inside the window that trigger shutdown
        window: Window length in seconds
        clock: Monotonic clock (seconds)
        write_stderr: Writes one ``source: text`` diagnostic line
        event_log: Debug event log
    """

    def __init__(
        self,
        *,
        shutdown: Callable[[], None],
        show_modal: Callable[[str], None],
        set_error_status: Callable[[str], None] | None = None,
        threshold: int = 5,
        window: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        write_stderr: Callable[[str, str], None] = diagnostic,
        event_log: EventLog | None = None,
    ):
        self._shutdown = shutdown
        self._show_modal = show_modal
        self._set_error_status = set_error_status
        self.threshold = threshold
        self.window = window
        self._clock = clock
        self._write_stderr = write_stderr
        self._event_log = event_log or EventLog(None)
        self._state = RepeatWindow()
        self._shutting_down = False
        self._modal_active = False

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def modal_active(self) -> bool:
        return self._modal_active

    @property
    def state(self) -> RepeatWindow:
        return self._state

    def begin_shutdown(self) -> None:
        """From now on errors only go to stderr."""
        self._shutting_down = True

    def modal_closed(self) -> None:
        self._modal_active = False

    def report(self, source: str, error: BaseException | str) -> ErrorAction:
        """Surface one error.

        Args:
            source: Where the error came from (e.g. "screen.runtime")
            error: The exception or message

        Returns:
            ErrorAction describing how the error was surfaced
        """
        text = error if isinstance(error, str) else error_text(error)
        self._event_log.log("ui.error.safe", {"source": source, "message": text})

        if self._shutting_down:
            self._write_stderr(source, text)
            return ErrorAction.STDERR

        self._state = self._state.update(text, self._clock(), self.window)
        if self._state.count >= self.threshold:
            self._event_log.log("ui.error.storm", {"source": source, "message": text, "count": self._state.count})
            self._write_stderr(
                source, f"error storm detected ({self._state.count} in {self.window:g}s): {text}"
            )
            self._request_shutdown()
            return ErrorAction.STORM

        if self._set_error_status is not None:
            self._set_error_status(text)

        if self._modal_active:
            self._event_log.log("ui.error.reentrant", {"source": source, "message": text})
            self._write_stderr(source, text)
            return ErrorAction.REENTRANT

        self._modal_active = True
        try:
            self._show_modal(text)
        except Exception as e:
            self._modal_active = False
            self._event_log.log("ui.error.display.failure", {"source": source, "original": text, "error": e})
            self._write_stderr(source, f"failed to display error: {error_text(e)} (original: {text})")
            self._request_shutdown()
            return ErrorAction.DISPLAY_FAILED
        return ErrorAction.MODAL

    def _request_shutdown(self) -> None:
        self._shutting_down = True
        self._shutdown()
