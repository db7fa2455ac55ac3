"""Console messages, the application log and the session debug log.

Three channels, kept apart:
- Rich console helpers (info, warn, error, one function per message) for
  CLI commands, plus diagnostic() on stderr for errors the TUI cannot show
- configure(): structlog JSON Lines to a rotating file under the state dir
- EventLog: opt-in per-session debug log with a seq/timestamp/pid envelope,
  enabled by --debug, --debug-log or XYTE_TUI_DEBUG
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from rich.console import Console

if TYPE_CHECKING:
    from xyte_tui.config import Config

# Rich console for colorful human-readable output
_console = Console(highlight=False)

# Plain stderr channel for diagnostics that must survive a broken TUI
_stderr_console = Console(stderr=True, highlight=False, soft_wrap=True)


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    KEY = "🔑"
    SAVE = "💾"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}")


def info(msg: str, icon: str = "") -> None:
    """Log an info message."""
    log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


def diagnostic(source: str, text: str) -> None:
    """Write a one-line ``[xyte-tui] source: text`` diagnostic to stderr.

    Used when the TUI itself can no longer show errors (shutting down,
    error storm, modal failure). Markup is disabled so payload text prints
    verbatim.
    """
    _stderr_console.print(f"[xyte-tui] {source}: {text}", markup=False)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def config_reset(path: str) -> None:
    """Log config file reset to defaults."""
    info(f"Config reset to defaults at [cyan]{path}[/]", Icon.OK)


def tenant_added(tenant_id: str) -> None:
    """Log tenant profile created or updated."""
    info(f"Tenant [cyan]{tenant_id}[/] saved", Icon.SAVE)


def tenant_selected(tenant_id: str) -> None:
    """Log active tenant switched."""
    info(f"Active tenant is now [cyan]{tenant_id}[/]", Icon.OK)


def slot_added(tenant_id: str, provider: str, slot_id: str, env_var: str) -> None:
    """Log key slot registered and where its secret is read from."""
    info(
        f"Slot [cyan]{provider}/{slot_id}[/] added to [cyan]{tenant_id}[/] "
        f"[dim](secret read from ${env_var})[/]",
        Icon.KEY,
    )


def no_tenants() -> None:
    """Log empty profile store."""
    warn("No tenants configured. Run [bold]xyte-tui tenant add[/]")


def headless_stopped(frames: int) -> None:
    """Log headless stream finished.

    Goes to stderr: stdout carries only NDJSON frames in headless mode.
    """
    _stderr_console.print(f"[dim]Headless stream stopped after {frames} frames[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config) -> None:
    """Configure structlog to write JSON Lines to the rotating application log.

    Console output stays with the Rich helpers above; the TUI owns the
    terminal, so nothing structured is written to stdout or stderr.

    Args:
        config: Application config with paths and rotation settings
    """
    config.state_dir.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        config.log_path,
        maxBytes=config.logging.log_max_bytes,
        backupCount=config.logging.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.INFO)

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.INFO)
    stdlib_root.handlers.clear()

    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
                structlog.processors.add_log_level,
                _add_source("tui"),
                structlog.processors.format_exc_info,
            ],
        )
    )
    stdlib_root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_structlog() -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Returns a logger for structured JSON file output. For human-readable
    console output, use the log/info/warn/error functions instead.
    """
    return structlog.get_logger()


# ─────────────────────────────────────────────────────────────────────────────
# Debug Event Log
# ─────────────────────────────────────────────────────────────────────────────

DEBUG_ENV = "XYTE_TUI_DEBUG"
DEBUG_LOG_ENV = "XYTE_TUI_DEBUG_LOG"


def default_debug_log_path() -> Path:
    """Default location of the session debug log."""
    return Path.home() / ".xyte" / "logs" / "tui-debug.log"


def _serializable(value: Any) -> Any:
    """JSON fallback: exceptions become {name, message, stack}, the rest str()."""
    if isinstance(value, BaseException):
        return {
            "name": type(value).__name__,
            "message": str(value),
            "stack": "".join(traceback.format_exception(value)),
        }
    if isinstance(value, Path):
        return str(value)
    return repr(value)


class EventLog:
    """Append-only JSON Lines log of session events.

    Each line is ``{seq, timestamp, pid, event, data}``. Writing is best
    effort: a failure to serialize or write an event is ignored so the
    session never fails because of its own diagnostics.

    A disabled EventLog accepts every call and writes nothing.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self.enabled = path is not None
        self._seq = 0
        self._file: TextIO | None = None
        self._logger: Any = None
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(path, "a", encoding="utf-8")
        except OSError:
            self.enabled = False
            self.path = None
            return
        self._logger = structlog.wrap_logger(
            structlog.PrintLogger(self._file),
            processors=[
                self._add_envelope,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
                self._order_fields,
                structlog.processors.JSONRenderer(default=_serializable),
            ],
        )
        self.log("logger.started", {"path": str(path)})

    def _add_envelope(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        self._seq += 1
        event_dict["seq"] = self._seq
        event_dict["pid"] = os.getpid()
        return event_dict

    @staticmethod
    def _order_fields(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        return {
            "seq": event_dict["seq"],
            "timestamp": event_dict["timestamp"],
            "pid": event_dict["pid"],
            "event": event_dict["event"],
            "data": event_dict.get("data"),
        }

    def log(self, event: str, data: dict[str, Any] | None = None) -> None:
        """Record one event; never raises."""
        if not self.enabled or self._logger is None:
            return
        try:
            self._logger.info(event, data=data)
        except Exception:
            # Best-effort: diagnostics must not break the session
            pass

    def close(self) -> None:
        """Close the underlying file. Safe to call more than once."""
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                pass
            self._file = None
        self.enabled = False
        self._logger = None


def create_event_log(enabled: bool = False, path: str | Path | None = None) -> EventLog:
    """Build the session debug log from flags and environment.

    The log is enabled when ``enabled`` is set, a path is given,
    XYTE_TUI_DEBUG=1, or XYTE_TUI_DEBUG_LOG names a file.

    Args:
        enabled: --debug flag
        path: --debug-log path (wins over XYTE_TUI_DEBUG_LOG)

    Returns:
        EventLog, disabled when none of the switches are present
    """
    env_path = os.environ.get(DEBUG_LOG_ENV)
    resolved = path or env_path
    if not (enabled or resolved or os.environ.get(DEBUG_ENV) == "1"):
        return EventLog(None)
    return EventLog(Path(resolved).expanduser() if resolved else default_debug_log_path())
