"""Logo, startup frames and the activity pulse."""

from __future__ import annotations

import os
from dataclasses import dataclass

LOGO_LINES = (
    "██   ██ ██    ██ ████████ ███████",
    " ██ ██   ██  ██     ██    ██     ",
    "  ███     ████      ██    █████  ",
    " ██ ██     ██       ██    ██     ",
    "██   ██    ██       ██    ███████",
)

LOGO_COMPACT = "XYTE"

BOOT_STATUS = (
    "Booting terminal shell...",
    "Loading tenant profile...",
    "Hydrating XYTE panels...",
)

STARTUP_TITLE = "XYTE SDK TUI"

PULSE_CHARS = (".", "o", "O", "@", "O", "o")

REDUCED_MOTION_ENV = "XYTE_TUI_REDUCED_MOTION"


@dataclass(frozen=True)
class StartupFrame:
    banner: str
    status: str
    title: str = STARTUP_TITLE


def logo_text() -> str:
    return "\n".join(LOGO_LINES)


def logo_reveal_frames() -> list[str]:
    """The logo revealed one line at a time."""
    return ["\n".join(LOGO_LINES[:i]) for i in range(1, len(LOGO_LINES) + 1)]


def startup_frames() -> list[StartupFrame]:
    reveal = logo_reveal_frames()
    count = max(len(reveal), len(BOOT_STATUS))
    return [
        StartupFrame(
            banner=reveal[min(i, len(reveal) - 1)],
            status=BOOT_STATUS[min(i, len(BOOT_STATUS) - 1)],
        )
        for i in range(count)
    ]


def pulse_char(phase: int) -> str:
    return PULSE_CHARS[abs(phase) % len(PULSE_CHARS)]


def is_motion_enabled(*, headless: bool = False, explicit: bool | None = None) -> bool:
    """Whether to animate.

    XYTE_TUI_REDUCED_MOTION=1 always wins; then an explicit flag; headless
    runs default to no motion.
    """
    if os.environ.get(REDUCED_MOTION_ENV) == "1":
        return False
    if explicit is not None:
        return explicit
    return not headless
