# src/xyte_tui/tui/navigation.py

"""Tabs, panes and the key help text.

Each screen is split into panes; ctrl/shift + left/right moves pane focus and
plain left/right switches tabs. Moving past the first or last pane reports a
boundary so the dispatcher can hand the key to tab switching.
"""

from __future__ import annotations

from dataclasses import dataclass

TAB_ORDER = ("setup", "config", "dashboard", "spaces", "devices", "incidents", "tickets")

SCREEN_TITLES = {
    "setup": "Setup",
    "config": "Config",
    "dashboard": "Dashboard",
    "spaces": "Spaces",
    "devices": "Devices",
    "incidents": "Incidents",
    "tickets": "Tickets",
}


@dataclass(frozen=True)
class PaneConfig:
    panes: tuple[str, ...]

    @property
    def default_pane(self) -> str:
        return self.panes[0]


SCREEN_PANE_CONFIG = {
    "setup": PaneConfig(("providers-table", "checklist-box")),
    "config": PaneConfig(("providers-table", "slots-table", "actions-box")),
    "dashboard": PaneConfig(("kpi", "provider", "incidents", "tickets")),
    "spaces": PaneConfig(("spaces-table", "detail-box", "devices-table")),
    "devices": PaneConfig(("devices-table", "detail-box")),
    "incidents": PaneConfig(("incidents-table", "detail-box", "triage-box")),
    "tickets": PaneConfig(("tickets-table", "detail-box", "draft-box")),
}

GLOBAL_KEYMAP = (
    ("←/→", "Switch tabs"),
    ("Ctrl+←/→ (or Shift+←/→)", "Move pane focus; at pane edge, switch tab"),
    ("↑/↓", "Move selection or scroll in active pane"),
    ("Enter", "Primary action in active pane (screen-dependent)"),
    ("u", "Setup"),
    ("g", "Config"),
    ("d", "Dashboard"),
    ("s", "Spaces"),
    ("v", "Devices"),
    ("i", "Incidents"),
    ("t", "Tickets"),
    ("r", "Refresh current screen"),
    ("/", "Search or filter in current screen"),
    ("?", "Show key help"),
    ("q", "Quit TUI"),
)

SCREEN_ACTION_KEYMAP = (
    ("Setup: a/u", "Add a tenant, set the active tenant"),
    ("Setup: c/r", "Connectivity check and readiness refresh"),
    ("Config: p/c/r", "Cycle provider filter, run doctor, refresh"),
    ("Spaces: Enter", "Load selected space details and devices asynchronously"),
    ("Devices: Enter", "Open selected device details"),
    ("Tickets: R", "Mark selected ticket as resolved (with confirmation)"),
    ("Incidents: /", "Filter incidents by severity"),
)

GLOBAL_SCREEN_KEYS = {
    "u": "setup",
    "g": "config",
    "d": "dashboard",
    "s": "spaces",
    "v": "devices",
    "i": "incidents",
    "t": "tickets",
}


def next_tab(current: str, direction: str) -> str:
    """Tab to the left or right of ``current``, wrapping around."""
    index = TAB_ORDER.index(current) if current in TAB_ORDER else 0
    delta = -1 if direction == "left" else 1
    return TAB_ORDER[(index + delta) % len(TAB_ORDER)]


def move_pane_with_boundary(panes: tuple[str, ...], active: str, direction: str) -> tuple[str, bool]:
    """Move pane focus one step.

    Returns:
        (pane, boundary); boundary is True when there is no pane in that
        direction, in which case pane is the edge pane
    """
    if not panes:
        return active, True
    current = panes.index(active) if active in panes else 0
    if direction == "left":
        if current <= 0:
            return panes[0], True
        return panes[current - 1], False
    if current >= len(panes) - 1:
        return panes[-1], True
    return panes[current + 1], False


def clamp_index(index: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(index, total - 1))


def help_lines() -> list[str]:
    """Key help shown by "?"."""
    lines = ["Global keys:"]
    lines += [f"  {keys:<26} {description}" for keys, description in GLOBAL_KEYMAP]
    lines += ["", "Screen actions:"]
    lines += [f"  {keys:<26} {description}" for keys, description in SCREEN_ACTION_KEYMAP]
    return lines
