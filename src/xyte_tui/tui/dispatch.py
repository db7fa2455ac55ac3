# src/xyte_tui/tui/dispatch.py

"""Decide which handler consumes a key event.

Priority, highest first: an open modal, pane arrow navigation, the active
screen's own keys, then the global keymap (tab switching, refresh, quit).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from xyte_tui.tui.input import InputEvent

ARROW_KEYS = ("up", "down", "left", "right")


class ArrowResult(Enum):
    """What a screen did with an arrow key."""

    HANDLED = "handled"  # Moved focus or selection
    BOUNDARY = "boundary"  # Already at the edge in that direction
    UNHANDLED = "unhandled"  # Not an arrow this screen uses


class DispatchOutcome(Enum):
    """Which layer consumed a key event."""

    MODAL = "modal"
    PANE_ARROW = "arrow"
    SCREEN_LOCAL = "screen"
    GLOBAL = "global"
    BLOCKED = "blocked"


@dataclass
class KeyHandlers:
    """Handlers offered a key, in dispatch order.

    Attributes:
        handle_global: Global keymap; always present
        handle_screen: Screen-local keys; returns True when consumed
        handle_arrow: Pane navigation for the active screen
        claims_horizontal_arrows: True while the screen edits text and wants
            left/right for itself instead of tab switching
        handle_modal: Receives every key while a modal is open
    """

    handle_global: Callable[[InputEvent], Awaitable[None]]
    handle_screen: Callable[[InputEvent], Awaitable[bool]] | None = None
    handle_arrow: Callable[[str], Awaitable[ArrowResult]] | None = None
    claims_horizontal_arrows: Callable[[], bool] | None = None
    handle_modal: Callable[[InputEvent], Awaitable[bool | None]] | None = None


async def dispatch_key(
    event: InputEvent,
    handlers: KeyHandlers,
    modal_active: bool = False,
) -> DispatchOutcome:
    """Route one key event and report who consumed it.

    Args:
        event: The key event
        handlers: Candidate handlers for the active screen
        modal_active: Whether a modal currently owns the keyboard

    Returns:
        DispatchOutcome naming the layer that consumed the key
    """
    if modal_active:
        if handlers.handle_modal is not None and await handlers.handle_modal(event):
            return DispatchOutcome.MODAL
        return DispatchOutcome.BLOCKED

    key = event.key
    screen_claimed = False
    if key.name in ARROW_KEYS:
        horizontal = key.name in ("left", "right")
        pane_mode = key.ctrl or key.meta or key.shift
        claimed = bool(handlers.claims_horizontal_arrows and handlers.claims_horizontal_arrows())

        if horizontal and not pane_mode and not claimed:
            await handlers.handle_global(event)
            return DispatchOutcome.GLOBAL

        if horizontal and not pane_mode:
            # Text-editing context: the arrow stays inside the screen
            screen_claimed = True
            if handlers.handle_arrow is not None:
                result = await handlers.handle_arrow(key.name)
                if result is ArrowResult.HANDLED:
                    return DispatchOutcome.PANE_ARROW
                if result is ArrowResult.BOUNDARY:
                    return DispatchOutcome.BLOCKED
        elif handlers.handle_arrow is not None:
            result = await handlers.handle_arrow(key.name)
            if result is ArrowResult.HANDLED:
                return DispatchOutcome.PANE_ARROW
            if result is ArrowResult.BOUNDARY:
                await handlers.handle_global(event)
                return DispatchOutcome.GLOBAL

    if handlers.handle_screen is not None and await handlers.handle_screen(event):
        return DispatchOutcome.SCREEN_LOCAL

    if screen_claimed:
        return DispatchOutcome.BLOCKED

    await handlers.handle_global(event)
    return DispatchOutcome.GLOBAL
