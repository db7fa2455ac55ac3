"""Tests for key dispatch priority."""

from unittest.mock import AsyncMock

import pytest

from xyte_tui.tui.dispatch import ArrowResult, DispatchOutcome, KeyHandlers, dispatch_key
from xyte_tui.tui.input import InputEvent


def handlers(
    arrow: ArrowResult | None = None,
    screen_consumes: bool = False,
    claims: bool = False,
    modal: bool | None = None,
) -> KeyHandlers:
    return KeyHandlers(
        handle_global=AsyncMock(),
        handle_screen=AsyncMock(return_value=screen_consumes),
        handle_arrow=AsyncMock(return_value=arrow) if arrow is not None else None,
        claims_horizontal_arrows=lambda: claims,
        handle_modal=AsyncMock(return_value=modal) if modal is not None else None,
    )


class TestDispatchKey:
    @pytest.mark.asyncio
    async def test_plain_left_goes_global_without_claim(self) -> None:
        """A plain left arrow switches tabs when the screen does not claim it."""
        h = handlers(arrow=ArrowResult.HANDLED)
        outcome = await dispatch_key(InputEvent.from_key("left"), h)

        assert outcome is DispatchOutcome.GLOBAL
        h.handle_global.assert_awaited_once()
        h.handle_arrow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claimed_left_stays_in_screen(self) -> None:
        h = handlers(arrow=ArrowResult.HANDLED, claims=True)
        outcome = await dispatch_key(InputEvent.from_key("left"), h)

        assert outcome is DispatchOutcome.PANE_ARROW
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claimed_left_at_boundary_is_blocked(self) -> None:
        h = handlers(arrow=ArrowResult.BOUNDARY, claims=True)
        outcome = await dispatch_key(InputEvent.from_key("left"), h)

        assert outcome is DispatchOutcome.BLOCKED
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claimed_unhandled_left_never_reaches_global(self) -> None:
        h = handlers(arrow=ArrowResult.UNHANDLED, claims=True)
        outcome = await dispatch_key(InputEvent.from_key("left"), h)

        assert outcome is DispatchOutcome.BLOCKED
        h.handle_screen.assert_awaited_once()
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pane_arrow_handled(self) -> None:
        h = handlers(arrow=ArrowResult.HANDLED)
        outcome = await dispatch_key(InputEvent.from_key("ctrl+right"), h)

        assert outcome is DispatchOutcome.PANE_ARROW
        h.handle_arrow.assert_awaited_once_with("right")

    @pytest.mark.asyncio
    async def test_pane_arrow_boundary_falls_through_to_global(self) -> None:
        h = handlers(arrow=ArrowResult.BOUNDARY)
        outcome = await dispatch_key(InputEvent.from_key("shift+right"), h)

        assert outcome is DispatchOutcome.GLOBAL
        h.handle_global.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_vertical_arrow_handled_by_pane(self) -> None:
        h = handlers(arrow=ArrowResult.HANDLED)
        outcome = await dispatch_key(InputEvent.from_key("down"), h)

        assert outcome is DispatchOutcome.PANE_ARROW

    @pytest.mark.asyncio
    async def test_screen_local_before_global(self) -> None:
        h = handlers(screen_consumes=True)
        outcome = await dispatch_key(InputEvent.from_key("c", "c"), h)

        assert outcome is DispatchOutcome.SCREEN_LOCAL
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconsumed_key_goes_global(self) -> None:
        h = handlers()
        outcome = await dispatch_key(InputEvent.from_key("d", "d"), h)

        assert outcome is DispatchOutcome.GLOBAL
        h.handle_global.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_modal_consumes_everything(self) -> None:
        h = handlers(screen_consumes=True, modal=True)
        outcome = await dispatch_key(InputEvent.from_key("left"), h, modal_active=True)

        assert outcome is DispatchOutcome.MODAL
        h.handle_screen.assert_not_awaited()
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_modal_without_handler_blocks(self) -> None:
        h = handlers()
        outcome = await dispatch_key(InputEvent.from_key("r", "r"), h, modal_active=True)

        assert outcome is DispatchOutcome.BLOCKED
        h.handle_global.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_arrow_handler_falls_to_global(self) -> None:
        h = KeyHandlers(handle_global=AsyncMock())
        outcome = await dispatch_key(InputEvent.from_key("up"), h)

        assert outcome is DispatchOutcome.GLOBAL
