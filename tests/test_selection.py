"""Tests for last-writer-wins selection loading."""

import asyncio

import pytest

from xyte_tui.tui.selection import SelectionChange, SelectionOrigin, StaleSafeSelectionLoader


class TestStaleSafeSelectionLoader:
    @pytest.mark.asyncio
    async def test_only_newest_result_applied(self) -> None:
        """t1 starts first, t2 finishes first: only t2 is applied."""
        gates = {1: asyncio.Event(), 2: asyncio.Event()}
        applied: list[str] = []

        async def load(value: int) -> str:
            await gates[value].wait()
            return f"detail-{value}"

        loader = StaleSafeSelectionLoader(load=load, apply=applied.append)
        first = asyncio.ensure_future(loader(1))
        second = asyncio.ensure_future(loader(2))
        await asyncio.sleep(0)

        gates[2].set()
        assert await second is True
        gates[1].set()
        assert await first is False

        assert applied == ["detail-2"]

    @pytest.mark.asyncio
    async def test_older_finishing_last_is_still_discarded(self) -> None:
        gates = {1: asyncio.Event(), 2: asyncio.Event()}
        applied: list[str] = []

        async def load(value: int) -> str:
            await gates[value].wait()
            return f"detail-{value}"

        loader = StaleSafeSelectionLoader(load=load, apply=applied.append)
        first = asyncio.ensure_future(loader(1))
        second = asyncio.ensure_future(loader(2))
        await asyncio.sleep(0)

        gates[1].set()
        assert await first is False
        gates[2].set()
        assert await second is True
        assert applied == ["detail-2"]

    @pytest.mark.asyncio
    async def test_sequential_loads_all_apply(self) -> None:
        applied: list[int] = []

        async def load(value: int) -> int:
            return value * 10

        loader = StaleSafeSelectionLoader(load=load, apply=applied.append)
        await loader(1)
        await loader(2)

        assert applied == [10, 20]
        assert loader.token == 2


class TestSelectionChange:
    def test_origin_flags(self) -> None:
        assert SelectionChange(0, SelectionOrigin.USER).from_user
        assert not SelectionChange(0, SelectionOrigin.PROGRAMMATIC).from_user
