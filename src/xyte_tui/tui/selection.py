# src/xyte_tui/tui/selection.py

"""Last-writer-wins loading for list selections.

Moving the cursor through a list starts a detail load per row. Loads finish in
any order; only the result of the most recent request may be shown.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

I = TypeVar("I")  # noqa: E741
R = TypeVar("R")


class SelectionOrigin(Enum):
    """Who moved a list selection.

    Screens re-sync widget selection after every repaint; tagging those moves
    as PROGRAMMATIC lets the screen ignore its own echo instead of starting
    another detail load.
    """

    PROGRAMMATIC = "programmatic"
    USER = "user"


@dataclass(frozen=True)
class SelectionChange:
    index: int
    origin: SelectionOrigin

    @property
    def from_user(self) -> bool:
        return self.origin is SelectionOrigin.USER


class StaleSafeSelectionLoader(Generic[I, R]):
    """Apply a load result only if no newer load started meanwhile.

    Args:
        load: Async loader for one input
        apply: Called with the result of the newest load only

    Example:
        loader = StaleSafeSelectionLoader(load=fetch_detail, apply=show_detail)
        applied = await loader(row_index)  # False when overtaken
    """

    def __init__(self, load: Callable[[I], Awaitable[R]], apply: Callable[[R], None]):
        self._load = load
        self._apply = apply
        self._token = 0

    @property
    def token(self) -> int:
        return self._token

    async def __call__(self, value: I) -> bool:
        self._token += 1
        current = self._token
        result = await self._load(value)
        if current != self._token:
            return False
        self._apply(result)
        return True
