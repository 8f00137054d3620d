from __future__ import annotations

from typing import Protocol


class KeySelector(Protocol):
    """Host-provided API key picker (available only inside some authoring hosts)."""

    async def has_selected_api_key(self) -> bool: ...

    async def open_select_key(self) -> None: ...


class StaticKeySelector:
    def __init__(self, selected: bool = True):
        self.selected = bool(selected)
        self.open_calls = 0

    async def has_selected_api_key(self) -> bool:
        return self.selected

    async def open_select_key(self) -> None:
        self.open_calls += 1
        self.selected = True
