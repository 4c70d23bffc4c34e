"""In-memory implementation of the draft repository."""

from __future__ import annotations

from typing import Dict

from .repository import KeyValueDraftStore


class InMemoryDraftStore(KeyValueDraftStore):
    """Keep drafts in a local dictionary.

    Useful for tests or when no draft medium is configured. Drafts do not
    survive process restarts.
    """

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    async def _load(self, key: str) -> str | None:
        return self._items.get(key)

    async def _save(self, key: str, value: str) -> None:
        self._items[key] = value

    async def _delete(self, key: str) -> None:
        self._items.pop(key, None)
