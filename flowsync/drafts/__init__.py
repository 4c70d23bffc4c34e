"""Draft persistence for unsaved builder state."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowSyncConfig, load_config
from .inmemory import InMemoryDraftStore
from .repository import DraftRepository, KeyValueDraftStore, draft_key
from .sqlite import SQLiteDraftStore

_store_instance: DraftRepository | None = None


def get_draft_store(
    url: Optional[str] = None, config: Optional[FlowSyncConfig] = None
) -> DraftRepository:
    """Factory function to obtain a draft store.

    The backend is selected from ``url``, which can be provided explicitly, via
    the ``FLOWSYNC_DRAFT_URL`` environment variable, or from loaded
    configuration. When no medium is configured an in-memory store is
    returned.
    """

    global _store_instance
    if _store_instance is not None and url is None and config is None:
        return _store_instance

    config = config or load_config()
    url = url or os.getenv("FLOWSYNC_DRAFT_URL") or config.drafts.url

    if not url:
        _store_instance = InMemoryDraftStore()
        return _store_instance

    if url.startswith("sqlite://"):
        path = url.replace("sqlite://", "", 1)
        _store_instance = SQLiteDraftStore(path)
    elif url.startswith("redis://") or url.startswith("rediss://"):
        from .redis import RedisDraftStore

        _store_instance = RedisDraftStore(url, ttl=config.drafts.ttl)
    else:
        raise ValueError(f"Unsupported draft backend: {url}")

    return _store_instance


__all__ = [
    "DraftRepository",
    "KeyValueDraftStore",
    "InMemoryDraftStore",
    "SQLiteDraftStore",
    "draft_key",
    "get_draft_store",
]
