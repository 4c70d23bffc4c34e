"""Repository abstraction for unsaved builder drafts."""

from __future__ import annotations

import abc
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from ..constants import DRAFT_KEY_PREFIX
from ..contracts import Draft

logger = logging.getLogger(__name__)


def draft_key(flow_id: str) -> str:
    return f"{DRAFT_KEY_PREFIX}{flow_id}"


class DraftRepository(Protocol):
    """Protocol for draft persistence backends."""

    async def read(self, flow_id: str) -> Draft | None:
        """Return the stored draft for ``flow_id`` or ``None``."""

    async def write(self, flow_id: str, **fields: Any) -> None:
        """Merge ``fields`` into the stored draft and stamp ``updated_at``."""

    async def clear(self, flow_id: str) -> None:
        """Remove the stored draft."""


class KeyValueDraftStore(metaclass=abc.ABCMeta):
    """Best-effort draft store over a raw key-value medium.

    Subclasses only move strings in and out of their medium. Failures while
    reading yield ``None``; failures while writing or clearing are logged and
    dropped so a broken medium never interrupts the builder session.
    """

    @abc.abstractmethod
    async def _load(self, key: str) -> str | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def _save(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def _delete(self, key: str) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    async def read(self, flow_id: str) -> Draft | None:
        try:
            raw = await self._load(draft_key(flow_id))
        except Exception as e:
            logger.warning(f"Failed to read draft for flow {flow_id}: {e}")
            return None
        if not raw:
            return None
        try:
            return Draft.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring corrupt draft for flow {flow_id}: {e}")
            return None

    async def write(self, flow_id: str, **fields: Any) -> None:
        existing = await self.read(flow_id)
        data = existing.model_dump() if existing else {}
        data.update(fields)
        data["updated_at"] = datetime.now(timezone.utc)
        try:
            draft = Draft.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Refusing to store invalid draft for flow {flow_id}: {e}")
            return
        try:
            await self._save(draft_key(flow_id), draft.model_dump_json())
        except Exception as e:
            logger.warning(f"Failed to write draft for flow {flow_id}: {e}")

    async def clear(self, flow_id: str) -> None:
        try:
            await self._delete(draft_key(flow_id))
        except Exception as e:
            logger.warning(f"Failed to clear draft for flow {flow_id}: {e}")
