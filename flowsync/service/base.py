"""Base interface for the remote Step Service."""

from __future__ import annotations

import abc
from typing import Any, Dict, List

from ..contracts import WireStep


class StepService(metaclass=abc.ABCMeta):
    """Abstract client for the document store holding a flow's steps.

    Every method raises ``RemoteCallError`` when the remote side rejects the
    call or answers with a malformed response.
    """

    async def connect(self) -> None:
        """Open underlying connections (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release underlying connections (no-op by default)."""
        pass

    async def __aenter__(self) -> "StepService":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    @abc.abstractmethod
    async def fetch_steps(self, flow_id: str) -> List[WireStep]:
        """Return every wire step stored for ``flow_id``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def create_step(self, flow_id: str, step: WireStep) -> str:
        """Create ``step`` and return its server-assigned id."""
        raise NotImplementedError

    @abc.abstractmethod
    async def update_step(self, flow_id: str, step_id: str, step_data: WireStep) -> None:
        """Replace the content and/or ``stepCount`` of an existing step."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_step(self, flow_id: str, step_id: str) -> None:
        """Delete a step by its server id."""
        raise NotImplementedError

    @abc.abstractmethod
    async def fetch_automation(self, flow_id: str) -> Dict[str, Any]:
        """Return the automation shell (``automation`` and ``connectedList``)."""
        raise NotImplementedError

    @abc.abstractmethod
    async def update_automation(
        self, flow_id: str, status: str, update_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Apply a header change (``nameChange``/``statusChange``) and return the automation."""
        raise NotImplementedError
