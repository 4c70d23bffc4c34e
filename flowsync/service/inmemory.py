"""In-memory Step Service for testing."""

from __future__ import annotations

import asyncio
import copy
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

from ..errors import RemoteCallError
from .base import StepService, WireStep


class InMemoryStepService(StepService):
    """Simple in-process document store mirroring the remote step routes.

    Every call is appended to ``calls`` as ``(operation, step_id, stepCount)``
    so tests can assert on the exact sequence a commit produced.
    """

    def __init__(self) -> None:
        self._flows: Dict[str, Dict[str, Any]] = {}
        self._failures: Set[Tuple[str, Optional[str]]] = set()
        self._lock = asyncio.Lock()
        self.calls: List[Tuple[str, Optional[str], Optional[int]]] = []

    # ------------------------------------------------------------------
    # Test helpers
    def add_flow(
        self,
        flow_id: str,
        name: str = "Untitled automation",
        is_active: bool = False,
        steps: Optional[List[WireStep]] = None,
    ) -> None:
        stored = []
        for index, step in enumerate(steps or []):
            item = copy.deepcopy(step)
            item.setdefault("_id", uuid.uuid4().hex[:24])
            item.setdefault("stepCount", index + 1)
            stored.append(item)
        self._flows[flow_id] = {
            "automation": {"_id": flow_id, "name": name, "isActive": is_active},
            "connectedList": None,
            "steps": stored,
        }

    def fail_on(self, operation: str, step_id: Optional[str] = None) -> None:
        """Make ``operation`` fail, for every step or only for ``step_id``."""
        self._failures.add((operation, step_id))

    def stored_steps(self, flow_id: str) -> List[WireStep]:
        return copy.deepcopy(self._flow(flow_id)["steps"])

    # ------------------------------------------------------------------
    def _flow(self, flow_id: str) -> Dict[str, Any]:
        flow = self._flows.get(flow_id)
        if flow is None:
            raise RemoteCallError("Flow not found", operation="fetch", status_code=404)
        return flow

    def _check(self, operation: str, step_id: Optional[str] = None) -> None:
        if (operation, None) in self._failures or (operation, step_id) in self._failures:
            raise RemoteCallError(
                f"Injected {operation} failure", operation=operation, status_code=500
            )

    def _find(self, flow: Dict[str, Any], step_id: str, operation: str) -> WireStep:
        for step in flow["steps"]:
            if step["_id"] == step_id:
                return step
        raise RemoteCallError("Step not found", operation=operation, status_code=404)

    # ------------------------------------------------------------------
    async def fetch_steps(self, flow_id: str) -> List[WireStep]:
        self.calls.append(("fetch", None, None))
        self._check("fetch")
        return self.stored_steps(flow_id)

    async def create_step(self, flow_id: str, step: WireStep) -> str:
        self.calls.append(("create", None, None))
        self._check("create")
        async with self._lock:
            flow = self._flow(flow_id)
            item = copy.deepcopy(step)
            item["_id"] = uuid.uuid4().hex[:24]
            item["stepCount"] = len(flow["steps"]) + 1
            flow["steps"].append(item)
        return item["_id"]

    async def update_step(self, flow_id: str, step_id: str, step_data: WireStep) -> None:
        self.calls.append(("update", step_id, step_data.get("stepCount")))
        self._check("update", step_id)
        async with self._lock:
            step = self._find(self._flow(flow_id), step_id, "update")
            step.update(copy.deepcopy(step_data))
            step["_id"] = step_id

    async def delete_step(self, flow_id: str, step_id: str) -> None:
        self.calls.append(("delete", step_id, None))
        self._check("delete", step_id)
        async with self._lock:
            flow = self._flow(flow_id)
            self._find(flow, step_id, "delete")
            flow["steps"] = [s for s in flow["steps"] if s["_id"] != step_id]

    async def fetch_automation(self, flow_id: str) -> Dict[str, Any]:
        self._check("fetch_automation")
        flow = self._flow(flow_id)
        return {
            "automation": dict(flow["automation"]),
            "connectedList": flow["connectedList"],
        }

    async def update_automation(
        self, flow_id: str, status: str, update_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        self.calls.append((status, None, None))
        self._check(status)
        automation = self._flow(flow_id)["automation"]
        if status == "nameChange":
            name = str(update_data.get("name") or "").strip()
            if not name:
                raise RemoteCallError(
                    "New name is required for nameChange", operation=status, status_code=400
                )
            automation["name"] = name
        elif status == "statusChange":
            if not isinstance(update_data.get("isActive"), bool):
                raise RemoteCallError(
                    "isActive boolean value is required for statusChange",
                    operation=status,
                    status_code=400,
                )
            automation["isActive"] = update_data["isActive"]
        else:
            raise RemoteCallError(f"Invalid status: {status}", operation=status, status_code=400)
        return dict(automation)
