"""HTTP client for the remote Step Service."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..constants import AUTH_HEADER, DEFAULT_FLOW_PATH, DEFAULT_STEPS_PATH
from ..errors import RemoteCallError
from .base import StepService, WireStep

logger = logging.getLogger(__name__)


class HttpStepService(StepService):
    """Talk to the step and flow routes of the automation API.

    Every route answers ``{"success": bool, "message": str, "data": ...}``;
    anything other than ``success: true`` is treated as a failed call.

    Usage:
        async with HttpStepService("https://console.example.com", token="...") as svc:
            steps = await svc.fetch_steps(flow_id)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        steps_path: str = DEFAULT_STEPS_PATH,
        flow_path: str = DEFAULT_FLOW_PATH,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.steps_path = steps_path
        self.flow_path = flow_path
        headers = {"Content-Type": "application/json"}
        if token:
            headers[AUTH_HEADER] = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Dict[str, Any]:
        """Make an API request and unwrap the ``success`` envelope."""
        logger.debug(f"{method} {path} ({operation}) params={params}")
        try:
            response = await self._client.request(
                method=method, url=path, params=params, json=json
            )
        except httpx.HTTPError as e:
            raise RemoteCallError(f"{operation} failed: {e}", operation=operation) from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or body.get("success") is not True:
            message = body.get("message") or f"HTTP {response.status_code}"
            raise RemoteCallError(
                f"{operation} failed: {message}",
                operation=operation,
                status_code=response.status_code,
                response=body or None,
            )
        return body

    # ------------------------------------------------------------------
    async def fetch_steps(self, flow_id: str) -> List[WireStep]:
        body = await self._request(
            "fetch", "GET", self.steps_path, params={"flowId": flow_id}
        )
        steps = (body.get("data") or {}).get("steps")
        if not isinstance(steps, list):
            raise RemoteCallError(
                "fetch failed: response has no step list", operation="fetch", response=body
            )
        return steps

    async def create_step(self, flow_id: str, step: WireStep) -> str:
        body = await self._request(
            "create", "POST", self.steps_path, json={"flowId": flow_id, "step": step}
        )
        step_id = (body.get("data") or {}).get("_id")
        if not step_id:
            raise RemoteCallError(
                "create failed: response has no step id", operation="create", response=body
            )
        return str(step_id)

    async def update_step(self, flow_id: str, step_id: str, step_data: WireStep) -> None:
        await self._request(
            "update",
            "PUT",
            self.steps_path,
            json={"flowId": flow_id, "stepId": step_id, "stepData": step_data},
        )

    async def delete_step(self, flow_id: str, step_id: str) -> None:
        await self._request(
            "delete",
            "DELETE",
            self.steps_path,
            params={"flowId": flow_id, "stepId": step_id},
        )

    async def fetch_automation(self, flow_id: str) -> Dict[str, Any]:
        body = await self._request(
            "fetch_automation", "GET", self.flow_path, params={"automationId": flow_id}
        )
        return body.get("data") or {}

    async def update_automation(
        self, flow_id: str, status: str, update_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        body = await self._request(
            status,
            "PUT",
            self.flow_path,
            json={"automationId": flow_id, "status": status, "updateData": update_data},
        )
        return (body.get("data") or {}).get("automation") or {}
