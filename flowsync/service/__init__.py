"""Step Service factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowSyncConfig, load_config
from .base import StepService, WireStep
from .inmemory import InMemoryStepService

_service_instance: StepService | None = None


def get_step_service(
    backend: Optional[str] = None, config: Optional[FlowSyncConfig] = None
) -> StepService:
    """Factory function to get the configured Step Service client."""

    global _service_instance
    if _service_instance is not None and backend is None and config is None:
        return _service_instance

    config = config or load_config()
    backend = (
        backend
        or os.getenv("FLOWSYNC_STEP_BACKEND")
        or config.step_service.backend
    ).lower()

    if backend == "inmemory":
        _service_instance = InMemoryStepService()
    elif backend == "http":
        from .http import HttpStepService

        svc_conf = config.step_service
        _service_instance = HttpStepService(
            base_url=svc_conf.base_url,
            token=svc_conf.token,
            steps_path=svc_conf.steps_path,
            flow_path=svc_conf.flow_path,
            timeout=svc_conf.timeout,
        )
    else:
        raise ValueError(f"Unsupported step service backend: {backend}")

    return _service_instance


__all__ = ["StepService", "InMemoryStepService", "WireStep", "get_step_service"]
