from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_FLOW_PATH, DEFAULT_REORDER_CONCURRENCY, DEFAULT_STEPS_PATH


class StepServiceConfig(BaseModel):
    """Connection settings for the remote Step Service."""

    backend: Literal["inmemory", "http"] = "inmemory"
    base_url: str = "http://localhost:3000"
    steps_path: str = DEFAULT_STEPS_PATH
    flow_path: str = DEFAULT_FLOW_PATH
    token: Optional[str] = None
    timeout: float = 30.0


class DraftConfig(BaseModel):
    """Draft medium settings. ``url`` picks the backend by scheme."""

    url: Optional[str] = None
    ttl: Optional[int] = None


class CommitConfig(BaseModel):
    """Commit orchestration settings."""

    call_timeout: Optional[float] = None
    reorder_concurrency: int = Field(default=DEFAULT_REORDER_CONCURRENCY, ge=1)


class FlowSyncConfig(BaseModel):
    """Top-level configuration model."""

    step_service: StepServiceConfig = Field(default_factory=StepServiceConfig)
    drafts: DraftConfig = Field(default_factory=DraftConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)


def load_config(path: Optional[str] = None) -> FlowSyncConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWSYNC_CONFIG env
            variable or 'flowsync.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWSYNC_CONFIG", "flowsync.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowSyncConfig(**data)
    else:
        config = FlowSyncConfig()

    env_base_url = os.getenv("FLOWSYNC_BASE_URL")
    if env_base_url:
        config.step_service.base_url = env_base_url
        config.step_service.backend = "http"
    env_backend = os.getenv("FLOWSYNC_STEP_BACKEND")
    if env_backend:
        config.step_service.backend = env_backend.lower()
    env_token = os.getenv("FLOWSYNC_TOKEN")
    if env_token:
        config.step_service.token = env_token
    env_draft_url = os.getenv("FLOWSYNC_DRAFT_URL")
    if env_draft_url:
        config.drafts.url = env_draft_url
    return config
