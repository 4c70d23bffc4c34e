"""Flowsync: draft-backed editing and reconciliation of automation steps."""

from .codec import decode, decode_sequence, encode
from .commit import CommitOrchestrator
from .config import load_config
from .contracts import ActionStep, DelayStep, Draft, Step, build_step
from .drafts import get_draft_store
from .errors import (
    CommitError,
    CommitInProgressError,
    FlowSyncError,
    PartialCommitError,
    RemoteCallError,
    StepValidationError,
)
from .reconcile import StepDiff, diff_steps
from .service import get_step_service
from .session import BuilderSession

__version__ = "0.1.0"
__all__ = [
    "ActionStep",
    "BuilderSession",
    "CommitError",
    "CommitInProgressError",
    "CommitOrchestrator",
    "DelayStep",
    "Draft",
    "FlowSyncError",
    "PartialCommitError",
    "RemoteCallError",
    "Step",
    "StepDiff",
    "StepValidationError",
    "build_step",
    "decode",
    "decode_sequence",
    "diff_steps",
    "encode",
    "get_draft_store",
    "get_step_service",
    "load_config",
]
