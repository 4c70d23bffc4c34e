"""Exception hierarchy for flowsync."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .commit import CommitOperation


class FlowSyncError(Exception):
    """Base exception for flowsync errors."""


class StepValidationError(FlowSyncError):
    """A local edit was rejected before reaching the network."""


class RemoteCallError(FlowSyncError):
    """A call against the remote Step Service failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        response: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class CommitInProgressError(FlowSyncError):
    """Raised when a second commit starts for a flow that is already committing."""

    def __init__(self, flow_id: str) -> None:
        self.flow_id = flow_id
        super().__init__(f"A commit is already in progress for flow {flow_id}")


class CommitError(FlowSyncError):
    """A commit aborted because one of its remote calls failed.

    ``operation`` is the call that failed and ``id_map`` holds the
    local-to-server id assignments made before the failure. Remote mutations
    that already landed are not rolled back.
    """

    def __init__(
        self,
        message: str,
        *,
        flow_id: str,
        phase: str,
        operation: Optional["CommitOperation"] = None,
        id_map: Optional[Dict[str, str]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.flow_id = flow_id
        self.phase = phase
        self.operation = operation
        self.id_map = dict(id_map or {})
        self.cause = cause
        super().__init__(message)


class PartialCommitError(CommitError):
    """A commit failed after some of its remote mutations had already applied."""


__all__ = [
    "FlowSyncError",
    "StepValidationError",
    "RemoteCallError",
    "CommitInProgressError",
    "CommitError",
    "PartialCommitError",
]
