"""Replay a step diff against the remote Step Service."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Dict, List, Literal, Optional, Set, TypeVar

from pydantic import BaseModel

from .codec import decode_sequence, encode
from .constants import DEFAULT_REORDER_CONCURRENCY
from .contracts import Step
from .errors import (
    CommitError,
    CommitInProgressError,
    PartialCommitError,
    RemoteCallError,
)
from .reconcile import StepDiff, diff_steps
from .service import StepService

logger = logging.getLogger(__name__)

T = TypeVar("T")

CommitPhase = Literal["create", "update", "delete", "reorder", "refresh"]


class CommitOperation(BaseModel):
    """A single remote call issued while committing."""

    phase: CommitPhase
    step_id: Optional[str] = None
    position: Optional[int] = None


class CommitOrchestrator:
    """Apply local step edits to the remote store in a fixed phase order.

    Creates, updates and deletes run one at a time so the local-to-server id
    map is complete before anything consumes it. Every step then gets its
    final ``stepCount`` in a bounded concurrent reorder pass, and the result
    is re-fetched as the new baseline. Already applied mutations are never
    rolled back; the next commit re-diffs against whatever landed.
    """

    def __init__(
        self,
        service: StepService,
        call_timeout: Optional[float] = None,
        reorder_concurrency: int = DEFAULT_REORDER_CONCURRENCY,
    ) -> None:
        if reorder_concurrency < 1:
            raise ValueError("reorder_concurrency must be at least 1")
        self._service = service
        self._call_timeout = call_timeout
        self._reorder_concurrency = reorder_concurrency
        self._in_flight: Set[str] = set()

    def is_committing(self, flow_id: str) -> bool:
        return flow_id in self._in_flight

    async def commit(
        self, flow_id: str, current: List[Step], baseline: List[Step]
    ) -> List[Step]:
        """Commit ``current`` over ``baseline`` and return the refreshed baseline.

        Raises:
            CommitInProgressError: another commit for ``flow_id`` is running.
            CommitError: a remote call failed before any mutation landed.
            PartialCommitError: a remote call failed after earlier mutations
                of this commit had already been applied.
        """
        if flow_id in self._in_flight:
            raise CommitInProgressError(flow_id)
        self._in_flight.add(flow_id)
        try:
            return await _CommitRun(self, flow_id, current, baseline).run()
        finally:
            self._in_flight.discard(flow_id)


class _CommitRun:
    """State of one commit: the diff, the id map and the mutation count."""

    def __init__(
        self,
        orchestrator: CommitOrchestrator,
        flow_id: str,
        current: List[Step],
        baseline: List[Step],
    ) -> None:
        self.service = orchestrator._service
        self.call_timeout = orchestrator._call_timeout
        self.reorder_concurrency = orchestrator._reorder_concurrency
        self.flow_id = flow_id
        self.current = current
        self.diff: StepDiff = diff_steps(current, baseline)
        self.id_map: Dict[str, str] = {}
        self.mutations = 0

    async def run(self) -> List[Step]:
        diff = self.diff
        logger.info(
            f"Committing flow {self.flow_id}: {len(diff.created)} created, "
            f"{len(diff.updated)} updated, {len(diff.deleted)} deleted, "
            f"{len(diff.order)} positions"
        )

        for step in diff.created:
            op = CommitOperation(phase="create", step_id=step.id)
            server_id = await self._call(op, self.service.create_step(self.flow_id, encode(step)))
            self.id_map[step.id] = server_id
            self.mutations += 1

        with_real_ids = [self._real_id(step.id) for step in self.current]

        for step in diff.updated:
            real_id = self._real_id(step.id)
            position = with_real_ids.index(real_id) + 1
            op = CommitOperation(phase="update", step_id=real_id, position=position)
            step_data = {**encode(step), "stepCount": position}
            await self._call(op, self.service.update_step(self.flow_id, real_id, step_data))
            self.mutations += 1

        for step in diff.deleted:
            op = CommitOperation(phase="delete", step_id=step.id)
            await self._call(op, self.service.delete_step(self.flow_id, step.id))
            self.mutations += 1

        await self._reorder(with_real_ids)

        op = CommitOperation(phase="refresh")
        wires = await self._call(op, self.service.fetch_steps(self.flow_id))
        fresh = decode_sequence(wires)
        logger.info(f"Committed flow {self.flow_id}; baseline now has {len(fresh)} steps")
        return fresh

    def _real_id(self, step_id: str) -> str:
        return self.id_map.get(step_id, step_id)

    async def _reorder(self, with_real_ids: List[str]) -> None:
        semaphore = asyncio.Semaphore(self.reorder_concurrency)

        async def write_position(index: int, step: Step) -> None:
            real_id = with_real_ids[index]
            op = CommitOperation(phase="reorder", step_id=real_id, position=index + 1)
            step_data = {**encode(step), "stepCount": index + 1}
            async with semaphore:
                await self._call(op, self.service.update_step(self.flow_id, real_id, step_data))
            self.mutations += 1

        results = await asyncio.gather(
            *(write_position(i, step) for i, step in enumerate(self.current)),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            return
        first = failures[0]
        if not isinstance(first, CommitError):
            raise first
        if self.mutations and not isinstance(first, PartialCommitError):
            # sibling positions landed after this failure was recorded
            raise PartialCommitError(
                str(first),
                flow_id=first.flow_id,
                phase=first.phase,
                operation=first.operation,
                id_map=first.id_map,
                cause=first.cause,
            ) from first.cause
        raise first

    async def _call(self, op: CommitOperation, call: Awaitable[T]) -> T:
        logger.debug(f"Flow {self.flow_id}: {op.phase} step={op.step_id} position={op.position}")
        try:
            if self.call_timeout is not None:
                return await asyncio.wait_for(call, self.call_timeout)
            return await call
        except asyncio.TimeoutError as e:
            raise self._failure(
                op, RemoteCallError(f"{op.phase} timed out after {self.call_timeout}s", operation=op.phase)
            ) from e
        except RemoteCallError as e:
            raise self._failure(op, e) from e

    def _failure(self, op: CommitOperation, cause: RemoteCallError) -> CommitError:
        error_cls = PartialCommitError if self.mutations else CommitError
        target = f" for step {op.step_id}" if op.step_id else ""
        logger.error(
            f"Commit of flow {self.flow_id} failed in {op.phase} phase{target}: {cause}"
            + (f" after {self.mutations} applied mutations" if self.mutations else "")
        )
        return error_cls(
            f"{op.phase} failed{target}: {cause}",
            flow_id=self.flow_id,
            phase=op.phase,
            operation=op,
            id_map=self.id_map,
            cause=cause,
        )


__all__ = ["CommitOperation", "CommitOrchestrator", "CommitPhase"]
