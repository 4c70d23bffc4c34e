"""Builder session: local step editing backed by drafts and commits."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .codec import decode_sequence, encode, new_local_id
from .commit import CommitOrchestrator
from .contracts import Step, apply_patch, build_step
from .drafts import DraftRepository
from .errors import (
    CommitInProgressError,
    PartialCommitError,
    RemoteCallError,
    StepValidationError,
)
from .service import StepService

logger = logging.getLogger(__name__)


def _encoded(steps: List[Step]) -> List[Dict[str, Any]]:
    return [{"id": s.id, **encode(s)} for s in steps]


class BuilderSession:
    """Edit one flow's steps locally and save them in a single commit.

    Every local mutation is written through to the draft store so an
    interrupted session can be rehydrated with ``load``. Nothing reaches the
    Step Service until ``save``.
    """

    def __init__(
        self,
        flow_id: str,
        service: StepService,
        drafts: DraftRepository,
        orchestrator: Optional[CommitOrchestrator] = None,
    ) -> None:
        self.flow_id = flow_id
        self._service = service
        self._drafts = drafts
        self._orchestrator = orchestrator or CommitOrchestrator(service)
        self.steps: List[Step] = []
        self.server_steps: List[Step] = []
        self.automation: Dict[str, Any] = {}
        self.connected_list: Optional[Dict[str, Any]] = None
        self.automation_patch: Dict[str, Any] = {}
        self._saving = False

    # ------------------------------------------------------------------
    # Loading
    async def load(self) -> None:
        """Fetch the automation and its steps, then re-apply any stored draft."""
        shell = await self._service.fetch_automation(self.flow_id)
        self.automation = dict(shell.get("automation") or {})
        self.connected_list = shell.get("connectedList")

        self.server_steps = decode_sequence(await self._service.fetch_steps(self.flow_id))
        self.steps = list(self.server_steps)
        self.automation_patch = {}

        draft = await self._drafts.read(self.flow_id)
        if draft is None:
            return
        if draft.steps_draft and _encoded(draft.steps_draft) != _encoded(self.server_steps):
            logger.info(f"Restored {len(draft.steps_draft)} draft steps for flow {self.flow_id}")
            self.steps = list(draft.steps_draft)
        if draft.automation_patch:
            self.automation_patch = dict(draft.automation_patch)
            self.automation.update(self._wire_patch())

    # ------------------------------------------------------------------
    # Dirty tracking
    @property
    def steps_dirty(self) -> bool:
        return _encoded(self.steps) != _encoded(self.server_steps)

    @property
    def is_dirty(self) -> bool:
        return self.steps_dirty or bool(self.automation_patch)

    @property
    def is_saving(self) -> bool:
        return self._saving or self._orchestrator.is_committing(self.flow_id)

    # ------------------------------------------------------------------
    # Step edits
    def _index_of(self, step_id: str) -> int:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        raise StepValidationError(f"Unknown step {step_id!r} in flow {self.flow_id}")

    async def _persist_steps(self) -> None:
        await self._drafts.write(self.flow_id, steps_draft=self.steps)

    async def add_step(
        self, kind: str, index: Optional[int] = None, **fields: Any
    ) -> Step:
        """Create a local step and insert it at ``index`` (default: the end)."""
        step = build_step(new_local_id(), kind, fields)
        if index is None:
            self.steps.append(step)
        else:
            self.steps.insert(max(0, min(index, len(self.steps))), step)
        await self._persist_steps()
        return step

    async def edit_step(self, step_id: str, **patch: Any) -> Step:
        """Merge ``patch`` into a step's payload.

        Retry settings are clamped; any other invalid value raises
        ``StepValidationError`` and leaves both the steps and the draft as
        they were.
        """
        index = self._index_of(step_id)
        updated = apply_patch(self.steps[index], patch)
        self.steps[index] = updated
        await self._persist_steps()
        return updated

    async def delete_step(self, step_id: str) -> None:
        index = self._index_of(step_id)
        del self.steps[index]
        await self._persist_steps()

    async def move_step(self, from_index: int, to_index: int) -> bool:
        """Move the step at ``from_index`` so it ends up at ``to_index``.

        Returns ``False`` without touching anything when ``from_index`` is out
        of range. ``to_index`` is clamped into the sequence.
        """
        if from_index < 0 or from_index >= len(self.steps):
            return False
        moved = self.steps.pop(from_index)
        target = max(0, min(to_index, len(self.steps)))
        self.steps.insert(target, moved)
        await self._persist_steps()
        return True

    # ------------------------------------------------------------------
    # Automation header
    def _wire_patch(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        if "name" in self.automation_patch:
            wire["name"] = self.automation_patch["name"]
        if "is_active" in self.automation_patch:
            wire["isActive"] = self.automation_patch["is_active"]
        return wire

    async def _stage(self, **changes: Any) -> None:
        self.automation_patch.update(changes)
        self.automation.update(self._wire_patch())
        await self._drafts.write(self.flow_id, automation_patch=self.automation_patch)

    async def stage_rename(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise StepValidationError("Automation name cannot be empty")
        await self._stage(name=name)

    async def stage_status(self, is_active: bool) -> None:
        await self._stage(is_active=bool(is_active))

    # ------------------------------------------------------------------
    # Save / discard
    async def save(self) -> List[Step]:
        """Push header changes, commit the steps and clear the draft.

        On failure the local steps, the staged header patch and the draft are
        kept so a later ``save`` can retry against the new server state.

        Raises:
            CommitInProgressError: a save of this session is already running.
        """
        if self.is_saving:
            raise CommitInProgressError(self.flow_id)
        self._saving = True
        try:
            return await self._save()
        finally:
            self._saving = False

    async def _save(self) -> List[Step]:
        if "is_active" in self.automation_patch:
            updated = await self._service.update_automation(
                self.flow_id,
                "statusChange",
                {"isActive": self.automation_patch["is_active"]},
            )
            self.automation = updated or self.automation
            self.automation_patch.pop("is_active", None)
            await self._drafts.write(self.flow_id, automation_patch=self.automation_patch or None)
        if "name" in self.automation_patch:
            updated = await self._service.update_automation(
                self.flow_id, "nameChange", {"name": self.automation_patch["name"]}
            )
            self.automation = updated or self.automation
            self.automation_patch.pop("name", None)
            await self._drafts.write(self.flow_id, automation_patch=self.automation_patch or None)

        try:
            fresh = await self._orchestrator.commit(self.flow_id, self.steps, self.server_steps)
        except PartialCommitError as e:
            await self._adopt_partial_commit(e)
            raise
        self.server_steps = fresh
        self.steps = list(fresh)

        await self._drafts.clear(self.flow_id)
        logger.info(f"Saved flow {self.flow_id}")
        return fresh

    async def _adopt_partial_commit(self, error: PartialCommitError) -> None:
        """Point local steps at the server ids a failed commit already created.

        The baseline is re-fetched so the next save diffs against what
        actually landed; if that fetch fails too the old baseline stays.
        """
        self.steps = [
            step.model_copy(update={"id": error.id_map[step.id]})
            if step.id in error.id_map
            else step
            for step in self.steps
        ]
        await self._persist_steps()
        try:
            wires = await self._service.fetch_steps(self.flow_id)
        except RemoteCallError as e:
            logger.warning(f"Could not refresh baseline of flow {self.flow_id} after partial commit: {e}")
            return
        self.server_steps = decode_sequence(wires)

    async def discard(self) -> None:
        """Drop every unsaved change and reload from the server."""
        await self._drafts.clear(self.flow_id)
        await self.load()
