"""Diff a locally edited step sequence against its server baseline."""

from __future__ import annotations

from typing import Dict, Iterable, List

from pydantic import BaseModel, Field

from .codec import is_local_id, steps_equal
from .contracts import Step
from .errors import StepValidationError


class StepDiff(BaseModel):
    """Classification of steps between a baseline and the current edit.

    ``created``, ``updated``, ``unchanged`` and ``deleted`` partition the ids of
    both sequences. ``reordered`` is independent of the other sets: a step can
    be both updated and moved.
    """

    created: List[Step] = Field(default_factory=list)
    updated: List[Step] = Field(default_factory=list)
    unchanged: List[Step] = Field(default_factory=list)
    deleted: List[Step] = Field(default_factory=list)
    reordered: List[str] = Field(default_factory=list)
    order: List[Step] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """``True`` when nothing has to be created, updated or deleted."""
        return not (self.created or self.updated or self.deleted)


def index_by_id(steps: Iterable[Step], label: str = "sequence") -> Dict[str, Step]:
    """Map step ids to steps, rejecting duplicate ids."""
    indexed: Dict[str, Step] = {}
    for step in steps:
        if step.id in indexed:
            raise StepValidationError(f"Duplicate step id {step.id!r} in {label}")
        indexed[step.id] = step
    return indexed


def diff_steps(current: List[Step], baseline: List[Step]) -> StepDiff:
    """Compute what has to change remotely to turn ``baseline`` into ``current``.

    Local ids always land in ``created`` since the remote store has no record
    of them. Matched steps are ``updated`` only when their encoded content
    differs; position changes alone never mark a step updated.
    """
    current_index = index_by_id(current, "current steps")
    baseline_index = index_by_id(baseline, "baseline steps")
    baseline_positions = {step.id: i for i, step in enumerate(baseline)}

    diff = StepDiff(order=list(current))
    for position, step in enumerate(current):
        previous = baseline_index.get(step.id)
        if previous is None or is_local_id(step.id):
            diff.created.append(step)
            continue
        if steps_equal(previous, step):
            diff.unchanged.append(step)
        else:
            diff.updated.append(step)
        if baseline_positions[step.id] != position:
            diff.reordered.append(step.id)

    diff.deleted = [step for step in baseline if step.id not in current_index]
    return diff


__all__ = ["StepDiff", "diff_steps", "index_by_id"]
