"""Commit orchestration scenarios against the in-memory Step Service."""

import asyncio

import pytest

from flowsync.codec import decode_sequence, is_local_id, new_local_id
from flowsync.commit import CommitOrchestrator
from flowsync.contracts import apply_patch, build_step
from flowsync.errors import CommitError, CommitInProgressError, PartialCommitError, RemoteCallError
from flowsync.service import InMemoryStepService

FLOW = "flow1"


def _service(*step_ids):
    service = InMemoryStepService()
    service.add_flow(
        FLOW,
        steps=[
            {"_id": step_id, "stepType": "waitSubscriber", "title": step_id, "waitDuration": 1, "waitUnit": "hours"}
            for step_id in step_ids
        ],
    )
    return service


def _baseline(service):
    return decode_sequence(service.stored_steps(FLOW))


def _positions(service):
    return {s["_id"]: s["stepCount"] for s in service.stored_steps(FLOW)}


@pytest.mark.asyncio
async def test_first_step_is_created_and_positioned():
    service = _service()
    local = build_step(new_local_id(), "delay", {"amount": 3, "unit": "minutes"})

    fresh = await CommitOrchestrator(service).commit(FLOW, [local], [])

    assert len(fresh) == 1
    assert not is_local_id(fresh[0].id)
    assert fresh[0].payload.amount == 3
    assert service.calls == [
        ("create", None, None),
        ("update", fresh[0].id, 1),
        ("fetch", None, None),
    ]
    assert _positions(service) == {fresh[0].id: 1}


@pytest.mark.asyncio
async def test_swap_only_rewrites_positions():
    service = _service("a", "b")
    a, b = _baseline(service)

    fresh = await CommitOrchestrator(service).commit(FLOW, [b, a], [a, b])

    assert [s.id for s in fresh] == ["b", "a"]
    assert service.calls == [("update", "b", 1), ("update", "a", 2), ("fetch", None, None)]
    assert _positions(service) == {"b": 1, "a": 2}


@pytest.mark.asyncio
async def test_removing_last_step_only_deletes():
    service = _service("a")
    baseline = _baseline(service)

    fresh = await CommitOrchestrator(service).commit(FLOW, [], baseline)

    assert fresh == []
    assert service.calls == [("delete", "a", None), ("fetch", None, None)]


@pytest.mark.asyncio
async def test_phases_run_in_order_and_positions_match():
    service = _service("a", "b", "c")
    a, b, c = _baseline(service)
    first = build_step(new_local_id(), "action", {"subject": "Hello"})
    last = build_step(new_local_id(), "action", {"action_kind": "delete_subscriber"})
    edited_c = apply_patch(c, {"amount": 7})
    current = [first, edited_c, a, last]

    fresh = await CommitOrchestrator(service).commit(FLOW, current, [a, b, c])

    phases = [call[0] for call in service.calls]
    assert phases == ["create", "create", "update", "delete", "update", "update", "update", "update", "fetch"]
    assert service.calls[2] == ("update", "c", 2)
    assert service.calls[3] == ("delete", "b", None)

    assert [s.id for s in fresh][1:3] == ["c", "a"]
    assert not any(is_local_id(s.id) for s in fresh)
    assert fresh[1].payload.amount == 7
    assert fresh[0].payload.subject == "Hello"
    assert fresh[3].payload.action_kind == "delete_subscriber"
    assert sorted(_positions(service).values()) == [1, 2, 3, 4]
    assert [_positions(service)[s.id] for s in fresh] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_nothing_changed_still_confirms_positions():
    service = _service("a", "b")
    baseline = _baseline(service)

    fresh = await CommitOrchestrator(service).commit(FLOW, list(baseline), baseline)

    assert fresh == baseline
    assert service.calls == [("update", "a", 1), ("update", "b", 2), ("fetch", None, None)]


@pytest.mark.asyncio
async def test_failure_before_any_mutation_is_not_partial():
    service = _service()
    service.fail_on("create")
    local = build_step(new_local_id(), "delay", {})

    with pytest.raises(CommitError) as exc_info:
        await CommitOrchestrator(service).commit(FLOW, [local], [])

    error = exc_info.value
    assert not isinstance(error, PartialCommitError)
    assert error.phase == "create"
    assert error.id_map == {}
    assert isinstance(error.cause, RemoteCallError)
    assert error.cause.status_code == 500
    assert service.stored_steps(FLOW) == []


@pytest.mark.asyncio
async def test_failure_after_create_is_partial_and_keeps_id_map():
    service = _service("a")
    (a,) = _baseline(service)
    local = build_step(new_local_id(), "delay", {"amount": 2})
    service.fail_on("update", "a")

    with pytest.raises(PartialCommitError) as exc_info:
        await CommitOrchestrator(service).commit(FLOW, [local, apply_patch(a, {"amount": 5})], [a])

    error = exc_info.value
    assert error.phase == "update"
    assert error.operation.step_id == "a"
    assert list(error.id_map) == [local.id]
    created_id = error.id_map[local.id]
    # the created step is not rolled back
    assert created_id in _positions(service)


@pytest.mark.asyncio
async def test_reorder_failure_after_sibling_write_is_partial():
    service = _service("a", "b")
    a, b = _baseline(service)
    service.fail_on("update", "a")

    with pytest.raises(PartialCommitError) as exc_info:
        await CommitOrchestrator(service).commit(FLOW, [b, a], [a, b])

    assert exc_info.value.phase == "reorder"
    assert exc_info.value.operation.step_id == "a"
    assert ("fetch", None, None) not in service.calls


@pytest.mark.asyncio
async def test_refresh_failure_after_mutations_is_partial():
    service = _service("a")
    baseline = _baseline(service)
    service.fail_on("fetch")

    with pytest.raises(PartialCommitError) as exc_info:
        await CommitOrchestrator(service).commit(FLOW, [], baseline)

    assert exc_info.value.phase == "refresh"
    service._failures.clear()
    assert service.stored_steps(FLOW) == []


class GatedStepService(InMemoryStepService):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def create_step(self, flow_id, step):
        await self.release.wait()
        return await super().create_step(flow_id, step)


@pytest.mark.asyncio
async def test_second_commit_for_same_flow_is_rejected():
    service = GatedStepService()
    service.add_flow(FLOW)
    service.add_flow("flow2")
    orchestrator = CommitOrchestrator(service)
    local = build_step(new_local_id(), "delay", {})

    running = asyncio.create_task(orchestrator.commit(FLOW, [local], []))
    await asyncio.sleep(0)
    assert orchestrator.is_committing(FLOW)

    with pytest.raises(CommitInProgressError):
        await orchestrator.commit(FLOW, [local], [])

    other = asyncio.create_task(orchestrator.commit("flow2", [], []))
    assert await other == []

    service.release.set()
    fresh = await running
    assert len(fresh) == 1
    assert not orchestrator.is_committing(FLOW)


@pytest.mark.asyncio
async def test_guard_is_released_after_failure():
    service = _service()
    service.fail_on("create")
    orchestrator = CommitOrchestrator(service)
    local = build_step(new_local_id(), "delay", {})

    with pytest.raises(CommitError):
        await orchestrator.commit(FLOW, [local], [])
    assert not orchestrator.is_committing(FLOW)

    service._failures.clear()
    fresh = await orchestrator.commit(FLOW, [local], [])
    assert len(fresh) == 1


class SlowStepService(InMemoryStepService):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def update_step(self, flow_id, step_id, step_data):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            await super().update_step(flow_id, step_id, step_data)
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_call_timeout_aborts_commit():
    service = SlowStepService(delay=1.0)
    service.add_flow(FLOW, steps=[{"_id": "a", "stepType": "deleteSubscriber"}])
    baseline = _baseline(service)

    with pytest.raises(CommitError) as exc_info:
        await CommitOrchestrator(service, call_timeout=0.05).commit(FLOW, baseline, baseline)

    assert exc_info.value.phase == "reorder"
    assert "timed out" in str(exc_info.value.cause)


@pytest.mark.asyncio
async def test_reorder_concurrency_is_bounded():
    service = SlowStepService(delay=0.01)
    service.add_flow(
        FLOW, steps=[{"_id": f"s{i}", "stepType": "removeSubscriber"} for i in range(10)]
    )
    baseline = _baseline(service)

    fresh = await CommitOrchestrator(service, reorder_concurrency=3).commit(
        FLOW, list(reversed(baseline)), baseline
    )

    assert service.max_active == 3
    assert [s.id for s in fresh] == [f"s{i}" for i in reversed(range(10))]


def test_reorder_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        CommitOrchestrator(InMemoryStepService(), reorder_concurrency=0)
