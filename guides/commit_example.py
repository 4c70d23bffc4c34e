"""Example committing a reordered step list without a builder session."""

import asyncio

from flowsync import CommitOrchestrator, PartialCommitError, decode_sequence, diff_steps
from flowsync.service import InMemoryStepService


async def main():
    service = InMemoryStepService()
    service.add_flow(
        "demo-flow",
        steps=[
            {"_id": "first", "stepType": "waitSubscriber", "waitDuration": 2, "waitUnit": "hours"},
            {"_id": "second", "stepType": "sendMail", "sendMailSubject": "Hello"},
        ],
    )
    baseline = decode_sequence(await service.fetch_steps("demo-flow"))
    current = list(reversed(baseline))

    diff = diff_steps(current, baseline)
    print(f"📋 Reordered: {diff.reordered} (content changes: {not diff.is_empty})")

    orchestrator = CommitOrchestrator(service, call_timeout=5.0)
    try:
        fresh = await orchestrator.commit("demo-flow", current, baseline)
    except PartialCommitError as e:
        print(f"⚠️ Commit stopped in {e.phase} phase; created so far: {e.id_map}")
        return

    print(f"✅ New order: {[step.id for step in fresh]}")


if __name__ == "__main__":
    asyncio.run(main())
