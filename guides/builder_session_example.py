"""Simple example showing a builder session from first edit to save."""

import asyncio

from flowsync import BuilderSession, get_draft_store, get_step_service
from flowsync.service import InMemoryStepService


async def main():
    """Edit a flow locally, then save it in one commit."""
    # Initialize the Step Service and the draft medium from flowsync.yaml / env
    service = get_step_service()
    drafts = get_draft_store()
    if isinstance(service, InMemoryStepService):
        service.add_flow("demo-flow", name="Welcome series")

    async with service:
        session = BuilderSession("demo-flow", service, drafts)
        await session.load()

        # Local edits are written through to the draft store only
        await session.add_step("delay", amount=1, unit="days")
        hook = await session.add_step(
            "action",
            action_kind="http_request",
            url="https://hooks.example.com/welcome",
            headers="X-Source: flowsync",
        )
        await session.edit_step(hook.id, retry_attempts=3)
        await session.stage_rename("Welcome series v2")

        print(f"📝 Unsaved changes: {session.is_dirty}")

        steps = await session.save()

    print("✅ Flow saved successfully!")
    for position, step in enumerate(steps, start=1):
        print(f"🔗 {position}. {step.kind} {step.payload.title} ({step.id})")


if __name__ == "__main__":
    asyncio.run(main())
