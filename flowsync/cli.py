"""Command line interface for inspecting and saving flow drafts."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import typer

from flowsync import BuilderSession, CommitOrchestrator, get_draft_store, get_step_service, load_config
from flowsync.codec import decode_sequence, encode
from flowsync.contracts import Step
from flowsync.errors import FlowSyncError, PartialCommitError

app = typer.Typer(help="CLI for flowsync step drafts")

# Command groups
steps_app = typer.Typer(help="Commands for reading remote steps")
draft_app = typer.Typer(help="Commands for managing unsaved drafts")

app.add_typer(steps_app, name="steps")
app.add_typer(draft_app, name="draft")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Flowsync CLI entry point."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _describe(position: int, step: Step) -> str:
    wire = encode(step)
    return f"{position}. {wire['stepType']}\t{wire['title']}\t{step.id}"


def _echo_steps(steps: List[Step]) -> None:
    for position, step in enumerate(steps, start=1):
        typer.echo(_describe(position, step))


@steps_app.command("list")
def steps_list(flow_id: str) -> None:
    """
    List the steps stored remotely for a flow, in execution order.

    Example:
        flowsync steps list 64f1c0ffee
        # Output: 1. waitSubscriber    Wait    64f1c0ffee01
    """
    service = get_step_service()

    async def _fetch() -> List[Step]:
        async with service:
            return decode_sequence(await service.fetch_steps(flow_id))

    try:
        steps = asyncio.run(_fetch())
    except FlowSyncError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)
    if not steps:
        typer.echo("No steps found")
        return
    _echo_steps(steps)


@draft_app.command("show")
def draft_show(flow_id: str) -> None:
    """Show the unsaved draft stored for a flow."""
    store = get_draft_store()
    draft = asyncio.run(store.read(flow_id))
    if draft is None:
        typer.echo("No draft found")
        raise typer.Exit(code=1)
    typer.echo(f"Draft for {flow_id} (updated {draft.updated_at.isoformat()})")
    if draft.automation_patch:
        typer.echo(f"Header changes: {draft.automation_patch}")
    if draft.steps_draft is not None:
        _echo_steps(draft.steps_draft)


@draft_app.command("discard")
def draft_discard(flow_id: str) -> None:
    """Drop the unsaved draft stored for a flow."""
    store = get_draft_store()
    asyncio.run(store.clear(flow_id))
    typer.echo(f"Discarded draft for {flow_id}")


@draft_app.command("save")
def draft_save(flow_id: str) -> None:
    """
    Commit the stored draft of a flow to the Step Service.

    Loads the remote steps, re-applies the draft on top and saves the result.
    On failure the draft is kept so the command can be retried.
    """
    config = load_config()
    service = get_step_service()
    store = get_draft_store()
    orchestrator = CommitOrchestrator(
        service,
        call_timeout=config.commit.call_timeout,
        reorder_concurrency=config.commit.reorder_concurrency,
    )
    session = BuilderSession(flow_id, service, store, orchestrator=orchestrator)

    async def _save() -> Optional[List[Step]]:
        async with service:
            await session.load()
            if not session.is_dirty:
                return None
            return await session.save()

    try:
        steps = asyncio.run(_save())
    except PartialCommitError as e:
        typer.echo(f"Partially saved: {e}")
        raise typer.Exit(code=1)
    except FlowSyncError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)
    if steps is None:
        typer.echo("Nothing to save")
        return
    typer.echo(f"Saved {len(steps)} steps for {flow_id}")
    _echo_steps(steps)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
