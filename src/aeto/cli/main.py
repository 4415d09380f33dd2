"""
aeto CLI

Read-only inspection of tenant event streams stored in a SQLite chunk
store. Useful to see why a tenant looks the way it does: every view the
controllers act on can be replayed here from the same stream.

Usage:
    aeto streams --db aeto.db
    aeto events aeto-acme --db aeto.db
    aeto replay aeto-acme --db aeto.db
    aeto config
"""

import json
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from aeto.kernel.chunk_store import SQLiteChunkStore
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import AetoError
from aeto.kernel.logging import configure_logging
from aeto.kernel.replay import replay as replay_events
from aeto.kernel.repository import Repository
from aeto.kernel.serializer import JsonSerializer
from aeto.kernel.stream import Stream
from aeto.tenant.events import tenant_events
from aeto.tenant.models import State
from aeto.tenant.projections import (
    OrphanDetector,
    RequeueDecisionBuilder,
    ResourceSetBuilder,
    TenantStatusBuilder,
)

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="WARNING")

app = typer.Typer(
    name="aeto",
    help="aeto - inspect event-sourced tenant streams",
    add_completion=False,
)

DEFAULT_DB = Path("aeto.db")


def get_store(db_path: Optional[Path] = None) -> SQLiteChunkStore:
    """Open an existing chunk store"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        raise typer.Exit(1)
    return SQLiteChunkStore(db)


def load_stream(stream_id: str, db_path: Optional[Path]) -> Stream:
    repository = Repository(get_store(db_path), JsonSerializer(*tenant_events()))
    try:
        stream = repository.get(stream_id)
    except AetoError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if len(stream) == 0:
        typer.echo(f"Error: Stream not found: {stream_id}", err=True)
        raise typer.Exit(1)
    return stream


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command()
def streams(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List stored event streams"""
    store = get_store(db)
    stream_ids = store.list_streams()

    if json_output:
        echo_json(
            [{"stream_id": s, "chunks": len(store.list_chunks(s))} for s in stream_ids]
        )
        return

    typer.echo(f"Streams: {len(stream_ids)}")
    for stream_id in stream_ids:
        typer.echo(f"  {stream_id} ({len(store.list_chunks(stream_id))} chunks)")


@app.command()
def events(
    stream_id: Annotated[str, typer.Argument(help="Stream id (namespace-name)")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show every event of a stream in sequence order"""
    stream = load_stream(stream_id, db)

    if json_output:
        echo_json(
            [
                {"type": e.event_type(), "data": e.payload()}
                for e in stream.events()
            ]
        )
        return

    typer.echo(f"Stream {stream.id}: {len(stream)} commits, {stream.length()} events")
    for commit in stream.commits():
        typer.echo(f"\n  {commit.id} (version {commit.sequence}, {commit.timestamp})")
        for event in sorted(commit.events, key=lambda e: e.sequence):
            typer.echo(f"    {event.sequence:>4}  {event.event_type()}")


@app.command()
def replay(
    stream_id: Annotated[str, typer.Argument(help="Stream id (namespace-name)")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Replay a stream and print every projection as JSON"""
    stream = load_stream(stream_id, db)
    config = OperatorConfig.from_env()

    state = State()
    resource_sets = ResourceSetBuilder()
    status = TenantStatusBuilder()
    orphans = OrphanDetector()
    requeue = RequeueDecisionBuilder(config.generation_failure_backoff_seconds)

    for consumer in (state, resource_sets, status, orphans, requeue):
        result = replay_events(consumer, stream.events())
        if result.failed:
            typer.echo(f"Error: replay failed: {result.error}", err=True)
            raise typer.Exit(1)

    echo_json(
        {
            "stream_id": stream.id,
            "version": len(stream.commits()),
            "events": stream.length(),
            "state": state.model_dump(mode="json", by_alias=True),
            "resource_sets": {
                name: rs.to_manifest()
                for name, rs in sorted(resource_sets.resource_sets.items())
            },
            "status": status.status.to_manifest(),
            "orphans": {
                "delete_allowed": orphans.delete_allowed,
                "active": [r.id for r in orphans.active],
                "deleted": [r.id for r in orphans.deleted],
            },
            "requeue": {
                "requeue": requeue.result.requeue,
                "requeue_in": requeue.result.requeue_in,
                "reason": requeue.reason,
            },
        }
    )


@app.command()
def config() -> None:
    """Show the operator configuration read from AETO_* variables"""
    echo_json(OperatorConfig.from_env().model_dump())


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
