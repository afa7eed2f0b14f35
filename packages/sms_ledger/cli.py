# ruff: noqa: I001
"""CLI for the ``sms_ledger`` package.

Typer-based console interface over the ingestion pipeline, the correction loop
and the classifier. ``.env`` in the working directory is loaded with
``python-dotenv`` (without overriding already-set variables) before any
command runs, so ``DATABASE_URL``, ``SMS_LEDGER_DATA_DIR`` and
``SMS_LEDGER_LOG_LEVEL`` may live there.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import OptionInfo

from .logging_setup import configure_logging

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Turn bank and payment messages into categorized ledger transactions.",
)

# Module-level option object to satisfy ruff B008 (no calls in parameter defaults).
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


def _fail(message: str) -> typer.Exit:
    print(f"Error: {message}", file=sys.stderr)
    return typer.Exit(1)


def _services(database_url: str | None):
    """Build the classifier, merchant memory and pipeline for one invocation."""

    from .classifier import NaiveBayesClassifier
    from .ingest import IngestionPipeline
    from .model_store import FileModelStore
    from .persistence import MerchantMemory

    memory = MerchantMemory(database_url=database_url)
    classifier = NaiveBayesClassifier(FileModelStore(), memory=memory)
    pipeline = IngestionPipeline(classifier, database_url=database_url, memory=memory)
    return classifier, memory, pipeline


@app.command("init-db")
def init_db_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Create the ledger tables (local bootstrap; deployments use Alembic)."""

    from ledger_db.client import create_schema

    try:
        create_schema(database_url=database_url)
    except RuntimeError as e:
        raise _fail(str(e)) from e
    typer.echo("ledger schema ready")


@app.command("ingest")
def ingest_cmd(
    text: Annotated[str, typer.Argument(help="Raw message text.")],
    *,
    sender: str = typer.Option("UNKNOWN", help="Sender address or shortcode."),
    received_at: str | None = typer.Option(
        None, help="Receipt time as ISO-8601 local time (default: now)."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Run one message through the ingestion pipeline."""

    from .errors import StorageUnavailableError
    from .models import RawMessage

    try:
        when = datetime.fromisoformat(received_at) if received_at else datetime.now()
    except ValueError as e:
        raise _fail(f"invalid --received-at: {received_at!r}") from e

    _classifier, _memory, pipeline = _services(database_url)
    try:
        result = pipeline.ingest(RawMessage(sender=sender, text=text, received_at=when))
    except StorageUnavailableError as e:
        raise _fail(f"{e}; retry later") from e

    line = [f"outcome={result.outcome}"]
    if result.transaction_id is not None:
        line.append(f"id={result.transaction_id}")
    if result.prediction is not None:
        line.append(f"category={result.prediction.category!r}")
        line.append(f"confidence={result.prediction.confidence:.2f}")
    typer.echo(" ".join(line))


@app.command("replay")
def replay_cmd(
    path: Annotated[Path, typer.Argument(help="JSON-lines file of buffered messages.")],
    *,
    capacity: int = typer.Option(1000, min=1, help="Buffer capacity (oldest dropped)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Replay buffered messages ``{sender, text, receivedAtEpochMs}`` in receipt order."""

    from .ingest import MessageBuffer
    from .models import InboundMessage

    buffer = MessageBuffer(capacity)
    try:
        with open(path, encoding="utf-8") as f:
            for lineno, raw in enumerate(f, start=1):
                if not raw.strip():
                    continue
                try:
                    buffer.push(InboundMessage.model_validate_json(raw).to_raw())
                except ValidationError as e:
                    raise _fail(f"{path}:{lineno}: invalid message: {e}") from e
    except FileNotFoundError as e:
        raise _fail(f"File not found: {path}") from e

    _classifier, _memory, pipeline = _services(database_url)
    summary = pipeline.replay(buffer)
    typer.echo(
        f"processed={summary.processed} created={summary.created} merged={summary.merged} "
        f"skipped={summary.skipped} requeued={summary.requeued}"
    )
    if summary.requeued:
        raise _fail(f"storage unavailable; {summary.requeued} message(s) not ingested")


@app.command("review")
def review_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Walk transactions flagged for review and confirm or correct their category."""

    from ledger_db.client import session_scope

    from .corrections import correct_category
    from .persistence import storage_guard, transactions_needing_review
    from .term_ui import prompt_category

    classifier, memory, _pipeline = _services(database_url)
    with storage_guard("review"), session_scope(database_url=database_url) as session:
        queue = transactions_needing_review(session)

    if not queue:
        typer.echo("Nothing to review.")
        return

    categories = classifier.categories()
    reviewed = 0
    for tx in queue:
        typer.echo(
            f"\n#{tx.id} {tx.date:%Y-%m-%d %H:%M} {tx.type} {tx.amount} "
            f"{tx.description!r} [{tx.category}]"
        )
        if tx.raw_data:
            typer.echo(f"  {tx.raw_data}")
        choice = prompt_category(categories, default=tx.category)
        if choice is None:
            typer.echo("  skipped")
            continue
        correct_category(
            tx.id, choice, classifier=classifier, memory=memory, database_url=database_url
        )
        if choice not in categories:
            categories.append(choice)
        reviewed += 1
    typer.echo(f"\nReviewed {reviewed} of {len(queue)} transaction(s).")


@app.command("correct")
def correct_cmd(
    transaction_id: Annotated[int, typer.Argument(help="Ledger transaction id.")],
    category: Annotated[str, typer.Argument(help="Corrected category label.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Apply one category correction and teach the classifier."""

    from .corrections import correct_category

    classifier, memory, _pipeline = _services(database_url)
    try:
        row = correct_category(
            transaction_id,
            category,
            classifier=classifier,
            memory=memory,
            database_url=database_url,
        )
    except (LookupError, ValueError) as e:
        raise _fail(str(e)) from e
    typer.echo(f"#{row.id} category={row.category!r}")


@app.command("model-stats")
def model_stats_cmd() -> None:
    """Show classifier document count, vocabulary size and version."""

    from .classifier import NaiveBayesClassifier
    from .model_store import FileModelStore

    stats = NaiveBayesClassifier(FileModelStore()).get_stats()
    typer.echo(
        f"documents={stats.document_count} vocabulary={stats.vocabulary_size} "
        f"version={stats.version} last_updated={stats.last_updated.isoformat()}"
    )


@app.command("model-reset")
def model_reset_cmd(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    """Discard learned corrections and re-bootstrap the classifier."""

    from .classifier import NaiveBayesClassifier
    from .model_store import FileModelStore

    if not yes and not typer.confirm("Discard every learned correction?"):
        raise typer.Exit(1)
    classifier = NaiveBayesClassifier(FileModelStore())
    classifier.reset()
    stats = classifier.get_stats()
    typer.echo(f"model reset documents={stats.document_count} version={stats.version}")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    app()
