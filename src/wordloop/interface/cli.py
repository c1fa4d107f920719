"""wordloop CLI: diagnostics for the scheduler core and its SQLite store."""

import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated

import typer

from wordloop.application.config import resolve_config
from wordloop.domain.models import CardProgress, StudyDirection

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="wordloop: vocabulary learning/review scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage wordloop configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for wordloop."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def preview(
    repetitions: Annotated[int, typer.Option(help="Consecutive passing recalls.")] = 0,
    ease: Annotated[float, typer.Option(help="Current ease factor.")] = 2.5,
    interval: Annotated[float, typer.Option(help="Current interval in days.")] = 0.0,
    review: Annotated[
        bool, typer.Option("--review", help="Treat the card as graduated (review phase).")
    ] = False,
):
    """Show the [bold]Hard / Medium / Easy[/bold] button previews for a card."""
    from wordloop.application.factory import build_engine

    config = resolve_config()
    engine = build_engine(config)
    now = datetime.now(timezone.utc)
    card = CardProgress(
        card_id=0,
        direction=StudyDirection.EN_TO_TR,
        repetitions=repetitions,
        ease_factor=ease,
        interval_days=interval,
        next_review_at=now,
        learning_phase=not review,
    )
    texts = engine.preview_texts(card, now=now)
    typer.echo(f"Hard:   {texts.hard}")
    typer.echo(f"Medium: {texts.medium}")
    typer.echo(f"Easy:   {texts.easy}")


@app.command()
def due(
    direction: Annotated[
        StudyDirection, typer.Option(help="Study direction to query.")
    ] = StudyDirection.EN_TO_TR,
    limit: Annotated[int | None, typer.Option(help="Maximum cards to list.")] = None,
    database: Annotated[
        Path | None, typer.Option(help="SQLite database path. Defaults to config.")
    ] = None,
):
    """List cards that would be pulled into the next session."""
    from wordloop.infrastructure.adapters.sqlite_store import SqliteStore

    config = resolve_config({"database_path": database})
    if not config.database_path.exists():
        typer.secho(f"No database at {config.database_path}", fg="yellow")
        raise typer.Exit(1)

    async def run():
        async with SqliteStore(config.database_path) as store:
            return await store.query_due(direction, limit or config.session_limit)

    rows = asyncio.run(run())
    if not rows:
        typer.secho("Nothing due.", fg="green")
        return

    now = datetime.now(timezone.utc)
    for row in rows:
        if row.learning_phase:
            where = f"learning (position {row.session_position})"
        else:
            overdue = now - row.next_review_at
            where = f"review (overdue {overdue // timedelta(hours=1)}h)"
        typer.echo(f"{row.card_id}\t{row.repetitions} reps\t{where}")


@config_app.command("show")
def config_show():
    """Print the resolved configuration as JSON."""
    config = resolve_config()
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    app()
