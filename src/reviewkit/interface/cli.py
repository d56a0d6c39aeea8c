"""reviewkit CLI: deck management, study sessions and review submission."""

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from reviewkit.application.config import AppConfig, resolve_config
from reviewkit.application.factory import get_services
from reviewkit.application.scheduler import quality_label
from reviewkit.domain.errors import ReviewKitError
from reviewkit.domain.scheduling.models import FlashcardRecord

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="reviewkit: SM-2 spaced repetition for flashcard decks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

deck_app = typer.Typer(help="Manage decks.", no_args_is_help=True)
app.add_typer(deck_app, name="deck")

card_app = typer.Typer(help="Manage cards.", no_args_is_help=True)
app.add_typer(card_app, name="card")

config_app = typer.Typer(help="Manage reviewkit configuration.", no_args_is_help=True)
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

UserOption = Annotated[str, typer.Option("--user", "-u", help="Acting user ID.")]


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: memory or sqlite.")
    ] = None,
    db_path: Annotated[Path | None, typer.Option(help="SQLite database file.")] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for reviewkit."""
    ctx.ensure_object(dict)
    overrides = {"backend": backend, "db_path": db_path}
    ctx.obj["overrides"] = overrides
    _configure_logging(resolve_config(overrides).log_level, verbose)


def _configure_logging(level: str | None, verbose: int) -> None:
    """Apply the configured log level; -v flags take precedence."""
    if verbose:
        level = "DEBUG" if verbose > 1 else "INFO"
    if level:
        logging.getLogger().setLevel(level)


def _config(ctx: typer.Context) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config(obj.get("overrides"))


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a service call, turning domain errors into a red message and exit 1."""
    try:
        return asyncio.run(coro)
    except ReviewKitError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from None


def _card_line(card: FlashcardRecord) -> str:
    due = card.next_review_date.isoformat() if card.next_review_date else "-"
    return (
        f"{card.id}  reps={card.repetitions}  ivl={card.interval}d  "
        f"ef={card.ease_factor:.2f}  due={due}  {card.front}"
    )


def _card_json(card: FlashcardRecord) -> dict:
    return json.loads(json.dumps(asdict(card), default=str))


# ---------------------------------------------------------------------------
# Deck / card subgroups
# ---------------------------------------------------------------------------


@deck_app.command("create")
def deck_create(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Deck title.")],
    user: UserOption,
    public: Annotated[bool, typer.Option("--public", help="Let other users study it.")] = False,
):
    """Create a new deck and print its ID."""
    decks, _ = get_services(_config(ctx))
    deck = _run(decks.create_deck(user, title, is_public=public))
    typer.echo(deck.id)


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Target deck.")],
    front: Annotated[str, typer.Argument(help="Question side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
    user: UserOption,
    hint: Annotated[str | None, typer.Option(help="Optional hint.")] = None,
):
    """Add a card to a deck you own. New cards are due immediately."""
    decks, _ = get_services(_config(ctx))
    card = _run(decks.add_card(deck_id, user, front, back, hint=hint))
    typer.echo(card.id)


# ---------------------------------------------------------------------------
# Study commands
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to study.")],
    user: UserOption,
    limit: Annotated[int | None, typer.Option(help="Maximum cards in the session.")] = None,
    include_new: Annotated[
        bool, typer.Option("--new/--no-new", help="Top up with new cards.")
    ] = True,
    shuffle: Annotated[
        bool | None, typer.Option("--shuffle/--no-shuffle", help="Shuffle the session.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Build a study session: due cards first, then new cards."""
    config = _config(ctx)
    _, reviews = get_services(config)
    session = _run(
        reviews.build_study_session(
            deck_id,
            user,
            limit=limit or config.session_limit,
            include_new=include_new,
            shuffle=config.shuffle_sessions if shuffle is None else shuffle,
        )
    )

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "cards": [_card_json(c) for c in session.cards],
                    "stats": session.stats.as_dict(),
                    "total_cards": session.total_cards,
                },
                indent=2,
            )
        )
        return

    if not session.cards:
        typer.secho("Nothing to study. You're all caught up.", fg="green")
        return
    for card in session.cards:
        typer.echo(_card_line(card))


@app.command()
def due(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to inspect.")],
    user: UserOption,
    limit: Annotated[int | None, typer.Option(help="Maximum cards to list.")] = None,
):
    """List due cards, most overdue first."""
    config = _config(ctx)
    _, reviews = get_services(config)
    session = _run(
        reviews.build_study_session(
            deck_id,
            user,
            limit=limit or config.session_limit,
            include_new=False,
            shuffle=False,
        )
    )
    if not session.cards:
        typer.secho("No cards due.", fg="green")
        return
    for card in session.cards:
        typer.echo(_card_line(card))


@app.command()
def review(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck the card belongs to.")],
    card_id: Annotated[str, typer.Argument(help="Card being reviewed.")],
    quality: Annotated[int, typer.Argument(help="Recall quality, 0 (blackout) to 5 (perfect).")],
    user: UserOption,
    response_ms: Annotated[int | None, typer.Option(help="Answer latency in ms.")] = None,
):
    """Submit a review and reschedule the card."""
    _, reviews = get_services(_config(ctx))
    outcome = _run(reviews.submit_review(deck_id, card_id, user, quality, response_ms=response_ms))
    result = outcome.result

    typer.echo(f"{quality_label(quality)} -> next review in {result.interval} day(s)")
    typer.echo(
        f"ease={result.ease_factor:.2f}  repetitions={result.repetitions}  "
        f"next={result.next_review_date.isoformat()}"
    )
    if outcome.is_public_deck:
        typer.secho("Your progress is tracked separately for this public deck.", fg="yellow")


@app.command()
def stats(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck to summarize.")],
    user: UserOption,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show deck statistics."""
    _, reviews = get_services(_config(ctx))
    overview = _run(reviews.get_deck_overview(deck_id, user))
    s = overview.stats

    if json_output:
        payload = s.as_dict()
        payload["mastered"] = overview.mastered
        payload["estimated_time"] = overview.estimated_time
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(f"Total: {s.total}  New: {s.new}  Learning: {s.learning}  Review: {s.review}")
    typer.echo(f"Due: {s.due}  (~{overview.estimated_time})  Mastered: {overview.mastered}")
    typer.echo(f"Average ease: {s.average_ease_factor:.2f}")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("reviewkit.server:app", host=host, port=port, reload=reload)
