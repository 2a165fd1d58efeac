"""
Memoria: terminal study CLI.

A Rich terminal interface for SM-2 spaced repetition with learning steps.

Commands:
- memoria decks        - List decks with due counts
- memoria create-deck  - Create an empty deck
- memoria add          - Add question/answer cards to a deck
- memoria study        - Start a study session
- memoria stats        - Show due counts for a deck
- memoria reset        - Make every card in a deck due again
- memoria delete-deck  - Delete a deck and its cards
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from memoria.config import Settings, get_settings
from memoria.db.store import CardStore, DeckStats
from memoria.errors import MemoriaError, PersistenceError, ValidationError
from memoria.scheduling import RATING_CHOICES, Outcome, SessionCard, SessionQueue, SessionSummary
from memoria.utils import format_time_until_due, parse_card_pairs

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="memoria",
    help="Memoria: spaced repetition flashcards in the terminal",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

RATING_STYLES = {
    0: "bold red",
    3: "bold yellow",
    4: "bold green",
    5: "bold bright_green",
}

OUTCOME_MESSAGES = {
    Outcome.RETRY: "[red]Again[/red] - back to the first learning step",
    Outcome.ADVANCE: "[yellow]Learning[/yellow] - next step",
    Outcome.GRADUATE: "[green]Graduated[/green]",
    Outcome.EASY: "[bright_green]Easy[/bright_green] - graduated early",
    Outcome.REVIEW_PASS: "[green]Reviewed[/green]",
    Outcome.LAPSE: "[red]Lapsed[/red] - relearning",
}


def _open_store(settings: Settings) -> CardStore:
    return CardStore(
        settings.database_url,
        config=settings.get_scheduler_config(),
        echo=settings.database_echo,
    )


# =============================================================================
# Display Helpers
# =============================================================================


def display_card_front(card: SessionCard, studied: int, remaining: int) -> None:
    """Display the question side of a card."""
    phase = "[yellow]learning[/yellow]" if card.is_learning else "[cyan]review[/cyan]"
    header = f"Card {studied + 1}  |  {phase}  |  {remaining} in session"

    console.print(Panel(
        card.card.question,
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_card_back(card: SessionCard) -> None:
    """Display the answer side of a card."""
    console.print(Panel(
        card.card.answer,
        title="Answer",
        title_align="left",
        border_style="green",
        padding=(1, 2),
    ))


def _ask_rating() -> int:
    """Ask for one of the offered ratings."""
    console.print("\n[dim]How well did you know this?[/dim]")
    for choice in RATING_CHOICES:
        style = RATING_STYLES.get(choice.quality, "bold")
        console.print(f"  [{style}]{choice.quality}[/{style}] = {choice.label}: {choice.description}")

    return IntPrompt.ask("Rating", choices=[str(choice.quality) for choice in RATING_CHOICES])


def _display_session_summary(summary: SessionSummary, pending: int) -> None:
    """Display end-of-session summary."""
    lines = [
        "[bold]Session Complete![/bold]" if pending == 0 else "[bold]Session Paused[/bold]",
        "",
        f"Cards studied: {summary.cards_studied}",
        f"Correct: {summary.cards_correct}  |  Incorrect: {summary.cards_incorrect}",
        f"Accuracy: {summary.accuracy * 100:.1f}%",
        f"Graduated: {len(summary.graduated)}",
    ]
    if pending:
        lines.append(f"\n[yellow]{pending} card(s) still in learning[/yellow]")

    console.print("\n")
    console.print(Panel("\n".join(lines), title="Summary", border_style="green"))


def _stats_table(stats: DeckStats) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Total cards", str(stats.total_cards))
    table.add_row("Due now", str(stats.due_cards))
    table.add_row("New", str(stats.new_cards))
    table.add_row("In review", str(stats.review_cards))
    next_due = format_time_until_due(stats.next_due_time) if stats.next_due_time else "-"
    table.add_row("Next due", next_due)
    return table


# =============================================================================
# Study Loop
# =============================================================================


async def run_session(queue: SessionQueue, wait: bool) -> SessionSummary:
    """
    Drive a study session until nothing is left to present.

    Args:
        queue: Loaded session queue
        wait: Sleep through learning delays instead of ending the session

    Returns:
        The session summary
    """
    while True:
        card = queue.present()

        if card is None:
            status = queue.status()
            if not status.waiting or not wait:
                break

            delay = max(0.0, (status.next_available_at - queue.now()).total_seconds())
            with console.status(
                f"[dim]{status.pending} card(s) in learning, next in "
                f"{format_time_until_due(status.next_available_at)}[/dim]"
            ):
                await asyncio.sleep(delay)
            continue

        display_card_front(card, queue.summary.cards_studied, queue.active_count)
        Prompt.ask("\n[dim]Press Enter to reveal[/dim]", default="", show_default=False)
        display_card_back(card)

        quality = _ask_rating()

        try:
            transition = await queue.rate(quality)
        except PersistenceError as e:
            console.print(f"\n[red]Could not save progress:[/red] {e}")
            console.print("[dim]The card stays in this session.[/dim]")
            continue

        console.print(OUTCOME_MESSAGES[transition.outcome])
        if transition.update is not None and transition.outcome.leaves_session:
            console.print(
                f"[dim]Next review in {transition.update.interval_days} day(s)[/dim]"
            )

    return queue.summary


# =============================================================================
# Commands
# =============================================================================


@app.command()
def study(
    deck_id: int = typer.Argument(..., help="Deck to study"),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Wait for learning cards instead of ending when none are available",
    ),
) -> None:
    """
    Start an interactive study session.

    Presents due cards, runs learning steps for new and lapsed cards, and
    saves the SM-2 schedule as cards graduate.
    """
    settings = get_settings()
    store = _open_store(settings)

    deck = store.get_deck(deck_id)
    if deck is None:
        console.print(f"[red]Deck {deck_id} not found[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold cyan]Memoria[/bold cyan] - {deck.title}", style="bold")
    console.print("=" * 40)

    queue = SessionQueue(
        store,
        deck_id,
        config=settings.get_scheduler_config(),
        queue_config=settings.get_queue_config(),
    )

    async def run() -> None:
        with console.status("[dim]Loading due cards...[/dim]"):
            loaded = await queue.load()

        if queue.deck_empty:
            console.print("\n[yellow]This deck has no cards yet.[/yellow]")
            console.print("Add some with: memoria add")
            return

        if loaded == 0:
            stats = store.get_deck_stats(deck_id)
            console.print("\n[green]All caught up![/green]")
            if stats.next_due_time:
                console.print(f"Next card due in {format_time_until_due(stats.next_due_time)}.")
            return

        console.print(f"\n[bold]Session: {loaded} due cards[/bold]\n")

        try:
            summary = await run_session(queue, wait)
        except KeyboardInterrupt:
            console.print("\n\n[yellow]Session interrupted.[/yellow]")
            summary = queue.summary

        _display_session_summary(summary, queue.status().pending)

    try:
        asyncio.run(run())
    except MemoriaError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()


@app.command()
def decks() -> None:
    """List decks with their due counts."""
    store = _open_store(get_settings())
    try:
        rows = store.list_decks()
    finally:
        store.close()

    if not rows:
        console.print("[yellow]No decks yet.[/yellow] Create one with: memoria create-deck")
        return

    table = Table(title="Decks")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Cards", justify="right")
    table.add_column("Due", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Next due")

    for deck, stats in rows:
        due_style = "bold yellow" if stats.due_cards else "dim"
        next_due = format_time_until_due(stats.next_due_time) if stats.next_due_time else "-"
        table.add_row(
            str(deck.id),
            deck.title,
            str(stats.total_cards),
            f"[{due_style}]{stats.due_cards}[/{due_style}]",
            str(stats.new_cards),
            next_due,
        )

    console.print(table)


@app.command("create-deck")
def create_deck(title: str = typer.Argument(..., help="Deck title")) -> None:
    """Create an empty deck."""
    store = _open_store(get_settings())
    try:
        deck = store.create_deck(title)
    finally:
        store.close()

    console.print(f"[green]Created deck {deck.id}: {deck.title}[/green]")


@app.command()
def add(
    deck_id: int = typer.Argument(..., help="Deck to add cards to"),
    pairs: Optional[list[str]] = typer.Argument(
        None,
        help="Cards as 'question :: answer'",
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file", "-f",
        help="Text file of 'question :: answer' lines or a JSON card list",
    ),
) -> None:
    """Add question/answer cards to a deck (due immediately)."""
    try:
        parsed = parse_card_pairs("\n".join(pairs or []))
        if file is not None:
            parsed += parse_card_pairs(file.read_text(encoding="utf-8"))
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not parsed:
        console.print("[yellow]No cards given.[/yellow]")
        raise typer.Exit(1)

    store = _open_store(get_settings())
    try:
        cards = store.add_cards(deck_id, parsed)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    console.print(f"[green]Added {len(cards)} cards to deck {deck_id}[/green]")


@app.command()
def stats(deck_id: int = typer.Argument(..., help="Deck to inspect")) -> None:
    """Show due counts for a deck."""
    store = _open_store(get_settings())
    try:
        deck = store.get_deck(deck_id)
        if deck is None:
            console.print(f"[red]Deck {deck_id} not found[/red]")
            raise typer.Exit(1)
        deck_stats = store.get_deck_stats(deck_id)
    finally:
        store.close()

    console.print(f"\n[bold cyan]{deck.title}[/bold cyan]")
    console.print("=" * 40)
    console.print(_stats_table(deck_stats))


@app.command()
def reset(
    deck_id: int = typer.Argument(..., help="Deck to reset"),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Make every card in a deck due now with fresh scheduling data."""
    if not confirm and not Confirm.ask(
        f"Reset all scheduling data in deck {deck_id}? This cannot be undone!", default=False
    ):
        raise typer.Exit(0)

    store = _open_store(get_settings())
    try:
        count = store.reset_deck(deck_id)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    console.print(f"[green]Reset {count} cards in deck {deck_id}[/green]")


@app.command("delete-deck")
def delete_deck(
    deck_id: int = typer.Argument(..., help="Deck to delete"),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Delete a deck with all of its cards."""
    if not confirm and not Confirm.ask(f"Delete deck {deck_id} and all its cards?", default=False):
        raise typer.Exit(0)

    store = _open_store(get_settings())
    try:
        store.delete_deck(deck_id)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    console.print(f"[green]Deleted deck {deck_id}[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="5 MB",
            retention=3,
        )


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
