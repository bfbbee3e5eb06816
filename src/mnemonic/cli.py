"""
mnemonic: spaced-repetition study from the terminal.

A Rich terminal interface over the scheduling engine.

Commands:
- mnemonic add        - Add a basic, cloze or formula card
- mnemonic cards      - List and search cards
- mnemonic edit       - Edit a card's text, topics or tags
- mnemonic rm         - Delete a card
- mnemonic topic-add  - Create a topic
- mnemonic topic-edit - Rename, move or re-relate a topic
- mnemonic topic-rm   - Delete a topic and its subtopics
- mnemonic topics     - Show the topic tree
- mnemonic due        - Show what is due now
- mnemonic study      - Start (or resume) a review session
- mnemonic stats      - Show today's stats, streak and retention
"""
from __future__ import annotations

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.tree import Tree

from loguru import logger

from .config import Settings, get_settings
from .deck import cloze_cards, filter_cards, formula_cards, new_card, update_card
from .errors import InvalidArgumentError
from .models import Card, CardState, CardType, SessionMode, SessionStats, utcnow
from .queue_builder import QueueBuilder
from .runner import ReviewRunner
from .scheduler import MemoryScheduler, format_interval, get_state_name
from .stats import calculate_streak, retention_rate
from .store import SqliteStore
from .topics import (
    DEFAULT_TOPIC_COLOR,
    TopicNode,
    build_topic_tree,
    new_topic,
    topic_path,
    update_topic,
)


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="mnemonic",
    help="mnemonic: spaced-repetition study CLI",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "remembered": "bold green",
    "forgot": "bold red",
    "info": "bold cyan",
    "dim": "dim",
    "card_type": {
        CardType.BASIC: "blue",
        CardType.CLOZE: "magenta",
        CardType.FORMULA: "yellow",
    },
}


def style_card_type(card_type: CardType) -> str:
    """Get styled card type string."""
    color = STYLES["card_type"].get(card_type, "white")
    return f"[{color}]{card_type.value}[/{color}]"


# =============================================================================
# Helpers
# =============================================================================

def configure_logging(settings: Settings) -> None:
    """Route loguru to stderr (and optionally a rotating file)."""
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
            rotation="10 MB",
            retention=5,
        )


def _open_store() -> SqliteStore:
    return SqliteStore(get_settings().db_path)


def _resolve_topics(store: SqliteStore, refs: list[str]) -> list[str]:
    """Map topic ids or (case-insensitive) names to ids; exit on unknown ones."""
    topics = store.get_all_topics()
    ids = {t.id for t in topics}
    by_name = {t.name.lower(): t.id for t in topics}

    resolved = []
    for ref in refs:
        if ref in ids:
            resolved.append(ref)
        elif ref.lower() in by_name:
            resolved.append(by_name[ref.lower()])
        else:
            console.print(f"[red]Unknown topic: {escape(ref)}[/red]")
            raise typer.Exit(1)
    return resolved


def _resolve_card(store: SqliteStore, ref: str) -> Card:
    """Find a card by id or unique id prefix; exit when there is no single match."""
    card = store.get_card_by_id(ref)
    if card is not None:
        return card

    matches = [c for c in store.get_all_cards() if c.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]

    if matches:
        console.print(f"[red]Card id prefix is ambiguous: {escape(ref)}[/red]")
    else:
        console.print(f"[red]Unknown card: {escape(ref)}[/red]")
    raise typer.Exit(1)


def display_card_front(card: Card, index: int, total: int) -> None:
    """Display the front of a card."""
    header = (
        f"Card {index}/{total}  |  {style_card_type(card.type)}  |  "
        f"{get_state_name(card.state)}"
    )
    console.print(Panel(
        escape(card.front),
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_card_back(card: Card) -> None:
    """Display the back of a card."""
    console.print(Panel(escape(card.back), border_style="dim", padding=(1, 2)))


def _display_session_summary(stats: SessionStats) -> None:
    """Display end-of-session summary."""
    console.print("\n")
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Duration: {stats.total_time_ms / 60000:.1f} minutes\n"
        f"Cards reviewed: {stats.cards_reviewed}\n"
        f"Remembered: {stats.cards_remembered}  Forgot: {stats.cards_forgot}\n"
        f"Accuracy: {stats.accuracy * 100:.1f}%",
        title="Summary",
        border_style="green",
    ))


def _add_tree_nodes(branch: Tree, nodes: list[TopicNode]) -> None:
    for node in nodes:
        label = f"[{node.topic.color}]{escape(node.topic.name)}[/] [dim]{node.topic.id[:8]}[/dim]"
        child = branch.add(label)
        _add_tree_nodes(child, node.children)


# =============================================================================
# Commands: Cards
# =============================================================================

@app.command()
def add(
    front: str = typer.Argument(..., help="Prompt text, or the cloze/formula template"),
    back: str = typer.Argument("", help="Answer text (basic cards only)"),
    topic: list[str] = typer.Option(
        ...,
        "--topic", "-t",
        help="Topic name or id (repeatable)",
    ),
    card_type: CardType = typer.Option(
        CardType.BASIC,
        "--type",
        help="Card type",
    ),
    tag: Optional[list[str]] = typer.Option(
        None,
        "--tag",
        help="Tag (repeatable)",
    ),
) -> None:
    """
    Add cards.

    Cloze templates use {{c1::text}} or {{c1::text::hint}} and yield one
    card per deletion. Formula templates use {{f::name::formula}} and
    yield a forward and a reverse card.
    """
    store = _open_store()
    try:
        topic_ids = _resolve_topics(store, topic)
        tags = tag or []

        try:
            if card_type is CardType.CLOZE:
                cards = cloze_cards(front, topic_ids, tags)
            elif card_type is CardType.FORMULA:
                cards = formula_cards(front, topic_ids, tags)
            else:
                if not back:
                    console.print("[red]Basic cards need a BACK argument[/red]")
                    raise typer.Exit(1)
                cards = [new_card(CardType.BASIC, front, back, topic_ids, tags)]
        except InvalidArgumentError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)

        for card in cards:
            store.upsert_card(card)

        console.print(f"[green]Added {len(cards)} {card_type.value} card(s)[/green]")
    finally:
        store.close()


@app.command("cards")
def list_cards(
    query: str = typer.Argument("", help="Text to search for in front or back"),
    topic: Optional[list[str]] = typer.Option(
        None,
        "--topic", "-t",
        help="Only list cards in this topic (repeatable)",
    ),
) -> None:
    """List cards, optionally searching text and filtering by topic."""
    store = _open_store()
    try:
        topic_ids = _resolve_topics(store, topic or [])
        all_topics = store.get_all_topics()
        cards = filter_cards(store.get_all_cards(), query, topic_ids)

        if not cards:
            console.print("[dim]No cards match.[/dim]")
            raise typer.Exit(0)

        table = Table(title=f"Cards ({len(cards)})", show_lines=False)
        table.add_column("ID", style="dim")
        table.add_column("Type")
        table.add_column("State")
        table.add_column("Front", max_width=50)
        table.add_column("Topics", style="cyan")

        for card in cards:
            paths = [topic_path(tid, all_topics) or tid[:8] for tid in card.topic_ids]
            table.add_row(
                card.id[:8],
                style_card_type(card.type),
                get_state_name(card.state),
                escape(card.front),
                escape(", ".join(paths)),
            )

        console.print(table)
    finally:
        store.close()


@app.command()
def edit(
    card_ref: str = typer.Argument(..., metavar="CARD", help="Card id or unique id prefix"),
    front: Optional[str] = typer.Option(None, "--front", help="New prompt text"),
    back: Optional[str] = typer.Option(None, "--back", help="New answer text"),
    topic: Optional[list[str]] = typer.Option(
        None,
        "--topic", "-t",
        help="Replacement topic name or id (repeatable)",
    ),
    tag: Optional[list[str]] = typer.Option(
        None,
        "--tag",
        help="Replacement tag (repeatable)",
    ),
) -> None:
    """Edit a card's text, topics or tags (review history is kept)."""
    store = _open_store()
    try:
        card = _resolve_card(store, card_ref)
        if front is None and back is None and not topic and not tag:
            console.print("[yellow]Nothing to change[/yellow]")
            raise typer.Exit(1)

        topic_ids = _resolve_topics(store, topic) if topic else None
        updated = update_card(card, front=front, back=back, topic_ids=topic_ids, tags=tag or None)
        store.upsert_card(updated)

        logger.info(f"Card {card.id[:8]} edited")
        console.print(f"[green]Updated card {card.id[:8]}[/green]")
    finally:
        store.close()


@app.command("rm")
def remove_card(
    card_ref: str = typer.Argument(..., metavar="CARD", help="Card id or unique id prefix"),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Delete a card."""
    store = _open_store()
    try:
        card = _resolve_card(store, card_ref)

        if not confirm and not Confirm.ask(f"Delete card '{escape(card.front)}'?", default=False):
            raise typer.Exit(0)

        store.delete_card(card.id)
        logger.info(f"Card {card.id[:8]} deleted")
        console.print(f"[green]Deleted card {card.id[:8]}[/green]")
    finally:
        store.close()


# =============================================================================
# Commands: Topics
# =============================================================================

@app.command("topic-add")
def topic_add(
    name: str = typer.Argument(..., help="Topic name"),
    parent: Optional[str] = typer.Option(
        None,
        "--parent", "-p",
        help="Parent topic name or id",
    ),
    related: Optional[list[str]] = typer.Option(
        None,
        "--related", "-r",
        help="Related topic name or id (repeatable)",
    ),
    color: str = typer.Option(DEFAULT_TOPIC_COLOR, "--color", help="Display color"),
) -> None:
    """Create a topic."""
    store = _open_store()
    try:
        parent_id = _resolve_topics(store, [parent])[0] if parent else None
        related_ids = _resolve_topics(store, related or [])
        existing = store.get_all_topics()

        try:
            topic = new_topic(
                name,
                existing,
                parent_id=parent_id,
                color=color,
                related_topic_ids=related_ids,
            )
        except InvalidArgumentError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)

        store.upsert_topic(topic)
        path = topic_path(topic.id, [*existing, topic])
        console.print(f"[green]Created topic {escape(path)}[/green] [dim]({topic.id})[/dim]")
    finally:
        store.close()


@app.command("topic-edit")
def topic_edit(
    topic_ref: str = typer.Argument(..., metavar="TOPIC", help="Topic name or id"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New name"),
    parent: Optional[str] = typer.Option(
        None,
        "--parent", "-p",
        help="New parent topic name or id",
    ),
    root: bool = typer.Option(False, "--root", help="Move the topic to the top level"),
    related: Optional[list[str]] = typer.Option(
        None,
        "--related", "-r",
        help="Replacement related topic name or id (repeatable)",
    ),
    clear_related: bool = typer.Option(False, "--clear-related", help="Remove all related topics"),
    color: Optional[str] = typer.Option(None, "--color", help="New display color"),
) -> None:
    """Rename, move or re-relate a topic."""
    store = _open_store()
    try:
        topic_id = _resolve_topics(store, [topic_ref])[0]
        existing = store.get_all_topics()
        topic = next(t for t in existing if t.id == topic_id)

        if parent and root:
            console.print("[red]Use either --parent or --root, not both[/red]")
            raise typer.Exit(1)

        changes: dict = {"name": name, "color": color}
        if root:
            changes["parent_id"] = None
        elif parent:
            changes["parent_id"] = _resolve_topics(store, [parent])[0]
        if clear_related:
            changes["related_topic_ids"] = []
        elif related:
            changes["related_topic_ids"] = _resolve_topics(store, related)

        try:
            updated = update_topic(topic, existing, **changes)
        except InvalidArgumentError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)

        store.upsert_topic(updated)
        path = topic_path(updated.id, [t if t.id != updated.id else updated for t in existing])
        logger.info(f"Topic {topic.id[:8]} edited")
        console.print(f"[green]Updated topic {escape(path)}[/green]")
    finally:
        store.close()


@app.command("topic-rm")
def topic_rm(
    topic: str = typer.Argument(..., help="Topic name or id"),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Delete a topic and all of its subtopics (cards are kept)."""
    store = _open_store()
    try:
        topic_id = _resolve_topics(store, [topic])[0]

        if not confirm and not Confirm.ask(f"Delete '{topic}' and its subtopics?", default=False):
            raise typer.Exit(0)

        deleted = store.delete_topic(topic_id)
        console.print(f"[green]Deleted {len(deleted)} topic(s)[/green]")
    finally:
        store.close()


@app.command()
def topics() -> None:
    """Show the topic tree."""
    store = _open_store()
    try:
        roots = build_topic_tree(store.get_all_topics())

        if not roots:
            console.print("[dim]No topics yet. Create one with `mnemonic topic-add`.[/dim]")
            raise typer.Exit(0)

        tree = Tree("[bold cyan]Topics[/bold cyan]")
        _add_tree_nodes(tree, roots)
        console.print(tree)
    finally:
        store.close()


# =============================================================================
# Commands: Review
# =============================================================================

@app.command()
def due(
    topic: Optional[list[str]] = typer.Option(
        None,
        "--topic", "-t",
        help="Only count cards in this topic (repeatable)",
    ),
) -> None:
    """Show cards due now by lifecycle state."""
    store = _open_store()
    try:
        topic_ids = _resolve_topics(store, topic or [])
        breakdown = QueueBuilder(store).get_due_breakdown(topic_ids)

        table = Table(show_header=False, box=None)
        table.add_column("State", style="dim")
        table.add_column("Cards", style="bold")

        table.add_row("Learning", str(breakdown.learning))
        table.add_row("Review", str(breakdown.review))
        table.add_row("New", str(breakdown.new))

        console.print("\n[bold cyan]Due Now[/bold cyan]")
        console.print(table)
    finally:
        store.close()


@app.command()
def study(
    mode: SessionMode = typer.Option(
        SessionMode.STANDARD,
        "--mode", "-m",
        help="Session mode",
    ),
    topic: Optional[list[str]] = typer.Option(
        None,
        "--topic", "-t",
        help="Only study cards in this topic (repeatable)",
    ),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Resume the last unfinished session",
    ),
) -> None:
    """
    Start an interactive review session.

    Answer each card with y (remembered) or n (forgot); q ends the
    session early.
    """
    settings = get_settings()
    store = _open_store()
    try:
        topic_ids = _resolve_topics(store, topic or [])

        try:
            scheduler = MemoryScheduler(settings.scheduler_config())
        except InvalidArgumentError as exc:
            console.print(f"[red]Invalid scheduler settings: {exc}[/red]")
            raise typer.Exit(1)

        runner = ReviewRunner(store, QueueBuilder(store), scheduler)

        session = runner.resume_session() if resume else None
        if session is None:
            session = runner.start_session(mode, topic_ids, settings.queue_options())

        if session is None:
            console.print("\n[green]Nothing due for review![/green]")
            console.print("All caught up. Check back later.")
            raise typer.Exit(0)

        total = len(runner.queue)
        console.print(f"\n[bold]Session: {total} cards[/bold] ({session.mode.value})")

        try:
            while runner.current_card is not None:
                card = runner.current_card
                display_card_front(card, runner.position + 1, total)
                Prompt.ask("\n[dim]Press Enter to reveal[/dim]", default="", show_default=False)
                display_card_back(card)

                preview = runner.intervals()
                console.print(
                    f"  [red]n[/red] Forgot ({format_interval(preview.forgot)})   "
                    f"[green]y[/green] Remembered ({format_interval(preview.remembered)})"
                )
                answer = Prompt.ask("Remembered?", choices=["y", "n", "q"], default="y")
                if answer == "q":
                    console.print("\n[yellow]Ending session early.[/yellow]")
                    break

                result = runner.submit_response(answer == "y")
                style = STYLES["remembered"] if answer == "y" else STYLES["forgot"]
                console.print(f"[{style}]Next review in {format_interval(result.interval_days)}[/{style}]")

        except KeyboardInterrupt:
            console.print("\n\n[yellow]Session interrupted. Resume with `mnemonic study --resume`.[/yellow]")
            raise typer.Exit(130)

        stats = runner.end_session() if runner.is_active else runner.completed_stats
        _display_session_summary(stats)
    finally:
        store.close()


@app.command()
def stats() -> None:
    """Show today's stats, streak and 30-day retention."""
    store = _open_store()
    try:
        today = utcnow().date()
        daily = store.get_all_daily_stats()
        todays = store.get_daily_stats(today.isoformat())
        streak = calculate_streak(daily, today)

        cards = store.get_all_cards()
        by_state = {state: 0 for state in CardState}
        for card in cards:
            by_state[card.state] += 1

        console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
        console.print("=" * 40)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="bold")

        table.add_row("Total cards", str(len(cards)))
        for state, count in by_state.items():
            table.add_row(f"  {get_state_name(state)}", str(count))
        table.add_row("Reviewed today", str(todays.cards_reviewed if todays else 0))
        table.add_row("New learned today", str(todays.new_cards_learned if todays else 0))
        table.add_row("Current streak", f"{streak.current} day(s)")
        table.add_row("Longest streak", f"{streak.longest} day(s)")
        table.add_row("Retention (30 days)", f"{retention_rate(daily, today) * 100:.1f}%")

        console.print(table)
    finally:
        store.close()


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
