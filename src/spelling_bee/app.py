"""Interactive CLI application."""
import argparse
import asyncio
import logging
import random
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt, IntPrompt, Confirm
from rich.progress import Progress, BarColumn, TextColumn

from spelling_bee.audio import AudioManager, CommandPlayer, ConsoleSpeaker
from spelling_bee.blobs import LocalBlobStore, cleanup_old_audio
from spelling_bee.config import (
    DEFAULT_AUDIO_DIR, MAX_PAUSE_SECONDS, MIN_PAUSE_SECONDS, ConfigError, SessionSettings,
    add_child, get_api_keys, get_children, get_groups, get_session_settings, is_configured,
    normalize_groups, remove_child, save_api_keys, save_groups, save_session_settings,
)
from spelling_bee.db import init_db, DEFAULT_DB_PATH
from spelling_bee.importer import IMAGE_TYPES, parse_word_list, read_word_file
from spelling_bee.ledger import practice_summary, record_practice
from spelling_bee.models import SpellingList
from spelling_bee.pipeline import ContentPipeline, PipelineError, cleanup_old_lists, list_ready_groups
from spelling_bee.providers import ClaudeTextGenerator, ClaudeWordExtractor, OpenAISpeechSynthesizer
from spelling_bee.session import Phase, TestSession
from spelling_bee.week import current_week_id, week_bounds, week_display_date

console = Console()
logger = logging.getLogger(__name__)

CONFETTI = "🎉🎊⭐✨🐝🌟"
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The child asked to leave the test part-way through."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None, default: int | None = None) -> int:
    if choices:
        choices = [*choices, "q"]
    if default is None:
        return int(session_prompt(prompt, choices=choices))
    return int(session_prompt(prompt, choices=choices, default=str(default)))


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome(db_path: str):
    week = current_week_id()
    console.print(Panel(
        f"[bold]🐝 Spelling Bee![/bold]\n[dim]{week_display_date(week)}[/dim]",
        title="Welcome", border_style="yellow",
    ))
    groups = get_groups(db_path)
    ready = list_ready_groups(db_path, groups)
    for group in groups:
        if group in ready:
            console.print(f"  [green]●[/green] {group} — {len(ready[group].words)} words ready ✓")
        else:
            console.print(f"  [dim]○ {group} — no words yet this week[/dim]")


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("practise", "Spelling test"),
        ("upload", "Upload new words"),
        ("tracker", "Who's practised?"),
        ("settings", "Keys, groups, children, pause"),
        ("cleanup", "Delete old weeks' audio and lists"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_confetti(duration: float) -> None:
    line = "".join(random.choice(CONFETTI) for _ in range(24))
    console.print(f"\n{line}\n")


def _pick_group(groups: list[str], prompt: str = "Spelling group") -> str:
    return Prompt.ask(prompt, choices=groups, default=groups[0])


# -- setup --

def run_setup(db_path: str) -> None:
    console.print(Panel(
        "To get started we need two API keys and your spelling groups.\n"
        "[dim]Keys are only used when new spelling words are uploaded.[/dim]",
        title="Welcome to Spelling Bee!", border_style="yellow",
    ))
    keys = get_api_keys(db_path)
    while not keys.get("anthropic"):
        keys["anthropic"] = Prompt.ask("Anthropic API key (sentences & stories)", password=True).strip()
    while not keys.get("openai"):
        keys["openai"] = Prompt.ask("OpenAI API key (text-to-speech)", password=True).strip()
    save_api_keys(db_path, keys)
    groups = get_groups(db_path)
    while not groups:
        entered = Prompt.ask("Spelling group names (comma separated)", default="PENS")
        groups = save_groups(db_path, entered.split(","))
        if not groups:
            console.print("[red]Add at least one spelling group.[/red]")
    console.print("[green]All set! 🐝[/green]")


# -- spelling test --

def _session_view():
    last = {"key": None}

    def on_change(session: TestSession) -> None:
        key = (session.phase, session.current_index)
        if session.phase is Phase.ANNOUNCING and key != last["key"]:
            console.print(f"\n[bold]Word {session.current_index + 1} of {session.total_words}[/bold] 🎧 Listen carefully...")
        elif session.phase is Phase.WRITING:
            console.print(f"  ✏️  Write it down! [bold]{session.time_left}s[/bold] ", end="\r")
        last["key"] = key

    return on_change


def _show_words(session: TestSession) -> None:
    table = Table(title="Check your spellings")
    table.add_column("#", justify="right")
    table.add_column("Word")
    for i, word in enumerate(session.words):
        shown = f"[bold green]{word.upper()}[/bold green]" if i in session.revealed else "[dim]Tap to reveal[/dim]"
        table.add_row(str(i + 1), shown)
    console.print(table)


def run_checking(session: TestSession) -> None:
    while True:
        _show_words(session)
        choice = session_prompt(
            "Word number to reveal, [cyan]a[/cyan] for all, [cyan]done[/cyan] to mark", default="done",
        ).strip().lower()
        try:
            if choice == "done":
                session.finish_checking()
                return
            if choice == "a":
                asyncio.run(session.reveal_all())
            elif choice.isdigit() and 1 <= int(choice) <= session.total_words:
                asyncio.run(session.reveal(int(choice) - 1))
            else:
                console.print("[red]Pick a word number, 'a' or 'done'.[/red]")
        except KeyboardInterrupt:
            session.stop_playback()


def run_scoring(session: TestSession) -> None:
    total = session.total_words
    score = session_int_prompt(
        f"How many did you get right? (0-{total})", choices=[str(n) for n in range(total + 1)],
    )
    session.set_score(score)
    result = session.submit_score()
    console.print(Panel(
        f"[bold]{session.score}/{total}[/bold]\n\n{result.message}",
        title="Your score", border_style="green" if result.celebrate else "cyan",
    ))


def run_story(session: TestSession) -> None:
    if session.spelling_list.story and Confirm.ask("Hear the silly story? 📖", default=True):
        console.print(Panel(session.spelling_list.story, title="Silly story", border_style="magenta"))
        try:
            asyncio.run(session.play_story())
        except KeyboardInterrupt:
            session.stop_playback()
    session.continue_to_naming()


def run_naming(db_path: str, session: TestSession) -> None:
    children = get_children(db_path)
    if children:
        console.print("Who are you? " + ", ".join(f"[cyan]{c}[/cyan]" for c in children))
    name = ""
    while not name:
        name = session_prompt("Type your name").strip()
    if name not in children:
        add_child(db_path, name)
    session.submit_name(name)
    console.print(f"[green]All done, {name}! 🎉[/green]")


def run_test(db_path: str, group: str, spelling_list: SpellingList) -> None:
    settings = get_session_settings(db_path)
    week = spelling_list.week_id

    def log_practice(name: str, score: int, total: int) -> None:
        record_practice(db_path, group, week, name, score, total)

    session = TestSession(
        spelling_list,
        AudioManager(CommandPlayer(), ConsoleSpeaker(console)),
        pause_seconds=settings.pause_seconds,
        record_practice=log_practice,
        on_change=_session_view(),
        on_celebrate=show_confetti,
    )
    console.print(Panel(
        f"[bold]{group}[/bold] — {session.total_words} words\n"
        f"Get a pencil and paper ready! You'll hear each word, a silly sentence, then the word again.\n"
        f"[dim]Ctrl-C skips to checking, 'q' leaves.[/dim]",
        title="Spelling test", border_style="yellow",
    ))
    try:
        session.set_pause_seconds(session_int_prompt(
            f"Seconds to write each word ({MIN_PAUSE_SECONDS}-{MAX_PAUSE_SECONDS})",
            choices=[str(n) for n in range(MIN_PAUSE_SECONDS, MAX_PAUSE_SECONDS + 1)],
            default=session.pause_seconds,
        ))
        session_prompt("[dim]Press Enter to start[/dim]", default="")
        try:
            asyncio.run(session.run_dictation())
        except KeyboardInterrupt:
            if session.phase in (Phase.ANNOUNCING, Phase.WRITING):
                session.skip_to_checking()
        console.print()
        run_checking(session)
        run_scoring(session)
        run_story(session)
        run_naming(db_path, session)
    except SessionExitRequested:
        session.cancel()
        console.print("[dim]Test stopped.[/dim]")


def cmd_practise(db_path: str):
    ready = list_ready_groups(db_path, get_groups(db_path))
    if not ready:
        console.print("[yellow]No spelling words this week yet. Use 'upload' first.[/yellow]")
        return
    group = _pick_group(list(ready))
    run_test(db_path, group, ready[group])


# -- upload --

def _collect_words(db_path: str) -> list[str]:
    mode = Prompt.ask("Add words by", choices=["type", "file"], default="type")
    if mode == "type":
        return parse_word_list(Prompt.ask("Spelling words (comma separated)"))
    file_path = Prompt.ask("File or photo path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return []
    extractor = None
    if Path(file_path).suffix.lower() in IMAGE_TYPES:
        console.print("[dim]Reading the spelling list from your photo...[/dim]")
        extractor = ClaudeWordExtractor.from_api_key(get_api_keys(db_path).get("anthropic"))
    return read_word_file(file_path, extractor)


def cmd_upload(db_path: str, audio_dir: str):
    groups = get_groups(db_path)
    group = _pick_group(groups, "Upload words for")
    words = _collect_words(db_path)
    while True:
        if not words:
            console.print("[red]Please enter some spelling words.[/red]")
            return
        console.print(f"\n[bold]Words found ({len(words)}):[/bold] " + ", ".join(f"[cyan]{w}[/cyan]" for w in words))
        action = Prompt.ask("Generate everything?", choices=["yes", "edit", "cancel"], default="yes")
        if action == "cancel":
            return
        if action == "yes":
            break
        words = parse_word_list(Prompt.ask("Corrected words (comma separated)", default=", ".join(words)))

    keys = get_api_keys(db_path)
    text_generator = ClaudeTextGenerator.from_api_key(keys.get("anthropic"))
    synthesizer = OpenAISpeechSynthesizer.from_api_key(keys.get("openai"))
    with Progress(
        TextColumn("{task.description}"), BarColumn(), TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task("Starting...", total=100)

        def on_progress(percent: float, label: str) -> None:
            progress.update(task, completed=percent, description=label)

        pipeline = ContentPipeline(
            db_path, LocalBlobStore(audio_dir), text_generator, synthesizer, on_progress=on_progress,
        )
        try:
            spelling_list = pipeline.generate(group, words)
        except PipelineError as e:
            console.print(f"[red]{e}[/red]")
            return
    console.print(f"[green]{group} is ready with {len(spelling_list.words)} words! 🐝[/green]")
    if spelling_list.failed_assets:
        console.print(f"[yellow]{len(spelling_list.failed_assets)} clips could not be recorded; "
                      f"those will be read out by the computer voice.[/yellow]")


# -- tracker --

def cmd_tracker(db_path: str):
    week = current_week_id()
    groups = get_groups(db_path)
    summary = practice_summary(db_path, groups, week)
    console.print(f"\n[bold]Who's practised?[/bold] [dim]{week_display_date(week)}[/dim]")
    start, end = week_bounds(week)
    console.print(f"[dim]Counting practice from {start:%a %d %b %H:%M} to {end:%a %d %b %H:%M}[/dim]")
    for group in groups:
        record = summary.get(group)
        if not record or not record.children:
            console.print(f"\n[bold]{group}[/bold]: [dim]No one has practised yet this week[/dim]")
            continue
        table = Table(title=group)
        table.add_column("Child", style="cyan")
        table.add_column("Attempts", justify="right")
        table.add_column("Last score", justify="right")
        table.add_column("Last practised")
        for name, info in sorted(record.children.items()):
            last_score = f"{info.last_score}/{info.last_total}" if info.last_total else ""
            table.add_row(name, str(info.attempts), last_score, (info.last_practice_at or "")[:16])
        console.print(table)


# -- settings --

def cmd_settings(db_path: str):
    section = Prompt.ask("Settings", choices=["keys", "groups", "children", "pause", "back"], default="back")
    if section == "keys":
        updates = {
            "anthropic": Prompt.ask("New Anthropic key (blank to keep)", password=True, default=""),
            "openai": Prompt.ask("New OpenAI key (blank to keep)", password=True, default=""),
        }
        save_api_keys(db_path, updates)
        console.print("[green]API keys updated! ✓[/green]")
    elif section == "groups":
        current = ", ".join(get_groups(db_path))
        entered = Prompt.ask("Spelling groups (comma separated)", default=current)
        if not normalize_groups(entered.split(",")):
            console.print("[red]Keep at least one spelling group.[/red]")
            return
        groups = save_groups(db_path, entered.split(","))
        console.print(f"[green]Groups updated: {', '.join(groups)} ✓[/green]")
    elif section == "children":
        children = get_children(db_path)
        console.print("Children: " + (", ".join(children) or "[dim]none yet[/dim]"))
        actions = ["add", "remove", "back"] if children else ["add", "back"]
        action = Prompt.ask("Children", choices=actions, default="back")
        if action == "add":
            add_child(db_path, Prompt.ask("Name"))
        elif action == "remove":
            remove_child(db_path, Prompt.ask("Name", choices=children))
    elif section == "pause":
        seconds = IntPrompt.ask(
            f"Seconds to write each word ({MIN_PAUSE_SECONDS}-{MAX_PAUSE_SECONDS})",
            default=get_session_settings(db_path).pause_seconds,
        )
        try:
            save_session_settings(db_path, SessionSettings(seconds))
        except ConfigError as e:
            console.print(f"[red]{e}[/red]")


def cmd_cleanup(db_path: str, audio_dir: str):
    week = current_week_id()
    removed = cleanup_old_audio(LocalBlobStore(audio_dir), week)
    lists = cleanup_old_lists(db_path, week)
    console.print(f"[green]Removed {len(removed)} old week(s) of audio and {len(lists)} old spelling list(s).[/green]")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="spelling-bee", description="Weekly spelling practice")
    parser.add_argument("--db", default=DEFAULT_DB_PATH, help="SQLite database path")
    parser.add_argument("--audio-dir", default=DEFAULT_AUDIO_DIR, help="Where generated audio is kept")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.verbose)
    db_path = args.db
    init_db(db_path)
    if not is_configured(db_path):
        run_setup(db_path)

    show_welcome(db_path)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="practise").strip().lower()
        try:
            if choice in ("practise", "practice", "test"):
                cmd_practise(db_path)
            elif choice == "upload":
                cmd_upload(db_path, args.audio_dir)
            elif choice == "tracker":
                cmd_tracker(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice == "cleanup":
                cmd_cleanup(db_path, args.audio_dir)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Keep buzzing! 🐝[/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
