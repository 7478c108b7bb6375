"""Interactive CLI application."""
import asyncio
import logging
import os
import threading
from datetime import date

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from soru_takip.dashboard import (
    get_day_summary, get_progress_color, get_rollup_rows, get_subject_rows, is_today,
)
from soru_takip.db import DEFAULT_DB_PATH
from soru_takip.exceptions import (
    IdentityRequiredError, NotReadyError, ProgressError, UnknownSubjectError,
)
from soru_takip.models import DailyRecord, Snapshot
from soru_takip.rollup import RollupResult
from soru_takip.store import SqliteProgressStore
from soru_takip.sync import SyncController, SyncState

console = Console()

FIELD_ALIASES = {
    "c": "correct", "correct": "correct", "d": "correct", "dogru": "correct",
    "w": "wrong", "wrong": "wrong", "y": "wrong", "yanlis": "wrong",
    "e": "empty", "empty": "empty", "b": "empty", "bos": "empty",
}


def show_welcome(user_id: str):
    console.print(Panel(
        f"[bold]Soru Takip[/bold]\n[dim]Daily question tracker for {user_id}[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("day", "Selected day's progress"),
        ("+ N FIELD", "Add one to subject N (c/w/e)"),
        ("- N FIELD", "Remove one from subject N"),
        ("target N VALUE", "Set subject N's daily target"),
        ("date YYYY-MM-DD", "Switch day ('date today' to go back)"),
        ("week", "Last 7 days"),
        ("all", "All recorded history"),
        ("history", "Recent days"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<16}[/cyan] {desc}")


def parse_command(line: str) -> tuple[str, list[str]]:
    parts = line.strip().split()
    if not parts:
        return "", []
    return parts[0].lower(), parts[1:]


def resolve_subject(snapshot: Snapshot, token: str) -> str:
    """Accept a 1-based subject number or a (case-insensitive) name prefix."""
    if token.isdigit():
        index = int(token) - 1
        if 0 <= index < len(snapshot.subjects):
            return snapshot.subjects[index].name
        raise UnknownSubjectError(f"No subject number {token}", {"subject": token})
    matches = [s.name for s in snapshot.subjects if s.name.casefold().startswith(token.casefold())]
    if len(matches) == 1:
        return matches[0]
    raise UnknownSubjectError(f"Unknown subject: {token}", {"subject": token})


def resolve_field(token: str) -> str:
    try:
        return FIELD_ALIASES[token.lower()]
    except KeyError:
        raise ValueError(f"Field must be one of c/w/e, got {token!r}") from None


def progress_bar(pct: float, width: int = 20) -> str:
    color = get_progress_color(pct)
    filled = min(width, int(pct / (100 / width)))
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


def render_day(snapshot: Snapshot, syncing: bool = False):
    summary = get_day_summary(snapshot)
    header = f"{snapshot.date.isoformat()}"
    if is_today(snapshot.date):
        header += "  [green]Bugün[/green]"
    if syncing:
        header += "  [dim]Kaydediliyor...[/dim]"
    console.print(Panel(
        f"[bold]{summary['total']}[/bold] / {summary['total_target']} questions  "
        f"{progress_bar(summary['percentage'])} {summary['percentage']}%  "
        f"[dim]Kalan: {summary['remaining']}[/dim]",
        title=header, border_style="blue",
    ))
    table = Table(title="Subjects")
    table.add_column("#", justify="right")
    table.add_column("Subject", style="cyan")
    table.add_column("Doğru", justify="right", style="green")
    table.add_column("Yanlış", justify="right", style="red")
    table.add_column("Boş", justify="right")
    table.add_column("Done", justify="right")
    table.add_column("Progress")
    for i, row in enumerate(get_subject_rows(snapshot), 1):
        table.add_row(
            str(i),
            f"{row['icon']} {row['name']}",
            str(row["correct"]),
            str(row["wrong"]),
            str(row["empty"]),
            f"{row['total']}/{row['target']}",
            f"{progress_bar(row['percentage'], width=10)} {row['percentage']}%",
        )
    console.print(table)


def render_rollup(result: RollupResult, title: str):
    table = Table(title=title)
    table.add_column("Subject", style="cyan")
    table.add_column("Doğru", justify="right", style="green")
    table.add_column("Yanlış", justify="right", style="red")
    table.add_column("Boş", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Accuracy", justify="right")
    rows = get_rollup_rows(result)
    for row in rows:
        style = "bold" if row is rows[-1] else None
        table.add_row(
            row["name"], str(row["correct"]), str(row["wrong"]), str(row["empty"]),
            str(row["total"]), f"{row['accuracy']}%", style=style,
        )
    console.print(table)


def render_history(history: list[DailyRecord]):
    if not history:
        console.print("[yellow]No earlier days recorded yet.[/yellow]")
        return
    table = Table(title="Recent Days")
    table.add_column("Date")
    table.add_column("Questions", justify="right")
    table.add_column("Target", justify="right")
    for record in history:
        target = str(record.total_target) if record.total_target is not None else "-"
        table.add_row(record.date.isoformat(), str(record.total), target)
    console.print(table)


def show_notices(controller: SyncController):
    for notice in controller.pop_notices():
        console.print(f"[yellow]{notice}[/yellow]")


def require_loaded(controller: SyncController):
    if controller.state is not SyncState.READY:
        raise NotReadyError(f"Progress is {controller.state.value}; try again once it has loaded")


def _settle(future: asyncio.Future, result, exc):
    if future.cancelled():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(result)


async def ask(prompt: str, **kwargs) -> str:
    # Prompt.ask blocks; run it off-loop so pending saves keep their schedule.
    # A daemon thread, so an interrupted prompt does not hold the process open.
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def worker():
        try:
            result = Prompt.ask(prompt, **kwargs)
        except BaseException as exc:
            outcome = (None, exc)
        else:
            outcome = (result, None)
        if not loop.is_closed():
            loop.call_soon_threadsafe(_settle, future, *outcome)

    threading.Thread(target=worker, name="prompt", daemon=True).start()
    return await future


def cmd_step(controller: SyncController, args: list[str], delta: int):
    require_loaded(controller)
    if len(args) != 2:
        raise ValueError("Usage: + N FIELD  (e.g. '+ 2 c')")
    name = resolve_subject(controller.snapshot, args[0])
    field = resolve_field(args[1])
    snapshot = controller.mutate(name, field, delta)
    subject = snapshot.get(name)
    console.print(
        f"[cyan]{subject.name}[/cyan]: "
        f"[green]{subject.correct}[/green] / [red]{subject.wrong}[/red] / {subject.empty}"
    )


def cmd_target(controller: SyncController, args: list[str]):
    require_loaded(controller)
    if len(args) != 2:
        raise ValueError("Usage: target N VALUE")
    name = resolve_subject(controller.snapshot, args[0])
    snapshot = controller.update_target(name, args[1])
    console.print(f"[green]{name} target set to {snapshot.get(name).target}[/green] "
                  f"(daily total {snapshot.total_target})")


async def cmd_date(controller: SyncController, args: list[str]):
    if len(args) != 1:
        raise ValueError("Usage: date YYYY-MM-DD")
    if args[0].lower() in ("today", "bugun"):
        target = date.today()
    else:
        target = date.fromisoformat(args[0])
    console.print(f"[dim]Loading {target.isoformat()}...[/dim]")
    snapshot = await controller.select_date(target)
    if snapshot is not None:
        render_day(snapshot)


async def run(controller: SyncController):
    console.print("[dim]Loading...[/dim]")
    try:
        await controller.select_today()
        show_notices(controller)
        if controller.state is SyncState.READY:
            render_day(controller.snapshot)

        while True:
            show_menu()
            try:
                line = await ask("\n[bold]>[/bold]", default="day")
                command, args = parse_command(line)
                if command == "day":
                    if controller.state is not SyncState.READY and controller.selected_date:
                        await controller.select_date(controller.selected_date)
                    if controller.snapshot is not None:
                        render_day(controller.snapshot, syncing=controller.is_syncing or controller.has_pending_write)
                elif command == "+":
                    cmd_step(controller, args, +1)
                elif command == "-":
                    cmd_step(controller, args, -1)
                elif command == "target":
                    cmd_target(controller, args)
                elif command == "date":
                    await cmd_date(controller, args)
                elif command == "week":
                    render_rollup(controller.weekly(), "Bu Hafta (last 7 days)")
                elif command == "all":
                    render_rollup(controller.all_time(), "Tüm Zamanlar")
                elif command == "history":
                    render_history(await controller.refresh_history())
                elif command in ("quit", "exit", "q"):
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except EOFError:
                break
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except (ProgressError, ValueError) as e:
                console.print(f"[red]Error: {e}[/red]")
            show_notices(controller)
    finally:
        await controller.close()
        show_notices(controller)
    console.print("[dim]Saved. İyi çalışmalar![/dim]")


def configure_logging():
    level = os.environ.get("SORU_TAKIP_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    configure_logging()
    db_path = os.environ.get("SORU_TAKIP_DB", DEFAULT_DB_PATH)
    user_id = os.environ.get("SORU_TAKIP_USER") or Prompt.ask("User").strip()
    if not user_id:
        console.print(f"[red]{IdentityRequiredError('A user name is required to load progress.')}[/red]")
        return
    show_welcome(user_id)
    controller = SyncController(SqliteProgressStore(db_path), user_id)
    try:
        asyncio.run(run(controller))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")


if __name__ == "__main__":
    main()
