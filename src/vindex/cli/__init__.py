"""Command line interface for vindex."""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
import uuid
from collections.abc import Callable
from pathlib import Path

import questionary
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.theme import Theme

from vindex import VideoIndexingService, VindexConfig
from vindex.core.doctor import check_configuration
from vindex.core.exceptions import VindexError
from vindex.core.models import IndexingStatus, MediaItem, MediaKind
from vindex.indexing import IndexingHandle
from vindex.presentation import present_status

VINDEX_THEME = Theme(
    {
        "info": "bold cyan",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "highlight": "bold magenta",
        "dim": "grey50",
    }
)

QUESTIONARY_STYLE = questionary.Style(
    [
        ("qmark", "fg:#00ffff bold"),
        ("question", "bold"),
        ("answer", "fg:#00ff00 bold"),
        ("pointer", "fg:#00ffff bold"),
        ("highlighted", "fg:#00ffff bold bg:default noreverse"),
        ("selected", "fg:default bg:default noreverse"),
        ("choice", "fg:default bg:default noreverse"),
    ]
)

console = Console(theme=VINDEX_THEME)

DEFAULT_USER_ID = "local-user"


def validate_required(name: str, min_length: int = 1) -> Callable[[str], bool | str]:
    """Return a validation function for a required text setting."""

    def validator(text: str) -> bool | str:
        if not text:
            return f"{name} cannot be empty"
        if len(text) < min_length:
            return f"{name} is too short"
        return True

    return validator


def status_text(status: IndexingStatus | str | None, error: str | None = None) -> str:
    """Rich markup for a status badge."""
    display = present_status(status)
    if display is None:
        return "[dim]-[/]"
    text = f"[{display.tone}]{display.label}[/]"
    if error:
        text += f" [dim]({error})[/]"
    return text


def media_item_for_path(path: Path, media_id: str | None = None) -> MediaItem:
    """Build a catalog item for a local file; the id is stable per path."""
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    major = content_type.split("/", 1)[0]
    kind = {"audio": MediaKind.AUDIO, "image": MediaKind.IMAGE}.get(major, MediaKind.VIDEO)
    return MediaItem(
        id=media_id or str(uuid.uuid5(uuid.NAMESPACE_URL, path.resolve().as_uri())),
        name=path.name,
        kind=kind,
        path=path,
        content_type=content_type,
    )


def write_env_file(env_path: Path, settings: dict[str, str]) -> None:
    """Replace the VINDEX_ entries of ``env_path``, keeping every other line."""
    final_lines: list[str] = []
    if env_path.exists():
        for line in env_path.read_text().splitlines(keepends=True):
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or not stripped.startswith("VINDEX_"):
                final_lines.append(line)
        if final_lines and not final_lines[-1].endswith("\n"):
            final_lines.append("\n")
        final_lines.append("\n# Updated vindex configuration\n")
    else:
        final_lines.append("# vindex configuration\n")

    for key, val in settings.items():
        final_lines.append(f"{key}={val}\n")
    env_path.write_text("".join(final_lines))


async def setup_cmd() -> None:
    """Run interactive setup to create the .env file."""
    console.print(Panel("vindex Configuration Setup", style="info", expand=False))
    console.print("This utility will generate a .env file for vindex.\n", style="dim")

    try:
        settings: dict[str, str] = {}

        api_key = await questionary.password(
            "Enter Twelve Labs API Key:",
            validate=validate_required("Twelve Labs API key", min_length=20),
            style=QUESTIONARY_STYLE,
        ).ask_async()
        if api_key is None:
            return
        settings["VINDEX_TWELVELABS_API_KEY"] = api_key

        store = await questionary.select(
            "Select Status Store:",
            choices=["sqlite", "postgrest"],
            style=QUESTIONARY_STYLE,
        ).ask_async()
        if store is None:
            return
        settings["VINDEX_STORE_PROVIDER"] = store

        if store == "postgrest":
            url = await questionary.text(
                "Enter Supabase URL:",
                validate=lambda t: True if t.startswith("https://") else "Invalid format",
                style=QUESTIONARY_STYLE,
            ).ask_async()
            if url is None:
                return
            service_key = await questionary.password(
                "Enter Supabase Service Role Key:",
                validate=validate_required("Service role key", min_length=20),
                style=QUESTIONARY_STYLE,
            ).ask_async()
            if service_key is None:
                return
            settings["VINDEX_SUPABASE_URL"] = url
            settings["VINDEX_SUPABASE_SERVICE_KEY"] = service_key
        else:
            db_path = await questionary.text(
                "SQLite database path:",
                default="vindex.db",
                style=QUESTIONARY_STYLE,
            ).ask_async()
            if db_path is None:
                return
            settings["VINDEX_DATABASE_PATH"] = db_path or "vindex.db"

        write_env_file(Path(".env"), settings)
        console.print("\n[success]Configuration updated in .env[/]")

    except KeyboardInterrupt:
        return


def doctor_cmd() -> None:
    """Report configuration problems; exits 1 when a required check fails."""
    result = check_configuration(VindexConfig())

    table = Table(box=None, show_header=True, header_style="highlight", pad_edge=False)
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Detail", style="dim")
    for check in result.checks:
        if check.ok:
            outcome = "[success]ok[/]"
        elif check.required:
            outcome = "[error]missing[/]"
        else:
            outcome = "[warning]warning[/]"
        table.add_row(check.name, outcome, check.detail)
    console.print(table)

    if not result.all_ok:
        console.print("\n[error]vindex is not ready.[/] Run 'vindex setup' to fix it.")
        sys.exit(1)
    console.print("\n[success]vindex is ready.[/]")


async def index_cmd(paths: list[str], project_id: str, user_id: str, wait: bool) -> None:
    service = VideoIndexingService(VindexConfig())
    try:
        items = []
        for raw in paths:
            path = Path(raw)
            if not path.is_file():
                console.print(f"[warning]Skipping {raw}: not a file[/]")
                continue
            items.append(media_item_for_path(path))
        if not items:
            console.print("[warning]No media files to index.[/]")
            return

        with Progress(
            SpinnerColumn(spinner_name="dots"),
            TextColumn("[info]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            handles = []
            for item in items:
                row = progress.add_task(description=f"{item.filename}: Pending", total=None)

                def on_status(
                    status: IndexingStatus,
                    error: str | None,
                    video_id: str | None,
                    task_id: str | None,
                    *,
                    _row: int = row,
                    _name: str = item.filename,
                ) -> None:
                    progress.update(_row, description=f"{_name}: {status_text(status, error)}")

                handle = service.start_indexing(item, project_id, on_status, user_id=user_id)
                if handle is None:
                    progress.update(row, description=f"{item.filename}: not eligible")
                    continue
                handles.append((item, handle))

            if not wait:
                # Runs stop with the process; report what has been accepted so far.
                await asyncio.gather(*(_until_uploaded(h) for _, h in handles))
            else:
                await asyncio.gather(*(h.wait() for _, h in handles))

        table = Table(box=None, show_header=True, header_style="highlight", pad_edge=False)
        table.add_column("Media")
        table.add_column("Status")
        table.add_column("Task", style="dim")
        table.add_column("Video", style="dim")
        for item, handle in handles:
            table.add_row(
                item.filename,
                status_text(handle.status, handle.error_message),
                handle.task_id or "-",
                handle.video_id or "-",
            )
        console.print(table)
    finally:
        await service.close()


async def _until_uploaded(handle: IndexingHandle) -> None:
    while not handle.done() and handle.task_id is None:
        await asyncio.sleep(0.2)


async def status_cmd(task_id: str, project_id: str | None, media_id: str | None) -> None:
    service = VideoIndexingService(VindexConfig())
    try:
        task = await service.get_task_status(task_id, project_id=project_id, media_id=media_id)
        console.print(f"[highlight]Task[/] {task.task_id}: {status_text(task.status)}")
        if task.status == IndexingStatus.UNKNOWN and task.raw_status:
            console.print(f"[dim]Provider reported: {task.raw_status}[/]")
        for name, value in task.metadata_fields().items():
            console.print(f"  [dim]{name}:[/] {value}")
    finally:
        await service.close()


async def restore_cmd(project_id: str, media_ids: list[str]) -> None:
    service = VideoIndexingService(VindexConfig())
    try:
        restored = await service.restore_status(project_id, media_ids)
        table = Table(
            box=None,
            show_header=True,
            header_style="highlight",
            title=f"Restored {len(restored)} of {len(media_ids)} media items",
            title_justify="left",
            title_style="dim",
            pad_edge=False,
        )
        table.add_column("Media")
        table.add_column("Status")
        table.add_column("Video", style="dim")
        table.add_column("Duration", justify="right")
        for media_id in media_ids:
            entry = restored.get(media_id)
            if entry is None:
                table.add_row(media_id, "[dim]not indexed[/]", "-", "-")
                continue
            duration = entry.metadata.get("duration")
            table.add_row(
                media_id,
                status_text(entry.status, entry.error_message),
                entry.video_id or "-",
                f"{duration:.1f}s" if duration is not None else "-",
            )
        console.print(table)
    finally:
        await service.close()


async def search_cmd(query_text: str, user_id: str) -> None:
    service = VideoIndexingService(VindexConfig())
    try:
        with console.status("[info]Searching index...", spinner="dots"):
            hits = await service.search(user_id, query_text)
        if not hits:
            console.print("[warning]No matches.[/]")
            return
        table = Table(box=None, show_header=True, header_style="highlight", pad_edge=False)
        table.add_column("#", style="dim", width=2)
        table.add_column("Video", ratio=3)
        table.add_column("Timestamp", justify="right", ratio=1)
        table.add_column("Score", justify="right", style="success", ratio=1)
        for i, hit in enumerate(hits, 1):
            table.add_row(
                str(i),
                hit.video_id,
                f"{hit.start:.1f}s - {hit.end:.1f}s",
                f"{hit.score:.2f}",
            )
        console.print(table)
    finally:
        await service.close()


async def analyze_cmd(video_id: str, user_id: str, prompt: str | None) -> None:
    service = VideoIndexingService(VindexConfig())
    try:
        with console.status("[info]Analyzing video...", spinner="dots"):
            result = await service.analyze(user_id, video_id, prompt)

        if result.text:
            console.print(
                Panel(result.text, title="Answer", title_align="left", border_style="success")
            )
            return
        if result.title:
            console.print(f"[highlight]{result.title}[/]")
        if result.topics or result.hashtags:
            tags = [*result.topics, *(f"#{h.lstrip('#')}" for h in result.hashtags)]
            console.print(f"[dim]{', '.join(tags)}[/]")
        if result.summary:
            console.print(
                Panel(result.summary, title="Summary", title_align="left", border_style="success")
            )
        if result.chapters:
            table = Table(box=None, show_header=True, header_style="highlight", title="Chapters")
            table.add_column("Start", justify="right", style="dim")
            table.add_column("Title")
            for chapter in result.chapters:
                table.add_row(f"{chapter.start:.0f}s", chapter.chapter_title)
            console.print(table)
        for highlight in result.highlights:
            console.print(f"[dim]{highlight.start:.0f}s[/] {highlight.highlight}")
    finally:
        await service.close()


def main() -> None:
    """Entry point with clean help documentation."""
    parser = argparse.ArgumentParser(
        description="vindex: video indexing with Twelve Labs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vindex setup
  vindex doctor
  vindex index ./clip.mp4 --project demo
  vindex status <task_id>
  vindex restore --project demo <media_id> <media_id>
  vindex search "a dog catching a frisbee"
  vindex analyze <video_id> --prompt "List the products shown"

Note: Use "vindex [command] --help" for more details on a specific command.
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("setup", help="Initialize provider and store configuration")
    subparsers.add_parser("doctor", help="Check the configuration")

    index_parser = subparsers.add_parser("index", help="Upload and index local video files")
    index_parser.add_argument("paths", nargs="+", help="Video files to index")
    index_parser.add_argument("--project", required=True, help="Project the media belongs to")
    index_parser.add_argument("--user", default=DEFAULT_USER_ID, help="User id owning the index")
    index_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return once uploads are accepted instead of waiting for indexing",
    )

    status_parser = subparsers.add_parser("status", help="Fetch the status of an indexing task")
    status_parser.add_argument("task_id", help="Provider task id")
    status_parser.add_argument("--project", help="Project id, to update the stored record")
    status_parser.add_argument("--media", help="Media id, to update the stored record")

    restore_parser = subparsers.add_parser("restore", help="Show stored statuses of media items")
    restore_parser.add_argument("media_ids", nargs="+", help="Media ids to look up")
    restore_parser.add_argument("--project", required=True, help="Project id")

    search_parser = subparsers.add_parser("search", help="Search the user's video index")
    search_parser.add_argument("text", help="Text query")
    search_parser.add_argument("--user", default=DEFAULT_USER_ID, help="User id owning the index")

    analyze_parser = subparsers.add_parser("analyze", help="Summarize or question a video")
    analyze_parser.add_argument("video_id", help="Provider video id")
    analyze_parser.add_argument("--prompt", help="Open-ended question instead of a summary")
    analyze_parser.add_argument("--user", default=DEFAULT_USER_ID, help="User id")

    args = parser.parse_args()

    try:
        if args.command == "setup":
            asyncio.run(setup_cmd())
        elif args.command == "doctor":
            doctor_cmd()
        elif args.command == "index":
            asyncio.run(index_cmd(args.paths, args.project, args.user, not args.no_wait))
        elif args.command == "status":
            asyncio.run(status_cmd(args.task_id, args.project, args.media))
        elif args.command == "restore":
            asyncio.run(restore_cmd(args.project, args.media_ids))
        elif args.command == "search":
            asyncio.run(search_cmd(args.text, args.user))
        elif args.command == "analyze":
            asyncio.run(analyze_cmd(args.video_id, args.user, args.prompt))
        else:
            parser.print_help()
    except VindexError as e:
        console.print(f"[error]{type(e).__name__}:[/] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[warning]Operation cancelled by user.[/]")
        sys.exit(0)


if __name__ == "__main__":
    main()
