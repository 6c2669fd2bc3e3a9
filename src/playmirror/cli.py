#!/usr/bin/env python3
"""Command-line interface for playmirror.

Mirrors the tracks of a set of playlists into a destination folder. For
embedding in other tools, import playmirror as a library.
"""

import json
import logging
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from playmirror.config import SyncConfig, default_concurrency
from playmirror.exceptions import CancellationError, PlayMirrorError
from playmirror.models.cancel import CancelToken
from playmirror.models.enums import ItemStatus, Phase
from playmirror.models.results import MirrorPlan, MirrorResult
from playmirror.services import (
    ExporterPlaylistSource,
    M3UDirectorySource,
    MirrorService,
    PlaylistSourceProtocol,
)
from playmirror.services.fingerprint import FingerprintStore, compute_fingerprint
from playmirror.services.inspector import TrackInspector
from playmirror.settings import Settings, get_settings

logger = logging.getLogger("playmirror")

# Using the same console for Progress and RichHandler ensures logs appear
# above the progress bar rather than interfering with it.
PROGRESS_COLUMNS = (
    SpinnerColumn(),
    TextColumn("[progress.description]{task.description}"),
    BarColumn(),
    TaskProgressColumn(),
    TimeElapsedColumn(),
)

PHASE_LABELS = {
    Phase.EXPORTING: "Loading playlists",
    Phase.INSPECTING: "Inspecting tracks",
    Phase.SYNCING: "Syncing",
    Phase.WRITING: "Writing playlists",
    Phase.RECONCILING: "Removing leftovers",
}

STATUS_ICON = {
    ItemStatus.COPIED: "[green]COPY[/green]",
    ItemStatus.UP_TO_DATE: "[dim]OK[/dim]",
}


def setup_logging(
    verbose: bool = False, console: Console | None = None, level: str = "INFO"
) -> None:
    """Configure logging with Rich handler.

    Clears existing handlers first, so it can be called again to switch
    to a console shared with a Progress bar.

    Args:
        verbose: If True, log at DEBUG regardless of ``level``.
        console: Optional Console for RichHandler. Pass the Progress
            console so logs appear above the progress bar.
        level: Log level name used when not verbose.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        console=console,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root_logger.setLevel(logging.DEBUG if verbose else level)
    root_logger.addHandler(handler)


def print_section_header(console: Console, title: str, subtitle: str = "") -> None:
    """Print a section header with optional subtitle."""
    header = f"  {title.upper()}"
    if subtitle:
        header += f"  [dim]│[/dim]  {subtitle}"
    console.print()
    console.rule(style="dim")
    console.print(header)
    console.rule(style="dim")


def format_duration(seconds: float | None) -> str:
    """Format duration in seconds to MM:SS or HH:MM:SS."""
    if seconds is None or seconds < 0:
        return "[dim](unknown)[/dim]"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@contextmanager
def cancel_on_interrupt(token: CancelToken, console: Console) -> Iterator[None]:
    """Turn the first Ctrl+C into a cooperative cancel.

    Running items finish and nothing new starts. A second Ctrl+C raises
    KeyboardInterrupt as usual.
    """

    def handler(signum: int, frame: Any) -> None:
        console.print(
            "[yellow]Interrupted, waiting for current items to finish "
            "(press Ctrl+C again to abort)[/yellow]"
        )
        token.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ============================================================================
# OPTION RESOLUTION - CLI flags first, then PLAYMIRROR_* settings
# ============================================================================


def build_config(
    settings: Settings,
    source: Path | None,
    dest: Path | None,
    jobs: int | None,
    case_sensitive: bool,
    no_normalize: bool,
) -> SyncConfig:
    """Build the sync configuration from flags and settings."""
    source = source or settings.source
    dest = dest or settings.dest
    if source is None:
        raise click.UsageError("SOURCE is required (or set PLAYMIRROR_SOURCE).")
    if dest is None:
        raise click.UsageError("DEST is required (or set PLAYMIRROR_DEST).")

    concurrency = jobs or settings.concurrency or default_concurrency()
    return SyncConfig(
        source_root=source.expanduser().absolute(),
        dest_root=dest.expanduser().absolute(),
        concurrency=concurrency,
        inspect_concurrency=concurrency,
        normalize=settings.normalize and not no_normalize,
        normalizer=settings.normalizer_config,
        case_sensitive=case_sensitive or settings.case_sensitive,
        xattr_name=settings.xattr_name,
        transliterate=settings.transliterate,
    )


def build_source(
    settings: Settings,
    playlists_dir: Path | None,
    export: tuple[str, ...],
    exporter_jar: Path | None,
) -> PlaylistSourceProtocol:
    """Pick the playlist source from flags and settings.

    Explicit ``--export`` names win over a playlist directory; without
    either, the configured directory and then the configured exporter
    playlists are used.
    """
    if not export:
        directory = playlists_dir or settings.playlists_dir
        if directory is not None:
            return M3UDirectorySource(directory.expanduser())
        if not settings.playlists:
            raise click.UsageError(
                "Provide --playlists-dir or --export "
                "(or set PLAYMIRROR_PLAYLISTS_DIR / PLAYMIRROR_PLAYLISTS)."
            )

    try:
        return ExporterPlaylistSource(settings.export_config(exporter_jar, export))
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def mirror_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the sync and plan commands."""
    decorators = [
        click.argument(
            "source", type=click.Path(path_type=Path), required=False, metavar="SOURCE"
        ),
        click.argument(
            "dest", type=click.Path(path_type=Path), required=False, metavar="DEST"
        ),
        click.option(
            "--playlists-dir",
            type=click.Path(file_okay=False, path_type=Path),
            help="Directory of .m3u playlists to mirror.",
        ),
        click.option(
            "--export",
            "export",
            multiple=True,
            metavar="NAME",
            help="Export playlist NAME with iTunesExport (repeatable).",
        ),
        click.option(
            "--exporter-jar",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="Path to the iTunesExport jar.",
        ),
        click.option(
            "-j",
            "--jobs",
            type=click.IntRange(min=1),
            default=None,
            help="Parallel jobs (default: number of CPUs).",
        ),
        click.option(
            "--case-sensitive",
            is_flag=True,
            help="Compare destination paths case-sensitively.",
        ),
        click.option(
            "--no-normalize",
            is_flag=True,
            help="Disable loudness normalization.",
        ),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


# ============================================================================
# OUTPUT
# ============================================================================


def print_plan(console: Console, plan: MirrorPlan, dest: Path) -> None:
    """Print what a run would sync and remove."""
    print_section_header(console, "Plan", str(dest))

    if plan.to_sync:
        console.print()
        console.print("  [cyan]To sync:[/cyan]")
        for item in plan.to_sync:
            console.print(f"    • {item.relative_path}")

    if plan.leftovers:
        console.print()
        console.print("  [red]To remove:[/red]")
        for relative in plan.leftovers:
            console.print(f"    • {relative}")

    console.print()
    console.print(
        f"  [green]To sync: {len(plan.to_sync)}[/green]  "
        f"[dim]Up to date: {plan.up_to_date_count}[/dim]  "
        f"[red]To remove: {len(plan.leftovers)}[/red]"
    )


def print_summary(console: Console, result: MirrorResult) -> None:
    """Print the summary of a finished (or cancelled) run."""
    print_section_header(console, "Summary")
    console.print(
        f"  [green]Copied: {result.copied_count}[/green]  "
        f"[dim]Up to date: {result.up_to_date_count}[/dim]  "
        f"[cyan]Normalized: {result.normalized_count}[/cyan]  "
        f"[red]Removed: {len(result.removed)}[/red]"
    )

    if result.cancelled:
        console.print()
        console.print(
            f"  [yellow]Cancelled after {len(result.item_results)} of "
            f"{len(result.manifest.items)} track(s); playlists and leftovers "
            "were left untouched.[/yellow]"
        )
        return

    if result.playlist_paths:
        console.print()
        console.print("  [cyan]Playlists:[/cyan]")
        for path in result.playlist_paths:
            console.print(f"    • {path}")


# ============================================================================
# COMMANDS
# ============================================================================


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Mirror playlist tracks into a destination folder."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose)


@main.command(name="sync")
@mirror_options
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be synced and removed without changing anything.",
)
@click.pass_context
def sync_cmd(
    ctx: click.Context,
    source: Path | None,
    dest: Path | None,
    playlists_dir: Path | None,
    export: tuple[str, ...],
    exporter_jar: Path | None,
    jobs: int | None,
    case_sensitive: bool,
    no_normalize: bool,
    dry_run: bool,
) -> None:
    """Mirror the tracks of the selected playlists from SOURCE into DEST.

    SOURCE is the root of the music library; track paths in DEST are
    relative to it. Tracks already in DEST with a matching fingerprint are
    skipped, lossy copies get loudness normalization, playlists are
    rewritten to point at the copies, and anything in DEST no playlist
    references anymore is removed.

    Press Ctrl+C once to stop after the tracks currently being copied.

    \b
    Examples:
      playmirror sync ~/Music /Volumes/CAR --playlists-dir ~/Playlists
      playmirror sync ~/Music /Volumes/CAR --export BEST --export RECENT
      playmirror sync ~/Music /Volumes/CAR --playlists-dir ~/Playlists --dry-run
    """
    console = Console()
    verbose = ctx.obj.get("verbose", False)

    try:
        settings = get_settings()
        setup_logging(verbose=verbose, console=console, level=settings.log_level)

        config = build_config(
            settings, source, dest, jobs, case_sensitive, no_normalize
        )
        service = MirrorService(
            config, build_source(settings, playlists_dir, export, exporter_jar)
        )

        if dry_run:
            print_plan(console, service.plan(), config.dest_root)
            return

        token = CancelToken()
        with (
            cancel_on_interrupt(token, console),
            Progress(*PROGRESS_COLUMNS, console=console) as progress,
        ):
            tasks: dict[Phase, TaskID] = {}

            for p in service.mirror(token):
                if p.phase not in tasks:
                    tasks[p.phase] = progress.add_task(PHASE_LABELS[p.phase])
                progress.update(
                    tasks[p.phase], completed=p.current, total=p.total or None
                )

                result = p.item_result
                if result and (verbose or result.status == ItemStatus.COPIED):
                    console.print(
                        f"  [{p.current}/{p.total}] {result.item.relative_path}: "
                        f"{STATUS_ICON[result.status]}"
                    )

        final_result = service.get_result()
        if final_result is not None:
            print_summary(console, final_result)

    except click.UsageError:
        raise
    except CancellationError as e:
        logger.warning(str(e))
        console.print()
        console.print(f"  [yellow]{e}; nothing was changed.[/yellow]")
    except PlayMirrorError as e:
        logger.error(str(e))
        raise click.ClickException(str(e)) from e
    except Exception as e:
        logger.exception("Unexpected error")
        raise click.ClickException(f"Unexpected error: {e}") from e


@main.command(name="plan")
@mirror_options
@click.pass_context
def plan_cmd(
    ctx: click.Context,
    source: Path | None,
    dest: Path | None,
    playlists_dir: Path | None,
    export: tuple[str, ...],
    exporter_jar: Path | None,
    jobs: int | None,
    case_sensitive: bool,
    no_normalize: bool,
) -> None:
    """Show what a sync from SOURCE into DEST would do.

    Nothing in DEST is modified. Same options as sync.

    \b
    Examples:
      playmirror plan ~/Music /Volumes/CAR --playlists-dir ~/Playlists
    """
    ctx.invoke(
        sync_cmd,
        source=source,
        dest=dest,
        playlists_dir=playlists_dir,
        export=export,
        exporter_jar=exporter_jar,
        jobs=jobs,
        case_sensitive=case_sensitive,
        no_normalize=no_normalize,
        dry_run=True,
    )


@main.command(name="inspect")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    metavar="FILE...",
)
@click.option(
    "--xattr-name",
    default=None,
    help="Fingerprint extended attribute (default: PLAYMIRROR_XATTR_NAME).",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def inspect_cmd(files: tuple[Path, ...], xattr_name: str | None, as_json: bool) -> None:
    """Show format, tags and fingerprint state of audio files.

    For each FILE, prints the detected format, artist, title and duration,
    the fingerprint stored on the file and whether it matches the file's
    current contents.

    \b
    Examples:
      playmirror inspect /Volumes/CAR/Artist/Album/01_Track.mp3
      playmirror inspect /Volumes/CAR/Artist/Album/*.m4a --json
    """
    console = Console()
    store = FingerprintStore(xattr_name or get_settings().xattr_name)
    inspector = TrackInspector()

    rows: list[dict[str, Any]] = []
    errors: list[tuple[Path, str]] = []

    for path in files:
        try:
            info = inspector.inspect(path)
            fingerprint = compute_fingerprint(path)
            stored = store.read(path)
        except PlayMirrorError as e:
            errors.append((path, e.message))
            continue
        rows.append(
            {
                "path": str(path),
                "format": info.format.value,
                "artist": info.artist,
                "title": info.title,
                "duration": info.duration_seconds,
                "fingerprint": fingerprint,
                "stored": stored,
                "matches": stored == fingerprint,
            }
        )

    if as_json:
        json.dump(rows, sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    elif rows:
        table = Table(title="Tracks", show_lines=True)
        table.add_column("File", style="cyan", max_width=40)
        table.add_column("Format")
        table.add_column("Artist")
        table.add_column("Title")
        table.add_column("Duration", justify="right")
        table.add_column("Stored fingerprint")
        table.add_column("Match", justify="center")

        for row in rows:
            if row["stored"] is None:
                match = "[dim]-[/dim]"
            elif row["matches"]:
                match = "[green]yes[/green]"
            else:
                match = "[red]no[/red]"
            table.add_row(
                Path(row["path"]).name,
                row["format"],
                row["artist"] or "[dim](none)[/dim]",
                row["title"] or "[dim](none)[/dim]",
                format_duration(row["duration"]),
                row["stored"] or "[dim](not set)[/dim]",
                match,
            )

        console.print(table)

    if errors:
        console.print()
        console.print("[red]Errors:[/red]")
        for path, error in errors:
            console.print(f"  [red]- {path}: {error}[/red]")
        raise click.exceptions.Exit(1)


if __name__ == "__main__":
    main()
