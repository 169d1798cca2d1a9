"""CLI interface for pgcacher."""

import logging
import sys
from typing import List, Optional

import typer

from pgcacher import __version__
from pgcacher.analyzer import analyze_files, sort_statuses, top_n
from pgcacher.display import console, render
from pgcacher.models import OutputFormat, ScanConfig, parse_size
from pgcacher.psutils import ProcessListError
from pgcacher.resolver import build_file_set, resolve_all_processes, resolve_process

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="pgcacher",
    help="Show how much of each file is in the Linux page cache",
    add_completion=False,
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pgcacher version {__version__}")
        raise typer.Exit()


def least_size_callback(value: Optional[str]) -> int:
    """Convert --least-size to bytes."""
    if not value:
        return 0
    try:
        return parse_size(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def main(
    ctx: typer.Context,
    files: Optional[List[str]] = typer.Argument(None, help="Files to inspect."),
    pid: int = typer.Option(0, "--pid", "-pid", help="Show all open files and maps of the given pid."),
    top: Optional[int] = typer.Option(
        None,
        "--top",
        "-top",
        min=0,
        help="Scan all processes and show the top N cached files in descending order (0 = all).",
    ),
    worker: int = typer.Option(2, "--worker", "-worker", min=1, help="Concurrency workers."),
    least_size: Optional[str] = typer.Option(
        None,
        "--least-size",
        "-least-size",
        callback=least_size_callback,
        help="Ignore files smaller than this size, e.g. 10MB.",
    ),
    exclude_files: Optional[str] = typer.Option(
        None, "--exclude-files", "-exclude-files", help="Exclude files matching the wildcard pattern."
    ),
    include_files: Optional[str] = typer.Option(
        None, "--include-files", "-include-files", help="Only include files matching the wildcard pattern."
    ),
    terse: bool = typer.Option(False, "--terse", "-terse", help="Show terse output."),
    json_output: bool = typer.Option(False, "--json", "-json", help="Return data in JSON format."),
    unicode: bool = typer.Option(False, "--unicode", "-unicode", help="Return data with unicode box characters."),
    plain: bool = typer.Option(False, "--plain", "-plain", help="Return data with no box characters."),
    nohdr: bool = typer.Option(False, "--nohdr", "-nohdr", help="Omit the header from terse and table output."),
    bname: bool = typer.Option(False, "--bname", "-bname", help="Show basenames to narrow the output."),
    pps: bool = typer.Option(False, "--pps", "-pps", help="Include the per-page status in JSON output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging."),
    version: bool = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Inspect the page cache residency of files, a process, or all processes."""
    if not sys.platform.startswith("linux"):
        console.print("[red]pgcacher only supports running on Linux[/red]")
        raise typer.Exit(1)

    _setup_logging(verbose)

    config = ScanConfig(
        worker=worker,
        least_size=least_size,
        include_files=include_files,
        exclude_files=exclude_files,
        bname=bname,
        pps=pps,
    )
    fmt = OutputFormat.select(json=json_output, terse=terse, unicode=unicode, plain=plain)

    candidates = list(files or [])
    if top is not None:
        try:
            candidates.extend(resolve_all_processes(config.worker))
        except ProcessListError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
    elif pid:
        candidates.extend(resolve_process(pid, config.worker))

    if not candidates and top is None:
        console.print("files is null ?")
        console.print(ctx.get_help(), markup=False)
        raise typer.Exit(1)

    file_set = build_file_set(candidates, config)
    logger.debug("analyzing %d files", len(file_set))

    stats = sort_statuses(analyze_files(file_set, config))
    if top is not None:
        stats = top_n(stats, top)

    render(stats, fmt, nohdr=nohdr, pps=config.pps)


if __name__ == "__main__":
    app()
