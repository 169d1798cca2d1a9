"""Rich terminal display for pgcacher."""

import json
from typing import Callable

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from pgcacher.analyzer import summarize
from pgcacher.models import FileStatus, OutputFormat

console = Console()

TERSE_HEADER = "name,size,timestamp,mtime,pages,cached,percent"

_UNITS = ["K", "M", "G", "T", "P"]

# fixed widths of the numeric columns
_COLUMNS = [
    ("Size", 15),
    ("Pages", 12),
    ("Cached Size", 15),
    ("Cached Pages", 12),
    ("Percent", 7),
]


def format_size(size_bytes: int) -> str:
    """Format bytes with the largest binary unit that keeps the value >= 1."""
    if size_bytes < 1024:
        return f"{size_bytes}B"

    value = float(size_bytes)
    unit = ""
    for unit in _UNITS:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.3f}{unit}"


def max_name_len(statuses: list[FileStatus]) -> int:
    """Length of the longest name, at least 5."""
    return max([5] + [len(s.name) for s in statuses])


def _row(status: FileStatus) -> list:
    return [
        Text(status.name),  # names may contain markup characters
        format_size(status.size_bytes),
        str(status.pages),
        format_size(status.cached_size_bytes),
        str(status.cached_pages),
        f"{status.percent:.3f}",
    ]


def build_table(
    statuses: list[FileStatus],
    box_style: box.Box | None = box.ASCII,
    show_header: bool = True,
) -> Table:
    """Build the status table with a "Sum" footer row."""
    summary = summarize(statuses)
    footer = [
        "Sum",
        format_size(summary.size_bytes),
        str(summary.pages),
        format_size(summary.cached_size_bytes),
        str(summary.cached_pages),
        f"{summary.percent:.3f}",
    ]

    bordered = box_style is not None
    table = Table(
        box=box_style,
        show_header=show_header,
        show_footer=True,
        show_edge=bordered,
        pad_edge=bordered,
        header_style="bold",
        footer_style="bold",
    )
    table.add_column("Name", footer=footer[0], min_width=max_name_len(statuses), no_wrap=True)
    for (title, width), total in zip(_COLUMNS, footer[1:]):
        table.add_column(title, footer=total, min_width=width, no_wrap=True)

    for status in statuses:
        table.add_row(*_row(status))

    return table


def _print_table(statuses: list[FileStatus], box_style: box.Box | None, nohdr: bool) -> None:
    if not statuses:
        console.print("[yellow]No cached files found.[/yellow]")
        return

    table = build_table(statuses, box_style=box_style, show_header=not nohdr)
    # wide enough that long paths are never cut
    wide = Console(width=max_name_len(statuses) + 120, highlight=False)
    wide.print(table)


def show_text(statuses: list[FileStatus], nohdr: bool = False, pps: bool = False) -> None:
    """Display an ASCII bordered table."""
    _print_table(statuses, box.ASCII, nohdr)


def show_unicode(statuses: list[FileStatus], nohdr: bool = False, pps: bool = False) -> None:
    """Display a table drawn with unicode box characters."""
    _print_table(statuses, box.SQUARE, nohdr)


def show_plain(statuses: list[FileStatus], nohdr: bool = False, pps: bool = False) -> None:
    """Display a table with no box characters."""
    _print_table(statuses, None, nohdr)


def format_percent(percent: float) -> str:
    """Shortest text that parses back to the same float, "100" not "100.0"."""
    text = repr(percent)
    return text[:-2] if text.endswith(".0") else text


def format_terse(statuses: list[FileStatus], nohdr: bool = False) -> list[str]:
    """One comma-separated line per record, raw values."""
    lines = [] if nohdr else [TERSE_HEADER]
    for s in statuses:
        lines.append(
            f"{s.name},{s.size_bytes},{int(s.timestamp.timestamp())},"
            f"{int(s.mtime.timestamp())},{s.pages},{s.cached_pages},{format_percent(s.percent)}"
        )
    return lines


def show_terse(statuses: list[FileStatus], nohdr: bool = False, pps: bool = False) -> None:
    """Display machine-parseable comma-separated output."""
    for line in format_terse(statuses, nohdr=nohdr):
        console.out(line, highlight=False)


def format_json(statuses: list[FileStatus], pps: bool = False) -> str:
    """
    Serialize the collection as a JSON array.

    Without pps the per-page "status" field is emitted as an empty list.
    """
    records = []
    for s in statuses:
        record = s.model_dump(mode="json", by_alias=True)
        if not pps:
            record["status"] = []
        records.append(record)
    return json.dumps(records)


def show_json(statuses: list[FileStatus], nohdr: bool = False, pps: bool = False) -> None:
    """Display the collection as JSON."""
    console.out(format_json(statuses, pps=pps), highlight=False)


RENDERERS: dict[OutputFormat, Callable[..., None]] = {
    OutputFormat.JSON: show_json,
    OutputFormat.TERSE: show_terse,
    OutputFormat.UNICODE: show_unicode,
    OutputFormat.PLAIN: show_plain,
    OutputFormat.TEXT: show_text,
}


def render(
    statuses: list[FileStatus],
    fmt: OutputFormat = OutputFormat.TEXT,
    nohdr: bool = False,
    pps: bool = False,
) -> None:
    """Display a sorted collection in the given format."""
    RENDERERS[fmt](statuses, nohdr=nohdr, pps=pps)
