"""Data models for pgcacher."""

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OutputFormat(str, Enum):
    """Output layouts, in selection priority order."""

    JSON = "json"
    TERSE = "terse"
    UNICODE = "unicode"
    PLAIN = "plain"
    TEXT = "text"  # bordered ASCII table, the default

    @classmethod
    def select(
        cls,
        json: bool = False,
        terse: bool = False,
        unicode: bool = False,
        plain: bool = False,
    ) -> "OutputFormat":
        """Pick one format when several flags are set."""
        requested = {
            cls.JSON: json,
            cls.TERSE: terse,
            cls.UNICODE: unicode,
            cls.PLAIN: plain,
        }
        for fmt, wanted in requested.items():
            if wanted:
                return fmt
        return cls.TEXT


class OutcomeKind(str, Enum):
    """How the analysis of a single file ended."""

    OK = "ok"
    SKIPPED = "skipped"  # filtered on purpose, not an error
    FAILED = "failed"


class FileStatus(BaseModel):
    """Page cache residency of a single file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="filename", description="Path or basename of the file")
    size_bytes: int = Field(..., alias="size", description="File size in bytes")
    timestamp: datetime = Field(..., description="Time right before the residency query")
    mtime: datetime = Field(..., description="Last modification time of the file")
    pages: int = Field(0, ge=0, description="Total memory pages")
    cached_pages: int = Field(0, ge=0, alias="cached", description="Pages in the page cache")
    uncached_pages: int = Field(0, ge=0, alias="uncached", description="Pages not cached")
    percent: float = Field(0.0, description="Percentage of pages cached")
    per_page_status: list[bool] = Field(
        default_factory=list,
        alias="status",
        description="Per-page residency, empty unless requested",
    )

    @property
    def cached_size_bytes(self) -> int:
        """Estimated cached bytes.

        Residency is counted in pages, so this is derived from the size and
        the percent. It is not exact but is a useful reference.
        """
        return int(self.size_bytes * self.percent / 100)


class CacheSummary(BaseModel):
    """Totals over a collection of file statuses."""

    size_bytes: int = 0
    pages: int = 0
    cached_pages: int = 0
    cached_size_bytes: int = 0
    percent: float = Field(0.0, description="Pages-weighted cached percentage")


class FileOutcome(BaseModel):
    """Typed result of analyzing one path."""

    path: str
    kind: OutcomeKind
    status: Optional[FileStatus] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK


class ProcessInfo(BaseModel):
    """A live OS process."""

    pid: int
    rss: int = Field(0, description="Resident set size in bytes")


class ScanConfig(BaseModel):
    """Per-run configuration, built once by the CLI and never mutated."""

    model_config = ConfigDict(frozen=True)

    worker: int = Field(2, ge=1, description="Worker pool size")
    least_size: int = Field(0, ge=0, description="Skip files smaller than this, 0 disables")
    include_files: Optional[str] = Field(None, description="Keep only files matching this pattern")
    exclude_files: Optional[str] = Field(None, description="Drop files matching this pattern")
    bname: bool = Field(False, description="Display basenames instead of full paths")
    pps: bool = Field(False, description="Keep per-page residency")


_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "m": 1024**2,
    "g": 1024**3,
    "t": 1024**4,
    "p": 1024**5,
}


def parse_size(value: str) -> int:
    """Parse a human-readable size like '10MB', '4k' or '512' into bytes.

    Every unit is a power of 1024; 'MB', 'MiB' and 'M' are the same.
    """
    text = value.strip().lower().replace(" ", "")
    if text.endswith("ib"):
        text = text[:-2]
    elif len(text) > 1 and text.endswith("b") and text[-2].isalpha():
        text = text[:-1]

    number = text.rstrip("bkmgtp")
    unit = text[len(number):]
    if unit not in _SIZE_UNITS or not number:
        raise ValueError(f"invalid size: {value!r}")

    try:
        size = float(number)
    except ValueError:
        raise ValueError(f"invalid size: {value!r}") from None
    if size < 0 or not math.isfinite(size):
        raise ValueError(f"invalid size: {value!r}")
    return int(size * _SIZE_UNITS[unit])
