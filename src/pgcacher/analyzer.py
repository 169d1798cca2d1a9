"""Page cache analysis and aggregation for pgcacher."""

import logging
import os
from typing import Iterable

from pgcacher.models import CacheSummary, FileOutcome, FileStatus, OutcomeKind, ScanConfig
from pgcacher.pcstats import PageCacheError, get_page_cache_status
from pgcacher.workers import run_pool

logger = logging.getLogger(__name__)


class BelowLeastSize(Exception):
    """Raise when a file is smaller than the configured least size."""


def size_guard(config: ScanConfig):
    """Build the stat check run before each residency query."""

    def guard(st: os.stat_result) -> None:
        if config.least_size and st.st_size < config.least_size:
            raise BelowLeastSize(f"{st.st_size} < {config.least_size} bytes")

    return guard


def analyze_file(path: str, config: ScanConfig) -> FileOutcome:
    """
    Query the page cache status of one file.

    Args:
        path: File to analyze
        config: Run configuration

    Returns:
        FileOutcome that is ok, skipped (below least size) or failed
    """
    try:
        status = get_page_cache_status(path, size_guard(config), per_page=config.pps)
    except BelowLeastSize as e:
        logger.debug("ignoring %r: %s", path, e)
        return FileOutcome(path=path, kind=OutcomeKind.SKIPPED, reason=str(e))
    except (OSError, PageCacheError) as e:
        logger.warning("skipping %r: %s", path, e)
        return FileOutcome(path=path, kind=OutcomeKind.FAILED, reason=str(e))

    # only keep the file name, trim the directories
    if config.bname:
        status = status.model_copy(update={"name": os.path.basename(path)})

    return FileOutcome(path=path, kind=OutcomeKind.OK, status=status)


def analyze_files(files: Iterable[str], config: ScanConfig) -> list[FileStatus]:
    """
    Analyze page cache status of files concurrently.

    Skipped and failed files are left out. The result order is
    arbitrary; use sort_statuses before presenting it.

    Args:
        files: Paths to analyze
        config: Run configuration; config.worker sets the pool size

    Returns:
        List of FileStatus for every file analyzed successfully
    """

    def analyse(path: str) -> list[FileStatus]:
        outcome = analyze_file(path, config)
        return [outcome.status] if outcome.ok else []

    return run_pool(files, analyse, workers=config.worker)


def sort_statuses(statuses: Iterable[FileStatus]) -> list[FileStatus]:
    """Sort by cached pages, most cached first."""
    return sorted(statuses, key=lambda s: s.cached_pages, reverse=True)


def top_n(statuses: list[FileStatus], n: int) -> list[FileStatus]:
    """
    Get the first n records of an already sorted collection.

    Args:
        statuses: Sorted collection
        n: Number of records to keep, 0 or less keeps everything

    Returns:
        At most n records
    """
    if n <= 0:
        return list(statuses)
    return statuses[: min(n, len(statuses))]


def summarize(statuses: Iterable[FileStatus]) -> CacheSummary:
    """
    Sum up a collection.

    The percent is weighted by pages (total cached / total pages), not an
    average of the per-file percents. It is 0 when there are no pages.
    """
    summary = CacheSummary()
    for s in statuses:
        summary.size_bytes += s.size_bytes
        summary.pages += s.pages
        summary.cached_pages += s.cached_pages
        summary.cached_size_bytes += s.cached_size_bytes

    if summary.pages > 0:
        summary.percent = summary.cached_pages / summary.pages * 100.0
    return summary
