"""Candidate file set resolution for pgcacher.

Files come from explicit arguments, from the open descriptors and memory
maps of a process, or from every live process. The merged list is then
deduplicated and filtered by the include/exclude patterns.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from pgcacher.matcher import wildcard_match
from pgcacher.models import ProcessInfo, ScanConfig
from pgcacher.pcstats import NamespaceError, switch_mount_namespace
from pgcacher.psutils import list_processes
from pgcacher.workers import run_pool

logger = logging.getLogger(__name__)

PROC_ROOT = Path("/proc")
DEVICE_DIR = "/dev"


def resolve_explicit(paths: Iterable[str]) -> set[str]:
    """Strip whitespace from each path and deduplicate."""
    return {p.strip() for p in paths if p.strip()}


def is_ignored(path: str, config: ScanConfig) -> bool:
    """Check a path against the exclude pattern, then the include pattern."""
    if config.exclude_files and wildcard_match(path, config.exclude_files):
        return True

    if config.include_files and not wildcard_match(path, config.include_files):
        return True

    return False


def filter_files(paths: Iterable[str], config: ScanConfig) -> set[str]:
    """Drop the paths that the include/exclude patterns reject."""
    return {p for p in paths if not is_ignored(p, config)}


def build_file_set(paths: Iterable[str], config: ScanConfig) -> set[str]:
    """Deduplicate and filter a raw list of candidate paths."""
    return filter_files(resolve_explicit(paths), config)


def _is_regular_target(target: str) -> bool:
    # pipes and sockets read as 'pipe:[123]' / 'socket:[456]'
    if not target.startswith("/"):
        return False
    if target == DEVICE_DIR or target.startswith(DEVICE_DIR + "/"):
        return False
    return True


def get_process_fd_files(pid: int, worker: int = 2) -> list[str]:
    """
    Resolve the open file descriptors of a process to file paths.

    Args:
        pid: Process id
        worker: Number of readlink threads

    Returns:
        Absolute paths of open regular files, empty if the fd directory
        cannot be read
    """
    fd_dir = Path(PROC_ROOT) / str(pid) / "fd"

    try:
        entries = os.listdir(fd_dir)
    except OSError as e:
        logger.warning("could not read dir %s, err: %s", fd_dir, e)
        return []

    def readlink(name: str) -> list[str]:
        link = fd_dir / name
        try:
            target = os.readlink(link)
        except OSError as e:
            logger.warning("can not read link '%s', err: %s", link, e)
            return []

        if not _is_regular_target(target):
            return []
        return [target]

    return run_pool(entries, readlink, workers=worker)


def get_process_maps(pid: int) -> list[str]:
    """
    Read the file-backed memory mappings of a process.

    A line of /proc/<pid>/maps has six fields when it maps a file:
    address, perms, offset, dev, inode, pathname. Anonymous mappings have
    five and deleted files carry a trailing "(deleted)" seventh field;
    both are skipped.

    Returns:
        Mapped file paths, with one entry per mapping
    """
    maps_file = Path(PROC_ROOT) / str(pid) / "maps"

    files = []
    try:
        with open(maps_file, encoding="utf-8", errors="replace") as f:
            for line in f:
                parts = line.split()
                if len(parts) == 6 and parts[5].startswith("/"):
                    files.append(parts[5])
    except OSError as e:
        logger.warning("could not read %s, err: %s", maps_file, e)
        return []

    return files


def resolve_process(
    pid: int,
    worker: int = 2,
    namespace_log_level: int = logging.WARNING,
) -> list[str]:
    """
    Collect the files a process has open or mapped.

    Descriptor targets come first, then mapped files. Duplicates between
    the two are kept; the set merge removes them later.

    Args:
        pid: Process id
        worker: Number of threads for the descriptor scan
        namespace_log_level: Log level for a failed mount namespace switch

    Returns:
        List of file paths, possibly with duplicates
    """
    # switch mount namespace for containers
    try:
        switch_mount_namespace(pid)
    except NamespaceError as e:
        logger.log(namespace_log_level, "staying in current mount namespace: %s", e)

    with ThreadPoolExecutor(max_workers=2) as executor:
        fd_future = executor.submit(get_process_fd_files, pid, worker)
        maps_future = executor.submit(get_process_maps, pid)
        fd_files = fd_future.result()
        map_files = maps_future.result()

    return fd_files + map_files


def resolve_all_processes(worker: int = 2) -> list[str]:
    """
    Collect the files of every live process.

    Processes with no resident memory are skipped.

    Raises:
        ProcessListError: Process enumeration failed
    """
    processes = [p for p in list_processes() if p.rss > 0]
    logger.debug("scanning %d processes", len(processes))

    def scan(process: ProcessInfo) -> list[str]:
        # setns(CLONE_NEWNS) fails in a multithreaded caller, so containers stay unresolved here
        return resolve_process(process.pid, worker, namespace_log_level=logging.DEBUG)

    return run_pool(processes, scan, workers=worker)
