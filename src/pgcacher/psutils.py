"""Process enumeration."""

import psutil

from pgcacher.models import ProcessInfo


class ProcessListError(Exception):
    """Raise when live processes cannot be enumerated."""


def list_processes() -> list[ProcessInfo]:
    """
    List live processes with their resident set size.

    Processes that exit or deny access while being read report rss=0.

    Raises:
        ProcessListError: Enumeration itself failed
    """
    processes = []
    try:
        for proc in psutil.process_iter(["pid", "memory_info"]):
            memory_info = proc.info.get("memory_info")
            rss = memory_info.rss if memory_info is not None else 0
            processes.append(ProcessInfo(pid=proc.info["pid"], rss=rss))
    except (psutil.Error, OSError) as e:
        raise ProcessListError(f"failed to get processes: {e}") from e

    return processes
