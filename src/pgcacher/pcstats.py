"""Page cache residency of files, via mmap(2) and mincore(2).

Also holds the mount namespace switch needed to see the files of a
process that lives in a container.
"""

import ctypes
import ctypes.util
import mmap
import os
import stat
from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional

from pgcacher.models import FileStatus

CLONE_NEWNS = 0x00020000
PROT_NONE = 0
PAGE_SIZE = mmap.PAGESIZE

_MAP_FAILED = ctypes.c_void_p(-1).value

# mincore only defines the lowest bit of each byte
_RESIDENT_BIT = bytes(b & 1 for b in range(256))

SizeGuard = Callable[[os.stat_result], None]


class PageCacheError(Exception):
    """Raise when the residency of a file cannot be queried."""


class NamespaceError(Exception):
    """Raise when switching to another mount namespace fails."""


@lru_cache(maxsize=1)
def _libc() -> ctypes.CDLL:
    libc = ctypes.CDLL(ctypes.util.find_library("c") or "libc.so.6", use_errno=True)

    libc.mmap.restype = ctypes.c_void_p
    libc.mmap.argtypes = [
        ctypes.c_void_p,  # addr
        ctypes.c_size_t,  # length
        ctypes.c_int,  # prot
        ctypes.c_int,  # flags
        ctypes.c_int,  # fd
        ctypes.c_long,  # offset
    ]
    libc.munmap.restype = ctypes.c_int
    libc.munmap.argtypes = [ctypes.c_void_p, ctypes.c_size_t]
    libc.mincore.restype = ctypes.c_int
    libc.mincore.argtypes = [ctypes.c_void_p, ctypes.c_size_t, ctypes.POINTER(ctypes.c_ubyte)]
    libc.setns.restype = ctypes.c_int
    libc.setns.argtypes = [ctypes.c_int, ctypes.c_int]
    return libc


def _errno_message(call: str) -> str:
    errno = ctypes.get_errno()
    return f"{call} failed: {os.strerror(errno)} (errno {errno})"


def get_file_mincore(fd: int, size: int) -> bytes:
    """
    Return one byte per page of the file, 1 if the page is resident.

    Args:
        fd: Open file descriptor
        size: File size in bytes

    Returns:
        Residency vector, empty for a zero-length file
    """
    if size == 0:
        return b""

    libc = _libc()
    # PROT_NONE is enough for mincore and never faults pages in
    addr = libc.mmap(None, size, PROT_NONE, mmap.MAP_SHARED, fd, 0)
    if addr is None or addr == _MAP_FAILED:
        raise PageCacheError(_errno_message("mmap"))

    try:
        pages = (size + PAGE_SIZE - 1) // PAGE_SIZE
        vec = (ctypes.c_ubyte * pages)()
        if libc.mincore(addr, size, vec) != 0:
            raise PageCacheError(_errno_message("mincore"))
        return bytes(vec).translate(_RESIDENT_BIT)
    finally:
        libc.munmap(addr, size)


def get_page_cache_status(
    path: str,
    guard: Optional[SizeGuard] = None,
    per_page: bool = False,
) -> FileStatus:
    """
    Query how much of a file sits in the page cache.

    Args:
        path: File to inspect
        guard: Optional callback run on the file's stat result before the
            query; whatever it raises propagates to the caller
        per_page: Keep the per-page residency flags

    Returns:
        FileStatus for the file

    Raises:
        OSError: The file cannot be opened or stat'ed
        PageCacheError: The path is a directory or mmap/mincore failed
    """
    fd = os.open(path, os.O_RDONLY)
    try:
        st = os.fstat(fd)
        if stat.S_ISDIR(st.st_mode):
            raise PageCacheError("file is a directory")
        if guard is not None:
            guard(st)

        timestamp = datetime.now()
        vector = get_file_mincore(fd, st.st_size)
    finally:
        os.close(fd)

    pages = len(vector)
    cached = vector.count(1)
    percent = cached / pages * 100.0 if pages else 0.0

    return FileStatus(
        name=path,
        size_bytes=st.st_size,
        timestamp=timestamp,
        mtime=datetime.fromtimestamp(st.st_mtime),
        pages=pages,
        cached_pages=cached,
        uncached_pages=pages - cached,
        percent=percent,
        per_page_status=[b == 1 for b in vector] if per_page else [],
    )


def get_mount_namespace(pid: int | str) -> str:
    """Return the mount namespace id of a process, e.g. 'mnt:[4026531840]'."""
    return os.readlink(f"/proc/{pid}/ns/mnt")


def switch_mount_namespace(pid: int) -> None:
    """
    Join the mount namespace of a process so its paths resolve.

    Does nothing when the process already shares our namespace. setns(2)
    with CLONE_NEWNS needs CAP_SYS_ADMIN and a single-threaded caller.

    Raises:
        NamespaceError: The namespace cannot be read or joined
    """
    try:
        mine = get_mount_namespace("self")
        target = get_mount_namespace(pid)
    except OSError as e:
        raise NamespaceError(f"cannot read mount namespace of pid {pid}: {e}") from e

    if mine == target:
        return

    try:
        fd = os.open(f"/proc/{pid}/ns/mnt", os.O_RDONLY)
    except OSError as e:
        raise NamespaceError(f"cannot open mount namespace of pid {pid}: {e}") from e

    try:
        if _libc().setns(fd, CLONE_NEWNS) != 0:
            raise NamespaceError(_errno_message(f"setns to pid {pid}"))
    finally:
        os.close(fd)
