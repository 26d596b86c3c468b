"""Single-flight file lock for full-library runs."""

import sys
from pathlib import Path
from typing import IO

from loguru import logger

log = logger.bind(stage="concurrency")

LOCK_FILENAME = "theme-songs.lock"


class LockError(Exception):
    """Raised when lock cannot be acquired."""


def acquire_global_lock(lock_dir: Path, skip: bool = False) -> IO | None:
    """Acquire a global file lock so only one acquisition run is in flight.

    Returns the lock file handle (keep reference to maintain lock),
    or None if locking was skipped.
    Raises LockError if another run holds the lock.
    """
    log.debug(f"acquire_global_lock(lock_dir={lock_dir}, skip={skip})")

    if skip:
        log.debug("Skipping lock acquisition")
        return None

    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / LOCK_FILENAME

    fh = open(lock_file, "w")
    try:
        if sys.platform == "win32":
            import msvcrt

            msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl

            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fh.close()
        log.warning(f"Failed to acquire lock at {lock_file}")
        raise LockError("Another theme song run is already in progress")

    log.info(f"Lock acquired at {lock_file}")
    return fh


def release_global_lock(handle: IO | None) -> None:
    """Release a handle returned by acquire_global_lock. None is a no-op."""
    if handle is None:
        return
    if sys.platform == "win32":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    handle.close()
    log.debug("Lock released")
