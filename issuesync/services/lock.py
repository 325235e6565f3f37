"""Store-wide sync lock on <root>/.sync/lock.

Uses fcntl.flock (exclusive, non-blocking) with a retry loop until the
timeout. The lock is a context manager so it is released on every exit
path. Only one pull or push may hold it per store root.
"""

import fcntl
import logging
import os
import time
from pathlib import Path
from types import TracebackType
from typing import IO

from issuesync.errors import LockTimeoutError

LOG = logging.getLogger("issuesync.services.lock")

DEFAULT_TIMEOUT = 10.0
RETRY_INTERVAL = 0.1


def _acquire_with_timeout(fd: int, timeout: float) -> bool:
    """Try LOCK_EX | LOCK_NB every RETRY_INTERVAL until timeout. True if acquired."""
    start = time.monotonic()
    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except BlockingIOError:
            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                return False
            time.sleep(min(RETRY_INTERVAL, max(timeout - elapsed, 0.0)))


class SyncLock:
    """Exclusive lock for one store root.

    Example:
        with SyncLock(paths.lock_path, timeout=10):
            ...
    """

    def __init__(self, path: Path, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self._file: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def __enter__(self) -> "SyncLock":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        f = open(self.path, "a+", encoding="utf-8")
        if not _acquire_with_timeout(f.fileno(), self.timeout):
            f.close()
            LOG.warning("Sync lock %s still held after %.1fs", self.path, self.timeout)
            raise LockTimeoutError(
                f"locked by another process: could not acquire {self.path} within {self.timeout}s"
            )
        f.seek(0)
        f.truncate()
        f.write(f"{os.getpid()}\n")
        f.flush()
        self._file = f
        LOG.debug("Acquired sync lock %s", self.path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
            LOG.debug("Released sync lock %s", self.path)
