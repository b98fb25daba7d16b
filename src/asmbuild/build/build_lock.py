"""Exclusive lock over a project's build outputs.

Two asmbuild processes building the same project would otherwise write the
same manifests and object files concurrently. The lock is an OS-level file
lock (fcntl on POSIX, msvcrt on Windows) on ``<project>/.asmbuild.lock``,
held for the whole build or clean pipeline and released automatically if the
process dies. The lock file lives outside build/ so clean and full-clean can
remove build/ while holding it.
"""

import logging
import sys
import time
from pathlib import Path
from types import TracebackType
from typing import IO, Optional

from ..errors import BuildIOError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".asmbuild.lock"
# msvcrt.locking has no blocking mode without a 10s retry limit; poll instead
_WINDOWS_RETRY_INTERVAL = 0.2


class BuildLock:
    """Context manager holding the project build lock.

    Usage:
        with BuildLock(project_dir):
            ...  # exclusive access to build/ and include/auto/
    """

    def __init__(self, project_dir: Path):
        self.lock_path = project_dir / LOCK_FILE_NAME
        self._handle: Optional[IO[str]] = None

    @property
    def is_held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        """Block until the lock is held.

        Raises:
            BuildIOError: If the lock file cannot be opened or locked
        """
        if self._handle is not None:
            return
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a+", encoding="utf-8")
        except OSError as e:
            raise BuildIOError(f"Cannot open build lock {self.lock_path}: {e}", self.lock_path) from e

        try:
            self._lock(handle)
        except OSError as e:
            handle.close()
            raise BuildIOError(f"Cannot acquire build lock {self.lock_path}: {e}", self.lock_path) from e

        self._handle = handle
        logger.debug(f"Acquired build lock {self.lock_path}")

    def release(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        try:
            self._unlock(handle)
        except OSError as e:
            logger.warning(f"Failed to release build lock {self.lock_path}: {e}")
        finally:
            handle.close()
        logger.debug(f"Released build lock {self.lock_path}")

    def __enter__(self) -> "BuildLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_type, exc_val, exc_tb  # Unused
        self.release()

    @staticmethod
    def _lock(handle: IO[str]) -> None:
        if sys.platform == "win32":
            import msvcrt

            handle.seek(0)
            while True:
                try:
                    msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
                    return
                except OSError:
                    time.sleep(_WINDOWS_RETRY_INTERVAL)
        else:  # pragma: no cover - Unix only
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)

    @staticmethod
    def _unlock(handle: IO[str]) -> None:
        if sys.platform == "win32":
            import msvcrt

            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:  # pragma: no cover - Unix only
            import fcntl

            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
