"""Advisory locking and atomic file replacement."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from .errors import LockContention

logger = logging.getLogger(__name__)


def atomic_write(path: Union[str, Path], data: bytes) -> None:
    """
    Replace a file's content so readers see either the old or the new bytes.

    The data is written to a temporary file in the same directory and
    renamed over the target.

    Args:
        path: Target file
        data: New content
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class RepositoryLock:
    """
    Exclusive advisory lock held for the duration of a mutating operation.

    The lock is a file created with O_CREAT | O_EXCL, so a second holder
    (in this process or another) fails immediately with LockContention
    instead of blocking.

    Usage:
        with RepositoryLock(repo.git_dir / 'index.lock'):
            ...
    """

    def __init__(self, lock_path: Union[str, Path]):
        self.lock_path = Path(lock_path)
        self._held = False

    def acquire(self) -> None:
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockContention(self.lock_path) from None
        with os.fdopen(fd, 'w') as f:
            f.write(f"{os.getpid()}\n")
        self._held = True
        logger.debug("Acquired %s", self.lock_path)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            logger.warning("Lock file %s vanished while held", self.lock_path)
        logger.debug("Released %s", self.lock_path)

    @property
    def held(self) -> bool:
        return self._held

    def __enter__(self) -> 'RepositoryLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
