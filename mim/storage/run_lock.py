"""
Mim - Run Lock

Advisory lock that keeps two verification passes from running against the
same repository at once. The lock file records the owner's PID; a lock is
held only while that process is alive, so a crashed pass never blocks the
next one for longer than it takes to probe the PID.
"""
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..core.types import LockRecord
from ..utils.logging import get_logger

logger = get_logger("lock")


def process_exists(pid: int) -> bool:
    """Signal-0 liveness probe."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # alive, owned by someone else
        return True
    except OSError:
        return False
    return True


class RunLock:
    """
    Usage:
        lock = RunLock(paths.lock_file)
        with lock.hold() as acquired:
            if not acquired:
                return  # another pass is active
            ...
    """

    def __init__(self, path: Path, pid: Optional[int] = None):
        self.path = Path(path)
        self.pid = pid if pid is not None else os.getpid()

    def read(self) -> Optional[LockRecord]:
        """Current lock record, or None if absent or unreadable."""
        try:
            return LockRecord.from_dict(json.loads(self.path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def is_held(self) -> bool:
        """Whether a live process currently owns the lock."""
        record = self.read()
        return record is not None and process_exists(record.pid)

    def acquire(self) -> bool:
        """
        Take the lock. Returns False if a live process holds it, including
        this one: acquiring twice without releasing never yields two passes.
        """
        if self._create():
            return True

        record = self.read()
        if record is None:
            logger.info("Clearing unreadable lock file %s", self.path)
        elif process_exists(record.pid):
            logger.info("Pass already running (PID %d), skipping", record.pid)
            return False
        else:
            logger.info("Clearing stale lock from dead process %d", record.pid)
        self.release()

        # another pass may have reclaimed it first
        if self._create():
            return True
        logger.info("Lock %s was taken while reclaiming it, skipping", self.path)
        return False

    def _create(self) -> bool:
        """
        Create the lock file with its record in one step. The record is
        written to a private file and hard-linked into place, which fails if
        the lock already exists, so readers never see a half-written lock.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(LockRecord(pid=self.pid).to_dict(), f, indent=2)
        try:
            os.link(tmp_path, self.path)
            return True
        except FileExistsError:
            return False
        finally:
            os.unlink(tmp_path)

    def release(self):
        """Delete the lock file unconditionally."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """
        Scoped acquisition. Yields whether the lock was acquired and releases
        on every exit path, but only if this holder acquired it.
        """
        acquired = self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
