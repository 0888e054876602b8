import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from marketplace.core.errors import ConflictError

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str]

DEFAULT_LOCK_TIMEOUT = 10.0


class EntityLocks:
    """
    Per-entity mutual exclusion for the workflow engine, keyed by
    (collection, id). Locks exist only while someone holds or waits on them.
    """

    def __init__(self, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.timeout = timeout
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: Dict[LockKey, list] = {}

    @contextmanager
    def hold(self, *keys: Optional[LockKey]) -> Iterator[None]:
        """
        Acquire the locks for all keys, always in sorted order so two
        transitions touching the same entities cannot deadlock.
        """
        ordered = sorted({key for key in keys if key is not None})
        checked_out: List[LockKey] = []
        acquired: List[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                if not lock.acquire(timeout=self.timeout):
                    logger.warning("Timed out after %.1fs waiting for %s/%s", self.timeout, *key)
                    raise ConflictError(f"{key[0]} record {key[1]} is busy, try again")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)

    def _checkout(self, key: LockKey) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
