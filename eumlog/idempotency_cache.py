# eumlog/idempotency_cache.py

import threading
from typing import Iterable, Set, Tuple

SessionKey = Tuple[str, str]


class SaveGuard:
    """
    Process-local guard so a completed consultation is written to the store
    at most once.

    - try_acquire() flips the "saving" flag; a second caller gets False
      while a save is in flight or once the key is marked done.
    - mark_done() is final for the life of the session, failed saves included.
    - forget() drops done keys whose session has been swept.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._saving: Set[SessionKey] = set()
        self._done: Set[SessionKey] = set()

    def try_acquire(self, key: SessionKey) -> bool:
        key = tuple(key)
        with self._lock:
            if key in self._saving or key in self._done:
                return False
            self._saving.add(key)
            return True

    def mark_done(self, key: SessionKey) -> None:
        key = tuple(key)
        with self._lock:
            self._saving.discard(key)
            self._done.add(key)

    def is_done(self, key: SessionKey) -> bool:
        with self._lock:
            return tuple(key) in self._done

    def forget(self, keys: Iterable[SessionKey]) -> int:
        """
        Drop done keys. In-flight saves are left alone. Returns how many were removed.
        """
        removed = 0
        with self._lock:
            for key in keys:
                key = tuple(key)
                if key in self._done and key not in self._saving:
                    self._done.discard(key)
                    removed += 1
        return removed
