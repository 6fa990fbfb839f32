import threading
from typing import Dict


class MatchLockRegistry:
    """One lock per match id; events for a match are applied one at a time"""

    def __init__(self):
        self._lock = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, match_id: str) -> threading.RLock:
        with self._lock:
            if match_id not in self._locks:
                self._locks[match_id] = threading.RLock()
            return self._locks[match_id]

    def release(self, match_id: str):
        with self._lock:
            self._locks.pop(match_id, None)

    def __contains__(self, match_id: str) -> bool:
        with self._lock:
            return match_id in self._locks


MATCH_LOCKS = MatchLockRegistry()
