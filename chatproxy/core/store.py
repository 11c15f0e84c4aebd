"""
Process-wide quota store.

Holds one `UserState` per user key for the lifetime of the process. Every
read-then-write against a single user (check, record, prune, evict) runs under
that user's shard lock, so check-and-record is atomic even when handlers run
on worker threads. Insertion and deletion additionally take the map lock.
Lock order is always shard lock, then map lock.
"""
from __future__ import annotations

import threading
from typing import Dict, List, Optional

from chatproxy.core.config import QuotaLimits
from chatproxy.core.rate_limiter import Decision, UserState, decide, prune, record, remaining


class QuotaStore:
    def __init__(self, shards: int = 64):
        if shards < 1:
            raise ValueError("shards must be positive")
        self._users: Dict[str, UserState] = {}
        self._map_lock = threading.Lock()
        self._shards = [threading.Lock() for _ in range(shards)]

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, key: str) -> bool:
        return key in self._users

    def _lock_for(self, key: str) -> threading.Lock:
        return self._shards[hash(key) % len(self._shards)]

    def keys(self) -> List[str]:
        """Snapshot of the current keys, safe to iterate while others insert."""
        with self._map_lock:
            return list(self._users.keys())

    def get(self, key: str) -> Optional[UserState]:
        return self._users.get(key)

    def get_or_create(self, key: str, now: int) -> UserState:
        with self._map_lock:
            state = self._users.get(key)
            if state is None:
                state = UserState(created_at=now)
                self._users[key] = state
            return state

    def check(self, key: str, now: int, limits: QuotaLimits) -> Decision:
        """Admission decision without charging quota."""
        with self._lock_for(key):
            state = self.get_or_create(key, now)
            prune(state, now - limits.retention_ms)
            return decide(state, now, limits)

    def admit(self, key: str, now: int, limits: QuotaLimits) -> Decision:
        """Decide and, when allowed, record the request in one critical section."""
        with self._lock_for(key):
            state = self.get_or_create(key, now)
            prune(state, now - limits.retention_ms)
            decision = decide(state, now, limits)
            if decision.allowed:
                record(state, now, limits.retention_ms)
            return decision

    def snapshot(self, key: str, now: int, limits: QuotaLimits) -> Optional[Dict[str, int]]:
        with self._lock_for(key):
            state = self._users.get(key)
            if state is None:
                return None
            return remaining(state, now, limits)

    def block(self, key: str, now: int) -> UserState:
        with self._lock_for(key):
            state = self.get_or_create(key, now)
            state.blocked = True
            return state

    def unblock(self, key: str) -> bool:
        with self._lock_for(key):
            state = self._users.get(key)
            if state is None:
                return False
            state.blocked = False
            return True

    def evict_if_idle(self, key: str, now: int, retention_ms: int, idle_ms: int) -> bool:
        """
        Prune `key` and delete it when nothing is left in the retention window
        and it has been idle longer than `idle_ms`. Blocked users are kept.
        """
        with self._lock_for(key):
            state = self._users.get(key)
            if state is None:
                return False
            prune(state, now - retention_ms)
            if state.request_timestamps or state.blocked:
                return False
            last_seen = state.last_request_at
            if last_seen is not None and now - last_seen <= idle_ms:
                return False
            with self._map_lock:
                del self._users[key]
            return True
