"""Lobby storage contract and the in-process implementation.

Repositories store whole lobby snapshots under their code, each with a
time-to-live renewed on every write, and a version stamp bumped on every
write so callers can make conditional (compare-and-set) updates.
"""

import copy
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from .state import Lobby


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class LobbyRepository(Protocol):
    def now_ms(self) -> int:
        """The store's clock; the authoritative 'now' for every timestamp the core writes."""

    def get(self, code: str) -> Optional[Lobby]:
        """Return the live snapshot (with ``version`` and ``last_activity``) or None."""

    def exists(self, code: str) -> bool: ...

    def add(self, code: str, lobby: Lobby, ttl_seconds: int) -> bool:
        """Insert only if no live record holds ``code``."""

    def set(self, code: str, lobby: Lobby, ttl_seconds: int, expected_version: Optional[int] = None) -> bool:
        """Overwrite the snapshot. With ``expected_version`` the write only lands if the
        stored version still matches; returns False otherwise."""

    def delete(self, code: str, expected_version: Optional[int] = None) -> bool: ...

    def touch(self, code: str, ttl_seconds: int) -> None:
        """Renew the TTL and last activity without changing the snapshot or its version."""

    def purge_expired(self) -> int: ...


@dataclass
class _Record:
    payload: dict
    version: int
    expires_at: int
    last_activity: int


class InMemoryLobbyRepository:
    """Thread-safe dict-backed repository. Single process only."""

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or wall_clock_ms
        self._records: Dict[str, _Record] = {}
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        return int(self._clock())

    def _live(self, code: str, now: int) -> Optional[_Record]:
        rec = self._records.get(code)
        if rec is None:
            return None
        if rec.expires_at <= now:
            del self._records[code]
            return None
        return rec

    def get(self, code: str) -> Optional[Lobby]:
        with self._lock:
            rec = self._live(code, self.now_ms())
            if rec is None:
                return None
            return Lobby.from_dict(copy.deepcopy(rec.payload), version=rec.version, last_activity=rec.last_activity)

    def exists(self, code: str) -> bool:
        with self._lock:
            return self._live(code, self.now_ms()) is not None

    def add(self, code: str, lobby: Lobby, ttl_seconds: int) -> bool:
        with self._lock:
            now = self.now_ms()
            if self._live(code, now) is not None:
                return False
            self._records[code] = _Record(lobby.to_dict(), 1, now + ttl_seconds * 1000, now)
            lobby.version = 1
            lobby.last_activity = now
            return True

    def set(self, code: str, lobby: Lobby, ttl_seconds: int, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            now = self.now_ms()
            rec = self._live(code, now)
            if expected_version is not None and (rec is None or rec.version != expected_version):
                return False
            version = (rec.version if rec else 0) + 1
            self._records[code] = _Record(lobby.to_dict(), version, now + ttl_seconds * 1000, now)
            lobby.version = version
            lobby.last_activity = now
            return True

    def delete(self, code: str, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            rec = self._live(code, self.now_ms())
            if rec is None:
                return True
            if expected_version is not None and rec.version != expected_version:
                return False
            del self._records[code]
            return True

    def touch(self, code: str, ttl_seconds: int) -> None:
        with self._lock:
            now = self.now_ms()
            rec = self._live(code, now)
            if rec is not None:
                rec.expires_at = now + ttl_seconds * 1000
                rec.last_activity = now

    def purge_expired(self) -> int:
        with self._lock:
            now = self.now_ms()
            expired = [code for code, rec in self._records.items() if rec.expires_at <= now]
            for code in expired:
                del self._records[code]
            return len(expired)
