"""In-memory TTL store for per-session selection controllers."""

from typing import Callable, Dict, Any, Generic, Optional, TypeVar
import time
import threading

T = TypeVar("T")


class SessionStore(Generic[T]):
    """Session objects keyed by session id, expiring after ``ttl_seconds`` idle."""

    def __init__(self, ttl_seconds: int = 900):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, Any]] = {}

    def _expired(self, rec: Dict[str, Any]) -> bool:
        return (time.time() - rec.get("updated_at", 0)) > self.ttl_seconds

    def get(self, session_id: str) -> Optional[T]:
        """Return the session object if present and not expired, else None."""
        with self._lock:
            rec = self._data.get(session_id)
            if not rec:
                return None
            if self._expired(rec):
                self._data.pop(session_id, None)
                return None
            rec["updated_at"] = time.time()
            return rec["value"]

    def get_or_create(self, session_id: str, factory: Callable[[], T]) -> T:
        with self._lock:
            rec = self._data.get(session_id)
            if rec and not self._expired(rec):
                rec["updated_at"] = time.time()
                return rec["value"]
            value = factory()
            self._data[session_id] = {"value": value, "updated_at": time.time()}
            return value

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)

    def purge_expired(self) -> int:
        with self._lock:
            stale = [k for k, rec in self._data.items() if self._expired(rec)]
            for k in stale:
                self._data.pop(k, None)
            return len(stale)
