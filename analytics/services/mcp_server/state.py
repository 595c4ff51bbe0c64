"""Shared state management for MCP server.

FastMCP's Context is per-request, so we need a shared state mechanism
to persist data (loaded metrics snapshot, last segmentation envelope)
across tool calls.
"""

import threading
from typing import Any


class SharedState:
    """Thread-safe shared state storage for MCP tools.

    Uses threading.RLock for thread-safe access to shared data.
    Implements size-based eviction to bound memory.

    Protected keys (metrics_source, segmentation_result) are only evicted
    when every key in the store is protected.
    """

    MAX_ITEMS = 100

    PROTECTED_KEYS = frozenset({"metrics_source", "segmentation_result"})

    def __init__(self):
        self._store: dict[str, Any] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest unprotected entry when full.

        Args:
            key: Storage key
            value: Value to store
        """
        with self._lock:
            if len(self._store) >= self.MAX_ITEMS and key not in self._store:
                victim = next(
                    (k for k in self._store if k not in self.PROTECTED_KEYS),
                    next(iter(self._store)),
                )
                del self._store[victim]

            self._store[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._store.get(key, default)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def pop(self, key: str, default: Any = None) -> Any:
        """Remove a key and return its value (or default)."""
        with self._lock:
            return self._store.pop(key, default)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def keys(self) -> list[str]:
        """Get all keys in shared state (copy, not live view)."""
        with self._lock:
            return list(self._store.keys())


# Global shared state instance
_shared_state = SharedState()


def get_shared_state() -> SharedState:
    """Get the global shared state instance."""
    return _shared_state
