"""
Key-Value Store Module

This module implements the storage engine: a key -> entry mapping with
lazy TTL expiration.

Every operation takes the store lock exclusively, reads included. get(),
exists(), ttl(), persist() and keys() remove expired entries they come
across, so none of them is a pure read.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import StorageFault

TTL_NO_EXPIRY = -1
TTL_NO_KEY = -2

BytesLike = Union[bytes, bytearray, memoryview, str]


def now_ms() -> int:
    """Current wall clock time in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass
class Entry:
    """
    A stored value.

    Attributes:
        value: The value bytes
        expires_at: Millisecond timestamp, None means no expiration
    """
    value: bytes
    expires_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class KVStore:
    """
    In-memory key-value store with lazy TTL expiration.

    Internal Storage:
        dict of key bytes -> Entry. Keys and values are copied to
        immutable bytes on the way in.

    Expiration:
        An entry whose expires_at is due is logically absent. It is
        physically removed by the first operation that looks it up, or
        by cleanup_expired(). No operation reports it as present.

    Attributes:
        clock: Callable returning the current time in milliseconds
    """

    def __init__(self, clock: Callable[[], int] = None):
        """
        Initialize the KV store.

        Args:
            clock: Millisecond clock (default: wall clock). Tests pass a
                   controllable one.
        """
        self.clock = clock if clock is not None else now_ms
        self._store: Dict[bytes, Entry] = {}
        self._lock = threading.RLock()

    def _live_entry(self, key: bytes) -> Optional[Entry]:
        """Look up a key, removing it if it has expired. Caller holds the lock."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._store[key]
            return None
        return entry

    def set(self, key: BytesLike, value: BytesLike) -> bool:
        """
        Insert or overwrite a key. Any previous TTL is discarded.

        Returns:
            True on success

        Raises:
            StorageFault: If memory for the entry cannot be allocated
        """
        try:
            entry = Entry(_own(value))
            key = _own(key)
        except MemoryError as exc:
            raise StorageFault("out of memory while storing value") from exc

        with self._lock:
            self._store[key] = entry
        return True

    def get(self, key: BytesLike) -> Optional[bytes]:
        """
        Retrieve the value for a key.

        Returns:
            The value if present and not expired, None otherwise
        """
        with self._lock:
            entry = self._live_entry(_own(key))
            return entry.value if entry is not None else None

    def delete(self, key: BytesLike) -> bool:
        """
        Delete a key.

        The entry is removed even if it has already expired, but an
        expired entry does not count as deleted.

        Returns:
            True if a live key was deleted, False otherwise
        """
        with self._lock:
            entry = self._store.pop(_own(key), None)
            if entry is None:
                return False
            return not entry.is_expired(self.clock())

    def exists(self, key: BytesLike) -> bool:
        """Check if a key is present and not expired."""
        with self._lock:
            return self._live_entry(_own(key)) is not None

    def expire(self, key: BytesLike, seconds: int) -> bool:
        """
        Set a key to expire ``seconds`` from now.

        Zero or negative seconds make the key expire on its next access.

        Returns:
            True if the TTL was applied, False if the key is absent
        """
        with self._lock:
            entry = self._live_entry(_own(key))
            if entry is None:
                return False
            entry.expires_at = self.clock() + seconds * 1000
            return True

    def ttl(self, key: BytesLike) -> int:
        """
        Get the remaining time to live of a key.

        Returns:
            Whole seconds remaining (rounded down), TTL_NO_EXPIRY (-1)
            if the key has no TTL, or TTL_NO_KEY (-2) if it is absent
        """
        with self._lock:
            entry = self._live_entry(_own(key))
            if entry is None:
                return TTL_NO_KEY
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return (entry.expires_at - self.clock()) // 1000

    def persist(self, key: BytesLike) -> bool:
        """
        Remove the TTL from a key.

        Returns:
            True if a TTL was removed, False if the key is absent or had none
        """
        with self._lock:
            entry = self._live_entry(_own(key))
            if entry is None or entry.expires_at is None:
                return False
            entry.expires_at = None
            return True

    def keys(self, pattern: BytesLike) -> List[bytes]:
        """
        List live keys matching ``pattern``.

        Supported patterns:
            *          every key
            prefix*    keys starting with prefix
            *suffix    keys ending with suffix
        Any other pattern, including ones with inner or multiple
        wildcards, is compared literally.
        """
        matches = _pattern_matcher(_own(pattern))
        with self._lock:
            now = self.clock()
            expired = [k for k, entry in self._store.items() if entry.is_expired(now)]
            for key in expired:
                del self._store[key]
            return [key for key in self._store if matches(key)]

    def size(self) -> int:
        """
        Get the number of entries held.

        Note: This may include expired keys that haven't been cleaned up yet.
        """
        with self._lock:
            return len(self._store)

    def clear(self) -> None:
        """Remove all keys from the store."""
        with self._lock:
            self._store.clear()

    def cleanup_expired(self) -> int:
        """
        Remove all expired keys from the store (active expiration).

        Returns:
            Number of keys removed
        """
        with self._lock:
            now = self.clock()
            to_delete = [k for k, entry in self._store.items() if entry.is_expired(now)]
            for key in to_delete:
                del self._store[key]
            return len(to_delete)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Entries held, expired or not
            - expired_keys: Expired entries not yet removed
            - active_keys: Live entries
            - keys_with_ttl: Live entries that have a TTL
        """
        with self._lock:
            now = self.clock()
            total = len(self._store)
            expired = sum(1 for entry in self._store.values() if entry.is_expired(now))
            with_ttl = sum(
                1 for entry in self._store.values()
                if entry.expires_at is not None and not entry.is_expired(now)
            )

        return {
            "total_keys": total,
            "expired_keys": expired,
            "active_keys": total - expired,
            "keys_with_ttl": with_ttl,
        }


def _own(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _pattern_matcher(pattern: bytes) -> Callable[[bytes], bool]:
    if pattern == b"*":
        return lambda key: True
    if pattern.count(b"*") == 1:
        if pattern.endswith(b"*"):
            prefix = pattern[:-1]
            return lambda key: key.startswith(prefix)
        if pattern.startswith(b"*"):
            suffix = pattern[1:]
            return lambda key: key.endswith(suffix)
    return lambda key: key == pattern
