"""
Protection cache.

Remembers pods already proven protected so later passes (the namespaced
pass after the cluster-wide pass, or a second dialect) do not report them
again. Membership means "protected" for the lifetime of the cache.

By default the cache lives as long as its owner and never evicts. A
long-lived process can bound staleness with ttl_seconds and size with
max_entries (least recently confirmed entries go first).
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable

PodKey = tuple[str, str]


class ProtectionCache:
    """
    Thread-safe set of (namespace, name) pod identities proven protected.

    Example:
        cache = ProtectionCache()
        protected = cache.resolve(("shop", "web-0"), lambda: evaluate(pod))
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize ProtectionCache.

        Args:
            ttl_seconds: Forget entries older than this (None = never)
            max_entries: Keep at most this many entries (None = unbounded)
            clock: Monotonic time source
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[PodKey, float] = OrderedDict()
        self._lock = threading.Lock()

    def __contains__(self, key: PodKey) -> bool:
        with self._lock:
            return self._contains(key)

    def __len__(self) -> int:
        with self._lock:
            self._expire()
            return len(self._entries)

    def add(self, key: PodKey) -> None:
        """Mark a pod as protected."""
        with self._lock:
            self._add(key)

    def resolve(self, key: PodKey, decide: Callable[[], bool]) -> bool:
        """
        Atomically check the cache, evaluate on a miss, and record a hit.

        Args:
            key: Pod identity
            decide: Called only on a miss; returns True if the pod is protected

        Returns:
            True if the pod is protected
        """
        with self._lock:
            if self._contains(key):
                return True
            protected = decide()
            if protected:
                self._add(key)
            return protected

    def clear(self) -> None:
        """Forget every entry."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[PodKey]:
        """Return the cached identities, least recently confirmed first."""
        with self._lock:
            self._expire()
            return list(self._entries)

    def _contains(self, key: PodKey) -> bool:
        added = self._entries.get(key)
        if added is None:
            return False
        if self.ttl_seconds is not None and self._clock() - added > self.ttl_seconds:
            del self._entries[key]
            return False
        self._entries.move_to_end(key)
        return True

    def _add(self, key: PodKey) -> None:
        self._entries[key] = self._clock()
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def _expire(self) -> None:
        if self.ttl_seconds is None:
            return
        now = self._clock()
        for key in [k for k, added in self._entries.items() if now - added > self.ttl_seconds]:
            del self._entries[key]
