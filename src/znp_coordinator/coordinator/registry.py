"""Pending-request registry correlating asynchronous responses to callers.

Each entry is stored under ``<semantic name>-<random suffix>``. The suffix
only keeps concurrently outstanding requests of the same kind apart, so
dispatch matches on the key *prefix* and fires every matching entry, in no
particular order. An entry is removed before its continuation runs, which
guarantees at-most-once delivery.

There is no timeout: an entry whose response never arrives stays until
:meth:`PendingRequestRegistry.expire` is called.
"""

from __future__ import annotations

import logging
import random
import string
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

Continuation = Callable[[bytes, Any], None]

SUFFIX_LENGTH = 7
_SUFFIX_ALPHABET = string.ascii_letters + string.digits


@dataclass
class PendingRequest:
    """A registered continuation awaiting a correlated response."""

    key: str
    continuation: Continuation
    context: Any = None
    created_at: float = field(default_factory=time.monotonic)


class PendingRequestRegistry:
    """Thread-safe map of correlation keys to one-shot continuations.

    Usage::

        registry = PendingRequestRegistry()
        registry.register("UTIL_ADDRMGR_NWK_ADDR_LOOKUP", on_lookup, 0x1234)
        registry.dispatch("UTIL_ADDRMGR_NWK_ADDR_LOOKUP", payload)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, PendingRequest] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def pending(self) -> list[str]:
        """Snapshot of the keys currently registered."""
        with self._lock:
            return list(self._entries)

    def register(
        self,
        semantic_name: str,
        continuation: Continuation,
        context: Any = None,
    ) -> str:
        """Store a continuation and return its key.

        Raises:
            ValueError: If ``semantic_name`` is empty.
        """
        if not semantic_name:
            raise ValueError("Semantic name must not be empty")

        with self._lock:
            key = self._new_key(semantic_name)
            self._entries[key] = PendingRequest(
                key=key,
                continuation=continuation,
                context=context,
                created_at=self._clock(),
            )

        logger.debug("Registered pending request %s", key)
        return key

    def dispatch(self, semantic_name: str | None, payload: bytes) -> int:
        """Fire and remove every entry whose key starts with ``semantic_name``.

        An empty or missing name matches nothing. Returns the number of
        continuations fired.
        """
        if not semantic_name:
            return 0

        with self._lock:
            matched = [
                self._entries.pop(key)
                for key in list(self._entries)
                if key.startswith(semantic_name)
            ]

        for entry in matched:
            logger.debug("Firing pending request %s", entry.key)
            try:
                entry.continuation(payload, entry.context)
            except Exception:
                logger.exception("Continuation for %s failed", entry.key)

        return len(matched)

    def expire(self, max_age: float) -> list[str]:
        """Drop entries older than ``max_age`` seconds and return their keys."""
        cutoff = self._clock() - max_age
        with self._lock:
            stale = [
                key
                for key, entry in self._entries.items()
                if entry.created_at <= cutoff
            ]
            for key in stale:
                del self._entries[key]

        for key in stale:
            logger.warning("Expired pending request %s", key)
        return stale

    def _new_key(self, semantic_name: str) -> str:
        while True:
            suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=SUFFIX_LENGTH))
            key = f"{semantic_name}-{suffix}"
            if key not in self._entries:
                return key
