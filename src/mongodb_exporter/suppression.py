"""
Suppression ledger for repeated warnings.

A fetch that fails the same way on every scrape would otherwise log the same
warning every few seconds. The ledger remembers which scopes have already been
reported; the entry is removed as soon as the scope's fetch succeeds again, so
a later failure is reported once more.

Scope keys are plain strings: ``""`` for server-wide fetches, a database name,
or a ``db.collection`` namespace. Collectors prefix them with their own name so
two collectors never share a scope.
"""

from __future__ import annotations

import threading


class SuppressionLedger:
    """Thread-safe set of scopes whose failure has already been logged."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._warned: set[str] = set()

    def should_log(self, key: str) -> bool:
        """Return True the first time ``key`` is seen, marking it as warned."""
        with self._lock:
            if key in self._warned:
                return False
            self._warned.add(key)
            return True

    def clear(self, key: str) -> None:
        """Forget ``key`` after its fetch succeeded."""
        with self._lock:
            self._warned.discard(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._warned

    def __len__(self) -> int:
        with self._lock:
            return len(self._warned)
