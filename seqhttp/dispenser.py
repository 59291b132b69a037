"""Hands out catalog entries exactly once each, in order, across threads."""

from __future__ import annotations

import threading
from typing import NamedTuple, Optional, Sequence

from .catalog import ScriptedResponse


class Dispensed(NamedTuple):
    response: ScriptedResponse
    is_last: bool


class Dispenser:
    """
    A lock-protected cursor over an immutable catalog.

    The lock only covers the read-check-increment of the cursor; callers
    do their I/O after `dispense()` returns.
    """

    def __init__(self, catalog: Sequence[ScriptedResponse]):
        self._catalog = tuple(catalog)
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._catalog)

    @property
    def catalog(self):
        return self._catalog

    @property
    def position(self) -> int:
        """Number of responses handed out so far."""
        with self._lock:
            return self._cursor

    @property
    def remaining(self) -> int:
        with self._lock:
            return len(self._catalog) - self._cursor

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0

    def dispense(self) -> Optional[Dispensed]:
        """
        Claim the next response.

        Returns:
            Dispensed(response, is_last), where is_last is True for exactly
            one call: the one taking the final catalog entry. None once
            every entry has been claimed.
        """
        with self._lock:
            if self._cursor >= len(self._catalog):
                return None
            response = self._catalog[self._cursor]
            self._cursor += 1
            is_last = self._cursor == len(self._catalog)
        return Dispensed(response, is_last)
