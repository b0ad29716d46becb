"""
Undo log: a stack of whole-memory snapshots.

A snapshot is pushed only after the action it precedes actually changed
something, so every undo reverts exactly one visible step. There is no redo.
"""

from __future__ import annotations

import collections

from .machine import BughopMachine


class History:
    """Linear undo over machine snapshots. Optionally capped at `limit`."""

    def __init__(self, limit: int | None = None):
        if limit is not None and limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self.entries: collections.deque[bytes] = collections.deque(maxlen=limit)

    def push(self, snapshot: bytes):
        self.entries.append(bytes(snapshot))

    def undo(self, machine: BughopMachine) -> bool:
        """Restore the newest snapshot. False (and no change) when empty."""
        if not self.entries:
            return False
        machine.load(self.entries.pop())
        return True

    def peek(self) -> bytes | None:
        return self.entries[-1] if self.entries else None

    def clear(self):
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)
