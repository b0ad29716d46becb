"""
Navigation: moving the debugger around the grid.

A move is legal when the current cell's direction mask allows it (if masks
are enforced), the target is on the grid, and the target instruction
executes successfully. Legal moves cost one cycle and leave one undo entry;
illegal ones change nothing at all.
"""

from __future__ import annotations

from .history import History
from .machine import BughopMachine, INSTR_DIRS, UP, DOWN, LEFT, RIGHT


class Navigator:
    """Moves the debugger on a BughopMachine and records undo history."""

    def __init__(self, machine: BughopMachine, history: History,
                 enforce_directions: bool = True):
        self.machine = machine
        self.history = history
        self.enforce_directions = enforce_directions
        self.moves = 0
        self.rejected = 0

    def target(self, index: int, direction: int) -> int | None:
        """Neighbouring index in `direction`, or None off the grid."""
        cols = self.machine.cols
        row, col = divmod(index, cols)
        if direction == LEFT:
            return index - 1 if col > 0 else None
        if direction == RIGHT:
            return index + 1 if col < cols - 1 else None
        if direction == UP:
            return index - cols if row > 0 else None
        if direction == DOWN:
            return index + cols if row < self.machine.rows - 1 else None
        return None

    def allows(self, direction: int) -> bool:
        """Does the current cell's direction mask permit leaving this way?"""
        if not self.enforce_directions:
            return True
        mask = self.machine.fetch(self.machine.ip, INSTR_DIRS)
        return mask == 0 or bool(mask & direction)

    def jump(self, index: int) -> bool:
        return self.machine.jump(index)

    def attempt_move(self, direction: int) -> bool:
        if not self.allows(direction):
            self.rejected += 1
            return False
        index = self.target(self.machine.ip, direction)
        if index is None:
            self.rejected += 1
            return False
        return self._commit(index)

    def jump_to(self, index: int) -> bool:
        """Pointer jump: any other cell on the grid, no direction check."""
        if not self.machine.in_grid(index) or index == self.machine.ip:
            self.rejected += 1
            return False
        return self._commit(index)

    def _commit(self, index: int) -> bool:
        before = self.machine.dump()
        if not self.jump(index):
            self.rejected += 1
            return False
        self.machine.cycle()
        self.history.push(before)
        self.moves += 1
        return True
