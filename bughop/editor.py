"""
Program editor: a cursor over the grid that rewrites instruction fields.

Edits go straight through the codec (fetch/store) and never execute
anything. Each edit that changes memory leaves one undo entry in the
shared History, exactly like a debugger move.
"""

from __future__ import annotations

import enum
from typing import Callable, Sequence

from .codec import export_memory
from .history import History
from .machine import (
    BughopMachine, Instruction, BLANK,
    INSTR_OPCODE, INSTR_OPERAND, INSTR_MODE, INSTR_DIRS,
    NIL, NOP, END, OPCODES, ADDRESS_TARGETS,
    IMMEDIATE_MODE, ADDRESS_MODE, DAT, IP,
    UP, DOWN, LEFT, RIGHT, takes_operand,
)


class EditMode(enum.Enum):
    OFF = "off"
    GRID = "grid"   # arrows move the cursor
    CELL = "cell"   # arrows toggle direction bits of the cell under the cursor


def cycle_value(values: Sequence[int], current: int, step: int = 1) -> int:
    """Next entry after `current`, wrapping. Unknown values go to the first."""
    if current not in values:
        return values[0]
    idx = values.index(current)
    return values[(idx + step) % len(values)]


class ProgramEditor:
    """Grid/cell editing state machine over a BughopMachine."""

    def __init__(self, machine: BughopMachine, history: History):
        self.machine = machine
        self.history = history
        self.mode = EditMode.OFF
        self.pointer = 0
        self.yanked: Instruction = BLANK
        self.edits = 0

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self.mode is not EditMode.OFF

    def enter(self):
        self.mode = EditMode.GRID
        self.pointer = self.machine.ip

    def exit(self):
        self.mode = EditMode.OFF
        self.pointer = 0
        self.yanked = BLANK

    def toggle(self):
        if self.active:
            self.exit()
        else:
            self.enter()

    def toggle_cell(self):
        if self.mode is EditMode.GRID:
            self.mode = EditMode.CELL
        elif self.mode is EditMode.CELL:
            self.mode = EditMode.GRID

    # -------------------------------------------------------------------
    # Cursor
    # -------------------------------------------------------------------

    def move_cursor(self, direction: int) -> bool:
        """Step the pointer. It may leave the grid; reads there see NIL."""
        if not self.active:
            return False
        cols = self.machine.cols
        delta = {LEFT: -1, RIGHT: 1, UP: -cols, DOWN: cols}.get(direction)
        if delta is None:
            return False
        self.pointer += delta
        return True

    def current(self) -> Instruction:
        return self.machine.read_instruction(self.pointer)

    # -------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------

    def _edit(self, change: Callable[[], None]) -> bool:
        if not self.active or not self.machine.in_grid(self.pointer):
            return False
        before = self.machine.dump()
        change()
        if self.machine.dump() == before:
            return False
        self.history.push(before)
        self.edits += 1
        return True

    def toggle_direction(self, direction: int) -> bool:
        instr = self.current()
        if instr.opcode in (NIL, END):
            return False
        return self._edit(lambda: self.machine.store(
            self.pointer, INSTR_DIRS, instr.dirs ^ direction))

    def yank(self) -> bool:
        if not self.active or not self.machine.in_grid(self.pointer):
            return False
        self.yanked = self.current()
        return True

    def cut(self) -> bool:
        if not self.yank():
            return False
        return self._edit(lambda: self.machine.write_instruction(self.pointer, BLANK))

    def paste(self) -> bool:
        yanked = self.yanked
        return self._edit(lambda: self.machine.write_instruction(self.pointer, yanked))

    def toggle_on_off(self) -> bool:
        opcode = NOP if self.current().opcode == NIL else NIL
        return self._edit(lambda: self.machine.store(self.pointer, INSTR_OPCODE, opcode))

    def cycle_opcode(self, step: int = 1) -> bool:
        opcode = cycle_value(OPCODES, self.current().opcode, step)
        return self._edit(lambda: self.machine.store(self.pointer, INSTR_OPCODE, opcode))

    def cycle_operand(self, step: int = 1) -> bool:
        instr = self.current()
        if not takes_operand(instr.opcode) or instr.mode != ADDRESS_MODE:
            return False
        operand = cycle_value(ADDRESS_TARGETS, instr.operand, step)
        return self._edit(lambda: self.machine.store(self.pointer, INSTR_OPERAND, operand))

    def adjust_operand(self, delta: int) -> bool:
        instr = self.current()
        if not takes_operand(instr.opcode) or instr.mode != IMMEDIATE_MODE:
            return False
        return self._edit(lambda: self.machine.store(
            self.pointer, INSTR_OPERAND, instr.operand + delta))

    def toggle_mode(self) -> bool:
        instr = self.current()
        if not takes_operand(instr.opcode):
            return False
        if instr.mode == ADDRESS_MODE:
            mode, operand = IMMEDIATE_MODE, 0
        else:
            mode, operand = ADDRESS_MODE, DAT

        def change():
            self.machine.store(self.pointer, INSTR_MODE, mode)
            self.machine.store(self.pointer, INSTR_OPERAND, operand)

        return self._edit(change)

    def move_debugger_here(self) -> bool:
        """Teleport the debugger to the cursor without executing anything."""
        return self._edit(lambda: self.machine.set_reg(IP, self.pointer))

    def export(self) -> bytes:
        """Memory image that starts fresh: zero cycles, status RUNNING."""
        return export_memory(self.machine.dump())
