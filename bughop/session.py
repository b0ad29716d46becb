"""
session: one game in progress.

Owns the machine, its undo history, the navigator and the editor, and
turns abstract input commands into calls on them. Front ends only ever
talk to a GameSession.
"""

from __future__ import annotations

import enum
import logging
import random

from . import codec
from .config import GameConfig
from .editor import EditMode, ProgramEditor
from .history import History
from .levels import Level, LevelStore, find_level, next_level, UnknownLevelError
from .machine import (
    BughopMachine, TXT, CYC,
    UP, DOWN, LEFT, RIGHT, opcode_info,
)
from .navigation import Navigator

log = logging.getLogger(__name__)


class Command(enum.Enum):
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    MOVE_LEFT = "move_left"
    MOVE_RIGHT = "move_right"
    UNDO = "undo"
    RESTART = "restart"
    NEXT_LEVEL = "next_level"

    EDIT_TOGGLE = "edit_toggle"
    CELL_TOGGLE = "cell_toggle"
    CURSOR_UP = "cursor_up"
    CURSOR_DOWN = "cursor_down"
    CURSOR_LEFT = "cursor_left"
    CURSOR_RIGHT = "cursor_right"
    DIR_UP = "dir_up"
    DIR_DOWN = "dir_down"
    DIR_LEFT = "dir_left"
    DIR_RIGHT = "dir_right"
    YANK = "yank"
    CUT = "cut"
    PASTE = "paste"
    ON_OFF = "on_off"
    OPCODE_NEXT = "opcode_next"
    OPCODE_PREV = "opcode_prev"
    OPERAND_NEXT = "operand_next"
    OPERAND_PREV = "operand_prev"
    OPERAND_INC = "operand_inc"
    OPERAND_DEC = "operand_dec"
    OPERAND_INC10 = "operand_inc10"
    OPERAND_DEC10 = "operand_dec10"
    MODE_TOGGLE = "mode_toggle"
    DEBUGGER_HERE = "debugger_here"
    EXPORT = "export"


_MOVES = {
    Command.MOVE_UP: UP, Command.MOVE_DOWN: DOWN,
    Command.MOVE_LEFT: LEFT, Command.MOVE_RIGHT: RIGHT,
}
_CURSOR = {
    Command.CURSOR_UP: UP, Command.CURSOR_DOWN: DOWN,
    Command.CURSOR_LEFT: LEFT, Command.CURSOR_RIGHT: RIGHT,
}
_DIRS = {
    Command.DIR_UP: UP, Command.DIR_DOWN: DOWN,
    Command.DIR_LEFT: LEFT, Command.DIR_RIGHT: RIGHT,
}
_ARROWS = {
    EditMode.OFF: {d: c for c, d in _MOVES.items()},
    EditMode.GRID: {d: c for c, d in _CURSOR.items()},
    EditMode.CELL: {d: c for c, d in _DIRS.items()},
}


class GameSession:
    """Sequences levels and routes commands for a single player."""

    def __init__(self, config: GameConfig | None = None,
                 levels: list[Level] | None = None,
                 store: LevelStore | None = None):
        self.config = config or GameConfig()
        self.machine = BughopMachine(self.config.cols, self.config.rows)
        self.history = History(self.config.history_limit)
        self.navigator = Navigator(self.machine, self.history)
        self.editor = ProgramEditor(self.machine, self.history)
        self.levels: list[Level] = levels or []
        self.store = store
        self.level: Level | None = None
        self.seed: int | None = None
        self.output_lines: list[str] = []
        self.exports: list[str] = []
        self._initial = self.machine.dump()
        self.machine.on_send(self._on_send)

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def start(self, level_id: str | None = None, randomize: bool = False):
        """Pick the first thing to play: a named level, the saved one, or random."""
        if randomize or not self.levels:
            self.load_random(self.config.seed)
            return
        if level_id is not None:
            self.load_level(find_level(self.levels, level_id))
            return
        saved = self.store.load_current() if self.store is not None else None
        if saved is not None:
            try:
                self.load_level(find_level(self.levels, saved))
                return
            except UnknownLevelError:
                log.warning("Saved level %s no longer exists, starting over", saved)
        self.load_level(self.levels[0])

    def load_level(self, level: Level):
        self.level = level
        self.seed = None
        self._begin(level.program, authored=True)
        log.info("Loaded level %s (goals %s)", level.id, level.cycles)

    def load_random(self, seed: int | None = None):
        self.level = None
        self.seed = seed if seed is not None else random.randrange(1 << 32)
        self.machine.reset(random.Random(self.seed))
        self._begin(self.machine.dump(), authored=False)
        log.info("Generated random program (seed %d)", self.seed)

    def _begin(self, image: bytes, authored: bool):
        self.machine.load(image)
        self.machine.port.clear()
        self.machine.reset_counters()
        self.history.clear()
        self.editor.exit()
        self.navigator.enforce_directions = self.config.enforce_directions(authored)
        self.output_lines.clear()
        self._initial = self.machine.dump()

    # -------------------------------------------------------------------
    # Play
    # -------------------------------------------------------------------

    def move(self, direction: int) -> bool:
        if self.machine.halted:
            return False
        ok = self.navigator.attempt_move(direction)
        if ok and self.machine.halted:
            self._report_halt()
        return ok

    def click(self, index: int) -> bool:
        """Jump straight to a cell, as a pointer click does."""
        if self.machine.halted or self.editor.active:
            return False
        ok = self.navigator.jump_to(index)
        if ok and self.machine.halted:
            self._report_halt()
        return ok

    def undo(self) -> bool:
        return self.history.undo(self.machine)

    def restart(self) -> bool:
        before = self.machine.dump()
        if before == self._initial:
            return False
        self.history.push(before)
        self.machine.load(self._initial)
        self.machine.port.clear()
        self.output_lines.clear()
        return True

    def advance(self) -> bool:
        """Move on to the next level once the current one has halted."""
        if self.level is None or not self.machine.halted:
            return False
        upcoming = next_level(self.levels, self.level.id)
        if upcoming is None:
            log.info("Level %s was the last one", self.level.id)
            return False
        self.load_level(upcoming)
        if self.store is not None:
            self.store.save_current(upcoming.id)
        return True

    def _report_halt(self):
        cycles = self.machine.reg(CYC)
        if self.level is not None:
            log.info("Level %s halted in %d cycles (%s)", self.level.id, cycles,
                     self.level.medal(cycles) or "no medal")
        else:
            log.info("Random program %s halted in %d cycles", self.seed, cycles)
        log.debug("Machine stats:\n%s", self.machine.stats_summary())

    def _on_send(self, byte: int):
        self.output_lines.append(f"SND {byte:3d}  0x{byte:02X}")

    # -------------------------------------------------------------------
    # Status for renderers
    # -------------------------------------------------------------------

    @property
    def medal(self) -> str | None:
        if self.level is None or not self.machine.halted:
            return None
        return self.level.medal(self.machine.reg(CYC))

    def focus_index(self) -> int:
        return self.editor.pointer if self.editor.active else self.machine.ip

    def hint(self) -> str:
        instr = self.machine.read_instruction(self.focus_index())
        info = opcode_info(instr.opcode)
        if instr.opcode == TXT:
            if self.level is None:
                return f"<missing label {instr.operand}>"
            return self.level.label(instr.operand)
        return info.hint if info else f"UNKNOWN OPCODE {instr.opcode}"

    def export(self) -> str:
        literal = codec.encode_level(self.machine.dump())
        self.exports.append(literal)
        log.info("Exported program: %s", literal)
        return literal

    # -------------------------------------------------------------------
    # Command dispatch
    # -------------------------------------------------------------------

    def arrow_command(self, direction: int) -> Command:
        """What an arrow key means in the current editor mode."""
        return _ARROWS[self.editor.mode][direction]

    def dispatch(self, command: Command) -> bool:
        """Apply one input command. True when it took effect (export always does)."""
        log.debug("Command %s", command.value)
        ed = self.editor

        if command in _MOVES:
            return False if ed.active else self.move(_MOVES[command])
        if command in _CURSOR:
            return ed.move_cursor(_CURSOR[command])
        if command in _DIRS:
            return ed.toggle_direction(_DIRS[command])

        handlers = {
            Command.UNDO: self.undo,
            Command.RESTART: self.restart,
            Command.NEXT_LEVEL: self.advance,
            Command.YANK: ed.yank,
            Command.CUT: ed.cut,
            Command.PASTE: ed.paste,
            Command.ON_OFF: ed.toggle_on_off,
            Command.OPCODE_NEXT: lambda: ed.cycle_opcode(1),
            Command.OPCODE_PREV: lambda: ed.cycle_opcode(-1),
            Command.OPERAND_NEXT: lambda: ed.cycle_operand(1),
            Command.OPERAND_PREV: lambda: ed.cycle_operand(-1),
            Command.OPERAND_INC: lambda: ed.adjust_operand(1),
            Command.OPERAND_DEC: lambda: ed.adjust_operand(-1),
            Command.OPERAND_INC10: lambda: ed.adjust_operand(10),
            Command.OPERAND_DEC10: lambda: ed.adjust_operand(-10),
            Command.MODE_TOGGLE: ed.toggle_mode,
            Command.DEBUGGER_HERE: ed.move_debugger_here,
        }
        if command in handlers:
            return handlers[command]()

        if command is Command.EDIT_TOGGLE:
            ed.toggle()
            return True
        if command is Command.CELL_TOGGLE:
            if not ed.active:
                return False
            ed.toggle_cell()
            return True
        if command is Command.EXPORT:
            self.export()
            return True
        return False
