"""
Bughop machine: the byte-level VM behind the puzzle grid.

All state lives in one flat ClampedRAM: status, registers, a 13-slot
stack and the program grid. Instructions are executed on entry; the
return value of execute() decides whether the debugger may stand there.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable

from .chips import ClampedRAM, FIFO


# ---------------------------------------------------------------------------
# Memory layout
# ---------------------------------------------------------------------------

STA = 0   # status flag
IP  = 1   # instruction pointer
SP  = 2   # stack pointer
CYC = 3   # cycle counter
DBG = 4   # debugger register
DAT = 5   # data register
# 6..9 reserved

STK = 10  # stack base
PRG = 24  # program base

STACK_LENGTH = 13

REGISTER_NAMES = {STA: "STA", IP: "IP", SP: "SP", CYC: "CYC", DBG: "DBG", DAT: "DAT", STK: "STK"}
REGISTER_OFFSETS = {name: off for off, name in REGISTER_NAMES.items()}

# Statuses
RUNNING = 0
HALTED  = 1

# ---------------------------------------------------------------------------
# Instruction format: opcode | operand | mode | direction mask
# ---------------------------------------------------------------------------

INSTR_WIDTH   = 4
INSTR_OPCODE  = 0
INSTR_OPERAND = 1
INSTR_MODE    = 2
INSTR_DIRS    = 3

# Opcodes
NIL = 0x0   # nothing here
NOP = 0x1   # do nothing
GET = 0x2   # move a value into DBG
SET = 0x3   # write a value into a register (or push DBG)
SWP = 0x4   # swap DBG with a register
ADD = 0x5   # add a value to DBG
SUB = 0x6   # subtract a value from DBG
TEQ = 0x7   # test DBG == value
TLT = 0x8   # test DBG < value
TGT = 0x9   # test DBG > value
SND = 0xA   # send DBG to the output port
END = 0xB   # halt
TXT = 0xC   # show a level label

OPCODES = tuple(range(NIL, TXT + 1))

# Modes
IMMEDIATE_MODE = 0
ADDRESS_MODE   = 1

# Directions
RIGHT = 0b0001
DOWN  = 0b0010
LEFT  = 0b0100
UP    = 0b1000

DIRECTIONS = (UP, DOWN, LEFT, RIGHT)
DIRECTION_NAMES = {UP: "U", DOWN: "D", LEFT: "L", RIGHT: "R"}

# Address targets reachable from the editor, in cycling order
ADDRESS_TARGETS = (DAT, STK, CYC, IP, SP)

DEFAULT_COLS = 13
DEFAULT_ROWS = 13


@dataclass(frozen=True)
class OpcodeInfo:
    name: str
    label: str
    hint: str


# Indexed by opcode value.
OPCODE_INFO: tuple[OpcodeInfo, ...] = (
    OpcodeInfo("NIL", "", ""),
    OpcodeInfo("NOP", "NOP", "DO NOTHING"),
    OpcodeInfo("GET", "LOD", "READ VALUE INTO DEBUGGER"),
    OpcodeInfo("SET", "MOV", "WRITE VALUE FROM DEBUGGER"),
    OpcodeInfo("SWP", "SWP", "SWAP VALUE WITH DEBUGGER"),
    OpcodeInfo("ADD", "ADD", "ADD VALUE TO DEBUGGER"),
    OpcodeInfo("SUB", "SUB", "SUB VALUE FROM DEBUGGER"),
    OpcodeInfo("TEQ", "TEQ", "TEST IF DEBUGGER IS EQUAL"),
    OpcodeInfo("TLT", "TLT", "TEST IF DEBUGGER IS LESS THAN"),
    OpcodeInfo("TGT", "TGT", "TEST IF DEBUGGER IS GREATER THAN"),
    OpcodeInfo("SND", "SND", "SEND VALUE"),
    OpcodeInfo("END", "END", "END PROGRAM"),
    OpcodeInfo("TXT", "TXT", "READ THE NOTE"),
)

OPCODE_BY_NAME = {info.name: op for op, info in enumerate(OPCODE_INFO)}


def opcode_info(opcode: int) -> OpcodeInfo | None:
    if 0 <= opcode < len(OPCODE_INFO):
        return OPCODE_INFO[opcode]
    return None


def is_enterable(opcode: int) -> bool:
    """NIL cells (and unknown opcodes) can never hold the debugger."""
    return opcode != NIL and opcode in OPCODES


def is_test(opcode: int) -> bool:
    return opcode in (TEQ, TLT, TGT)


def takes_operand(opcode: int) -> bool:
    """Opcodes whose operand and mode are meaningful to edit."""
    return opcode not in (NIL, NOP, SWP, SND)


def memory_size(cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS) -> int:
    return PRG + cols * rows * INSTR_WIDTH


@dataclass(frozen=True)
class Instruction:
    opcode: int = NIL
    operand: int = 0
    mode: int = IMMEDIATE_MODE
    dirs: int = 0

    def pack(self) -> bytes:
        return bytes((self.opcode, self.operand, self.mode, self.dirs))

    @classmethod
    def unpack(cls, raw: bytes | bytearray) -> "Instruction":
        opcode, operand, mode, dirs = raw[:INSTR_WIDTH]
        return cls(opcode, operand, mode, dirs)


BLANK = Instruction()


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

class BughopMachine:
    """Flat-memory VM: registers, stack and program grid in one RAM."""

    def __init__(self, cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS):
        if cols < 1 or rows < 1:
            raise ValueError(f"Grid must be at least 1x1, got {cols}x{rows}")
        if cols * rows > 256:
            raise ValueError(f"Grid {cols}x{rows} has more cells than IP can address")
        self.cols = cols
        self.rows = rows
        self.length = cols * rows

        # --- Chips ---
        self.ram = ClampedRAM(memory_size(cols, rows))
        self.port = FIFO(16)

        # --- Counters ---
        self.executions = 0
        self.sends = 0
        self.stack_peak = 0

    # -------------------------------------------------------------------
    # Registers
    # -------------------------------------------------------------------

    def reg(self, offset: int) -> int:
        return self.ram.read(offset)

    def set_reg(self, offset: int, val: int):
        self.ram.write(offset, val)

    @property
    def ip(self) -> int:
        return self.ram.read(IP)

    @property
    def halted(self) -> bool:
        return self.ram.read(STA) == HALTED

    # -------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------

    def dump(self) -> bytes:
        """Independent copy of the whole memory."""
        return self.ram.snapshot()

    def load(self, image: bytes | bytearray):
        """Replace memory wholesale. The caller vouches for the contents."""
        self.ram.restore(image)

    def reset(self, rng: random.Random | None = None):
        """Zero every register and fill the grid with a random program."""
        rng = rng or random.Random()
        self.ram.clear()
        self.port.clear()
        for idx in range(self.length):
            mode = rng.choice((ADDRESS_MODE, IMMEDIATE_MODE))
            opcode = rng.choice((NIL, NOP, rng.randrange(END + 1)))
            operand = rng.choice((DAT, STK)) if mode == ADDRESS_MODE else rng.randrange(100)
            dirs = rng.choice((0, UP, LEFT, RIGHT, DOWN))
            self.write_instruction(idx, Instruction(opcode, operand, mode, dirs))

    # -------------------------------------------------------------------
    # Instruction codec
    # -------------------------------------------------------------------

    def in_grid(self, index: int) -> bool:
        return 0 <= index < self.length

    def fetch(self, index: int, field: int) -> int:
        """One field of an instruction; 0 (NIL) for indices off the grid."""
        if not self.in_grid(index) or not 0 <= field < INSTR_WIDTH:
            return 0
        return self.ram.read(PRG + index * INSTR_WIDTH + field)

    def store(self, index: int, field: int, val: int):
        if not self.in_grid(index) or not 0 <= field < INSTR_WIDTH:
            return
        self.ram.write(PRG + index * INSTR_WIDTH + field, val)

    def read_instruction(self, index: int) -> Instruction:
        if not self.in_grid(index):
            return BLANK
        base = PRG + index * INSTR_WIDTH
        return Instruction.unpack(self.ram.data[base:base + INSTR_WIDTH])

    def write_instruction(self, index: int, instr: Instruction):
        self.store(index, INSTR_OPCODE, instr.opcode)
        self.store(index, INSTR_OPERAND, instr.operand)
        self.store(index, INSTR_MODE, instr.mode)
        self.store(index, INSTR_DIRS, instr.dirs)

    # -------------------------------------------------------------------
    # Stack
    #
    # No bounds: once SP passes STACK_LENGTH the slots run into the
    # program grid and pushes overwrite instruction bytes.
    # -------------------------------------------------------------------

    def peek(self) -> int:
        sp = self.ram.read(SP)
        if sp == 0:
            return 0
        return self.ram.read(STK + sp - 1)

    def push(self, val: int):
        sp = self.ram.read(SP)
        self.ram.write(STK + sp, val)
        self.ram.write(SP, sp + 1)
        self.stack_peak = max(self.stack_peak, self.ram.read(SP))

    def pop(self) -> int:
        sp = self.ram.read(SP)
        if sp == 0:
            return 0
        self.ram.write(SP, sp - 1)
        return self.ram.read(STK + sp - 1)

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------

    def resolve(self, operand: int, mode: int) -> int:
        if mode != ADDRESS_MODE:
            return operand
        if operand == STK:
            return self.peek()
        return self.ram.read(operand)

    def execute(self, index: int) -> bool:
        """Run the instruction at index. True means the cell may be entered."""
        instr = self.read_instruction(index)
        opcode, operand = instr.opcode, instr.operand
        value = self.resolve(operand, instr.mode)
        dbg = self.ram.read(DBG)
        self.executions += 1

        if opcode == NIL:
            return False

        if opcode in (NOP, TXT):
            return True

        if opcode == GET:
            self.ram.write(DBG, value)
            return True

        if opcode == SET:
            if operand == STK:
                self.push(dbg)
            else:
                self.ram.write(operand, value)
            return True

        if opcode == SWP:
            if operand == STK:
                tmp = self.pop()
                self.push(dbg)
                self.ram.write(DBG, tmp)
            else:
                tmp = self.ram.read(operand)
                self.ram.write(operand, dbg)
                self.ram.write(DBG, tmp)
            return True

        if opcode == ADD:
            self.ram.write(DBG, dbg + value)
            return True

        if opcode == SUB:
            self.ram.write(DBG, dbg - value)
            return True

        if is_test(opcode):
            return self._compare(opcode, dbg, value)

        if opcode == SND:
            self.sends += 1
            self.port.push(dbg)
            return True

        if opcode == END:
            self.ram.write(STA, HALTED)
            return True

        return False

    @staticmethod
    def _compare(opcode: int, dbg: int, value: int) -> bool:
        if opcode == TEQ:
            return dbg == value
        if opcode == TLT:
            return dbg < value
        return dbg > value

    def test_passes(self, index: int) -> bool:
        """Would a TEQ/TLT/TGT at index let the debugger in right now?"""
        instr = self.read_instruction(index)
        if not is_test(instr.opcode):
            return False
        value = self.resolve(instr.operand, instr.mode)
        return self._compare(instr.opcode, self.ram.read(DBG), value)

    def jump(self, index: int) -> bool:
        """Execute index and move IP there only if execution succeeded."""
        ok = self.execute(index)
        if ok:
            self.ram.write(IP, index)
        return ok

    def cycle(self):
        self.ram.write(CYC, self.ram.read(CYC) + 1)

    def on_send(self, listener: Callable[[int], None]):
        """Register a callback for every byte SND emits."""
        self.port.listeners.append(listener)

    # -------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------

    def reset_counters(self):
        self.executions = 0
        self.sends = 0
        self.stack_peak = 0

    def stats(self) -> dict:
        return {
            "cycles": self.ram.read(CYC),
            "executions": self.executions,
            "sends": self.sends,
            "stack_peak": self.stack_peak,
            "halted": self.halted,
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Cycles: {s['cycles']}\n"
            f"Executions: {s['executions']}\n"
            f"Sends: {s['sends']}\n"
            f"Stack peak: {s['stack_peak']}\n"
            f"Halted: {s['halted']}"
        )
