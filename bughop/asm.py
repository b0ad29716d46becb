"""
Bughop assembly: a readable text form for programs and levels.

Usage:
    bughop-asm bughop/levels/01_tutorial.asm          # RLE literal, exported
    bughop-asm --raw my_level.asm                      # RLE literal, as written
    bughop-asm -d "[0,1,122,1,0,698]"                  # literal back to text

Syntax (whitespace and newlines are free, ';' starts a comment):
    .id 01_tutorial            level id
    .cycles 10 11 12           gold / silver / bronze cycle thresholds
    .label "some text"         appended to the label list (TXT #n shows label n)
    .reg IP 122                register value (STA IP SP CYC DBG DAT)
    .stack 4 8                 stack slots, from slot 0
    .byte 7 99                 raw byte at an absolute memory offset
    9,5: NOP                   row,col: instruction
    57: TEQ #10 [R]            flat index, immediate operand, direction mask
    58: GET DAT [UD]           address operand by register name
    59: SET @77                address operand by raw offset
    60: DB 14 3 9 0            raw opcode/operand/mode/dirs bytes
"""

from __future__ import annotations

import argparse
import ast
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedInput, VisitError

from . import codec
from .machine import (
    OPCODE_INFO, OPCODE_BY_NAME, OPCODES, REGISTER_NAMES, REGISTER_OFFSETS,
    DIRECTION_NAMES, DEFAULT_COLS, DEFAULT_ROWS,
    IMMEDIATE_MODE, ADDRESS_MODE, INSTR_WIDTH, PRG, STK, STACK_LENGTH,
    STA, IP, SP, CYC, DBG, DAT, memory_size,
)


GRAMMAR = r"""
    start: stmt*

    ?stmt: id_stmt
         | cycles_stmt
         | label_stmt
         | reg_stmt
         | stack_stmt
         | byte_stmt
         | cell_stmt

    id_stmt: ".id" NAME
    cycles_stmt: ".cycles" INT INT INT
    label_stmt: ".label" ESCAPED_STRING
    reg_stmt: ".reg" REGISTER INT
    stack_stmt: ".stack" INT*
    byte_stmt: ".byte" INT INT

    cell_stmt: position ":" instr
    position: INT               -> flat_pos
            | INT "," INT       -> grid_pos

    instr: OPCODE [operand] [dirs]      -> op_instr
         | "DB"i INT INT INT INT        -> raw_instr

    operand: "#" INT            -> immediate
           | "@" INT            -> raw_address
           | REGISTER           -> register

    dirs: "[" [DIRS] "]"

    OPCODE: /(NIL|NOP|GET|SET|SWP|ADD|SUB|TEQ|TLT|TGT|SND|END|TXT)\b/i
    REGISTER: /(STA|IP|SP|CYC|DBG|DAT|STK)\b/i
    DIRS: /[UDLR]+/i
    NAME: /[A-Za-z0-9_\-]+/
    INT: /[0-9]+/

    %import common.ESCAPED_STRING
    COMMENT: /;[^\n]*/
    %ignore COMMENT
    %ignore /\s+/
"""

parser = Lark(GRAMMAR, parser="earley", ambiguity="resolve", propagate_positions=True)

DIRECTION_BITS = {name: bit for bit, name in DIRECTION_NAMES.items()}
DIRECTION_ORDER = "UDLR"

# Bytes not covered by .reg or .stack
_LOOSE_BYTES = tuple(range(DAT + 1, STK)) + tuple(range(STK + STACK_LENGTH, PRG))


class AssemblyError(ValueError):
    """Bad program text. Carries the 1-based line and column when known."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        where = f"line {line}, column {column}: " if line is not None else ""
        super().__init__(f"{where}{message}")


@dataclass
class Assembly:
    memory: bytes
    level_id: str | None = None
    cycles: tuple[int, int, int] | None = None
    labels: list[str] = field(default_factory=list)


def _byte(tok) -> int:
    val = int(tok)
    if val > 0xFF:
        raise AssemblyError(f"value {val} does not fit in a byte", tok.line, tok.column)
    return val


# ---------------------------------------------------------------------------
# Parse tree → statements
# ---------------------------------------------------------------------------

@v_args(inline=True)
class StatementBuilder(Transformer):
    def id_stmt(self, name):
        return ("id", str(name))

    def cycles_stmt(self, gold, silver, bronze):
        return ("cycles", (int(gold), int(silver), int(bronze)))

    def label_stmt(self, text):
        return ("label", ast.literal_eval(str(text)))

    def reg_stmt(self, reg, val):
        offset = REGISTER_OFFSETS[str(reg).upper()]
        if offset == STK:
            raise AssemblyError("STK is not a register, use .stack", reg.line, reg.column)
        return ("byte", offset, _byte(val), reg)

    def stack_stmt(self, *vals):
        if len(vals) > STACK_LENGTH:
            tok = vals[STACK_LENGTH]
            raise AssemblyError(f"stack holds {STACK_LENGTH} values", tok.line, tok.column)
        return ("stack", [_byte(v) for v in vals])

    def byte_stmt(self, offset, val):
        return ("byte", int(offset), _byte(val), offset)

    def cell_stmt(self, pos, record):
        return ("cell", pos, record)

    def flat_pos(self, idx):
        return ("flat", int(idx), idx)

    def grid_pos(self, row, col):
        return ("grid", (int(row), int(col)), row)

    def op_instr(self, opcode, operand, dirs):
        op = OPCODE_BY_NAME[str(opcode).upper()]
        value, mode = operand if operand is not None else (0, IMMEDIATE_MODE)
        return bytes((op, value, mode, dirs or 0))

    def raw_instr(self, *vals):
        return bytes(_byte(v) for v in vals)

    def immediate(self, val):
        return (_byte(val), IMMEDIATE_MODE)

    def raw_address(self, val):
        return (_byte(val), ADDRESS_MODE)

    def register(self, reg):
        return (REGISTER_OFFSETS[str(reg).upper()], ADDRESS_MODE)

    def dirs(self, letters=None):
        mask = 0
        for ch in str(letters or "").upper():
            mask |= DIRECTION_BITS[ch]
        return mask

    def start(self, *stmts):
        return list(stmts)


statement_builder = StatementBuilder()


def parse(text: str) -> list[tuple]:
    try:
        tree = parser.parse(text)
    except UnexpectedInput as e:
        raise AssemblyError(f"unexpected input {e.get_context(text).strip()!r}",
                            e.line, e.column) from e
    try:
        return statement_builder.transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, AssemblyError):
            raise e.orig_exc from None
        raise


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

def assemble(text: str, cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS) -> Assembly:
    """Build a memory image (plus level metadata) from assembly text."""
    mem = bytearray(memory_size(cols, rows))
    result = Assembly(memory=b"")
    seen: set[int] = set()

    for stmt in parse(text):
        kind = stmt[0]
        if kind == "id":
            result.level_id = stmt[1]
        elif kind == "cycles":
            result.cycles = stmt[1]
        elif kind == "label":
            result.labels.append(stmt[1])
        elif kind == "stack":
            for i, val in enumerate(stmt[1]):
                mem[STK + i] = val
        elif kind == "byte":
            _, offset, val, tok = stmt
            if offset >= len(mem):
                raise AssemblyError(f"offset {offset} is outside memory ({len(mem)} bytes)",
                                    tok.line, tok.column)
            mem[offset] = val
        elif kind == "cell":
            _, (pos_kind, pos, tok), record = stmt
            if pos_kind == "grid":
                row, col = pos
                if row >= rows or col >= cols:
                    raise AssemblyError(f"cell {row},{col} is outside the {cols}x{rows} grid",
                                        tok.line, tok.column)
                index = row * cols + col
            else:
                index = pos
                if index >= cols * rows:
                    raise AssemblyError(f"cell {index} is outside the {cols}x{rows} grid",
                                        tok.line, tok.column)
            if index in seen:
                raise AssemblyError(f"cell {index} defined twice", tok.line, tok.column)
            seen.add(index)
            base = PRG + index * INSTR_WIDTH
            mem[base:base + INSTR_WIDTH] = record

    result.memory = bytes(mem)
    return result


def assemble_file(path: str | Path, cols: int = DEFAULT_COLS,
                  rows: int = DEFAULT_ROWS) -> Assembly:
    return assemble(Path(path).read_text(encoding="utf-8"), cols, rows)


# ---------------------------------------------------------------------------
# Disassembler
# ---------------------------------------------------------------------------

def format_dirs(mask: int) -> str:
    return "".join(ch for ch in DIRECTION_ORDER if mask & DIRECTION_BITS[ch])


def format_instruction(record: bytes) -> str:
    opcode, operand, mode, dirs = record
    if opcode not in OPCODES or mode not in (IMMEDIATE_MODE, ADDRESS_MODE) or dirs > 0xF:
        return f"DB {opcode} {operand} {mode} {dirs}"
    parts = [OPCODE_INFO[opcode].name]
    if mode == ADDRESS_MODE:
        name = REGISTER_NAMES.get(operand)
        parts.append(name if name else f"@{operand}")
    elif operand:
        parts.append(f"#{operand}")
    if dirs:
        parts.append(f"[{format_dirs(dirs)}]")
    return " ".join(parts)


def disassemble(memory: bytes | bytearray, cols: int = DEFAULT_COLS,
                rows: int = DEFAULT_ROWS, level_id: str | None = None,
                cycles: tuple[int, int, int] | None = None,
                labels: list[str] | tuple[str, ...] = ()) -> str:
    """Text that assembles back to exactly `memory`."""
    if len(memory) != memory_size(cols, rows):
        raise ValueError(f"Expected {memory_size(cols, rows)} bytes for a "
                         f"{cols}x{rows} grid, got {len(memory)}")
    lines = [f"; bughop program, {cols}x{rows}"]
    if level_id:
        lines.append(f".id {level_id}")
    if cycles:
        lines.append(".cycles {} {} {}".format(*cycles))
    for label in labels:
        lines.append(f".label {json.dumps(label)}")

    for offset in (STA, IP, SP, CYC, DBG, DAT):
        if memory[offset]:
            lines.append(f".reg {REGISTER_NAMES[offset]} {memory[offset]}")
    for offset in _LOOSE_BYTES:
        if memory[offset]:
            lines.append(f".byte {offset} {memory[offset]}")
    stack = list(memory[STK:STK + STACK_LENGTH])
    while stack and stack[-1] == 0:
        stack.pop()
    if stack:
        lines.append(".stack " + " ".join(str(v) for v in stack))

    for index in range(cols * rows):
        base = PRG + index * INSTR_WIDTH
        record = bytes(memory[base:base + INSTR_WIDTH])
        if not any(record):
            continue
        row, col = divmod(index, cols)
        lines.append(f"{row},{col}: {format_instruction(record)}")

    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    argp = argparse.ArgumentParser(
        description="Bughop assembler / disassembler",
        prog="bughop-asm",
    )
    argp.add_argument("source", help="Assembly file, or a literal / literal file with -d")
    argp.add_argument("-d", "--disassemble", action="store_true",
                      help="Treat source as an RLE literal and print assembly")
    argp.add_argument("--raw", action="store_true",
                      help="Keep CYC and STA as written instead of resetting them")
    argp.add_argument("--cols", type=int, default=DEFAULT_COLS)
    argp.add_argument("--rows", type=int, default=DEFAULT_ROWS)
    args = argp.parse_args()

    try:
        if args.disassemble:
            path = Path(args.source)
            text = path.read_text(encoding="utf-8") if path.exists() else args.source
            print(disassemble(codec.decode_level(text), args.cols, args.rows), end="")
        else:
            result = assemble_file(args.source, args.cols, args.rows)
            image = result.memory if args.raw else codec.export_memory(result.memory)
            print(codec.format_literal(codec.encode_rle(image)))
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
