"""
Tests for the program editor state machine and its edits.
"""

from __future__ import annotations

from bughop.editor import EditMode, ProgramEditor, cycle_value
from bughop.history import History
from bughop.machine import (
    BughopMachine, Instruction, BLANK,
    NIL, NOP, GET, ADD, TXT, END, SWP, OPCODES,
    IMMEDIATE_MODE, ADDRESS_MODE, DAT, STK, CYC, IP, SP, STA, HALTED,
    UP, DOWN, LEFT, RIGHT,
)


def _editor(cells=None, ip=4):
    m = BughopMachine(3, 3)
    for index, instr in (cells or {}).items():
        m.write_instruction(index, instr)
    m.set_reg(IP, ip)
    history = History()
    return m, history, ProgramEditor(m, history)


def test_cycle_value_wraps():
    assert cycle_value((1, 2, 3), 3) == 1
    assert cycle_value((1, 2, 3), 1, -1) == 3
    assert cycle_value((1, 2, 3), 9) == 1


# ---------------------------------------------------------------------------
# Mode transitions
# ---------------------------------------------------------------------------

def test_enter_puts_cursor_on_debugger():
    m, history, ed = _editor()
    assert not ed.active
    ed.toggle()
    assert ed.mode is EditMode.GRID
    assert ed.pointer == 4


def test_cell_toggle_only_while_editing():
    m, history, ed = _editor()
    ed.toggle_cell()
    assert ed.mode is EditMode.OFF
    ed.enter()
    ed.toggle_cell()
    assert ed.mode is EditMode.CELL
    ed.toggle_cell()
    assert ed.mode is EditMode.GRID


def test_exit_resets_pointer_and_yank():
    m, history, ed = _editor({4: Instruction(ADD, 3)})
    ed.enter()
    ed.yank()
    ed.move_cursor(RIGHT)
    ed.toggle()
    assert ed.mode is EditMode.OFF
    assert ed.pointer == 0
    assert ed.yanked == BLANK


def test_edits_refused_when_inactive():
    m, history, ed = _editor({4: Instruction(NOP)})
    before = m.dump()
    assert not ed.move_cursor(RIGHT)
    assert not ed.toggle_on_off()
    assert not ed.cycle_opcode()
    assert not ed.yank()
    assert m.dump() == before
    assert len(history) == 0


def test_cursor_may_leave_grid_but_edits_refused_there():
    m, history, ed = _editor(ip=0)
    ed.enter()
    assert ed.move_cursor(UP)
    assert ed.pointer == -3
    assert ed.current() == BLANK
    before = m.dump()
    assert not ed.toggle_on_off()
    assert not ed.paste()
    assert m.dump() == before


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

def test_toggle_on_off():
    m, history, ed = _editor()
    ed.enter()
    assert ed.toggle_on_off()
    assert ed.current().opcode == NOP
    assert ed.toggle_on_off()
    assert ed.current().opcode == NIL
    assert len(history) == 2


def test_each_edit_is_one_undo_step():
    m, history, ed = _editor()
    start = m.dump()
    ed.enter()
    ed.toggle_on_off()
    ed.cycle_opcode()
    ed.adjust_operand(10)
    assert len(history) == 3
    while history.undo(m):
        pass
    assert m.dump() == start


def test_toggle_direction_skips_nil_and_end():
    m, history, ed = _editor({4: Instruction(NOP), 5: Instruction(END)})
    ed.enter()
    ed.toggle_cell()
    assert ed.toggle_direction(RIGHT)
    assert ed.toggle_direction(UP)
    assert ed.current().dirs == RIGHT | UP
    assert ed.toggle_direction(RIGHT)
    assert ed.current().dirs == UP

    ed.pointer = 5
    assert not ed.toggle_direction(LEFT)
    ed.pointer = 3
    assert not ed.toggle_direction(DOWN)


def test_yank_cut_paste():
    original = Instruction(ADD, 7, IMMEDIATE_MODE, RIGHT)
    m, history, ed = _editor({4: original})
    ed.enter()
    assert ed.cut()
    assert ed.current() == BLANK
    ed.move_cursor(DOWN)
    assert ed.paste()
    assert m.read_instruction(7) == original
    assert len(history) == 2


def test_paste_identical_cell_leaves_no_history():
    m, history, ed = _editor({4: Instruction(NOP)})
    ed.enter()
    ed.yank()
    assert not ed.paste()
    assert len(history) == 0


def test_cycle_opcode_wraps_through_all():
    m, history, ed = _editor({4: Instruction(TXT)})
    ed.enter()
    ed.cycle_opcode()
    assert ed.current().opcode == NIL
    ed.cycle_opcode(-1)
    assert ed.current().opcode == OPCODES[-1]


def test_cycle_operand_needs_address_mode():
    m, history, ed = _editor({
        4: Instruction(GET, DAT, ADDRESS_MODE),
        5: Instruction(GET, 3, IMMEDIATE_MODE),
        6: Instruction(SWP, DAT, ADDRESS_MODE),
    })
    ed.enter()
    assert ed.cycle_operand()
    assert ed.current().operand == STK
    assert ed.cycle_operand()
    assert ed.current().operand == CYC
    assert ed.cycle_operand(-1)
    assert ed.current().operand == STK

    ed.pointer = 5
    assert not ed.cycle_operand()
    ed.pointer = 6
    assert not ed.cycle_operand()


def test_adjust_operand_saturates():
    m, history, ed = _editor({4: Instruction(ADD, 250), 5: Instruction(GET, DAT, ADDRESS_MODE)})
    ed.enter()
    assert ed.adjust_operand(10)
    assert ed.current().operand == 255
    assert not ed.adjust_operand(10)
    assert ed.adjust_operand(-10)
    assert ed.current().operand == 245
    ed.pointer = 5
    assert not ed.adjust_operand(1)


def test_toggle_mode_resets_operand():
    m, history, ed = _editor({4: Instruction(ADD, 9), 5: Instruction(NOP)})
    ed.enter()
    assert ed.toggle_mode()
    assert ed.current() == Instruction(ADD, DAT, ADDRESS_MODE)
    assert ed.toggle_mode()
    assert ed.current() == Instruction(ADD, 0, IMMEDIATE_MODE)
    ed.pointer = 5
    assert not ed.toggle_mode()


def test_move_debugger_here_does_not_execute():
    m, history, ed = _editor({4: Instruction(NOP), 0: Instruction(END)})
    ed.enter()
    ed.move_cursor(UP)
    ed.move_cursor(LEFT)
    assert ed.pointer == 0
    assert ed.move_debugger_here()
    assert m.ip == 0
    assert m.reg(STA) != HALTED
    assert m.reg(CYC) == 0


def test_export_resets_cycles_and_status():
    m, history, ed = _editor({4: Instruction(NOP)})
    m.set_reg(CYC, 12)
    m.set_reg(STA, HALTED)
    m.set_reg(SP, 2)
    image = ed.export()
    assert image[CYC] == 0
    assert image[STA] == 0
    assert image[SP] == 2
    assert m.reg(CYC) == 12
