"""
Tests for debugger movement and the undo history.
"""

from __future__ import annotations

import pytest

from bughop.history import History
from bughop.machine import (
    BughopMachine, Instruction,
    NOP, ADD, TEQ, END,
    CYC, DBG, IP,
    UP, DOWN, LEFT, RIGHT,
)
from bughop.navigation import Navigator


def _setup(cells, ip=0, cols=3, rows=3, enforce=True):
    m = BughopMachine(cols, rows)
    for index, instr in cells.items():
        m.write_instruction(index, instr)
    m.set_reg(IP, ip)
    history = History()
    return m, history, Navigator(m, history, enforce_directions=enforce)


# ---------------------------------------------------------------------------
# Legality
# ---------------------------------------------------------------------------

def test_move_into_nop_costs_one_cycle():
    m, history, nav = _setup({0: Instruction(NOP), 1: Instruction(NOP)})
    assert nav.attempt_move(RIGHT)
    assert m.ip == 1
    assert m.reg(CYC) == 1
    assert len(history) == 1
    assert nav.moves == 1


def test_illegal_move_changes_nothing():
    m, history, nav = _setup({0: Instruction(NOP)})
    before = m.dump()
    assert not nav.attempt_move(RIGHT)   # NIL neighbour
    assert not nav.attempt_move(UP)      # off the grid
    assert not nav.attempt_move(LEFT)    # off the grid
    assert m.dump() == before
    assert len(history) == 0
    assert nav.rejected == 3


def test_no_wrap_across_rows():
    m, history, nav = _setup({2: Instruction(NOP), 3: Instruction(NOP)}, ip=2)
    assert nav.target(2, RIGHT) is None
    assert not nav.attempt_move(RIGHT)
    assert m.ip == 2


def test_direction_mask_restricts_leaving():
    cells = {
        4: Instruction(NOP, dirs=RIGHT),
        3: Instruction(NOP),
        5: Instruction(NOP),
    }
    m, history, nav = _setup(cells, ip=4)
    assert not nav.attempt_move(LEFT)
    assert m.ip == 4
    assert nav.attempt_move(RIGHT)
    assert m.ip == 5


def test_direction_mask_ignored_when_not_enforced():
    cells = {4: Instruction(NOP, dirs=RIGHT), 3: Instruction(NOP)}
    m, history, nav = _setup(cells, ip=4, enforce=False)
    assert nav.attempt_move(LEFT)
    assert m.ip == 3


def test_failed_test_blocks_then_passes():
    """DBG=7 can't enter TEQ #10; after an ADD #3 it can."""
    cells = {
        0: Instruction(ADD, 3),
        1: Instruction(NOP),
        2: Instruction(TEQ, 10, dirs=RIGHT),
    }
    m, history, nav = _setup(cells, ip=1)
    m.set_reg(DBG, 7)
    before = m.dump()

    assert not nav.attempt_move(RIGHT)
    assert m.dump() == before

    assert nav.attempt_move(LEFT)
    assert m.reg(DBG) == 10
    assert nav.attempt_move(RIGHT)
    assert nav.attempt_move(RIGHT)
    assert m.ip == 2
    assert m.reg(CYC) == 3
    assert m.reg(DBG) == 10


def test_teq_gate_one_cycle_one_history_entry():
    cells = {3: Instruction(NOP), 4: Instruction(TEQ, 10, dirs=RIGHT)}
    m, history, nav = _setup(cells, ip=3)
    m.set_reg(DBG, 0)

    assert not nav.attempt_move(RIGHT)
    assert m.ip == 3
    assert m.reg(CYC) == 0
    assert len(history) == 0

    m.set_reg(DBG, 10)
    assert nav.attempt_move(RIGHT)
    assert m.ip == 4
    assert m.reg(CYC) == 1
    assert len(history) == 1
    assert history.peek()[IP] == 3


def test_pointer_jump():
    m, history, nav = _setup({0: Instruction(NOP), 8: Instruction(END)})
    assert not nav.jump_to(0)     # already there
    assert not nav.jump_to(42)    # off the grid
    assert not nav.jump_to(4)     # NIL
    assert nav.jump_to(8)
    assert m.halted
    assert m.reg(CYC) == 1


def test_entering_same_cell_type_twice_reexecutes():
    m, history, nav = _setup({0: Instruction(ADD, 1), 3: Instruction(ADD, 1)})
    nav.attempt_move(DOWN)
    nav.attempt_move(UP)
    assert m.reg(DBG) == 2


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def test_k_moves_then_k_undos_restore_start():
    cells = {i: Instruction(ADD, 1) for i in range(9)}
    m, history, nav = _setup(cells)
    start = m.dump()
    path = (RIGHT, RIGHT, DOWN, LEFT, DOWN, UP)
    for d in path:
        assert nav.attempt_move(d)
    assert len(history) == len(path)
    for _ in path:
        assert history.undo(m)
    assert m.dump() == start
    assert not history.undo(m)
    assert m.dump() == start


def test_undo_on_empty_history_is_noop():
    m, history, nav = _setup({0: Instruction(NOP)})
    before = m.dump()
    assert not history.undo(m)
    assert m.dump() == before


def test_history_limit_drops_oldest():
    history = History(limit=2)
    for i in range(3):
        history.push(bytes([i]))
    assert len(history) == 2
    assert history.peek() == bytes([2])
    assert list(history.entries) == [bytes([1]), bytes([2])]


def test_history_limit_must_be_positive():
    with pytest.raises(ValueError):
        History(limit=0)


def test_history_clear():
    history = History()
    history.push(b"\x00")
    assert history
    history.clear()
    assert not history
    assert history.peek() is None
