"""
Textual TUI for Bughop.

Draws the program grid, registers, stack and notes, and maps keys onto
session commands. Movement keys are h/j/k/l or the arrows; in edit mode
the same keys move the cursor (grid mode) or toggle the cell's direction
bits (cell mode).

Usage:
    bughop                       # resume the saved level
    bughop --level 02_equality
    bughop --random --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, ScrollableContainer
from textual.widgets import Static, RichLog, Footer

from .config import GameConfig, DIRECTION_POLICIES, DIRECTIONS_AUTO
from .editor import EditMode
from .levels import LEVEL_DIR, LevelStore, load_levels
from .machine import (
    NIL, NOP, SET, SWP, SND, END, TXT, is_test, opcode_info,
    ADDRESS_MODE, REGISTER_NAMES, DAT, STK,
    IP, SP, CYC, DBG, STACK_LENGTH,
    UP, DOWN, LEFT, RIGHT,
)
from .session import GameSession, Command

log = logging.getLogger(__name__)

CELL_WIDTH = 6   # 5 characters plus a gap
CELL_HEIGHT = 2

ARROWS = {"up": UP, "down": DOWN, "left": LEFT, "right": RIGHT}


def _esc(text: str) -> str:
    """Escape Rich markup characters in text."""
    return text.replace("[", "\\[")


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

BUGHOP_CSS = """
Screen {
    layout: grid;
    grid-size: 2 4;
    grid-columns: 84 1fr;
    grid-rows: auto auto auto 1fr;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    height: auto;
}

#grid-panel   { row-span: 4; height: 100%; }
#output-panel { height: 100%; overflow-y: auto; }
"""


# ---------------------------------------------------------------------------
# Cell rendering
# ---------------------------------------------------------------------------

def operand_text(opcode: int, operand: int, mode: int) -> tuple[str, str]:
    """Text and colour for the lower half of a cell."""
    if opcode in (NOP, END, SND):
        return "", "white"
    if mode == ADDRESS_MODE or opcode in (SWP, SET):
        name = REGISTER_NAMES.get(operand)
        if name == "DAT":
            return name, "yellow"
        if name == "STK":
            return name, "magenta"
        if name:
            return name, "white"
        return f"@{operand}"[-3:], "cyan"
    return str(operand), "white"


def render_cell(session: GameSession, index: int) -> tuple[str, str]:
    """Two 5-character markup lines for the cell at index."""
    m = session.machine
    instr = m.read_instruction(index)
    here = index == m.ip
    cursor = session.editor.active and index == session.editor.pointer

    if instr.opcode == NIL:
        top, bottom, colour = "  ·  ", "     ", "grey23"
        value_colour = "white"
    else:
        info = opcode_info(instr.opcode)
        label = info.label if info else "???"
        value, value_colour = operand_text(instr.opcode, instr.operand, instr.mode)
        d = instr.dirs
        top = ("<" if d & LEFT else " ") + f"{label:<3}" + (">" if d & RIGHT else " ")
        bottom = ("^" if d & UP else " ") + f"{value:>3}" + ("v" if d & DOWN else " ")
        if is_test(instr.opcode):
            colour = "green" if m.test_passes(index) else "red"
        elif instr.opcode == END:
            colour = "bold blue"
        elif instr.opcode == TXT:
            colour = "italic white"
        else:
            colour = "grey70"

    if here:
        bottom = f"*{m.reg(DBG):>3}*"
        style = "bold black on bright_white"
        return f"[{style}]{_esc(top)}[/]", f"[{style}]{_esc(bottom)}[/]"
    if cursor:
        style = "black on yellow"
        return f"[{style}]{_esc(top)}[/]", f"[{style}]{_esc(bottom)}[/]"
    return f"[{colour}]{_esc(top)}[/]", f"[{value_colour}]{_esc(bottom)}[/]"


def render_grid(session: GameSession) -> str:
    m = session.machine
    lines = []
    for row in range(m.rows):
        tops, bottoms = [], []
        for col in range(m.cols):
            top, bottom = render_cell(session, row * m.cols + col)
            tops.append(top)
            bottoms.append(bottom)
        lines.append(" ".join(tops))
        lines.append(" ".join(bottoms))
    return "\n".join(lines)


def render_state(session: GameSession) -> str:
    """Registers plus navigator and machine counters."""
    m = session.machine
    nav = session.navigator
    stats = m.stats()
    status = "HALTED" if stats["halted"] else "RUNNING"
    return (
        f"[bold]STA:[/bold] {status}    [bold]CYC:[/bold] {stats['cycles']}\n"
        f"[bold]IP:[/bold] {m.reg(IP):3d}  [bold]SP:[/bold] {m.reg(SP):3d}\n"
        f"[bold]DBG:[/bold] {m.reg(DBG):3d}  [yellow][bold]DAT:[/bold] {m.reg(DAT):3d}[/yellow]\n"
        f"[bold]Moves:[/bold] {nav.moves}  [bold]Rejected:[/bold] {nav.rejected}  "
        f"[bold]Undo:[/bold] {len(session.history)}\n"
        f"[bold]Exec:[/bold] {stats['executions']}  [bold]Sent:[/bold] {stats['sends']}  "
        f"[bold]Stack peak:[/bold] {stats['stack_peak']}"
    )


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class GridPanel(Container):
    """The program grid. Clicking a cell jumps the debugger there."""
    BORDER_TITLE = "Program"

    def compose(self) -> ComposeResult:
        yield Static("", id="grid-content")

    def on_click(self, event: events.Click) -> None:
        offset = event.get_content_offset(self)
        if offset is None:
            return
        col, row = offset.x // CELL_WIDTH, offset.y // CELL_HEIGHT
        session = self.app.session
        if col >= session.machine.cols or row >= session.machine.rows:
            return
        if session.click(row * session.machine.cols + col):
            self.app.refresh_panels()


class StatePanel(Container):
    """Registers and counters."""
    BORDER_TITLE = "Registers"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class StackPanel(Container):
    """Stack slots, bottom to top, with SP marked."""
    BORDER_TITLE = "Stack"

    def compose(self) -> ComposeResult:
        yield Static("", id="stack-content")


class InfoPanel(Container):
    """Level goals, the note or hint under the focus, editor status."""
    BORDER_TITLE = "Info"

    def compose(self) -> ComposeResult:
        yield Static("", id="info-content")


class OutputPanel(ScrollableContainer):
    """Values sent by SND, and exported programs."""
    BORDER_TITLE = "Output"

    def compose(self) -> ComposeResult:
        yield RichLog(id="output-log", markup=False, wrap=True)


# ---------------------------------------------------------------------------
# Main app
# ---------------------------------------------------------------------------

def _cmd(key: str, command: Command, description: str, show: bool = True) -> Binding:
    return Binding(key, f"command('{command.value}')", description, show=show, priority=True)


class BughopApp(App):
    """Textual front end for a GameSession."""

    CSS = BUGHOP_CSS
    TITLE = "Bughop"

    BINDINGS = [
        Binding("h,left", "arrow('left')", "Left", show=False, priority=True),
        Binding("j,down", "arrow('down')", "Down", show=False, priority=True),
        Binding("k,up", "arrow('up')", "Up", show=False, priority=True),
        Binding("l,right", "arrow('right')", "Right", show=False, priority=True),
        _cmd("z", Command.UNDO, "Undo"),
        _cmd("backspace", Command.UNDO, "Undo", show=False),
        _cmd("r", Command.RESTART, "Restart"),
        _cmd("n", Command.NEXT_LEVEL, "Next"),
        _cmd("e", Command.EDIT_TOGGLE, "Edit"),
        _cmd("c", Command.CELL_TOGGLE, "Cell"),
        _cmd("y", Command.YANK, "Yank", show=False),
        _cmd("x", Command.CUT, "Cut", show=False),
        _cmd("p", Command.PASTE, "Paste", show=False),
        _cmd("space", Command.ON_OFF, "On/off", show=False),
        _cmd("right_square_bracket", Command.OPCODE_NEXT, "Op+", show=False),
        _cmd("left_square_bracket", Command.OPCODE_PREV, "Op-", show=False),
        _cmd("o", Command.OPERAND_NEXT, "Reg+", show=False),
        _cmd("i", Command.OPERAND_PREV, "Reg-", show=False),
        _cmd("plus,equals_sign", Command.OPERAND_INC, "+1", show=False),
        _cmd("minus", Command.OPERAND_DEC, "-1", show=False),
        _cmd("greater_than_sign", Command.OPERAND_INC10, "+10", show=False),
        _cmd("less_than_sign", Command.OPERAND_DEC10, "-10", show=False),
        _cmd("m", Command.MODE_TOGGLE, "Mode", show=False),
        _cmd("g", Command.DEBUGGER_HERE, "Go here", show=False),
        _cmd("w", Command.EXPORT, "Export"),
        Binding("q", "quit", "Quit", priority=True),
    ]

    def __init__(self, session: GameSession):
        super().__init__()
        self.session = session
        self._output_line_count = 0
        self._export_count = 0

    def compose(self) -> ComposeResult:
        yield GridPanel(id="grid-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield StackPanel(id="stack-panel", classes="panel")
        yield InfoPanel(id="info-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_panels()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        self._refresh_grid()
        self._refresh_state()
        self._refresh_stack()
        self._refresh_info()
        self._refresh_output()

    def _refresh_grid(self) -> None:
        self.query_one("#grid-content", Static).update(render_grid(self.session))

    def _refresh_state(self) -> None:
        self.query_one("#state-content", Static).update(render_state(self.session))

    def _refresh_stack(self) -> None:
        m = self.session.machine
        sp = m.reg(SP)
        cells = []
        for i in range(STACK_LENGTH):
            val = m.reg(STK + i)
            cell = f"{val:3d}"
            if i == sp:
                cell = f"[reverse]{cell}[/reverse]"
            elif i < sp:
                cell = f"[magenta]{cell}[/magenta]"
            cells.append(cell)
        text = " ".join(cells)
        if sp >= STACK_LENGTH:
            text += f"\n[bold red]SP {sp}: stack overflowing into program[/bold red]"
        self.query_one("#stack-content", Static).update(text)

    def _refresh_info(self) -> None:
        s = self.session
        lines = []
        if s.level is not None:
            gold, silver, bronze = s.level.cycles
            lines.append(f"[bold]Level:[/bold] {_esc(s.level.id)}  "
                         f"[bold]Goals:[/bold] {gold}/{silver}/{bronze}")
        else:
            lines.append(f"[bold]Random program[/bold] (seed {s.seed})")
        directions = "on" if s.navigator.enforce_directions else "off"
        lines.append(f"[bold]Directions:[/bold] {directions}")

        hint = s.hint()
        if hint:
            lines.append(f"[italic]{_esc(hint)}[/italic]")

        ed = s.editor
        if ed.mode is EditMode.GRID:
            lines.append(f"[yellow]EDIT grid[/yellow] @ {ed.pointer}  arrows move cursor")
        elif ed.mode is EditMode.CELL:
            lines.append(f"[yellow]EDIT cell[/yellow] @ {ed.pointer}  arrows toggle directions")

        if s.machine.halted:
            cycles = s.machine.reg(CYC)
            medal = s.medal
            if medal:
                lines.append(f"[bold green]HALTED in {cycles} cycles: {medal}[/bold green]")
            else:
                lines.append(f"[bold]HALTED in {cycles} cycles[/bold]")
        self.query_one("#info-content", Static).update("\n".join(lines))

    def _refresh_output(self) -> None:
        out = self.query_one("#output-log", RichLog)
        if self._output_line_count > len(self.session.output_lines):
            # Session restarted the level; start the log over.
            out.clear()
            self._output_line_count = 0
        while self._output_line_count < len(self.session.output_lines):
            out.write(self.session.output_lines[self._output_line_count])
            self._output_line_count += 1
        while self._export_count < len(self.session.exports):
            out.write(f"EXPORT {self.session.exports[self._export_count]}")
            self._export_count += 1

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def action_arrow(self, name: str) -> None:
        command = self.session.arrow_command(ARROWS[name])
        self.action_command(command.value)

    def action_command(self, name: str) -> None:
        self.session.dispatch(Command(name))
        self.refresh_panels()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def setup_logging(log_file: str | None, verbose: bool):
    """Logs go to a file when asked; the terminal belongs to the TUI."""
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if log_file:
        level = logging.DEBUG if verbose else logging.INFO
        logging.basicConfig(filename=log_file, level=level, format=fmt)
    else:
        logging.basicConfig(level=logging.WARNING, format=fmt)


def main():
    parser = argparse.ArgumentParser(
        description="Bughop: steer the debugger through a grid of instructions",
        prog="bughop",
    )
    parser.add_argument("--level", help="Level id to play (default: saved progress)")
    parser.add_argument("--random", action="store_true",
                        help="Play a randomly generated program")
    parser.add_argument("--seed", type=int, help="Seed for --random")
    parser.add_argument("--directions", choices=DIRECTION_POLICIES, default=DIRECTIONS_AUTO,
                        help="Direction-mask checks (auto: authored levels only)")
    parser.add_argument("--history-limit", type=int,
                        help="Keep at most this many undo steps")
    parser.add_argument("--state-file", help="Where the current level id is saved")
    parser.add_argument("--levels-dir", default=str(LEVEL_DIR),
                        help="Directory of .asm level files")
    parser.add_argument("--log-file", help="Write a log to this file")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug-level logging (with --log-file)")
    args = parser.parse_args()

    setup_logging(args.log_file, args.verbose)

    try:
        config = GameConfig.from_args(args)
        levels = load_levels(Path(args.levels_dir), config.cols, config.rows)
        session = GameSession(config, levels, LevelStore(config.state_path))
        session.start(args.level, randomize=args.random)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    app = BughopApp(session)
    app.run()


if __name__ == "__main__":
    main()
