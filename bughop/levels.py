"""
Levels: authored programs with cycle goals, plus the saved-progress file.

Built-in levels are assembly files in the `levels/` directory next to this
module, played in file-name order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import codec
from .asm import assemble_file, AssemblyError
from .machine import DEFAULT_COLS, DEFAULT_ROWS

log = logging.getLogger(__name__)

LEVEL_DIR = Path(__file__).parent / "levels"

MEDALS = ("gold", "silver", "bronze")


class UnknownLevelError(ValueError):
    pass


@dataclass
class Level:
    id: str
    cycles: tuple[int, int, int]
    program: bytes
    labels: list[str] = field(default_factory=list)

    @property
    def encoded(self) -> str:
        """RLE literal of the program, as pasted into level tables."""
        return codec.format_literal(codec.encode_rle(self.program))

    def medal(self, cycles: int) -> str | None:
        for name, limit in zip(MEDALS, self.cycles):
            if cycles <= limit:
                return name
        return None

    def label(self, index: int) -> str:
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return f"<missing label {index}>"


def load_level_file(path: str | Path, cols: int = DEFAULT_COLS,
                    rows: int = DEFAULT_ROWS) -> Level:
    path = Path(path)
    result = assemble_file(path, cols, rows)
    if result.cycles is None:
        raise AssemblyError(f"{path.name}: level has no .cycles goals")
    level = Level(
        id=result.level_id or path.stem,
        cycles=result.cycles,
        program=codec.export_memory(result.memory),
        labels=result.labels,
    )
    log.debug("Loaded level %s from %s", level.id, path)
    return level


def load_levels(directory: str | Path = LEVEL_DIR, cols: int = DEFAULT_COLS,
                rows: int = DEFAULT_ROWS) -> list[Level]:
    levels = [load_level_file(p, cols, rows) for p in sorted(Path(directory).glob("*.asm"))]
    log.info("Loaded %d levels from %s", len(levels), directory)
    return levels


def find_level(levels: list[Level], level_id: str) -> Level:
    for level in levels:
        if level.id == level_id:
            return level
    raise UnknownLevelError(f"No level named {level_id!r}")


def next_level(levels: list[Level], level_id: str) -> Level | None:
    for i, level in enumerate(levels):
        if level.id == level_id:
            return levels[i + 1] if i + 1 < len(levels) else None
    return None


# ---------------------------------------------------------------------------
# Saved progress
# ---------------------------------------------------------------------------

class LevelStore:
    """Remembers the current level id in a small JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load_current(self) -> str | None:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable level store %s: %s", self.path, e)
            return None
        level_id = data.get("level") if isinstance(data, dict) else None
        if not isinstance(level_id, str):
            log.warning("Level store %s has no level id", self.path)
            return None
        return level_id

    def save_current(self, level_id: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"level": level_id}) + "\n", encoding="utf-8")
        log.info("Saved current level %s to %s", level_id, self.path)
