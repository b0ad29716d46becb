"""
Game configuration: grid size, direction checks, undo depth, persistence.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path

from .machine import DEFAULT_COLS, DEFAULT_ROWS

# Direction-mask policy
DIRECTIONS_AUTO = "auto"   # enforced on authored levels, ignored on random programs
DIRECTIONS_ON = "on"
DIRECTIONS_OFF = "off"
DIRECTION_POLICIES = (DIRECTIONS_AUTO, DIRECTIONS_ON, DIRECTIONS_OFF)

# Where the current level id is remembered between runs
STATE_ENV_VAR = "BUGHOP_STATE"
DEFAULT_STATE_PATH = Path.home() / ".bughop.json"


@dataclass
class GameConfig:
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    directions: str = DIRECTIONS_AUTO
    history_limit: int | None = None   # None keeps every undo step
    seed: int | None = None            # random programs only
    state_path: Path | None = None

    def __post_init__(self):
        if self.directions not in DIRECTION_POLICIES:
            raise ValueError(f"directions must be one of {DIRECTION_POLICIES}, "
                             f"got {self.directions!r}")
        if self.cols < 1 or self.rows < 1 or self.cols * self.rows > 256:
            raise ValueError(f"Grid {self.cols}x{self.rows} must hold 1..256 cells")
        if self.history_limit is not None and self.history_limit < 1:
            raise ValueError(f"history_limit must be positive, got {self.history_limit}")
        if self.state_path is not None:
            self.state_path = Path(self.state_path)

    def enforce_directions(self, authored: bool) -> bool:
        if self.directions == DIRECTIONS_AUTO:
            return authored
        return self.directions == DIRECTIONS_ON

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "GameConfig":
        state_path = getattr(args, "state_file", None) or os.environ.get(STATE_ENV_VAR)
        return cls(
            directions=getattr(args, "directions", DIRECTIONS_AUTO),
            history_limit=getattr(args, "history_limit", None),
            seed=getattr(args, "seed", None),
            state_path=Path(state_path) if state_path else DEFAULT_STATE_PATH,
        )
