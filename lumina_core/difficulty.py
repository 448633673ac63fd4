from __future__ import annotations

from enum import IntEnum
from typing import Any, Tuple


class Difficulty(IntEnum):
    EASY = 0
    MEDIUM = 1
    HARD = 2


_GRID_SIZES = {
    Difficulty.EASY: (8, 8),
    Difficulty.MEDIUM: (12, 12),
    Difficulty.HARD: (16, 16),
}


def clamp_difficulty(value: Any) -> Difficulty:
    """Coerces a stored ordinal (possibly junk) into a valid Difficulty."""
    try:
        ordinal = int(value)
    except (TypeError, ValueError):
        return Difficulty.EASY
    ordinal = max(int(Difficulty.EASY), min(int(Difficulty.HARD), ordinal))
    return Difficulty(ordinal)


def parse_difficulty(text: Any) -> Difficulty:
    """Accepts a name ('hard') or an ordinal ('2' / 2)."""
    if isinstance(text, str):
        name = text.strip().upper()
        if name in Difficulty.__members__:
            return Difficulty[name]
        if not name.lstrip('-').isdigit():
            raise ValueError(f"Unknown difficulty: {text!r}")
    return clamp_difficulty(text)


def grid_size_for(difficulty: Difficulty) -> Tuple[int, int]:
    """Grid resolution (gridX, gridY) a difficulty plays at."""
    return _GRID_SIZES[clamp_difficulty(difficulty)]
