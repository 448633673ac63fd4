from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set

from .geometry import UV, Cell, clamp, clamp01, covered_cells

lib_logger = logging.getLogger("lumina_core")

MIN_BRUSH_RADIUS = 0.01
MAX_BRUSH_RADIUS = 0.2
DEFAULT_BRUSH_RADIUS = 0.05
BRUSH_PRESETS = (0.02, 0.05, 0.075, 0.1, 0.15)

MIN_SECONDS_PER_CELL = 0.1
DEFAULT_SECONDS_PER_CELL = 5.0


def _as_dim(value) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return 1


class CoverageEngine:
    """Owns the live cell buffer of one painting session.

    Cells are stored row-major (index = y * grid_x + x) with values in [0, 1].
    Every input is clamped rather than rejected, so once configure() has run
    the grid can never hold a value outside [0, 1] or change length.
    """

    def __init__(self, brush_radius: float = DEFAULT_BRUSH_RADIUS,
                 seconds_per_cell: float = DEFAULT_SECONDS_PER_CELL) -> None:
        self.grid_x = 0
        self.grid_y = 0
        self._cells: List[float] = []
        self._total_fill = 0.0
        self._ready = False
        self._warned_not_ready = False
        self.brush_radius = DEFAULT_BRUSH_RADIUS
        self.seconds_per_cell = DEFAULT_SECONDS_PER_CELL
        self.set_brush_radius(brush_radius)
        self.set_fill_rate(seconds_per_cell)

    # ---------- lifecycle ----------

    @property
    def ready(self) -> bool:
        return self._ready

    def configure(self, grid_x: int, grid_y: int) -> None:
        """Allocates a zeroed grid. Dimensions below 1 are clamped to 1."""
        gx, gy = _as_dim(grid_x), _as_dim(grid_y)
        if (gx, gy) != (grid_x, grid_y):
            lib_logger.warning(f"CoverageEngine: grid {grid_x!r}x{grid_y!r} clamped to {gx}x{gy}")
        self.grid_x = gx
        self.grid_y = gy
        self._cells = [0.0] * (gx * gy)
        self._total_fill = 0.0
        self._ready = True
        self._warned_not_ready = False

    def restore(self, cells: Optional[Sequence[float]]) -> bool:
        """Copies a saved snapshot in when its length matches the grid.

        A snapshot of the wrong length is ignored and the grid stays as
        configure() left it. Returns whether the snapshot was applied.
        """
        if not self._ready or cells is None or len(cells) != len(self._cells):
            lib_logger.debug(
                f"CoverageEngine: snapshot ignored (len={None if cells is None else len(cells)}, "
                f"expected {len(self._cells)})"
            )
            return False
        restored: List[float] = []
        for value in cells:
            try:
                restored.append(clamp01(float(value)))
            except (TypeError, ValueError):
                restored.append(0.0)
        self._cells = restored
        self._total_fill = sum(restored)
        return True

    def clear(self) -> None:
        """Blanks the current grid in place (session-local, the store is untouched)."""
        self._cells = [0.0] * len(self._cells)
        self._total_fill = 0.0

    # ---------- painting ----------

    def apply_brush(self, center: UV, radius: float, delta: float) -> Set[Cell]:
        """
        Adds `delta` fill to every non-saturated cell the brush disk touches.
        Returns the cells that reached 1.0 on this call.
        """
        if not self._ready:
            if not self._warned_not_ready:
                lib_logger.warning("CoverageEngine: apply_brush before configure; ignored")
                self._warned_not_ready = True
            return set()

        u = clamp01(float(center[0]))
        v = clamp01(float(center[1]))
        r = clamp(float(radius), MIN_BRUSH_RADIUS, MAX_BRUSH_RADIUS)
        d = float(delta)
        if not d > 0.0:  # negative or NaN
            return set()

        completed: Set[Cell] = set()
        for (x, y) in covered_cells((u, v), r, self.grid_x, self.grid_y):
            idx = y * self.grid_x + x
            before = self._cells[idx]
            if before >= 1.0:
                continue
            after = clamp01(before + d)
            if after == before:
                continue
            self._cells[idx] = after
            self._total_fill += after - before
            if before < 1.0 <= after:
                completed.add((x, y))
        return completed

    def tick(self, dt: float, center: Optional[UV]) -> Set[Cell]:
        """One simulation step: converts dt to a fill delta at the current rate."""
        if center is None or not dt > 0:
            return set()
        return self.apply_brush(center, self.brush_radius, dt / self.seconds_per_cell)

    def covered_cells(self, center: UV) -> List[Cell]:
        """Cells under the brush at its current radius (for hover highlight)."""
        if not self._ready:
            return []
        u = clamp01(float(center[0]))
        v = clamp01(float(center[1]))
        return covered_cells((u, v), self.brush_radius, self.grid_x, self.grid_y)

    # ---------- accessors ----------

    def get_progress(self) -> float:
        if not self._cells:
            return 0.0
        return clamp01(self._total_fill / len(self._cells))

    def get_snapshot(self) -> List[float]:
        return list(self._cells)

    def completed_cells(self) -> List[Cell]:
        return [(i % self.grid_x, i // self.grid_x) for i, v in enumerate(self._cells) if v >= 1.0]

    def set_brush_radius(self, radius: float) -> None:
        self.brush_radius = clamp(float(radius), MIN_BRUSH_RADIUS, MAX_BRUSH_RADIUS)

    def set_fill_rate(self, seconds_per_cell: float) -> None:
        """Seconds to fully color one cell while covered; floored to keep dt / rate finite."""
        s = float(seconds_per_cell)
        self.seconds_per_cell = s if s > MIN_SECONDS_PER_CELL else MIN_SECONDS_PER_CELL

    def pretty(self, marks: Iterable[Cell] = ()) -> str:
        """Text dump of the grid, top row first: '#' full, digits for tenths, '.' empty, '+' marked."""
        mset = set(marks)
        lines: List[str] = []
        for y in reversed(range(self.grid_y)):
            row: List[str] = []
            for x in range(self.grid_x):
                value = self._cells[y * self.grid_x + x]
                if (x, y) in mset:
                    row.append('+')
                elif value >= 1.0:
                    row.append('#')
                elif value <= 0.0:
                    row.append('.')
                else:
                    row.append(str(min(9, int(value * 10))))
            lines.append(" ".join(row))
        return "\n".join(lines)
