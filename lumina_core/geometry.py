from __future__ import annotations

import math
from typing import List, Tuple

UV = Tuple[float, float]
Cell = Tuple[int, int]  # (x, y): column, row
CellRange = Tuple[int, int, int, int]  # min_x, max_x, min_y, max_y


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamps into [lo, hi]; NaN collapses to lo."""
    if not value >= lo:
        return lo
    return hi if value > hi else value


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def circle_intersects_rect(center: UV, radius_sq: float, x_min: float, y_min: float, x_max: float, y_max: float) -> bool:
    """True when the disk touches the axis-aligned rectangle (boundary inclusive)."""
    cx = clamp(center[0], x_min, x_max)
    cy = clamp(center[1], y_min, y_max)
    dx = center[0] - cx
    dy = center[1] - cy
    return (dx * dx + dy * dy) <= radius_sq


def cell_range(center: UV, radius: float, grid_x: int, grid_y: int) -> CellRange:
    """Index range of the cells overlapped by the brush bounding box, clamped to the grid."""
    cell_w = 1.0 / grid_x
    cell_h = 1.0 / grid_y
    u, v = center
    min_x = int(clamp(math.floor((u - radius) / cell_w), 0, grid_x - 1))
    max_x = int(clamp(math.floor((u + radius) / cell_w), 0, grid_x - 1))
    min_y = int(clamp(math.floor((v - radius) / cell_h), 0, grid_y - 1))
    max_y = int(clamp(math.floor((v + radius) / cell_h), 0, grid_y - 1))
    return min_x, max_x, min_y, max_y


def covered_cells(center: UV, radius: float, grid_x: int, grid_y: int) -> List[Cell]:
    """
    Lists every cell whose rectangle intersects the brush disk, row-major.
    The bounding range is scanned first, then each candidate is tested exactly.
    """
    cell_w = 1.0 / grid_x
    cell_h = 1.0 / grid_y
    r2 = radius * radius
    min_x, max_x, min_y, max_y = cell_range(center, radius, grid_x, grid_y)
    out: List[Cell] = []
    for y in range(min_y, max_y + 1):
        y_min = y * cell_h
        y_max = (y + 1) * cell_h
        for x in range(min_x, max_x + 1):
            x_min = x * cell_w
            x_max = (x + 1) * cell_w
            if circle_intersects_rect(center, r2, x_min, y_min, x_max, y_max):
                out.append((x, y))
    return out
