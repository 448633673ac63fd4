from __future__ import annotations

import logging
from typing import Optional, Set

from .breath import BreathController
from .coverage import BRUSH_PRESETS, CoverageEngine
from .difficulty import Difficulty, clamp_difficulty, grid_size_for
from .geometry import UV, Cell
from .store import ProgressStore

lib_logger = logging.getLogger("lumina_core")


class PaintingSession:
    """Host glue for one image: enter (restore or start blank), tick, exit (save).

    The session never touches rendering. Callers read `engine.get_snapshot()`
    and the sets returned by tick() to update visuals.
    """

    def __init__(self, store: ProgressStore, engine: Optional[CoverageEngine] = None,
                 breath: Optional[BreathController] = None) -> None:
        self.store = store
        self.engine = engine or CoverageEngine()
        self.breath = breath
        self.image_id: Optional[str] = None
        self.difficulty = Difficulty.EASY
        self.restored = False

    @property
    def active(self) -> bool:
        return self.image_id is not None

    def enter(self, image_id: str, difficulty: Difficulty) -> Difficulty:
        """Starts painting `image_id`.

        Saved progress wins over the requested difficulty: the grid is rebuilt
        at the locked difficulty and the saved cells are restored.
        """
        diff = clamp_difficulty(difficulty)
        saved_cells = None
        entry = self.store.get(image_id)
        if entry is not None and entry.progress01 > 0.0:
            diff = entry.locked_difficulty
            saved_cells = entry.cells

        self.engine.configure(*grid_size_for(diff))
        self.restored = self.engine.restore(saved_cells) if saved_cells is not None else False
        self.image_id = image_id
        self.difficulty = diff
        lib_logger.info(
            f"Session enter imageId={image_id} diff={diff.name} restored={self.restored} "
            f"progress={self.engine.get_progress():.0%}"
        )
        return diff

    def is_painting_enabled(self) -> bool:
        return not self._breath_active() or self.breath.is_gate_open()

    def _breath_active(self) -> bool:
        return self.breath is not None and self.breath.enabled

    def tick(self, dt: float, center: Optional[UV] = None) -> Set[Cell]:
        """One simulation step. Returns the cells completed during it."""
        if not self.active:
            return set()
        if self._breath_active():
            self.breath.tick(dt)
            self.engine.set_fill_rate(self.breath.seconds_per_cell())
        if center is None or not self.is_painting_enabled():
            return set()
        return self.engine.tick(dt, center)

    def select_brush_preset(self, index: int) -> bool:
        if index < 0 or index >= len(BRUSH_PRESETS):
            return False
        self.engine.set_brush_radius(BRUSH_PRESETS[index])
        return True

    def exit(self) -> float:
        """Saves the snapshot and aggregate progress, then deactivates. Returns the saved progress."""
        if not self.active:
            return 0.0
        progress = self.engine.get_progress()
        self.store.set(
            self.image_id,
            self.difficulty,
            self.engine.grid_x,
            self.engine.grid_y,
            self.engine.get_snapshot(),
            progress,
        )
        lib_logger.info(f"Session exit imageId={self.image_id} progress={progress:.0%}")
        self.image_id = None
        return progress

    def discard(self) -> None:
        """Deactivates without saving."""
        self.image_id = None

    def reset_progress(self) -> None:
        """Blanks the live grid and forgets the saved entry."""
        if not self.active:
            return
        self.engine.clear()
        self.store.reset(self.image_id)
