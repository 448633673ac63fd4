from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Set

from .breath import BreathController
from .geometry import UV, Cell
from .session import PaintingSession

lib_logger = logging.getLogger("lumina_core")

BrushPath = Callable[[float], Optional[UV]]


@dataclass
class RunResult:
    ticks: int = 0
    polls: int = 0
    completed: List[Cell] = field(default_factory=list)
    progress: float = 0.0


def sweep_path(rows: int = 8, seconds_per_row: float = 2.0) -> BrushPath:
    """Boustrophedon sweep over the image: left to right, then back, one row band at a time."""
    rows = max(1, int(rows))
    seconds_per_row = max(1e-3, float(seconds_per_row))

    def path(t: float) -> Optional[UV]:
        if t < 0:
            return None
        row = int(t // seconds_per_row) % rows
        frac = (t % seconds_per_row) / seconds_per_row
        u = frac if row % 2 == 0 else 1.0 - frac
        v = (row + 0.5) / rows
        return (u, v)

    return path


def iter_ticks(duration: float, tick_interval: float) -> Iterator[float]:
    """Simulated timestamps for an offline run (no wall clock)."""
    t = 0.0
    while t < duration:
        yield t
        t += tick_interval


async def sample_breath(breath: BreathController, stop: asyncio.Event, result: Optional[RunResult] = None) -> None:
    """Sampling clock: one poll round per interval until `stop` is set."""
    while not stop.is_set():
        await breath.apoll_once()
        if result is not None:
            result.polls += 1
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=breath.config.poll_interval)


async def run_session(
    session: PaintingSession,
    brush_path: BrushPath,
    duration: float,
    tick_interval: float = 1.0 / 60.0,
    save_on_exit: bool = True,
    clock: Callable[[], float] = time.monotonic,
) -> RunResult:
    """
    Drives an entered session in real time for `duration` seconds.

    The tick loop and the breath sampling loop are two tasks on one event
    loop; a slow endpoint only delays the next sample, never a tick. The
    sampling task is cancelled when the run ends.
    """
    result = RunResult()
    stop = asyncio.Event()
    sampler: Optional[asyncio.Task] = None
    if session.breath is not None and session.breath.enabled:
        sampler = asyncio.ensure_future(sample_breath(session.breath, stop, result))

    completed: Set[Cell] = set()
    start = last = clock()
    try:
        while True:
            await asyncio.sleep(tick_interval)
            now = clock()
            elapsed = now - start
            completed |= session.tick(now - last, brush_path(elapsed))
            last = now
            result.ticks += 1
            if elapsed >= duration:
                break
    finally:
        stop.set()
        if sampler is not None:
            sampler.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sampler

    result.completed = sorted(completed, key=lambda c: (c[1], c[0]))
    result.progress = session.engine.get_progress()
    lib_logger.debug(f"run_session: {result.ticks} ticks, {result.polls} polls, progress={result.progress:.3f}")
    if save_on_exit:
        session.exit()
    return result


def simulate_session(
    session: PaintingSession,
    brush_path: BrushPath,
    duration: float,
    tick_interval: float = 1.0 / 60.0,
    save_on_exit: bool = True,
) -> RunResult:
    """Offline run on simulated time: no sleeping and no breath polling."""
    result = RunResult()
    completed: Set[Cell] = set()
    for t in iter_ticks(duration, tick_interval):
        completed |= session.tick(tick_interval, brush_path(t))
        result.ticks += 1
    result.completed = sorted(completed, key=lambda c: (c[1], c[0]))
    result.progress = session.engine.get_progress()
    if save_on_exit:
        session.exit()
    return result
