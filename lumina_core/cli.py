from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from .breath import BreathConfig, BreathController
from .coverage import CoverageEngine
from .difficulty import parse_difficulty
from .identity import image_id_from_file
from .runner import run_session, simulate_session, sweep_path
from .session import PaintingSession
from .store import DEFAULT_STORE, ProgressStore


def _print_entry(store: ProgressStore, image_id: str) -> None:
    entry = store.get(image_id)
    if entry is None:
        print(f"{image_id}: no saved progress")
        return
    print(
        f"{image_id}: {entry.progress01:.1%} diff={entry.locked_difficulty.name.lower()} "
        f"grid={entry.grid_x}x{entry.grid_y} cells={len(entry.cells)}"
    )


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description='Lumina coloring progress simulator')
    parser.add_argument('--store', default=DEFAULT_STORE, help='Progress store JSON path')
    src = parser.add_mutually_exclusive_group()
    src.add_argument('--image', help='Image file; its SHA-1 is the progress key')
    src.add_argument('--image-id', help='Progress key to use directly')
    parser.add_argument('--difficulty', default='easy', help='easy, medium or hard (ignored when progress is saved)')
    parser.add_argument('--seconds', type=float, default=10.0, help='Simulated painting time')
    parser.add_argument('--radius', type=float, default=None, help='Brush radius in UV units')
    parser.add_argument('--rate', type=float, default=None, help='Seconds to color one cell (no breath control)')
    parser.add_argument('--breath', default=None, help='Breathing API base URL; enables real-time breath control')
    parser.add_argument('--show', action='store_true', help='Show saved progress and exit')
    parser.add_argument('--reset', action='store_true', help='Delete saved progress and exit')
    parser.add_argument('--list', action='store_true', help='List every saved entry and exit')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    with ProgressStore(args.store) as store:
        if args.list:
            ids = store.image_ids()
            if not ids:
                print('No saved progress.')
            for image_id in ids:
                _print_entry(store, image_id)
            return

        image_id = args.image_id
        if args.image:
            image_id = image_id_from_file(args.image)
        if not image_id:
            parser.error('one of --image or --image-id is required')

        if args.show:
            _print_entry(store, image_id)
            return
        if args.reset:
            store.reset(image_id)
            print(f"{image_id}: progress reset")
            return

        try:
            difficulty = parse_difficulty(args.difficulty)
        except ValueError as e:
            parser.error(str(e))

        engine = CoverageEngine()
        if args.radius is not None:
            engine.set_brush_radius(args.radius)
        if args.rate is not None:
            engine.set_fill_rate(args.rate)

        breath = None
        if args.breath:
            breath = BreathController(BreathConfig.from_env(api_base_url=args.breath))

        session = PaintingSession(store, engine=engine, breath=breath)
        diff = session.enter(image_id, difficulty)
        print(f"Painting {image_id} at {diff.name.lower()} ({engine.grid_x}x{engine.grid_y})"
              f"{' [restored]' if session.restored else ''}")

        path = sweep_path(rows=engine.grid_y)
        if breath is not None:
            async def _run():
                try:
                    return await run_session(session, path, args.seconds)
                finally:
                    await breath.aclose()
            result = asyncio.run(_run())
        else:
            result = simulate_session(session, path, args.seconds)

        print(engine.pretty())
        print(f"Completed this run: {len(result.completed)} cells; progress {result.progress:.1%}"
              f" ({result.ticks} ticks, {result.polls} breath polls)")


if __name__ == '__main__':
    main()
