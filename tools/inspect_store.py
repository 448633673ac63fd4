#!/usr/bin/env python3
"""
Inspector for a Lumina progress store document.

Prints every entry (progress, locked difficulty, grid, cell statistics) and
flags records that disagree with the invariants the game relies on:
cells length == gridX*gridY and progress01 == mean(cells).

Usage:
  python tools/inspect_store.py data/lumina_image_progress_db.json
  python tools/inspect_store.py data/lumina_image_progress_db.json --grid --json
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

HERE = os.path.dirname(os.path.abspath(__file__))
ROOT = os.path.dirname(HERE)
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from lumina_core.coverage import CoverageEngine  # noqa: E402
from lumina_core.store import ProgressEntry, ProgressStore, entry_to_json  # noqa: E402

PROGRESS_TOLERANCE = 1e-3


def check_entry(entry: ProgressEntry) -> List[str]:
    problems: List[str] = []
    expected = entry.grid_x * entry.grid_y
    if len(entry.cells) != expected:
        problems.append(f"cells length {len(entry.cells)} != {expected}")
    elif entry.cells:
        mean = sum(min(1.0, max(0.0, v)) for v in entry.cells) / len(entry.cells)
        if abs(mean - entry.progress01) > PROGRESS_TOLERANCE:
            problems.append(f"progress01 {entry.progress01:.4f} != mean(cells) {mean:.4f}")
    return problems


def _fmt_ts(ms: int) -> str:
    if ms <= 0:
        return "-"
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).isoformat(timespec="seconds")


def main() -> int:
    ap = argparse.ArgumentParser(description="Inspect a Lumina progress store")
    ap.add_argument("path", help="Store JSON path")
    ap.add_argument("--grid", action="store_true", help="Render each entry's grid")
    ap.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    args = ap.parse_args()

    if not os.path.isfile(args.path):
        print(f"{args.path} MISSING")
        return 1

    with ProgressStore(args.path) as store:
        entries = store.entries()

    if args.json:
        out: List[Dict[str, Any]] = []
        for e in entries:
            rec = entry_to_json(e)
            rec["problems"] = check_entry(e)
            out.append(rec)
        print(json.dumps(out, indent=2))
        return 0

    print(f"store={args.path} entries={len(entries)}")
    for e in entries:
        done = sum(1 for v in e.cells if v >= 1.0)
        print(
            f"- {e.image_id} diff={e.locked_difficulty.name.lower()} progress={e.progress01:.1%} "
            f"grid={e.grid_x}x{e.grid_y} complete={done}/{len(e.cells)} updated={_fmt_ts(e.last_updated)}"
        )
        for p in check_entry(e):
            print(f"    ! {p}")
        if args.grid:
            engine = CoverageEngine()
            engine.configure(e.grid_x, e.grid_y)
            if engine.restore(e.cells):
                print("    " + engine.pretty().replace("\n", "\n    "))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
