from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, request

from game import (
    CoverageEngine,
    DEFAULT_STORE,
    PaintingSession,
    ProgressStore,
    entry_to_json,
    image_id_from_bytes,
    parse_difficulty,
)

app = Flask(__name__)

# Module-level so tests can swap in a temporary store.
store = ProgressStore(DEFAULT_STORE)

# One live session per image id, owned by this process.
sessions: Dict[str, PaintingSession] = {}


def session_to_json(s: PaintingSession) -> Dict[str, Any]:
    engine = s.engine
    return {
        "imageId": s.image_id,
        "difficulty": int(s.difficulty),
        "gridX": int(engine.grid_x),
        "gridY": int(engine.grid_y),
        "cells": engine.get_snapshot(),
        "progress": engine.get_progress(),
        "brushRadius": engine.brush_radius,
        "secondsPerCell": engine.seconds_per_cell,
        "restored": s.restored,
    }


def _parse_uv(value: Any) -> Tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError("center must be [u, v]")
    return float(value[0]), float(value[1])


def _cells_json(cells) -> List[List[int]]:
    return [[int(x), int(y)] for (x, y) in sorted(cells, key=lambda c: (c[1], c[0]))]


# ---------- Health ----------

@app.get("/api/health")
def api_health() -> Any:
    return jsonify({"ok": True})


# ---------- Content identity ----------

@app.post("/api/image-id")
def api_image_id() -> Any:
    data = request.get_data(cache=False)
    if not data:
        return jsonify({"ok": False, "error": "image bytes required"}), 400
    return jsonify({"ok": True, "imageId": image_id_from_bytes(data)})


# ---------- Progress store ----------

@app.get("/api/progress")
def api_progress_list() -> Any:
    return jsonify({"ok": True, "entries": [entry_to_json(e) for e in store.entries()]})


@app.get("/api/progress/<image_id>")
def api_progress_get(image_id: str) -> Any:
    entry = store.get(image_id)
    if entry is None:
        return jsonify({"ok": False, "error": "no saved progress"}), 404
    return jsonify({"ok": True, "entry": entry_to_json(entry)})


@app.delete("/api/progress/<image_id>")
def api_progress_reset(image_id: str) -> Any:
    # A live session would re-create the entry on exit
    live = sessions.pop(image_id, None)
    if live is not None:
        live.discard()
    store.reset(image_id)
    return jsonify({"ok": True})


# ---------- Sessions ----------

@app.post("/api/session")
def api_session_new() -> Any:
    body = request.get_json(force=True, silent=True) or {}
    if not isinstance(body, dict):
        body = {}
    image_id = body.get("imageId")
    if not isinstance(image_id, str) or not image_id:
        return jsonify({"ok": False, "error": "imageId required"}), 400
    try:
        difficulty = parse_difficulty(body.get("difficulty", "easy"))
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    engine = CoverageEngine()
    if "secondsPerCell" in body:
        try:
            engine.set_fill_rate(float(body["secondsPerCell"]))
        except (TypeError, ValueError):
            return jsonify({"ok": False, "error": "secondsPerCell must be a number"}), 400
    previous = sessions.pop(image_id, None)
    if previous is not None:
        previous.exit()
    s = PaintingSession(store, engine=engine)
    s.enter(image_id, difficulty)
    sessions[image_id] = s
    return jsonify({"ok": True, "session": session_to_json(s)})


def _live_session(image_id: str) -> Optional[PaintingSession]:
    s = sessions.get(image_id)
    if s is None or not s.active:
        return None
    return s


@app.get("/api/session/<image_id>")
def api_session_get(image_id: str) -> Any:
    s = _live_session(image_id)
    if s is None:
        return jsonify({"ok": False, "error": "no active session"}), 404
    return jsonify({"ok": True, "session": session_to_json(s)})


@app.post("/api/session/<image_id>/brush")
def api_session_brush(image_id: str) -> Any:
    s = _live_session(image_id)
    if s is None:
        return jsonify({"ok": False, "error": "no active session"}), 404
    body = request.get_json(force=True, silent=True) or {}
    if not isinstance(body, dict):
        body = {}
    try:
        center = _parse_uv(body.get("center"))
        dt = float(body.get("dt", 0.0))
        if "radius" in body:
            s.engine.set_brush_radius(float(body["radius"]))
    except (TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": f"bad brush: {e}"}), 400

    completed = s.tick(dt, center)
    return jsonify({
        "ok": True,
        "completed": _cells_json(completed),
        "covered": _cells_json(s.engine.covered_cells(center)),
        "progress": s.engine.get_progress(),
    })


@app.post("/api/session/<image_id>/exit")
def api_session_exit(image_id: str) -> Any:
    s = _live_session(image_id)
    if s is None:
        return jsonify({"ok": False, "error": "no active session"}), 404
    progress = s.exit()
    sessions.pop(image_id, None)
    return jsonify({"ok": True, "progress": progress})


# Entrypoint for "python app.py"
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    debug = os.getenv("FLASK_DEBUG", os.getenv("DEBUG", "0")).lower() in ("1", "true", "yes", "on")
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=debug)
