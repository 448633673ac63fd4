from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .difficulty import Difficulty, clamp_difficulty
from .geometry import clamp01

lib_logger = logging.getLogger("lumina_core")

STORE_VERSION = 1
STORE_FILENAME = "lumina_image_progress_db.json"
DEFAULT_STORE = os.getenv("LUMINA_STORE", os.path.join("data", STORE_FILENAME))


@dataclass
class ProgressEntry:
    """Saved progress for one image, keyed by content identity."""
    image_id: str
    locked_difficulty: Difficulty
    progress01: float
    grid_x: int
    grid_y: int
    cells: List[float] = field(default_factory=list)
    last_updated: int = 0  # ms since epoch, UTC


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def sanitize_entry(entry: ProgressEntry) -> ProgressEntry:
    """Returns a clamped copy: progress in [0,1], difficulty 0..2, dims >= 1, cells a list."""
    cells = entry.cells if entry.cells is not None else []
    return ProgressEntry(
        image_id=entry.image_id,
        locked_difficulty=clamp_difficulty(entry.locked_difficulty),
        progress01=clamp01(_as_float(entry.progress01)),
        grid_x=max(1, _as_int(entry.grid_x, 1)),
        grid_y=max(1, _as_int(entry.grid_y, 1)),
        cells=[_as_float(v) for v in cells],
        last_updated=_as_int(entry.last_updated),
    )


def entry_to_json(entry: ProgressEntry) -> Dict[str, Any]:
    return {
        "imageId": entry.image_id,
        "lockedDifficulty": int(entry.locked_difficulty),
        "progress01": float(entry.progress01),
        "gridX": int(entry.grid_x),
        "gridY": int(entry.grid_y),
        "cells": [float(v) for v in entry.cells],
        "lastUpdated": int(entry.last_updated),
    }


def entry_from_json(obj: Dict[str, Any]) -> Optional[ProgressEntry]:
    """Builds a sanitized entry from a document record; records without an id are dropped."""
    if not isinstance(obj, dict):
        return None
    image_id = obj.get("imageId")
    if not isinstance(image_id, str) or not image_id:
        return None
    cells = obj.get("cells")
    raw = ProgressEntry(
        image_id=image_id,
        locked_difficulty=obj.get("lockedDifficulty", 0),
        progress01=obj.get("progress01", 0.0),
        grid_x=obj.get("gridX", 1),
        grid_y=obj.get("gridY", 1),
        cells=list(cells) if isinstance(cells, list) else [],
        last_updated=obj.get("lastUpdated", 0),
    )
    return sanitize_entry(raw)


def _ensure_store_dir(path: str) -> None:
    """Ensures the directory for the store document exists before writing."""
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


def _is_writable_dir(directory: str) -> bool:
    try:
        os.makedirs(directory, exist_ok=True)
        marker = os.path.join(directory, ".write_test")
        with open(marker, "w", encoding="utf-8") as f:
            f.write("ok")
        os.remove(marker)
        return True
    except OSError:
        return False


def _can_write(directory: str) -> bool:
    """Side-effect free writability check; a missing directory counts when its nearest existing parent is writable."""
    directory = os.path.abspath(directory)
    while not os.path.isdir(directory):
        parent = os.path.dirname(directory)
        if parent == directory:
            return False
        directory = parent
    return os.access(directory, os.W_OK)


def _fallback_dirs() -> List[str]:
    dirs = [
        os.getenv("LUMINA_SAVE_DIR"),
        os.path.join(os.getcwd(), "data"),
        tempfile.gettempdir(),
    ]
    return [d for d in dirs if d]


def find_store_document(path: str) -> Optional[str]:
    """Returns the document to read for `path`, or None when there is nothing on disk.

    A writable location is authoritative. Otherwise earlier runs may have
    written to a fallback directory, and the most recently modified copy wins.
    """
    if _can_write(os.path.dirname(os.path.abspath(path))):
        return path if os.path.isfile(path) else None
    base = os.path.basename(path) or STORE_FILENAME
    candidates = [path] + [os.path.join(d, base) for d in _fallback_dirs()]
    existing = [p for p in candidates if os.path.isfile(p)]
    if not existing:
        return None
    return max(existing, key=os.path.getmtime)


def resolve_store_path(path: str) -> str:
    """Resolves a potentially unwritable store path to a writable one, creating the directory if needed."""
    directory = os.path.dirname(os.path.abspath(path))
    if _is_writable_dir(directory):
        return path
    base = os.path.basename(path) or STORE_FILENAME
    for d in _fallback_dirs():
        if _is_writable_dir(d):
            fallback = os.path.join(d, base)
            lib_logger.warning(f"ProgressStore: {path} not writable, using {fallback}")
            return fallback
    # Last resort: current working directory
    return base


class ProgressStore:
    """Persistent keyed store holding at most one ProgressEntry per image id.

    The JSON document is parsed lazily on first access and rewritten in full
    after every mutation. Failures never propagate: a corrupt document loads
    as an empty store (the file is left alone until the next write) and a
    failed write is logged.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._entries: Optional[Dict[str, ProgressEntry]] = None
        self._resolved: Optional[str] = None

    # ---------- lifecycle ----------

    def open(self) -> 'ProgressStore':
        self._ensure_loaded()
        return self

    def close(self) -> None:
        self._entries = None

    @property
    def is_open(self) -> bool:
        return self._entries is not None

    def __enter__(self) -> 'ProgressStore':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def file_path(self) -> str:
        """Write target; resolved on the first save."""
        if self._resolved is None:
            self._resolved = resolve_store_path(self.path)
        return self._resolved

    def _ensure_loaded(self) -> Dict[str, ProgressEntry]:
        if self._entries is not None:
            return self._entries
        self._entries = {}
        path = find_store_document(self.path)
        if path is None:
            return self._entries
        try:
            with open(path, "r", encoding="utf-8") as f:
                doc = json.load(f)
            if not isinstance(doc, dict) or not isinstance(doc.get("entries"), list):
                raise ValueError("document has no entries list")
        except (OSError, ValueError) as e:
            lib_logger.error(f"ProgressStore: failed to load {path}, starting empty: {e}")
            return self._entries
        for obj in doc["entries"]:
            entry = entry_from_json(obj)
            if entry is not None:
                self._entries[entry.image_id] = entry
        lib_logger.debug(f"ProgressStore: loaded {len(self._entries)} entries from {path}")
        return self._entries

    def _save(self) -> None:
        entries = self._ensure_loaded()
        path = self.file_path
        doc = {"version": STORE_VERSION, "entries": [entry_to_json(e) for e in entries.values()]}
        tmp = path + ".tmp"
        try:
            _ensure_store_dir(path)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            lib_logger.error(f"ProgressStore: failed to save {path}: {e}")

    # ---------- operations ----------

    def get(self, image_id: str) -> Optional[ProgressEntry]:
        """Returns a sanitized copy of the entry, or None when absent."""
        if not image_id:
            return None
        entry = self._ensure_loaded().get(image_id)
        if entry is None:
            return None
        return sanitize_entry(entry)

    def set(
        self,
        image_id: str,
        difficulty: Difficulty,
        grid_x: int,
        grid_y: int,
        cells: Optional[Sequence[float]],
        progress01: float,
    ) -> None:
        """Upserts the entry and persists the whole document.

        Every call with positive progress re-stamps the locked difficulty.
        """
        if not image_id:
            return
        entries = self._ensure_loaded()
        progress01 = clamp01(_as_float(progress01))
        difficulty = clamp_difficulty(difficulty)

        entry = entries.get(image_id)
        if entry is None:
            entry = ProgressEntry(image_id=image_id, locked_difficulty=difficulty,
                                  progress01=0.0, grid_x=1, grid_y=1)
            entries[image_id] = entry

        if progress01 > 0.0:
            entry.locked_difficulty = difficulty

        entry.progress01 = progress01
        entry.grid_x = max(1, _as_int(grid_x, 1))
        entry.grid_y = max(1, _as_int(grid_y, 1))
        entry.cells = [_as_float(v) for v in cells] if cells is not None else []
        entry.last_updated = _now_ms()
        self._save()

    def reset(self, image_id: str) -> None:
        """Deletes the entry if present; a no-op otherwise."""
        if not image_id:
            return
        entries = self._ensure_loaded()
        if entries.pop(image_id, None) is None:
            return
        self._save()

    def entries(self) -> List[ProgressEntry]:
        return [sanitize_entry(e) for e in self._ensure_loaded().values()]

    def image_ids(self) -> List[str]:
        return list(self._ensure_loaded().keys())
