#!/usr/bin/env python3
"""
Mock breathing backend for local play-testing without a sensor.

Serves the three webhook endpoints the breath controller polls, driven by a
slow sine wave so the gate opens and closes on its own:
  GET /webhooks/breathing-volume      -> {"breathing_volume": float}
  GET /webhooks/breathing-regularity  -> {"breathing_regularity": 0..1}
  GET /webhooks/breathing-rate        -> {"breathing_rate": breaths/second}

Usage:
  python tools/mock_breath_server.py --port 8000 --period 8
  python -m lumina_core.cli --image-id demo --breath http://127.0.0.1:8000 --seconds 20
"""
from __future__ import annotations

import argparse
import math
import time

from flask import Flask, jsonify

# Resting/working breathing range, breaths per minute.
MIN_BREATHING_BPM = 6.0
MAX_BREATHING_BPM = 14.0
PEAK_VOLUME = 0.08

_START_TIME = time.time()
_PERIOD_SECONDS = 8.0

app = Flask(__name__)


def _phase(now: float | None = None) -> float:
    elapsed = (now if now is not None else time.time()) - _START_TIME
    return (2.0 * math.pi * elapsed) / _PERIOD_SECONDS


def breathing_volume(now: float | None = None) -> float:
    # Half-wave: exhale pauses read as silence
    return max(0.0, PEAK_VOLUME * math.sin(_phase(now)))


def breathing_regularity(now: float | None = None) -> float:
    return 0.75 + 0.25 * math.cos(_phase(now) / 3.0)


def breathing_rate(now: float | None = None) -> float:
    center = (MIN_BREATHING_BPM + MAX_BREATHING_BPM) / 2.0
    amplitude = (MAX_BREATHING_BPM - MIN_BREATHING_BPM) / 2.0
    bpm = center + amplitude * math.sin(_phase(now) / 5.0)
    return bpm / 60.0


@app.get("/webhooks/breathing-volume")
def volume() -> object:
    return jsonify({"breathing_volume": breathing_volume()})


@app.get("/webhooks/breathing-regularity")
def regularity() -> object:
    return jsonify({"breathing_regularity": breathing_regularity()})


@app.get("/webhooks/breathing-rate")
def rate() -> object:
    return jsonify({"breathing_rate": breathing_rate()})


def main() -> int:
    global _PERIOD_SECONDS
    ap = argparse.ArgumentParser(description="Mock breathing metrics server")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--period", type=float, default=_PERIOD_SECONDS, help="Seconds per breath cycle")
    args = ap.parse_args()
    _PERIOD_SECONDS = max(0.5, args.period)
    app.run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
