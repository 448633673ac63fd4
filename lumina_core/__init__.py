"""
Lumina core Python package.

This package contains the progress-simulation core of the coloring game:
grid coverage, persisted progress and the breathing-driven speed control.
Modules:
- geometry.py: brush circle vs. cell rectangle helpers
- coverage.py: CoverageEngine (live cell buffer)
- store.py: ProgressStore (persisted entries keyed by image content)
- breath.py: BreathController (polling, calibration, hysteresis gate)
- session.py, runner.py: host glue that wires the three together
"""
