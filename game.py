from __future__ import annotations

# Facade module that re-exports Lumina core functionality.
# Kept so the Flask app, tools and tests have one import point.
# Single-responsibility modules live under lumina_core/*.

from lumina_core.geometry import (  # noqa: F401
    UV,
    Cell,
    clamp,
    clamp01,
    circle_intersects_rect,
    cell_range,
    covered_cells,
)
from lumina_core.difficulty import (  # noqa: F401
    Difficulty,
    clamp_difficulty,
    parse_difficulty,
    grid_size_for,
)
from lumina_core.identity import image_id_from_bytes, image_id_from_file  # noqa: F401
from lumina_core.coverage import (  # noqa: F401
    BRUSH_PRESETS,
    DEFAULT_BRUSH_RADIUS,
    MAX_BRUSH_RADIUS,
    MIN_BRUSH_RADIUS,
    MIN_SECONDS_PER_CELL,
    CoverageEngine,
)
from lumina_core.store import (  # noqa: F401
    DEFAULT_STORE,
    STORE_VERSION,
    ProgressEntry,
    ProgressStore,
    entry_from_json,
    entry_to_json,
    find_store_document,
    resolve_store_path,
    sanitize_entry,
)
from lumina_core.breath import (  # noqa: F401
    BreathConfig,
    BreathController,
    combine_url,
    fetch_breath_value,
    afetch_breath_value,
    parse_breath_value,
)
from lumina_core.session import PaintingSession  # noqa: F401
from lumina_core.runner import (  # noqa: F401
    RunResult,
    run_session,
    simulate_session,
    sweep_path,
)


def main(argv=None) -> None:
    # CLI driver delegated to lumina_core.cli
    from lumina_core.cli import main as _main
    _main(argv)


if __name__ == '__main__':
    main()
