"""Action Engine - behavioral monitor and Flow Mode runner

Philosophy:
    Starting is the hard part, and switching away is the easy escape.
    The engine watches for both and answers with ONE small nudge at a time,
    while Flow Mode walks the user through a fixed sequence of tasks.

Components:
    signals/: cooperative scheduler, activity collector, event history
    nudges/: nudge classifier and the live nudge board
    flow/: focus lock, Flow Mode runner, session debrief
    clients/: recommendation, session mirror and telemetry collaborators
    engine.py: the context object that owns all of the above

Usage:
    from actionengine.engine import ActionEngine

    async with ActionEngine(recommender=client) as engine:
        await engine.runner.start(25, "high")
        await engine.runner.complete_task()
        print(engine.snapshot().progress)
"""

from pathlib import Path

__version__ = "0.3.0"

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "action_engine.yaml"

ENERGY_LEVELS = ("low", "medium", "high")

__all__ = [
    "__version__",
    "PROJECT_ROOT",
    "ARGS_DIR",
    "CONFIG_PATH",
    "ENERGY_LEVELS",
]
