"""Meetwatch - Inbox meeting-request monitor with conflict-free slot replies

Philosophy:
    A meeting request should get an answer that is true against the calendar
    at the moment it is read, and it should get exactly one answer. The
    monitor trades "maybe reply again after a restart" for "never reply twice
    while running".

Components:
    models.py: Data models (BusyInterval, SlotSpec, FreeSlot, MeetingRequestContext)
    errors.py: Failure taxonomy shared by the pipeline and providers
    config_models.py: Validated YAML configuration (args/meetwatch.yaml)
    logging_config.py: structlog setup
    slots/: Interval slot engine (pure, no I/O)
    pipeline/: Processed set, controller and periodic monitor
    providers/: Gmail, Google Calendar and OAuth credential collaborators
    oracle/: Intent classification and ranking (Claude)
    cli.py: Command line entry point
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
DATA_DIR = PROJECT_ROOT / "data"
CONFIG_PATH = ARGS_DIR / "meetwatch.yaml"

__version__ = "0.1.0"

__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "DATA_DIR",
    "CONFIG_PATH",
    "__version__",
]
