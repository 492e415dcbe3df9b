# Model package init
from .log_entry import CurrentAction, DungeonLogEntry, LogAction, LogCategory, LogStatus  # noqa: F401 re-export
from .state import STAT_ATTRS, DungeonState  # noqa: F401 re-export

__all__ = [
    "CurrentAction",
    "DungeonLogEntry",
    "DungeonState",
    "LogAction",
    "LogCategory",
    "LogStatus",
    "STAT_ATTRS",
]
