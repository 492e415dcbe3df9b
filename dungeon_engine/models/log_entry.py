"""Log entry value and the enums shared by state and log rows."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


class CurrentAction(str, enum.Enum):
    IDLE = "IDLE"
    EXPLORING = "EXPLORING"
    BATTLE = "BATTLE"
    REST = "REST"
    TRAP = "TRAP"
    TREASURE = "TREASURE"


class LogCategory(str, enum.Enum):
    EXPLORATION = "EXPLORATION"
    STATUS = "STATUS"


class LogAction(str, enum.Enum):
    BATTLE = "BATTLE"
    DEATH = "DEATH"
    REVIVE = "REVIVE"
    MOVE = "MOVE"
    REST = "REST"
    TRAP = "TRAP"
    TREASURE = "TREASURE"
    ACQUIRE_ITEM = "ACQUIRE_ITEM"
    EQUIP_ITEM = "EQUIP_ITEM"
    UNEQUIP_ITEM = "UNEQUIP_ITEM"
    DISCARD_ITEM = "DISCARD_ITEM"
    BUFF_APPLIED = "BUFF_APPLIED"
    BUFF_EXPIRED = "BUFF_EXPIRED"
    LEVEL_UP = "LEVEL_UP"
    STAT_APPLIED = "STAT_APPLIED"


class LogStatus(str, enum.Enum):
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"


# Actions recorded under the STATUS category; everything else is EXPLORATION.
STATUS_ACTIONS = frozenset(
    {
        LogAction.ACQUIRE_ITEM,
        LogAction.EQUIP_ITEM,
        LogAction.UNEQUIP_ITEM,
        LogAction.DISCARD_ITEM,
        LogAction.BUFF_APPLIED,
        LogAction.BUFF_EXPIRED,
        LogAction.STAT_APPLIED,
    }
)


def category_for(action: LogAction) -> LogCategory:
    return LogCategory.STATUS if action in STATUS_ACTIONS else LogCategory.EXPLORATION


@dataclass(frozen=True)
class DungeonLogEntry:
    """One append-only record of a resolution sub-step.

    ``id`` and ``sequence`` are assigned by the store when the entry is
    persisted; engine output carries ``None`` for both. ``delta`` and
    ``extra`` are payload objects from :mod:`dungeon_engine.logs`.
    """

    user_id: str
    category: LogCategory
    action: LogAction
    status: LogStatus
    floor: int
    turn_number: Optional[int] = None
    state_version_before: Optional[int] = None
    state_version_after: Optional[int] = None
    delta: Optional[Any] = None
    extra: Optional[Any] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None
    sequence: Optional[int] = None


__all__ = [
    "CurrentAction",
    "LogCategory",
    "LogAction",
    "LogStatus",
    "STATUS_ACTIONS",
    "category_for",
    "DungeonLogEntry",
]
