"""Per-user dungeon state value.

``DungeonState`` is immutable; every engine step produces a new value with
``dataclasses.replace``. The store maps it to and from ``DungeonStateRecord``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .log_entry import CurrentAction

MAX_FLOOR_PROGRESS = 100

# Public stat names (as they appear in log payloads) -> DungeonState attribute.
STAT_ATTRS = {
    "hp": "hp",
    "maxHp": "max_hp",
    "atk": "atk",
    "def": "defense",
    "luck": "luck",
    "ap": "ap",
    "level": "level",
    "exp": "exp",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DungeonState:
    user_id: str
    level: int = 1
    exp: int = 0
    hp: int = 10
    max_hp: int = 10
    atk: int = 1
    defense: int = 1
    luck: int = 0
    floor: int = 1
    max_floor: int = 1
    floor_progress: int = 0
    gold: int = 0
    ap: int = 0
    level_up_points: int = 0
    level_up_roll_index: int = 0
    current_action: CurrentAction = CurrentAction.IDLE
    current_action_started_at: Optional[datetime] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def check_invariants(self) -> "DungeonState":
        assert 0 <= self.hp <= self.max_hp, f"hp {self.hp} outside [0, {self.max_hp}]"
        assert 0 <= self.floor_progress <= MAX_FLOOR_PROGRESS, f"floor_progress {self.floor_progress} out of range"
        assert self.ap >= 0, f"ap {self.ap} is negative"
        assert self.max_floor >= self.floor, f"max_floor {self.max_floor} below floor {self.floor}"
        assert self.level >= 1 and self.exp >= 0
        return self

    def with_stat(self, stat: str, value: int) -> "DungeonState":
        return replace(self, **{STAT_ATTRS[stat]: value})

    def get_stat(self, stat: str) -> int:
        return getattr(self, STAT_ATTRS[stat])

    def to_dict(self) -> Dict[str, Any]:
        """Camel-cased snapshot used by the CLI and JSON output."""
        raw = asdict(self)
        return {
            "userId": raw["user_id"],
            "level": raw["level"],
            "exp": raw["exp"],
            "hp": raw["hp"],
            "maxHp": raw["max_hp"],
            "atk": raw["atk"],
            "def": raw["defense"],
            "luck": raw["luck"],
            "floor": raw["floor"],
            "maxFloor": raw["max_floor"],
            "floorProgress": raw["floor_progress"],
            "gold": raw["gold"],
            "ap": raw["ap"],
            "levelUpPoints": raw["level_up_points"],
            "levelUpRollIndex": raw["level_up_roll_index"],
            "currentAction": self.current_action.value,
            "version": raw["version"],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DungeonState":
        """Inverse of :meth:`to_dict`; unknown keys are ignored, missing keys default."""
        mapping = {
            "userId": "user_id",
            "maxHp": "max_hp",
            "def": "defense",
            "maxFloor": "max_floor",
            "floorProgress": "floor_progress",
            "levelUpPoints": "level_up_points",
            "levelUpRollIndex": "level_up_roll_index",
        }
        simple = ("level", "exp", "hp", "atk", "luck", "floor", "gold", "ap", "version")
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in mapping:
                kwargs[mapping[key]] = value
            elif key in simple:
                kwargs[key] = int(value)
            elif key == "currentAction":
                kwargs["current_action"] = CurrentAction(value)
        if "user_id" not in kwargs:
            raise ValueError("state requires userId")
        kwargs.setdefault("max_floor", max(kwargs.get("floor", 1), 1))
        return cls(**kwargs)


__all__ = ["DungeonState", "STAT_ATTRS", "MAX_FLOOR_PROGRESS", "utcnow"]
