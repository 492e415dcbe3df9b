"""Spending level-up points on stat options.

Each point offers three distinct stats drawn from ``hp/atk/def/luck`` with a
rolled rarity deciding the bonus. Options are derived from
``{user_id}:level-up:{roll_index}``, so the same index always shows the same
choices; the stored roll index moves forward on every applied choice and a
client holding an older index is rejected with ``RollMismatch``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from ..config import LEVEL_UP_STATS
from ..errors import InvalidSelection, RollMismatch
from ..logging_utils import get_logger
from ..logs.deltas import StatAppliedDelta, StatsDelta
from ..logs.extras import StatAppliedExtra
from ..models.log_entry import DungeonLogEntry, LogAction, LogStatus, category_for
from ..models.state import DungeonState, utcnow
from ..rng import RandomSource, SeededRandomFactory, build_seed

log = get_logger("dungeon.level_up")

OPTION_COUNT = 3

# (rarity, weight, flat value)
RARITY_TABLE: Tuple[Tuple[str, int, int], ...] = (
    ("common", 50, 1),
    ("uncommon", 30, 2),
    ("rare", 15, 3),
    ("epic", 4, 4),
    ("legendary", 1, 5),
)
_TOTAL_RARITY_WEIGHT = sum(weight for _, weight, _ in RARITY_TABLE)


@dataclass(frozen=True)
class LevelUpOption:
    stat: str
    rarity: str
    value: int

    def to_dict(self):
        return {"stat": self.stat, "rarity": self.rarity, "value": self.value}


@dataclass(frozen=True)
class LevelUpSelection:
    points: int
    roll_index: int
    options: List[LevelUpOption] = field(default_factory=list)


@dataclass(frozen=True)
class LevelUpResult:
    state: DungeonState
    applied: LevelUpOption
    entries: List[DungeonLogEntry]


def _roll_rarity(rng: RandomSource) -> Tuple[str, int]:
    roll = rng.next() * _TOTAL_RARITY_WEIGHT
    acc = 0
    for rarity, weight, value in RARITY_TABLE:
        acc += weight
        if roll <= acc:
            return rarity, value
    rarity, _, value = RARITY_TABLE[-1]
    return rarity, value


def build_options(user_id: str, roll_index: int, rng_factory=None) -> List[LevelUpOption]:
    rng = (rng_factory or SeededRandomFactory()).create(build_seed(user_id, "level-up", roll_index))
    pool = list(LEVEL_UP_STATS)
    stats = []
    for _ in range(OPTION_COUNT):
        index = min(len(pool) - 1, math.floor(rng.next() * len(pool)))
        stats.append(pool.pop(index))
    options = []
    for stat in stats:
        rarity, value = _roll_rarity(rng)
        options.append(LevelUpOption(stat=stat, rarity=rarity, value=value))
    return options


def stats_delta_for(option: LevelUpOption) -> StatsDelta:
    if option.stat == "hp":
        return StatsDelta(hp=option.value, max_hp=option.value)
    attr = "defense" if option.stat == "def" else option.stat
    return StatsDelta(**{attr: option.value})


def apply_level_up_choice(state: DungeonState, option: LevelUpOption) -> DungeonState:
    """Return ``state`` with ``option`` applied, one point spent and the roll index advanced."""
    if option.stat == "hp":
        max_hp = state.max_hp + option.value
        nxt = replace(state, max_hp=max_hp, hp=min(max_hp, state.hp + option.value))
    else:
        nxt = state.with_stat(option.stat, state.get_stat(option.stat) + option.value)
    return replace(
        nxt,
        level_up_points=state.level_up_points - 1,
        level_up_roll_index=state.level_up_roll_index + 1,
    )


class LevelUpService:
    def __init__(self, store, rng_factory=None, clock=utcnow):
        self.store = store
        self.rng_factory = rng_factory or SeededRandomFactory()
        self.clock = clock

    def _require_state(self, user_id: str) -> DungeonState:
        state = self.store.load_state(user_id)
        if state is None:
            raise InvalidSelection(f"no dungeon state for {user_id}", code="LEVEL_UP_NO_STATE", user_id=user_id)
        return state

    def build_options(self, user_id: str, roll_index: int) -> List[LevelUpOption]:
        return build_options(user_id, roll_index, self.rng_factory)

    def get_selection(self, user_id: str) -> LevelUpSelection:
        state = self._require_state(user_id)
        options = self.build_options(user_id, state.level_up_roll_index) if state.level_up_points > 0 else []
        return LevelUpSelection(points=state.level_up_points, roll_index=state.level_up_roll_index, options=options)

    def apply_selection(self, user_id: str, stat: str, roll_index: int) -> LevelUpResult:
        if stat not in LEVEL_UP_STATS:
            raise InvalidSelection(f"unknown stat: {stat!r}", stat=stat)
        if not isinstance(roll_index, int) or isinstance(roll_index, bool) or roll_index < 0:
            raise InvalidSelection("roll index must be a non-negative integer", roll_index=roll_index)

        state = self._require_state(user_id)
        if state.level_up_points <= 0:
            raise InvalidSelection("no level-up points available", code="LEVEL_UP_NO_POINTS")
        if roll_index != state.level_up_roll_index:
            raise RollMismatch(roll_index, state.level_up_roll_index)

        selected: Optional[LevelUpOption] = next(
            (o for o in self.build_options(user_id, state.level_up_roll_index) if o.stat == stat), None
        )
        if selected is None:
            raise InvalidSelection(f"{stat} is not among the offered options", stat=stat)

        now = self.clock()
        nxt = replace(apply_level_up_choice(state, selected), version=state.version + 1, updated_at=now)
        nxt.check_invariants()
        delta_stats = stats_delta_for(selected)
        entry = DungeonLogEntry(
            user_id=user_id,
            category=category_for(LogAction.STAT_APPLIED),
            action=LogAction.STAT_APPLIED,
            status=LogStatus.COMPLETED,
            floor=state.floor,
            state_version_before=state.version,
            state_version_after=nxt.version,
            delta=StatAppliedDelta(stats=delta_stats),
            extra=StatAppliedExtra(applied=delta_stats, rarity=selected.rarity),
            created_at=now,
        )
        persisted = self.store.commit(state.version, nxt, [entry])
        log.info(event="level_up_applied", user_id=user_id, stat=stat, rarity=selected.rarity, value=selected.value)
        return LevelUpResult(state=nxt, applied=selected, entries=persisted)


__all__ = [
    "RARITY_TABLE",
    "LevelUpOption",
    "LevelUpSelection",
    "LevelUpResult",
    "LevelUpService",
    "build_options",
    "apply_level_up_choice",
    "stats_delta_for",
]
