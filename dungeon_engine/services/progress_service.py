"""Floor progress, experience and resting arithmetic.

Pure functions only; the event engine decides when to call them and records
their results in log deltas.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from ..config import GrowthConfig
from ..models.state import MAX_FLOOR_PROGRESS
from ..rng import RandomSource


@dataclass(frozen=True)
class ProgressResult:
    floor_progress: int
    forced_advance: bool
    previous: int

    @property
    def delta(self) -> int:
        return self.floor_progress - self.previous


def apply_progress_delta(floor_progress: int, delta: int, maximum: int = MAX_FLOOR_PROGRESS) -> ProgressResult:
    """Add ``delta`` to the meter, clamped to ``[0, maximum]``.

    Overflow is discarded; ``forced_advance`` tells the caller a floor
    transition is due.
    """
    nxt = min(maximum, max(0, floor_progress + delta))
    return ProgressResult(floor_progress=nxt, forced_advance=nxt >= maximum, previous=floor_progress)


def exp_to_level(level: int, per_level: int = 10) -> int:
    """Return the exp needed to advance from ``level`` to ``level + 1``.

    The threshold is linear in the current level (10, 20, 30, ... with the
    default step) so it increases monotonically; exp is spent on each level
    gained, which makes consecutive level-ups progressively more expensive.
    Levels below 1 are treated as level 1.
    """
    return per_level * max(1, level)


@dataclass(frozen=True)
class LevelGain:
    """Growth granted by crossing one threshold."""

    previous_level: int
    current_level: int
    threshold: int
    hp: int
    max_hp: int
    bonus_stat: str
    bonus_amount: int
    points: int

    def stats_gained(self) -> Dict[str, int]:
        gained = {self.bonus_stat: self.bonus_amount}
        if self.max_hp:
            gained["maxHp"] = self.max_hp
        if self.hp:
            gained["hp"] = self.hp
        return gained


@dataclass(frozen=True)
class ExpResult:
    level: int
    exp: int
    gains: List[LevelGain] = field(default_factory=list)

    @property
    def levels_gained(self) -> int:
        return len(self.gains)


def apply_exp(
    level: int,
    exp: int,
    gained: int,
    growth: GrowthConfig,
    rng_for_level: Callable[[int], RandomSource],
) -> ExpResult:
    """Credit ``gained`` exp, resolving every threshold crossed in order.

    ``rng_for_level(n)`` supplies the generator used to pick the bonus stat
    when reaching level ``n``.
    """
    if gained < 0:
        raise ValueError("gained exp must not be negative")
    exp += gained
    gains: List[LevelGain] = []
    while exp >= exp_to_level(level, growth.exp_per_level):
        threshold = exp_to_level(level, growth.exp_per_level)
        exp -= threshold
        nxt = level + 1
        roll = rng_for_level(nxt).next()
        bonus = growth.bonus_stats[min(len(growth.bonus_stats) - 1, math.floor(roll * len(growth.bonus_stats)))]
        gains.append(
            LevelGain(
                previous_level=level,
                current_level=nxt,
                threshold=threshold,
                hp=growth.hp_per_level,
                max_hp=growth.hp_per_level,
                bonus_stat=bonus,
                bonus_amount=growth.bonus_amount,
                points=growth.points_per_level,
            )
        )
        level = nxt
    return ExpResult(level=level, exp=exp, gains=gains)


def rest_heal_amount(max_hp: int, heal_ratio: float, min_heal: int) -> int:
    return max(min_heal, math.floor(max_hp * heal_ratio))


def apply_rest(hp: int, max_hp: int, heal_ratio: float = 0.4, min_heal: int = 1) -> int:
    return min(max_hp, hp + rest_heal_amount(max_hp, heal_ratio, min_heal))


__all__ = [
    "ProgressResult",
    "apply_progress_delta",
    "exp_to_level",
    "LevelGain",
    "ExpResult",
    "apply_exp",
    "rest_heal_amount",
    "apply_rest",
]
