"""Event, battle and growth configuration.

All tuning the engine consumes lives here as dataclasses. The shipped defaults
are loaded from ``data/event_config.json``; an alternative file can be
pointed at with ``DUNGEON_EVENT_CONFIG``. Sections missing from a file fall
back to the dataclass defaults; present-but-malformed values raise
``ConfigError``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigError

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_EVENT_CONFIG_PATH = DATA_DIR / "event_config.json"

EVENT_TYPES = ("BATTLE", "TREASURE", "REST", "TRAP")
LEVEL_UP_STATS = ("hp", "atk", "def", "luck")


@dataclass(frozen=True)
class EventWeights:
    BATTLE: float = 50
    TREASURE: float = 5
    REST: float = 40
    TRAP: float = 5

    def total(self) -> float:
        return self.BATTLE + self.TREASURE + self.REST + self.TRAP

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in EVENT_TYPES}


@dataclass(frozen=True)
class GoldConfig:
    base: float = 1
    floor_factor: float = 0.2
    stat_div: float = 20


@dataclass(frozen=True)
class BattleConfig:
    elite_rate: float = 0.05
    crit_base: float = 0.05
    crit_luck_factor: float = 0.01
    crit_cap: float = 0.5
    crit_multiplier: float = 2.0
    damage_variance: float = 0.0
    turn_limit: int = 30
    elite_exp_bonus: float = 1.5
    drop_chance: float = 0.3
    elite_drop_multiplier: float = 2.0
    floor_scale_rate: float = 0.01
    elite_multiplier: float = 1.3
    gold: GoldConfig = field(default_factory=GoldConfig)


@dataclass(frozen=True)
class RestConfig:
    heal_ratio: float = 0.4
    min_heal: int = 1


@dataclass(frozen=True)
class TrapConfig:
    damage: int = 3


@dataclass(frozen=True)
class EffectConfig:
    """Flat effect applied by non-combat events (treasure)."""

    gold: int = 0
    hp: int = 0
    hp_ratio: float = 0.0
    atk: int = 0
    defense: int = 0
    luck: int = 0


@dataclass(frozen=True)
class GrowthConfig:
    exp_per_level: int = 10
    hp_per_level: int = 2
    bonus_stats: Tuple[str, ...] = ("atk", "def", "luck")
    bonus_amount: int = 1
    points_per_level: int = 1


@dataclass(frozen=True)
class ProgressConfig:
    base_increment: int = 10
    battle_increment: int = 20
    max_progress: int = 100


@dataclass(frozen=True)
class EventConfig:
    weights: EventWeights = field(default_factory=EventWeights)
    battle: BattleConfig = field(default_factory=BattleConfig)
    rest: RestConfig = field(default_factory=RestConfig)
    trap: TrapConfig = field(default_factory=TrapConfig)
    treasure: EffectConfig = field(default_factory=lambda: EffectConfig(gold=5))
    growth: GrowthConfig = field(default_factory=GrowthConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    ap_cost: int = 1
    default_drop_table_id: str = "drops-default"


@dataclass(frozen=True)
class BatchConfig:
    max_users_per_tick: int = 200
    max_actions_per_user: int = 5
    min_ap: int = 1
    commit_retries: int = 3

    @classmethod
    def from_env(cls) -> "BatchConfig":
        return cls(
            max_users_per_tick=_env_int("DUNGEON_BATCH_MAX_USERS", cls.max_users_per_tick),
            max_actions_per_user=_env_int("DUNGEON_BATCH_MAX_ACTIONS", cls.max_actions_per_user),
            min_ap=_env_int("DUNGEON_BATCH_MIN_AP", cls.min_ap),
            commit_retries=_env_int("DUNGEON_COMMIT_RETRIES", cls.commit_retries),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# JSON keys are camelCase; dataclass fields are snake_case. "def" maps to "defense".
_KEY_ALIASES = {"def": "defense"}


def _snake(key: str) -> str:
    if key in _KEY_ALIASES:
        return _KEY_ALIASES[key]
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def _build(cls, raw: Any, section: str):
    """Overlay a JSON mapping on the defaults of dataclass ``cls``."""
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{section} must be an object")
    known = {f.name: f for f in fields(cls)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        name = key if cls is EventWeights else _snake(key)
        if name not in known:
            raise ConfigError(f"unknown key {section}.{key}")
        default = getattr(cls(), name)
        if isinstance(default, tuple):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"{section}.{key} must be a list of strings")
            values[name] = tuple(value)
        elif hasattr(default, "__dataclass_fields__"):
            values[name] = _build(type(default), value, f"{section}.{key}")
        else:
            if not _is_number(value):
                raise ConfigError(f"{section}.{key} must be a number")
            values[name] = int(value) if known[name].type == "int" else float(value)
    return replace(cls(), **values)


_PROBABILITIES = ("elite_rate", "crit_base", "crit_cap", "drop_chance")


def _check_battle(battle: BattleConfig) -> BattleConfig:
    if battle.turn_limit < 1:
        raise ConfigError("battle.turnLimit must be at least 1")
    for name in _PROBABILITIES:
        value = getattr(battle, name)
        if not 0 <= value <= 1:
            raise ConfigError(f"battle.{name} must be between 0 and 1, got {value}")
    if battle.crit_luck_factor < 0 or battle.elite_drop_multiplier < 0:
        raise ConfigError("battle.critLuckFactor and battle.eliteDropMultiplier must not be negative")
    if battle.crit_multiplier < 1:
        raise ConfigError("battle.critMultiplier must be at least 1")
    if not 0 <= battle.damage_variance < 1:
        raise ConfigError("battle.damageVariance must be in [0, 1)")
    return battle


def parse_event_config(raw: Mapping[str, Any]) -> EventConfig:
    if not isinstance(raw, Mapping):
        raise ConfigError("event config must be an object")
    weights = _build(EventWeights, raw.get("weights"), "weights")
    if any(w < 0 for w in weights.as_dict().values()):
        raise ConfigError("event weights must not be negative")
    growth = _build(GrowthConfig, raw.get("growth"), "growth")
    unknown = [s for s in growth.bonus_stats if s not in LEVEL_UP_STATS]
    if unknown:
        raise ConfigError(f"growth.bonusStats contains unknown stats: {unknown}")
    treasure = raw.get("effects", {}).get("TREASURE") if isinstance(raw.get("effects"), Mapping) else None
    ap_cost = raw.get("apCost", 1)
    if not _is_number(ap_cost) or ap_cost <= 0:
        raise ConfigError("apCost must be a positive number")
    table_id = raw.get("defaultDropTableId", EventConfig.default_drop_table_id)
    if not isinstance(table_id, str) or not table_id:
        raise ConfigError("defaultDropTableId must be a non-empty string")
    return EventConfig(
        weights=weights,
        battle=_check_battle(_build(BattleConfig, raw.get("battle"), "battle")),
        rest=_build(RestConfig, raw.get("rest"), "rest"),
        trap=_build(TrapConfig, raw.get("trap"), "trap"),
        treasure=_build(EffectConfig, treasure, "effects.TREASURE") if treasure is not None else EffectConfig(gold=5),
        growth=growth,
        progress=_build(ProgressConfig, raw.get("progress"), "progress"),
        ap_cost=int(ap_cost),
        default_drop_table_id=table_id,
    )


def load_event_config(path: Optional[str | os.PathLike] = None) -> EventConfig:
    """Load and validate the event configuration.

    Resolution order: explicit ``path``, ``DUNGEON_EVENT_CONFIG``, then the
    packaged default file.
    """
    target = Path(path or os.getenv("DUNGEON_EVENT_CONFIG") or DEFAULT_EVENT_CONFIG_PATH)
    try:
        with open(target, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"event config not found: {target}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"event config is not valid JSON: {target}: {exc}") from exc
    return parse_event_config(raw)


__all__ = [
    "EVENT_TYPES",
    "LEVEL_UP_STATS",
    "EventWeights",
    "GoldConfig",
    "BattleConfig",
    "RestConfig",
    "TrapConfig",
    "EffectConfig",
    "GrowthConfig",
    "ProgressConfig",
    "EventConfig",
    "BatchConfig",
    "parse_event_config",
    "load_event_config",
]
