"""Test data factories to reduce boilerplate in tests.

Usage examples:
    from tests.factories import ScriptedRandomFactory, make_catalog, make_state

    def test_something():
        rng = ScriptedRandomFactory({"hero:event:1": [0.6]})
        engine = make_engine(make_catalog(), rng)
        result = engine.resolve_next_action(make_state(ap=1), 1)
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from dungeon_engine.catalog import build_catalog
from dungeon_engine.config import EventConfig
from dungeon_engine.models.state import DungeonState
from dungeon_engine.services.event_service import DungeonEventEngine

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

GIANT_RAT = {"code": "monster-giant-rat", "name": "Giant Rat", "hp": 8, "atk": 2, "def": 0, "dropTableId": "drops-test"}
ANCIENT_DRAGON = {"code": "monster-ancient-dragon", "name": "Ancient Dragon", "hp": 110, "atk": 22, "def": 11, "dropTableId": "drops-test"}
OGRE_CHIEF = {"code": "monster-ogre-chief", "name": "Ogre Chief", "hp": 90, "atk": 20, "def": 7, "dropTableId": "drops-test"}
GOBLIN_ELITE = {
    "code": "monster-goblin-captain",
    "name": "Goblin Captain",
    "hp": 10,
    "atk": 3,
    "def": 1,
    "rarity": "elite",
    "variantOf": "monster-goblin",
    "dropTableId": "drops-test",
}

TOPAZ_TABLE = {"tableId": "drops-test", "drops": [{"itemCode": "ring-topaz", "weight": 1}]}
ITEMS = [{"code": "ring-topaz", "name": "Topaz Ring", "slot": "ring", "rarity": "uncommon"}]


class FixedRandom:
    """Returns scripted values in order, then ``default`` forever."""

    def __init__(self, values: Iterable[float] = (), default: float = 0.99):
        self.values: List[float] = list(values)
        self.default = default
        self.calls = 0

    def next(self) -> float:
        self.calls += 1
        if self.values:
            return self.values.pop(0)
        return self.default


class ScriptedRandomFactory:
    """Maps seed strings to scripted sequences; unknown seeds roll ``default``.

    The high default keeps crits, drop gates and elite rolls from firing
    unless a test asks for them.
    """

    def __init__(self, scripts: Optional[Dict[str, Iterable[float]]] = None, default: float = 0.99):
        self.scripts = {seed: list(values) for seed, values in (scripts or {}).items()}
        self.default = default
        self.seeds: List[str] = []

    def create(self, seed: str) -> FixedRandom:
        self.seeds.append(seed)
        return FixedRandom(self.scripts.get(seed, ()), self.default)


def make_catalog(monsters=(GIANT_RAT,), tables=(TOPAZ_TABLE,), items=ITEMS):
    return build_catalog(list(monsters), list(tables), list(items))


def make_engine(catalog=None, rng_factory=None, config: Optional[EventConfig] = None) -> DungeonEventEngine:
    return DungeonEventEngine(
        catalog or make_catalog(),
        config or EventConfig(),
        rng_factory=rng_factory or ScriptedRandomFactory(),
        clock=lambda: FIXED_NOW,
    )


def make_state(user_id: str = "hero", **overrides) -> DungeonState:
    fields = {"hp": 10, "max_hp": 10, "atk": 3, "defense": 1, "ap": 5, "created_at": FIXED_NOW, "updated_at": FIXED_NOW}
    fields.update(overrides)
    return DungeonState(user_id=user_id, **fields)


def actions_of(entries):
    return [(e.action.value, e.status.value) for e in entries]
