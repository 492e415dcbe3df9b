"""Drop table rolling for defeated monsters.

A battle victory first passes a drop gate (``drop_chance``, doubled for elite
monsters) and then rolls the monster's drop table once, plus one extra roll
for elites. Every random number comes from the single generator seeded with
``{user_id}:drop:{counter}``, consumed in this order:

    gate, then (entry pick, quantity) per roll

Returned structure (``DropResult``):
    table_id, is_elite, items=[DropItem(code, quantity), ...]
with duplicate codes merged in first-seen order.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..catalog import DropEntry, DropTable, ItemCatalog
from ..errors import CatalogError
from ..logs.deltas import InventoryItem, ItemQuantity
from ..rng import RandomSource

_ITEM_ID_NAMESPACE = "git-dungeon:"


@dataclass(frozen=True)
class DropItem:
    code: str
    quantity: int


@dataclass(frozen=True)
class DropResult:
    table_id: str
    is_elite: bool
    items: List[DropItem] = field(default_factory=list)

    def __bool__(self):
        return bool(self.items)

    def as_quantities(self) -> tuple:
        return tuple(ItemQuantity(code=i.code, quantity=i.quantity) for i in self.items)


def _pick_entry(drops: Sequence[DropEntry], rng: RandomSource) -> DropEntry:
    total = sum(entry.weight for entry in drops)
    if total <= 0:
        raise CatalogError("drop table weights must sum to a positive number")
    roll = rng.next() * total
    acc = 0.0
    for entry in drops:
        acc += entry.weight
        if roll <= acc:
            return entry
    return drops[-1]


def _roll_quantity(entry: DropEntry, rng: RandomSource) -> int:
    lo = max(1, entry.min_quantity)
    hi = max(lo, entry.max_quantity)
    return lo + math.floor(rng.next() * (hi - lo + 1))


def merge_results(items: Sequence[DropItem]) -> List[DropItem]:
    """Collapse repeated codes, keeping the order each code first appeared."""
    totals: Dict[str, int] = {}
    for item in items:
        totals[item.code] = totals.get(item.code, 0) + item.quantity
    return [DropItem(code, qty) for code, qty in totals.items()]


def roll_drops(
    table: DropTable,
    is_elite: bool,
    rng: RandomSource,
    base_rolls: int = 1,
    elite_extra_rolls: int = 1,
) -> DropResult:
    if not table.drops:
        return DropResult(table_id=table.table_id, is_elite=is_elite)
    rolls = base_rolls + (elite_extra_rolls if is_elite else 0)
    rolled: List[DropItem] = []
    for _ in range(rolls):
        entry = _pick_entry(table.drops, rng)
        rolled.append(DropItem(entry.item_code, _roll_quantity(entry, rng)))
    return DropResult(table_id=table.table_id, is_elite=is_elite, items=merge_results(rolled))


def passes_drop_gate(rng: RandomSource, drop_chance: float, is_elite: bool, elite_multiplier: float = 2.0) -> bool:
    if drop_chance <= 0:
        return False
    chance = drop_chance * elite_multiplier if is_elite else drop_chance
    return rng.next() < min(1.0, max(0.0, chance))


def deterministic_item_id(name: str) -> str:
    """Stable RFC 4122 (version 5 layout) id derived from ``name``.

    Used for inventory ids of dropped items so replays produce the same ids.
    Not suitable for secrets.
    """
    digest = hashlib.sha1((_ITEM_ID_NAMESPACE + name).encode("utf-8")).hexdigest()[:32]
    time_hi = (int(digest[12:16], 16) & 0x0FFF) | 0x5000
    clock_seq = (int(digest[16:20], 16) & 0x3FFF) | 0x8000
    return f"{digest[0:8]}-{digest[8:12]}-{time_hi:04x}-{clock_seq:04x}-{digest[20:32]}"


def to_inventory_adds(drops: DropResult, items: Optional[ItemCatalog] = None) -> tuple:
    adds = []
    for drop in drops.items:
        meta = items.get(drop.code) if items is not None else None
        adds.append(
            InventoryItem(
                item_id=deterministic_item_id(f"inventory:{drop.code}"),
                code=drop.code,
                slot=meta.slot if meta else "unknown",
                rarity=meta.rarity if meta else None,
                quantity=drop.quantity,
            )
        )
    return tuple(adds)


__all__ = [
    "DropItem",
    "DropResult",
    "merge_results",
    "roll_drops",
    "passes_drop_gate",
    "deterministic_item_id",
    "to_inventory_adds",
]
