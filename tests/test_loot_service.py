import re

import pytest

from dungeon_engine.catalog import DropEntry, DropTable, ItemCatalog, CatalogItem
from dungeon_engine.errors import CatalogError
from dungeon_engine.services.loot_service import (
    DropItem,
    deterministic_item_id,
    merge_results,
    passes_drop_gate,
    roll_drops,
    to_inventory_adds,
)
from tests.factories import FixedRandom

TABLE = DropTable(
    table_id="drops-test",
    drops=(
        DropEntry("ring-topaz", 20),
        DropEntry("potion-small", 30, min_quantity=1, max_quantity=3),
        DropEntry("armor-chain", 50),
    ),
)


def test_single_roll_for_normal_monster():
    rng = FixedRandom([0.0, 0.0])
    result = roll_drops(TABLE, False, rng)
    assert result.items == [DropItem("ring-topaz", 1)]
    assert result.table_id == "drops-test"
    assert result.is_elite is False
    assert rng.calls == 2


def test_elite_gets_extra_roll():
    # pick weights: 0.3*100=30 -> potion (20 < 30 <= 50), qty roll 0.99 -> 3
    rng = FixedRandom([0.3, 0.99, 0.9, 0.0])
    result = roll_drops(TABLE, True, rng)
    assert result.is_elite
    assert result.items == [DropItem("potion-small", 3), DropItem("armor-chain", 1)]
    assert rng.calls == 4


def test_repeated_codes_are_merged():
    rng = FixedRandom([0.1, 0.0, 0.1, 0.0])
    result = roll_drops(TABLE, True, rng)
    assert result.items == [DropItem("ring-topaz", 2)]
    assert merge_results([DropItem("a", 1), DropItem("b", 2), DropItem("a", 3)]) == [DropItem("a", 4), DropItem("b", 2)]


def test_empty_table_is_a_valid_zero_drop():
    result = roll_drops(DropTable("empty", ()), True, FixedRandom())
    assert not result
    assert result.items == []
    assert result.as_quantities() == ()


def test_zero_weights_rejected():
    with pytest.raises(CatalogError):
        roll_drops(DropTable("broken", (DropEntry("x", 0),)), False, FixedRandom())


def test_drop_gate():
    assert passes_drop_gate(FixedRandom([0.29]), 0.3, False)
    assert not passes_drop_gate(FixedRandom([0.3]), 0.3, False)
    assert passes_drop_gate(FixedRandom([0.59]), 0.3, True)
    assert not passes_drop_gate(FixedRandom([0.0]), 0.0, True)


def test_deterministic_item_id_is_stable_uuid():
    first = deterministic_item_id("inventory:ring-topaz")
    assert first == deterministic_item_id("inventory:ring-topaz")
    assert first != deterministic_item_id("inventory:armor-chain")
    assert re.fullmatch(r"[0-9a-f]{8}-[0-9a-f]{4}-5[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}", first)


def test_inventory_adds_use_item_metadata():
    items = ItemCatalog([CatalogItem("ring-topaz", "Topaz Ring", "ring", "uncommon")])
    result = roll_drops(TABLE, True, FixedRandom([0.0, 0.0, 0.99, 0.0]))
    adds = to_inventory_adds(result, items)
    assert [(a.code, a.slot, a.rarity, a.quantity) for a in adds] == [
        ("ring-topaz", "ring", "uncommon", 1),
        ("armor-chain", "unknown", None, 1),
    ]
