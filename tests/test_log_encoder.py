import json

import pytest

from dungeon_engine.logs import decode_delta, decode_entry, decode_extra, describe, encode_entry
from dungeon_engine.logs.deltas import (
    DELTA_TYPES,
    BuffAppliedDelta,
    BuffRecord,
    EquipItemDelta,
    InventoryDelta,
    InventoryItem,
    StatsDelta,
)
from dungeon_engine.models.log_entry import (
    DungeonLogEntry,
    LogAction,
    LogCategory,
    LogStatus,
    category_for,
)
from tests.factories import OGRE_CHIEF, ScriptedRandomFactory, make_catalog, make_engine, make_state


@pytest.fixture()
def battle_entries():
    catalog = make_catalog(monsters=(OGRE_CHIEF,))
    rng = ScriptedRandomFactory({"hero:event:1": [0.1], "hero:drop:1": [0.0, 0.0, 0.0]})
    return make_engine(catalog, rng).resolve_next_action(make_state(atk=100, floor_progress=90), 1).entries


def test_encoded_shape(battle_entries):
    encoded = encode_entry(battle_entries[0])
    assert set(encoded) == {
        "id",
        "sequence",
        "userId",
        "category",
        "action",
        "status",
        "floor",
        "turnNumber",
        "stateVersionBefore",
        "stateVersionAfter",
        "delta",
        "extra",
        "createdAt",
    }
    assert encoded["delta"] == {"type": "BATTLE", "detail": {"stats": {"ap": -1}}}
    assert encoded["extra"]["type"] == "BATTLE"
    assert encoded["extra"]["details"]["monster"]["def"] == 7
    assert encoded["createdAt"].startswith("2024-05-01T12:00:00")
    json.dumps(encoded)


def test_entries_survive_json(battle_entries):
    for entry in battle_entries:
        assert decode_entry(json.loads(json.dumps(encode_entry(entry)))) == entry


def test_acquire_item_extra_shape(battle_entries):
    acquire = next(e for e in battle_entries if e.action is LogAction.ACQUIRE_ITEM)
    details = acquire.extra.to_dict()["details"]
    assert details["reward"]["source"] == "BATTLE"
    assert details["reward"]["drop"] == {
        "tableId": "drops-test",
        "isElite": False,
        "items": [{"code": "ring-topaz", "quantity": 1}],
    }


def test_describe_every_entry(battle_entries):
    lines = [describe(e) for e in battle_entries]
    assert all(line.startswith("[F") for line in lines)
    assert "battle started against Ogre Chief" in lines[0]
    assert any("level up 1 -> 2" in line for line in lines)
    assert any("acquired ring-topaz x1" in line for line in lines)
    assert any("moved from floor 1 to floor 2" in line for line in lines)


def test_describe_status_actions():
    item = InventoryItem(item_id="i-1", code="weapon-longsword", slot="weapon")
    equip = DungeonLogEntry(
        user_id="hero",
        category=category_for(LogAction.EQUIP_ITEM),
        action=LogAction.EQUIP_ITEM,
        status=LogStatus.COMPLETED,
        floor=3,
        delta=EquipItemDelta(inventory=InventoryDelta(equipped=item), stats=StatsDelta(atk=4)),
    )
    buff = DungeonLogEntry(
        user_id="hero",
        category=category_for(LogAction.BUFF_APPLIED),
        action=LogAction.BUFF_APPLIED,
        status=LogStatus.COMPLETED,
        floor=3,
        turn_number=9,
        delta=BuffAppliedDelta(applied=(BuffRecord("buff-haste", total_turns=3),)),
    )
    assert describe(equip) == "[F3 T-] equipped weapon-longsword"
    assert describe(buff) == "[F3 T9] buff applied: buff-haste"
    assert decode_delta(equip.delta.to_dict()) == equip.delta


def test_unknown_tags_rejected():
    with pytest.raises(ValueError):
        decode_delta({"type": "DANCE", "detail": {}})
    with pytest.raises(ValueError):
        decode_extra({"type": "DANCE", "details": {}})
    assert decode_delta(None) is None


def test_every_action_has_a_delta_and_category():
    assert set(DELTA_TYPES) == {a.value for a in LogAction}
    assert category_for(LogAction.BATTLE) is LogCategory.EXPLORATION
    assert category_for(LogAction.MOVE) is LogCategory.EXPLORATION
    assert category_for(LogAction.ACQUIRE_ITEM) is LogCategory.STATUS
    assert category_for(LogAction.STAT_APPLIED) is LogCategory.STATUS
