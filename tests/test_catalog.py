import json

import pytest

from dungeon_engine.catalog import build_catalog, check_default_drop_table, load_catalog, parse_monster
from dungeon_engine.config import EventConfig
from dungeon_engine.errors import CatalogError
from dungeon_engine.services.event_service import DungeonEventEngine
from tests.factories import GIANT_RAT, TOPAZ_TABLE


def test_packaged_catalog_loads():
    catalog = load_catalog()
    monsters = catalog.monsters.list()
    assert len(catalog.monsters) == len(monsters) >= 7
    assert any(m.is_elite for m in monsters)
    dragon = catalog.monsters.get("monster-ancient-dragon")
    assert (dragon.hp, dragon.atk, dragon.defense) == (110, 22, 11)
    table = catalog.drop_tables.get(dragon.drop_table_id)
    assert table.total_weight() > 0
    assert catalog.items.get("ring-topaz").slot == "ring"


def test_every_monster_drop_table_exists():
    catalog = load_catalog()
    for monster in catalog.monsters.list():
        if monster.drop_table_id:
            catalog.drop_tables.get(monster.drop_table_id)


def test_unknown_lookups():
    catalog = build_catalog([GIANT_RAT], [TOPAZ_TABLE])
    with pytest.raises(CatalogError):
        catalog.monsters.get("monster-missing")
    with pytest.raises(CatalogError):
        catalog.drop_tables.get("drops-missing")
    assert catalog.items.get("ring-topaz") is None


def test_duplicate_monster_code_rejected():
    with pytest.raises(CatalogError):
        build_catalog([GIANT_RAT, dict(GIANT_RAT)], [TOPAZ_TABLE])


def test_unknown_monster_drop_table_rejected():
    broken = {**GIANT_RAT, "dropTableId": "no-such-table"}
    with pytest.raises(CatalogError, match="no-such-table"):
        build_catalog([broken], [TOPAZ_TABLE])


def test_unknown_drop_table_rejected_when_loading(tmp_path):
    (tmp_path / "monsters.json").write_text(json.dumps({"monsters": [{**GIANT_RAT, "dropTableId": "drops-gone"}]}))
    (tmp_path / "drops.json").write_text(json.dumps({"dropTables": [TOPAZ_TABLE]}))
    with pytest.raises(CatalogError, match="drops-gone"):
        load_catalog(tmp_path)


def test_default_drop_table_must_exist_for_monsters_without_one():
    tableless = {k: v for k, v in GIANT_RAT.items() if k != "dropTableId"}
    catalog = build_catalog([tableless], [TOPAZ_TABLE])
    with pytest.raises(CatalogError, match="monster-giant-rat"):
        check_default_drop_table(catalog, "drops-default")
    with pytest.raises(CatalogError):
        DungeonEventEngine(catalog, EventConfig())

    check_default_drop_table(catalog, "drops-test")
    # a missing default is harmless while every monster names its own table
    check_default_drop_table(build_catalog([GIANT_RAT], [TOPAZ_TABLE]), "drops-default")


def test_monster_validation():
    with pytest.raises(CatalogError):
        parse_monster({**GIANT_RAT, "hp": 0})
    with pytest.raises(CatalogError):
        parse_monster({k: v for k, v in GIANT_RAT.items() if k != "def"})
    with pytest.raises(CatalogError):
        parse_monster({**GIANT_RAT, "rarity": "legendary"})


def test_sprite_id_defaults_from_code():
    monster = parse_monster(GIANT_RAT)
    assert monster.sprite_id == "sprite/monster-giant-rat"
    assert monster.rarity == "normal" and not monster.is_elite


def test_negative_drop_weight_rejected():
    with pytest.raises(CatalogError):
        build_catalog([GIANT_RAT], [{"tableId": "t", "drops": [{"itemCode": "x", "weight": -1}]}])


def test_load_from_directory(tmp_path, monkeypatch):
    (tmp_path / "monsters.json").write_text(json.dumps({"monsters": [GIANT_RAT]}))
    (tmp_path / "drops.json").write_text(json.dumps({"dropTables": [TOPAZ_TABLE]}))
    monkeypatch.setenv("DUNGEON_CATALOG_DIR", str(tmp_path))
    catalog = load_catalog()
    assert [m.code for m in catalog.monsters.list()] == ["monster-giant-rat"]
    assert catalog.items.get("ring-topaz") is None


def test_empty_monster_file_rejected(tmp_path):
    (tmp_path / "monsters.json").write_text(json.dumps({"monsters": []}))
    (tmp_path / "drops.json").write_text(json.dumps({"dropTables": []}))
    with pytest.raises(CatalogError):
        load_catalog(tmp_path)
