"""Static game catalogs: monsters, drop tables and item metadata.

Catalogs are read-only inputs to the engine. They are loaded once from the
JSON files under ``data/`` (or ``DUNGEON_CATALOG_DIR``) and validated up front
so that a malformed entry fails at startup instead of mid-resolution.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import DATA_DIR
from .errors import CatalogError

MONSTER_RARITIES = ("normal", "elite")


@dataclass(frozen=True)
class CatalogMonster:
    code: str
    name: str
    hp: int
    atk: int
    defense: int
    sprite_id: str
    rarity: str = "normal"
    drop_table_id: Optional[str] = None
    variant_of: Optional[str] = None

    @property
    def is_elite(self) -> bool:
        return self.rarity == "elite"


@dataclass(frozen=True)
class CatalogItem:
    code: str
    name: str
    slot: str
    rarity: Optional[str] = None


@dataclass(frozen=True)
class DropEntry:
    item_code: str
    weight: float
    min_quantity: int = 1
    max_quantity: int = 1


@dataclass(frozen=True)
class DropTable:
    table_id: str
    drops: tuple

    def total_weight(self) -> float:
        return sum(entry.weight for entry in self.drops)


class MonsterRegistry:
    def __init__(self, monsters: Iterable[CatalogMonster]):
        self._monsters: Dict[str, CatalogMonster] = {}
        for monster in monsters:
            if monster.code in self._monsters:
                raise CatalogError(f"duplicate monster code: {monster.code}")
            self._monsters[monster.code] = monster

    def get(self, code: str) -> CatalogMonster:
        try:
            return self._monsters[code]
        except KeyError:
            raise CatalogError(f"unknown monster code: {code}") from None

    def list(self) -> List[CatalogMonster]:
        return list(self._monsters.values())

    def __len__(self):
        return len(self._monsters)


class DropTableRegistry:
    def __init__(self, tables: Iterable[DropTable]):
        self._tables = {table.table_id: table for table in tables}

    def get(self, table_id: str) -> DropTable:
        try:
            return self._tables[table_id]
        except KeyError:
            raise CatalogError(f"unknown drop table: {table_id}") from None

    def __contains__(self, table_id: object) -> bool:
        return table_id in self._tables

    def list(self) -> List[DropTable]:
        return list(self._tables.values())


class ItemCatalog:
    def __init__(self, items: Iterable[CatalogItem]):
        self._items = {item.code: item for item in items}

    def get(self, code: str) -> Optional[CatalogItem]:
        return self._items.get(code)


@dataclass(frozen=True)
class Catalog:
    monsters: MonsterRegistry
    drop_tables: DropTableRegistry
    items: ItemCatalog


def _require(raw: Mapping[str, Any], key: str, kind, where: str):
    value = raw.get(key)
    if kind is int:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind) and (value != "" if kind is str else True)
    if not ok:
        raise CatalogError(f"{where}: field {key!r} is missing or invalid")
    return int(value) if kind is int else value


def parse_monster(raw: Mapping[str, Any]) -> CatalogMonster:
    where = f"monster {raw.get('code', '?')}"
    rarity = raw.get("rarity", "normal")
    if rarity not in MONSTER_RARITIES:
        raise CatalogError(f"{where}: rarity must be one of {MONSTER_RARITIES}")
    monster = CatalogMonster(
        code=_require(raw, "code", str, where),
        name=_require(raw, "name", str, where),
        hp=_require(raw, "hp", int, where),
        atk=_require(raw, "atk", int, where),
        defense=_require(raw, "def", int, where),
        sprite_id=raw.get("spriteId") or f"sprite/{raw['code']}",
        rarity=rarity,
        drop_table_id=raw.get("dropTableId"),
        variant_of=raw.get("variantOf"),
    )
    if monster.hp <= 0:
        raise CatalogError(f"{where}: hp must be positive")
    return monster


def parse_drop_table(raw: Mapping[str, Any]) -> DropTable:
    table_id = _require(raw, "tableId", str, "drop table")
    entries = []
    for entry in raw.get("drops") or []:
        where = f"drop table {table_id}"
        code = entry.get("itemCode") or entry.get("code")
        if not isinstance(code, str) or not code:
            raise CatalogError(f"{where}: drop entry without item code")
        weight = entry.get("weight")
        if not isinstance(weight, (int, float)) or weight < 0:
            raise CatalogError(f"{where}: weight for {code} must be a non-negative number")
        lo = int(entry.get("minQuantity", 1))
        hi = int(entry.get("maxQuantity", lo))
        entries.append(DropEntry(item_code=code, weight=float(weight), min_quantity=lo, max_quantity=hi))
    return DropTable(table_id=table_id, drops=tuple(entries))


def parse_item(raw: Mapping[str, Any]) -> CatalogItem:
    where = f"item {raw.get('code', '?')}"
    return CatalogItem(
        code=_require(raw, "code", str, where),
        name=raw.get("name") or raw["code"],
        slot=_require(raw, "slot", str, where),
        rarity=raw.get("rarity"),
    )


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise CatalogError(f"catalog file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise CatalogError(f"catalog file is not valid JSON: {path}: {exc}") from exc


def build_catalog(
    monsters: Iterable[Mapping[str, Any]],
    drop_tables: Iterable[Mapping[str, Any]],
    items: Iterable[Mapping[str, Any]] = (),
) -> Catalog:
    """Build a catalog from raw JSON-shaped mappings (used by tests and loaders).

    Every ``dropTableId`` a monster names must exist in ``drop_tables``.
    """
    catalog = Catalog(
        monsters=MonsterRegistry(parse_monster(m) for m in monsters),
        drop_tables=DropTableRegistry(parse_drop_table(t) for t in drop_tables),
        items=ItemCatalog(parse_item(i) for i in items),
    )
    for monster in catalog.monsters.list():
        if monster.drop_table_id and monster.drop_table_id not in catalog.drop_tables:
            raise CatalogError(f"monster {monster.code}: unknown drop table {monster.drop_table_id!r}")
    return catalog


def check_default_drop_table(catalog: Catalog, table_id: str) -> None:
    """Raise ``CatalogError`` when a monster without its own table would fall back to a missing one."""
    if table_id in catalog.drop_tables:
        return
    orphans = [m.code for m in catalog.monsters.list() if not m.drop_table_id]
    if orphans:
        raise CatalogError(f"default drop table {table_id!r} is missing (needed by {', '.join(orphans)})")


def load_catalog(directory: Optional[str | os.PathLike] = None) -> Catalog:
    base = Path(directory or os.getenv("DUNGEON_CATALOG_DIR") or DATA_DIR)
    monsters = _read_json(base / "monsters.json").get("monsters")
    tables = _read_json(base / "drops.json").get("dropTables")
    if not isinstance(monsters, list) or not monsters:
        raise CatalogError(f"{base / 'monsters.json'} must contain a non-empty 'monsters' list")
    if not isinstance(tables, list):
        raise CatalogError(f"{base / 'drops.json'} must contain a 'dropTables' list")
    items_path = base / "items.json"
    items = _read_json(items_path).get("items", []) if items_path.exists() else []
    return build_catalog(monsters, tables, items)


__all__ = [
    "CatalogMonster",
    "CatalogItem",
    "DropEntry",
    "DropTable",
    "MonsterRegistry",
    "DropTableRegistry",
    "ItemCatalog",
    "Catalog",
    "build_catalog",
    "check_default_drop_table",
    "load_catalog",
]
