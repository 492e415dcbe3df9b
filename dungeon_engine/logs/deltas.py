"""Typed ``delta`` payloads: the numeric state change recorded by a log entry.

Each payload class is bound to one log action through ``ACTION`` and renders
as ``{"type": ACTION, "detail": {...}}`` with camelCase keys. Optional fields
that are unset are omitted from the rendered form.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple

# Public (log) stat key -> dataclass attribute
_STAT_FIELDS = (
    ("hp", "hp"),
    ("maxHp", "max_hp"),
    ("atk", "atk"),
    ("def", "defense"),
    ("luck", "luck"),
    ("ap", "ap"),
    ("level", "level"),
    ("exp", "exp"),
)


def _compact(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in mapping.items() if v is not None}


@dataclass(frozen=True)
class StatsDelta:
    hp: Optional[int] = None
    max_hp: Optional[int] = None
    atk: Optional[int] = None
    defense: Optional[int] = None
    luck: Optional[int] = None
    ap: Optional[int] = None
    level: Optional[int] = None
    exp: Optional[int] = None

    def to_dict(self) -> Dict[str, int]:
        return _compact({key: getattr(self, attr) for key, attr in _STAT_FIELDS})

    def is_empty(self) -> bool:
        return not self.to_dict()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["StatsDelta"]:
        if data is None:
            return None
        return cls(**{attr: data[key] for key, attr in _STAT_FIELDS if key in data})


@dataclass(frozen=True)
class ProgressDelta:
    floor_progress: Optional[int] = None
    previous_progress: Optional[int] = None
    delta: Optional[int] = None
    floor: Optional[int] = None

    def to_dict(self) -> Dict[str, int]:
        return _compact(
            {
                "floor": self.floor,
                "floorProgress": self.floor_progress,
                "previousProgress": self.previous_progress,
                "delta": self.delta,
            }
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ProgressDelta"]:
        if data is None:
            return None
        return cls(
            floor_progress=data.get("floorProgress"),
            previous_progress=data.get("previousProgress"),
            delta=data.get("delta"),
            floor=data.get("floor"),
        )


@dataclass(frozen=True)
class ItemQuantity:
    code: str
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemQuantity":
        return cls(code=data["code"], quantity=data.get("quantity", 1))


@dataclass(frozen=True)
class BuffRecord:
    buff_id: str
    source: Optional[str] = None
    total_turns: Optional[int] = None
    remaining_turns: Optional[int] = None
    expired_at_turn: Optional[int] = None
    consumed_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "buffId": self.buff_id,
                "source": self.source,
                "totalTurns": self.total_turns,
                "remainingTurns": self.remaining_turns,
                "expiredAtTurn": self.expired_at_turn,
                "consumedBy": self.consumed_by,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuffRecord":
        return cls(
            buff_id=data["buffId"],
            source=data.get("source"),
            total_turns=data.get("totalTurns"),
            remaining_turns=data.get("remainingTurns"),
            expired_at_turn=data.get("expiredAtTurn"),
            consumed_by=data.get("consumedBy"),
        )


@dataclass(frozen=True)
class RewardsDelta:
    gold: Optional[int] = None
    items: Tuple[ItemQuantity, ...] = ()
    buffs: Tuple[BuffRecord, ...] = ()
    unlocks: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.gold is not None:
            out["gold"] = self.gold
        if self.items:
            out["items"] = [i.to_dict() for i in self.items]
        if self.buffs:
            out["buffs"] = [b.to_dict() for b in self.buffs]
        if self.unlocks:
            out["unlocks"] = list(self.unlocks)
        return out

    def is_empty(self) -> bool:
        return not self.to_dict()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["RewardsDelta"]:
        if data is None:
            return None
        return cls(
            gold=data.get("gold"),
            items=tuple(ItemQuantity.from_dict(i) for i in data.get("items", [])),
            buffs=tuple(BuffRecord.from_dict(b) for b in data.get("buffs", [])),
            unlocks=tuple(data.get("unlocks", [])),
        )


@dataclass(frozen=True)
class InventoryItem:
    item_id: str
    code: str
    slot: Optional[str] = None
    rarity: Optional[str] = None
    quantity: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "itemId": self.item_id,
                "code": self.code,
                "slot": self.slot,
                "rarity": self.rarity,
                "quantity": self.quantity,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryItem":
        return cls(
            item_id=data["itemId"],
            code=data["code"],
            slot=data.get("slot"),
            rarity=data.get("rarity"),
            quantity=data.get("quantity"),
        )


@dataclass(frozen=True)
class InventoryDelta:
    added: Tuple[InventoryItem, ...] = ()
    removed: Tuple[InventoryItem, ...] = ()
    equipped: Optional[InventoryItem] = None
    unequipped: Optional[InventoryItem] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.added:
            out["added"] = [i.to_dict() for i in self.added]
        if self.removed:
            out["removed"] = [i.to_dict() for i in self.removed]
        if self.equipped is not None:
            out["equipped"] = self.equipped.to_dict()
        if self.unequipped is not None:
            out["unequipped"] = self.unequipped.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryDelta":
        def one(key):
            return InventoryItem.from_dict(data[key]) if data.get(key) else None

        return cls(
            added=tuple(InventoryItem.from_dict(i) for i in data.get("added", [])),
            removed=tuple(InventoryItem.from_dict(i) for i in data.get("removed", [])),
            equipped=one("equipped"),
            unequipped=one("unequipped"),
        )


def _part(value) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    rendered = value.to_dict()
    return rendered if rendered else None


class LogDelta:
    """Base class for every delta payload."""

    ACTION: ClassVar[str] = ""

    def detail(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.ACTION, "detail": self.detail()}

    @classmethod
    def from_detail(cls, detail: Dict[str, Any]) -> "LogDelta":
        raise NotImplementedError


@dataclass(frozen=True)
class _StatsProgressDelta(LogDelta):
    """Shared shape for BATTLE, REST, TRAP and TREASURE."""

    stats: Optional[StatsDelta] = None
    rewards: Optional[RewardsDelta] = None
    progress: Optional[ProgressDelta] = None

    def detail(self) -> Dict[str, Any]:
        return _compact(
            {
                "stats": _part(self.stats),
                "rewards": _part(self.rewards),
                "progress": _part(self.progress),
            }
        )

    @classmethod
    def from_detail(cls, detail):
        return cls(
            stats=StatsDelta.from_dict(detail.get("stats")),
            rewards=RewardsDelta.from_dict(detail.get("rewards")),
            progress=ProgressDelta.from_dict(detail.get("progress")),
        )


@dataclass(frozen=True)
class BattleDelta(_StatsProgressDelta):
    ACTION: ClassVar[str] = "BATTLE"


@dataclass(frozen=True)
class RestDelta(_StatsProgressDelta):
    ACTION: ClassVar[str] = "REST"


@dataclass(frozen=True)
class TrapDelta(_StatsProgressDelta):
    ACTION: ClassVar[str] = "TRAP"


@dataclass(frozen=True)
class TreasureDelta(_StatsProgressDelta):
    ACTION: ClassVar[str] = "TREASURE"


@dataclass(frozen=True)
class DeathDelta(LogDelta):
    ACTION: ClassVar[str] = "DEATH"

    stats: StatsDelta = field(default_factory=StatsDelta)
    progress: ProgressDelta = field(default_factory=ProgressDelta)
    buffs: Tuple[BuffRecord, ...] = ()

    def detail(self):
        out = {"stats": self.stats.to_dict(), "progress": self.progress.to_dict()}
        if self.buffs:
            out["buffs"] = [b.to_dict() for b in self.buffs]
        return out

    @classmethod
    def from_detail(cls, detail):
        return cls(
            stats=StatsDelta.from_dict(detail.get("stats", {})),
            progress=ProgressDelta.from_dict(detail.get("progress", {})),
            buffs=tuple(BuffRecord.from_dict(b) for b in detail.get("buffs", [])),
        )


@dataclass(frozen=True)
class ReviveDelta(LogDelta):
    ACTION: ClassVar[str] = "REVIVE"

    stats: StatsDelta = field(default_factory=StatsDelta)

    def detail(self):
        return {"stats": self.stats.to_dict()}

    @classmethod
    def from_detail(cls, detail):
        return cls(stats=StatsDelta.from_dict(detail.get("stats", {})))


@dataclass(frozen=True)
class MoveDelta(LogDelta):
    """Floor transition. The STARTED entry of a drawn MOVE carries only ``stats``."""

    ACTION: ClassVar[str] = "MOVE"

    from_floor: Optional[int] = None
    to_floor: Optional[int] = None
    previous_progress: Optional[int] = None
    progress: Optional[ProgressDelta] = None
    stats: Optional[StatsDelta] = None

    def detail(self):
        return _compact(
            {
                "fromFloor": self.from_floor,
                "toFloor": self.to_floor,
                "previousProgress": self.previous_progress,
                "progress": _part(self.progress),
                "stats": _part(self.stats),
            }
        )

    @classmethod
    def from_detail(cls, detail):
        return cls(
            from_floor=detail.get("fromFloor"),
            to_floor=detail.get("toFloor"),
            previous_progress=detail.get("previousProgress"),
            progress=ProgressDelta.from_dict(detail.get("progress")),
            stats=StatsDelta.from_dict(detail.get("stats")),
        )


@dataclass(frozen=True)
class AcquireItemDelta(LogDelta):
    ACTION: ClassVar[str] = "ACQUIRE_ITEM"

    inventory: InventoryDelta = field(default_factory=InventoryDelta)

    def detail(self):
        return {"inventory": self.inventory.to_dict()}

    @classmethod
    def from_detail(cls, detail):
        return cls(inventory=InventoryDelta.from_dict(detail.get("inventory", {})))


@dataclass(frozen=True)
class _ItemChangeDelta(LogDelta):
    inventory: InventoryDelta = field(default_factory=InventoryDelta)
    stats: Optional[StatsDelta] = None

    def detail(self):
        return _compact({"inventory": self.inventory.to_dict(), "stats": _part(self.stats)})

    @classmethod
    def from_detail(cls, detail):
        return cls(
            inventory=InventoryDelta.from_dict(detail.get("inventory", {})),
            stats=StatsDelta.from_dict(detail.get("stats")),
        )


@dataclass(frozen=True)
class EquipItemDelta(_ItemChangeDelta):
    ACTION: ClassVar[str] = "EQUIP_ITEM"


@dataclass(frozen=True)
class UnequipItemDelta(_ItemChangeDelta):
    ACTION: ClassVar[str] = "UNEQUIP_ITEM"


@dataclass(frozen=True)
class DiscardItemDelta(_ItemChangeDelta):
    ACTION: ClassVar[str] = "DISCARD_ITEM"


@dataclass(frozen=True)
class LevelUpDelta(LogDelta):
    ACTION: ClassVar[str] = "LEVEL_UP"

    stats: StatsDelta = field(default_factory=StatsDelta)
    rewards: Optional[RewardsDelta] = None

    def detail(self):
        return _compact({"stats": self.stats.to_dict(), "rewards": _part(self.rewards)})

    @classmethod
    def from_detail(cls, detail):
        return cls(
            stats=StatsDelta.from_dict(detail.get("stats", {})),
            rewards=RewardsDelta.from_dict(detail.get("rewards")),
        )


@dataclass(frozen=True)
class StatAppliedDelta(LogDelta):
    ACTION: ClassVar[str] = "STAT_APPLIED"

    stats: StatsDelta = field(default_factory=StatsDelta)

    def detail(self):
        return {"stats": self.stats.to_dict()}

    @classmethod
    def from_detail(cls, detail):
        return cls(stats=StatsDelta.from_dict(detail.get("stats", {})))


@dataclass(frozen=True)
class BuffAppliedDelta(LogDelta):
    ACTION: ClassVar[str] = "BUFF_APPLIED"

    applied: Tuple[BuffRecord, ...] = ()

    def detail(self):
        return {"applied": [b.to_dict() for b in self.applied]}

    @classmethod
    def from_detail(cls, detail):
        return cls(applied=tuple(BuffRecord.from_dict(b) for b in detail.get("applied", [])))


@dataclass(frozen=True)
class BuffExpiredDelta(LogDelta):
    ACTION: ClassVar[str] = "BUFF_EXPIRED"

    expired: Tuple[BuffRecord, ...] = ()

    def detail(self):
        return {"expired": [b.to_dict() for b in self.expired]}

    @classmethod
    def from_detail(cls, detail):
        return cls(expired=tuple(BuffRecord.from_dict(b) for b in detail.get("expired", [])))


DELTA_TYPES = {
    cls.ACTION: cls
    for cls in (
        BattleDelta,
        DeathDelta,
        ReviveDelta,
        MoveDelta,
        RestDelta,
        TrapDelta,
        TreasureDelta,
        AcquireItemDelta,
        EquipItemDelta,
        UnequipItemDelta,
        DiscardItemDelta,
        BuffAppliedDelta,
        BuffExpiredDelta,
        LevelUpDelta,
        StatAppliedDelta,
    )
}


def delta_for_event(action: str, **kwargs) -> LogDelta:
    """Instantiate the delta class registered for ``action``."""
    return DELTA_TYPES[action](**kwargs)
