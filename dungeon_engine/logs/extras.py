"""Typed ``extra`` payloads: narrative detail attached to a log entry.

Rendered as ``{"type": ACTION, "details": {...}}``. Only actions that carry
narrative detail have an extra class; the rest store ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple

from .deltas import ItemQuantity, StatsDelta, _compact


@dataclass(frozen=True)
class MonsterDetail:
    code: str
    name: str
    hp: int
    atk: int
    defense: int
    sprite_id: str
    rarity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "code": self.code,
                "name": self.name,
                "hp": self.hp,
                "atk": self.atk,
                "def": self.defense,
                "spriteId": self.sprite_id,
                "rarity": self.rarity,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonsterDetail":
        return cls(
            code=data["code"],
            name=data["name"],
            hp=data["hp"],
            atk=data["atk"],
            defense=data.get("def", 0),
            sprite_id=data.get("spriteId", ""),
            rarity=data.get("rarity"),
        )


@dataclass(frozen=True)
class PlayerDetail:
    hp: int
    max_hp: int
    atk: int
    defense: int
    luck: int
    level: int
    exp: int
    exp_to_level: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hp": self.hp,
            "maxHp": self.max_hp,
            "atk": self.atk,
            "def": self.defense,
            "luck": self.luck,
            "level": self.level,
            "exp": self.exp,
            "expToLevel": self.exp_to_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerDetail":
        return cls(
            hp=data["hp"],
            max_hp=data["maxHp"],
            atk=data["atk"],
            defense=data["def"],
            luck=data["luck"],
            level=data["level"],
            exp=data["exp"],
            exp_to_level=data["expToLevel"],
        )


@dataclass(frozen=True)
class DropDetail:
    table_id: str
    is_elite: bool
    items: Tuple[ItemQuantity, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tableId": self.table_id,
            "isElite": self.is_elite,
            "items": [i.to_dict() for i in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DropDetail":
        return cls(
            table_id=data["tableId"],
            is_elite=bool(data.get("isElite", False)),
            items=tuple(ItemQuantity.from_dict(i) for i in data.get("items", [])),
        )


class LogExtra:
    ACTION: ClassVar[str] = ""

    def details(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.ACTION, "details": self.details()}

    @classmethod
    def from_details(cls, details: Dict[str, Any]) -> "LogExtra":
        raise NotImplementedError


@dataclass(frozen=True)
class BattleExtra(LogExtra):
    """Monster and player snapshots; outcome fields are set on COMPLETED only."""

    ACTION: ClassVar[str] = "BATTLE"

    monster: MonsterDetail
    player: Optional[PlayerDetail] = None
    result: Optional[str] = None
    cause: Optional[str] = None
    exp_gained: Optional[int] = None
    turns: Optional[int] = None
    damage_dealt: Optional[int] = None
    damage_taken: Optional[int] = None

    def details(self):
        return _compact(
            {
                "monster": self.monster.to_dict(),
                "player": self.player.to_dict() if self.player else None,
                "result": self.result,
                "cause": self.cause,
                "expGained": self.exp_gained,
                "turns": self.turns,
                "damageDealt": self.damage_dealt,
                "damageTaken": self.damage_taken,
            }
        )

    @classmethod
    def from_details(cls, details):
        return cls(
            monster=MonsterDetail.from_dict(details["monster"]),
            player=PlayerDetail.from_dict(details["player"]) if details.get("player") else None,
            result=details.get("result"),
            cause=details.get("cause"),
            exp_gained=details.get("expGained"),
            turns=details.get("turns"),
            damage_dealt=details.get("damageDealt"),
            damage_taken=details.get("damageTaken"),
        )


@dataclass(frozen=True)
class DeathExtra(LogExtra):
    ACTION: ClassVar[str] = "DEATH"

    cause: str
    handled_by: Optional[str] = None

    def details(self):
        return _compact({"cause": self.cause, "handledBy": self.handled_by})

    @classmethod
    def from_details(cls, details):
        return cls(cause=details["cause"], handled_by=details.get("handledBy"))


@dataclass(frozen=True)
class AcquireItemExtra(LogExtra):
    ACTION: ClassVar[str] = "ACQUIRE_ITEM"

    source: str
    drop: Optional[DropDetail] = None

    def details(self):
        reward: Dict[str, Any] = {"source": self.source}
        if self.drop is not None:
            reward["drop"] = self.drop.to_dict()
        return {"reward": reward}

    @classmethod
    def from_details(cls, details):
        reward = details.get("reward", {})
        drop = reward.get("drop")
        return cls(source=reward["source"], drop=DropDetail.from_dict(drop) if drop else None)


@dataclass(frozen=True)
class StatModifier:
    stat: str
    value: int

    def to_dict(self):
        return {"stat": self.stat, "value": self.value}


@dataclass(frozen=True)
class _ItemExtra(LogExtra):
    item_id: str
    name: str
    rarity: str
    modifiers: Tuple[StatModifier, ...] = ()

    def details(self):
        return {
            "item": {
                "id": self.item_id,
                "name": self.name,
                "rarity": self.rarity,
                "modifiers": [m.to_dict() for m in self.modifiers],
            }
        }

    @classmethod
    def from_details(cls, details):
        item = details["item"]
        return cls(
            item_id=item["id"],
            name=item["name"],
            rarity=item["rarity"],
            modifiers=tuple(StatModifier(m["stat"], m["value"]) for m in item.get("modifiers", [])),
        )


@dataclass(frozen=True)
class EquipItemExtra(_ItemExtra):
    ACTION: ClassVar[str] = "EQUIP_ITEM"


@dataclass(frozen=True)
class UnequipItemExtra(_ItemExtra):
    ACTION: ClassVar[str] = "UNEQUIP_ITEM"


@dataclass(frozen=True)
class DiscardItemExtra(_ItemExtra):
    ACTION: ClassVar[str] = "DISCARD_ITEM"


@dataclass(frozen=True)
class LevelUpExtra(LogExtra):
    ACTION: ClassVar[str] = "LEVEL_UP"

    previous_level: int
    current_level: int
    threshold: int
    stats_gained: StatsDelta = field(default_factory=StatsDelta)

    def details(self):
        return {
            "previousLevel": self.previous_level,
            "currentLevel": self.current_level,
            "threshold": self.threshold,
            "statsGained": self.stats_gained.to_dict(),
        }

    @classmethod
    def from_details(cls, details):
        return cls(
            previous_level=details["previousLevel"],
            current_level=details["currentLevel"],
            threshold=details["threshold"],
            stats_gained=StatsDelta.from_dict(details.get("statsGained", {})),
        )


@dataclass(frozen=True)
class StatAppliedExtra(LogExtra):
    ACTION: ClassVar[str] = "STAT_APPLIED"

    applied: StatsDelta
    rarity: Optional[str] = None

    def details(self):
        return _compact({"applied": self.applied.to_dict(), "rarity": self.rarity})

    @classmethod
    def from_details(cls, details):
        return cls(applied=StatsDelta.from_dict(details["applied"]), rarity=details.get("rarity"))


@dataclass(frozen=True)
class _BuffExtra(LogExtra):
    buff_id: str
    source: Optional[str] = None
    sprite_id: Optional[str] = None
    effect: Optional[str] = None
    total_turns: Optional[int] = None
    remaining_turns: Optional[int] = None
    expired_at_turn: Optional[int] = None
    consumed_by: Optional[str] = None

    def details(self):
        return _compact(
            {
                "buffId": self.buff_id,
                "source": self.source,
                "spriteId": self.sprite_id,
                "effect": self.effect,
                "totalTurns": self.total_turns,
                "remainingTurns": self.remaining_turns,
                "expiredAtTurn": self.expired_at_turn,
                "consumedBy": self.consumed_by,
            }
        )

    @classmethod
    def from_details(cls, details):
        return cls(
            buff_id=details["buffId"],
            source=details.get("source"),
            sprite_id=details.get("spriteId"),
            effect=details.get("effect"),
            total_turns=details.get("totalTurns"),
            remaining_turns=details.get("remainingTurns"),
            expired_at_turn=details.get("expiredAtTurn"),
            consumed_by=details.get("consumedBy"),
        )


@dataclass(frozen=True)
class BuffAppliedExtra(_BuffExtra):
    ACTION: ClassVar[str] = "BUFF_APPLIED"


@dataclass(frozen=True)
class BuffExpiredExtra(_BuffExtra):
    ACTION: ClassVar[str] = "BUFF_EXPIRED"


EXTRA_TYPES = {
    cls.ACTION: cls
    for cls in (
        BattleExtra,
        DeathExtra,
        AcquireItemExtra,
        EquipItemExtra,
        UnequipItemExtra,
        DiscardItemExtra,
        LevelUpExtra,
        StatAppliedExtra,
        BuffAppliedExtra,
        BuffExpiredExtra,
    )
}
