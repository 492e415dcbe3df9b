"""JSON encoding, decoding and one-line narration of log entries."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..models.log_entry import DungeonLogEntry, LogAction, LogCategory, LogStatus
from .deltas import DELTA_TYPES, LogDelta
from .extras import EXTRA_TYPES, LogExtra

# Every log action must have a delta payload class.
assert set(DELTA_TYPES) == {a.value for a in LogAction}, "delta registry out of sync with LogAction"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _payload(value) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    return value.to_dict()


def encode_entry(entry: DungeonLogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "sequence": entry.sequence,
        "userId": entry.user_id,
        "category": entry.category.value,
        "action": entry.action.value,
        "status": entry.status.value,
        "floor": entry.floor,
        "turnNumber": entry.turn_number,
        "stateVersionBefore": entry.state_version_before,
        "stateVersionAfter": entry.state_version_after,
        "delta": _payload(entry.delta),
        "extra": _payload(entry.extra),
        "createdAt": _iso(entry.created_at),
    }


def decode_delta(data: Optional[Dict[str, Any]]) -> Optional[LogDelta]:
    if data is None:
        return None
    tag = data.get("type")
    cls = DELTA_TYPES.get(tag)
    if cls is None:
        raise ValueError(f"unknown delta type: {tag!r}")
    return cls.from_detail(data.get("detail") or {})


def decode_extra(data: Optional[Dict[str, Any]]) -> Optional[LogExtra]:
    if data is None:
        return None
    tag = data.get("type")
    cls = EXTRA_TYPES.get(tag)
    if cls is None:
        raise ValueError(f"unknown extra type: {tag!r}")
    return cls.from_details(data.get("details") or {})


def decode_entry(data: Dict[str, Any]) -> DungeonLogEntry:
    created = data.get("createdAt")
    return DungeonLogEntry(
        id=data.get("id"),
        sequence=data.get("sequence"),
        user_id=data["userId"],
        category=LogCategory(data["category"]),
        action=LogAction(data["action"]),
        status=LogStatus(data["status"]),
        floor=data["floor"],
        turn_number=data.get("turnNumber"),
        state_version_before=data.get("stateVersionBefore"),
        state_version_after=data.get("stateVersionAfter"),
        delta=decode_delta(data.get("delta")),
        extra=decode_extra(data.get("extra")),
        created_at=datetime.fromisoformat(created) if created else None,
    )


def _signed(value: Optional[int]) -> str:
    return f"{value:+d}" if value is not None else "+0"


def _stats_text(stats) -> str:
    if stats is None or stats.is_empty():
        return ""
    return " " + " ".join(f"{k}{_signed(v)}" for k, v in stats.to_dict().items())


def describe(entry: DungeonLogEntry) -> str:
    """Render one entry as a short human readable line."""
    action = entry.action
    delta = entry.delta
    extra = entry.extra
    prefix = f"[F{entry.floor} T{entry.turn_number if entry.turn_number is not None else '-'}]"

    if entry.status is LogStatus.STARTED:
        if action is LogAction.BATTLE and extra is not None:
            m = extra.monster
            return f"{prefix} battle started against {m.name} (hp {m.hp}, atk {m.atk}, def {m.defense})"
        if action is LogAction.MOVE:
            return f"{prefix} heading for the stairs"
        return f"{prefix} {action.value.lower()} started"

    if action is LogAction.BATTLE:
        result = extra.result if extra is not None else "?"
        line = f"{prefix} battle {str(result).lower()}"
        if extra is not None and extra.cause:
            line += f" ({extra.cause})"
        if extra is not None and extra.turns is not None:
            line += f" after {extra.turns} turns"
        if delta is not None and delta.rewards is not None and delta.rewards.gold:
            line += f", gold +{delta.rewards.gold}"
        return line + _stats_text(delta.stats if delta else None)
    if action in (LogAction.REST, LogAction.TRAP, LogAction.TREASURE):
        line = f"{prefix} {action.value.lower()}"
        if delta is not None and delta.rewards is not None and delta.rewards.gold:
            line += f" gold +{delta.rewards.gold}"
        return line + _stats_text(delta.stats if delta else None)
    if action is LogAction.MOVE:
        return f"{prefix} moved from floor {delta.from_floor} to floor {delta.to_floor}"
    if action is LogAction.DEATH:
        cause = extra.cause if extra is not None else "UNKNOWN"
        return f"{prefix} died ({cause}), floor progress reset"
    if action is LogAction.REVIVE:
        return f"{prefix} revived{_stats_text(delta.stats)}"
    if action is LogAction.ACQUIRE_ITEM:
        added = delta.inventory.added
        return f"{prefix} acquired {', '.join(f'{i.code} x{i.quantity or 1}' for i in added)}"
    if action in (LogAction.EQUIP_ITEM, LogAction.UNEQUIP_ITEM, LogAction.DISCARD_ITEM):
        verb = {"EQUIP_ITEM": "equipped", "UNEQUIP_ITEM": "unequipped", "DISCARD_ITEM": "discarded"}[action.value]
        inv = delta.inventory
        target = inv.equipped or inv.unequipped or (inv.removed[0] if inv.removed else None)
        return f"{prefix} {verb} {target.code if target else 'item'}"
    if action in (LogAction.BUFF_APPLIED, LogAction.BUFF_EXPIRED):
        records = delta.applied if action is LogAction.BUFF_APPLIED else delta.expired
        verb = "applied" if action is LogAction.BUFF_APPLIED else "expired"
        return f"{prefix} buff {verb}: {', '.join(b.buff_id for b in records)}"
    if action is LogAction.LEVEL_UP:
        return f"{prefix} level up {extra.previous_level} -> {extra.current_level}{_stats_text(extra.stats_gained)}"
    if action is LogAction.STAT_APPLIED:
        return f"{prefix} stat point spent{_stats_text(delta.stats)}"
    raise ValueError(f"unhandled log action: {action}")


__all__ = ["encode_entry", "decode_delta", "decode_extra", "decode_entry", "describe"]
