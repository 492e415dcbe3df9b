"""SQL rows backing the dungeon store.

``DungeonStateRecord`` holds one row per user; ``version`` is the optimistic
concurrency token checked by ``SQLAlchemyDungeonStore.commit``.
``DungeonLogRecord`` rows are append-only; ``sequence`` is the cursor key.
"""

import uuid
from datetime import datetime, timezone

from dungeon_engine import db

from ..logs.encoder import decode_delta, decode_extra
from .log_entry import CurrentAction, DungeonLogEntry, LogAction, LogCategory, LogStatus
from .state import DungeonState


def _aware(value):
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DungeonStateRecord(db.Model):
    __tablename__ = "dungeon_state"

    user_id = db.Column(db.String(64), primary_key=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    exp = db.Column(db.Integer, nullable=False, default=0)
    hp = db.Column(db.Integer, nullable=False, default=10)
    max_hp = db.Column(db.Integer, nullable=False, default=10)
    atk = db.Column(db.Integer, nullable=False, default=1)
    defense = db.Column("def", db.Integer, nullable=False, default=1)
    luck = db.Column(db.Integer, nullable=False, default=0)
    floor = db.Column(db.Integer, nullable=False, default=1)
    max_floor = db.Column(db.Integer, nullable=False, default=1)
    floor_progress = db.Column(db.Integer, nullable=False, default=0)
    gold = db.Column(db.Integer, nullable=False, default=0)
    ap = db.Column(db.Integer, nullable=False, default=0, index=True)
    level_up_points = db.Column(db.Integer, nullable=False, default=0)
    level_up_roll_index = db.Column(db.Integer, nullable=False, default=0)
    current_action = db.Column(db.String(16), nullable=False, default=CurrentAction.IDLE.value)
    current_action_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    MUTABLE_COLUMNS = (
        "level",
        "exp",
        "hp",
        "max_hp",
        "atk",
        "defense",
        "luck",
        "floor",
        "max_floor",
        "floor_progress",
        "gold",
        "ap",
        "level_up_points",
        "level_up_roll_index",
        "current_action_started_at",
        "version",
    )

    @classmethod
    def values_from_state(cls, state: DungeonState) -> dict:
        values = {name: getattr(state, name) for name in cls.MUTABLE_COLUMNS}
        values["current_action"] = state.current_action.value
        values["updated_at"] = state.updated_at or datetime.now(timezone.utc)
        return values

    @classmethod
    def from_state(cls, state: DungeonState) -> "DungeonStateRecord":
        record = cls(user_id=state.user_id, **cls.values_from_state(state))
        if state.created_at is not None:
            record.created_at = state.created_at
        return record

    def to_state(self) -> DungeonState:
        return DungeonState(
            user_id=self.user_id,
            level=self.level,
            exp=self.exp,
            hp=self.hp,
            max_hp=self.max_hp,
            atk=self.atk,
            defense=self.defense,
            luck=self.luck,
            floor=self.floor,
            max_floor=self.max_floor,
            floor_progress=self.floor_progress,
            gold=self.gold,
            ap=self.ap,
            level_up_points=self.level_up_points,
            level_up_roll_index=self.level_up_roll_index,
            current_action=CurrentAction(self.current_action),
            current_action_started_at=_aware(self.current_action_started_at),
            version=self.version,
            created_at=_aware(self.created_at),
            updated_at=_aware(self.updated_at),
        )

    def __repr__(self):
        return f"<DungeonStateRecord {self.user_id} v{self.version} floor={self.floor}>"


class DungeonLogRecord(db.Model):
    __tablename__ = "dungeon_log"

    sequence = db.Column(db.Integer, primary_key=True, autoincrement=True)
    id = db.Column(db.String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(64), db.ForeignKey("dungeon_state.user_id"), nullable=False, index=True)
    category = db.Column(db.String(16), nullable=False)
    action = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    floor = db.Column(db.Integer, nullable=True)
    turn_number = db.Column(db.Integer, nullable=True)
    state_version_before = db.Column(db.Integer, nullable=True)
    state_version_after = db.Column(db.Integer, nullable=True)
    delta = db.Column(db.JSON, nullable=True)
    extra = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_entry(cls, entry: DungeonLogEntry) -> "DungeonLogRecord":
        return cls(
            id=entry.id or str(uuid.uuid4()),
            user_id=entry.user_id,
            category=entry.category.value,
            action=entry.action.value,
            status=entry.status.value,
            floor=entry.floor,
            turn_number=entry.turn_number,
            state_version_before=entry.state_version_before,
            state_version_after=entry.state_version_after,
            delta=entry.delta.to_dict() if entry.delta is not None else None,
            extra=entry.extra.to_dict() if entry.extra is not None else None,
            created_at=entry.created_at or datetime.now(timezone.utc),
        )

    def to_entry(self) -> DungeonLogEntry:
        return DungeonLogEntry(
            id=self.id,
            sequence=self.sequence,
            user_id=self.user_id,
            category=LogCategory(self.category),
            action=LogAction(self.action),
            status=LogStatus(self.status),
            floor=self.floor,
            turn_number=self.turn_number,
            state_version_before=self.state_version_before,
            state_version_after=self.state_version_after,
            delta=decode_delta(self.delta),
            extra=decode_extra(self.extra),
            created_at=_aware(self.created_at),
        )

    def __repr__(self):
        return f"<DungeonLogRecord #{self.sequence} {self.user_id} {self.action} {self.status}>"
