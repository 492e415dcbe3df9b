"""Persistence boundary for dungeon state and logs.

``DungeonStore`` is the contract the engine's callers rely on:
load a state, conditionally save the next one together with its log entries,
and page through logs. ``SQLAlchemyDungeonStore`` implements it on the
Flask-SQLAlchemy session.

Commit semantics:
    UPDATE dungeon_state SET ... WHERE user_id = :uid AND version = :expected
    zero rows -> rollback, StateConflict
    log rows are inserted in the same transaction; any failure rolls back
"""

from __future__ import annotations

import abc
import base64
import binascii
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import update

from dungeon_engine import db

from ..errors import InvalidCursor, StateConflict
from ..logging_utils import get_logger
from ..models.log_entry import DungeonLogEntry, LogAction, LogCategory
from ..models.records import DungeonLogRecord, DungeonStateRecord
from ..models.state import DungeonState

log = get_logger("dungeon.store")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class LogPage:
    entries: List[DungeonLogEntry] = field(default_factory=list)
    next_cursor: Optional[str] = None


def encode_cursor(sequence: int) -> str:
    return base64.urlsafe_b64encode(str(sequence).encode("ascii")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> int:
    """Inverse of :func:`encode_cursor`; raises ``InvalidCursor`` on junk."""
    if not isinstance(cursor, str) or not cursor:
        raise InvalidCursor("cursor must be a non-empty string")
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        text = base64.urlsafe_b64decode(padded.encode("ascii")).decode("ascii")
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidCursor(f"malformed cursor: {cursor!r}") from None
    if not text.isdigit() or int(text) <= 0:
        raise InvalidCursor(f"malformed cursor: {cursor!r}")
    return int(text)


def _filter_column(value: str):
    """Map an action/category filter value to ``(column_name, value)``."""
    if value in LogCategory.__members__:
        return "category", value
    if value in LogAction.__members__:
        return "action", value
    raise ValueError(f"unknown log filter: {value!r}")


class DungeonStore(abc.ABC):
    @abc.abstractmethod
    def load_state(self, user_id: str) -> Optional[DungeonState]: ...

    @abc.abstractmethod
    def create_state(self, state: DungeonState) -> DungeonState: ...

    @abc.abstractmethod
    def commit(
        self, expected_version: int, next_state: DungeonState, entries: Sequence[DungeonLogEntry]
    ) -> List[DungeonLogEntry]:
        """Persist ``next_state`` and ``entries`` if the stored version still equals ``expected_version``."""

    @abc.abstractmethod
    def list_logs(
        self,
        user_id: str,
        cursor: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        action_or_category: Optional[str] = None,
    ) -> LogPage: ...

    @abc.abstractmethod
    def eligible_user_ids(self, min_ap: int, limit: int, after: Optional[str] = None) -> List[str]: ...


class SQLAlchemyDungeonStore(DungeonStore):
    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def load_state(self, user_id: str) -> Optional[DungeonState]:
        record = self.session.get(DungeonStateRecord, user_id)
        if record is None:
            return None
        # Always read the committed row, not a cached identity.
        self.session.refresh(record)
        return record.to_state()

    def create_state(self, state: DungeonState) -> DungeonState:
        state.check_invariants()
        record = DungeonStateRecord.from_state(state)
        try:
            self.session.add(record)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        log.info(event="state_created", user_id=state.user_id, version=state.version)
        return record.to_state()

    def commit(self, expected_version, next_state, entries):
        assert next_state.version == expected_version + 1, "commit must advance the version by exactly one"
        stmt = (
            update(DungeonStateRecord)
            .where(
                DungeonStateRecord.user_id == next_state.user_id,
                DungeonStateRecord.version == expected_version,
            )
            .values(**DungeonStateRecord.values_from_state(next_state))
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(stmt)
            if int(result.rowcount or 0) == 0:
                raise StateConflict(next_state.user_id, expected_version)
            records = [DungeonLogRecord.from_entry(entry) for entry in entries]
            self.session.add_all(records)
            self.session.flush()
            self.session.commit()
        except StateConflict:
            self.session.rollback()
            log.warn(event="state_conflict", user_id=next_state.user_id, expected_version=expected_version)
            raise
        except Exception:
            self.session.rollback()
            raise
        log.info(
            event="state_committed",
            user_id=next_state.user_id,
            version=next_state.version,
            entries=len(records),
        )
        return [record.to_entry() for record in records]

    def list_logs(self, user_id, cursor=None, limit=DEFAULT_PAGE_SIZE, action_or_category=None):
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        query = DungeonLogRecord.query.filter(DungeonLogRecord.user_id == user_id)
        if cursor is not None:
            query = query.filter(DungeonLogRecord.sequence < decode_cursor(cursor))
        if action_or_category:
            column, value = _filter_column(action_or_category)
            query = query.filter(getattr(DungeonLogRecord, column) == value)
        rows = query.order_by(DungeonLogRecord.sequence.desc()).limit(limit + 1).all()
        has_more = len(rows) > limit
        rows = rows[:limit]
        next_cursor = encode_cursor(rows[-1].sequence) if has_more and rows else None
        return LogPage(entries=[row.to_entry() for row in rows], next_cursor=next_cursor)

    def eligible_user_ids(self, min_ap, limit, after=None):
        query = DungeonStateRecord.query.with_entities(DungeonStateRecord.user_id).filter(
            DungeonStateRecord.ap >= min_ap
        )
        if after is not None:
            query = query.filter(DungeonStateRecord.user_id > after)
        rows = query.order_by(DungeonStateRecord.user_id.asc()).limit(limit).all()
        return [row[0] for row in rows]


__all__ = [
    "DungeonStore",
    "SQLAlchemyDungeonStore",
    "LogPage",
    "encode_cursor",
    "decode_cursor",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
]
