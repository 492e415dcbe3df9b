"""Periodic batch runner that spends accumulated AP for many users.

A tick walks users with ``ap >= min_ap`` in ``user_id`` order, resuming after
the last user handled by the previous tick and wrapping around to the start
when the end is reached. Each user gets at most ``max_actions_per_user``
resolutions, each committed on its own with the version check.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..config import BatchConfig
from ..errors import InsufficientActionPoints, StateConflict
from ..logging_utils import get_logger

log = get_logger("dungeon.batch")


@dataclass
class BatchReport:
    users_processed: int = 0
    actions_committed: int = 0
    conflicts: int = 0
    user_ids: List[str] = field(default_factory=list)

    def merge(self, other: "BatchReport") -> None:
        self.users_processed += other.users_processed
        self.actions_committed += other.actions_committed
        self.conflicts += other.conflicts
        self.user_ids.extend(other.user_ids)

    def to_dict(self):
        return {
            "usersProcessed": self.users_processed,
            "actionsCommitted": self.actions_committed,
            "conflicts": self.conflicts,
        }


class DungeonBatchService:
    def __init__(self, store, engine, config: Optional[BatchConfig] = None):
        self.store = store
        self.engine = engine
        self.config = config or BatchConfig()
        self.last_cursor_user_id: Optional[str] = None

    def fetch_eligible_users(self) -> List[str]:
        cfg = self.config
        primary = self.store.eligible_user_ids(cfg.min_ap, cfg.max_users_per_tick, after=self.last_cursor_user_id)
        combined = list(primary)
        remaining = cfg.max_users_per_tick - len(primary)
        if remaining > 0 and self.last_cursor_user_id is not None:
            seen = set(primary)
            for uid in self.store.eligible_user_ids(cfg.min_ap, remaining):
                if uid not in seen:
                    combined.append(uid)
        self.last_cursor_user_id = combined[-1] if combined else None
        return combined

    def run_tick(self) -> BatchReport:
        report = BatchReport()
        users = self.fetch_eligible_users()
        for uid in users:
            report.merge(self.process_user(uid))
        log.info(event="batch_tick", **report.to_dict(), cursor=self.last_cursor_user_id)
        return report

    def process_user(self, user_id: str) -> BatchReport:
        report = BatchReport(users_processed=1, user_ids=[user_id])
        user_log = log.bind(user_id=user_id)
        state = self.store.load_state(user_id)
        if state is None or state.ap < self.config.min_ap:
            return report

        allowed = min(state.ap, self.config.max_actions_per_user)
        done = 0
        retries = 0
        while done < allowed and state is not None and state.ap >= self.config.min_ap:
            try:
                resolution = self.engine.resolve_next_action(state, state.version)
            except InsufficientActionPoints:
                break
            try:
                self.store.commit(state.version, resolution.next_state, resolution.entries)
            except StateConflict:
                report.conflicts += 1
                retries += 1
                if retries > self.config.commit_retries:
                    user_log.warn(event="batch_user_skipped", reason="state_conflict", retries=retries - 1)
                    break
                state = self.store.load_state(user_id)
                continue
            report.actions_committed += 1
            done += 1
            state = resolution.next_state
            user_log.debug(event="batch_action", selected=resolution.selected_event, version=state.version)
        return report


__all__ = ["BatchReport", "DungeonBatchService"]
