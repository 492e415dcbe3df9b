from dungeon_engine.config import BatchConfig
from dungeon_engine.errors import StateConflict
from dungeon_engine.services.batch_service import BatchReport, DungeonBatchService
from dungeon_engine.services.store import SQLAlchemyDungeonStore
from tests.factories import make_engine, make_state


class FlakyStore(SQLAlchemyDungeonStore):
    """Raises ``StateConflict`` for the first ``failures`` commits."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def commit(self, expected_version, next_state, entries):
        if self.failures:
            self.failures -= 1
            raise StateConflict(next_state.user_id, expected_version)
        return super().commit(expected_version, next_state, entries)


def _seed(store, **aps):
    for uid, ap in aps.items():
        store.create_state(make_state(user_id=uid, ap=ap))


def test_tick_spends_capped_actions(store):
    _seed(store, alice=7, bob=2, carol=0)
    service = DungeonBatchService(store, make_engine(), BatchConfig(max_actions_per_user=5))

    report = service.run_tick()

    assert report.user_ids == ["alice", "bob"]
    assert report.users_processed == 2
    assert report.actions_committed == 7
    assert report.conflicts == 0
    assert store.load_state("alice").ap == 2
    assert store.load_state("alice").version == 6
    assert store.load_state("bob").ap == 0
    assert store.load_state("carol").version == 1


def test_tick_resumes_after_cursor_and_wraps(store):
    _seed(store, alice=9, bob=9, carol=9)
    service = DungeonBatchService(store, make_engine(), BatchConfig(max_users_per_tick=2, max_actions_per_user=1))

    assert service.run_tick().user_ids == ["alice", "bob"]
    assert service.last_cursor_user_id == "bob"
    assert service.run_tick().user_ids == ["carol", "alice"]
    assert service.run_tick().user_ids == ["bob", "carol"]


def test_conflict_is_retried_after_reload(test_app):
    store = FlakyStore(failures=1)
    _seed(store, alice=3)
    service = DungeonBatchService(store, make_engine(), BatchConfig(max_actions_per_user=2))

    report = service.process_user("alice")

    assert report.conflicts == 1
    assert report.actions_committed == 2
    assert store.load_state("alice").ap == 1


def test_user_skipped_after_retry_budget(test_app):
    store = FlakyStore(failures=10)
    _seed(store, alice=3)
    service = DungeonBatchService(store, make_engine(), BatchConfig(commit_retries=2))

    report = service.process_user("alice")

    assert report.conflicts == 3
    assert report.actions_committed == 0
    assert store.load_state("alice").version == 1


def test_report_merge_and_dict():
    total = BatchReport()
    total.merge(BatchReport(users_processed=1, actions_committed=2, conflicts=1, user_ids=["a"]))
    total.merge(BatchReport(users_processed=1, actions_committed=3, user_ids=["b"]))
    assert total.to_dict() == {"usersProcessed": 2, "actionsCommitted": 5, "conflicts": 1}
    assert total.user_ids == ["a", "b"]
