"""SQLAlchemy store: conditional commit, atomic log append and cursor paging."""

from dataclasses import replace

import pytest

from dungeon_engine.errors import InvalidCursor, StateConflict
from dungeon_engine.models.log_entry import LogAction, LogCategory
from dungeon_engine.models.records import DungeonLogRecord
from dungeon_engine.services.store import decode_cursor, encode_cursor
from tests.factories import ScriptedRandomFactory, make_engine, make_state


def _advance(store, engine, user_id, steps):
    state = store.load_state(user_id)
    for _ in range(steps):
        res = engine.resolve_next_action(state, state.version)
        store.commit(state.version, res.next_state, res.entries)
        state = res.next_state
    return state


def test_create_and_load_round_trip(store):
    created = store.create_state(make_state(user_id="alice", gold=12, luck=3))
    loaded = store.load_state("alice")
    assert loaded == created
    assert loaded.defense == 1
    assert loaded.created_at.tzinfo is not None
    assert store.load_state("nobody") is None


def test_commit_persists_state_and_entries(store):
    store.create_state(make_state(user_id="alice", ap=3))
    state = store.load_state("alice")
    res = make_engine().resolve_next_action(state, state.version)

    persisted = store.commit(state.version, res.next_state, res.entries)

    assert store.load_state("alice").version == 2
    assert len(persisted) == len(res.entries)
    assert all(p.id and p.sequence for p in persisted)
    assert [p.delta for p in persisted] == [e.delta for e in res.entries]
    assert [p.extra for p in persisted] == [e.extra for e in res.entries]
    sequences = [p.sequence for p in persisted]
    assert sequences == sorted(sequences)


def test_stale_version_conflicts_and_writes_nothing(store):
    store.create_state(make_state(user_id="alice", ap=3))
    state = store.load_state("alice")
    engine = make_engine()
    winner = engine.resolve_next_action(state, state.version)
    loser = engine.resolve_next_action(state, state.version)
    store.commit(state.version, winner.next_state, winner.entries)
    logs_before = DungeonLogRecord.query.count()

    with pytest.raises(StateConflict) as exc:
        store.commit(state.version, loser.next_state, loser.entries)

    assert exc.value.code == "STATE_CONFLICT"
    assert exc.value.expected_version == 1
    assert DungeonLogRecord.query.count() == logs_before
    assert store.load_state("alice").version == 2


def test_commit_requires_single_version_step(store):
    store.create_state(make_state(user_id="alice"))
    state = store.load_state("alice")
    with pytest.raises(AssertionError):
        store.commit(state.version, replace(state, version=state.version + 2), [])


def test_conflict_for_unknown_user(store):
    with pytest.raises(StateConflict):
        store.commit(1, make_state(user_id="ghost", version=2), [])


def test_pages_are_newest_first_and_gap_free(store):
    store.create_state(make_state(user_id="alice", ap=10))
    _advance(store, make_engine(), "alice", 6)
    all_sequences = sorted(
        (row.sequence for row in DungeonLogRecord.query.filter_by(user_id="alice")), reverse=True
    )

    seen, cursor = [], None
    while True:
        page = store.list_logs("alice", cursor=cursor, limit=4)
        seen.extend(e.sequence for e in page.entries)
        assert len(page.entries) <= 4
        if page.next_cursor is None:
            break
        cursor = page.next_cursor
    assert seen == all_sequences


def test_logs_are_scoped_per_user(store):
    store.create_state(make_state(user_id="alice", ap=2))
    store.create_state(make_state(user_id="bob", ap=2))
    engine = make_engine()
    _advance(store, engine, "alice", 1)
    _advance(store, engine, "bob", 2)
    assert {e.user_id for e in store.list_logs("bob", limit=100).entries} == {"bob"}


def test_filter_by_category_and_action(store):
    rng = ScriptedRandomFactory({"alice:event:1": [0.1], "alice:drop:1": [0.0, 0.0, 0.0], "alice:event:2": [0.6]})
    store.create_state(make_state(user_id="alice", ap=5))
    _advance(store, make_engine(rng_factory=rng), "alice", 2)

    status = store.list_logs("alice", action_or_category="STATUS")
    assert [e.action for e in status.entries] == [LogAction.ACQUIRE_ITEM]
    assert all(e.category is LogCategory.STATUS for e in status.entries)
    rests = store.list_logs("alice", action_or_category="REST")
    assert {e.action for e in rests.entries} == {LogAction.REST}
    assert len(rests.entries) == 2
    with pytest.raises(ValueError):
        store.list_logs("alice", action_or_category="DANCE")


def test_limit_bounds(store):
    with pytest.raises(ValueError):
        store.list_logs("alice", limit=0)
    with pytest.raises(ValueError):
        store.list_logs("alice", limit=101)


def test_cursor_encoding():
    token = encode_cursor(1234)
    assert "=" not in token
    assert decode_cursor(token) == 1234
    for junk in ["", "***", encode_cursor(0), "bm90LWEtbnVtYmVy"]:
        with pytest.raises(InvalidCursor):
            decode_cursor(junk)


def test_eligible_users_ordered_with_cursor(store):
    for uid, ap in [("carol", 3), ("alice", 5), ("bob", 0), ("dave", 1)]:
        store.create_state(make_state(user_id=uid, ap=ap))
    assert store.eligible_user_ids(1, 10) == ["alice", "carol", "dave"]
    assert store.eligible_user_ids(1, 10, after="alice") == ["carol", "dave"]
    assert store.eligible_user_ids(2, 1) == ["alice"]
