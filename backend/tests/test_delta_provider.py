"""Tests for the pull-side delta."""

from datetime import datetime, timezone

import pytest

from quizsync.schemas.sync import PullCursor
from quizsync.sync.delta import DeltaProvider
from quizsync.sync.store import RecordStore
from tests.helpers.seed import make_session, seed_result, seed_session, ts


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(ts(100))


@pytest.fixture
def provider(store: RecordStore, clock: FrozenClock) -> DeltaProvider:
    return DeltaProvider(store, default_limit=3, clock=clock)


def test_empty_delta_returns_server_now(provider, owner_id, clock):
    delta = provider.delta(owner_id, ts(0))

    assert delta.sessions == []
    assert delta.results == []
    assert delta.server_now == clock.now
    assert not delta.has_more_sessions


def test_only_owner_records_after_watermark(provider, store, owner_id, other_owner_id):
    seed_session(store, owner_id, updated_at=ts(1))
    newer = seed_session(store, owner_id, updated_at=ts(10))
    seed_session(store, other_owner_id, updated_at=ts(10))

    delta = provider.delta(owner_id, ts(1))

    assert [s.session_id for s in delta.sessions] == [newer.session_id]


def test_results_ordered_oldest_first(provider, store, owner_id):
    session = seed_session(store, owner_id)
    late = seed_result(store, owner_id, session.session_id, created_at=ts(20))
    early = seed_result(store, owner_id, session.session_id, created_at=ts(5))

    delta = provider.delta(owner_id, ts(0))

    assert [r.result_id for r in delta.results] == [early.result_id, late.result_id]


def test_records_after_server_now_wait_for_next_pull(provider, store, owner_id, clock):
    """Rows stamped ahead of the server clock appear once the clock passes them."""
    future = seed_session(store, owner_id, updated_at=ts(150))

    first = provider.delta(owner_id, ts(0))
    assert first.sessions == []

    clock.now = ts(200)
    second = provider.delta(owner_id, first.server_now)
    assert [s.session_id for s in second.sessions] == [future.session_id]


def test_sequential_pulls_do_not_repeat_records(provider, store, owner_id, clock):
    seed_session(store, owner_id, updated_at=ts(10))
    first = provider.delta(owner_id, ts(0))

    clock.now = ts(300)
    late = seed_session(store, owner_id, updated_at=ts(250))
    second = provider.delta(owner_id, first.server_now)

    first_ids = {s.session_id for s in first.sessions}
    second_ids = {s.session_id for s in second.sessions}
    assert first_ids.isdisjoint(second_ids)
    assert second_ids == {late.session_id}


def test_cursor_pages_through_the_delta(provider, store, owner_id):
    seeded = [seed_session(store, owner_id, updated_at=ts(i)) for i in range(1, 6)]

    page1 = provider.delta(owner_id, ts(0))
    page2 = provider.delta(owner_id, ts(0), cursor=page1.next_cursor)

    assert page1.has_more_sessions is True
    assert page1.next_cursor.until == ts(100)
    assert page2.has_more_sessions is False
    assert page2.next_cursor is None
    ids = [s.session_id for s in page1.sessions + page2.sessions]
    assert ids == [s.session_id for s in seeded]


def test_cursor_pages_each_kind_independently(provider, store, owner_id):
    session = seed_session(store, owner_id, updated_at=ts(1))
    results = [seed_result(store, owner_id, session.session_id, created_at=ts(i)) for i in range(1, 6)]

    page1 = provider.delta(owner_id, ts(0))
    page2 = provider.delta(owner_id, ts(0), cursor=page1.next_cursor)

    assert [s.session_id for s in page1.sessions] == [session.session_id]
    assert page2.sessions == []
    assert [r.result_id for r in page1.results + page2.results] == [r.result_id for r in results]


def test_row_changed_between_pages_is_not_lost(provider, store, owner_id, clock):
    """A row moving out of a delivered page must not shift later rows past the client."""
    a = seed_session(store, owner_id, updated_at=ts(1))
    b = seed_session(store, owner_id, updated_at=ts(2))
    c = seed_session(store, owner_id, updated_at=ts(3))

    page1 = provider.delta(owner_id, ts(0), limit=2)
    assert [s.session_id for s in page1.sessions] == [a.session_id, b.session_id]

    # Another device touches A while this one is still paging
    moved = make_session(session_id=a.session_id, status="in_progress", updated_at=ts(150))
    assert store.upsert_session(owner_id, moved)
    store.commit()
    clock.now = ts(200)

    page2 = provider.delta(owner_id, ts(0), limit=2, cursor=page1.next_cursor)

    assert [s.session_id for s in page2.sessions] == [c.session_id]
    assert page2.has_more_sessions is False
    assert page2.server_now == ts(100)

    following = provider.delta(owner_id, page2.server_now, limit=2)
    assert [s.session_id for s in following.sessions] == [a.session_id]
    # Delivered pages are snapshots and keep what was read
    assert page1.sessions[0].updated_at == ts(1)


def test_cursor_bound_never_passes_the_server_clock(provider, store, owner_id, clock):
    seed_session(store, owner_id, updated_at=ts(1))
    seed_session(store, owner_id, updated_at=ts(150))
    cursor = PullCursor(until=ts(500))

    delta = provider.delta(owner_id, ts(0), cursor=cursor)

    assert delta.server_now == clock.now
    assert len(delta.sessions) == 1

def test_to_schema_normalizes_timestamps(provider, store, owner_id):
    seed_session(store, owner_id, updated_at=ts(1))

    data = provider.delta(owner_id, ts(0)).to_schema()

    assert data.quiz_sessions[0].updated_at.tzinfo == timezone.utc
    assert data.server_timestamp == ts(100)
