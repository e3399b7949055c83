"""Property-based tests for sync invariants."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, timedelta
from uuid import uuid4

from hypothesis import given, settings, strategies as st
from sqlalchemy.orm import Session

import quizsync.models  # noqa: F401
from quizsync.db.base import Base
from quizsync.db.engine import create_db_engine
from quizsync.sync.reconciler import BatchReconciler
from quizsync.sync.resolver import Decision, resolve
from quizsync.sync.store import RecordStore, compute_streak
from tests.helpers.seed import make_result, make_session, ts


@contextmanager
def fresh_store() -> Iterator[RecordStore]:
    """Isolated in-memory database per example."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield RecordStore(session)
    finally:
        session.close()
        engine.dispose()


minutes = st.integers(min_value=0, max_value=10_000)


@settings(max_examples=200, deadline=None)
@given(incoming=minutes, existing=minutes)
def test_resolve_accepts_only_strictly_newer(incoming: int, existing: int) -> None:
    """
    Property: a write wins exactly when its timestamp is strictly greater.
    """
    decision = resolve(make_session(updated_at=ts(incoming)), make_session(updated_at=ts(existing)))

    assert (decision is Decision.ACCEPT) == (incoming > existing)


@settings(max_examples=30, deadline=None)
@given(versions=st.lists(minutes, min_size=1, max_size=8, unique=True), data=st.data())
def test_last_write_wins_regardless_of_arrival_order(versions: list[int], data) -> None:
    """
    Property: after every version of a session arrives, in any order and in
    any batching, the stored copy is the newest version.

    Invariants:
    - Stored updated_at is the maximum pushed
    - Stored fields come from that version
    """
    session_id = uuid4()
    owner_id = uuid4()
    order = data.draw(st.permutations(versions))
    records = [
        make_session(
            session_id=session_id,
            status="in_progress",
            updated_at=ts(v),
            time_spent=v,
        )
        for v in order
    ]

    with fresh_store() as store:
        reconciler = BatchReconciler(store)
        cut = data.draw(st.integers(min_value=0, max_value=len(records)))
        reconciler.reconcile(owner_id, records[:cut], [])
        reconciler.reconcile(owner_id, records[cut:], [])

        stored = store.get_session(session_id)
        assert stored.time_spent == max(versions)


@settings(max_examples=30, deadline=None)
@given(
    num_sessions=st.integers(min_value=0, max_value=5),
    results_per_session=st.integers(min_value=0, max_value=4),
)
def test_replay_is_a_no_op(num_sessions: int, results_per_session: int) -> None:
    """
    Property: submitting the same batch twice leaves the same stored state.

    Invariants:
    - Second pass reports sessions stale and results duplicate
    - Nothing is failed on either pass
    """
    owner_id = uuid4()
    sessions = [make_session(updated_at=ts(i)) for i in range(num_sessions)]
    results = [
        make_result(s.session_id, created_at=ts(j))
        for s in sessions
        for j in range(results_per_session)
    ]

    with fresh_store() as store:
        reconciler = BatchReconciler(store)
        first = reconciler.reconcile(owner_id, sessions, results)
        rows_before = [
            (r.session_id, r.updated_at, r.time_spent)
            for r in store.list_sessions_updated_after(owner_id, ts(-1), limit=100)
        ]

        second = reconciler.reconcile(owner_id, sessions, results)
        rows_after = [
            (r.session_id, r.updated_at, r.time_spent)
            for r in store.list_sessions_updated_after(owner_id, ts(-1), limit=100)
        ]

        assert not first.failed_sessions and not first.failed_results
        assert len(first.synced_results) == len(results)
        assert second.stale_sessions == [s.session_id for s in sessions]
        assert second.duplicate_results == [r.result_id for r in results]
        assert rows_before == rows_after


@settings(max_examples=50, deadline=None)
@given(
    answers=st.lists(st.integers(min_value=0, max_value=5), min_size=1, max_size=6),
)
def test_results_are_immutable(answers: list[int]) -> None:
    """
    Property: the first stored copy of a result_id is never modified.
    """
    owner_id = uuid4()
    session = make_session()
    result_id = uuid4()

    with fresh_store() as store:
        reconciler = BatchReconciler(store)
        reconciler.reconcile(owner_id, [session], [])
        for answer in answers:
            reconciler.reconcile(
                owner_id,
                [],
                [make_result(session.session_id, result_id=result_id, selected_answer=answer)],
            )

        assert store.get_result(result_id).selected_answer == answers[0]


@settings(max_examples=100, deadline=None)
@given(offsets=st.sets(st.integers(min_value=0, max_value=30), max_size=20))
def test_streak_is_bounded(offsets: set[int]) -> None:
    """
    Property: a streak never exceeds the number of active days and counts
    today when today is active.
    """
    today = date(2024, 6, 30)
    days = {today - timedelta(days=o) for o in offsets}

    streak = compute_streak(days, today)

    assert 0 <= streak <= len(days)
    if 0 in offsets:
        assert streak >= 1
    if 0 not in offsets and 1 not in offsets:
        assert streak == 0
