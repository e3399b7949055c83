"""Tests for push-then-pull orchestration."""

import pytest

from quizsync.schemas.sync import SyncRequest
from quizsync.services.remote_config import RemoteConfigProvider, RemoteConfigSnapshot
from quizsync.sync.coordinator import SyncCoordinator
from quizsync.sync.delta import DeltaProvider
from quizsync.sync.errors import BatchTooLargeError, SyncDisabledError
from quizsync.sync.reconciler import BatchReconciler
from tests.helpers.seed import iso, result_payload, session_payload, ts


def _coordinator(store, auto_sync_enabled: bool = True, max_sessions: int = 100) -> SyncCoordinator:
    return SyncCoordinator(
        reconciler=BatchReconciler(store, max_sessions=max_sessions),
        delta_provider=DeltaProvider(store),
        remote_config=RemoteConfigProvider(
            url=None, defaults=RemoteConfigSnapshot(auto_sync_enabled=auto_sync_enabled)
        ),
    )


def _request(**kwargs) -> SyncRequest:
    body = {"quiz_sessions": [], "quiz_results": [], "last_sync_at": iso(ts(-60))}
    body.update(kwargs)
    return SyncRequest.model_validate(body)


def test_push_is_echoed_in_delta(store, owner_id):
    session = session_payload(updated_at=ts(1))
    result = result_payload(session["session_id"])

    response = _coordinator(store).sync(owner_id, _request(quiz_sessions=[session], quiz_results=[result]))

    assert [str(s) for s in response.sync_results.synced_sessions] == [session["session_id"]]
    assert [str(r) for r in response.sync_results.synced_results] == [result["result_id"]]
    assert [str(s.session_id) for s in response.server_data.quiz_sessions] == [session["session_id"]]
    assert response.conflicts_resolved is True
    assert response.sync_timestamp == response.server_data.server_timestamp


def test_conflicts_clear_the_resolved_flag(store, owner_id):
    coordinator = _coordinator(store)
    first = session_payload(status="completed", updated_at=ts(5))
    coordinator.sync(owner_id, _request(quiz_sessions=[first]))

    stale = session_payload(session_id=first["session_id"], updated_at=ts(0))
    response = coordinator.sync(owner_id, _request(quiz_sessions=[stale]))

    assert response.conflicts_resolved is False
    assert len(response.sync_results.conflicts) == 1


def test_disabled_auto_sync_is_refused(store, owner_id):
    with pytest.raises(SyncDisabledError):
        _coordinator(store, auto_sync_enabled=False).sync(
            owner_id, _request(quiz_sessions=[session_payload()])
        )


def test_force_sync_bypasses_the_switch(store, owner_id):
    session = session_payload()

    response = _coordinator(store, auto_sync_enabled=False).sync(
        owner_id, _request(quiz_sessions=[session], force_sync=True)
    )

    assert len(response.sync_results.synced_sessions) == 1


def test_oversized_batch_writes_nothing(store, owner_id):
    sessions = [session_payload() for _ in range(3)]

    with pytest.raises(BatchTooLargeError):
        _coordinator(store, max_sessions=2).sync(owner_id, _request(quiz_sessions=sessions))

    assert store.list_sessions_updated_after(owner_id, ts(-60), limit=10) == []


def test_pull_cursor_pages_through_the_delta(store, owner_id):
    coordinator = SyncCoordinator(
        reconciler=BatchReconciler(store),
        delta_provider=DeltaProvider(store, default_limit=2),
        remote_config=RemoteConfigProvider(url=None),
    )
    sessions = [session_payload(updated_at=ts(i)) for i in range(3)]
    coordinator.sync(owner_id, _request(quiz_sessions=sessions))

    page1 = coordinator.sync(owner_id, _request())
    cursor = page1.server_data.next_cursor.model_dump(mode="json")
    page2 = coordinator.sync(owner_id, _request(pull_cursor=cursor))

    assert page1.server_data.has_more_sessions is True
    assert page2.server_data.has_more_sessions is False
    assert page2.server_data.next_cursor is None
    assert page2.sync_timestamp == page1.sync_timestamp
    assert len(page1.server_data.quiz_sessions) + len(page2.server_data.quiz_sessions) == 3
