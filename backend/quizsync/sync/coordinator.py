"""Push-then-pull orchestration for one sync request."""

from uuid import UUID

from quizsync.core.logging import get_logger
from quizsync.schemas.sync import SyncRequest, SyncResponse
from quizsync.services.remote_config import RemoteConfigProvider
from quizsync.sync.delta import DeltaProvider
from quizsync.sync.errors import SyncDisabledError
from quizsync.sync.reconciler import BatchReconciler

logger = get_logger(__name__)


class SyncCoordinator:
    """Runs a sync: gate, reconcile the push, then assemble the delta.

    The delta is computed after the push, so the response echoes records the
    device just uploaded. Clients treat those as confirmations.
    """

    def __init__(
        self,
        reconciler: BatchReconciler,
        delta_provider: DeltaProvider,
        remote_config: RemoteConfigProvider,
    ):
        self.reconciler = reconciler
        self.delta_provider = delta_provider
        self.remote_config = remote_config

    def sync(self, owner_id: UUID, request: SyncRequest) -> SyncResponse:
        snapshot = self.remote_config.get_snapshot()
        if not snapshot.auto_sync_enabled and not request.force_sync:
            logger.info(
                "Sync rejected: automatic sync disabled",
                extra={"user_id": str(owner_id), "config_source": snapshot.source},
            )
            raise SyncDisabledError(
                "Automatic sync is disabled; retry with force_sync to sync now",
                details={"auto_sync_enabled": False},
            )

        # Oversized batches fail before anything is written
        self.reconciler.check_bounds(request.quiz_sessions, request.quiz_results)
        logger.info(
            "Sync started",
            extra={
                "user_id": str(owner_id),
                "sessions": len(request.quiz_sessions),
                "results": len(request.quiz_results),
                "watermark": request.last_sync_at.isoformat(),
                "paged": request.pull_cursor is not None,
            },
        )

        outcome = self.reconciler.reconcile(owner_id, request.quiz_sessions, request.quiz_results)
        delta = self.delta_provider.delta(owner_id, request.last_sync_at, cursor=request.pull_cursor)

        logger.info(
            "Sync completed",
            extra={
                "user_id": str(owner_id),
                "force_sync": request.force_sync,
                "pushed_sessions": len(request.quiz_sessions),
                "pushed_results": len(request.quiz_results),
                "conflicts": len(outcome.conflicts),
                "pulled_sessions": len(delta.sessions),
                "pulled_results": len(delta.results),
            },
        )

        return SyncResponse(
            sync_timestamp=delta.server_now,
            sync_results=outcome.to_schema(),
            server_data=delta.to_schema(),
            conflicts_resolved=not outcome.conflicts,
        )
