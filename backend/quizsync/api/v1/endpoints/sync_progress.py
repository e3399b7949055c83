"""Offline progress sync endpoints for mobile clients."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from quizsync.core.config import settings
from quizsync.core.dependencies import (
    CurrentPrincipal,
    get_progress_service,
    get_sync_coordinator,
)
from quizsync.schemas.progress import ProgressListOut, ProgressUpdateOut, ProgressUpdateRequest
from quizsync.schemas.sync import SuccessEnvelope, SyncRequest, SyncResponse
from quizsync.services.progress import ProgressService
from quizsync.sync.coordinator import SyncCoordinator

router = APIRouter(prefix="/sync-progress", tags=["Progress Sync"])


@router.post(
    "",
    response_model=SuccessEnvelope[SyncResponse],
    summary="Push pending changes and pull the delta",
    description=(
        "Reconciles the device's pending sessions and results item by item, then returns "
        "everything changed for the caller since last_sync_at. Per-item failures are "
        "reported in sync_results; the request as a whole still succeeds."
    ),
)
async def sync_progress(
    request_data: SyncRequest,
    principal: CurrentPrincipal,
    coordinator: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
) -> SuccessEnvelope[SyncResponse]:
    response = coordinator.sync(principal.user_id, request_data)
    return SuccessEnvelope(data=response)


@router.get(
    "",
    response_model=SuccessEnvelope[ProgressListOut],
    summary="List progress",
    description="Read-only view of the caller's sessions with nested results and optional stats.",
)
async def get_progress(
    principal: CurrentPrincipal,
    service: Annotated[ProgressService, Depends(get_progress_service)],
    category: Annotated[str | None, Query(min_length=1, max_length=50)] = None,
    limit: Annotated[
        int, Query(ge=1, le=settings.PROGRESS_MAX_LIMIT)
    ] = settings.PROGRESS_DEFAULT_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
    include_stats: bool = False,
) -> SuccessEnvelope[ProgressListOut]:
    data = service.list_progress(
        principal.user_id,
        category=category,
        limit=limit,
        offset=offset,
        include_stats=include_stats,
    )
    return SuccessEnvelope(data=data)


@router.put(
    "",
    response_model=SuccessEnvelope[ProgressUpdateOut],
    summary="Update session progress",
    description="Narrow partial update of allow-listed session fields.",
)
async def update_progress(
    request_data: ProgressUpdateRequest,
    principal: CurrentPrincipal,
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> SuccessEnvelope[ProgressUpdateOut]:
    data = service.update_progress(principal.user_id, request_data.session_id, request_data.updates)
    return SuccessEnvelope(data=data)
