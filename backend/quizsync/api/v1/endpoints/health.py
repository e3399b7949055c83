"""Health and readiness endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizsync.core.dependencies import get_remote_config_provider
from quizsync.core.errors import get_request_id
from quizsync.db.session import get_db
from quizsync.services.remote_config import RemoteConfigProvider

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    status: Literal["ok", "degraded", "down"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    status: Literal["ok", "degraded", "down"]
    checks: dict[str, ReadinessCheck]
    request_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns 200 if the API process is running.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Verifies database connectivity and reports the remote config source.",
)
async def readiness_check(
    request: Request,
    db: Session = Depends(get_db),
    remote_config: RemoteConfigProvider = Depends(get_remote_config_provider),
) -> ReadinessResponse:
    """Database is required; remote config falling back to defaults only degrades."""
    checks: dict[str, ReadinessCheck] = {}
    overall_status: Literal["ok", "degraded", "down"] = "ok"

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = ReadinessCheck(status="ok")
    except SQLAlchemyError as e:
        checks["db"] = ReadinessCheck(status="down", message=str(e))
        overall_status = "down"

    snapshot = remote_config.get_snapshot()
    if remote_config.url and snapshot.source != "remote":
        checks["remote_config"] = ReadinessCheck(
            status="degraded", message="Remote config unavailable, serving defaults"
        )
        if overall_status == "ok":
            overall_status = "degraded"
    else:
        checks["remote_config"] = ReadinessCheck(status="ok", message=f"source={snapshot.source}")

    return ReadinessResponse(
        status=overall_status,
        checks=checks,
        request_id=get_request_id(request),
    )
