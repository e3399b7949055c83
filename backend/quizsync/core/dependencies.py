"""FastAPI dependencies for principal resolution and service wiring."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request, status
from sqlalchemy.orm import Session

from quizsync.core.config import settings
from quizsync.core.errors import AppError
from quizsync.core.logging import get_logger
from quizsync.core.security import DEFAULT_ROLE, verify_access_token
from quizsync.db.session import get_db
from quizsync.services.progress import ProgressService
from quizsync.services.remote_config import RemoteConfigProvider
from quizsync.sync.coordinator import SyncCoordinator
from quizsync.sync.delta import DeltaProvider
from quizsync.sync.reconciler import BatchReconciler
from quizsync.sync.store import RecordStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated identity every sync operation is scoped to."""

    user_id: UUID
    role: str = DEFAULT_ROLE
    email: str | None = None


def _unauthenticated(message: str) -> AppError:
    return AppError(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code="AUTHENTICATION_REQUIRED",
        message=message,
    )


def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """Dependency to resolve the authenticated principal from the bearer token."""
    if not authorization:
        raise _unauthenticated("Authorization header missing")

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid authorization scheme")
    except ValueError:
        raise _unauthenticated(
            "Invalid authorization header format. Expected: Bearer <token>"
        ) from None

    try:
        payload = verify_access_token(token)
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.info("Rejected access token", extra={"error": str(e)})
        raise _unauthenticated("Invalid or expired token") from e

    return Principal(
        user_id=UUID(str(payload["sub"])),
        role=payload.get("role", DEFAULT_ROLE),
        email=payload.get("email"),
    )


def get_record_store(db: Annotated[Session, Depends(get_db)]) -> RecordStore:
    return RecordStore(db)


def get_remote_config_provider(request: Request) -> RemoteConfigProvider:
    """Provider is scoped to the app instance (created in the lifespan)."""
    provider = getattr(request.app.state, "remote_config", None)
    if provider is None:
        provider = RemoteConfigProvider.from_settings(settings)
        request.app.state.remote_config = provider
    return provider


def get_sync_coordinator(
    store: Annotated[RecordStore, Depends(get_record_store)],
    remote_config: Annotated[RemoteConfigProvider, Depends(get_remote_config_provider)],
) -> SyncCoordinator:
    return SyncCoordinator(
        reconciler=BatchReconciler(
            store,
            max_sessions=settings.SYNC_MAX_SESSIONS,
            max_results=settings.SYNC_MAX_RESULTS,
        ),
        delta_provider=DeltaProvider(store, default_limit=settings.SYNC_DELTA_LIMIT),
        remote_config=remote_config,
    )


def get_progress_service(
    store: Annotated[RecordStore, Depends(get_record_store)],
) -> ProgressService:
    return ProgressService(store)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
