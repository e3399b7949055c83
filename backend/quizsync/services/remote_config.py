"""Remote feature flags that gate automatic sync.

Flags are fetched over HTTP and cached for a TTL. The provider never raises
to callers: when the remote source is unset or unreachable the configured
defaults are served, so a flag outage cannot take sync down with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
from cachetools import TTLCache

from quizsync.common.timeutil import utc_now
from quizsync.core.logging import get_logger

logger = get_logger(__name__)

AUTO_SYNC_KEY = "auto_sync_enabled"
OFFLINE_MODE_KEY = "offline_mode_enabled"
_CACHE_KEY = "snapshot"


@dataclass(frozen=True)
class RemoteConfigSnapshot:
    auto_sync_enabled: bool = True
    offline_mode_enabled: bool = True
    source: str = "defaults"
    fetched_at: datetime = field(default_factory=utc_now)


def parse_flag(value: Any, default: bool) -> bool:
    """Only an explicit ``false`` switches a flag off."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() != "false"


def _lookup(payload: dict[str, Any], name: str) -> Any:
    """Read a flag from a flat mapping or a Firebase-style template."""
    if name in payload:
        return payload[name]
    parameter = payload.get("parameters", {}).get(name)
    if isinstance(parameter, dict):
        return parameter.get("defaultValue", {}).get("value")
    return None


class RemoteConfigProvider:
    def __init__(
        self,
        url: str | None,
        defaults: RemoteConfigSnapshot | None = None,
        cache: TTLCache | None = None,
        timeout: float = 2.0,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.defaults = defaults or RemoteConfigSnapshot()
        self.cache = cache if cache is not None else TTLCache(maxsize=1, ttl=300)
        self.timeout = timeout
        self.token = token
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> RemoteConfigProvider:
        return cls(
            url=settings.REMOTE_CONFIG_URL,
            defaults=RemoteConfigSnapshot(
                auto_sync_enabled=settings.AUTO_SYNC_ENABLED,
                offline_mode_enabled=settings.OFFLINE_MODE_ENABLED,
            ),
            cache=TTLCache(maxsize=1, ttl=settings.REMOTE_CONFIG_TTL_SECONDS),
            timeout=settings.REMOTE_CONFIG_TIMEOUT_SECONDS,
        )

    def get_snapshot(self) -> RemoteConfigSnapshot:
        """Current flags, served from cache while fresh."""
        cached = self.cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        if not self.url:
            snapshot = self.defaults
        else:
            try:
                snapshot = self._fetch()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(
                    "Remote config unavailable, using defaults",
                    extra={"url": self.url, "error": str(e)},
                )
                snapshot = self.defaults

        self.cache[_CACHE_KEY] = snapshot
        return snapshot

    def invalidate(self) -> None:
        self.cache.clear()

    def _fetch(self) -> RemoteConfigSnapshot:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            resp = client.get(self.url, headers=headers)
            resp.raise_for_status()
            payload = resp.json()

        if not isinstance(payload, dict):
            raise ValueError("Remote config payload must be a JSON object")

        snapshot = RemoteConfigSnapshot(
            auto_sync_enabled=parse_flag(
                _lookup(payload, AUTO_SYNC_KEY), self.defaults.auto_sync_enabled
            ),
            offline_mode_enabled=parse_flag(
                _lookup(payload, OFFLINE_MODE_KEY), self.defaults.offline_mode_enabled
            ),
            source="remote",
        )
        logger.info(
            "Remote config refreshed",
            extra={
                "auto_sync_enabled": snapshot.auto_sync_enabled,
                "offline_mode_enabled": snapshot.offline_mode_enabled,
            },
        )
        return snapshot
