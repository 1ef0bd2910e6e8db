"""
Process-wide credential cache.

Maps an identity-derived key to the last access token acquired for it and
decides, per call, whether that token can still be handed out or a fresh
exchange is needed. A token is reused until

    created_at + lifetime - safety_buffer

where ``lifetime`` is the issuer's ``expires_in`` when present and the
configured default for the exchange flow otherwise.
"""

import asyncio
import hashlib
import threading
import time
from typing import Callable, Dict, Optional

from shared.config import ConnectorConfig, get_config
from shared.logging import get_logger
from shared.metrics import ConnectorMetrics, get_metrics

from ..adapters.salesforce_client import RemoteClientFactory, SalesforceClient
from .acquirer import CredentialAcquirer
from .models import (
    AcquiredCredential,
    CacheStats,
    CachedCredential,
    CredentialDescriptor,
    ExchangeFlow,
)

_KEY_PREFIXES = {
    ExchangeFlow.ASSERTION: "jwt_",
    ExchangeFlow.REFRESH: "sf_conn_",
}


def derive_cache_key(descriptor: CredentialDescriptor) -> str:
    """Stable digest of the fields that identify the principal.

    Each field is length-prefixed so ``("ab", "c")`` and ``("a", "bc")``
    never hash the same input.
    """
    flow = descriptor.flow
    if flow is ExchangeFlow.ASSERTION:
        parts = (flow.value, descriptor.client_id, descriptor.username)
    else:
        parts = (flow.value, descriptor.client_id, descriptor.refresh_token)

    digest = hashlib.sha256()
    for part in parts:
        encoded = part.encode("utf-8")
        digest.update(f"{len(encoded)}:".encode("ascii"))
        digest.update(encoded)

    return _KEY_PREFIXES[flow] + digest.hexdigest()


class CredentialCache:
    """In-memory get-or-create cache of access tokens."""

    def __init__(
        self,
        acquirer: CredentialAcquirer,
        client_factory: RemoteClientFactory,
        config: Optional[ConnectorConfig] = None,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional[ConnectorMetrics] = None,
    ) -> None:
        self.config = config or acquirer.config
        self.acquirer = acquirer
        self.client_factory = client_factory
        self.safety_buffer = self.config.safety_buffer_seconds
        self.logger = get_logger("connector.credentials.cache")
        self.metrics = metrics

        self._clock = clock
        self._entries: Dict[str, CachedCredential] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()

    async def get_connection(self, descriptor: CredentialDescriptor) -> SalesforceClient:
        """Return a client authenticated as ``descriptor``, acquiring only on a miss."""
        cached = await self._get_credential(descriptor)
        return self.client_factory.wrap(cached.instance_url, cached.access_token)

    async def get_access_token(self, descriptor: CredentialDescriptor) -> str:
        """Return the bare access token for callers with their own HTTP stack."""
        cached = await self._get_credential(descriptor)
        return cached.access_token

    def invalidate(self, descriptor: CredentialDescriptor) -> None:
        """Drop the entry for ``descriptor`` if there is one."""
        key = derive_cache_key(descriptor)
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            self.logger.info("Invalidated access token", cache_key=key)

    def invalidate_expired(self) -> None:
        """Remove every entry whose validity boundary has passed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, cached in self._entries.items() if not cached.is_valid(now)]
            for key in expired:
                del self._entries[key]

        for key in expired:
            self.logger.info("Cleared expired access token", cache_key=key)

    def invalidate_all(self) -> None:
        """Empty the cache regardless of entry validity."""
        with self._lock:
            self._entries.clear()
        self.logger.info("Cleared all cached access tokens")

    def stats(self) -> CacheStats:
        """Count entries against the current time without pruning."""
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())

        valid = sum(1 for cached in entries if cached.is_valid(now))
        stats = CacheStats(total=len(entries), valid=valid, expired=len(entries) - valid)
        if self.metrics:
            self.metrics.record_cache_stats(stats.valid, stats.expired)
        return stats

    def lifetime_for(self, credential: AcquiredCredential) -> int:
        """Issuer lifetime wins over the configured default for the flow."""
        if credential.expires_in:
            return credential.expires_in
        if credential.flow is ExchangeFlow.ASSERTION:
            return self.config.assertion_lifetime_seconds
        return self.config.refresh_lifetime_seconds

    async def _get_credential(self, descriptor: CredentialDescriptor) -> CachedCredential:
        key = derive_cache_key(descriptor)
        loop = asyncio.get_running_loop()

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None and cached.is_valid(self._clock()):
                task = None
            else:
                cached = None
                task = self._inflight.get(key)
                # Tasks are bound to their loop; other loops acquire independently.
                if task is None or task.get_loop() is not loop:
                    task = loop.create_task(self._acquire_and_store(key, descriptor))
                    task.add_done_callback(_retrieve_exception)
                    self._inflight[key] = task

        if cached is not None:
            self.logger.debug("Using cached access token", cache_key=key)
            if self.metrics:
                self.metrics.record_lookup(hit=True)
            return cached

        if self.metrics:
            self.metrics.record_lookup(hit=False)
        return await asyncio.shield(task)

    async def _acquire_and_store(self, key: str, descriptor: CredentialDescriptor) -> CachedCredential:
        try:
            self.logger.info("Acquiring new access token", cache_key=key, flow=descriptor.flow.value)
            try:
                credential = await self.acquirer.acquire(descriptor)
            except Exception as e:
                self.logger.warning("Access token acquisition failed", cache_key=key, error=str(e))
                raise

            lifetime = self.lifetime_for(credential)
            if lifetime <= self.safety_buffer:
                self.logger.warning(
                    "Token lifetime does not exceed safety buffer; entry will not be reused",
                    cache_key=key,
                    lifetime=lifetime,
                    safety_buffer=self.safety_buffer,
                )

            created_at = self._clock()
            cached = CachedCredential(
                access_token=credential.access_token,
                instance_url=credential.instance_url,
                cache_key=key,
                created_at=created_at,
                expires_at=created_at + lifetime - self.safety_buffer,
            )
            with self._lock:
                self._entries[key] = cached
            return cached
        finally:
            with self._lock:
                if self._inflight.get(key) is asyncio.current_task():
                    del self._inflight[key]


def _retrieve_exception(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; mark the failure as observed.
    if not task.cancelled():
        task.exception()


# Global credential cache instance
_credential_cache: Optional[CredentialCache] = None
_credential_cache_lock = threading.Lock()


def get_credential_cache(config: Optional[ConnectorConfig] = None) -> CredentialCache:
    """Get the process-wide credential cache, creating it on first use."""
    global _credential_cache
    with _credential_cache_lock:
        if _credential_cache is None:
            config = config or get_config()
            metrics = get_metrics("connector") if config.metrics_enabled else None
            _credential_cache = CredentialCache(
                CredentialAcquirer(config, metrics=metrics),
                RemoteClientFactory(
                    api_version=config.api_version,
                    timeout=config.http_timeout_seconds,
                ),
                config,
                metrics=metrics,
            )
        return _credential_cache


def reset_credential_cache() -> None:
    """Forget the process-wide cache so the next call builds a fresh one."""
    global _credential_cache
    with _credential_cache_lock:
        _credential_cache = None
