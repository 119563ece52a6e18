"""
Subscription / Module Gate

Client-side cache of the current tenant's subscription status.

- get_status(): cached for SUBSCRIPTION_CACHE_TTL_SECONDS per tenant;
  concurrent callers share one in-flight fetch
- has_module_access(): cached answer, for navigation and hiding UI
- check_module_access(): uncached server round trip, call it before a
  mutating action
- clear_cache(): on logout and tenant switch

SECURITY: Fails closed. A failed fetch returns the last good status for
the same tenant, else zero access. Never open.
"""
import asyncio
import time
from typing import Callable, Dict, NamedTuple, Optional

from bizflow.client.tracking import Tracker
from bizflow.schemas.subscription import ModuleAccessDecision, SubscriptionStatus
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


class _CacheEntry(NamedTuple):
    tenant_id: str
    status: SubscriptionStatus
    fetched_at: float


class SubscriptionGate:
    def __init__(
        self,
        api,
        tracker: Tracker,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._api = api
        self._tracker = tracker
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: Optional[_CacheEntry] = None
        self._inflight: Dict[str, "asyncio.Future[SubscriptionStatus]"] = {}
        # Bumped by clear_cache(); a fetch started under an older
        # generation may answer its callers but never writes the cache
        self._generation = 0

    def cached_status(self, tenant_id: Optional[str] = None) -> Optional[SubscriptionStatus]:
        """Cached status (fresh or stale), optionally only for one tenant."""
        entry = self._cache
        if entry is None:
            return None
        if tenant_id is not None and entry.tenant_id != tenant_id:
            return None
        return entry.status

    def _is_fresh(self, entry: Optional[_CacheEntry], tenant_id: str) -> bool:
        return (
            entry is not None
            and entry.tenant_id == tenant_id
            and self._clock() - entry.fetched_at < self._ttl
        )

    async def get_status(self, tenant_id: str, force_refresh: bool = False) -> SubscriptionStatus:
        if not force_refresh and self._is_fresh(self._cache, tenant_id):
            return self._cache.status

        fetch = self._inflight.get(tenant_id)
        if fetch is None:
            fetch = asyncio.ensure_future(self._fetch(tenant_id, self._generation))
            self._inflight[tenant_id] = fetch
            fetch.add_done_callback(lambda done: self._forget(tenant_id, done))

        # shield: one caller being cancelled must not cancel the shared fetch
        return await asyncio.shield(fetch)

    def _forget(self, tenant_id: str, fetch) -> None:
        if self._inflight.get(tenant_id) is fetch:
            del self._inflight[tenant_id]

    async def _fetch(self, tenant_id: str, generation: int) -> SubscriptionStatus:
        try:
            status = await self._api.get_subscription_status(tenant_id=tenant_id)
        except Exception as e:
            logger.warning(
                f"Subscription status fetch failed: {type(e).__name__}",
                extra={"tenant_id": tenant_id}
            )
            self._tracker.track_error(e, {"operation": "subscription_status", "tenant_id": tenant_id})
            fallback = self.cached_status(tenant_id)
            return fallback if fallback is not None else SubscriptionStatus.zero_access()

        if generation == self._generation:
            self._cache = _CacheEntry(tenant_id, status, self._clock())
        else:
            logger.debug("Discarding subscription status fetched before cache clear")
        return status

    def has_module_access(self, module_id: str) -> bool:
        """Cached membership test. No cached status means no access."""
        status = self.cached_status()
        if status is None:
            return False
        return module_id in status.enabled_modules

    async def check_module_access(self, module_id: str) -> ModuleAccessDecision:
        """Authoritative, uncached check. Any failure is a deny."""
        try:
            return await self._api.check_module_access(module_id)
        except Exception as e:
            self._tracker.track_error(e, {"operation": "module_access", "module_id": module_id})
            return ModuleAccessDecision.deny(module_id, "Unable to verify module access")

    def clear_cache(self) -> None:
        self._cache = None
        self._inflight.clear()
        self._generation += 1
        logger.debug("Subscription cache cleared")
