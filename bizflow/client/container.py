"""
Client Container

The one root object of the client session layer, built once at process
start and passed down explicitly. Nothing in bizflow.client reaches for
a module-level singleton.

Usage:
    client = build_client()
    await client.start()
    decision = client.coordinator.decide("/analytics")
    ...
    await client.aclose()
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from bizflow.client.auth import AuthMachine
from bizflow.client.bootstrap import SessionCoordinator
from bizflow.client.http import ApiClient
from bizflow.client.storage import FileBackend, MemoryBackend, SecureStorage, TenantStore, TokenStore
from bizflow.client.subscription import SubscriptionGate
from bizflow.client.tenant import TenantMachine
from bizflow.client.tracking import LoggingTracker, Tracker
from bizflow.config import Settings, get_settings
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ClientContainer:
    settings: Settings
    storage: SecureStorage
    token_store: TokenStore
    tenant_store: TenantStore
    tracker: Tracker
    api: ApiClient
    gate: SubscriptionGate
    auth: AuthMachine
    tenant: TenantMachine
    coordinator: SessionCoordinator

    async def start(self) -> None:
        await self.coordinator.start()

    async def aclose(self) -> None:
        await self.coordinator.wait_for_logout()
        self.coordinator.detach()
        await self.api.aclose()


def build_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    backend=None,
    tracker: Optional[Tracker] = None,
) -> ClientContainer:
    """
    Wire the client session layer.

    backend defaults to FileBackend(STORAGE_DIR) when configured, else
    MemoryBackend.
    """
    settings = settings or get_settings()
    tracker = tracker or LoggingTracker()

    if backend is None:
        backend = FileBackend(settings.STORAGE_DIR) if settings.STORAGE_DIR else MemoryBackend()

    storage = SecureStorage(backend, settings.STORAGE_ENCRYPTION_KEY)
    token_store = TokenStore(storage)
    tenant_store = TenantStore(storage)

    api = ApiClient(
        settings.API_BASE_URL,
        token_store,
        tenant_store,
        timeout=settings.API_TIMEOUT_SECONDS,
        transport=transport,
    )
    gate = SubscriptionGate(api, tracker, ttl_seconds=settings.SUBSCRIPTION_CACHE_TTL_SECONDS)
    auth = AuthMachine(
        api,
        token_store,
        tenant_store,
        tracker,
        expiry_skew_seconds=settings.TOKEN_EXPIRY_SKEW_SECONDS,
    )
    tenant = TenantMachine(api, tenant_store, tracker)
    coordinator = SessionCoordinator(auth, tenant, gate, tracker)

    api.on_session_expired = coordinator.expire_session

    logger.info(f"Client session layer ready (api={settings.API_BASE_URL})")

    return ClientContainer(
        settings=settings,
        storage=storage,
        token_store=token_store,
        tenant_store=tenant_store,
        tracker=tracker,
        api=api,
        gate=gate,
        auth=auth,
        tenant=tenant,
        coordinator=coordinator,
    )
