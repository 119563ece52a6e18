"""
Client session layer against the real API app, in process.

httpx.ASGITransport routes the client's requests straight into the
FastAPI app, so these tests cover the wire format on both sides.
"""

import httpx
import pytest

from bizflow.client import Placeholder, build_client
from bizflow.client.auth import AuthAuthenticated, AuthError, AuthUnauthenticated, LoginRequested, LogoutRequested
from bizflow.client.exceptions import SessionExpiredError
from bizflow.client.http import run_with_step_up
from bizflow.client.storage import MemoryBackend
from bizflow.client.tenant import TenantLoaded, TenantLoadRequested, TenantSelected
from bizflow.config import Settings
from bizflow.main import app

from tests.factories import PASSWORD


@pytest.fixture
def settings():
    return Settings(API_BASE_URL="http://testserver", STORAGE_ENCRYPTION_KEY="e2e-passphrase")


@pytest.fixture
async def container(seed, settings, tracker):
    built = build_client(settings, transport=httpx.ASGITransport(app=app), backend=MemoryBackend(), tracker=tracker)
    yield built
    await built.aclose()


async def sign_in(container, email):
    await container.start()
    await container.auth.dispatch(LoginRequested(email, PASSWORD))
    await container.coordinator.wait_for_tenant_load()


async def test_staff_sees_upgrade_prompt_for_analytics(container, seed):
    await sign_in(container, "staff@example.com")

    assert isinstance(container.auth.state, AuthAuthenticated)
    assert container.tenant.current_tenant.id == seed.salon.id

    status = await container.coordinator.refresh_subscription()
    assert status.tier == "starter"

    assert container.coordinator.decide("/login").redirect == "/dashboard/salon"
    assert container.coordinator.decide("/customers").allowed is True
    assert container.coordinator.decide("/analytics").placeholder == Placeholder.UPGRADE_REQUIRED
    assert container.coordinator.decide("/billing").placeholder == Placeholder.NOT_PERMITTED


async def test_owner_with_two_tenants_picks_one(container, seed):
    await sign_in(container, "owner@example.com")

    assert container.coordinator.decide("/dashboard").redirect == "/select-tenant"

    await container.tenant.dispatch(TenantSelected(seed.clinic.id))
    await container.coordinator.refresh_subscription()

    assert container.coordinator.decide("/splash").redirect == "/dashboard/clinic"
    assert container.coordinator.decide("/analytics").allowed is True
    assert (await container.gate.check_module_access("advanced-analytics")).allowed is True


async def test_deactivated_tenant_can_be_switched_away_from(container, db, seed):
    await sign_in(container, "owner@example.com")
    await container.tenant.dispatch(TenantSelected(seed.clinic.id))
    seed.clinic.is_active = False
    db.add(seed.clinic)
    db.commit()

    await container.tenant.dispatch(TenantLoadRequested())

    assert isinstance(container.tenant.state, TenantLoaded)
    assert [t.id for t in container.tenant.state.tenants] == [seed.salon.id]
    assert container.tenant.current_tenant.id == seed.salon.id
    assert container.coordinator.decide("/splash").redirect == "/dashboard/salon"

    await container.tenant.dispatch(TenantSelected(seed.salon.id))

    assert isinstance(container.tenant.state, TenantLoaded)
    assert container.tenant_store.read_current_id() == seed.salon.id


async def test_bad_password(container, seed):
    await container.start()
    await container.auth.dispatch(LoginRequested("staff@example.com", "wrong"))

    assert container.auth.state == AuthError("Invalid credentials")
    assert container.coordinator.decide("/dashboard").redirect == "/login"


async def test_rejected_access_token_is_refreshed_transparently(container, seed):
    await sign_in(container, "staff@example.com")
    stored = container.token_store.read()
    container.token_store.save("garbage", stored.refresh_token)

    tenants = await container.api.list_tenants()

    assert [t.id for t in tenants] == [seed.salon.id]
    assert container.token_store.read().access_token != "garbage"
    assert container.token_store.read().refresh_token != stored.refresh_token


async def test_dead_session_during_api_call_signs_out(container, seed):
    await sign_in(container, "staff@example.com")
    container.token_store.save("garbage", "not-a-refresh-token")

    with pytest.raises(SessionExpiredError):
        await container.api.list_tenants()
    await container.coordinator.wait_for_logout()

    assert isinstance(container.auth.state, AuthUnauthenticated)
    assert container.token_store.read() is None
    assert container.coordinator.decide("/dashboard").redirect == "/login"


async def test_revoke_all_with_step_up(container, seed):
    await sign_in(container, "owner@example.com")
    purposes = []

    async def verifier(purpose):
        purposes.append(purpose)
        return (await container.api.verify_step_up(PASSWORD, purpose)).step_up_token

    result = await run_with_step_up(
        lambda token: container.api.revoke_all_sessions(step_up_token=token),
        verifier,
    )

    assert purposes == ["revoke_all_sessions"]
    assert result.revoked == 0
    assert len(await container.api.list_sessions()) == 1


async def test_logout_clears_local_session(container, seed):
    await sign_in(container, "staff@example.com")

    await container.auth.dispatch(LogoutRequested())

    assert container.token_store.read() is None
    assert container.tenant_store.read_current() is None
    assert isinstance(container.auth.state, AuthUnauthenticated)
    assert container.gate.cached_status() is None
