"""Tests for the session coordinator wiring auth, tenant and subscription state."""

import pytest

from bizflow.client.auth import AuthAuthenticated, AuthMachine, AuthUnauthenticated, LoginRequested, LogoutRequested
from bizflow.client.bootstrap import SessionCoordinator
from bizflow.client.guard import SELECT_TENANT_ROUTE, SPLASH_ROUTE, Placeholder
from bizflow.client.subscription import SubscriptionGate
from bizflow.client.tenant import TenantInitial, TenantLoaded, TenantLoadRequested, TenantMachine, TenantSelected

from tests.factories import make_access_token, make_login_response, make_status, make_tenant


@pytest.fixture
def coordinator(api, token_store, tenant_store, tracker):
    auth = AuthMachine(api, token_store, tenant_store, tracker)
    tenant = TenantMachine(api, tenant_store, tracker)
    gate = SubscriptionGate(api, tracker)
    return SessionCoordinator(auth, tenant, gate, tracker)


async def test_boot_without_session(coordinator, api):
    await coordinator.start()

    assert isinstance(coordinator.auth.state, AuthUnauthenticated)
    assert isinstance(coordinator.tenant.state, TenantInitial)
    api.list_tenants.assert_not_awaited()
    assert coordinator.decide("/dashboard").redirect == "/login"


async def test_boot_with_session_loads_tenants_once(coordinator, api, token_store):
    only = make_tenant("t1", business_type="clinic")
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [only]

    await coordinator.start()

    assert isinstance(coordinator.auth.state, AuthAuthenticated)
    assert coordinator.tenant.state == TenantLoaded((only,), only)
    api.list_tenants.assert_awaited_once()
    assert coordinator.decide(SPLASH_ROUTE).redirect == "/dashboard/clinic"


async def test_login_after_boot_triggers_tenant_load(coordinator, api):
    api.list_tenants.return_value = [make_tenant("t1"), make_tenant("t2")]
    api.login.return_value = make_login_response()
    await coordinator.start()

    await coordinator.auth.dispatch(LoginRequested("a@example.com", "pw"))
    await coordinator.wait_for_tenant_load()

    api.list_tenants.assert_awaited_once()
    assert coordinator.decide("/dashboard").redirect == SELECT_TENANT_ROUTE


async def test_logout_then_boot_needs_no_network(coordinator, api, token_store, tenant_store, tracker):
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [make_tenant("t1")]
    await coordinator.start()
    assert tenant_store.read_current_id() == "t1"

    await coordinator.auth.dispatch(LogoutRequested())

    assert token_store.read() is None
    assert tenant_store.read_current() is None
    assert tenant_store.read_tenants() == []
    assert isinstance(coordinator.tenant.state, TenantInitial)

    api.reset_mock()
    fresh_auth = AuthMachine(api, token_store, tenant_store, tracker)
    await SessionCoordinator(fresh_auth, TenantMachine(api, tenant_store, tracker), SubscriptionGate(api, tracker), tracker).start()

    assert isinstance(fresh_auth.state, AuthUnauthenticated)
    assert api.mock_calls == []


async def test_relogin_loads_tenants_again(coordinator, api, token_store):
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [make_tenant("t1")]
    api.login.return_value = make_login_response()
    await coordinator.start()

    await coordinator.auth.dispatch(LogoutRequested())
    await coordinator.auth.dispatch(LoginRequested("a@example.com", "pw"))
    await coordinator.wait_for_tenant_load()

    assert api.list_tenants.await_count == 2


async def test_staff_without_addon_sees_upgrade_prompt_on_analytics(coordinator, api, token_store):
    salon = make_tenant("t1", enabled_modules=["customers", "analytics"])
    token_store.save(make_access_token("user-1", "staff"), "refresh-1")
    api.list_tenants.return_value = [salon]
    api.get_subscription_status.return_value = make_status("pro", ["customers", "analytics"])

    await coordinator.start()
    await coordinator.refresh_subscription()

    decision = coordinator.decide("/analytics")
    assert decision.redirect is None
    assert decision.placeholder == Placeholder.UPGRADE_REQUIRED


async def test_tenant_switch_clears_subscription_cache(coordinator, api, token_store, tracker):
    t1, t2 = make_tenant("t1"), make_tenant("t2")
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [t1, t2]
    api.get_tenant.side_effect = [t1, t2]
    api.get_subscription_status.return_value = make_status("pro", ["customers"])

    await coordinator.start()
    await coordinator.tenant.dispatch(TenantSelected("t1"))
    await coordinator.refresh_subscription()
    assert coordinator.gate.has_module_access("customers") is True

    await coordinator.tenant.dispatch(TenantSelected("t2"))

    assert coordinator.gate.cached_status() is None
    assert ("tenant_changed", {"tenant_id": "t2"}) in tracker.events


async def test_reloading_same_tenant_keeps_subscription_cache(coordinator, api, token_store, tracker):
    only = make_tenant("t1")
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [only]
    api.get_subscription_status.return_value = make_status("pro", ["customers"])
    await coordinator.start()
    await coordinator.refresh_subscription()

    await coordinator.tenant.dispatch(TenantLoadRequested())

    assert coordinator.gate.cached_status("t1") is not None
    assert tracker.event_names().count("tenant_changed") == 1
    api.get_subscription_status.assert_awaited_once()


async def test_expired_session_signs_out_once(coordinator, api, token_store):
    token_store.save(make_access_token("user-1", "admin"), "refresh-1")
    api.list_tenants.return_value = [make_tenant("t1")]
    await coordinator.start()
    token_store.clear()

    coordinator.expire_session()
    coordinator.expire_session()
    await coordinator.wait_for_logout()

    assert isinstance(coordinator.auth.state, AuthUnauthenticated)
    assert isinstance(coordinator.tenant.state, TenantInitial)
    api.logout.assert_not_awaited()


async def test_refresh_subscription_without_tenant(coordinator, api):
    assert await coordinator.refresh_subscription() is None
    api.get_subscription_status.assert_not_awaited()


async def test_detach_stops_reacting(coordinator, api, token_store):
    coordinator.attach()
    coordinator.detach()
    api.login.return_value = make_login_response()

    await coordinator.auth.dispatch(LoginRequested("a@example.com", "pw"))
    await coordinator.wait_for_tenant_load()

    api.list_tenants.assert_not_awaited()
