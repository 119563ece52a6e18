"""Tests for the module catalog."""

import pytest

from bizflow.core.modules import (
    MODULE_TIER_ACCESS,
    ModuleAvailability,
    Tier,
    default_dashboard_route,
    enabled_modules,
    module_access,
)


def test_enabled_modules_include_tier_modules_only():
    free = enabled_modules("free")

    assert "customers" in free
    assert "marketplace" not in free
    assert "advanced-analytics" not in free


def test_purchased_addon_is_enabled():
    assert "advanced-analytics" not in enabled_modules("pro")
    assert "advanced-analytics" in enabled_modules("pro", ["advanced-analytics"])


def test_addon_for_unavailable_module_is_ignored():
    # clinic is unavailable on starter; buying it does nothing
    assert "clinic" not in enabled_modules("starter", ["clinic"])


def test_enterprise_includes_everything():
    assert set(enabled_modules(Tier.ENTERPRISE)) == set(MODULE_TIER_ACCESS)


def test_unknown_tier_is_free():
    assert enabled_modules("platinum") == enabled_modules("free")


class TestModuleAccess:
    def test_included(self):
        assert module_access("starter", "marketplace") == (True, None, None)

    def test_addon_not_purchased(self):
        allowed, reason, upgrade = module_access("pro", "advanced-analytics")

        assert allowed is False
        assert reason == "Module 'advanced-analytics' requires add-on purchase"
        assert upgrade

    def test_addon_purchased(self):
        allowed, _, _ = module_access("pro", "advanced-analytics", ["advanced-analytics"])
        assert allowed is True

    def test_unavailable_in_tier(self):
        allowed, reason, _ = module_access("free", "hrms")

        assert allowed is False
        assert reason == "Module 'hrms' not available in free tier"

    def test_unknown_module(self):
        assert module_access("enterprise", "teleportation") == (False, "Unknown module", None)

    def test_no_subscription(self):
        allowed, reason, _ = module_access(None, "customers")

        assert allowed is False
        assert reason == "No active subscription"


def test_every_module_defines_every_tier():
    for module_id, tiers in MODULE_TIER_ACCESS.items():
        assert set(tiers) == set(Tier), module_id
        assert all(isinstance(v, ModuleAvailability) for v in tiers.values())


@pytest.mark.parametrize("business_type,route", [
    ("salon", "/dashboard/salon"),
    ("clinic", "/dashboard/clinic"),
    ("furniture_manufacturing", "/dashboard/furniture"),
    (None, "/dashboard"),
    ("", "/dashboard"),
])
def test_default_dashboard_route(business_type, route):
    assert default_dashboard_route(business_type) == route
