"""
Client Session Layer

Decides, per route, whether the signed-in user may see a page: auth
bootstrap, tenant selection, role permissions and subscription modules.
"""
from bizflow.client.container import ClientContainer, build_client
from bizflow.client.guard import Placeholder, RouteDecision, guard_page, guard_route

__all__ = [
    "ClientContainer",
    "build_client",
    "Placeholder",
    "RouteDecision",
    "guard_page",
    "guard_route",
]
