from __future__ import annotations

from typing import Any

PERM_WILDCARD = "*"
PERM_PLANS_READ = "plans.read"
PERM_PLANS_WRITE = "plans.write"
PERM_SUBSCRIPTIONS_READ = "subscriptions.read"
PERM_SUBSCRIPTIONS_WRITE = "subscriptions.write"
PERM_SEATS_WRITE = "seats.write"
PERM_INTEGRATION_WRITE = "integration.write"
PERM_COMPANIES_ALL = "companies.all"


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
