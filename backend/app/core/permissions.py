"""Role based access control for office users.

Every role maps to a flat set of ``<area>:<action>`` permission strings.
Route handlers depend on ``require_permission("reports:read")`` etc.
"""

from __future__ import annotations

STAFF_ROLES = ("OWNER", "MANAGER", "OFFICE", "CREW_LEAD", "FIELD_TECH", "ACCOUNTANT")
ALL_ROLES = STAFF_ROLES + ("CLIENT",)
FIELD_ROLES = ("FIELD_TECH", "CREW_LEAD")
MANAGEMENT_ROLES = ("OWNER", "MANAGER")

_OFFICE_BASE = {
    "clients:read",
    "clients:write",
    "locations:read",
    "locations:write",
    "dogs:read",
    "dogs:write",
    "subscriptions:read",
    "subscriptions:write",
    "jobs:read",
    "jobs:write",
    "jobs:assign",
    "routes:read",
    "routes:write",
    "invoices:read",
    "invoices:write",
    "payments:read",
    "payments:process",
    "leads:read",
    "leads:write",
    "pricing:read",
    "notifications:read",
    "notifications:send",
    "reports:read",
    "gift_certificates:read",
    "gift_certificates:write",
    "referrals:read",
    "referrals:write",
}

_MANAGER = _OFFICE_BASE | {
    "subscriptions:cancel",
    "jobs:complete",
    "shifts:read",
    "shifts:write",
    "shifts:clock",
    "staff:read",
    "staff:write",
    "settings:read",
    "notifications:write",
    "reports:export",
    "marketing:read",
    "marketing:write",
}

_OWNER = _MANAGER | {
    "clients:delete",
    "invoices:void",
    "payments:refund",
    "staff:delete",
    "pricing:write",
    "settings:write",
}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "OWNER": frozenset(_OWNER),
    "MANAGER": frozenset(_MANAGER),
    "OFFICE": frozenset(_OFFICE_BASE | {"shifts:read", "staff:read"}),
    "CREW_LEAD": frozenset({
        "clients:read",
        "locations:read",
        "dogs:read",
        "subscriptions:read",
        "jobs:read",
        "jobs:write",
        "jobs:complete",
        "routes:read",
        "shifts:read",
        "shifts:write",
        "shifts:clock",
        "notifications:read",
    }),
    "FIELD_TECH": frozenset({
        "clients:read",
        "locations:read",
        "dogs:read",
        "jobs:read",
        "jobs:complete",
        "routes:read",
        "shifts:read",
        "shifts:clock",
    }),
    "ACCOUNTANT": frozenset({
        "clients:read",
        "subscriptions:read",
        "invoices:read",
        "invoices:write",
        "invoices:void",
        "payments:read",
        "payments:process",
        "payments:refund",
        "pricing:read",
        "reports:read",
        "reports:export",
        "gift_certificates:read",
    }),
    "CLIENT": frozenset({
        "clients:read",
        "locations:read",
        "dogs:read",
        "subscriptions:read",
        "jobs:read",
        "invoices:read",
        "payments:read",
        "referrals:read",
        "referrals:write",
        "gift_certificates:read",
    }),
}


def has_permission(role: str | None, permission: str) -> bool:
    if not role:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def get_permissions(role: str) -> list[str]:
    return sorted(ROLE_PERMISSIONS.get(role, frozenset()))


def is_staff_role(role: str) -> bool:
    return role in STAFF_ROLES
