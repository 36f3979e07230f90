from __future__ import annotations

from dataclasses import dataclass, fields
from typing import FrozenSet, Iterable, Mapping

ROLE_OWNER = "OWNER"
ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_EMPLOYEE = "EMPLOYEE"


@dataclass(frozen=True)
class Permission:
    # company.*
    COMPANY_READ: str = "company.read"
    COMPANY_WRITE: str = "company.write"

    # members.*
    MEMBERS_READ: str = "members.read"
    MEMBERS_WRITE: str = "members.write"

    # invites.*
    INVITES_MANAGE: str = "invites.manage"

    # departments.*
    DEPARTMENTS_READ: str = "departments.read"
    DEPARTMENTS_WRITE: str = "departments.write"

    # time.*
    TIME_PUNCH: str = "time.punch"
    TIME_READ: str = "time.read"

    # requests.* (leave requests and time entry edit requests)
    REQUESTS_CREATE: str = "requests.create"
    REQUESTS_READ: str = "requests.read"
    REQUESTS_APPROVE: str = "requests.approve"

    # documents.*
    DOCUMENTS_READ: str = "documents.read"
    DOCUMENTS_WRITE: str = "documents.write"

    # billing.*
    BILLING_READ: str = "billing.read"
    BILLING_WRITE: str = "billing.write"

    # reports.*
    REPORTS_READ: str = "reports.read"
    REPORTS_EXPORT: str = "reports.export"

    # notifications.*
    NOTIFICATIONS_READ: str = "notifications.read"

    # wildcards (domain-level)
    COMPANY_ALL: str = "company.*"
    MEMBERS_ALL: str = "members.*"
    INVITES_ALL: str = "invites.*"
    DEPARTMENTS_ALL: str = "departments.*"
    TIME_ALL: str = "time.*"
    REQUESTS_ALL: str = "requests.*"
    DOCUMENTS_ALL: str = "documents.*"
    REPORTS_ALL: str = "reports.*"
    NOTIFICATIONS_ALL: str = "notifications.*"


PERM = Permission()

KNOWN_PERMISSIONS: FrozenSet[str] = frozenset(getattr(PERM, f.name) for f in fields(Permission))

ROLE_BASE_PERMISSIONS: Mapping[str, FrozenSet[str]] = {
    ROLE_ADMIN: frozenset(
        {
            PERM.COMPANY_ALL,
            PERM.MEMBERS_ALL,
            PERM.INVITES_ALL,
            PERM.DEPARTMENTS_ALL,
            PERM.TIME_ALL,
            PERM.REQUESTS_ALL,
            PERM.DOCUMENTS_ALL,
            PERM.REPORTS_ALL,
            PERM.NOTIFICATIONS_ALL,
            # subscription/invoices stay with the owner unless granted
            PERM.BILLING_READ,
        }
    ),
    ROLE_MANAGER: frozenset(
        {
            PERM.COMPANY_READ,
            PERM.MEMBERS_READ,
            PERM.INVITES_MANAGE,
            PERM.DEPARTMENTS_READ,
            PERM.TIME_ALL,
            PERM.REQUESTS_ALL,
            PERM.DOCUMENTS_ALL,
            PERM.REPORTS_ALL,
            PERM.NOTIFICATIONS_ALL,
            PERM.BILLING_READ,
        }
    ),
    ROLE_EMPLOYEE: frozenset(
        {
            PERM.COMPANY_READ,
            PERM.DEPARTMENTS_READ,
            PERM.TIME_PUNCH,
            PERM.REQUESTS_CREATE,
            PERM.DOCUMENTS_READ,
            PERM.NOTIFICATIONS_ALL,
        }
    ),
}


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().upper()


def _normalize_extras(extra: Iterable[str] | None) -> FrozenSet[str]:
    if not extra:
        return frozenset()
    return frozenset(p.strip() for p in extra if isinstance(p, str) and p.strip())


def effective_permissions(*, role: str | None, extra: Iterable[str] | None) -> FrozenSet[str]:
    """
    Base role grants + membership.permissions extras (additive).
    OWNER is handled as "all" in is_permitted() and require_permissions().
    """
    r = _normalize_role(role)
    base = ROLE_BASE_PERMISSIONS.get(r, frozenset())
    extras = _normalize_extras(extra)
    if not extras:
        return base
    return frozenset(set(base) | set(extras))


def _has_domain_wildcard(grants: FrozenSet[str], required: str) -> bool:
    if required in grants:
        return True
    idx = required.find(".")
    if idx <= 0:
        return False
    domain = required[:idx]
    return f"{domain}.*" in grants


def is_permitted(*, role: str | None, grants: FrozenSet[str], required: str) -> bool:
    if _normalize_role(role) == ROLE_OWNER:
        return True
    return _has_domain_wildcard(grants, required)


def has_permission(membership, required: str) -> bool:
    """Convenience for branching inside a handler on the caller's membership."""
    role = getattr(membership, "role", None)
    grants = effective_permissions(role=role, extra=getattr(membership, "permissions", None))
    return is_permitted(role=role, grants=grants, required=required)
