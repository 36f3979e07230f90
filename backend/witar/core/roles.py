# witar/core/roles.py

import enum


class CompanyRole(str, enum.Enum):
    OWNER = "OWNER"        # registered the company, cannot be removed
    ADMIN = "ADMIN"        # full administration except ownership
    MANAGER = "MANAGER"    # approves requests for their team
    EMPLOYEE = "EMPLOYEE"  # punches, requests, reads own documents


ALL_ROLES = frozenset(r.value for r in CompanyRole)

# Roles that receive approvals / staff notifications
STAFF_ROLES = (CompanyRole.OWNER.value, CompanyRole.ADMIN.value, CompanyRole.MANAGER.value)
ADMIN_ROLES = (CompanyRole.OWNER.value, CompanyRole.ADMIN.value)


def normalize_role(role: str | None, default: str = CompanyRole.EMPLOYEE.value) -> str:
    return (role or default).strip().upper()
