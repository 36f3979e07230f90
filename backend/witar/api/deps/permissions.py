from __future__ import annotations

import logging
from typing import Callable, Sequence

from fastapi import Depends, HTTPException, status

from witar.api.deps.company import get_current_membership
from witar.auth.permissions import KNOWN_PERMISSIONS, ROLE_OWNER, effective_permissions, is_permitted
from witar.models.company_membership import CompanyMembership

logger = logging.getLogger(__name__)


def require_permissions(*required: str | Sequence[str]) -> Callable:
    """
    Route guard on the caller's membership in the X-Company-Id company.

    Every listed permission must be granted, by the role's base set
    (ADMIN, MANAGER and EMPLOYEE in witar.auth.permissions) or by the
    membership's extra grants. OWNER passes everything. Unknown permission
    strings raise ValueError when the route is declared.
    """
    required_list: list[str] = []
    for item in required:
        required_list.extend([item] if isinstance(item, str) else item)

    unknown = sorted(set(required_list) - KNOWN_PERMISSIONS)
    if not required_list or unknown:
        raise ValueError(f"Unknown permission(s): {unknown or 'none given'}")

    async def _checker(
        membership: CompanyMembership = Depends(get_current_membership),
    ) -> CompanyMembership:
        role = (membership.role or "").strip().upper()
        if role == ROLE_OWNER:
            return membership

        grants = effective_permissions(role=role, extra=membership.permissions)
        missing = [p for p in required_list if not is_permitted(role=role, grants=grants, required=p)]
        if missing:
            logger.info(
                "Permission denied for user %s (%s) in company %s: missing %s",
                membership.user_id,
                role or "no role",
                membership.company_id,
                missing,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "rbac_forbidden",
                    "message": "You do not have permission to perform this action.",
                    "required": required_list,
                    "missing": missing,
                    "role": role,
                },
            )

        return membership

    return _checker
