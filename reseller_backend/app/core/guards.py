"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting settlement endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from reseller_backend.app.models.enums import AccountRole
from reseller_backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[AccountRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/settlements/confirm")
        async def confirm(current_user: dict = Depends(require_role([AccountRole.MASTER]))):
            ...

    Args:
        allowed_roles: List of AccountRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates the caller's role

    Raises:
        HTTPException 403 if the role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = AccountRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


class SettlementScope:
    """
    Decides which distributor's settlements a caller may see.

    Usage:
        scope = SettlementScope()

        @router.get("/settlements/confirmed")
        async def list_confirmed(current_user: dict = Depends(get_current_user), ...):
            distributor_id = scope.distributor_filter(current_user, requested_id)
    """

    def distributor_filter(
        self,
        current_user: dict,
        requested_distributor_id: Optional[int] = None
    ) -> Optional[int]:
        """
        Get the distributor id to filter settlement queries by.

        MASTER: the requested id, or None (no filtering)
        DISTRIBUTOR: always their own id; asking for another distributor is 403
        Other roles: 403

        Raises:
            HTTPException 403 for roles without settlement access
        """
        user_role = current_user.get("role")
        user_id = current_user.get("user_id")

        if user_role == AccountRole.MASTER.value:
            return requested_distributor_id

        if user_role == AccountRole.DISTRIBUTOR.value:
            if requested_distributor_id is not None and requested_distributor_id != user_id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Access denied. Distributors can only view their own settlements."
                )
            return user_id

        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Required role: MASTER, DISTRIBUTOR"
        )
