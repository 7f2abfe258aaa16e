from typing import Iterable

from fastapi import Depends

from app.core.exceptions import PermissionDenied
from app.utils.get_user import get_current_user


def require_role(roles: Iterable[str]):
    allowed = {r.lower() for r in roles}

    async def role_checker(user=Depends(get_current_user)):
        if user.role.lower() not in allowed:
            raise PermissionDenied(f"Role '{user.role}' cannot perform this action")
        return user

    return role_checker
