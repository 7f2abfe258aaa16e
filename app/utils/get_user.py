from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.db import get_db
from app.core.security import decode_access_token
from app.core.exceptions import Unauthorized, PermissionDenied
from app.constants.roles import ALL_ROLES
from app.models.users.user_models import User
from app.utils.logger import get_logger

logger = get_logger("auth.guard")

BEARER_PREFIX = "Bearer "


def _bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        logger.warning("Missing bearer token")
        raise Unauthorized("Invalid authorization header")

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthorized("Invalid authorization header")
    return token


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the acting admin, staff member or artisan from the access token.
    The user is stashed on request.state so access logs can name the actor.
    """
    payload = decode_access_token(_bearer_token(authorization))

    user = await db.scalar(select(User).where(User.username == payload["sub"]))

    if not user or not user.is_active:
        logger.warning("Token user %s unknown or inactive", payload["sub"])
        raise Unauthorized("User not found or inactive")

    if user.token_version != payload["token_version"]:
        logger.warning("Token version mismatch for user %s", user.id)
        raise Unauthorized("Session expired")

    if (user.role or "").lower() not in ALL_ROLES:
        logger.warning("User %s has unknown role %s", user.id, user.role)
        raise PermissionDenied(f"Role '{user.role}' has no access to this service")

    request.state.user = user
    return user
