"""FastAPI authentication dependencies.

Access tokens are issued by the identity provider (HS256, shared secret);
this service only verifies them and resolves the `sub` claim to a user.
"""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.auth.roles import Role, has_role
from postwars.config import get_settings
from postwars.database import get_session
from postwars.db.models import User

_bearer = HTTPBearer()


def verify_token(token: str) -> dict:
    """Decode and verify an access token. Raises jwt.InvalidTokenError."""
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={"require": ["sub", "exp"]},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> User:
    """Extract and verify the bearer token, return the User model."""
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid subject") from e

    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_admin_user(user: User = Depends(get_current_user)) -> User:  # noqa: B008
    """Same as get_current_user but requires the ADMIN role."""
    if not has_role(user.role, Role.ADMIN):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
