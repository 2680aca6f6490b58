"""
Dependency injection for FastAPI routes.
Provides reusable dependencies for authentication and push dispatch.
"""
from typing import Any, Dict, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import AsyncSessionLocal, get_db
from cipherpost.core.push_channel import get_push_channel
from cipherpost.core.security import SecurityException, decode_token, extract_token_from_header
from cipherpost.models.user import User
from cipherpost.repositories.user_repo import UserRepository
from cipherpost.services.push_service import PushDispatcher


async def get_token_claims(
    authorization: Optional[str] = Header(None)
) -> Dict[str, Any]:
    """
    Dependency returning the verified claims of the bearer token.

    Raises:
        SecurityException: 401 if the header is missing or the token invalid
    """
    if not authorization:
        raise SecurityException("Missing authorization header")

    token = extract_token_from_header(authorization)
    return decode_token(token)


async def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get the enrolled user behind the bearer token.

    Raises:
        SecurityException: 401 if the identity has not enrolled yet

    Example:
        ```python
        @router.get("/me")
        async def me(current_user: User = Depends(get_current_user)):
            return current_user
        ```
    """
    user = await UserRepository(db).get_by_sub(str(claims["sub"]))
    if not user:
        raise SecurityException("User is not enrolled")
    return user


def get_push_dispatcher() -> PushDispatcher:
    """Dependency building the push dispatcher for background delivery."""
    return PushDispatcher(session_factory=AsyncSessionLocal, channel=get_push_channel())
