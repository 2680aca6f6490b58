"""
User service: the identity directory.

Users are enrolled from identity-provider claims plus the public key the
client generated; afterwards they are looked up by id, subject or handle.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import run_in_transaction
from cipherpost.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from cipherpost.core.ids import next_id
from cipherpost.models.user import User
from cipherpost.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "email", "phone_number", "given_name", "family_name")


class UserService:
    """Service for identity directory operations."""

    def __init__(self, db: AsyncSession):
        """
        Initialize user service.

        Args:
            db: Database session
        """
        self.db = db
        self.user_repo = UserRepository(db)

    async def get_user(self, user_id: int) -> User:
        """
        Get a user by id.

        Raises:
            NotFoundError: If no such user exists
        """
        user = await self.user_repo.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def find_by_handle(self, handle: str) -> User:
        """
        Resolve an email address or phone number to a user.

        Raises:
            NotFoundError: If no user owns the handle
        """
        handle = handle.strip()
        if not handle:
            raise InvalidRequestError("Handle must not be empty")

        user = await self.user_repo.find_by_handle(handle)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_by_sub(self, sub: str) -> Optional[User]:
        """Get the enrolled user for an identity-provider subject, if any."""
        return await self.user_repo.get_by_sub(sub)

    async def enroll(
        self,
        claims: Dict[str, Any],
        public_key: str,
        display_name: Optional[str] = None
    ) -> User:
        """
        Create the user record for an authenticated identity.

        Args:
            claims: Verified token claims
            public_key: Client public key peers will encrypt content with
            display_name: Optional display name

        Returns:
            Created user

        Raises:
            InvalidRequestError: Missing claim or empty public key
            ConflictError: Subject already enrolled or a handle already taken
        """
        missing = [claim for claim in REQUIRED_CLAIMS if not str(claims.get(claim) or "").strip()]
        if missing:
            raise InvalidRequestError(f"Missing identity claims: {', '.join(missing)}")
        if not public_key or not public_key.strip():
            raise InvalidRequestError("Public key must not be empty")

        sub = str(claims["sub"])
        email = str(claims["email"]).strip().lower()
        phone_number = str(claims["phone_number"]).strip()

        if await self.user_repo.get_by_sub(sub):
            raise ConflictError("User is already enrolled")
        if await self.user_repo.get_by_email(email) or await self.user_repo.get_by_phone_number(phone_number):
            raise ConflictError("Email or phone number is already registered")

        async def _create() -> User:
            return await self.user_repo.create(
                id=next_id(),
                sub=sub,
                email=email,
                phone_number=phone_number,
                first_name=str(claims["given_name"]).strip(),
                last_name=str(claims["family_name"]).strip(),
                display_name=display_name,
                public_key=public_key.strip(),
            )

        try:
            user = await run_in_transaction(self.db, _create)
        except IntegrityError:
            # Lost a race with a concurrent enrollment
            raise ConflictError("User is already enrolled")

        logger.info("Enrolled user %s", user.id)
        return user

    async def rotate_public_key(self, user: User, public_key: str) -> User:
        """
        Replace a user's public key.

        Content already encrypted under the old key is left untouched.
        """
        if not public_key or not public_key.strip():
            raise InvalidRequestError("Public key must not be empty")

        user_id = user.id

        async def _rotate() -> User:
            current = await self.get_user(user_id)
            current.public_key = public_key.strip()
            await self.db.flush()
            return current

        user = await run_in_transaction(self.db, _rotate)
        logger.info("Rotated public key of user %s", user_id)
        return user

    async def update_display_name(self, user: User, display_name: Optional[str]) -> User:
        """Set or clear (empty/None) a user's display name."""
        value = display_name.strip() if display_name else None

        user_id = user.id

        async def _update() -> User:
            current = await self.get_user(user_id)
            current.display_name = value or None
            await self.db.flush()
            return current

        return await run_in_transaction(self.db, _update)
