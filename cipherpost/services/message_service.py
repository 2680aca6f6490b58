"""
Message service: per-recipient fanout and message retrieval.

The server is a blind relay. The sending client encrypts the message once
for every current member of the group under that member's public key; the
service checks the recipient set against the membership and stores every
ciphertext in one transaction, or nothing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.config import settings
from cipherpost.core.database import run_in_transaction
from cipherpost.core.exceptions import (
    ConflictError,
    ForbiddenError,
    IncompleteFanoutError,
    InvalidRequestError,
    NotFoundError,
)
from cipherpost.core.ids import next_id
from cipherpost.models.message import Message
from cipherpost.models.user import User
from cipherpost.repositories.group_repo import GroupRepository, GroupMemberRepository
from cipherpost.repositories.message_repo import MessageRepository
from cipherpost.repositories.message_request_repo import MessageRequestRepository

logger = logging.getLogger(__name__)

MAX_IDEMPOTENCY_KEY_LENGTH = 255


@dataclass
class FanoutResult:
    """Outcome of a committed send, consumed by push dispatch."""
    message_id: int
    group_id: int
    source_id: int
    created_at: datetime
    recipient_ids: List[int] = field(default_factory=list)
    idempotency_key: Optional[str] = None
    replayed: bool = False


@dataclass
class ReceivedMessage:
    """A message as seen by one recipient: metadata plus their own ciphertext."""
    message_id: int
    group_id: int
    source_id: int
    created_at: datetime
    content: bytes

    @classmethod
    def from_row(cls, message: Message, content: bytes) -> "ReceivedMessage":
        return cls(
            message_id=message.id,
            group_id=message.group_id,
            source_id=message.source_id,
            created_at=message.created_at,
            content=content,
        )

    def __repr__(self) -> str:
        return f"<ReceivedMessage(message_id={self.message_id}, group_id={self.group_id})>"


class MessageService:
    """Service for message operations."""

    def __init__(self, db: AsyncSession):
        """
        Initialize message service.

        Args:
            db: Database session
        """
        self.db = db
        self.message_repo = MessageRepository(db)
        self.group_repo = GroupRepository(db)
        self.member_repo = GroupMemberRepository(db)
        self.request_repo = MessageRequestRepository(db)

    async def _replay(self, message: Message, group_id: int) -> FanoutResult:
        if message.group_id != group_id:
            raise ConflictError("Idempotency key already used in another group")

        recipient_ids = await self.message_repo.get_recipient_ids(message.id)
        logger.info("Replayed message %s for idempotency key", message.id)
        return FanoutResult(
            message_id=message.id,
            group_id=message.group_id,
            source_id=message.source_id,
            created_at=message.created_at,
            recipient_ids=recipient_ids,
            idempotency_key=message.idempotency_key,
            replayed=True,
        )

    async def send_message(
        self,
        group_id: int,
        source: User,
        ciphertexts: Mapping[int, bytes],
        idempotency_key: Optional[str] = None
    ) -> FanoutResult:
        """
        Fan a message out to every current member of a group.

        The group row is locked for share before membership is read, so a
        concurrent membership change waits for this send (or this send waits
        for it) and the membership snapshot cannot go stale before commit.

        A repeated idempotency key replays the original message, but only
        once the sender has passed the same group and membership checks as a
        fresh send.

        Args:
            group_id: Target group
            source: Sending user (must be a member)
            ciphertexts: Recipient user id -> ciphertext, covering exactly the
                current members including the sender
            idempotency_key: Optional client key; a repeat returns the original

        Returns:
            FanoutResult with the message id and recipients

        Raises:
            InvalidRequestError: No ciphertexts, an empty one, or an oversized key
            NotFoundError: Group does not exist
            ForbiddenError: Sender not a member, or the group's request is unapproved
            ConflictError: Idempotency key was already used in another group
            IncompleteFanoutError: Recipients differ from the current membership
        """
        source_id = source.id

        if not ciphertexts:
            raise InvalidRequestError("At least one ciphertext is required")
        if any(not isinstance(content, bytes) or not content for content in ciphertexts.values()):
            raise InvalidRequestError("Ciphertexts must be non-empty bytes")
        if idempotency_key is not None and not (0 < len(idempotency_key) <= MAX_IDEMPOTENCY_KEY_LENGTH):
            raise InvalidRequestError("Idempotency key must be 1-255 characters")

        contents: Dict[int, bytes] = dict(ciphertexts)

        async def _fanout() -> FanoutResult:
            group = await self.group_repo.lock_for_share(group_id)
            if not group:
                raise NotFoundError("Group not found")

            if group.message_request_id is not None:
                request = await self.request_repo.get(group.message_request_id)
                if not request or not request.is_approved:
                    raise ForbiddenError("Group is not open for messaging")

            member_ids = set(await self.member_repo.get_member_ids(group_id))
            if source_id not in member_ids:
                raise ForbiddenError("Not a member of this group")

            if idempotency_key:
                existing = await self.message_repo.get_by_idempotency_key(source_id, idempotency_key)
                if existing:
                    return await self._replay(existing, group_id)

            supplied = set(contents)
            missing = member_ids - supplied
            unexpected = supplied - member_ids
            if missing or unexpected:
                raise IncompleteFanoutError(missing=missing, unexpected=unexpected)

            message = await self.message_repo.create(
                id=next_id(),
                group_id=group_id,
                source_id=source_id,
                idempotency_key=idempotency_key,
            )
            recipient_ids = sorted(member_ids)
            await self.message_repo.add_contents(
                message.id,
                {user_id: contents[user_id] for user_id in recipient_ids}
            )
            return FanoutResult(
                message_id=message.id,
                group_id=group_id,
                source_id=source_id,
                created_at=message.created_at,
                recipient_ids=recipient_ids,
                idempotency_key=idempotency_key,
            )

        try:
            result = await run_in_transaction(self.db, _fanout)
        except IntegrityError:
            if not idempotency_key:
                raise
            # A concurrent send with the same key won the unique constraint
            existing = await self.message_repo.get_by_idempotency_key(source_id, idempotency_key)
            if not existing:
                raise
            return await self._replay(existing, group_id)

        if not result.replayed:
            logger.info(
                "Message %s fanned out to %d recipients in group %s",
                result.message_id, len(result.recipient_ids), group_id
            )
        return result

    async def _require_member(self, group_id: int, user_id: int) -> None:
        if not await self.group_repo.exists(group_id):
            raise NotFoundError("Group not found")
        if not await self.member_repo.is_member(group_id, user_id):
            raise ForbiddenError("Not a member of this group")

    async def list_group_messages(
        self,
        group_id: int,
        user: User,
        before: Optional[int] = None,
        limit: int = 50
    ) -> List[ReceivedMessage]:
        """
        Page through a group's messages as seen by ``user``.

        Only the caller's own ciphertext is returned for each message.

        Args:
            group_id: Group ID
            user: Requesting member
            before: Message id cursor (exclusive)
            limit: Page size, capped by settings.message_page_size_max

        Returns:
            Messages newest first

        Raises:
            NotFoundError: Group does not exist
            ForbiddenError: User is not a member
        """
        await self._require_member(group_id, user.id)

        limit = max(1, min(limit, settings.message_page_size_max))
        rows = await self.message_repo.list_for_recipient(
            group_id, user.id, before=before, limit=limit
        )
        return [ReceivedMessage.from_row(message, content) for message, content in rows]

    async def inbox(self, user: User) -> List[ReceivedMessage]:
        """Latest message of each group addressed to the user, newest first."""
        rows = await self.message_repo.latest_per_group_for_recipient(user.id)
        return [ReceivedMessage.from_row(message, content) for message, content in rows]
