"""
Push notification service.

Manages device subscriptions and dispatches metadata-only notifications for
committed messages. Notifications never carry message content; they only
tell the client there is something new to fetch.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cipherpost.core.database import run_in_transaction
from cipherpost.core.exceptions import InvalidRequestError, NotFoundError
from cipherpost.core.ids import next_id
from cipherpost.core.push_channel import PushChannel, PushResult
from cipherpost.models.push_subscription import UserPushSubscription
from cipherpost.models.user import User
from cipherpost.repositories.push_subscription_repo import PushSubscriptionRepository
from cipherpost.services.message_service import FanoutResult

logger = logging.getLogger(__name__)


class PushSubscriptionService:
    """Service for push subscription management."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.subscription_repo = PushSubscriptionRepository(db)

    async def subscribe(
        self,
        user: User,
        endpoint: str,
        p256dh: str,
        auth: str
    ) -> UserPushSubscription:
        """
        Register a device endpoint for a user.

        Registering an endpoint the user already holds returns the existing
        subscription unchanged.

        Raises:
            InvalidRequestError: If any field is empty
        """
        user_id = user.id
        endpoint = (endpoint or "").strip()
        if not endpoint or not p256dh or not auth:
            raise InvalidRequestError("Endpoint, p256dh and auth are required")

        existing = await self.subscription_repo.get_by_endpoint(user_id, endpoint)
        if existing:
            return existing

        async def _subscribe() -> UserPushSubscription:
            return await self.subscription_repo.create(
                id=next_id(),
                user_id=user_id,
                endpoint=endpoint,
                p256dh=p256dh,
                auth=auth,
            )

        try:
            subscription = await run_in_transaction(self.db, _subscribe)
        except IntegrityError:
            # Same device registered concurrently
            existing = await self.subscription_repo.get_by_endpoint(user_id, endpoint)
            if not existing:
                raise
            return existing

        logger.info("User %s registered push subscription %s", user_id, subscription.id)
        return subscription

    async def unsubscribe(self, user: User, subscription_id: int) -> None:
        """
        Remove one of the user's own subscriptions.

        Raises:
            NotFoundError: No such subscription owned by the user
        """
        user_id = user.id

        async def _unsubscribe() -> None:
            subscription = await self.subscription_repo.get_for_user(subscription_id, user_id)
            if not subscription:
                raise NotFoundError("Push subscription not found")
            await self.subscription_repo.delete(subscription_id)

        await run_in_transaction(self.db, _unsubscribe)
        logger.info("User %s removed push subscription %s", user_id, subscription_id)

    async def list_subscriptions(self, user: User) -> List[UserPushSubscription]:
        return await self.subscription_repo.list_for_user(user.id)


@dataclass
class DispatchReport:
    """Per-dispatch tally of delivery outcomes."""
    delivered: int = 0
    gone: int = 0
    failed: int = 0
    skipped: bool = False

    @property
    def attempted(self) -> int:
        return self.delivered + self.gone + self.failed


def build_notification_metadata(result: FanoutResult) -> Dict[str, Any]:
    """Metadata telling a client which message to fetch."""
    return {
        "type": "message",
        "message_id": str(result.message_id),
        "group_id": str(result.group_id),
    }


class PushDispatcher:
    """
    Sends notifications for a committed fanout.

    Runs after the sender's transaction, in its own session, so a slow or
    failing push channel never affects the send. Each subscription is sent
    independently: one failure does not stop the others.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        channel: Optional[PushChannel]
    ):
        self.session_factory = session_factory
        self.channel = channel

    async def _send_one(
        self,
        subscription: UserPushSubscription,
        metadata: Dict[str, Any]
    ) -> PushResult:
        try:
            return await self.channel.send(subscription, metadata)
        except Exception:
            logger.exception("Push channel failed for subscription %s", subscription.id)
            return PushResult.TRANSIENT_FAILURE

    async def dispatch(self, result: FanoutResult) -> DispatchReport:
        """
        Notify every recipient except the sender on all their devices.

        Subscriptions the channel reports gone are deleted.

        Args:
            result: Committed fanout

        Returns:
            DispatchReport with delivered / gone / failed counts
        """
        if self.channel is None:
            logger.info("Push disabled, skipping dispatch for message %s", result.message_id)
            return DispatchReport(skipped=True)

        recipient_ids = [user_id for user_id in result.recipient_ids if user_id != result.source_id]
        report = DispatchReport()
        if not recipient_ids:
            return report

        metadata = build_notification_metadata(result)

        async with self.session_factory() as db:
            subscription_repo = PushSubscriptionRepository(db)
            subscriptions = await subscription_repo.list_for_users(recipient_ids)

            outcomes = await asyncio.gather(
                *(self._send_one(subscription, metadata) for subscription in subscriptions)
            )

            gone_ids = []
            for subscription, outcome in zip(subscriptions, outcomes):
                if outcome is PushResult.DELIVERED:
                    report.delivered += 1
                elif outcome is PushResult.GONE:
                    report.gone += 1
                    gone_ids.append(subscription.id)
                    logger.info(
                        "Push subscription %s is gone, deleting", subscription.id
                    )
                else:
                    report.failed += 1
                    logger.warning(
                        "Push delivery to subscription %s failed transiently", subscription.id
                    )

            if gone_ids:
                await run_in_transaction(db, lambda: subscription_repo.delete_many(gone_ids))

        logger.info(
            "Dispatched message %s: delivered=%d gone=%d failed=%d",
            result.message_id, report.delivered, report.gone, report.failed
        )
        return report
