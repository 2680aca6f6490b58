"""
Push subscription API routes.
"""
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import get_db
from cipherpost.dependencies import get_current_user
from cipherpost.models.user import User
from cipherpost.schemas.push_subscription import PushSubscriptionCreate, PushSubscriptionResponse
from cipherpost.services.push_service import PushSubscriptionService

router = APIRouter()


@router.post(
    "",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a device for push notifications"
)
async def subscribe(
    data: PushSubscriptionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Registering the same endpoint again returns the existing subscription."""
    service = PushSubscriptionService(db)
    return await service.subscribe(current_user, data.endpoint, data.p256dh, data.auth)


@router.get("", response_model=List[PushSubscriptionResponse], summary="List my push subscriptions")
async def list_subscriptions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PushSubscriptionService(db)
    return await service.list_subscriptions(current_user)


@router.delete(
    "/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a push subscription"
)
async def unsubscribe(
    subscription_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PushSubscriptionService(db)
    await service.unsubscribe(current_user, subscription_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
