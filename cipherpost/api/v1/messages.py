"""
Message API routes that are not scoped to a single group.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import get_db
from cipherpost.dependencies import get_current_user
from cipherpost.models.user import User
from cipherpost.schemas.message import MessageResponse
from cipherpost.services.message_service import MessageService

router = APIRouter()


@router.get("/inbox", response_model=List[MessageResponse], summary="Latest message of each group")
async def inbox(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The most recent message of every group you receive messages in."""
    service = MessageService(db)
    messages = await service.inbox(current_user)
    return [MessageResponse.from_received(message) for message in messages]
