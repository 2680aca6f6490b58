"""
Message request API routes.
Proposing contact and approving it.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import get_db
from cipherpost.dependencies import get_current_user
from cipherpost.models.user import User
from cipherpost.schemas.group import GroupResponse
from cipherpost.schemas.message_request import (
    MessageRequestApproveResponse,
    MessageRequestCreate,
    MessageRequestResponse,
)
from cipherpost.services.message_request_service import MessageRequestService
from cipherpost.services.user_service import UserService

router = APIRouter()


@router.post(
    "",
    response_model=MessageRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message request"
)
async def create_message_request(
    data: MessageRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Propose contact with another user.

    - **destination_id**: Destination user id, or
    - **handle**: Destination email address or phone number
    """
    destination_id = data.destination_id
    if destination_id is None:
        destination = await UserService(db).find_by_handle(data.handle)
        destination_id = destination.id

    service = MessageRequestService(db)
    return await service.create(current_user, destination_id)


@router.get(
    "/pending",
    response_model=List[MessageRequestResponse],
    summary="List requests awaiting my approval"
)
async def list_pending(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageRequestService(db)
    return await service.list_pending(current_user)


@router.get(
    "/sent",
    response_model=List[MessageRequestResponse],
    summary="List requests I have sent"
)
async def list_sent(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageRequestService(db)
    return await service.list_sent(current_user)


@router.get("/{request_id}", response_model=MessageRequestResponse, summary="Get a message request")
async def get_message_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageRequestService(db)
    return await service.get(request_id, current_user)


@router.post(
    "/{request_id}/approve",
    response_model=MessageRequestApproveResponse,
    summary="Approve a message request"
)
async def approve_message_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve a pending request addressed to me.

    Creates the two-person group both parties can message in.
    """
    service = MessageRequestService(db)
    request, group = await service.approve(request_id, current_user)
    return MessageRequestApproveResponse(
        request=MessageRequestResponse.model_validate(request),
        group=GroupResponse.from_group(group),
    )
