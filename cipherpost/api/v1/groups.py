"""
Group API routes.
Groups, memberships and the messages sent inside a group.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.config import settings
from cipherpost.core.database import get_db
from cipherpost.dependencies import get_current_user, get_push_dispatcher
from cipherpost.models.user import User
from cipherpost.schemas.group import (
    GroupCreate,
    GroupListResponse,
    GroupMemberAdd,
    GroupMemberUpdate,
    GroupResponse,
)
from cipherpost.schemas.message import (
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    MessageSendResponse,
)
from cipherpost.services.group_service import GroupService
from cipherpost.services.message_service import MessageService
from cipherpost.services.push_service import PushDispatcher

router = APIRouter()


@router.post(
    "",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a group"
)
async def create_group(
    data: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an ad-hoc group. You become its only admin.

    - **name**: Group name
    """
    service = GroupService(db)
    group = await service.create_ad_hoc(current_user, data.name)
    return GroupResponse.from_group(group)


@router.get("", response_model=GroupListResponse, summary="List my groups")
async def list_groups(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = GroupService(db)
    groups = await service.list_groups(current_user)
    return GroupListResponse(data=[GroupResponse.from_group(group) for group in groups])


@router.get("/{group_id}", response_model=GroupResponse, summary="Get a group")
async def get_group(
    group_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = GroupService(db)
    group = await service.get_group(group_id, current_user)
    return GroupResponse.from_group(group)


@router.post(
    "/{group_id}/members",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a member"
)
async def add_member(
    group_id: int,
    data: GroupMemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a user to the group (admins only).

    - **user_id**: User to add
    - **nickname**: Optional nickname inside the group
    """
    service = GroupService(db)
    group = await service.add_member(group_id, current_user, data.user_id, nickname=data.nickname)
    return GroupResponse.from_group(group)


@router.patch(
    "/{group_id}/members/{user_id}",
    response_model=GroupResponse,
    summary="Update a member"
)
async def update_member(
    group_id: int,
    user_id: int,
    data: GroupMemberUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Promote/demote a member (admins only) and/or set their nickname
    (the member themself or an admin).
    """
    service = GroupService(db)
    update_nickname = "nickname" in data.model_fields_set

    if data.is_admin is None and not update_nickname:
        group = await service.get_group(group_id, current_user)
    else:
        group = await service.update_member(
            group_id,
            current_user,
            user_id,
            is_admin=data.is_admin,
            nickname=data.nickname,
            update_nickname=update_nickname
        )

    return GroupResponse.from_group(group)


@router.delete(
    "/{group_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a member"
)
async def remove_member(
    group_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Leave the group (your own id) or remove someone else (admins only)."""
    service = GroupService(db)
    await service.remove_member(group_id, current_user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{group_id}/messages",
    response_model=MessageSendResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message"
)
async def send_message(
    group_id: int,
    data: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: PushDispatcher = Depends(get_push_dispatcher)
):
    """
    Send a message to every current member.

    - **ciphertexts**: One base64 ciphertext per current member (yourself included),
      each encrypted under that member's public key
    - **idempotency_key**: Optional key; resending with it returns the original message

    Returns 409 `incomplete_fanout` with the missing/unexpected ids when the
    recipients do not match the membership; refresh the group and retry.
    """
    service = MessageService(db)
    result = await service.send_message(
        group_id,
        current_user,
        data.decoded_ciphertexts(),
        idempotency_key=data.idempotency_key
    )

    if not result.replayed:
        background_tasks.add_task(dispatcher.dispatch, result)

    return MessageSendResponse.from_result(result)


@router.get(
    "/{group_id}/messages",
    response_model=MessageListResponse,
    summary="List group messages"
)
async def list_messages(
    group_id: int,
    before: Optional[int] = Query(None, description="Return messages older than this id"),
    limit: int = Query(50, ge=1, le=settings.message_page_size_max),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Messages newest first, each with only your own ciphertext."""
    service = MessageService(db)
    messages = await service.list_group_messages(group_id, current_user, before=before, limit=limit)

    has_more = len(messages) == limit
    return MessageListResponse(
        data=[MessageResponse.from_received(message) for message in messages],
        next_before=messages[-1].message_id if has_more else None,
        has_more=has_more,
    )
