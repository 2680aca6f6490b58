"""
User API routes.
Enrollment, the current user's profile and directory lookups.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cipherpost.core.database import get_db
from cipherpost.dependencies import get_current_user, get_token_claims
from cipherpost.models.user import User
from cipherpost.schemas.user import (
    CurrentUserResponse,
    PublicKeyUpdate,
    UserEnroll,
    UserResponse,
    UserUpdate,
)
from cipherpost.services.user_service import UserService

router = APIRouter()


@router.post(
    "",
    response_model=CurrentUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll the authenticated identity"
)
async def enroll(
    data: UserEnroll,
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db)
):
    """
    Create the user record for the token's identity.

    - **public_key**: Key peers will encrypt message content with
    - **display_name**: Optional display name
    """
    service = UserService(db)
    return await service.enroll(claims, data.public_key, display_name=data.display_name)


@router.get("/me", response_model=CurrentUserResponse, summary="Get current user")
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=CurrentUserResponse, summary="Update current user")
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.update_display_name(current_user, data.display_name)


@router.put("/me/public-key", response_model=CurrentUserResponse, summary="Rotate public key")
async def rotate_public_key(
    data: PublicKeyUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace the current user's public key.

    Messages already encrypted under the previous key are not re-encrypted.
    """
    service = UserService(db)
    return await service.rotate_public_key(current_user, data.public_key)


@router.get("/lookup", response_model=UserResponse, summary="Find a user by email or phone number")
async def lookup_user(
    handle: str = Query(..., min_length=1, max_length=255),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.find_by_handle(handle)


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = UserService(db)
    return await service.get_user(user_id)
