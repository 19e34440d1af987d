from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth.dependencies import Principal, get_current_user, get_current_user_optional
from conduit.database import get_db
from conduit.services import profile_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

@router.get("/{username}")
async def get_profile(
    username: str,
    viewer: Optional[Principal] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.get_profile(db, username, viewer)}

@router.post("/{username}/follow")
async def follow_user(
    username: str,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.follow_user(db, principal, username)}

@router.delete("/{username}/follow")
async def unfollow_user(
    username: str,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.unfollow_user(db, principal, username)}
