from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth.dependencies import Principal, get_current_user, get_password_hasher, get_token_codec
from conduit.auth.passwords import PasswordHasher
from conduit.auth.tokens import TokenCodec
from conduit.database import get_db
from conduit.schemas import LoginRequest, RegisterRequest, UpdateUserRequest
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])

@router.post("/users", status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: TokenCodec = Depends(get_token_codec),
):
    return {"user": await user_service.register(db, body.user, hasher, codec)}

@router.post("/users/login")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: TokenCodec = Depends(get_token_codec),
):
    return {"user": await user_service.login(db, body.user, hasher, codec)}

@router.get("/user")
async def current_user(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
):
    return {"user": await user_service.get_current_user(db, principal, codec)}

@router.put("/user")
async def update_user(
    body: UpdateUserRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    codec: TokenCodec = Depends(get_token_codec),
):
    return {"user": await user_service.update_user(db, principal, body.user, hasher, codec)}
