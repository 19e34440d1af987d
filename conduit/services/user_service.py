"""
User service: registration, login and the caller's own account.

Password hashing runs on the PasswordHasher's worker pool; nothing here
blocks the event loop.  Username/email uniqueness is enforced by the
database and reported through conduit.constraints as 422s on the
offending field.
"""
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.auth.dependencies import Principal
from conduit.auth.passwords import PasswordHasher
from conduit.auth.tokens import TokenCodec
from conduit.config import settings
from conduit.constraints import constraint_errors
from conduit.database import transaction
from conduit.errors import NotFound, Unauthenticated, ValidationFailed
from conduit.models import User
from conduit.schemas import UserLogin, UserRegistration, UserUpdate

logger = logging.getLogger(__name__)


def _user_to_dict(user, token: str) -> dict:
    """Serialise a User (ORM instance or row) together with a session token."""
    return {
        "email": user.email,
        "token": token,
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
    }


async def register(
    db: AsyncSession,
    data: UserRegistration,
    hasher: PasswordHasher,
    codec: TokenCodec,
) -> dict:
    password_hash = await hasher.hash(data.password)

    async with transaction(db):
        user = User(
            username=data.username,
            email=data.email,
            password_hash=password_hash,
        )
        db.add(user)
        with constraint_errors.intercept():
            await db.flush()

    return _user_to_dict(user, codec.issue(user.user_id))


async def login(
    db: AsyncSession,
    data: UserLogin,
    hasher: PasswordHasher,
    codec: TokenCodec,
) -> dict:
    """
    Exchange email + password for a fresh token.

    A wrong password is always a 401.  An unknown email is a 422 on the
    ``email`` field unless ``LOGIN_REVEALS_UNKNOWN_EMAIL`` is turned off;
    the 422 lets callers probe which emails are registered.
    """
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()
    if user is None:
        if settings.LOGIN_REVEALS_UNKNOWN_EMAIL:
            raise ValidationFailed({"email": ["does not exist"]})
        raise Unauthenticated()

    if not await hasher.verify(data.password, user.password_hash):
        logger.debug("login rejected for user_id=%s: wrong password", user.user_id)
        raise Unauthenticated()

    return _user_to_dict(user, codec.issue(user.user_id))


async def _load(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        # Valid token, but the account is gone.
        raise NotFound()
    return user


async def get_current_user(db: AsyncSession, principal: Principal, codec: TokenCodec) -> dict:
    user = await _load(db, principal.user_id)
    return _user_to_dict(user, codec.issue(user.user_id))


async def update_user(
    db: AsyncSession,
    principal: Principal,
    data: UserUpdate,
    hasher: PasswordHasher,
    codec: TokenCodec,
) -> dict:
    """Partially update the caller's account; omitted fields are kept."""
    password_hash = await hasher.hash(data.password) if data.password is not None else None

    changes = {
        "username": data.username,
        "email": data.email,
        "password_hash": password_hash,
        "bio": data.bio,
        "image": data.image,
    }
    values = {name: value for name, value in changes.items() if value is not None}

    users = User.__table__
    async with transaction(db):
        if values:
            stmt = (
                update(users)
                .where(users.c.user_id == principal.user_id)
                .values(values)
                .returning(*users.c)
            )
        else:
            stmt = select(*users.c).where(users.c.user_id == principal.user_id)
        with constraint_errors.intercept():
            row = (await db.execute(stmt)).one_or_none()
        if row is None:
            raise NotFound()

    return _user_to_dict(row, codec.issue(row.user_id))
