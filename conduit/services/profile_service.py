"""
Profile service: public profiles and the follow relationship.

``following`` is always relative to the viewer: it is false for anonymous
callers and for users looking at their own profile.
"""
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.auth.dependencies import Principal
from conduit.errors import NotFound
from conduit.models import Follow, User
from conduit.services.relationships import RelationshipToggle

follows = RelationshipToggle(
    Follow,
    actor_column="following_user_id",
    target_column="followed_user_id",
    allow_self=False,
)


def profile_to_dict(user, following) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": bool(following),
    }


def following_clause(viewer: Principal | None, user_id_column):
    """Boolean column: does *viewer* follow the user in *user_id_column*."""
    if viewer is None:
        return false()
    return follows.exists_clause(viewer.user_id, user_id_column)


def _target_query(username: str):
    return select(User.user_id, User.username, User.bio, User.image).where(User.username == username)


async def get_profile(db: AsyncSession, username: str, viewer: Principal | None) -> dict:
    q = select(
        User.username,
        User.bio,
        User.image,
        following_clause(viewer, User.user_id).label("following"),
    ).where(User.username == username)
    row = (await db.execute(q)).one_or_none()
    if row is None:
        raise NotFound()
    return profile_to_dict(row, row.following)


async def follow_user(db: AsyncSession, principal: Principal, username: str) -> dict:
    """Follow *username*.  Following someone twice is a no-op; following yourself is 403."""
    target = await follows.create(db, principal.user_id, _target_query(username))
    return profile_to_dict(target, following=True)


async def unfollow_user(db: AsyncSession, principal: Principal, username: str) -> dict:
    """Stop following *username*.  Unfollowing someone you don't follow is a no-op."""
    target = await follows.remove(db, principal.user_id, _target_query(username))
    return profile_to_dict(target, following=False)
