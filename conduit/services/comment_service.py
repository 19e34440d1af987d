"""
Comment service: comments on an article.

Comments cannot be edited.  Deleting one is gated on ownership exactly
like articles: only the comment's author may delete it, and the comment
must belong to the article named in the path.
"""
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.auth.dependencies import Principal
from conduit.database import transaction
from conduit.errors import NotFound
from conduit.models import Article, Comment
from conduit.schemas import CommentCreate
from conduit.services.ownership import OwnershipMutator
from conduit.services.profile_service import following_clause, profile_to_dict

comments = OwnershipMutator(Comment, id_column="comment_id")


def _comment_to_dict(comment: Comment, following_author) -> dict:
    return {
        "id": comment.comment_id,
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
        "updatedAt": (comment.updated_at or comment.created_at).isoformat() if comment.created_at else None,
        "body": comment.body,
        "author": profile_to_dict(comment.author, following_author),
    }


def _comment_query(viewer: Principal | None):
    return (
        select(Comment, following_clause(viewer, Comment.user_id).label("following_author"))
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )


async def _article_id(db: AsyncSession, slug: str):
    result = await db.execute(select(Article.article_id).where(Article.slug == slug))
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise NotFound()
    return article_id


async def list_comments(db: AsyncSession, slug: str, viewer: Principal | None) -> list[dict]:
    """Comments on the article, oldest first.  404 if the article does not exist."""
    article_id = await _article_id(db, slug)
    q = (
        _comment_query(viewer)
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at, Comment.comment_id)
    )
    return [_comment_to_dict(*row) for row in (await db.execute(q)).all()]


async def add_comment(
    db: AsyncSession,
    principal: Principal,
    slug: str,
    data: CommentCreate,
) -> dict:
    async with transaction(db):
        comment = Comment(
            body=data.body,
            article_id=await _article_id(db, slug),
            user_id=principal.user_id,
        )
        db.add(comment)
        await db.flush()

    row = (await db.execute(_comment_query(principal).where(Comment.comment_id == comment.comment_id))).one()
    return _comment_to_dict(*row)


async def delete_comment(db: AsyncSession, principal: Principal, slug: str, comment_id: int) -> None:
    criterion = and_(
        Comment.comment_id == comment_id,
        Comment.article_id.in_(select(Article.article_id).where(Article.slug == slug)),
    )
    await comments.delete(db, principal, criterion)
