from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth.dependencies import Principal, get_current_user, get_current_user_optional
from conduit.database import get_db
from conduit.dependencies import PaginationParams
from conduit.schemas import NewArticleRequest, NewCommentRequest, UpdateArticleRequest
from conduit.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

@router.get("")
async def list_articles(
    tag: Optional[str] = Query(None),
    author: Optional[str] = Query(None),
    favorited: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(),
    viewer: Optional[Principal] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db, viewer, tag, author, favorited, pagination.limit, pagination.offset
    )

# Declared before "/{slug}" so "feed" is not taken for a slug.
@router.get("/feed")
async def feed_articles(
    pagination: PaginationParams = Depends(),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.feed_articles(db, principal, pagination.limit, pagination.offset)

@router.post("", status_code=201)
async def create_article(
    body: NewArticleRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.create_article(db, principal, body.article)}

@router.get("/{slug}")
async def get_article(
    slug: str,
    viewer: Optional[Principal] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer)}

@router.put("/{slug}")
async def update_article(
    slug: str,
    body: UpdateArticleRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.update_article(db, principal, slug, body.article)}

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, principal, slug)

@router.post("/{slug}/favorite")
async def favorite_article(
    slug: str,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, principal, slug)}

@router.delete("/{slug}/favorite")
async def unfavorite_article(
    slug: str,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, principal, slug)}

@router.get("/{slug}/comments")
async def list_comments(
    slug: str,
    viewer: Optional[Principal] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.list_comments(db, slug, viewer)}

@router.post("/{slug}/comments", status_code=201)
async def add_comment(
    slug: str,
    body: NewCommentRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, principal, slug, body.comment)}

@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, principal, slug, comment_id)
