"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Articles are addressed by slug.  The slug is derived from the title on
  create and re-derived when the title changes; a collision with another
  article is a 422 on ``slug`` (``articles_slug_key``), never a silent
  suffix.
- Update and delete go through ``OwnershipMutator``: only the author may
  edit or remove an article, and the check runs under a row lock before
  anything is written.
- Favorites go through ``RelationshipToggle`` and are idempotent.
- ``favorited``, ``favoritesCount`` and ``author.following`` are computed
  in the same SELECT as the article with correlated subqueries, relative
  to the viewer (false for anonymous callers).
- The tag list is the only cached read; it is identical for every caller.
"""
import re
import uuid

from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.auth.dependencies import Principal
from conduit.cache import TAGS_KEY, cache
from conduit.config import settings
from conduit.constraints import constraint_errors
from conduit.database import transaction
from conduit.errors import NotFound
from conduit.models import Article, ArticleFavorite, Follow, Tag, User
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services.ownership import OwnershipMutator
from conduit.services.profile_service import following_clause, profile_to_dict
from conduit.services.relationships import RelationshipToggle, insert_ignoring_conflicts

articles = OwnershipMutator(Article, id_column="article_id")

favorites = RelationshipToggle(
    ArticleFavorite,
    actor_column="user_id",
    target_column="article_id",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """
    Return a URL-safe, lowercase slug derived from *text*.

    Apostrophes are dropped rather than treated as separators, so
    contractions stay whole: ``"It's as Easy as 1, 2, 3!"`` becomes
    ``"its-as-easy-as-1-2-3"``.
    """
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _article_to_dict(article: Article, favorited, favorites_count, following_author) -> dict:
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tagList": sorted(t.name for t in article.tags),
        "createdAt": _iso(article.created_at),
        # Never-edited articles report their creation time.
        "updatedAt": _iso(article.updated_at or article.created_at),
        "favorited": bool(favorited),
        "favoritesCount": int(favorites_count or 0),
        "author": profile_to_dict(article.author, following_author),
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _article_query(viewer: Principal | None):
    """
    SELECT producing ``(Article, favorited, favorites_count, following_author)``
    rows with author and tags eagerly loaded.
    """
    favorites_count = (
        select(func.count())
        .select_from(ArticleFavorite)
        .where(ArticleFavorite.article_id == Article.article_id)
        .correlate(Article)
        .scalar_subquery()
    )
    if viewer is None:
        favorited = false()
    else:
        favorited = favorites.exists_clause(viewer.user_id, Article.article_id)

    return (
        select(
            Article,
            favorited.label("favorited"),
            favorites_count.label("favorites_count"),
            following_clause(viewer, Article.user_id).label("following_author"),
        )
        .options(joinedload(Article.author), selectinload(Article.tags))
        # Rows may have been changed by Core UPDATEs in this session.
        .execution_options(populate_existing=True)
    )


async def _fetch_article(db: AsyncSession, viewer: Principal | None, criterion) -> dict:
    row = (await db.execute(_article_query(viewer).where(criterion))).one_or_none()
    if row is None:
        raise NotFound()
    return _article_to_dict(*row)


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag instances for *tag_names*, creating missing ones.  Concurrent
    creates of the same tag are absorbed by ON CONFLICT DO NOTHING.
    """
    if not tag_names:
        return []
    await db.execute(
        insert_ignoring_conflicts(db, Tag.__table__).values([{"name": name} for name in tag_names])
    )
    result = await db.execute(select(Tag).where(Tag.name.in_(tag_names)))
    return list(result.scalars().all())


async def _list(db: AsyncSession, viewer: Principal | None, filters: list, limit: int, offset: int) -> dict:
    count_q = select(func.count()).select_from(Article).where(*filters)
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        _article_query(viewer)
        .where(*filters)
        .order_by(Article.created_at.desc(), Article.article_id)
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(q)).all()
    return {
        "articles": [_article_to_dict(*row) for row in rows],
        "articlesCount": total,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    viewer: Principal | None,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """
    Return the most recent articles, optionally filtered by tag, author
    username, or the username of someone who favorited them.
    ``articlesCount`` is the total number of matches, not the page size.
    """
    filters = []
    if tag:
        filters.append(Article.tags.any(Tag.name == tag))
    if author:
        filters.append(Article.user_id.in_(select(User.user_id).where(User.username == author)))
    if favorited:
        filters.append(
            Article.article_id.in_(
                select(ArticleFavorite.article_id)
                .join(User, User.user_id == ArticleFavorite.user_id)
                .where(User.username == favorited)
            )
        )
    return await _list(db, viewer, filters, limit, offset)


async def feed_articles(
    db: AsyncSession,
    principal: Principal,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """Most recent articles written by users the caller follows."""
    followed = select(Follow.followed_user_id).where(Follow.following_user_id == principal.user_id)
    return await _list(db, principal, [Article.user_id.in_(followed)], limit, offset)


async def get_article(db: AsyncSession, slug: str, viewer: Principal | None) -> dict:
    return await _fetch_article(db, viewer, Article.slug == slug)


async def create_article(db: AsyncSession, principal: Principal, data: ArticleCreate) -> dict:
    async with transaction(db):
        article = Article(
            article_id=uuid.uuid4(),
            user_id=principal.user_id,
            slug=slugify(data.title),
            title=data.title,
            description=data.description,
            body=data.body,
        )
        tag_names = sorted({name.strip() for name in data.tag_list if name.strip()})
        article.tags.extend(await _resolve_tags(db, tag_names))
        db.add(article)
        with constraint_errors.intercept():
            await db.flush()

    if article.tags:
        await cache.invalidate_tags()
    return await _fetch_article(db, principal, Article.article_id == article.article_id)


async def update_article(
    db: AsyncSession, principal: Principal, slug: str, data: ArticleUpdate
) -> dict:
    """
    Partially update the caller's article.  A new title also moves the
    article to a new slug.
    """
    changes = {
        "slug": slugify(data.title) if data.title is not None else None,
        "title": data.title,
        "description": data.description,
        "body": data.body,
    }
    updated = await articles.update(db, principal, Article.slug == slug, changes)
    return await _fetch_article(db, principal, Article.article_id == updated.article_id)


async def delete_article(db: AsyncSession, principal: Principal, slug: str) -> None:
    await articles.delete(db, principal, Article.slug == slug)
    await cache.invalidate_tags()


async def favorite_article(db: AsyncSession, principal: Principal, slug: str) -> dict:
    target = await favorites.create(
        db, principal.user_id, select(Article.article_id).where(Article.slug == slug)
    )
    return await _fetch_article(db, principal, Article.article_id == target.article_id)


async def unfavorite_article(db: AsyncSession, principal: Principal, slug: str) -> dict:
    target = await favorites.remove(
        db, principal.user_id, select(Article.article_id).where(Article.slug == slug)
    )
    return await _fetch_article(db, principal, Article.article_id == target.article_id)


async def get_tags(db: AsyncSession) -> list[str]:
    """Distinct tags used by at least one article, sorted, cache-aside."""
    async def load() -> list[str]:
        q = select(Tag.name).where(Tag.articles.any()).order_by(Tag.name)
        return list((await db.execute(q)).scalars().all())

    return await cache.get_or_load(TAGS_KEY, load, ttl=settings.CACHE_TTL_TAGS)
