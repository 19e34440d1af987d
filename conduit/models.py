from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from conduit.database import Base

# Constraint names are part of the error contract: conduit.constraints maps
# them to field-level validation errors, so renaming one here means updating
# that table (and the Alembic revision) as well.


class Timestamped:
    """``created_at`` set by the database; ``updated_at`` null until the first update."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )


def _user_fk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)


def _article_fk(**kwargs) -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, ForeignKey("articles.article_id", ondelete="CASCADE"), nullable=False, **kwargs)


article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article_id", Uuid, ForeignKey("articles.article_id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------------
# Users and the follow graph
# ---------------------------------------------------------------------------

class User(Timestamped, Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="users_username_key"),
        UniqueConstraint("email", name="users_email_key"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # bcrypt, see conduit.auth.passwords
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # noload everywhere: services choose joinedload/selectinload explicitly.
    articles: Mapped[List[Article]] = relationship(back_populates="author", lazy="noload")


class Follow(Timestamped, Base):
    """``following_user_id`` follows ``followed_user_id``."""

    __tablename__ = "follows"
    __table_args__ = (
        # Leading follower column also serves "who do I follow" (the feed).
        PrimaryKeyConstraint("following_user_id", "followed_user_id", name="follows_pkey"),
        CheckConstraint("followed_user_id != following_user_id", name="user_cannot_follow_self"),
    )

    following_user_id: Mapped[uuid.UUID] = _user_fk()
    followed_user_id: Mapped[uuid.UUID] = _user_fk()


# ---------------------------------------------------------------------------
# Articles, tags and favorites
# ---------------------------------------------------------------------------

class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("name", name="tags_name_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    articles: Mapped[List[Article]] = relationship(
        secondary=article_tags, back_populates="tags", lazy="noload"
    )


class Article(Timestamped, Base):
    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("slug", name="articles_slug_key"),
        Index("ix_articles_created_at", "created_at"),
        Index("ix_articles_user_id_created_at", "user_id", "created_at"),
    )

    article_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(350), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    # Owner.  Never changes; only consulted to gate update/delete.
    user_id: Mapped[uuid.UUID] = _user_fk()

    author: Mapped[User] = relationship(back_populates="articles", lazy="noload")
    comments: Mapped[List[Comment]] = relationship(back_populates="article", lazy="noload")
    tags: Mapped[List[Tag]] = relationship(
        secondary=article_tags, back_populates="articles", lazy="noload"
    )


class ArticleFavorite(Timestamped, Base):
    """``user_id`` favorited ``article_id``.  Authors may favorite their own articles."""

    __tablename__ = "article_favorites"
    __table_args__ = (
        PrimaryKeyConstraint("article_id", "user_id", name="article_favorites_pkey"),
    )

    article_id: Mapped[uuid.UUID] = _article_fk()
    user_id: Mapped[uuid.UUID] = _user_fk()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class Comment(Timestamped, Base):
    __tablename__ = "comments"

    comment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    article_id: Mapped[uuid.UUID] = _article_fk(index=True)
    # Owner, as for Article.user_id.
    user_id: Mapped[uuid.UUID] = _user_fk()

    article: Mapped[Article] = relationship(back_populates="comments", lazy="noload")
    author: Mapped[User] = relationship(lazy="noload")
