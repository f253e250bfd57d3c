from __future__ import annotations

from datetime import datetime

from sqla_preloads import Entity, column, relation


class Media(Entity):
    __tablename__ = "media"

    id: int | None = column(primary_key=True, ignored=True)
    path: str = column(default="")
    created_at: datetime | None = column(server_default="CURRENT_TIMESTAMP")


class Partner(Entity):
    __tablename__ = "partners"

    id: int | None = column(primary_key=True, ignored=True)
    name: str = column(default="")


class APIKey(Entity):
    __tablename__ = "api_keys"

    id: int | None = column(primary_key=True, ignored=True)
    key: str = column(default="")
    partner_id: int | None = column()

    # relationships
    partner: Partner | None = relation()


class User(Entity):
    __tablename__ = "users"

    id: int | None = column(primary_key=True, ignored=True)
    username: str = column(default="")
    is_active: bool = column(default=True)
    api_key_id: int | None = column()
    avatar_id: int | None = column()
    created_at: datetime | None = column(ignored=True)
    updated_at: datetime | None = column(server_default="CURRENT_TIMESTAMP")
    deleted_at: datetime | None = column()

    # relationships
    api_key: APIKey | None = relation()
    avatar: Media | None = relation()
    articles: list[Article] = relation(fk="author_id", default_factory=list)
    comments: list[Comment] = relation(default_factory=list)


class Tag(Entity):
    __tablename__ = "tags"

    id: int | None = column(primary_key=True, ignored=True)
    name: str = column(default="")


class Article(Entity):
    __tablename__ = "articles"

    id: int | None = column(primary_key=True, ignored=True)
    title: str = column(default="")
    author_id: int | None = column()
    reviewer_id: int | None = column()
    main_tag_id: int | None = column()
    is_published: bool = column(default=True)

    # relationships
    author: User | None = relation()
    reviewer: User | None = relation()
    main_tag: Tag | None = relation()
    comments: list[Comment] = relation(default_factory=list)


class Comment(Entity):
    __tablename__ = "comments"

    id: int | None = column(primary_key=True, ignored=True)
    user_id: int | None = column()
    article_id: int | None = column()
    content: str = column(default="")

    # relationships
    user: User | None = relation()
    article: Article | None = relation()


class Category(Entity):
    __tablename__ = "categories"

    id: int | None = column(primary_key=True, ignored=True)
    name: str = column(default="")
    parent_id: int | None = column()

    # relationships
    parent: Category | None = relation()
    children: list[Category] = relation(fk="parent_id", default_factory=list)


class Sample(Entity):
    __tablename__ = "samples"

    id: int | None = column(primary_key=True, ignored=True)
    a: str = column(default="")
    b: str = column(default="")
    c: str | None = column(ignored=True)


class Event(Entity):
    __tablename__ = "events"

    id: int | None = column(primary_key=True, ignored=True)
    created_at: datetime | None = column(ignored=True)
