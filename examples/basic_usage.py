"""Basic sqla-preloads usage.

Declares three entities, saves a few rows into an in-memory SQLite
database and preloads nested associations. Run with
``python examples/basic_usage.py``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqla_preloads import (
    Entity,
    Selector,
    column,
    find_by_params,
    get_by_params,
    preload,
    relation,
    save,
    soft_delete,
)


class Author(Entity):
    __tablename__ = "authors"

    id: int | None = column(primary_key=True, ignored=True)
    name: str = column(default="")
    created_at: datetime | None = column(server_default="CURRENT_TIMESTAMP")
    deleted_at: datetime | None = column()

    posts: list[Post] = relation(default_factory=list)


class Post(Entity):
    __tablename__ = "posts"

    id: int | None = column(primary_key=True, ignored=True)
    title: str = column(default="")
    author_id: int | None = column()

    author: Author | None = relation()
    notes: list[Note] = relation(default_factory=list)


class Note(Entity):
    __tablename__ = "notes"

    id: int | None = column(primary_key=True, ignored=True)
    post_id: int | None = column()
    body: str = column(default="")


# ── 1. Connections ───────────────────────────────────────────────────

# Two separate in-memory databases; only the master gets the tables
selector = Selector.from_urls({"master": "sqlite://", "replica": "sqlite://"})
db = selector.using("master")


def setup() -> None:
    for ddl in (
        "CREATE TABLE authors (id INTEGER PRIMARY KEY, name TEXT NOT NULL, "
        "created_at TIMESTAMP, deleted_at TIMESTAMP)",
        "CREATE TABLE posts (id INTEGER PRIMARY KEY, title TEXT NOT NULL, author_id INTEGER)",
        "CREATE TABLE notes (id INTEGER PRIMARY KEY, post_id INTEGER, body TEXT NOT NULL)",
    ):
        db.execute(ddl, {})


# ── 2. Writes ────────────────────────────────────────────────────────


def seed() -> list[Author]:
    authors = [Author(name="ada"), Author(name="linus")]
    for author in authors:
        save(db, author)

    for n in range(6):
        post = Post(title=f"post {n}", author_id=authors[n % 2].id)
        save(db, post)
        if n < 2:
            save(db, Note(post_id=post.id, body=f"note on {post.title}"))

    return authors


# ── 3. Reads and preloads ────────────────────────────────────────────


def show_posts() -> None:
    posts = find_by_params(db, Post, {})

    # 2 queries for every post: one for authors, one for notes
    queries = preload(db, posts, "author", "notes")
    for query in queries:
        print(query)

    for post in posts:
        author = post.author.name if post.author else "-"
        print(f"{post.title} by {author}, {len(post.notes)} note(s)")


def show_author(name: str) -> None:
    # the replica has no tables, the call falls back to the master
    author = selector.retry_master(lambda driver: get_by_params(driver, Author, {"name": name}))
    preload(db, author, "posts.notes")
    print(author, [post.title for post in author.posts])


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    setup()
    authors = seed()
    show_posts()
    show_author("ada")

    soft_delete(db, authors[1], "deleted_at")
    print(authors[1].deleted_at)

    for error in selector.close():
        print(f"close failed: {error}")


if __name__ == "__main__":
    main()
