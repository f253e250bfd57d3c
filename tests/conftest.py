from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
import sqlalchemy as sa

from sqla_preloads import Driver, Entity, cache_clear, save

from .models import APIKey, Article, Category, Comment, Media, Partner, Tag, User
from .tables import metadata


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--db",
        default="sqlite",
        choices=["sqlite", "postgres"],
        help="Database backend to test against",
    )


@pytest.fixture(scope="session")
def db_backend(request: pytest.FixtureRequest) -> str:
    value: str = request.config.getoption("--db")

    return value


@pytest.fixture(scope="session")
def db_config(db_backend: str, tmp_path_factory: pytest.TempPathFactory) -> Iterator[str]:
    match db_backend:
        case "postgres":
            from testcontainers.postgres import PostgresContainer

            pg = PostgresContainer(image="postgres:latest")
            if os.name == "nt":
                pg.get_container_host_ip = lambda: "127.0.0.1"
            with pg:
                host = pg.get_container_host_ip()
                dsn = (
                    f"postgresql+psycopg://{pg.username}:{pg.password}"
                    f"@{host}:{pg.get_exposed_port(pg.port)}/{pg.dbname}"
                )
                yield dsn

        case "sqlite":
            tmp = tmp_path_factory.mktemp("db")
            yield f"sqlite:///{tmp}/test.db"


@pytest.fixture(scope="session")
def engine(db_config: str) -> Iterator[sa.Engine]:
    eng = sa.create_engine(db_config, echo=False)
    yield eng
    eng.dispose()


@pytest.fixture(scope="session")
def _create_tables(engine: sa.Engine) -> Iterator[None]:
    metadata.create_all(engine)
    yield
    metadata.drop_all(engine)


@pytest.fixture
def driver(engine: sa.Engine, _create_tables: None) -> Iterator[Driver]:
    yield Driver(engine, name="test")

    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def seed_data(driver: Driver) -> dict[str, list[Entity]]:
    acme = Partner(name="acme")
    save(driver, acme)

    key = APIKey(key="secret", partner_id=acme.id)
    save(driver, key)

    alice_avatar = Media(path="/avatars/alice.png")
    bob_avatar = Media(path="/avatars/bob.png")
    for media in (alice_avatar, bob_avatar):
        save(driver, media)

    alice = User(username="alice", api_key_id=key.id, avatar_id=alice_avatar.id)
    bob = User(username="bob", avatar_id=bob_avatar.id)
    charlie = User(username="charlie", is_active=False)
    for user in (alice, bob, charlie):
        save(driver, user)

    python = Tag(name="python")
    sql = Tag(name="sql")
    for tag in (python, sql):
        save(driver, tag)

    # 10 articles written by 3 distinct users, some reviewed and tagged
    authors = [alice, bob, charlie]
    articles = [
        Article(
            title=f"Article {n}",
            author_id=authors[n % 3].id,
            reviewer_id=alice.id if n % 2 == 0 else None,
            main_tag_id=python.id if n < 5 else None,
        )
        for n in range(10)
    ]
    for article in articles:
        save(driver, article)

    comments = [
        Comment(user_id=bob.id, article_id=articles[0].id, content="Great post!"),
        Comment(user_id=charlie.id, article_id=articles[0].id, content="Nice work"),
        Comment(user_id=alice.id, article_id=articles[1].id, content="Thanks"),
    ]
    for comment in comments:
        save(driver, comment)

    root = Category(name="root")
    save(driver, root)
    child1 = Category(name="child_1", parent_id=root.id)
    child2 = Category(name="child_2", parent_id=root.id)
    for child in (child1, child2):
        save(driver, child)
    grandchild = Category(name="grandchild", parent_id=child1.id)
    save(driver, grandchild)

    return {
        "partners": [acme],
        "api_keys": [key],
        "media": [alice_avatar, bob_avatar],
        "users": [alice, bob, charlie],
        "tags": [python, sql],
        "articles": articles,
        "comments": comments,
        "categories": [root, child1, child2, grandchild],
    }


@pytest.fixture(autouse=True)
def clear_lru_caches() -> Iterator[None]:
    yield
    cache_clear()
