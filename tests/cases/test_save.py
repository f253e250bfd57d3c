from __future__ import annotations

from sqla_preloads import Driver, get_by_params, save

from ..models import Event, Media, Sample, User


class TestInsert:
    def test_single_statement(self, driver: Driver) -> None:
        queries = save(driver, Sample(a="x", b="y"))

        assert len(queries) == 1
        assert queries[0].query == "INSERT INTO samples (a, b) VALUES (:a, :b) RETURNING id, c"
        assert queries[0].args == ("x", "y")
        assert queries[0].fetch_one

    def test_returning_assigns_generated_values(self, driver: Driver) -> None:
        sample = Sample(a="x", b="y")
        save(driver, sample)

        assert sample.id is not None
        assert sample.c == "c-default"

    def test_server_default_written_as_literal(self, driver: Driver) -> None:
        user = User(username="dora")
        queries = save(driver, user)

        assert queries[0].query == (
            "INSERT INTO users (username, is_active, api_key_id, avatar_id, updated_at, deleted_at) "
            "VALUES (:username, :is_active, :api_key_id, :avatar_id, CURRENT_TIMESTAMP, :deleted_at) "
            "RETURNING id, created_at, updated_at"
        )
        assert user.id is not None
        assert user.created_at is not None
        assert user.updated_at is not None

    def test_round_trip(self, driver: Driver) -> None:
        media = Media(path="/img/a.png")
        save(driver, media)

        assert get_by_params(driver, Media, {"id": media.id}) == media

    def test_distinct_keys(self, driver: Driver) -> None:
        first = Sample(a="1", b="1")
        second = Sample(a="2", b="2")
        save(driver, first)
        save(driver, second)

        assert first.id != second.id

    def test_queries_appended_to_given_list(self, driver: Driver) -> None:
        queries = save(driver, Sample(a="x", b="y"))
        returned = save(driver, Sample(a="z", b="w"), queries=queries)

        assert returned is queries
        assert len(queries) == 2

    def test_default_values_when_nothing_to_write(self, driver: Driver) -> None:
        event = Event()
        queries = save(driver, event)

        assert queries[0].query == "INSERT INTO events DEFAULT VALUES RETURNING id, created_at"
        assert event.id is not None
        assert event.created_at is not None


class TestUpdate:
    def test_single_statement_by_primary_key(self, driver: Driver) -> None:
        sample = Sample(a="x", b="y")
        save(driver, sample)
        sample.a = "z"

        queries = save(driver, sample)

        assert len(queries) == 1
        assert queries[0].query == "UPDATE samples SET a = :a, b = :b WHERE id = :id RETURNING id, c"
        assert queries[0].args == ("z", "y", sample.id)
        assert get_by_params(driver, Sample, {"id": sample.id}).a == "z"

    def test_ignored_column_not_overwritten(self, driver: Driver) -> None:
        sample = Sample(a="x", b="y")
        save(driver, sample)
        sample.c = "changed locally"

        save(driver, sample)

        assert sample.c == "c-default"

    def test_update_refreshes_server_default(self, driver: Driver) -> None:
        user = User(username="eve")
        save(driver, user)
        user.username = "eve2"

        save(driver, user)

        loaded = get_by_params(driver, User, {"id": user.id})
        assert loaded.username == "eve2"
        assert loaded.updated_at == user.updated_at
