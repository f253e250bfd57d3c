from __future__ import annotations

import pytest

from sqla_preloads import ConfigurationError, Query, where_query

from ..models import Article, Media


class TestQuery:
    def test_named_collects_args_in_placeholder_order(self) -> None:
        q = Query.named("UPDATE t SET b = :b WHERE id = :id", {"id": 3, "b": "x"})

        assert q.args == ("x", 3)
        assert q.params == {"id": 3, "b": "x"}
        assert not q.fetch_one

    def test_str(self) -> None:
        q = Query.named("DELETE FROM t WHERE id = :id", {"id": 1})

        assert str(q) == "query: DELETE FROM t WHERE id = :id | args: (1,)"

    def test_frozen(self) -> None:
        q = Query("SELECT 1")

        with pytest.raises(AttributeError):
            q.query = "SELECT 2"  # type: ignore[misc]


class TestWhereQuery:
    def test_no_params_selects_everything(self) -> None:
        q = where_query(Media, {}, fetch_one=False)

        assert q.query == "SELECT media.id, media.path, media.created_at FROM media"
        assert q.args == ()

    def test_fetch_one_adds_limit(self) -> None:
        q = where_query(Media, {"id": 4}, fetch_one=True)

        assert q.query == (
            "SELECT media.id, media.path, media.created_at FROM media "
            "WHERE media.id = :id LIMIT 1"
        )
        assert q.args == (4,)
        assert q.fetch_one

    def test_list_value_renders_in(self) -> None:
        q = where_query(Article, {"author_id": [1, 2], "is_published": True}, fetch_one=False)

        assert q.query.endswith(
            "WHERE articles.author_id IN :author_id AND articles.is_published = :is_published"
        )
        assert q.args == (1, 2, True)

    def test_unknown_column_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="'author' is not a column of table 'articles'"):
            where_query(Article, {"author": 1}, fetch_one=False)

    def test_association_is_not_a_key(self) -> None:
        with pytest.raises(ConfigurationError):
            where_query(Article, {"comments": [1]}, fetch_one=False)
