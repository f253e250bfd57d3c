from __future__ import annotations

import logging
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, final

import sqlalchemy as sa

from .tools import bind_names, is_many


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ClientOptions:
    """Connection configuration for one alias.

    Args:
        url: SQLAlchemy database URL.
        engine_options: Extra keyword arguments for ``sa.create_engine``
            (``pool_size``, ``echo``, ``connect_args``, ...).
    """

    url: str | sa.URL
    engine_options: Mapping[str, Any] = field(default_factory=dict)


@final
class Driver:
    """Database access used by the query builder, the preloader and the selector.

    Statements are written with named placeholders (``:name``); SQLAlchemy
    rebinds them to the dialect paramstyle. Each call runs in its own
    ``engine.begin()`` block and is committed on success.
    """

    __slots__ = ("engine", "name")

    def __init__(self, engine: sa.Engine, *, name: str = "default") -> None:
        self.engine = engine
        self.name = name

    @classmethod
    def from_options(cls, options: ClientOptions, *, name: str = "default") -> Self:
        """Create a driver (and its connection pool) from client options."""
        return cls(sa.create_engine(options.url, **options.engine_options), name=name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} {self.engine.url!r}>"

    @property
    def dialect(self) -> sa.Dialect:
        return self.engine.dialect

    def prepare(self, query: str, params: Mapping[str, Any]) -> sa.TextClause:
        """Build a text statement with one typed bind per placeholder of *query*.

        List, tuple and set values become expanding binds (``col IN :col``).
        """
        names = set(bind_names(query))
        binds = [
            sa.bindparam(key, list(value), expanding=True)
            if is_many(value)
            else sa.bindparam(key, value)
            for key, value in params.items()
            if key in names
        ]

        return sa.text(query).bindparams(*binds)

    def rebind(self, query: str, params: Mapping[str, Any] | None = None) -> str:
        """Render *query* with the placeholders of this driver's dialect."""
        return str(self.prepare(query, params or {}).compile(dialect=self.dialect))

    def get(self, query: str, params: Mapping[str, Any]) -> sa.RowMapping:
        """Fetch exactly one row.

        Raises:
            sqlalchemy.exc.NoResultFound: The statement returned no row.
        """
        with self.engine.begin() as conn:
            return self._run(conn, query, params).mappings().one()

    def select(self, query: str, params: Mapping[str, Any]) -> Sequence[sa.RowMapping]:
        """Fetch every row."""
        with self.engine.begin() as conn:
            return self._run(conn, query, params).mappings().all()

    def execute(self, query: str, params: Mapping[str, Any]) -> int:
        """Execute a statement returning no rows and return the affected row count."""
        with self.engine.begin() as conn:
            return self._run(conn, query, params).rowcount

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(sa.text("SELECT 1"))

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()

    def _run(
        self, conn: sa.Connection, query: str, params: Mapping[str, Any]
    ) -> sa.CursorResult[Any]:
        start = time.perf_counter()
        try:
            return conn.execute(self.prepare(query, params))
        finally:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "[%s] %s %r (%.2f ms)",
                    self.name,
                    query,
                    dict(params),
                    (time.perf_counter() - start) * 1000,
                )
