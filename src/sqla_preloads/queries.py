from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from .driver import Driver
from .entity import Entity
from .exceptions import ConfigurationError, ZeroKeyError
from .schema import get_schema
from .tools import is_many, is_zero, named_args


T = TypeVar("T", bound=Entity)


@dataclass(slots=True, frozen=True)
class Query:
    """A statement issued by save, delete, the getters or the preloader.

    Attributes:
        query: SQL with named placeholders (``:name``).
        args: Positional arguments in placeholder order, ``IN`` lists flattened.
        params: Named parameters the statement was executed with.
        fetch_one: Whether a single row was fetched.
    """

    query: str
    args: tuple[Any, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)
    fetch_one: bool = False

    @classmethod
    def named(cls, query: str, params: Mapping[str, Any], *, fetch_one: bool = False) -> Query:
        return cls(query=query, args=named_args(query, params), params=params, fetch_one=fetch_one)

    def __str__(self) -> str:
        return f"query: {self.query} | args: {self.args!r}"


def save(driver: Driver, entity: Entity, *, queries: list[Query] | None = None) -> list[Query]:
    """Insert or update *entity* and read database-produced values back onto it.

    A zero primary key inserts, anything else updates by primary key.
    Ignored columns are not written; columns with a ``server_default`` are
    written as that literal SQL expression. Both kinds are listed in a
    ``RETURNING`` clause and assigned back to *entity*.

    Args:
        driver: Driver to execute with.
        entity: Entity instance, modified in place.
        queries: Optional list the issued statement is appended to.

    Returns:
        The ``queries`` list (a new one if none was given).

    Raises:
        ConfigurationError: Invalid entity metadata, or nothing to update.
        DatabaseError: The statement failed.
    """
    queries = [] if queries is None else queries
    schema = get_schema(type(entity))
    pk = schema.primary_key
    pk_value = getattr(entity, pk.field)
    insert = is_zero(pk_value)

    columns: list[str] = []
    values: list[str] = []
    returning: list[str] = []
    params: dict[str, Any] = {}

    for col in schema.columns.values():
        # An unset primary key is left to the database on insert
        skip = col.ignored or (insert and col.primary_key)
        if skip or col.server_default is not None:
            returning.append(col.name)
        if skip:
            continue

        columns.append(col.name)
        if col.server_default is not None:
            values.append(col.server_default)
        else:
            values.append(f":{col.name}")
            params[col.name] = getattr(entity, col.field)

    if insert:
        if columns:
            query = (
                f"INSERT INTO {schema.table_name} ({', '.join(columns)}) "
                f"VALUES ({', '.join(values)})"
            )
        else:
            query = f"INSERT INTO {schema.table_name} DEFAULT VALUES"
    else:
        if not columns:
            raise ConfigurationError(f"{type(entity).__name__} has no writable column to update")

        updates = ", ".join(f"{name} = {value}" for name, value in zip(columns, values))
        query = f"UPDATE {schema.table_name} SET {updates} WHERE {pk.name} = :{pk.name}"
        params[pk.name] = pk_value

    if returning:
        query = f"{query} RETURNING {', '.join(returning)}"

    queries.append(Query.named(query, params, fetch_one=bool(returning)))

    if returning:
        schema.apply(entity, driver.get(query, params))
    else:
        driver.execute(query, params)

    return queries


def _require_key(entity: Entity, action: str) -> Any:
    pk_value = getattr(entity, get_schema(type(entity)).primary_key.field)
    if is_zero(pk_value):
        raise ZeroKeyError(f"{entity!r} has no primary key, cannot be {action}")

    return pk_value


def delete(driver: Driver, entity: Entity, *, queries: list[Query] | None = None) -> list[Query]:
    """Delete *entity* by primary key.

    Raises:
        ZeroKeyError: The primary key is unset; no statement is issued.
    """
    queries = [] if queries is None else queries
    schema = get_schema(type(entity))
    pk = schema.primary_key
    pk_value = _require_key(entity, "deleted")

    query = f"DELETE FROM {schema.table_name} WHERE {pk.name} = :{pk.name}"
    params = {pk.name: pk_value}
    queries.append(Query.named(query, params))
    driver.execute(query, params)

    return queries


def soft_delete(
    driver: Driver,
    entity: Entity,
    field_name: str,
    *,
    queries: list[Query] | None = None,
) -> list[Query]:
    """Mark *entity* deleted by setting the timestamp field *field_name* to now.

    The timestamp (UTC) is also assigned to the entity attribute.

    Raises:
        ConfigurationError: *field_name* is not a column of the entity.
        ZeroKeyError: The primary key is unset; no statement is issued.
    """
    queries = [] if queries is None else queries
    schema = get_schema(type(entity))
    col = schema.columns.get(field_name)
    if col is None:
        raise ConfigurationError(f"{field_name!r} is not a column of {type(entity).__name__}")

    pk = schema.primary_key
    pk_value = _require_key(entity, "soft deleted")
    now = datetime.now(timezone.utc)

    query = (
        f"UPDATE {schema.table_name} SET {col.name} = :{col.name} "
        f"WHERE {pk.name} = :{pk.name}"
    )
    params = {col.name: now, pk.name: pk_value}
    queries.append(Query.named(query, params))
    driver.execute(query, params)
    setattr(entity, col.field, now)

    return queries


def where_query(model: type[Entity], params: Mapping[str, Any], fetch_one: bool) -> Query:
    """Build a SELECT of *model* filtered by equality on every key of *params*.

    Keys are column names. List, tuple and set values render as ``IN``.

    Raises:
        ConfigurationError: A key is not a column of *model*.
    """
    schema = get_schema(model)
    wheres: list[str] = []
    for key, value in params.items():
        col = schema.get_column(key)
        if col is None:
            raise ConfigurationError(f"{key!r} is not a column of table {schema.table_name!r}")
        wheres.append(f"{col.path} IN :{key}" if is_many(value) else f"{col.path} = :{key}")

    query = f"SELECT {schema.column_paths()} FROM {schema.table_name}"
    if wheres:
        query = f"{query} WHERE {' AND '.join(wheres)}"
    if fetch_one:
        query = f"{query} LIMIT 1"

    return Query.named(query, dict(params), fetch_one=fetch_one)


def get_by_params(
    driver: Driver,
    model: type[T],
    params: Mapping[str, Any],
    *,
    queries: list[Query] | None = None,
) -> T:
    """Fetch the first *model* row matching *params*.

    Raises:
        sqlalchemy.exc.NoResultFound: No row matches.
    """
    q = where_query(model, params, fetch_one=True)
    if queries is not None:
        queries.append(q)

    return get_schema(model).load(driver.get(q.query, q.params))  # type: ignore[return-value]


def find_by_params(
    driver: Driver,
    model: type[T],
    params: Mapping[str, Any],
    *,
    queries: list[Query] | None = None,
) -> list[T]:
    """Fetch every *model* row matching *params*."""
    q = where_query(model, params, fetch_one=False)
    if queries is not None:
        queries.append(q)

    schema = get_schema(model)
    return [schema.load(row) for row in driver.select(q.query, q.params)]  # type: ignore[misc]
