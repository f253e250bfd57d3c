"""Field and association model.

Entities declare their mapping with two dataclass field specifiers:

* :func:`column` for plain columns (primary key, ignored-on-write, SQL default,
  column name override);
* :func:`relation` for association fields (foreign key override).

Fields annotated with an entity type and no specifier are treated as
associations as well; everything else is a plain column named after the
snake-cased attribute.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import enum
import re
import types
import typing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final


if TYPE_CHECKING:
    from .entity import Entity
    from .schema import Schema


METADATA_KEY: Final[str] = "sqla_preloads"

_FIRST_CAP = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP = re.compile(r"([a-z0-9])([A-Z])")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_SEQUENCE_ORIGINS: Final[frozenset[Any]] = frozenset({
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
})


class Cardinality(enum.Enum):
    TO_ONE = "to_one"
    TO_MANY = "to_many"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ColumnInfo:
    """Metadata attached to a field by :func:`column`."""

    name: str | None = None
    primary_key: bool = False
    ignored: bool = False
    server_default: str | None = None


@dataclass(slots=True, frozen=True)
class RelationInfo:
    """Metadata attached to a field by :func:`relation`."""

    fk: str | None = None


@dataclass(slots=True, frozen=True)
class Column:
    """A mapped column of one entity type.

    Attributes:
        field: Python attribute name on the entity.
        table: Table the column belongs to.
        name: Column name in the database.
        primary_key: Whether the column is the entity primary key.
        ignored: Excluded from INSERT/UPDATE values, but read back with RETURNING.
        server_default: Literal SQL expression written in place of a bound value.
    """

    field: str
    table: str
    name: str
    primary_key: bool = False
    ignored: bool = False
    server_default: str | None = None

    @property
    def path(self) -> str:
        """Column name qualified with its table name."""
        return f"{self.table}.{self.name}"

    @property
    def returned(self) -> bool:
        """Whether the column value is produced by the database on write."""
        return self.ignored or self.server_default is not None


@dataclass(slots=True, frozen=True)
class Association:
    """A relationship field between two entity types.

    For ``TO_ONE`` the owner carries the foreign key and ``reference`` is the
    primary key of ``model``. For ``TO_MANY`` ``model`` carries the foreign key
    and ``reference`` is the primary key of the owner.
    """

    name: str
    cardinality: Cardinality
    owner: type[Entity]
    model: type[Entity]
    foreign_key: Column
    reference: Column

    @property
    def foreign_key_field(self) -> str:
        """Attribute holding the foreign key value (on ``owner`` or ``model``)."""
        return self.foreign_key.field

    @property
    def is_many(self) -> bool:
        return self.cardinality is Cardinality.TO_MANY

    @property
    def schema(self) -> Schema:
        """Schema of the referenced entity type."""
        from .schema import get_schema

        return get_schema(self.model)


def column(
    *,
    name: str | None = None,
    primary_key: bool = False,
    ignored: bool = False,
    server_default: str | None = None,
    default: Any = None,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare a mapped column.

    Args:
        name: Column name override. Defaults to the snake-cased field name.
        primary_key: Mark the field as the entity primary key.
        ignored: Never written by save, always read back through RETURNING.
        server_default: Literal SQL expression (e.g. ``"CURRENT_TIMESTAMP"``)
            written instead of the field value; the stored value is read back.
        default: Python default for the dataclass field.
        default_factory: Python default factory for the dataclass field.

    Example:
        >>> class User(Entity):
        ...     __tablename__ = "users"
        ...     id: int | None = column(primary_key=True, ignored=True)
        ...     updated_at: datetime | None = column(server_default="CURRENT_TIMESTAMP")
    """
    info = ColumnInfo(
        name=name,
        primary_key=primary_key,
        ignored=ignored,
        server_default=server_default,
    )
    if default_factory is not dataclasses.MISSING:
        return dataclasses.field(default_factory=default_factory, metadata={METADATA_KEY: info})

    return dataclasses.field(default=default, metadata={METADATA_KEY: info})


def relation(
    *,
    fk: str | None = None,
    default: Any = None,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare an association field.

    Cardinality comes from the annotation: ``list[Model]`` is to-many (the
    foreign key lives on ``Model``), ``Model`` or ``Model | None`` is to-one
    (the foreign key lives on the declaring entity).

    Args:
        fk: Foreign key column name override. Defaults to ``<field>_id`` for
            to-one and ``<owner>_id`` for to-many associations.
        default: Python default for the dataclass field.
        default_factory: Python default factory, typically ``list`` for to-many.
    """
    metadata = {METADATA_KEY: RelationInfo(fk=fk)}
    if default_factory is not dataclasses.MISSING:
        return dataclasses.field(
            default_factory=default_factory, repr=False, compare=False, metadata=metadata
        )

    return dataclasses.field(default=default, repr=False, compare=False, metadata=metadata)


def get_field_info(field: dataclasses.Field[Any]) -> ColumnInfo | RelationInfo | None:
    """Return the metadata declared by :func:`column` or :func:`relation`, if any."""
    return field.metadata.get(METADATA_KEY)


def to_snake_case(name: str) -> str:
    """Convert ``CamelCase`` / ``mixedCase`` identifiers to ``snake_case``."""
    return _ALL_CAP.sub(r"\1_\2", _FIRST_CAP.sub(r"\1_\2", name)).lower()


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER.match(name))


def _strip_optional(hint: Any) -> Any:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0]

    return hint


def get_cardinality(hint: Any) -> tuple[Cardinality, type[Entity] | None]:
    """Classify a resolved field annotation.

    Returns:
        The cardinality and the referenced entity type, or
        ``(Cardinality.UNKNOWN, None)`` when the annotation is not entity-shaped.
    """
    from .entity import is_entity

    hint = _strip_optional(hint)
    if typing.get_origin(hint) in _SEQUENCE_ORIGINS:
        args = typing.get_args(hint)
        target = _strip_optional(args[0]) if args else None
        if is_entity(target):
            return Cardinality.TO_MANY, target

        return Cardinality.UNKNOWN, None

    if is_entity(hint):
        return Cardinality.TO_ONE, hint

    return Cardinality.UNKNOWN, None
