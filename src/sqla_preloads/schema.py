from __future__ import annotations

import dataclasses
import sys
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from .entity import Entity, get_registry, is_entity
from .exceptions import ConfigurationError
from .fields import (
    Association,
    Cardinality,
    Column,
    ColumnInfo,
    RelationInfo,
    get_cardinality,
    get_field_info,
    is_identifier,
    to_snake_case,
)


@dataclass(slots=True, frozen=True)
class Schema:
    """Columns and associations derived from one entity type.

    Both mappings are keyed by field name and keep declaration order.
    A schema is never mutated once built.
    """

    model: type[Entity]
    table_name: str
    primary_key: Column
    columns: Mapping[str, Column]
    associations: Mapping[str, Association]

    def column_paths(self) -> str:
        """Comma-separated, table-qualified column list for SELECT."""
        return ", ".join(col.path for col in self.columns.values())

    def get_column(self, name: str) -> Column | None:
        """Look up a column by its database column name."""
        return next((col for col in self.columns.values() if col.name == name), None)

    def load(self, row: Mapping[str, Any]) -> Entity:
        """Build a new entity instance from a result row keyed by column name."""
        return self.model(
            **{col.field: row[col.name] for col in self.columns.values() if col.name in row}
        )

    def apply(self, entity: Entity, row: Mapping[str, Any]) -> None:
        """Write the columns present in *row* back onto *entity*."""
        for col in self.columns.values():
            if col.name in row:
                setattr(entity, col.field, row[col.name])


@dataclass(slots=True, frozen=True)
class _RelationDecl:
    name: str
    cardinality: Cardinality
    model: type[Entity]
    fk: str | None


@dataclass(slots=True, frozen=True)
class _Layout:
    table_name: str
    primary_key: Column
    columns: Mapping[str, Column]
    relations: tuple[_RelationDecl, ...]


def _get_hints(model: type[Entity]) -> dict[str, Any]:
    # names of the declaring module shadow the registry
    module = sys.modules.get(model.__module__)
    localns = {**get_registry(), **(vars(module) if module is not None else {})}
    try:
        return typing.get_type_hints(model, localns=localns)
    except (NameError, TypeError) as e:
        raise ConfigurationError(f"Cannot resolve annotations of {model.__name__}: {e}") from e


def _make_column(table: str, field: str, info: ColumnInfo) -> Column:
    name = info.name or to_snake_case(field)
    if not is_identifier(name):
        raise ConfigurationError(f"Invalid column name {name!r} for field {field!r}")

    if info.server_default is not None and not info.server_default.strip():
        raise ConfigurationError(f"Empty server_default on field {field!r}")

    return Column(
        field=field,
        table=table,
        name=name,
        primary_key=info.primary_key,
        ignored=info.ignored,
        server_default=info.server_default,
    )


@lru_cache(maxsize=512)
def _get_layout(model: type[Entity]) -> _Layout:
    """Classify the fields of *model* without resolving its associations (cached)."""
    if not is_entity(model):
        raise ConfigurationError(f"{model!r} is not an entity type")

    table = model.table_name()
    hints = _get_hints(model)
    columns: dict[str, Column] = {}
    relations: list[_RelationDecl] = []

    for field in dataclasses.fields(model):
        info = get_field_info(field)
        cardinality, target = get_cardinality(hints.get(field.name))

        if isinstance(info, RelationInfo):
            if target is None:
                raise ConfigurationError(
                    f"{model.__name__}.{field.name} is declared as a relation "
                    "but does not reference an entity type"
                )
            relations.append(_RelationDecl(field.name, cardinality, target, info.fk))
        elif target is not None:
            if info is not None:
                raise ConfigurationError(
                    f"{model.__name__}.{field.name} references {target.__name__}, "
                    "use relation() instead of column()"
                )
            if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
                raise ConfigurationError(
                    f"{model.__name__}.{field.name} references {target.__name__} "
                    "and must declare a default (None or list)"
                )
            relations.append(_RelationDecl(field.name, cardinality, target, None))
        else:
            columns[field.name] = _make_column(table, field.name, info or ColumnInfo())

    primary_keys = [col for col in columns.values() if col.primary_key]
    if len(primary_keys) != 1:
        raise ConfigurationError(
            f"{model.__name__} must declare exactly one primary key, found {len(primary_keys)}"
        )

    return _Layout(
        table_name=table,
        primary_key=primary_keys[0],
        columns=MappingProxyType(columns),
        relations=tuple(relations),
    )


def _find_column(layout: _Layout, name: str, owner: type[Entity], field: str) -> Column:
    if not is_identifier(name):
        raise ConfigurationError(f"Invalid foreign key name {name!r} on {owner.__name__}.{field}")

    col = next((c for c in layout.columns.values() if c.name == name), None)
    if col is None:
        raise ConfigurationError(
            f"Foreign key column {name!r} for {owner.__name__}.{field} "
            f"is not declared on table {layout.table_name!r}"
        )

    return col


def _make_association(model: type[Entity], layout: _Layout, decl: _RelationDecl) -> Association:
    target = _get_layout(decl.model)

    if decl.cardinality is Cardinality.TO_MANY:
        fk_name = decl.fk or f"{to_snake_case(model.__name__)}_id"
        foreign_key = _find_column(target, fk_name, model, decl.name)
        reference = layout.primary_key
    else:
        fk_name = decl.fk or f"{to_snake_case(decl.name)}_id"
        foreign_key = _find_column(layout, fk_name, model, decl.name)
        reference = target.primary_key

    return Association(
        name=decl.name,
        cardinality=decl.cardinality,
        owner=model,
        model=decl.model,
        foreign_key=foreign_key,
        reference=reference,
    )


def introspect(model: type[Entity]) -> Schema:
    """Derive the schema of an entity type.

    Referenced entity types are resolved one level deep: their columns and
    primary key are read, their own associations are not expanded.

    Args:
        model: Entity subclass.

    Returns:
        A new immutable ``Schema``.

    Raises:
        ConfigurationError: No table name, not exactly one primary key,
            malformed field metadata, or an association whose foreign key
            or target does not satisfy the entity contract.
    """
    layout = _get_layout(model)
    associations = {
        decl.name: _make_association(model, layout, decl) for decl in layout.relations
    }

    return Schema(
        model=model,
        table_name=layout.table_name,
        primary_key=layout.primary_key,
        columns=layout.columns,
        associations=MappingProxyType(associations),
    )


@lru_cache(maxsize=512)
def _get_schema(model: type[Entity]) -> Schema:
    return introspect(model)


def get_schema(model: type[Entity]) -> Schema:
    """Return the schema of *model*, built once and cached afterwards."""
    return _get_schema(model)
