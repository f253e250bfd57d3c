from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Final

from .entity import Entity
from .fields import Column
from .schema import get_schema


_BIND_PARAM: Final = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


def get_table_name(model: type[Entity]) -> str:
    """Get the table name for an entity type.

    Args:
        model: Entity class.

    Returns:
        The table name as a string.

    Raises:
        ConfigurationError: If the entity declares no table name.
    """
    return get_schema(model).table_name


def get_primary_key(model: type[Entity]) -> Column:
    """Get the primary key column for an entity type."""
    return get_schema(model).primary_key


def primary_key_value(entity: Entity) -> Any:
    """Read the primary key value of an entity instance."""
    return getattr(entity, get_primary_key(type(entity)).field)


def is_zero(value: Any) -> bool:
    """Return whether a key value means "not set" (``None``, ``0`` or ``""``)."""
    return value is None or (isinstance(value, (int, str)) and not value)


def is_many(value: Any) -> bool:
    """Return whether a bound value should render as an ``IN`` list."""
    return isinstance(value, (list, tuple, set, frozenset))


def bind_names(query: str) -> list[str]:
    """Named placeholders of *query*, in order of appearance."""
    return _BIND_PARAM.findall(query)


def named_args(query: str, params: Mapping[str, Any]) -> tuple[Any, ...]:
    """Positional arguments for *query*, in placeholder order.

    ``IN`` list values are flattened, the way a positional driver receives them.
    """
    args: list[Any] = []
    for name in bind_names(query):
        value = params[name]
        if is_many(value):
            args.extend(value)
        else:
            args.append(value)

    return tuple(args)


def unique_keys(values: Sequence[Any]) -> list[Any]:
    """Distinct non-zero key values, in first-seen order."""
    seen: set[Any] = set()
    out: list[Any] = []
    for value in values:
        if is_zero(value) or value in seen:
            continue
        seen.add(value)
        out.append(value)

    return out
