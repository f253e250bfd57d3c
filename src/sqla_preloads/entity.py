from __future__ import annotations

import dataclasses
import sys
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, ClassVar, TypeGuard

from .exceptions import ConfigurationError
from .fields import column, relation


if sys.version_info >= (3, 11):
    from typing import dataclass_transform
else:
    from typing_extensions import dataclass_transform


_registry: dict[str, type[Entity]] = {}
_registry_lock = threading.Lock()


@dataclass_transform(field_specifiers=(column, relation))
class EntityMeta(type):
    """Metaclass turning every ``Entity`` subclass into a dataclass.

    Subclasses are registered by class name so that string annotations
    (``"list[Comment]"``) can be resolved across modules at introspection time.
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> EntityMeta:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Skip processing for the Entity class itself
        if not any(isinstance(base, EntityMeta) for base in bases):
            return cls

        cls = dataclasses.dataclass(cls)
        with _registry_lock:
            _registry[name] = cls  # type: ignore[assignment]

        return cls


class Entity(metaclass=EntityMeta):
    """Base class for mapped entities.

    Example:
        >>> class User(Entity):
        ...     __tablename__ = "users"
        ...     id: int | None = column(primary_key=True, ignored=True)
        ...     username: str = column(default="")
        ...     avatar_id: int | None = column()
        ...     avatar: Media | None = relation()
        ...     comments: list[Comment] = relation(default_factory=list)
    """

    __tablename__: ClassVar[str]

    @classmethod
    def table_name(cls) -> str:
        """Return the table this entity type is stored in."""
        table = getattr(cls, "__tablename__", None)
        if not table:
            raise ConfigurationError(f"{cls.__name__} does not declare __tablename__")

        return table


def is_entity(obj: Any) -> TypeGuard[type[Entity]]:
    """Return whether *obj* is a concrete entity type."""
    return isinstance(obj, type) and issubclass(obj, Entity) and obj is not Entity


def get_registry() -> Mapping[str, type[Entity]]:
    """Snapshot of registered entity types, keyed by class name."""
    with _registry_lock:
        return MappingProxyType(dict(_registry))
