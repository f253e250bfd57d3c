from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Final

from .driver import Driver
from .entity import Entity
from .exceptions import ConfigurationError
from .fields import Association, Cardinality
from .queries import Query, find_by_params, get_by_params
from .schema import get_schema
from .tools import is_zero, unique_keys


_Loader = Callable[[Driver, Sequence[Entity], Association, list[Query]], None]


@dataclass(slots=True, frozen=True)
class _PreloadStep:
    path: str
    associations: tuple[Association, ...]

    @property
    def depth(self) -> int:
        return len(self.associations)


@lru_cache(maxsize=1028)
def _resolve_dotted_path(model: type[Entity], dotted: str) -> tuple[Association, ...]:
    """Resolve a dot-notation path like ``'author.avatar'`` into associations.

    Each segment must be an association of the entity reached so far.
    """
    result: list[Association] = []
    current = model
    for segment in dotted.split("."):
        association = get_schema(current).associations.get(segment)
        if association is None:
            raise ConfigurationError(
                f"No association '{segment}' on {current.__name__} "
                f"(resolving '{dotted}' from {model.__name__})"
            )
        result.append(association)
        current = association.model

    return tuple(result)


def _resolve_steps(
    model: type[Entity], paths: Sequence[str]
) -> tuple[list[_PreloadStep], list[str]]:
    """Expand *paths* into one step per distinct prefix, shallowest first.

    Invalid paths are reported in the second element and contribute no step.
    """
    steps: dict[str, _PreloadStep] = {}
    errors: list[str] = []

    for path in paths:
        try:
            associations = _resolve_dotted_path(model, path)
        except ConfigurationError as e:
            errors.append(str(e))
            continue

        segments = path.split(".")
        for depth in range(1, len(segments) + 1):
            prefix = ".".join(segments[:depth])
            steps.setdefault(prefix, _PreloadStep(path=prefix, associations=associations[:depth]))

    # sorted() is stable: within a depth, steps keep request order
    return sorted(steps.values(), key=lambda step: step.depth), errors


def _unpack(out: Entity | Sequence[Entity]) -> tuple[type[Entity] | None, list[Entity], bool]:
    if isinstance(out, Entity):
        return type(out), [out], False

    if isinstance(out, Sequence) and not isinstance(out, (str, bytes)):
        entities = list(out)
        if not entities:
            return None, entities, True

        model = type(entities[0])
        if not all(type(entity) is model and isinstance(entity, Entity) for entity in entities):
            raise TypeError("preload expects a sequence of entities of a single type")

        return model, entities, True

    raise TypeError(f"preload expects an entity or a sequence of entities, got {type(out)!r}")


def _descend(sources: Sequence[Entity], association: Association) -> list[Entity]:
    """Collect the already-loaded values of *association*, each instance once."""
    seen: set[int] = set()
    out: list[Entity] = []
    for source in sources:
        value = getattr(source, association.name)
        for related in value if isinstance(value, list) else (value,):
            if related is None or id(related) in seen:
                continue
            seen.add(id(related))
            out.append(related)

    return out


def _preload_single_one(
    driver: Driver, sources: Sequence[Entity], association: Association, queries: list[Query]
) -> None:
    source = sources[0]
    fk = getattr(source, association.foreign_key_field)
    if is_zero(fk):
        return

    related = get_by_params(
        driver, association.model, {association.reference.name: fk}, queries=queries
    )
    setattr(source, association.name, related)


def _preload_single_many(
    driver: Driver, sources: Sequence[Entity], association: Association, queries: list[Query]
) -> None:
    source = sources[0]
    pk = getattr(source, association.reference.field)
    if is_zero(pk):
        setattr(source, association.name, [])
        return

    related = find_by_params(
        driver, association.model, {association.foreign_key.name: pk}, queries=queries
    )
    setattr(source, association.name, related)


def _preload_slice_one(
    driver: Driver, sources: Sequence[Entity], association: Association, queries: list[Query]
) -> None:
    fk_field = association.foreign_key_field
    keys = unique_keys([getattr(source, fk_field) for source in sources])
    if not keys:
        return

    reference = association.reference
    related = find_by_params(driver, association.model, {reference.name: keys}, queries=queries)
    by_key = {getattr(entity, reference.field): entity for entity in related}

    # fan-in: sources sharing a foreign key share the fetched instance
    for source in sources:
        fk = getattr(source, fk_field)
        if not is_zero(fk) and fk in by_key:
            setattr(source, association.name, by_key[fk])


def _preload_slice_many(
    driver: Driver, sources: Sequence[Entity], association: Association, queries: list[Query]
) -> None:
    pk_field = association.reference.field
    foreign_key = association.foreign_key
    keys = unique_keys([getattr(source, pk_field) for source in sources])

    groups: dict[Any, list[Entity]] = {}
    if keys:
        related = find_by_params(
            driver, association.model, {foreign_key.name: keys}, queries=queries
        )
        for entity in related:
            groups.setdefault(getattr(entity, foreign_key.field), []).append(entity)

    for source in sources:
        pk = getattr(source, pk_field)
        setattr(source, association.name, [] if is_zero(pk) else groups.get(pk, []))


_LOADERS: Final[dict[tuple[bool, Cardinality], _Loader]] = {
    (False, Cardinality.TO_ONE): _preload_single_one,
    (False, Cardinality.TO_MANY): _preload_single_many,
    (True, Cardinality.TO_ONE): _preload_slice_one,
    (True, Cardinality.TO_MANY): _preload_slice_many,
}


def _preload_step(
    driver: Driver,
    roots: Sequence[Entity],
    is_slice: bool,
    step: _PreloadStep,
    queries: list[Query],
) -> None:
    *parents, association = step.associations

    sources = roots
    many = is_slice
    for parent in parents:
        sources = _descend(sources, parent)
        many = many or parent.is_many

    if not sources:
        return

    loader = _LOADERS.get((many, association.cardinality))
    if loader is None:
        raise ConfigurationError(f"Cannot preload '{step.path}': unknown association cardinality")

    loader(driver, sources, association, queries)


def preload(
    driver: Driver,
    out: Entity | Sequence[Entity],
    *paths: str,
    queries: list[Query] | None = None,
) -> list[Query]:
    """Eagerly load associations of an entity or a list of entities.

    Every dotted path also loads its prefixes (``"author.avatar"`` loads
    ``author`` then ``avatar`` on the loaded authors). Paths are processed
    depth by depth, and each association at a given depth costs at most one
    query whatever the number of entities: to-one keys are fetched with
    ``pk IN (...)``, to-many rows with ``fk IN (...)`` then grouped back.
    Zero keys never trigger a query.

    Args:
        driver: Driver to execute with.
        out: Entity instance or sequence of instances of one entity type;
            loaded values are assigned onto them.
        *paths: Association paths, e.g. ``"comments"``, ``"author.avatar"``.
        queries: Optional list every issued statement is appended to, in order.

    Returns:
        The ``queries`` list (a new one if none was given).

    Raises:
        ConfigurationError: Some paths do not name declared associations.
            Raised after the valid paths have been loaded.
        DatabaseError: A query failed; processing stops, values already
            assigned stay in place.
        TypeError: *out* is not an entity or a homogeneous sequence of entities.

    Example:
        >>> articles = find_by_params(driver, Article, {"is_published": True})
        >>> queries = preload(driver, articles, "author.avatar", "comments")
        >>> len(queries)
        3
    """
    queries = [] if queries is None else queries
    model, entities, is_slice = _unpack(out)
    if model is None:
        return queries

    steps, errors = _resolve_steps(model, paths)
    for step in steps:
        _preload_step(driver, entities, is_slice, step, queries)

    if errors:
        raise ConfigurationError("; ".join(errors))

    return queries


def cache_info() -> dict[str, Any]:
    """Return LRU cache statistics for all internal caches."""
    from .schema import _get_layout, _get_schema

    return {
        fn.__name__: fn.cache_info()
        for fn in (_resolve_dotted_path, _get_schema, _get_layout)
    }


def cache_clear() -> None:
    """Clear all internal LRU caches."""
    from .schema import _get_layout, _get_schema

    for fn in (_resolve_dotted_path, _get_schema, _get_layout):
        fn.cache_clear()
