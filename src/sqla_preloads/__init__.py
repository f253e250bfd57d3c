"""Entity mapping and batched association preloading on top of SQLAlchemy Core.

sqla_preloads derives table schemas from dataclass-style ``Entity``
declarations, builds parameterized SQL for save/delete/select, and preloads
nested associations with one ``IN`` query per association and depth instead of
one query per row.  A ``Selector`` keeps named drivers (e.g. ``replica`` and
``master``) and retries a call across them in order.
"""

from ._version import __version__, __version_tuple__
from .driver import ClientOptions, Driver
from .entity import Entity, is_entity
from .exceptions import (
    AliasNotFoundError,
    ConfigurationError,
    DatabaseError,
    MissingConnectionError,
    SelectorError,
    SqlaPreloadsError,
    ZeroKeyError,
)
from .fields import Association, Cardinality, Column, column, relation
from .preload import cache_clear, cache_info, preload
from .queries import (
    Query,
    delete,
    find_by_params,
    get_by_params,
    save,
    soft_delete,
    where_query,
)
from .schema import Schema, get_schema, introspect
from .selector import MASTER_ALIAS, REPLICA_ALIAS, Selector, retry
from .tools import get_primary_key, get_table_name, is_zero, primary_key_value


__all__ = (
    "MASTER_ALIAS",
    "REPLICA_ALIAS",
    "AliasNotFoundError",
    "Association",
    "Cardinality",
    "ClientOptions",
    "Column",
    "ConfigurationError",
    "DatabaseError",
    "Driver",
    "Entity",
    "MissingConnectionError",
    "Query",
    "Schema",
    "SelectorError",
    "Selector",
    "SqlaPreloadsError",
    "ZeroKeyError",
    "__version__",
    "__version_tuple__",
    "cache_clear",
    "cache_info",
    "column",
    "delete",
    "find_by_params",
    "get_by_params",
    "get_primary_key",
    "get_schema",
    "get_table_name",
    "introspect",
    "is_entity",
    "is_zero",
    "preload",
    "primary_key_value",
    "relation",
    "retry",
    "save",
    "soft_delete",
    "where_query",
)
