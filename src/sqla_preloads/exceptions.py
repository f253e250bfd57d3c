from __future__ import annotations

from typing import TypeAlias

from sqlalchemy import exc


DatabaseError: TypeAlias = exc.SQLAlchemyError


class SqlaPreloadsError(Exception):
    """Base class for errors raised by sqla_preloads itself.

    Driver failures are not wrapped: they surface as ``DatabaseError``
    (``sqlalchemy.exc.SQLAlchemyError``) exactly as SQLAlchemy raised them.
    """


class ConfigurationError(SqlaPreloadsError, ValueError):
    """Entity metadata or an association path cannot be used to build SQL."""


class ZeroKeyError(SqlaPreloadsError, ValueError):
    """The entity has no primary key value yet."""


class SelectorError(SqlaPreloadsError):
    pass


class AliasNotFoundError(SelectorError, LookupError):
    """No connection configuration matches the requested alias."""


class MissingConnectionError(SelectorError):
    """A retry was requested without any connection to run against."""
