from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable, Mapping
from typing import Any, Final, TypeVar, final

from .driver import ClientOptions, Driver
from .exceptions import AliasNotFoundError, MissingConnectionError


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


logger = logging.getLogger(__name__)

MASTER_ALIAS: Final[str] = "master"
REPLICA_ALIAS: Final[str] = "replica"

T = TypeVar("T")


def retry(handler: Callable[[Driver], T], *drivers: Driver) -> T:
    """Run *handler* against each driver in order until one call succeeds.

    Args:
        handler: Callable receiving a driver; raising means failure.
        *drivers: Drivers to try, in order.

    Returns:
        The result of the first successful call.

    Raises:
        MissingConnectionError: No driver was given; *handler* is not called.
        Exception: Whatever the last attempt raised, if every attempt failed.
    """
    if not drivers:
        raise MissingConnectionError("retry requires at least one connection")

    error: Exception | None = None
    for driver in drivers:
        try:
            return handler(driver)
        except Exception as e:  # noqa: BLE001
            logger.warning("Attempt on connection %r failed: %s", driver.name, e)
            error = e

    assert error is not None
    raise error


@final
class Selector:
    """Named pool of drivers with linear failover between aliases.

    Drivers are created on first use from the stored configuration; alias
    lookup is case-insensitive. At most one driver is ever created per alias,
    even when several threads ask for it concurrently.
    """

    __slots__ = ("_configurations", "_connections", "_lock")

    def __init__(self, configurations: Mapping[str, ClientOptions] | None = None) -> None:
        self._configurations: dict[str, ClientOptions] = dict(configurations or {})
        self._connections: dict[str, Driver] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_urls(cls, urls: Mapping[str, str], **engine_options: Any) -> Self:
        """Build a selector from ``{alias: database_url}``, sharing *engine_options*."""
        return cls({
            alias: ClientOptions(url=url, engine_options=engine_options)
            for alias, url in urls.items()
        })

    @classmethod
    def with_driver(cls, driver: Driver, alias: str = MASTER_ALIAS) -> Self:
        """Build a selector holding an existing driver under *alias*."""
        selector = cls()
        selector._connections[alias.lower()] = driver

        return selector

    def using(self, alias: str) -> Driver:
        """Return the driver for *alias*, creating it on first use.

        Raises:
            AliasNotFoundError: No configuration matches *alias*.
        """
        key = alias.lower()

        # dict reads are atomic: the hit path takes no lock
        connection = self._connections.get(key)
        if connection is not None:
            return connection

        with self._lock:
            connection = self._connections.get(key)
            if connection is not None:
                return connection

            options = next(
                (opts for name, opts in self._configurations.items() if name.lower() == key),
                None,
            )
            if options is not None:
                connection = Driver.from_options(options, name=key)
                self._connections[key] = connection
                return connection

        raise AliasNotFoundError(f"connection alias '{alias}' not found")

    def retry_aliases(self, handler: Callable[[Driver], T], *aliases: str) -> T:
        """Call :func:`retry` with the drivers of *aliases*.

        Aliases that cannot be resolved, or whose driver cannot be built, are skipped.
        """
        drivers: list[Driver] = []
        for alias in aliases:
            try:
                drivers.append(self.using(alias))
            except Exception as e:  # noqa: BLE001
                logger.debug("Skipping connection alias %r: %s", alias, e)

        return retry(handler, *drivers)

    def retry_master(self, handler: Callable[[Driver], T]) -> T:
        """Try the replica first, then the master."""
        return self.retry_aliases(handler, REPLICA_ALIAS, MASTER_ALIAS)

    def ping(self) -> None:
        """Check that the replica or the master answers."""
        self.retry_master(lambda driver: driver.ping())

    def close(self) -> list[Exception]:
        """Close every live driver and empty the pool.

        Returns:
            The errors raised while closing, one per failing driver.
        """
        errors: list[Exception] = []
        with self._lock:
            for alias, connection in self._connections.items():
                try:
                    connection.close()
                except Exception as e:  # noqa: BLE001
                    logger.error("Cannot close connection %r: %s", alias, e)
                    errors.append(e)

            self._connections = {}

        return errors
