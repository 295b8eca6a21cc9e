"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class that wraps SQLAlchemy connections
3. Engine creation and management through a thread-safe registry

SQLAlchemy supplies URLs, engines and pooling; statements run on the DBAPI
connection in autocommit mode so DDL takes effect immediately and explicit
transactions are opened only where a dialect supports transactional DDL.
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import fields
from functools import wraps
from typing import TYPE_CHECKING, Any, Self, TypeVar

import sqlalchemy as sa
from schemakit.exceptions import DbConnectionError
from schemakit.options import DatabaseOptions
from schemakit.sql import standardize_placeholders
from schemakit.strategy import get_strategy_class
from schemakit.utils import get_dialect_name, get_raw_connection
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

if TYPE_CHECKING:
    from schemakit.cancellation import CancellationToken

__all__ = [
    'ConnectionWrapper',
    'connect',
    'connect_url',
    'configure_connection',
    'check_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    return get_strategy_class(options.drivername).build_connection_url(options)


def check_connection(func: Callable[..., T] | None = None, *, max_retries: int = 3,
                     retry_delay: float = 1, retry_errors: type | tuple[type, ...] | None = None,
                     retry_backoff: float = 1.5,
                     sleep_func: Callable[[float], None] = time.sleep) -> Callable[..., T]:
    """Connection retry decorator with backoff.

    Decorator that handles connection errors by automatically retrying the operation.
    It has configurable retry parameters and supports exponential backoff.

    Supports both @check_connection and @check_connection() syntax.
    """
    def decorator(f: Callable[..., T]) -> Callable[..., T]:
        @wraps(f)
        def inner(*args: Any, **kwargs: Any) -> T:
            error_types = retry_errors if retry_errors is not None else DbConnectionError

            tries = 0
            delay = retry_delay
            while True:
                try:
                    return f(*args, **kwargs)
                except error_types as err:
                    tries += 1
                    if tries >= max_retries:
                        logger.error(f'Maximum retries ({max_retries}) exceeded: {err}')
                        raise
                    logger.warning(f'Connection error (attempt {tries}/{max_retries}): {err}')
                    sleep_func(delay)
                    delay *= retry_backoff

        return inner

    if func is None:
        return decorator
    return decorator(func)


def _engine_kwargs(options: DatabaseOptions) -> dict[str, Any]:
    engine_kwargs: dict[str, Any] = {'echo': False}
    engine_kwargs.update(get_strategy_class(options.drivername).get_engine_kwargs(options))

    if not options.use_pool:
        engine_kwargs['poolclass'] = NullPool
    else:
        engine_kwargs['pool_size'] = options.pool_max_connections
        engine_kwargs['pool_recycle'] = options.pool_max_idle_time
        engine_kwargs['pool_timeout'] = options.pool_wait_timeout
        engine_kwargs['max_overflow'] = 10
        engine_kwargs['pool_pre_ping'] = True
    return engine_kwargs


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    url = create_url_from_options(options)
    key = f'{url.render_as_string(hide_password=False)}_{options.use_pool}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        engine_kwargs = _engine_kwargs(options)
        engine_kwargs.update(kwargs)
        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}+{options.driver}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class ConnectionWrapper:
    """Wraps a SQLAlchemy connection object to track calls and execution time

    This class provides a thin wrapper around SQLAlchemy connection objects that:
    1. Tracks statement counts and timing
    2. Manages connection lifecycle with SQLAlchemy pooling
    3. Supports context manager protocol for explicit resource management
    4. Carries the cancellation token of the operation currently using it

    A wrapper is used by one thread at a time.
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions | None = None) -> None:
        """Initialize a connection wrapper
        """
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.dbapi_connection = sa_connection.connection
        self._dialect = get_dialect_name(sa_connection)
        self.calls = 0
        self.time = 0.0
        self.in_transaction = False
        self.cancel_token: CancellationToken | None = None

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Return the connection to the pool when exiting the context manager
        """
        self.close()

    def __repr__(self) -> str:
        return f'<ConnectionWrapper {self._dialect}+{self.driver} calls={self.calls}>'

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql', 'sqlite', 'mssql', 'mysql', 'mariadb')."""
        return self._dialect

    @property
    def driver(self) -> str:
        """Return the DBAPI driver name SQLAlchemy uses, e.g. 'psycopg'."""
        return self.sa_connection.dialect.driver

    @property
    def paramstyle(self) -> str:
        return self.sa_connection.dialect.paramstyle

    @property
    def driver_connection(self) -> Any:
        """Return the raw DBAPI connection."""
        return get_raw_connection(self.dbapi_connection)

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    @property
    def is_pooled(self) -> bool:
        """Check if this connection is using SQLAlchemy's connection pooling
        """
        return not isinstance(self.engine.pool, NullPool)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @contextmanager
    def cursor(self, sql: str, params: tuple | list | None = None):
        """Execute a statement and yield the open cursor.

        Placeholders are written as %s and converted for qmark drivers.
        Parameters are only passed when present, so literal percent signs
        in parameterless statements reach the server unchanged.
        """
        if params:
            sql = standardize_placeholders(sql, self.paramstyle)
        cursor = self.dbapi_connection.cursor()
        start = time.time()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
            yield cursor
        finally:
            self.addcall(time.time() - start)
            cursor.close()

    @check_connection
    def execute(self, sql: str, *args: Any) -> int:
        """Execute a SQL statement with the given parameters and return affected row count.
        """
        with self.cursor(sql, args) as cursor:
            logger.debug(f'Executed statement with {len(args)} parameters')
            return cursor.rowcount

    @check_connection
    def select(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """Execute a SELECT query and return rows as dictionaries.
        """
        with self.cursor(sql, args) as cursor:
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def select_column(self, sql: str, *args: Any) -> list[Any]:
        """Execute a query and return the first column as a list.
        """
        return [next(iter(row.values())) for row in self.select(sql, *args)]

    def select_scalar(self, sql: str, *args: Any) -> Any:
        """Execute a query and return a single scalar value.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select_column(sql, *args)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return data[0]

    def close(self) -> None:
        """Close the SQLAlchemy connection
        """
        if not self.sa_connection.closed:
            self.sa_connection.close()
            logger.debug(f'Connection closed: {self.calls} statements in {self.time:.2f}s')


def configure_connection(sa_connection: sa.engine.Connection) -> None:
    """Configure a SQLAlchemy connection with database-specific settings.
    """
    strategy_cls = get_strategy_class(get_dialect_name(sa_connection))
    strategy_cls.configure_connection(get_raw_connection(sa_connection.connection))


def connect_url(url: sa.URL | str, options: DatabaseOptions | None = None,
                **engine_kwargs: Any) -> ConnectionWrapper:
    """Connect to a SQLAlchemy URL.

    Used for connections resolved from connection strings. Engines are
    kept in the same registry as those created from options.
    """
    url = sa.engine.make_url(url)
    key = f'url:{url.render_as_string(hide_password=False)}'
    with _engine_registry_lock:
        engine = _engine_registry.get(key)
        if engine is None:
            engine_kwargs.setdefault('poolclass', NullPool)
            engine = sa.create_engine(url, **engine_kwargs)
            _engine_registry[key] = engine
    sa_connection = engine.connect()
    configure_connection(sa_connection)
    return ConnectionWrapper(sa_connection, options)


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for connecting to the database
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = get_engine_for_options(options)

    sa_connection = engine.connect()
    configure_connection(sa_connection)

    return ConnectionWrapper(sa_connection, options)
