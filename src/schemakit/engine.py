"""
Execution engine.

`SchemaEngine` exposes every schema operation on a connection target:
an open ConnectionWrapper (reused as is), DatabaseOptions or an options
mapping (a connection is opened per call and closed on every exit path),
or a ResolvedConnection from the connection resolver.

Each call is authorized through the configured hook, then dispatched to
the dialect strategy of the connection. Every operation accepts
``cancel=CancellationToken``; the token is checked before each statement.

`AsyncSchemaEngine` runs the same operations in a worker thread. When the
awaiting task is cancelled the token is tripped, so the worker stops at
the next statement boundary.
"""
import asyncio
import logging
from contextlib import contextmanager
from typing import Any

from schemakit.adapters.type_mapping import TypeConverterRegistry
from schemakit.cancellation import CancellationToken
from schemakit.connection import ConnectionWrapper, connect
from schemakit.hooks import OPERATIONS, Authorizer, OperationContext, authorize
from schemakit.resolver import ResolvedConnection
from schemakit.strategy import DialectStrategy, get_db_strategy

logger = logging.getLogger(__name__)


class SchemaEngine:
    """Schema operations against one connection target.

    Args:
        target: ConnectionWrapper, DatabaseOptions, options mapping or ResolvedConnection
        registry: Type converter registry used to render and read types
        authorizer: Called with an OperationContext before each operation
        identity: Caller identity placed in the OperationContext
    """

    def __init__(self, target: Any, registry: TypeConverterRegistry | None = None,
                 authorizer: Authorizer | None = None, identity: Any = None) -> None:
        self.target = target
        self.registry = registry
        self.authorizer = authorizer
        self.identity = identity
        self._strategies: dict[str, DialectStrategy] = {}

    def __repr__(self) -> str:
        return f'<SchemaEngine target={self.target!r}>'

    def strategy_for(self, cn: ConnectionWrapper) -> DialectStrategy:
        """Return the dialect strategy for a connection, built with this engine's registry."""
        strategy = self._strategies.get(cn.dialect)
        if strategy is None:
            strategy = get_db_strategy(cn, self.registry)
            self._strategies[cn.dialect] = strategy
        return strategy

    def _open(self) -> tuple[ConnectionWrapper, bool]:
        """Return a connection and whether this engine owns it."""
        if isinstance(self.target, ConnectionWrapper):
            return self.target, False
        if isinstance(self.target, ResolvedConnection):
            return self.target.connect(), True
        return connect(self.target), True

    @contextmanager
    def _connection(self, cancel: CancellationToken | None = None):
        cn, owned = self._open()
        previous = cn.cancel_token
        if cancel is not None:
            cn.cancel_token = cancel
        try:
            yield cn
        finally:
            cn.cancel_token = previous
            if owned:
                cn.close()

    @contextmanager
    def session(self, cancel: CancellationToken | None = None):
        """Run several operations on one connection.

        Yields a SchemaEngine bound to the open connection.
        """
        with self._connection(cancel) as cn:
            yield SchemaEngine(cn, self.registry, self.authorizer, self.identity)

    def _dispatch(self, method: str, *args: Any, cancel: CancellationToken | None = None,
                  **kwargs: Any) -> Any:
        operation = OPERATIONS[method]
        authorize(self.authorizer, OperationContext(self.identity, operation))
        if cancel is not None:
            cancel.raise_if_cancelled(operation)
        with self._connection(cancel) as cn:
            strategy = self.strategy_for(cn)
            logger.debug(f'Dispatching {operation} to {strategy.dialect_name}')
            return getattr(strategy, method)(cn, *args, **kwargs)

    def get_server_version(self) -> tuple[int, ...]:
        with self._connection() as cn:
            return self.strategy_for(cn).get_server_version(cn)


class AsyncSchemaEngine:
    """Coroutine counterpart of SchemaEngine.

    Operations run in a worker thread via asyncio.to_thread. A caller-supplied
    ConnectionWrapper must not be used by two operations at once.
    """

    def __init__(self, target: Any, registry: TypeConverterRegistry | None = None,
                 authorizer: Authorizer | None = None, identity: Any = None) -> None:
        self.engine = SchemaEngine(target, registry, authorizer, identity)

    def __repr__(self) -> str:
        return f'<AsyncSchemaEngine target={self.engine.target!r}>'

    async def _run(self, method: str, args: tuple, kwargs: dict,
                   cancel: CancellationToken | None) -> Any:
        token = cancel or CancellationToken()
        try:
            return await asyncio.to_thread(self.engine._dispatch, method, *args, cancel=token, **kwargs)
        except asyncio.CancelledError:
            token.cancel()
            logger.info(f'{OPERATIONS[method]} cancelled, stopping at the next statement')
            raise

    async def get_server_version(self) -> tuple[int, ...]:
        return await asyncio.to_thread(self.engine.get_server_version)


def _sync_operation(method: str):
    def operation(self, *args: Any, cancel: CancellationToken | None = None, **kwargs: Any) -> Any:
        return self._dispatch(method, *args, cancel=cancel, **kwargs)
    operation.__name__ = operation.__qualname__ = method
    operation.__doc__ = getattr(DialectStrategy, method).__doc__
    return operation


def _async_operation(method: str):
    async def operation(self, *args: Any, cancel: CancellationToken | None = None, **kwargs: Any) -> Any:
        return await self._run(method, args, kwargs, cancel)
    operation.__name__ = operation.__qualname__ = method
    operation.__doc__ = getattr(DialectStrategy, method).__doc__
    return operation


for _method in OPERATIONS:
    setattr(SchemaEngine, _method, _sync_operation(_method))
    setattr(AsyncSchemaEngine, _method, _async_operation(_method))
