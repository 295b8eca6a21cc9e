"""
Dialect strategy factory for database-specific schema operations.
"""
from functools import lru_cache

from schemakit.adapters.type_mapping import TypeConverterRegistry
from schemakit.strategy.base import _STRATEGY_REGISTRY
from schemakit.strategy.base import DialectStrategy as DialectStrategy
from schemakit.strategy.base import EnsureResult as EnsureResult
from schemakit.strategy.base import register_strategy as register_strategy
from schemakit.strategy.mysql import MariaDBStrategy as MariaDBStrategy
from schemakit.strategy.mysql import MySQLStrategy as MySQLStrategy
from schemakit.strategy.postgres import PostgresStrategy as PostgresStrategy
from schemakit.strategy.sqlite import SQLiteStrategy as SQLiteStrategy
from schemakit.strategy.sqlserver import SQLServerStrategy as SQLServerStrategy
from schemakit.utils import DIALECT_ALIASES, get_dialect_name


def _validate_dialect(dialect: str) -> None:
    """Raise ValueError if dialect is not registered."""
    if dialect not in _STRATEGY_REGISTRY:
        available = list(_STRATEGY_REGISTRY.keys())
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {available}')


def _canonical(dialect: str) -> str:
    dialect = dialect.lower()
    return DIALECT_ALIASES.get(dialect, dialect)


@lru_cache(maxsize=8)
def _get_strategy(dialect: str) -> DialectStrategy:
    """Get cached strategy instance for a dialect."""
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect]()


def get_strategy(dialect: str, registry: TypeConverterRegistry | None = None) -> DialectStrategy:
    """Get strategy instance for a dialect name.

    Without a registry the shared instance using the built-in type rules is
    returned; a custom registry gets a fresh instance.
    """
    dialect = _canonical(dialect)
    if registry is None:
        return _get_strategy(dialect)
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect](registry)


def get_db_strategy(cn, registry: TypeConverterRegistry | None = None) -> DialectStrategy:
    """Get dialect strategy for the connection."""
    return get_strategy(get_dialect_name(cn), registry)


def get_available_dialects() -> list[str]:
    """Return list of registered dialect names."""
    return list(_STRATEGY_REGISTRY.keys())


def is_supported_dialect(dialect: str) -> bool:
    """Check if a dialect is supported."""
    return _canonical(dialect) in _STRATEGY_REGISTRY


def get_strategy_class(dialect: str) -> type['DialectStrategy']:
    """Get the strategy class for a dialect without instantiating."""
    dialect = _canonical(dialect)
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect]
