from dataclasses import dataclass, field
from typing import Any

from schemakit.strategy import get_available_dialects, get_strategy_class
from schemakit.strategy import is_supported_dialect

from libb import ConfigOptions, scriptname

__all__ = ['DatabaseOptions']


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`, `mssql`, `mysql`

    `driver` selects the DBAPI library (`psycopg`, `pysqlite`, `pysqlcipher`,
    `pyodbc`, `pymssql`, `pymysql`, `mysqlconnector`); each dialect has a
    default. `query` carries extra driver arguments placed in the URL query.

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'postgresql'
    driver: str = None
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    query: dict[str, Any] = field(default_factory=dict)
    check_connection: bool = True
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        self.driver = self.driver or strategy_cls.default_driver
        strategy_cls.validate_options(self)
