"""
Connection resolver.

Given a free-text provider key and an ADO/ODBC style connection string
(``Server=db;Database=app;User Id=sa``), decide which client library
services the connection. The decision never touches the network:

1. An embedded ``Provider=<name>`` token is removed and forces the driver
   its alias maps to.
2. A keyword (or ``key=value`` prefix) exclusive to one driver forces it.
3. Each candidate driver's keyword validator is tried in preference order.
4. Otherwise AmbiguousConnectionString is raised.

The tables behind every step are in schemakit.config.resolver_rules.
"""
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from schemakit.config.resolver_rules import ResolverRules, normalize_keyword
from schemakit.exceptions import AmbiguousConnectionString

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

PROVIDER_KEYWORD = 'provider'

HOST_KEYS = ('server', 'host', 'data source', 'datasource', 'address', 'addr', 'network address')
FILE_KEYS = ('data source', 'datasource', 'filename', 'database')
DATABASE_KEYS = ('database', 'initial catalog', 'dbname', 'db')
USER_KEYS = ('user id', 'uid', 'user', 'username', 'userid')
PASSWORD_KEYS = ('password', 'pwd')
CIPHER_KEYS = ('password', 'key')
TIMEOUT_KEYS = ('connect timeout', 'connection timeout', 'timeout', 'default timeout',
                'login timeout', 'login_timeout')
APPNAME_KEYS = ('application name', 'application_name', 'app', 'appname')
ODBC_KEYS = ('driver', 'dsn')

_CLOSING = {'{': '}', "'": "'", '"': '"'}


def _read_quoted(text: str, pos: int) -> tuple[str, int]:
    """Read a quoted or braced value starting at pos.

    A doubled closing character stands for itself.
    """
    closing = _CLOSING[text[pos]]
    chars = []
    i = pos + 1
    while i < len(text):
        ch = text[i]
        if ch == closing:
            if i + 1 < len(text) and text[i + 1] == closing:
                chars.append(ch)
                i += 2
                continue
            return ''.join(chars), i + 1
        chars.append(ch)
        i += 1
    raise ValueError(f'Unterminated {text[pos]} value in connection string')


def split_connection_string(text: str) -> list[tuple[str, str, str]]:
    """Split a connection string into (segment, key, value) triples.

    `segment` is the raw ``key=value`` text; `key` is normalized.

    >>> split_connection_string("Server=db; Password='a;b'")
    [('Server=db', 'server', 'db'), ("Password='a;b'", 'password', 'a;b')]
    """
    pairs = []
    i, n = 0, len(text)
    while i < n:
        while i < n and text[i] in ' \t\r\n;':
            i += 1
        if i >= n:
            break
        start = i
        eq = text.find('=', i)
        if eq < 0:
            raise ValueError(f'Missing "=" in connection string segment {text[i:]!r}')
        key = normalize_keyword(text[i:eq])
        if not key or ';' in key:
            raise ValueError(f'Invalid keyword in connection string segment {text[i:eq + 1]!r}')
        i = eq + 1
        while i < n and text[i] in ' \t':
            i += 1
        if i < n and text[i] in _CLOSING:
            value, i = _read_quoted(text, i)
            while i < n and text[i] in ' \t':
                i += 1
            if i < n and text[i] != ';':
                raise ValueError(f'Unexpected text after quoted value of {key!r}')
        else:
            end = text.find(';', i)
            end = n if end < 0 else end
            value = text[i:end].strip()
            i = end
        pairs.append((text[start:i].strip(), key, value))
    return pairs


def parse_connection_string(text: str) -> dict[str, str]:
    """Parse a connection string into normalized keywords and values; last one wins."""
    return {key: value for _, key, value in split_connection_string(text)}


def strip_provider(text: str) -> tuple[str, str | None]:
    """Remove a ``Provider=`` segment, returning the cleaned string and its value."""
    provider = None
    segments = []
    for segment, key, value in split_connection_string(text):
        if key == PROVIDER_KEYWORD:
            provider = value
        else:
            segments.append(segment)
    return ';'.join(segments), provider


def _first(params: dict[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        if params.get(key):
            return params[key]
    return None


def _split_server(server: str | None, family: str) -> tuple[str | None, int]:
    """Split ``tcp:host,1433`` (SQL Server) or ``host:5432`` into host and port."""
    if not server:
        return None, 0
    if server.lower().startswith('tcp:'):
        server = server[4:]
    separator = ',' if family == 'mssql' else ':'
    host, _, port = server.partition(separator)
    if port.strip().isdigit():
        return host.strip(), int(port)
    return server.strip(), 0


@dataclass(frozen=True)
class ResolvedConnection:
    """Outcome of resolving a connection string: family plus client library.

    `connection_string` has any ``Provider=`` token removed.
    """
    family: str
    driver: str
    connection_string: str
    params: dict[str, str] = field(default_factory=dict)

    def _consumed(self) -> set[str]:
        return {PROVIDER_KEYWORD, 'port', *HOST_KEYS, *DATABASE_KEYS, *USER_KEYS,
                *PASSWORD_KEYS, *TIMEOUT_KEYS, *APPNAME_KEYS}

    def to_options(self) -> 'DatabaseOptions':
        """Translate the connection string into DatabaseOptions."""
        from schemakit.options import DatabaseOptions

        params = self.params
        kwargs: dict[str, Any] = {'drivername': self.family, 'driver': self.driver}
        timeout = _first(params, TIMEOUT_KEYS)
        if timeout and timeout.isdigit():
            kwargs['timeout'] = int(timeout)

        if self.family == 'sqlite':
            kwargs['database'] = _first(params, FILE_KEYS)
            if self.driver == 'pysqlcipher':
                kwargs['password'] = _first(params, CIPHER_KEYS)
            return DatabaseOptions(**kwargs)

        if self.family == 'mssql' and self.driver == 'pyodbc' and any(k in params for k in ODBC_KEYS):
            kwargs['query'] = {'odbc_connect': self.connection_string}
            return DatabaseOptions(**kwargs)

        host, port = _split_server(_first(params, HOST_KEYS), self.family)
        if params.get('port', '').isdigit():
            port = int(params['port'])
        kwargs.update(
            hostname=host,
            port=port,
            database=_first(params, DATABASE_KEYS),
            username=_first(params, USER_KEYS),
            password=_first(params, PASSWORD_KEYS),
            )
        appname = _first(params, APPNAME_KEYS)
        if appname:
            kwargs['appname'] = appname

        leftover = {k: v for k, v in params.items() if k not in self._consumed()}
        if self.driver == 'pyodbc':
            kwargs['query'] = leftover
        elif leftover:
            logger.debug(f'Options not passed to {self.driver}: {sorted(leftover)}')
        return DatabaseOptions(**kwargs)

    def to_url(self) -> sa.URL:
        """Return the SQLAlchemy URL for this connection."""
        from schemakit.connection import create_url_from_options
        return create_url_from_options(self.to_options())

    def connect(self) -> 'ConnectionWrapper':
        """Open a connection through the resolved client library."""
        from schemakit.connection import connect
        return connect(self.to_options())


class ConnectionResolver:
    """Pick a client library for a connection string using ResolverRules.

    Construct once and reuse; the rules are only read.
    """

    def __init__(self, rules: ResolverRules | None = None) -> None:
        self.rules = rules or ResolverRules.default()

    def _heuristic_driver(self, family: str, params: dict[str, str]) -> str | None:
        pairs = [f'{key}={normalize_keyword(value)}' for key, value in params.items()]
        for keyword, driver in self.rules.heuristics.get(family, ()):
            if '=' in keyword:
                if any(pair.startswith(keyword) for pair in pairs):
                    return driver
            elif keyword in params:
                return driver
        return None

    def resolve(self, provider_key: str, connection_string: str) -> ResolvedConnection:
        """Decide the family and client library for a connection string.

        Args:
            provider_key: Free text naming the database, e.g. ``MySql`` or ``npgsql``
            connection_string: ``key=value;...`` connection string

        Returns
            ResolvedConnection

        Raises
            AmbiguousConnectionString: If no step selects a driver
        """
        family = self.rules.family_for(provider_key or '')
        if family is None:
            raise AmbiguousConnectionString(provider_key, 'unknown provider family')
        if not connection_string or not connection_string.strip():
            raise AmbiguousConnectionString(provider_key, 'connection string is empty')
        candidates = self.rules.candidates.get(family, ())

        try:
            cleaned, provider = strip_provider(connection_string)
            params = parse_connection_string(cleaned)
        except ValueError as e:
            raise AmbiguousConnectionString(provider_key, str(e)) from e

        if provider:
            driver = self.rules.driver_for_alias(provider)
            if driver in candidates:
                logger.debug(f'Provider={provider} selects {driver}')
                return ResolvedConnection(family, driver, cleaned, params)
            logger.warning(f'Ignoring Provider={provider}: not a {family} client library')

        driver = self._heuristic_driver(family, params)
        if driver is not None:
            logger.debug(f'Connection string keywords select {driver}')
            return ResolvedConnection(family, driver, cleaned, params)

        for driver in candidates:
            validator = self.rules.validators.get(driver)
            if validator is not None and validator.accepts(params):
                logger.debug(f'Connection string parsed by {driver}')
                return ResolvedConnection(family, driver, cleaned, params)

        raise AmbiguousConnectionString(
            provider_key, f'no {family} client library accepts keywords {sorted(params)}')


def resolve_connection(provider_key: str, connection_string: str,
                       rules: ResolverRules | None = None) -> ResolvedConnection:
    """Resolve a connection string with the given (or default) rules."""
    return ConnectionResolver(rules).resolve(provider_key, connection_string)
