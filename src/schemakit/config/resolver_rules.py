"""
Rule tables for choosing a client library from a connection string.

Everything the resolver decides on lives here as data: provider families,
candidate drivers in preference order, `Provider=` aliases, heuristic
keywords exclusive to one driver, and the keywords each driver accepts.
The tables can be replaced from a JSON file of the form::

    {
      "candidates": {"mysql": ["mysqlconnector", "pymysql"]},
      "overrides": {"mariadbconnector": "pymysql"},
      "heuristics": {"mysql": [["use_pure", "mysqlconnector"]]}
    }

Keys present in the file replace the corresponding default entries.
Rules are built during setup and only read afterwards.
"""
import json
import logging
import pathlib
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS = [
    pathlib.Path('~/.config/schemakit/resolver_rules.json').expanduser(),
    pathlib.Path('/etc/schemakit/resolver_rules.json'),
    pathlib.Path('resolver_rules.json'),
    ]


def normalize_keyword(key: str) -> str:
    """Lower-case a connection string keyword and collapse its whitespace."""
    return ' '.join(key.lower().split())


@dataclass(frozen=True)
class KeywordValidator:
    """Accepts a parsed connection string if every keyword is known to the driver.

    `keywords` of None accepts any keyword. At least one of `required_any`
    must be present when it is not empty.
    """
    keywords: frozenset[str] | None = None
    required_any: frozenset[str] = frozenset()

    def accepts(self, params: dict[str, str]) -> bool:
        if not params:
            return False
        if self.keywords is not None and any(key not in self.keywords for key in params):
            return False
        if self.required_any and not any(key in params for key in self.required_any):
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'KeywordValidator':
        keywords = data.get('keywords')
        return cls(
            keywords=None if keywords is None else frozenset(normalize_keyword(k) for k in keywords),
            required_any=frozenset(normalize_keyword(k) for k in data.get('required_any', ())))


_SQLSERVER_COMMON = {
    'server', 'data source', 'address', 'addr', 'network address', 'host', 'port',
    'database', 'initial catalog', 'user id', 'uid', 'user', 'password', 'pwd',
    'connect timeout', 'connection timeout', 'timeout', 'application name', 'app',
    }

_MYSQL_COMMON = {
    'server', 'host', 'data source', 'datasource', 'address', 'addr', 'port',
    'database', 'initial catalog', 'db', 'user id', 'uid', 'user', 'username', 'userid',
    'password', 'pwd', 'charset', 'character set', 'sslmode', 'ssl mode', 'ssl ca',
    'ssl cert', 'ssl key', 'connect timeout', 'connection timeout', 'default command timeout',
    'pooling', 'allow user variables', 'allowuservariables', 'allow public key retrieval',
    'unix socket', 'protocol', 'autocommit',
    }

_SQLITE_COMMON = {
    'data source', 'datasource', 'filename', 'database', 'mode', 'cache', 'foreign keys',
    'recursive triggers', 'default timeout', 'timeout', 'pooling',
    }

DEFAULT_VALIDATORS = {
    'pyodbc': KeywordValidator(
        frozenset(_SQLSERVER_COMMON | {
            'driver', 'dsn', 'trusted_connection', 'integrated security', 'encrypt',
            'trustservercertificate', 'trust server certificate', 'multisubnetfailover',
            'multi subnet failover', 'applicationintent', 'application intent', 'authentication',
            'mars_connection', 'multipleactiveresultsets', 'multiple active result sets',
            'workstation id', 'wsid', 'packet size', 'pooling', 'max pool size', 'min pool size',
            'column encryption setting', 'attachdbfilename', 'failover partner',
            'hostnameincertificate', 'language', 'persist security info',
            }),
        frozenset({'server', 'data source', 'address', 'addr', 'network address', 'host', 'dsn'})),
    'pymssql': KeywordValidator(
        frozenset(_SQLSERVER_COMMON | {
            'login timeout', 'login_timeout', 'charset', 'appname', 'tds_version', 'tds version',
            'autocommit', 'conn_properties', 'read_only',
            }),
        frozenset({'server', 'data source', 'address', 'addr', 'network address', 'host'})),
    'pymysql': KeywordValidator(
        frozenset(_MYSQL_COMMON | {
            'read timeout', 'write timeout', 'local infile', 'allow load local infile',
            'connection reset', 'convert zero datetime', 'guid format', 'minimum pool size',
            'maximum pool size', 'server redirection mode',
            }),
        frozenset({'server', 'host', 'data source', 'datasource', 'address', 'addr', 'unix socket'})),
    'mysqlconnector': KeywordValidator(
        frozenset(_MYSQL_COMMON | {
            'treattinyasboolean', 'oldguids', 'useusageadvisor', 'functionsreturnstring',
            'interactivesession', 'respectbinaryflags', 'useprocedurebodies', 'use_pure',
            'auth_plugin', 'raise_on_warnings', 'consume_results', 'allow_local_infile',
            }),
        frozenset({'server', 'host', 'data source', 'datasource', 'address', 'addr', 'unix socket'})),
    'pysqlite': KeywordValidator(
        frozenset(_SQLITE_COMMON),
        frozenset({'data source', 'datasource', 'filename', 'database'})),
    'pysqlcipher': KeywordValidator(
        frozenset(_SQLITE_COMMON | {
            'password', 'key', 'binaryguid', 'busytimeout', 'cache size', 'datetimeformat',
            'datetimekind', 'default isolationlevel', 'defaultdbtype', 'failifmissing',
            'journal mode', 'legacy format', 'max page count', 'page size', 'read only',
            'synchronous', 'version',
            }),
        frozenset({'data source', 'datasource', 'filename', 'database'})),
    'psycopg': KeywordValidator(
        frozenset({
            'host', 'server', 'port', 'database', 'dbname', 'username', 'user', 'user id',
            'userid', 'uid', 'password', 'pwd', 'sslmode', 'ssl mode', 'timeout',
            'connect timeout', 'command timeout', 'application name', 'application_name',
            'search path', 'pooling', 'minimum pool size', 'maximum pool size', 'keepalive',
            'target session attributes', 'include error detail',
            }),
        frozenset({'host', 'server'})),
    }

DEFAULT_FAMILIES = (
    ('mysql', ('mysql', 'mariadb')),
    ('postgresql', ('postgres', 'pg', 'npgsql')),
    ('sqlite', ('sqlite',)),
    ('mssql', ('sqlserver', 'sql server', 'mssql', 'sqlclient')),
    )

DEFAULT_CANDIDATES = {
    'mssql': ('pyodbc', 'pymssql'),
    'mysql': ('pymysql', 'mysqlconnector'),
    'sqlite': ('pysqlite', 'pysqlcipher'),
    'postgresql': ('psycopg',),
    }

# Provider=<alias> values, compared after normalize_keyword
DEFAULT_OVERRIDES = {
    'pyodbc': 'pyodbc',
    'odbc': 'pyodbc',
    'microsoft.data.sqlclient': 'pyodbc',
    'msdatasqlclient': 'pyodbc',
    'microsoftsqlclient': 'pyodbc',
    'pymssql': 'pymssql',
    'freetds': 'pymssql',
    'system.data.sqlclient': 'pymssql',
    'systemdatasqlclient': 'pymssql',
    'mysqlconnector': 'pymysql',
    'pymysql': 'pymysql',
    'mysql.data': 'mysqlconnector',
    'mysqldata': 'mysqlconnector',
    'mysql.connector': 'mysqlconnector',
    'mysql-connector-python': 'mysqlconnector',
    'pysqlite': 'pysqlite',
    'sqlite3': 'pysqlite',
    'microsoft.data.sqlite': 'pysqlite',
    'microsoftdatasqlite': 'pysqlite',
    'pysqlcipher': 'pysqlcipher',
    'sqlcipher': 'pysqlcipher',
    'system.data.sqlite': 'pysqlcipher',
    'systemdatasqlite': 'pysqlcipher',
    'psycopg': 'psycopg',
    'psycopg3': 'psycopg',
    'npgsql': 'psycopg',
    }

# Ordered (keyword or key=value fragment, driver) pairs; the first match wins
DEFAULT_HEURISTICS = {
    'mssql': (
        ('authentication=active directory integrated', 'pyodbc'),
        ('authentication=active directory interactive', 'pyodbc'),
        ('authentication=active directory password', 'pyodbc'),
        ('authentication=active directory managed identity', 'pyodbc'),
        ('authentication=active directory service principal', 'pyodbc'),
        ('authentication=active directory device code flow', 'pyodbc'),
        ('enclave attestation url', 'pyodbc'),
        ('attestation protocol', 'pyodbc'),
        ('driver', 'pyodbc'),
        ('dsn', 'pyodbc'),
        ('column encryption setting', 'pyodbc'),
        # legacy client flags; they follow the system.data.sqlclient alias
        ('user instance=true', 'pymssql'),
        ('context connection=true', 'pymssql'),
        ('asynchronous processing=true', 'pymssql'),
        ('tds_version', 'pymssql'),
        ('tds version', 'pymssql'),
        ('conn_properties', 'pymssql'),
        ('login_timeout', 'pymssql'),
        ),
    'mysql': (
        ('treattinyasboolean', 'mysqlconnector'),
        ('oldguids', 'mysqlconnector'),
        ('useusageadvisor', 'mysqlconnector'),
        ('functionsreturnstring', 'mysqlconnector'),
        ('interactivesession', 'mysqlconnector'),
        ('respectbinaryflags', 'mysqlconnector'),
        ('useprocedurebodies', 'mysqlconnector'),
        ('use_pure', 'mysqlconnector'),
        ('auth_plugin', 'mysqlconnector'),
        ),
    'sqlite': (
        ('password', 'pysqlcipher'),
        ('key', 'pysqlcipher'),
        ('binaryguid', 'pysqlcipher'),
        ('busytimeout', 'pysqlcipher'),
        ('cache size', 'pysqlcipher'),
        ('datetimeformat', 'pysqlcipher'),
        ('datetimekind', 'pysqlcipher'),
        ('failifmissing', 'pysqlcipher'),
        ('journal mode', 'pysqlcipher'),
        ('legacy format', 'pysqlcipher'),
        ('page size', 'pysqlcipher'),
        ('synchronous', 'pysqlcipher'),
        ),
    'postgresql': (),
    }


@dataclass(frozen=True)
class ResolverRules:
    """Data tables driving ConnectionResolver.

    `candidates` orders the drivers tried for a family; reordering it
    changes which driver wins when several parse a string.
    """
    families: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_FAMILIES
    candidates: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_CANDIDATES))
    overrides: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_OVERRIDES))
    heuristics: dict[str, tuple[tuple[str, str], ...]] = field(default_factory=lambda: dict(DEFAULT_HEURISTICS))
    validators: dict[str, KeywordValidator] = field(default_factory=lambda: dict(DEFAULT_VALIDATORS))

    @classmethod
    def default(cls) -> 'ResolverRules':
        return cls()

    def family_for(self, provider_key: str) -> str | None:
        """Return the family whose keyword occurs in the provider key."""
        key = provider_key.lower()
        for family, keywords in self.families:
            if any(keyword in key for keyword in keywords):
                return family
        return None

    def driver_for_alias(self, alias: str) -> str | None:
        return self.overrides.get(normalize_keyword(alias))

    def with_candidates(self, family: str, drivers: list[str] | tuple[str, ...]) -> 'ResolverRules':
        """Return a copy trying the given drivers, in order, for one family."""
        candidates = dict(self.candidates)
        candidates[family] = tuple(drivers)
        return replace(self, candidates=candidates)

    def merge(self, data: dict[str, Any]) -> 'ResolverRules':
        """Return a copy with entries from a JSON-style mapping replacing defaults."""
        changes: dict[str, Any] = {}
        if 'families' in data:
            changes['families'] = tuple((family, tuple(k.lower() for k in keywords))
                                        for family, keywords in data['families'])
        if 'candidates' in data:
            changes['candidates'] = {**self.candidates,
                                     **{f: tuple(d) for f, d in data['candidates'].items()}}
        if 'overrides' in data:
            changes['overrides'] = {**self.overrides,
                                    **{normalize_keyword(k): v for k, v in data['overrides'].items()}}
        if 'heuristics' in data:
            changes['heuristics'] = {**self.heuristics,
                                     **{f: tuple((normalize_keyword(h), d) for h, d in pairs)
                                        for f, pairs in data['heuristics'].items()}}
        if 'validators' in data:
            changes['validators'] = {**self.validators,
                                     **{d: KeywordValidator.from_dict(v) for d, v in data['validators'].items()}}
        rules = replace(self, **changes)
        rules.check()
        return rules

    def check(self) -> None:
        """Raise ValueError if a table names a driver with no validator."""
        known = set(self.validators)
        for family, drivers in self.candidates.items():
            for driver in drivers:
                if driver not in known:
                    raise ValueError(f'Candidate {driver!r} for {family} has no validator')
        for alias, driver in self.overrides.items():
            if driver not in known:
                raise ValueError(f'Override {alias!r} maps to unknown driver {driver!r}')
        for family, pairs in self.heuristics.items():
            for keyword, driver in pairs:
                if driver not in known:
                    raise ValueError(f'Heuristic {keyword!r} for {family} maps to unknown driver {driver!r}')

    @classmethod
    def load(cls, config_file: str | pathlib.Path | None = None) -> 'ResolverRules':
        """Load rules from a JSON file, or the first default location present.

        Raises
            ValueError: If the file is not valid JSON or names unknown drivers
        """
        if config_file is None:
            config_file = next((p for p in DEFAULT_LOCATIONS if p.exists()), None)
            if config_file is None:
                return cls.default()
        path = pathlib.Path(config_file)
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f'Invalid resolver rules file {path}: {e}') from e
        if not isinstance(data, dict):
            raise ValueError(f'Resolver rules file {path} must contain an object')
        rules = cls.default().merge(data)
        logger.info(f'Loaded resolver rules from {path}')
        return rules
