"""
MySQL and MariaDB strategy implementation.

This module implements the DialectStrategy interface with MySQL-specific operations.
It handles MySQL's peculiarities such as:
- Implicit commit after every DDL statement (no transactional DDL)
- Databases standing in for schemas; the connection's database is the default
- DROP FOREIGN KEY / DROP INDEX / DROP CHECK instead of DROP CONSTRAINT
  (MariaDB drops checks with DROP CONSTRAINT)
- Check constraints only enforced and reported from 8.0.16
- Metadata retrieval using information_schema
"""
import dataclasses
import logging
from itertools import groupby
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyConstraint, Index
from schemakit.models import OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint
from schemakit.sql import escape_string_literal, strip_wrapping_parens
from schemakit.strategy.base import DialectStrategy, register_strategy

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

_NUMERIC_TYPES = {
    'tinyint', 'smallint', 'mediumint', 'int', 'integer', 'bigint',
    'decimal', 'numeric', 'float', 'double', 'real', 'bit', 'bool', 'boolean',
    }

# first MySQL release that enforces and reports CHECK constraints
CHECK_CONSTRAINT_VERSION = (8, 0, 16)
MARIADB_MIN_MAJOR = 10


@register_strategy('mysql')
class MySQLStrategy(DialectStrategy):
    """MySQL-specific operations.
    """

    dialect_name = 'mysql'
    default_driver = 'pymysql'
    server_version_sql = 'SELECT VERSION()'
    # MariaDB has no DROP CHECK
    drop_check_keyword = 'CHECK'
    create_table_suffix = ' DEFAULT CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci ENGINE = InnoDB'
    default_expressions = {
        DefaultExpression.CURRENT_TIMESTAMP: 'CURRENT_TIMESTAMP',
        DefaultExpression.CURRENT_DATE: '(CURRENT_DATE)',
        DefaultExpression.NEW_UUID: '(uuid())',
        }

    @classmethod
    def build_connection_url(cls, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for MySQL."""
        query = {'charset': 'utf8mb4'}
        query.update(options.query or {})
        return sa.URL.create(
            f'mysql+{options.driver or cls.default_driver}',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query)

    @classmethod
    def get_engine_kwargs(cls, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for MySQL."""
        if not options.timeout:
            return {}
        key = 'connection_timeout' if options.driver == 'mysqlconnector' else 'connect_timeout'
        return {'connect_args': {key: options.timeout}}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for MySQL connections."""
        return ['hostname', 'username', 'database']

    # -- catalog --------------------------------------------------------------

    def _schema_sql(self, schema: str | None) -> tuple[str, list]:
        """Placeholder and parameters selecting a database, the current one by default."""
        if schema:
            return '%s', [schema]
        return 'DATABASE()', []

    def _get_table_names(self, cn: 'ConnectionWrapper', schema: str | None,
                         like: str | None) -> list[str]:
        schema_sql, params = self._schema_sql(schema)
        sql = f"""
SELECT TABLE_NAME AS name FROM information_schema.TABLES
WHERE TABLE_SCHEMA = {schema_sql} AND TABLE_TYPE = 'BASE TABLE'
"""
        if like:
            sql += " AND TABLE_NAME LIKE %s ESCAPE '!'"
            params.append(like)
        return self._select_column_raw(cn, sql + ' ORDER BY TABLE_NAME', params)

    def _get_view_rows(self, cn: 'ConnectionWrapper', schema: str | None,
                       like: str | None) -> list[tuple[str, str]]:
        schema_sql, params = self._schema_sql(schema)
        sql = f"""
SELECT TABLE_NAME AS name, VIEW_DEFINITION AS definition FROM information_schema.VIEWS
WHERE TABLE_SCHEMA = {schema_sql}
"""
        if like:
            sql += " AND TABLE_NAME LIKE %s ESCAPE '!'"
            params.append(like)
        rows = self._select_raw(cn, sql + ' ORDER BY TABLE_NAME', params)
        return [(row['name'], row['definition']) for row in rows]

    def _supports_check_constraints(self, cn: 'ConnectionWrapper') -> bool:
        version = self.get_server_version(cn)
        return version >= CHECK_CONSTRAINT_VERSION or (bool(version) and version[0] >= MARIADB_MIN_MAJOR)

    def _default_from_catalog(self, row: dict) -> str | None:
        """Turn COLUMN_DEFAULT into an SQL expression.

        MySQL reports literal defaults unquoted, MariaDB quoted and NULL as
        the string 'NULL'.
        """
        value = row['default_value']
        if value is None or value == 'NULL':
            return None
        if 'DEFAULT_GENERATED' in (row['extra'] or '').upper():
            return value
        if value.startswith("'") or row['data_type'].lower() in _NUMERIC_TYPES:
            return value
        if value.upper().startswith('CURRENT_TIMESTAMP'):
            return value
        return escape_string_literal(value)

    def _introspect_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                          report_schema: str | None) -> Table:
        schema_sql, schema_params = self._schema_sql(schema)
        params = [*schema_params, table_name]

        columns = []
        defaults = []
        sql = f"""
SELECT COLUMN_NAME AS name, COLUMN_TYPE AS column_type, DATA_TYPE AS data_type,
       IS_NULLABLE AS is_nullable, COLUMN_DEFAULT AS default_value, EXTRA AS extra
FROM information_schema.COLUMNS
WHERE TABLE_SCHEMA = {schema_sql} AND TABLE_NAME = %s
ORDER BY ORDINAL_POSITION
"""
        for row in self._select_raw(cn, sql, params):
            auto = 'auto_increment' in (row['extra'] or '').lower()
            columns.append(Column(
                row['name'],
                self.registry.require_python(self.dialect_name, row['column_type']),
                is_nullable=row['is_nullable'] == 'YES',
                is_auto_increment=auto,
                sql_type=row['column_type']))
            default = self._default_from_catalog(row)
            if default is not None:
                defaults.append(DefaultConstraint(row['name'], default))

        sql = f"""
SELECT tc.CONSTRAINT_NAME AS name, tc.CONSTRAINT_TYPE AS type, tc.TABLE_SCHEMA AS table_schema,
       k.COLUMN_NAME AS column_name, k.REFERENCED_TABLE_SCHEMA AS referenced_schema,
       k.REFERENCED_TABLE_NAME AS referenced_table, k.REFERENCED_COLUMN_NAME AS referenced_column,
       rc.DELETE_RULE AS on_delete, rc.UPDATE_RULE AS on_update
FROM information_schema.TABLE_CONSTRAINTS tc
JOIN information_schema.KEY_COLUMN_USAGE k
    ON k.CONSTRAINT_SCHEMA = tc.CONSTRAINT_SCHEMA AND k.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
    AND k.TABLE_NAME = tc.TABLE_NAME
LEFT JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
    ON rc.CONSTRAINT_SCHEMA = tc.CONSTRAINT_SCHEMA AND rc.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
    AND rc.TABLE_NAME = tc.TABLE_NAME
WHERE tc.TABLE_SCHEMA = {schema_sql} AND tc.TABLE_NAME = %s
  AND tc.CONSTRAINT_TYPE IN ('PRIMARY KEY', 'UNIQUE', 'FOREIGN KEY')
ORDER BY tc.CONSTRAINT_NAME, k.ORDINAL_POSITION
"""
        primary_key = None
        uniques = []
        foreign_keys = []
        key_names = set()
        rows = self._select_raw(cn, sql, params)
        for (name, kind), group in groupby(rows, key=lambda r: (r['name'], r['type'])):
            group = list(group)
            first = group[0]
            names = [r['column_name'] for r in group]
            key_names.add(name)
            if kind == 'PRIMARY KEY':
                # MySQL names every primary key PRIMARY
                primary_key = PrimaryKeyConstraint(names)
            elif kind == 'UNIQUE':
                uniques.append(UniqueConstraint(names, name))
            else:
                referenced_schema = first['referenced_schema']
                foreign_keys.append(ForeignKeyConstraint(
                    names, first['referenced_table'], [r['referenced_column'] for r in group],
                    name=name,
                    referenced_schema=None if referenced_schema == first['table_schema'] else referenced_schema,
                    on_delete=first['on_delete'], on_update=first['on_update']))

        checks = []
        if self._supports_check_constraints(cn):
            sql = f"""
SELECT tc.CONSTRAINT_NAME AS name, cc.CHECK_CLAUSE AS expression
FROM information_schema.TABLE_CONSTRAINTS tc
JOIN information_schema.CHECK_CONSTRAINTS cc
    ON cc.CONSTRAINT_SCHEMA = tc.CONSTRAINT_SCHEMA AND cc.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
WHERE tc.TABLE_SCHEMA = {schema_sql} AND tc.TABLE_NAME = %s AND tc.CONSTRAINT_TYPE = 'CHECK'
ORDER BY tc.CONSTRAINT_NAME
"""
            checks = [CheckConstraint(strip_wrapping_parens(row['expression']), name=row['name'])
                      for row in self._select_raw(cn, sql, params)]

        sql = f"""
SELECT INDEX_NAME AS name, NON_UNIQUE AS non_unique, COLUMN_NAME AS column_name, COLLATION AS collation
FROM information_schema.STATISTICS
WHERE TABLE_SCHEMA = {schema_sql} AND TABLE_NAME = %s
ORDER BY INDEX_NAME, SEQ_IN_INDEX
"""
        indexes = []
        for name, group in groupby(self._select_raw(cn, sql, params), key=lambda r: r['name']):
            group = [r for r in group if r['column_name']]
            # key-backing indexes are reported as their constraints
            if name == 'PRIMARY' or name in key_names or not group:
                continue
            indexes.append(Index(
                [OrderedColumn(r['column_name'], r['collation'] == 'D') for r in group],
                name, not int(group[0]['non_unique'])))

        return Table(
            name=table_name,
            columns=tuple(columns),
            schema_name=report_schema,
            primary_key=primary_key,
            unique_constraints=tuple(uniques),
            check_constraints=tuple(checks),
            default_constraints=tuple(defaults),
            foreign_keys=tuple(foreign_keys),
            indexes=tuple(indexes),
            )

    # -- rendering ------------------------------------------------------------

    def normalize_table(self, table: Table) -> Table:
        """Replace a custom primary key name with the generated one; MySQL calls every primary key PRIMARY."""
        table = super().normalize_table(table)
        pk = table.primary_key
        if pk is not None and pk.name:
            return table.replace(primary_key=dataclasses.replace(pk, name=None))
        return table

    def _identity_clause(self, column: Column) -> str | None:
        if column.is_auto_increment:
            return 'AUTO_INCREMENT'
        return None

    def rename_table_sql(self, table_name: str, new_name: str, schema_name: str | None) -> str:
        return f'RENAME TABLE {self.qualify(table_name, schema_name)} TO {self.qualify(new_name, schema_name)}'

    def rename_view_sql(self, view_name: str, new_name: str, schema_name: str | None) -> list[str] | None:
        # RENAME TABLE moves views too
        return [self.rename_table_sql(view_name, new_name, schema_name)]

    def _drop_member_sql(self, table: Table, attr: str, member: Any) -> list[str] | None:
        name = self.quote_identifier(member.name)
        if attr == 'primary_key':
            return [f'{self._alter(table)} DROP PRIMARY KEY']
        if attr == 'foreign_keys':
            return [f'{self._alter(table)} DROP FOREIGN KEY {name}']
        if attr == 'unique_constraints':
            return [f'{self._alter(table)} DROP INDEX {name}']
        if attr == 'check_constraints':
            return [f'{self._alter(table)} DROP {self.drop_check_keyword} {name}']
        return super()._drop_member_sql(table, attr, member)

    def _alter_column_sql(self, table: Table, old: Column, new: Column) -> list[str] | None:
        return [f'{self._alter(table)} MODIFY COLUMN {self.column_definition(table, new)}']


@register_strategy('mariadb')
class MariaDBStrategy(MySQLStrategy):
    """MariaDB differences from MySQL.

    Chosen for connections whose server reports itself as MariaDB; catalog
    queries and type rules are shared with MySQL.
    """

    drop_check_keyword = 'CONSTRAINT'
