"""
SQL Server-specific strategy implementation.

This module implements the DialectStrategy interface with SQL Server-specific operations.
It handles SQL Server's features such as:
- Named default constraints that must be dropped before their column
- sp_rename for renaming tables and columns
- Identity columns that cannot be added to or removed from existing columns
- Metadata retrieval using the sys.* catalog views
- Proper quoting of identifiers with square brackets
"""
import logging
from itertools import groupby
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyAction, ForeignKeyConstraint
from schemakit.models import Index, OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint
from schemakit.sql import escape_string_literal, strip_wrapping_parens
from schemakit.strategy.base import DialectStrategy, register_strategy
from schemakit.types import MAX_LENGTH, render_sql_type

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

DEFAULT_ODBC_DRIVER = 'ODBC Driver 18 for SQL Server'

_TABLE_FILTER = """
JOIN sys.tables t ON t.object_id = {object_id}
JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE s.name = %s AND t.name = %s"""

_COLUMNS_SQL = """
SELECT c.name, ty.name AS type_name, c.max_length, c.precision, c.scale,
       c.is_nullable, c.is_identity, dc.name AS default_name, dc.definition AS default_definition
FROM sys.columns c
JOIN sys.types ty ON ty.user_type_id = c.user_type_id
LEFT JOIN sys.default_constraints dc
    ON dc.parent_object_id = c.object_id AND dc.parent_column_id = c.column_id""" + \
    _TABLE_FILTER.format(object_id='c.object_id') + """
ORDER BY c.column_id
"""

_KEYS_SQL = """
SELECT kc.name, kc.type, col.name AS column_name
FROM sys.key_constraints kc
JOIN sys.index_columns ic ON ic.object_id = kc.parent_object_id AND ic.index_id = kc.unique_index_id
JOIN sys.columns col ON col.object_id = ic.object_id AND col.column_id = ic.column_id""" + \
    _TABLE_FILTER.format(object_id='kc.parent_object_id') + """
ORDER BY kc.name, ic.key_ordinal
"""

_CHECKS_SQL = """
SELECT cc.name, cc.definition, col.name AS column_name
FROM sys.check_constraints cc
LEFT JOIN sys.columns col
    ON col.object_id = cc.parent_object_id AND col.column_id = cc.parent_column_id""" + \
    _TABLE_FILTER.format(object_id='cc.parent_object_id') + """
ORDER BY cc.name
"""

_FOREIGN_KEYS_SQL = """
SELECT fk.name, pc.name AS column_name, rt.name AS referenced_table, rs.name AS referenced_schema,
       rc.name AS referenced_column, fk.delete_referential_action_desc AS on_delete,
       fk.update_referential_action_desc AS on_update
FROM sys.foreign_keys fk
JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
JOIN sys.columns pc ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id
JOIN sys.schemas rs ON rs.schema_id = rt.schema_id
JOIN sys.columns rc ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id""" + \
    _TABLE_FILTER.format(object_id='fk.parent_object_id') + """
ORDER BY fk.name, fkc.constraint_column_id
"""

_INDEXES_SQL = """
SELECT i.name, i.is_unique, col.name AS column_name, ic.is_descending_key AS descending
FROM sys.indexes i
JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
JOIN sys.columns col ON col.object_id = ic.object_id AND col.column_id = ic.column_id""" + \
    _TABLE_FILTER.format(object_id='i.object_id') + """
  AND i.is_primary_key = 0 AND i.is_unique_constraint = 0 AND i.type > 0
  AND ic.is_included_column = 0
ORDER BY i.name, ic.key_ordinal
"""

_UNICODE_TYPES = {'nchar', 'nvarchar'}
_LENGTH_TYPES = {'char', 'varchar', 'nchar', 'nvarchar', 'binary', 'varbinary'}
_PRECISION_TYPES = {'decimal', 'numeric'}


def catalog_type(type_name: str, max_length: int, precision: int, scale: int) -> str:
    """Spell a sys.columns type the way it is written in DDL.

    max_length is in bytes; -1 means (max).
    """
    name = type_name.lower()
    if name in _PRECISION_TYPES:
        return render_sql_type(name, precision=precision, scale=scale).sql_type_name
    if name in _LENGTH_TYPES:
        if max_length == -1:
            length = MAX_LENGTH
        else:
            length = max_length // 2 if name in _UNICODE_TYPES else max_length
        return render_sql_type(name, length=length, max_token='max').sql_type_name
    return name


@register_strategy('mssql')
class SQLServerStrategy(DialectStrategy):
    """SQL Server-specific operations"""

    dialect_name = 'mssql'
    default_driver = 'pyodbc'
    default_schema = 'dbo'
    supports_schemas = True
    supports_transactional_ddl = True
    alter_column_drops_default = True
    like_specials = '%_['
    begin_sql = 'BEGIN TRANSACTION'
    commit_sql = 'COMMIT TRANSACTION'
    rollback_sql = 'ROLLBACK TRANSACTION'
    server_version_sql = "SELECT CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128))"
    default_expressions = {
        DefaultExpression.CURRENT_TIMESTAMP: 'SYSDATETIME()',
        DefaultExpression.CURRENT_DATE: 'CAST(GETDATE() AS date)',
        DefaultExpression.NEW_UUID: 'NEWID()',
        }

    @classmethod
    def build_connection_url(cls, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQL Server.

        An ``odbc_connect`` entry in options.query is passed through as a
        complete ODBC connection string.
        """
        driver = options.driver or cls.default_driver
        query = dict(options.query or {})
        if 'odbc_connect' in query:
            return sa.URL.create(f'mssql+{driver}', query={'odbc_connect': query['odbc_connect']})
        if driver == 'pyodbc':
            query.setdefault('driver', DEFAULT_ODBC_DRIVER)
            query.setdefault('TrustServerCertificate', 'yes')
        return sa.URL.create(
            f'mssql+{driver}',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query)

    @classmethod
    def get_engine_kwargs(cls, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQL Server."""
        if not options.timeout:
            return {}
        key = 'login_timeout' if options.driver == 'pymssql' else 'timeout'
        return {'connect_args': {key: options.timeout}}

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        if 'odbc_connect' in (options.query or {}):
            return
        super().validate_options(options)

    # -- catalog --------------------------------------------------------------

    def _get_table_names(self, cn: 'ConnectionWrapper', schema: str | None,
                         like: str | None) -> list[str]:
        sql = """
SELECT t.name FROM sys.tables t
JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE s.name = %s
"""
        params = [schema]
        if like:
            sql += " AND t.name LIKE %s ESCAPE '!'"
            params.append(like)
        return self._select_column_raw(cn, sql + ' ORDER BY t.name', params)

    def _get_view_rows(self, cn: 'ConnectionWrapper', schema: str | None,
                       like: str | None) -> list[tuple[str, str]]:
        sql = """
SELECT v.name, m.definition FROM sys.views v
JOIN sys.schemas s ON s.schema_id = v.schema_id
JOIN sys.sql_modules m ON m.object_id = v.object_id
WHERE s.name = %s
"""
        params = [schema]
        if like:
            sql += " AND v.name LIKE %s ESCAPE '!'"
            params.append(like)
        rows = self._select_raw(cn, sql + ' ORDER BY v.name', params)
        return [(row['name'], row['definition']) for row in rows]

    def _get_schema_names(self, cn: 'ConnectionWrapper') -> list[str]:
        sql = """
SELECT name FROM sys.schemas
WHERE schema_id < 16384 AND name NOT IN ('guest', 'INFORMATION_SCHEMA', 'sys')
ORDER BY name
"""
        return self._select_column_raw(cn, sql)

    def _introspect_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                          report_schema: str | None) -> Table:
        params = (schema, table_name)
        columns = []
        defaults = []
        for row in self._select_raw(cn, _COLUMNS_SQL, params):
            sql_type = catalog_type(row['type_name'], row['max_length'], row['precision'], row['scale'])
            columns.append(Column(
                row['name'],
                self.registry.require_python(self.dialect_name, sql_type),
                is_nullable=bool(row['is_nullable']),
                is_auto_increment=bool(row['is_identity']),
                sql_type=sql_type))
            if row['default_definition'] is not None:
                defaults.append(DefaultConstraint(
                    row['name'], strip_wrapping_parens(row['default_definition']), row['default_name']))

        primary_key = None
        uniques = []
        for (name, kind), group in groupby(self._select_raw(cn, _KEYS_SQL, params),
                                           key=lambda r: (r['name'], r['type'].strip())):
            names = [r['column_name'] for r in group]
            if kind == 'PK':
                primary_key = PrimaryKeyConstraint(names, name)
            else:
                uniques.append(UniqueConstraint(names, name))

        checks = [CheckConstraint(strip_wrapping_parens(row['definition']), row['column_name'], row['name'])
                  for row in self._select_raw(cn, _CHECKS_SQL, params)]

        foreign_keys = []
        for name, group in groupby(self._select_raw(cn, _FOREIGN_KEYS_SQL, params), key=lambda r: r['name']):
            group = list(group)
            first = group[0]
            foreign_keys.append(ForeignKeyConstraint(
                [r['column_name'] for r in group], first['referenced_table'],
                [r['referenced_column'] for r in group], name=name,
                referenced_schema=None if first['referenced_schema'] == schema else first['referenced_schema'],
                on_delete=first['on_delete'], on_update=first['on_update']))

        indexes = []
        for name, group in groupby(self._select_raw(cn, _INDEXES_SQL, params), key=lambda r: r['name']):
            group = list(group)
            indexes.append(Index(
                [OrderedColumn(r['column_name'], bool(r['descending'])) for r in group],
                name, bool(group[0]['is_unique'])))

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

    def _identity_clause(self, column: Column) -> str | None:
        if column.is_auto_increment:
            return 'IDENTITY(1,1)'
        return None

    def _default_clause(self, default: DefaultConstraint) -> str:
        return f'CONSTRAINT {self.quote_identifier(default.name)} DEFAULT ({self.render_default(default.expression)})'

    def _fk_action(self, action: ForeignKeyAction) -> str:
        # SQL Server has no RESTRICT; NO ACTION rejects the same changes
        if action is ForeignKeyAction.RESTRICT:
            return ForeignKeyAction.NO_ACTION.value
        return action.value

    def _object_name(self, *parts: str | None) -> str:
        return '.'.join(self.quote_identifier(p) for p in parts if p)

    def rename_table_sql(self, table_name: str, new_name: str, schema_name: str | None) -> str:
        source = self._object_name(schema_name, table_name)
        return f'EXEC sp_rename {escape_string_literal(source)}, {escape_string_literal(new_name)}'

    def _rename_column_sql(self, table: Table, column: Column, new_name: str) -> list[str] | None:
        source = self._object_name(table.schema_name, table.name, column.name)
        return [f"EXEC sp_rename {escape_string_literal(source)}, {escape_string_literal(new_name)}, 'COLUMN'"]

    def create_schema_sql(self, schema_name: str) -> str:
        # CREATE SCHEMA must be the only statement in its batch
        return f"EXEC('CREATE SCHEMA {self.quote_identifier(schema_name).replace(chr(39), chr(39) * 2)}')"

    def _add_default_sql(self, table: Table, default: DefaultConstraint) -> list[str] | None:
        return [f'{self._alter(table)} ADD {self._default_clause(default)} '
                f'FOR {self.quote_identifier(default.column_name)}']

    def _drop_default_sql(self, table: Table, default: DefaultConstraint) -> list[str] | None:
        return [f'{self._alter(table)} DROP CONSTRAINT {self.quote_identifier(default.name)}']

    def _alter_column_sql(self, table: Table, old: Column, new: Column) -> list[str] | None:
        if old.is_auto_increment != new.is_auto_increment:
            return None
        return [f'{self._alter(table)} ALTER COLUMN {self.quote_identifier(new.name)} '
                f"{self.column_type_sql(new)} {'NULL' if new.is_nullable else 'NOT NULL'}"]
