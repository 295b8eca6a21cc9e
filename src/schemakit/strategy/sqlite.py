"""
SQLite-specific strategy implementation.

This module implements the DialectStrategy interface with SQLite-specific operations.
It handles SQLite's limitations such as:
- ALTER TABLE limited to ADD COLUMN, RENAME TO and RENAME COLUMN
- Constraints that can only be declared at CREATE TABLE time
- Metadata split between PRAGMA functions and the stored DDL text

Changes SQLite cannot apply in place are made by rebuilding the table: a
new table is created in the desired shape, rows are copied, the old table
is dropped and the new one renamed, all in one transaction.
"""
import logging
import re
import sqlite3
import uuid
from itertools import groupby
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlglot.errors import SqlglotError
from schemakit.exceptions import OperationCancelled, RebuildError
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyConstraint, Index
from schemakit.models import OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint
from schemakit.sql import make_constraint_name, strip_wrapping_parens
from schemakit.strategy.base import DialectStrategy, register_strategy
from schemakit.strategy.sqlite_parser import ParsedTable, parse_create_table
from schemakit.transaction import ddl_transaction

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Literals SQLite accepts as DEFAULT without parentheses
_SIMPLE_DEFAULT_RE = re.compile(
    r"^(?:[-+]?\d+(?:\.\d+)?|'(?:[^']|'')*'|NULL|TRUE|FALSE|X'[0-9A-F]*'"
    r'|CURRENT_TIMESTAMP|CURRENT_DATE|CURRENT_TIME)$', re.IGNORECASE)

_NEW_UUID_SQL = (
    "lower(hex(randomblob(4)) || '-' || hex(randomblob(2)) || '-4' || "
    "substr(hex(randomblob(2)), 2) || '-' || substr('89ab', 1 + (abs(random()) % 4), 1) || "
    "substr(hex(randomblob(2)), 2) || '-' || hex(randomblob(6)))")


@register_strategy('sqlite')
class SQLiteStrategy(DialectStrategy):
    """SQLite-specific operations.
    """

    dialect_name = 'sqlite'
    default_driver = 'pysqlite'
    supports_transactional_ddl = True
    inline_foreign_keys = True
    server_version_sql = 'select sqlite_version()'
    default_expressions = {
        DefaultExpression.CURRENT_TIMESTAMP: 'CURRENT_TIMESTAMP',
        DefaultExpression.CURRENT_DATE: 'CURRENT_DATE',
        DefaultExpression.NEW_UUID: _NEW_UUID_SQL,
        }

    @classmethod
    def build_connection_url(cls, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(
            f'sqlite+{options.driver or cls.default_driver}',
            password=options.password,
            database=options.database,
            query=options.query or {})

    @classmethod
    def get_engine_kwargs(cls, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite.

        Connections may be handed to worker threads by the async engine.
        """
        return {'connect_args': {'check_same_thread': False}}

    @classmethod
    def configure_connection(cls, raw_conn: Any) -> None:
        """Autocommit mode and foreign key enforcement."""
        raw_conn.isolation_level = None
        raw_conn.execute('PRAGMA foreign_keys = ON')

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    # -- catalog --------------------------------------------------------------

    def resolve_schema(self, schema_name: str | None) -> str | None:
        return schema_name or None

    def _master(self, schema: str | None) -> str:
        return f'{self.quote_identifier(schema)}.sqlite_master' if schema else 'sqlite_master'

    def _pragma(self, function: str, name: str, schema: str | None) -> tuple[str, tuple]:
        if schema:
            return f'pragma_{function}(%s, %s)', (name, schema)
        return f'pragma_{function}(%s)', (name,)

    def _get_table_names(self, cn: 'ConnectionWrapper', schema: str | None,
                         like: str | None) -> list[str]:
        sql = f"""
select name from {self._master(schema)}
where type = 'table' and name not like 'sqlite~_%' escape '~'
"""
        params = []
        if like:
            sql += " and name like %s escape '!'"
            params.append(like)
        return self._select_column_raw(cn, sql + ' order by name', params)

    def _get_view_rows(self, cn: 'ConnectionWrapper', schema: str | None,
                       like: str | None) -> list[tuple[str, str]]:
        sql = f"select name, sql from {self._master(schema)} where type = 'view'"
        params = []
        if like:
            sql += " and name like %s escape '!'"
            params.append(like)
        rows = self._select_raw(cn, sql + ' order by name', params)
        return [(row['name'], row['sql']) for row in rows]

    def _parsed_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None) -> ParsedTable | None:
        sql = f"select sql from {self._master(schema)} where type = 'table' and name = %s"
        rows = self._select_column_raw(cn, sql, (table_name,))
        if not rows or not rows[0]:
            return None
        try:
            return parse_create_table(rows[0])
        except (SqlglotError, ValueError) as e:
            logger.warning(f'Could not parse DDL of {table_name}, constraint names will be generated: {e}')
            return None

    def _introspect_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                          report_schema: str | None) -> Table:
        parsed = self._parsed_table(cn, table_name, schema) or ParsedTable(table_name)

        source, params = self._pragma('table_info', table_name, schema)
        rows = self._select_raw(
            cn, f'select cid, name, type, "notnull", dflt_value, pk from {source} order by cid',
            params)

        columns = []
        defaults = []
        pk_columns = []
        for row in rows:
            parsed_column = parsed.column(row['name'])
            auto = bool(parsed_column and parsed_column.autoincrement)
            descriptor = self.registry.require_python(self.dialect_name, row['type'] or 'blob')
            columns.append(Column(
                row['name'], descriptor, is_nullable=not row['notnull'], is_auto_increment=auto,
                sql_type=row['type'] or None))
            if row['dflt_value'] is not None:
                parsed_default = parsed_column.find('default') if parsed_column else None
                defaults.append(DefaultConstraint(
                    row['name'], strip_wrapping_parens(row['dflt_value']),
                    parsed_default.name if parsed_default else None))
            if row['pk']:
                pk_columns.append((row['pk'], row['name']))

        primary_key = None
        if pk_columns:
            names = [name for _, name in sorted(pk_columns)]
            parsed_pk = parsed.find_by_columns('primary key', names)
            primary_key = PrimaryKeyConstraint(names, parsed_pk.name if parsed_pk else None)

        checks = [CheckConstraint(c.expression, c.columns[0] if c.columns else None, c.name)
                  for c in parsed.all_constraints('check')]

        uniques, indexes = self._introspect_indexes(cn, table_name, schema, parsed)

        return Table(
            name=table_name,
            columns=tuple(columns),
            schema_name=report_schema,
            primary_key=primary_key,
            unique_constraints=tuple(uniques),
            check_constraints=tuple(checks),
            default_constraints=tuple(defaults),
            foreign_keys=tuple(self._introspect_foreign_keys(cn, table_name, schema, parsed)),
            indexes=tuple(indexes),
            )

    def _introspect_indexes(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                            parsed: ParsedTable) -> tuple[list[UniqueConstraint], list[Index]]:
        source, params = self._pragma('index_list', table_name, schema)
        uniques = []
        indexes = []
        for row in self._select_raw(cn, f'select name, "unique" as is_unique, origin from {source}', params):
            info, info_params = self._pragma('index_xinfo', row['name'], schema)
            keys = self._select_raw(
                cn, f'select name, "desc" as descending from {info} where key = 1 order by seqno', info_params)
            if row['origin'] == 'u':
                names = [k['name'] for k in keys]
                parsed_unique = parsed.find_by_columns('unique', names)
                uniques.append(UniqueConstraint(names, parsed_unique.name if parsed_unique else None))
            elif row['origin'] == 'c':
                indexes.append(Index(
                    [OrderedColumn(k['name'], bool(k['descending'])) for k in keys],
                    row['name'], bool(row['is_unique'])))
        return uniques, indexes

    def _introspect_foreign_keys(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                                 parsed: ParsedTable) -> list[ForeignKeyConstraint]:
        source, params = self._pragma('foreign_key_list', table_name, schema)
        rows = self._select_raw(
            cn, f'select id, seq, "table" as ref_table, "from" as col, "to" as ref_col, '
            f'on_update, on_delete from {source} order by id, seq', params)
        foreign_keys = []
        for _, group in groupby(rows, key=lambda r: r['id']):
            group = list(group)
            columns = [r['col'] for r in group]
            parsed_fk = next(
                (c for c in parsed.all_constraints('foreign key')
                 if [n.lower() for n in c.columns] == [n.lower() for n in columns]
                 and (c.referenced_table or '').lower() == group[0]['ref_table'].lower()), None)
            foreign_keys.append(ForeignKeyConstraint(
                columns, group[0]['ref_table'], [r['ref_col'] or r['col'] for r in group],
                name=parsed_fk.name if parsed_fk else None,
                on_delete=group[0]['on_delete'], on_update=group[0]['on_update']))
        return foreign_keys

    # -- rendering ------------------------------------------------------------

    def _default_sql(self, expression: Any) -> str:
        rendered = self.render_default(expression)
        if _SIMPLE_DEFAULT_RE.match(rendered.strip()):
            return rendered
        return f'({rendered})'

    def _inline_primary_key(self, table: Table) -> str | None:
        """The auto-increment column declared as INTEGER PRIMARY KEY, if any."""
        pk = table.primary_key
        if pk is None or len(pk.columns) != 1:
            return None
        column = table.get_column(pk.columns[0].name)
        return column.name if column is not None and column.is_auto_increment else None

    def column_definition(self, table: Table, column: Column) -> str:
        parts = [self.quote_identifier(column.name), self.column_type_sql(column)]
        if column.is_auto_increment:
            pk = table.primary_key
            name = pk.name if pk is not None else make_constraint_name('pk', table.name, [column.name])
            parts.append(f'CONSTRAINT {self.quote_identifier(name)} PRIMARY KEY AUTOINCREMENT')
        parts.append('NULL' if column.is_nullable else 'NOT NULL')
        default = table.get_default_constraint(column.name)
        if default is not None and not column.is_auto_increment:
            parts.append(f'CONSTRAINT {self.quote_identifier(default.name)} DEFAULT {self._default_sql(default.expression)}')
        key = column.name.lower()
        for check in table.check_constraints:
            if (check.column_name or '').lower() == key:
                parts.append(self.check_clause(check))
        return ' '.join(parts)

    def table_constraint_clauses(self, table: Table, include_foreign_keys: bool = True) -> list[str]:
        clauses = []
        if table.primary_key is not None and self._inline_primary_key(table) is None:
            clauses.append(self.primary_key_clause(table.primary_key))
        clauses.extend(self.check_clause(cc) for cc in table.check_constraints
                       if not cc.column_name or table.get_column(cc.column_name) is None)
        clauses.extend(self.unique_clause(uc) for uc in table.unique_constraints)
        if include_foreign_keys:
            clauses.extend(self.foreign_key_clause(table, fk) for fk in table.foreign_keys)
        return clauses

    def foreign_key_clause(self, table: Table, fk: ForeignKeyConstraint) -> str:
        # SQLite foreign keys cannot cross attached databases
        return (f'CONSTRAINT {self.quote_identifier(fk.name)} FOREIGN KEY ({self._column_list(fk.columns)}) '
                f'REFERENCES {self.quote_identifier(fk.referenced_table)} ({self._column_list(fk.referenced_columns)}) '
                f'ON DELETE {fk.on_delete.value} ON UPDATE {fk.on_update.value}')

    def create_index_sql(self, table: Table, index: Index) -> str:
        columns = ', '.join(
            f"{self.quote_identifier(c.name)} {'DESC' if c.descending else 'ASC'}" for c in index.columns)
        unique = 'UNIQUE ' if index.is_unique else ''
        return (f'CREATE {unique}INDEX {self.qualify(index.name, table.schema_name)} '
                f'ON {self.quote_identifier(table.name)} ({columns})')

    def drop_index_sql(self, table: Table, index: Index) -> str:
        return f'DROP INDEX {self.qualify(index.name, table.schema_name)}'

    def truncate_table_sql(self, table_name: str, schema_name: str | None) -> str:
        return f'DELETE FROM {self.qualify(table_name, schema_name)}'

    # -- incremental changes --------------------------------------------------

    def _add_column_sql(self, table: Table, column: Column) -> list[str] | None:
        """ADD COLUMN for columns SQLite can add in place, else None."""
        key = column.name.lower()
        constrained = (
            (table.primary_key is not None and key in {c.lower() for c in table.primary_key.column_names})
            or any(key in {c.lower() for c in u.columns} for u in table.unique_constraints)
            or any(key in {c.lower() for c in f.columns} for f in table.foreign_keys)
            or any((c.column_name or '').lower() == key for c in table.check_constraints))
        default = table.get_default_constraint(column.name)
        rendered = self.render_default(default.expression) if default is not None else None
        if column.is_auto_increment or constrained:
            return None
        if rendered is not None and (not _SIMPLE_DEFAULT_RE.match(rendered.strip())
                                     or rendered.strip().upper().startswith('CURRENT_')):
            return None
        if not column.is_nullable and rendered is None:
            return None
        return [f'{self._alter(table)} ADD COLUMN {self.column_definition(table, column)}']

    def _drop_column_sql(self, table: Table, column: Column) -> list[str] | None:
        return None

    def _rename_column_sql(self, table: Table, column: Column, new_name: str) -> list[str] | None:
        if sqlite3.sqlite_version_info < (3, 25, 0):
            return None
        return super()._rename_column_sql(table, column, new_name)

    def _alter_column_sql(self, table: Table, old: Column, new: Column) -> list[str] | None:
        return None

    def _add_member_sql(self, table: Table, attr: str, member: Any) -> list[str] | None:
        if attr == 'indexes':
            return [self.create_index_sql(table, member)]
        return None

    def _drop_member_sql(self, table: Table, attr: str, member: Any) -> list[str] | None:
        if attr == 'indexes':
            return [self.drop_index_sql(table, member)]
        return None

    def _restore(self, cn: 'ConnectionWrapper', sql: str) -> None:
        # restoring pragmas must not be interrupted by cancellation
        with cn.cursor(sql):
            pass

    def _rebuild_table(self, cn: 'ConnectionWrapper', current: Table, desired: Table) -> list[str]:
        """Recreate `current` as `desired`, keeping the rows of shared columns.

        Steps: create a staging table, copy rows, drop the original, rename
        the staging table, recreate indexes and check foreign keys. Any
        failure rolls back and raises RebuildError naming the failed phase.
        """
        staging = f'{desired.name}__rebuild_{uuid.uuid4().hex[:8]}'
        staged = desired.replace(name=staging, indexes=())
        shared = [c.name for c in desired.columns if current.get_column(c.name) is not None]
        column_list = self._column_list(shared)
        target = self.qualify(desired.name, desired.schema_name)
        schema_prefix = f'{self.quote_identifier(desired.schema_name)}.' if desired.schema_name else ''

        steps = [
            ('create', self.create_table_statements(staged)[0]),
            ('copy', f'INSERT INTO {self.qualify(staging, desired.schema_name)} ({column_list}) '
                     f'SELECT {column_list} FROM {self.qualify(current.name, current.schema_name)}'),
            ('drop', f'DROP TABLE {self.qualify(current.name, current.schema_name)}'),
            ('rename', f'ALTER TABLE {self.qualify(staging, desired.schema_name)} '
                       f'RENAME TO {self.quote_identifier(desired.name)}'),
            ]
        steps.extend(('index', self.create_index_sql(desired, index)) for index in desired.indexes)

        foreign_keys_on = bool(self._select_column_raw(cn, 'PRAGMA foreign_keys')[0])
        self._execute_raw(cn, 'PRAGMA foreign_keys = OFF')
        self._execute_raw(cn, 'PRAGMA legacy_alter_table = ON')
        statements = []
        phase = 'create'
        try:
            with ddl_transaction(cn, self):
                for phase, sql in steps:
                    self._execute_raw(cn, sql)
                    statements.append(sql)
                phase = 'verify'
                violations = self._select_raw(
                    cn, f'PRAGMA {schema_prefix}foreign_key_check({self.quote_identifier(desired.name)})')
                if violations:
                    raise RebuildError(desired.name, phase, f'{len(violations)} foreign key violation(s)')
        except (OperationCancelled, RebuildError):
            raise
        except Exception as e:
            raise RebuildError(desired.name, phase, str(e)) from e
        finally:
            self._restore(cn, 'PRAGMA legacy_alter_table = OFF')
            if foreign_keys_on:
                self._restore(cn, 'PRAGMA foreign_keys = ON')
        logger.debug(f'Rebuilt {desired.name} via {staging}: {len(shared)} column(s) copied')
        return statements
