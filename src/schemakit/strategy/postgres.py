"""
PostgreSQL-specific strategy implementation.

This module implements the DialectStrategy interface with PostgreSQL-specific operations.
It handles PostgreSQL's features such as:
- Transactional DDL, so multi-statement changes are all-or-nothing
- Identity columns and serial (nextval) defaults for auto-increment
- Case folding of unquoted identifiers to lower case
- Metadata retrieval using the pg_catalog system tables
"""
import logging
import re
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyAction, ForeignKeyConstraint
from schemakit.models import Index, OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint
from schemakit.sql import strip_wrapping_parens
from schemakit.strategy.base import DialectStrategy, register_strategy

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

# pg_constraint.confdeltype / confupdtype codes
FK_ACTIONS = {
    'a': ForeignKeyAction.NO_ACTION,
    'r': ForeignKeyAction.RESTRICT,
    'c': ForeignKeyAction.CASCADE,
    'n': ForeignKeyAction.SET_NULL,
    'd': ForeignKeyAction.SET_DEFAULT,
    }

_CAST_RE = re.compile(r'::[a-z_ ]+(?:\(\d+(?:,\s*\d+)?\))?(?:\[\])?', re.IGNORECASE)
_LITERAL_CAST_RE = re.compile(r"^('(?:[^']|'')*')::[a-z_ \"]+(?:\(\d+(?:,\s*\d+)?\))?(?:\[\])?$",
                              re.IGNORECASE)
_CHECK_RE = re.compile(r'^CHECK\s*\((.*)\)(?:\s+NOT VALID)?$', re.IGNORECASE | re.DOTALL)

_COLUMNS_SQL = """
select
    a.attname as name,
    format_type(a.atttypid, a.atttypmod) as data_type,
    not a.attnotnull as is_nullable,
    pg_get_expr(d.adbin, d.adrelid) as default_value,
    a.attidentity as identity
from pg_attribute a
join pg_class c on c.oid = a.attrelid
join pg_namespace n on n.oid = c.relnamespace
left join pg_attrdef d on d.adrelid = a.attrelid and d.adnum = a.attnum
where n.nspname = %s and c.relname = %s and a.attnum > 0 and not a.attisdropped
order by a.attnum
"""

_CONSTRAINTS_SQL = """
select
    con.conname as name,
    con.contype as type,
    array(
        select att.attname
        from unnest(con.conkey) with ordinality k(attnum, ord)
        join pg_attribute att on att.attrelid = con.conrelid and att.attnum = k.attnum
        order by k.ord
    ) as columns,
    fc.relname as referenced_table,
    fn.nspname as referenced_schema,
    array(
        select att.attname
        from unnest(con.confkey) with ordinality k(attnum, ord)
        join pg_attribute att on att.attrelid = con.confrelid and att.attnum = k.attnum
        order by k.ord
    ) as referenced_columns,
    con.confdeltype as on_delete,
    con.confupdtype as on_update,
    pg_get_constraintdef(con.oid) as definition
from pg_constraint con
join pg_class c on c.oid = con.conrelid
join pg_namespace n on n.oid = c.relnamespace
left join pg_class fc on fc.oid = con.confrelid
left join pg_namespace fn on fn.oid = fc.relnamespace
where n.nspname = %s and c.relname = %s and con.contype in ('p', 'u', 'c', 'f')
order by con.conname
"""

_INDEXES_SQL = """
select
    i.relname as name,
    ix.indisunique as is_unique,
    array(
        select a.attname
        from unnest(ix.indkey::int2[]) with ordinality k(attnum, ord)
        join pg_attribute a on a.attrelid = ix.indrelid and a.attnum = k.attnum
        order by k.ord
    ) as columns,
    array(
        select pg_index_column_has_property(ix.indexrelid, k.ord::int, 'desc')
        from unnest(ix.indkey::int2[]) with ordinality k(attnum, ord)
        where k.attnum > 0
        order by k.ord
    ) as descending
from pg_index ix
join pg_class i on i.oid = ix.indexrelid
join pg_class c on c.oid = ix.indrelid
join pg_namespace n on n.oid = c.relnamespace
where n.nspname = %s and c.relname = %s
  and not exists (
    select 1 from pg_constraint con
    where con.conindid = ix.indexrelid and con.contype in ('p', 'u', 'x'))
order by i.relname
"""


@register_strategy('postgresql')
class PostgresStrategy(DialectStrategy):
    """PostgreSQL-specific operations.
    """

    dialect_name = 'postgresql'
    default_driver = 'psycopg'
    default_schema = 'public'
    supports_schemas = True
    supports_transactional_ddl = True
    folds_to_lower = True
    boolean_literals = ('TRUE', 'FALSE')
    server_version_sql = 'show server_version'
    default_expressions = {
        DefaultExpression.CURRENT_TIMESTAMP: 'CURRENT_TIMESTAMP',
        DefaultExpression.CURRENT_DATE: 'CURRENT_DATE',
        DefaultExpression.NEW_UUID: 'gen_random_uuid()',
        }

    @classmethod
    def build_connection_url(cls, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.appname:
            query['application_name'] = options.appname
        query.update(options.query or {})
        return sa.URL.create(
            f'postgresql+{options.driver or cls.default_driver}',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query)

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'database']

    # -- catalog --------------------------------------------------------------

    def _get_table_names(self, cn: 'ConnectionWrapper', schema: str | None,
                         like: str | None) -> list[str]:
        sql = """
select c.relname
from pg_class c
join pg_namespace n on n.oid = c.relnamespace
where c.relkind in ('r', 'p') and n.nspname = %s
"""
        params = [schema]
        if like:
            sql += " and c.relname like %s escape '!'"
            params.append(like)
        return self._select_column_raw(cn, sql + ' order by c.relname', params)

    def _get_view_rows(self, cn: 'ConnectionWrapper', schema: str | None,
                       like: str | None) -> list[tuple[str, str]]:
        sql = 'select viewname as name, definition from pg_views where schemaname = %s'
        params = [schema]
        if like:
            sql += " and viewname like %s escape '!'"
            params.append(like)
        rows = self._select_raw(cn, sql + ' order by viewname', params)
        return [(row['name'], row['definition']) for row in rows]

    def _get_schema_names(self, cn: 'ConnectionWrapper') -> list[str]:
        sql = """
select nspname from pg_namespace
where nspname !~ '^pg_' and nspname <> 'information_schema'
order by nspname
"""
        return self._select_column_raw(cn, sql)

    def rename_view_sql(self, view_name: str, new_name: str, schema_name: str | None) -> list[str] | None:
        return [f'ALTER VIEW {self.qualify(view_name, schema_name)} RENAME TO {self.quote_identifier(new_name)}']

    def _default_from_catalog(self, expression: str | None) -> str | None:
        if expression is None:
            return None
        text = expression.strip()
        match = _LITERAL_CAST_RE.match(text)
        if match:
            return match.group(1)
        return strip_wrapping_parens(text)

    def _introspect_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                          report_schema: str | None) -> Table:
        columns = []
        defaults = []
        for row in self._select_raw(cn, _COLUMNS_SQL, (schema, table_name)):
            default = row['default_value']
            auto = row['identity'] in {'a', 'd'} or (default or '').startswith('nextval(')
            columns.append(Column(
                row['name'],
                self.registry.require_python(self.dialect_name, row['data_type']),
                is_nullable=bool(row['is_nullable']),
                is_auto_increment=auto,
                sql_type=row['data_type']))
            if default is not None and not auto:
                defaults.append(DefaultConstraint(row['name'], self._default_from_catalog(default)))

        primary_key = None
        uniques = []
        checks = []
        foreign_keys = []
        for row in self._select_raw(cn, _CONSTRAINTS_SQL, (schema, table_name)):
            kind = row['type']
            if kind == 'p':
                primary_key = PrimaryKeyConstraint(row['columns'], row['name'])
            elif kind == 'u':
                uniques.append(UniqueConstraint(row['columns'], row['name']))
            elif kind == 'c':
                match = _CHECK_RE.match(row['definition'].strip())
                expression = strip_wrapping_parens(match.group(1) if match else row['definition'])
                column_name = row['columns'][0] if len(row['columns']) == 1 else None
                checks.append(CheckConstraint(expression, column_name, row['name']))
            elif kind == 'f':
                referenced_schema = row['referenced_schema']
                foreign_keys.append(ForeignKeyConstraint(
                    row['columns'], row['referenced_table'], row['referenced_columns'],
                    name=row['name'],
                    referenced_schema=None if referenced_schema == schema else referenced_schema,
                    on_delete=FK_ACTIONS.get(row['on_delete'], ForeignKeyAction.NO_ACTION),
                    on_update=FK_ACTIONS.get(row['on_update'], ForeignKeyAction.NO_ACTION)))

        indexes = []
        for row in self._select_raw(cn, _INDEXES_SQL, (schema, table_name)):
            if not row['columns']:
                logger.debug(f'Skipping expression index {row["name"]} on {table_name}')
                continue
            descending = list(row['descending'] or [])
            indexes.append(Index(
                [OrderedColumn(name, bool(descending[i]) if i < len(descending) else False)
                 for i, name in enumerate(row['columns'])],
                row['name'], bool(row['is_unique'])))

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

    def normalize_default(self, expression: Any) -> str:
        text = _CAST_RE.sub('', self.render_default(expression))
        return super().normalize_default(text)

    def _identity_clause(self, column: Column) -> str | None:
        if column.is_auto_increment:
            return 'GENERATED BY DEFAULT AS IDENTITY'
        return None

    def drop_index_sql(self, table: Table, index: Index) -> str:
        return f'DROP INDEX {self.qualify(index.name, table.schema_name)}'

    def _alter_column_sql(self, table: Table, old: Column, new: Column) -> list[str] | None:
        prefix = f'{self._alter(table)} ALTER COLUMN {self.quote_identifier(new.name)}'
        statements = []
        if self._type_changed(old, new):
            type_sql = self.column_type_sql(new)
            statements.append(f'{prefix} TYPE {type_sql} USING {self.quote_identifier(new.name)}::{type_sql}')
        if old.is_nullable != new.is_nullable:
            statements.append(f"{prefix} {'DROP' if new.is_nullable else 'SET'} NOT NULL")
        if old.is_auto_increment != new.is_auto_increment:
            if new.is_auto_increment:
                statements.append(f'{prefix} ADD GENERATED BY DEFAULT AS IDENTITY')
            else:
                statements.append(f'{prefix} DROP IDENTITY IF EXISTS')
        return statements
