"""
Base strategy interface for dialect-specific schema operations.

Defines the abstract base class that every dialect strategy inherits from.
The base class owns everything that is the same across dialects:

- idempotent create-if-not-exists / drop-if-exists operations
- the diff between an observed and a desired table ("ensure")
- DDL assembly from clauses each dialect renders its own way
- statement execution with cancellation checks and error context

Concrete strategies supply catalog queries, identifier quoting and the
clauses whose syntax differs. A statement builder returning None means the
dialect cannot express that change incrementally; strategies with a rebuild
fallback (SQLite) override `_rebuild_table`, all others raise
DialectUnsupportedOperation.
"""
import dataclasses
import datetime
import decimal
import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from schemakit.adapters.type_mapping import TypeConverterRegistry
from schemakit.cache import cacheable_strategy
from schemakit.exceptions import DDLExecutionError, DialectUnsupportedOperation
from schemakit.exceptions import OperationCancelled, SchemaValidationError
from schemakit.exceptions import is_already_exists_error, is_not_found_error
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyAction, ForeignKeyConstraint
from schemakit.models import Index, OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint, View
from schemakit.sql import escape_string_literal, quote_identifier, strip_wrapping_parens
from schemakit.sql import to_like_pattern, unquote_identifier
from schemakit.transaction import ddl_transaction
from schemakit.utils import set_autocommit

if TYPE_CHECKING:
    import sqlalchemy as sa
    from schemakit.connection import ConnectionWrapper
    from schemakit.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DialectStrategy']] = {}

# Members of a table in the order they are dropped by a diff; added in reverse
MEMBER_ATTRIBUTES = (
    'foreign_keys',
    'check_constraints',
    'default_constraints',
    'unique_constraints',
    'indexes',
    'primary_key',
    )


def register_strategy(*dialects: str):
    """Decorator to register a strategy class for one or more dialects.

    Usage:
        @register_strategy('mysql', 'mariadb')
        class MySQLStrategy(DialectStrategy):
            ...
    """
    def decorator(cls: type['DialectStrategy']) -> type['DialectStrategy']:
        for dialect in dialects:
            _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


def parse_version(text: str) -> tuple[int, ...]:
    """Extract the leading dotted version number from a server banner."""
    match = re.search(r'(\d+(?:\.\d+)*)', text)
    if not match:
        return ()
    return tuple(int(part) for part in match.group(1).split('.'))


@dataclass(frozen=True)
class EnsureResult:
    """Outcome of an ensure operation.

    action is one of 'created', 'altered', 'rebuilt' or 'unchanged'.
    """
    action: str
    statements: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.action != 'unchanged'


class DialectStrategy(ABC):
    """Base class for dialect-specific schema operations.
    """

    dialect_name: ClassVar[str]
    default_driver: ClassVar[str]
    default_schema: ClassVar[str | None] = None
    supports_schemas: ClassVar[bool] = False
    supports_transactional_ddl: ClassVar[bool] = False
    folds_to_lower: ClassVar[bool] = False
    begin_sql: ClassVar[str] = 'BEGIN'
    commit_sql: ClassVar[str] = 'COMMIT'
    rollback_sql: ClassVar[str] = 'ROLLBACK'
    boolean_literals: ClassVar[tuple[str, str]] = ('1', '0')
    default_expressions: ClassVar[dict[DefaultExpression, str]] = {}
    create_table_suffix: ClassVar[str] = ''
    server_version_sql: ClassVar[str]
    # SQL Server refuses to alter a column bound to a default constraint
    alter_column_drops_default: ClassVar[bool] = False
    # SQLite cannot add a foreign key after CREATE TABLE
    inline_foreign_keys: ClassVar[bool] = False
    # characters LIKE treats as wildcards
    like_specials: ClassVar[str] = '%_'

    def __init__(self, registry: TypeConverterRegistry | None = None) -> None:
        self.registry = registry or TypeConverterRegistry.with_builtin_rules()

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.dialect_name}>'

    # -- connection setup ---------------------------------------------------

    @classmethod
    @abstractmethod
    def build_connection_url(cls, options: 'DatabaseOptions') -> 'sa.URL':
        """Build the SQLAlchemy connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            sqlalchemy URL
        """

    @classmethod
    def get_engine_kwargs(cls, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect."""
        return {}

    @classmethod
    def configure_connection(cls, raw_conn: Any) -> None:
        """Configure a fresh DBAPI connection.

        Connections run in autocommit mode; explicit transactions are
        opened by `ddl_transaction`.
        """
        set_autocommit(raw_conn, True)

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect."""
        return ['hostname', 'database']

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    # -- execution ----------------------------------------------------------

    @contextmanager
    def _cursor(self, cn: 'ConnectionWrapper', sql: str, params: Sequence | None = None):
        """Run one statement, checking for cancellation first.

        Driver errors are re-raised as DDLExecutionError carrying the
        dialect and the statement.
        """
        token = getattr(cn, 'cancel_token', None)
        if token is not None:
            token.raise_if_cancelled(sql.strip().split('\n', 1)[0][:60])
        logger.debug(f'[{self.dialect_name}] {sql.strip()}')
        try:
            with cn.cursor(sql, params) as cursor:
                yield cursor
        except (DDLExecutionError, OperationCancelled):
            raise
        except Exception as e:
            raise DDLExecutionError(self.dialect_name, sql, str(e)) from e

    def _execute_raw(self, cn: 'ConnectionWrapper', sql: str,
                     params: Sequence | None = None) -> int:
        """Execute SQL and return rowcount."""
        with self._cursor(cn, sql, params) as cursor:
            return cursor.rowcount

    def _select_raw(self, cn: 'ConnectionWrapper', sql: str,
                    params: Sequence | None = None) -> list[dict]:
        """Execute SQL and return results as list of dicts with lower-case keys."""
        with self._cursor(cn, sql, params) as cursor:
            if cursor.description is None:
                return []
            columns = [desc[0].lower() for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def _select_column_raw(self, cn: 'ConnectionWrapper', sql: str,
                           params: Sequence | None = None) -> list:
        """Execute SQL and return first column as list."""
        with self._cursor(cn, sql, params) as cursor:
            return [row[0] for row in cursor.fetchall()]

    def begin_transaction(self, cn: 'ConnectionWrapper') -> None:
        self._execute_raw(cn, self.begin_sql)

    def commit_transaction(self, cn: 'ConnectionWrapper') -> None:
        self._execute_raw(cn, self.commit_sql)

    def rollback_transaction(self, cn: 'ConnectionWrapper') -> None:
        # rollback must run even when the operation was cancelled
        with cn.cursor(self.rollback_sql):
            pass

    def _run_ddl(self, cn: 'ConnectionWrapper', statements: Sequence[str],
                 race: str | None = None) -> bool:
        """Execute DDL statements, in one transaction when there are several.

        Args:
            cn: Database connection object
            statements: Statements to run in order
            race: 'exists' or 'missing' to report a matching server error as
                a lost race (False) instead of raising

        Returns
            True if the statements ran, False if a race was detected
        """
        if not statements:
            return False
        scope = ddl_transaction(cn, self) if len(statements) > 1 else nullcontext()
        try:
            with scope:
                for sql in statements:
                    self._execute_raw(cn, sql)
        except DDLExecutionError as e:
            if (race == 'exists' and is_already_exists_error(e)) or \
                    (race == 'missing' and is_not_found_error(e)):
                logger.warning(f'{self.dialect_name}: object changed concurrently, no-op: {e.__cause__}')
                return False
            raise
        return True

    @cacheable_strategy('server_version', ttl=3600, maxsize=20)
    def get_server_version(self, cn: 'ConnectionWrapper') -> tuple[int, ...]:
        """Return the server version as a tuple of ints, cached per server.
        """
        raw = self._select_column_raw(cn, self.server_version_sql)
        return parse_version(str(raw[0])) if raw else ()

    # -- identifiers --------------------------------------------------------

    def quote_identifier(self, identifier: str) -> str:
        """Quote a database identifier according to dialect rules."""
        return quote_identifier(identifier, self.dialect_name)

    def normalize_name(self, name: str) -> str:
        """Strip quoting and apply the dialect's case folding."""
        name = unquote_identifier(name)
        return name.lower() if self.folds_to_lower else name

    def resolve_schema(self, schema_name: str | None) -> str | None:
        """Return the schema catalog queries run against."""
        if schema_name:
            return self.normalize_name(schema_name)
        return self.default_schema

    def qualify(self, name: str, schema_name: str | None = None) -> str:
        """Quote a possibly schema-qualified object name."""
        if schema_name:
            return f'{self.quote_identifier(schema_name)}.{self.quote_identifier(name)}'
        return self.quote_identifier(name)

    def normalize_table(self, table: Table) -> Table:
        """Apply case folding to every identifier of a table model."""
        if not self.folds_to_lower:
            return table
        n = self.normalize_name

        def ordered(cols: Iterable[OrderedColumn]) -> tuple[OrderedColumn, ...]:
            return tuple(OrderedColumn(n(c.name), c.descending) for c in cols)

        pk = table.primary_key
        return Table(
            name=n(table.name),
            schema_name=n(table.schema_name) if table.schema_name else None,
            columns=tuple(dataclasses.replace(c, name=n(c.name), default_value=None)
                          for c in table.columns),
            primary_key=dataclasses.replace(pk, name=n(pk.name), columns=ordered(pk.columns))
            if pk else None,
            unique_constraints=tuple(
                dataclasses.replace(u, name=n(u.name), columns=tuple(n(c) for c in u.columns))
                for u in table.unique_constraints),
            check_constraints=tuple(
                dataclasses.replace(c, name=n(c.name),
                                    column_name=n(c.column_name) if c.column_name else None)
                for c in table.check_constraints),
            default_constraints=tuple(
                dataclasses.replace(d, name=n(d.name), column_name=n(d.column_name))
                for d in table.default_constraints),
            foreign_keys=tuple(
                dataclasses.replace(
                    f, name=n(f.name), columns=tuple(n(c) for c in f.columns),
                    referenced_table=n(f.referenced_table),
                    referenced_columns=tuple(n(c) for c in f.referenced_columns),
                    referenced_schema=n(f.referenced_schema) if f.referenced_schema else None)
                for f in table.foreign_keys),
            indexes=tuple(
                dataclasses.replace(i, name=n(i.name), columns=ordered(i.columns))
                for i in table.indexes),
            )

    # -- rendering ----------------------------------------------------------

    def render_default(self, value: Any) -> str:
        """Render a default value as SQL.

        Strings are SQL expressions and pass through unchanged; quote string
        literals yourself (``"'n/a'"``). Python values become literals and
        DefaultExpression members become dialect functions.
        """
        if isinstance(value, DefaultExpression):
            return self.default_expressions[value]
        if isinstance(value, bool):
            return self.boolean_literals[0] if value else self.boolean_literals[1]
        if isinstance(value, int | float | decimal.Decimal):
            return str(value)
        if isinstance(value, datetime.datetime):
            return escape_string_literal(value.isoformat(sep=' '))
        if isinstance(value, datetime.date | datetime.time):
            return escape_string_literal(value.isoformat())
        if isinstance(value, uuid.UUID):
            return escape_string_literal(str(value))
        if isinstance(value, str):
            return value
        raise TypeError(f'Cannot render default value {value!r}')

    def normalize_default(self, expression: Any) -> str:
        """Canonical text of a default for comparing desired with observed."""
        text = strip_wrapping_parens(self.render_default(expression)) or ''
        return re.sub(r'\s+', ' ', text).lower()

    def column_type_sql(self, column: Column) -> str:
        """DDL type of a column: the explicit override or the converted type."""
        if column.sql_type:
            return column.sql_type
        return self.registry.require_sql(self.dialect_name, column.type).sql_type_name

    def _identity_clause(self, column: Column) -> str | None:
        return None

    def _default_clause(self, default: DefaultConstraint) -> str:
        return f'DEFAULT {self.render_default(default.expression)}'

    def column_definition(self, table: Table, column: Column) -> str:
        """Render one column of a CREATE TABLE or ADD COLUMN statement."""
        parts = [self.quote_identifier(column.name), self.column_type_sql(column)]
        identity = self._identity_clause(column)
        if identity:
            parts.append(identity)
        parts.append('NULL' if column.is_nullable else 'NOT NULL')
        default = table.get_default_constraint(column.name)
        if default is not None and not column.is_auto_increment:
            parts.append(self._default_clause(default))
        return ' '.join(parts)

    def _column_list(self, names: Iterable[str]) -> str:
        return ', '.join(self.quote_identifier(name) for name in names)

    def _fk_action(self, action: ForeignKeyAction) -> str:
        return action.value

    def primary_key_clause(self, pk: PrimaryKeyConstraint) -> str:
        return f'CONSTRAINT {self.quote_identifier(pk.name)} PRIMARY KEY ({self._column_list(pk.column_names)})'

    def unique_clause(self, uc: UniqueConstraint) -> str:
        return f'CONSTRAINT {self.quote_identifier(uc.name)} UNIQUE ({self._column_list(uc.columns)})'

    def check_clause(self, cc: CheckConstraint) -> str:
        return f'CONSTRAINT {self.quote_identifier(cc.name)} CHECK ({cc.expression})'

    def foreign_key_clause(self, table: Table, fk: ForeignKeyConstraint) -> str:
        referenced = self.qualify(fk.referenced_table, fk.referenced_schema or table.schema_name)
        return (f'CONSTRAINT {self.quote_identifier(fk.name)} FOREIGN KEY ({self._column_list(fk.columns)}) '
                f'REFERENCES {referenced} ({self._column_list(fk.referenced_columns)}) '
                f'ON DELETE {self._fk_action(fk.on_delete)} ON UPDATE {self._fk_action(fk.on_update)}')

    def table_constraint_clauses(self, table: Table, include_foreign_keys: bool = True) -> list[str]:
        """Table-level clauses in creation order: PK, checks, uniques, FKs."""
        clauses = []
        if table.primary_key is not None:
            clauses.append(self.primary_key_clause(table.primary_key))
        clauses.extend(self.check_clause(cc) for cc in table.check_constraints)
        clauses.extend(self.unique_clause(uc) for uc in table.unique_constraints)
        if include_foreign_keys:
            clauses.extend(self.foreign_key_clause(table, fk) for fk in table.foreign_keys)
        return clauses

    def create_index_sql(self, table: Table, index: Index) -> str:
        columns = ', '.join(
            f"{self.quote_identifier(c.name)} {'DESC' if c.descending else 'ASC'}" for c in index.columns)
        unique = 'UNIQUE ' if index.is_unique else ''
        return (f'CREATE {unique}INDEX {self.quote_identifier(index.name)} '
                f'ON {self.qualify(table.name, table.schema_name)} ({columns})')

    def drop_index_sql(self, table: Table, index: Index) -> str:
        return f'DROP INDEX {self.quote_identifier(index.name)} ON {self.qualify(table.name, table.schema_name)}'

    def create_table_statements(self, table: Table, include_foreign_keys: bool = True) -> list[str]:
        """Render CREATE TABLE followed by its CREATE INDEX statements.
        """
        if not table.columns:
            raise SchemaValidationError(f'Table {table.name!r} has no columns')
        definitions = [self.column_definition(table, column) for column in table.columns]
        definitions.extend(self.table_constraint_clauses(table, include_foreign_keys))
        body = ',\n    '.join(definitions)
        sql = f'CREATE TABLE {self.qualify(table.name, table.schema_name)} (\n    {body}\n){self.create_table_suffix}'
        return [sql] + [self.create_index_sql(table, index) for index in table.indexes]

    def drop_table_sql(self, table_name: str, schema_name: str | None) -> str:
        return f'DROP TABLE {self.qualify(table_name, schema_name)}'

    def rename_table_sql(self, table_name: str, new_name: str, schema_name: str | None) -> str:
        return f'ALTER TABLE {self.qualify(table_name, schema_name)} RENAME TO {self.quote_identifier(new_name)}'

    def truncate_table_sql(self, table_name: str, schema_name: str | None) -> str:
        return f'TRUNCATE TABLE {self.qualify(table_name, schema_name)}'

    def create_view_sql(self, view: View) -> str:
        return f'CREATE VIEW {self.qualify(view.name, view.schema_name)} AS {view.definition}'

    def drop_view_sql(self, view_name: str, schema_name: str | None) -> str:
        return f'DROP VIEW {self.qualify(view_name, schema_name)}'

    # -- incremental change statements ---------------------------------------

    def _alter(self, table: Table) -> str:
        return f'ALTER TABLE {self.qualify(table.name, table.schema_name)}'

    def _add_column_sql(self, table: Table, column: Column) -> list[str] | None:
        return [f'{self._alter(table)} ADD {self.column_definition(table, column)}']

    def _drop_column_sql(self, table: Table, column: Column) -> list[str] | None:
        return [f'{self._alter(table)} DROP COLUMN {self.quote_identifier(column.name)}']

    def _rename_column_sql(self, table: Table, column: Column, new_name: str) -> list[str] | None:
        return [f'{self._alter(table)} RENAME COLUMN {self.quote_identifier(column.name)} '
                f'TO {self.quote_identifier(new_name)}']

    @abstractmethod
    def _alter_column_sql(self, table: Table, old: Column, new: Column) -> list[str] | None:
        """Statements changing a column's type, nullability or identity."""

    def _add_member_sql(self, table: Table, attr: str, member: Any) -> list[str] | None:
        if attr == 'indexes':
            return [self.create_index_sql(table, member)]
        if attr == 'default_constraints':
            return self._add_default_sql(table, member)
        clause = {
            'primary_key': self.primary_key_clause,
            'unique_constraints': self.unique_clause,
            'check_constraints': self.check_clause,
            'foreign_keys': lambda fk: self.foreign_key_clause(table, fk),
            }[attr](member)
        return [f'{self._alter(table)} ADD {clause}']

    def _drop_member_sql(self, table: Table, attr: str, member: Any) -> list[str] | None:
        if attr == 'indexes':
            return [self.drop_index_sql(table, member)]
        if attr == 'default_constraints':
            return self._drop_default_sql(table, member)
        return [f'{self._alter(table)} DROP CONSTRAINT {self.quote_identifier(member.name)}']

    def _add_default_sql(self, table: Table, default: DefaultConstraint) -> list[str] | None:
        return [f'{self._alter(table)} ALTER COLUMN {self.quote_identifier(default.column_name)} '
                f'SET DEFAULT {self.render_default(default.expression)}']

    def _drop_default_sql(self, table: Table, default: DefaultConstraint) -> list[str] | None:
        return [f'{self._alter(table)} ALTER COLUMN {self.quote_identifier(default.column_name)} DROP DEFAULT']

    def _rebuild_table(self, cn: 'ConnectionWrapper', current: Table, desired: Table) -> list[str]:
        """Recreate a table in its desired shape, preserving data."""
        raise DialectUnsupportedOperation(self.dialect_name, f'altering table {current.name} in place')

    # -- diff ---------------------------------------------------------------

    @staticmethod
    def _members(table: Table, attr: str) -> tuple:
        if attr == 'primary_key':
            return (table.primary_key,) if table.primary_key is not None else ()
        return getattr(table, attr)

    @staticmethod
    def _with_members(table: Table, attr: str, members: tuple) -> Table:
        if attr == 'primary_key':
            return table.replace(primary_key=members[0] if members else None)
        return table.replace(**{attr: members})

    @staticmethod
    def _member_key(attr: str, member: Any) -> str:
        if attr == 'default_constraints':
            return member.column_name.lower()
        return member.name.lower()

    def _same_member(self, attr: str, observed: Any, desired: Any) -> bool:
        if attr == 'check_constraints':
            # servers rewrite check expressions; the name identifies them
            return True
        if attr == 'default_constraints':
            return self.normalize_default(observed.expression) == self.normalize_default(desired.expression)
        return observed == desired

    def _canonical_type(self, column: Column) -> str:
        """DDL type of a column read back through the registry.

        Spellings of one type (`varchar(50)`, `character varying(50)`) and
        documented widenings (36 character strings as uuid) compare equal.
        """
        text = re.sub(r'\s+', ' ', self.column_type_sql(column)).strip().lower()
        descriptor = self.registry.to_python(self.dialect_name, text)
        if descriptor is None:
            return text
        rendered = self.registry.to_sql(self.dialect_name, descriptor)
        return rendered.sql_type_name.lower() if rendered is not None else text

    def _type_changed(self, old: Column, new: Column) -> bool:
        return self._canonical_type(old) != self._canonical_type(new)

    def _column_changed(self, old: Column, new: Column) -> bool:
        return (self._type_changed(old, new) or old.is_nullable != new.is_nullable
                or old.is_auto_increment != new.is_auto_increment)

    def _diff_statements(self, current: Table, desired: Table) -> list[str] | None:
        """Minimal statements turning `current` into `desired`.

        Returns None when a needed change cannot be expressed incrementally.
        """
        statements: list[str] = []
        old_columns = {c.name.lower(): c for c in current.columns}
        new_columns = {c.name.lower(): c for c in desired.columns}
        altered = [(old_columns[k], c) for k, c in new_columns.items()
                   if k in old_columns and self._column_changed(old_columns[k], c)]
        added_columns = {k for k in new_columns if k not in old_columns}
        rebound_defaults = {new.name.lower() for _, new in altered} if self.alter_column_drops_default else set()

        removed: dict[str, list] = {}
        added: dict[str, list] = {}
        for attr in MEMBER_ATTRIBUTES:
            observed = {self._member_key(attr, m): m for m in self._members(current, attr)}
            wanted = {self._member_key(attr, m): m for m in self._members(desired, attr)}
            removed[attr] = [m for k, m in observed.items()
                             if k not in wanted or not self._same_member(attr, m, wanted[k])
                             or (attr == 'default_constraints' and k in rebound_defaults)]
            added[attr] = [m for k, m in wanted.items()
                           if (k not in observed or not self._same_member(attr, observed[k], m)
                               or (attr == 'default_constraints' and k in rebound_defaults))
                           and not (attr == 'default_constraints' and k in added_columns)]

        def extend(sql: list[str] | None) -> bool:
            if sql is None:
                return False
            statements.extend(sql)
            return True

        for attr in MEMBER_ATTRIBUTES:
            for member in removed[attr]:
                if not extend(self._drop_member_sql(current, attr, member)):
                    return None
        for key, column in old_columns.items():
            if key not in new_columns and not extend(self._drop_column_sql(current, column)):
                return None
        for key in added_columns:
            if not extend(self._add_column_sql(desired, new_columns[key])):
                return None
        for old, new in altered:
            if not extend(self._alter_column_sql(desired, old, new)):
                return None
        for attr in reversed(MEMBER_ATTRIBUTES):
            for member in added[attr]:
                if not extend(self._add_member_sql(desired, attr, member)):
                    return None
        return statements

    def _evolve(self, cn: 'ConnectionWrapper', current: Table, desired: Table,
                race: str | None = None) -> EnsureResult:
        """Bring a live table from `current` to `desired`."""
        statements = self._diff_statements(current, desired)
        if statements is None:
            statements = self._rebuild_table(cn, current, desired)
            logger.info(f'Rebuilt table {desired.name} ({self.dialect_name})')
            return EnsureResult('rebuilt', tuple(statements))
        if not statements or not self._run_ddl(cn, statements, race):
            return EnsureResult('unchanged')
        logger.info(f'Altered table {desired.name} with {len(statements)} statement(s) ({self.dialect_name})')
        return EnsureResult('altered', tuple(statements))

    def _validate_references(self, cn: 'ConnectionWrapper', table: Table,
                             foreign_keys: Iterable[ForeignKeyConstraint],
                             pending: Iterable[str] = ()) -> None:
        """Check that referenced tables exist (or are about to be created)."""
        pending_names = {name.lower() for name in pending}
        for fk in foreign_keys:
            target = fk.referenced_table.lower()
            if target == table.name.lower() or target in pending_names:
                continue
            if not self.table_exists(cn, fk.referenced_table, fk.referenced_schema or table.schema_name):
                raise SchemaValidationError(
                    f'Foreign key {fk.name} on {table.name} references missing table {fk.referenced_table}')

    # -- catalog queries (dialect specific) -----------------------------------

    @abstractmethod
    def _get_table_names(self, cn: 'ConnectionWrapper', schema: str | None,
                         like: str | None) -> list[str]:
        """Names of base tables in `schema` matching a LIKE pattern."""

    @abstractmethod
    def _introspect_table(self, cn: 'ConnectionWrapper', table_name: str, schema: str | None,
                          report_schema: str | None) -> Table:
        """Read one table from the catalog.

        Args:
            cn: Database connection object
            table_name: Exact catalog name of an existing table
            schema: Schema to query
            report_schema: Schema name to put on the returned model
        """

    @abstractmethod
    def _get_view_rows(self, cn: 'ConnectionWrapper', schema: str | None,
                       like: str | None) -> list[tuple[str, str]]:
        """(name, definition) of views in `schema` matching a LIKE pattern."""

    # -- tables -------------------------------------------------------------

    def _like(self, pattern: str | None) -> str | None:
        return to_like_pattern(pattern, self.like_specials)

    def _find_table_name(self, cn: 'ConnectionWrapper', table_name: str,
                         schema_name: str | None) -> str | None:
        target = self.normalize_name(table_name)
        for name in self._get_table_names(cn, self.resolve_schema(schema_name), self._like(target)):
            if name.lower() == target.lower():
                return name
        return None

    def table_exists(self, cn: 'ConnectionWrapper', table_name: str,
                     schema_name: str | None = None) -> bool:
        """Check whether a base table exists."""
        return self._find_table_name(cn, table_name, schema_name) is not None

    def get_table_names(self, cn: 'ConnectionWrapper', pattern: str | None = None,
                        schema_name: str | None = None) -> list[str]:
        """List table names, optionally filtered by a ``*`` wildcard pattern."""
        return self._get_table_names(cn, self.resolve_schema(schema_name), self._like(pattern))

    def get_table(self, cn: 'ConnectionWrapper', table_name: str,
                  schema_name: str | None = None) -> Table | None:
        """Read a table model from the catalog, or None if it does not exist."""
        name = self._find_table_name(cn, table_name, schema_name)
        if name is None:
            return None
        return self._introspect_table(cn, name, self.resolve_schema(schema_name), schema_name)

    def get_tables(self, cn: 'ConnectionWrapper', pattern: str | None = None,
                   schema_name: str | None = None) -> list[Table]:
        """Read all tables matching a ``*`` wildcard pattern."""
        schema = self.resolve_schema(schema_name)
        return [self._introspect_table(cn, name, schema, schema_name)
                for name in self._get_table_names(cn, schema, self._like(pattern))]

    def create_table_if_not_exists(self, cn: 'ConnectionWrapper', table: Table) -> bool:
        """Create a table with its constraints and indexes.

        Returns
            True if created, False if it already existed
        """
        table = self.normalize_table(table)
        if self.table_exists(cn, table.name, table.schema_name):
            return False
        self._validate_references(cn, table, table.foreign_keys)
        created = self._run_ddl(cn, self.create_table_statements(table), race='exists')
        if created:
            logger.info(f'Created table {table.name} ({self.dialect_name})')
        return created

    def create_tables_if_not_exist(self, cn: 'ConnectionWrapper', tables: Sequence[Table]) -> list[bool]:
        """Create several tables; foreign keys are added once all tables exist.

        Returns
            One flag per table, True where the table was created
        """
        tables = [self.normalize_table(t) for t in tables]
        pending = [t.name for t in tables]
        results = []
        created: list[Table] = []
        for table in tables:
            if self.table_exists(cn, table.name, table.schema_name):
                results.append(False)
                continue
            self._validate_references(cn, table, table.foreign_keys, pending)
            statements = self.create_table_statements(table, include_foreign_keys=self.inline_foreign_keys)
            ran = self._run_ddl(cn, statements, race='exists')
            results.append(ran)
            if ran:
                created.append(table)
        if not self.inline_foreign_keys:
            for table in created:
                for fk in table.foreign_keys:
                    self._run_ddl(cn, self._add_member_sql(table, 'foreign_keys', fk), race='exists')
        return results

    def drop_table_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                             schema_name: str | None = None) -> bool:
        """Drop a table.

        Returns
            True if dropped, False if it did not exist
        """
        name = self._find_table_name(cn, table_name, schema_name)
        if name is None:
            return False
        dropped = self._run_ddl(cn, [self.drop_table_sql(name, self._schema_for_ddl(schema_name))], race='missing')
        if dropped:
            logger.info(f'Dropped table {name} ({self.dialect_name})')
        return dropped

    def rename_table_if_exists(self, cn: 'ConnectionWrapper', table_name: str, new_name: str,
                               schema_name: str | None = None) -> bool:
        """Rename a table; False if it does not exist or the new name is taken."""
        name = self._find_table_name(cn, table_name, schema_name)
        if name is None or self.table_exists(cn, new_name, schema_name):
            return False
        sql = self.rename_table_sql(name, self.normalize_name(new_name), self._schema_for_ddl(schema_name))
        return self._run_ddl(cn, [sql], race='missing')

    def truncate_table_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                 schema_name: str | None = None) -> bool:
        """Delete all rows of a table; False if it does not exist."""
        name = self._find_table_name(cn, table_name, schema_name)
        if name is None:
            return False
        return self._run_ddl(cn, [self.truncate_table_sql(name, self._schema_for_ddl(schema_name))],
                             race='missing')

    def ensure_table(self, cn: 'ConnectionWrapper', table: Table) -> EnsureResult:
        """Create a table or alter it to match the desired model.

        The observed table is read from the catalog and compared member by
        member; only the differences are applied.
        """
        desired = self.normalize_table(table)
        current = self.get_table(cn, desired.name, desired.schema_name)
        if current is None:
            self._validate_references(cn, desired, desired.foreign_keys)
            statements = self.create_table_statements(desired)
            if not self._run_ddl(cn, statements, race='exists'):
                return EnsureResult('unchanged')
            logger.info(f'Created table {desired.name} ({self.dialect_name})')
            return EnsureResult('created', tuple(statements))
        current_fks = {fk.name.lower() for fk in current.foreign_keys}
        self._validate_references(
            cn, desired, [fk for fk in desired.foreign_keys if fk.name.lower() not in current_fks])
        return self._evolve(cn, current, desired)

    def _schema_for_ddl(self, schema_name: str | None) -> str | None:
        return self.normalize_name(schema_name) if schema_name else None

    # -- columns ------------------------------------------------------------

    def _current_table(self, cn: 'ConnectionWrapper', table_name: str,
                       schema_name: str | None) -> Table | None:
        table = self.get_table(cn, table_name, schema_name)
        if table is None:
            logger.warning(f'Table {table_name} does not exist ({self.dialect_name})')
        return table

    def column_exists(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                      schema_name: str | None = None) -> bool:
        return self.get_column(cn, table_name, column_name, schema_name) is not None

    def get_columns(self, cn: 'ConnectionWrapper', table_name: str,
                    schema_name: str | None = None) -> list[Column]:
        table = self.get_table(cn, table_name, schema_name)
        return list(table.columns) if table else []

    def get_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                   schema_name: str | None = None) -> Column | None:
        table = self.get_table(cn, table_name, schema_name)
        return table.get_column(self.normalize_name(column_name)) if table else None

    def create_column_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str, column: Column,
                                    schema_name: str | None = None) -> bool:
        """Add a column (with its default) to an existing table.

        Returns
            True if added; False if the column exists or the table does not
        """
        current = self._current_table(cn, table_name, schema_name)
        if current is None or current.get_column(self.normalize_name(column.name)) is not None:
            return False
        desired = self.normalize_table(current.replace(columns=current.columns + (column,)))
        return self._evolve(cn, current, desired, race='exists').changed

    def drop_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                              schema_name: str | None = None) -> bool:
        """Drop a column together with the constraints and indexes that use it.
        """
        current = self._current_table(cn, table_name, schema_name)
        if current is None:
            return False
        column = current.get_column(self.normalize_name(column_name))
        if column is None:
            return False
        return self._evolve(cn, current, _without_column(current, column.name), race='missing').changed

    def rename_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                new_name: str, schema_name: str | None = None) -> bool:
        """Rename a column; False if it is missing or the new name is taken."""
        current = self._current_table(cn, table_name, schema_name)
        if current is None:
            return False
        column = current.get_column(self.normalize_name(column_name))
        if column is None or current.get_column(self.normalize_name(new_name)) is not None:
            return False
        statements = self._rename_column_sql(current, column, self.normalize_name(new_name))
        if statements is None:
            raise DialectUnsupportedOperation(self.dialect_name, 'renaming a column')
        return self._run_ddl(cn, statements, race='missing')

    # -- constraints and indexes ----------------------------------------------

    def _find_member(self, table: Table, attr: str, key: str) -> Any:
        key = self.normalize_name(key).lower()
        return next((m for m in self._members(table, attr) if self._member_key(attr, m) == key), None)

    def _get_member(self, cn: 'ConnectionWrapper', table_name: str, attr: str, key: str | None,
                    schema_name: str | None) -> Any:
        table = self.get_table(cn, table_name, schema_name)
        if table is None:
            return None
        if attr == 'primary_key':
            return table.primary_key
        return self._find_member(table, attr, key)

    def _list_members(self, cn: 'ConnectionWrapper', table_name: str, attr: str,
                      schema_name: str | None) -> list:
        table = self.get_table(cn, table_name, schema_name)
        return list(self._members(table, attr)) if table else []

    def _add_member(self, cn: 'ConnectionWrapper', table_name: str, attr: str, member: Any,
                    schema_name: str | None) -> bool:
        current = self._current_table(cn, table_name, schema_name)
        if current is None:
            return False
        # name the member the way the table would, then look for it
        named = self._members(self.normalize_table(self._with_members(current, attr, (member,))), attr)[0]
        if attr == 'primary_key' and current.primary_key is not None:
            return False
        if self._find_member(current, attr, self._member_key(attr, named)) is not None:
            return False
        if attr == 'default_constraints' and current.get_column(named.column_name) is None:
            raise SchemaValidationError(f'Column {named.column_name} does not exist on {current.name}')
        if attr == 'foreign_keys':
            self._validate_references(cn, current, [named])
        desired = self._with_members(current, attr, self._members(current, attr) + (named,))
        return self._evolve(cn, current, desired, race='exists').changed

    def _drop_member(self, cn: 'ConnectionWrapper', table_name: str, attr: str, key: str | None,
                     schema_name: str | None) -> bool:
        current = self._current_table(cn, table_name, schema_name)
        if current is None:
            return False
        if attr == 'primary_key':
            existing = current.primary_key
        else:
            existing = self._find_member(current, attr, key)
        if existing is None:
            return False
        remaining = tuple(m for m in self._members(current, attr) if m is not existing)
        desired = self._with_members(current, attr, remaining)
        return self._evolve(cn, current, desired, race='missing').changed

    def primary_key_exists(self, cn: 'ConnectionWrapper', table_name: str,
                           schema_name: str | None = None) -> bool:
        return self.get_primary_key(cn, table_name, schema_name) is not None

    def get_primary_key(self, cn: 'ConnectionWrapper', table_name: str,
                        schema_name: str | None = None) -> PrimaryKeyConstraint | None:
        return self._get_member(cn, table_name, 'primary_key', None, schema_name)

    def create_primary_key_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                         primary_key: PrimaryKeyConstraint,
                                         schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'primary_key', primary_key, schema_name)

    def drop_primary_key_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                   schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'primary_key', None, schema_name)

    def foreign_key_exists(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                           schema_name: str | None = None) -> bool:
        return self.get_foreign_key(cn, table_name, constraint_name, schema_name) is not None

    def get_foreign_key(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                        schema_name: str | None = None) -> ForeignKeyConstraint | None:
        return self._get_member(cn, table_name, 'foreign_keys', constraint_name, schema_name)

    def get_foreign_keys(self, cn: 'ConnectionWrapper', table_name: str,
                         schema_name: str | None = None) -> list[ForeignKeyConstraint]:
        return self._list_members(cn, table_name, 'foreign_keys', schema_name)

    def create_foreign_key_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                         foreign_key: ForeignKeyConstraint,
                                         schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'foreign_keys', foreign_key, schema_name)

    def drop_foreign_key_if_exists(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                                   schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'foreign_keys', constraint_name, schema_name)

    def unique_constraint_exists(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                                 schema_name: str | None = None) -> bool:
        return self.get_unique_constraint(cn, table_name, constraint_name, schema_name) is not None

    def get_unique_constraint(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                              schema_name: str | None = None) -> UniqueConstraint | None:
        return self._get_member(cn, table_name, 'unique_constraints', constraint_name, schema_name)

    def get_unique_constraints(self, cn: 'ConnectionWrapper', table_name: str,
                               schema_name: str | None = None) -> list[UniqueConstraint]:
        return self._list_members(cn, table_name, 'unique_constraints', schema_name)

    def create_unique_constraint_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                               constraint: UniqueConstraint,
                                               schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'unique_constraints', constraint, schema_name)

    def drop_unique_constraint_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                         constraint_name: str, schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'unique_constraints', constraint_name, schema_name)

    def check_constraint_exists(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                                schema_name: str | None = None) -> bool:
        return self.get_check_constraint(cn, table_name, constraint_name, schema_name) is not None

    def get_check_constraint(self, cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                             schema_name: str | None = None) -> CheckConstraint | None:
        return self._get_member(cn, table_name, 'check_constraints', constraint_name, schema_name)

    def get_check_constraints(self, cn: 'ConnectionWrapper', table_name: str,
                              schema_name: str | None = None) -> list[CheckConstraint]:
        return self._list_members(cn, table_name, 'check_constraints', schema_name)

    def create_check_constraint_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                              constraint: CheckConstraint,
                                              schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'check_constraints', constraint, schema_name)

    def drop_check_constraint_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                        constraint_name: str, schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'check_constraints', constraint_name, schema_name)

    def default_constraint_exists(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                  schema_name: str | None = None) -> bool:
        return self.get_default_constraint(cn, table_name, column_name, schema_name) is not None

    def get_default_constraint(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                               schema_name: str | None = None) -> DefaultConstraint | None:
        return self._get_member(cn, table_name, 'default_constraints', column_name, schema_name)

    def get_default_constraints(self, cn: 'ConnectionWrapper', table_name: str,
                                schema_name: str | None = None) -> list[DefaultConstraint]:
        return self._list_members(cn, table_name, 'default_constraints', schema_name)

    def create_default_constraint_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                                constraint: DefaultConstraint,
                                                schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'default_constraints', constraint, schema_name)

    def drop_default_constraint_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                          column_name: str, schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'default_constraints', column_name, schema_name)

    def index_exists(self, cn: 'ConnectionWrapper', table_name: str, index_name: str,
                     schema_name: str | None = None) -> bool:
        return self.get_index(cn, table_name, index_name, schema_name) is not None

    def get_index(self, cn: 'ConnectionWrapper', table_name: str, index_name: str,
                  schema_name: str | None = None) -> Index | None:
        return self._get_member(cn, table_name, 'indexes', index_name, schema_name)

    def get_indexes(self, cn: 'ConnectionWrapper', table_name: str,
                    schema_name: str | None = None) -> list[Index]:
        return self._list_members(cn, table_name, 'indexes', schema_name)

    def create_index_if_not_exists(self, cn: 'ConnectionWrapper', table_name: str, index: Index,
                                   schema_name: str | None = None) -> bool:
        return self._add_member(cn, table_name, 'indexes', index, schema_name)

    def drop_index_if_exists(self, cn: 'ConnectionWrapper', table_name: str, index_name: str,
                             schema_name: str | None = None) -> bool:
        return self._drop_member(cn, table_name, 'indexes', index_name, schema_name)

    # -- members covering a column --------------------------------------------

    def _uses_column(self, attr: str, member: Any, column_name: str) -> bool:
        key = self.normalize_name(column_name).lower()
        if attr == 'check_constraints':
            # MySQL does not record the column of a check; fall back to its expression
            if member.column_name:
                return member.column_name.lower() == key
            return re.search(rf'\b{re.escape(key)}\b', member.expression, re.IGNORECASE) is not None
        names = member.column_names if attr == 'indexes' else member.columns
        return any(name.lower() == key for name in names)

    def _members_on_column(self, table: Table | None, attr: str, column_name: str) -> list:
        if table is None:
            return []
        return [m for m in self._members(table, attr) if self._uses_column(attr, m, column_name)]

    def _get_member_on_column(self, cn: 'ConnectionWrapper', table_name: str, attr: str,
                              column_name: str, schema_name: str | None) -> Any:
        found = self._members_on_column(self.get_table(cn, table_name, schema_name), attr, column_name)
        return found[0] if found else None

    def _drop_members_on_column(self, cn: 'ConnectionWrapper', table_name: str, attr: str,
                                column_name: str, schema_name: str | None, first_only: bool) -> bool:
        current = self._current_table(cn, table_name, schema_name)
        found = self._members_on_column(current, attr, column_name)
        if not found:
            return False
        if first_only:
            found = found[:1]
        remaining = tuple(m for m in self._members(current, attr) if not any(m is f for f in found))
        desired = self._with_members(current, attr, remaining)
        return self._evolve(cn, current, desired, race='missing').changed

    def get_indexes_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                              schema_name: str | None = None) -> list[Index]:
        """Indexes that include the column, in any position."""
        table = self.get_table(cn, table_name, schema_name)
        return self._members_on_column(table, 'indexes', column_name)

    def index_exists_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                               schema_name: str | None = None) -> bool:
        return bool(self.get_indexes_on_column(cn, table_name, column_name, schema_name))

    def drop_indexes_on_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                         column_name: str, schema_name: str | None = None) -> bool:
        """Drop every index that includes the column; False if there is none."""
        return self._drop_members_on_column(cn, table_name, 'indexes', column_name, schema_name,
                                            first_only=False)

    def get_unique_constraint_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                        schema_name: str | None = None) -> UniqueConstraint | None:
        """The first unique constraint that includes the column."""
        return self._get_member_on_column(cn, table_name, 'unique_constraints', column_name, schema_name)

    def unique_constraint_exists_on_column(self, cn: 'ConnectionWrapper', table_name: str,
                                           column_name: str, schema_name: str | None = None) -> bool:
        return self.get_unique_constraint_on_column(cn, table_name, column_name, schema_name) is not None

    def drop_unique_constraint_on_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                                   column_name: str, schema_name: str | None = None) -> bool:
        return self._drop_members_on_column(cn, table_name, 'unique_constraints', column_name,
                                            schema_name, first_only=True)

    def get_check_constraint_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                       schema_name: str | None = None) -> CheckConstraint | None:
        """The first check constraint on the column or whose expression names it."""
        return self._get_member_on_column(cn, table_name, 'check_constraints', column_name, schema_name)

    def check_constraint_exists_on_column(self, cn: 'ConnectionWrapper', table_name: str,
                                          column_name: str, schema_name: str | None = None) -> bool:
        return self.get_check_constraint_on_column(cn, table_name, column_name, schema_name) is not None

    def drop_check_constraint_on_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                                  column_name: str, schema_name: str | None = None) -> bool:
        return self._drop_members_on_column(cn, table_name, 'check_constraints', column_name,
                                            schema_name, first_only=True)

    def get_foreign_key_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                  schema_name: str | None = None) -> ForeignKeyConstraint | None:
        """The first foreign key whose source columns include the column."""
        return self._get_member_on_column(cn, table_name, 'foreign_keys', column_name, schema_name)

    def foreign_key_exists_on_column(self, cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                     schema_name: str | None = None) -> bool:
        return self.get_foreign_key_on_column(cn, table_name, column_name, schema_name) is not None

    def drop_foreign_key_on_column_if_exists(self, cn: 'ConnectionWrapper', table_name: str,
                                             column_name: str, schema_name: str | None = None) -> bool:
        return self._drop_members_on_column(cn, table_name, 'foreign_keys', column_name,
                                            schema_name, first_only=True)

    # -- views --------------------------------------------------------------

    def get_view_names(self, cn: 'ConnectionWrapper', pattern: str | None = None,
                       schema_name: str | None = None) -> list[str]:
        return [name for name, _ in self._get_view_rows(
            cn, self.resolve_schema(schema_name), self._like(pattern))]

    def get_views(self, cn: 'ConnectionWrapper', pattern: str | None = None,
                  schema_name: str | None = None) -> list[View]:
        rows = self._get_view_rows(cn, self.resolve_schema(schema_name), self._like(pattern))
        return [View(name, self._normalize_view_definition(definition), schema_name)
                for name, definition in rows]

    def get_view(self, cn: 'ConnectionWrapper', view_name: str,
                 schema_name: str | None = None) -> View | None:
        target = self.normalize_name(view_name).lower()
        rows = self._get_view_rows(cn, self.resolve_schema(schema_name),
                                    self._like(self.normalize_name(view_name)))
        for name, definition in rows:
            if name.lower() == target:
                return View(name, self._normalize_view_definition(definition), schema_name)
        return None

    def view_exists(self, cn: 'ConnectionWrapper', view_name: str,
                    schema_name: str | None = None) -> bool:
        return self.get_view(cn, view_name, schema_name) is not None

    def create_view_if_not_exists(self, cn: 'ConnectionWrapper', view: View) -> bool:
        """Create a view; False if a view with that name exists."""
        if self.view_exists(cn, view.name, view.schema_name):
            return False
        view = View(self.normalize_name(view.name), view.definition.strip().rstrip(';'),
                    self._schema_for_ddl(view.schema_name))
        return self._run_ddl(cn, [self.create_view_sql(view)], race='exists')

    def drop_view_if_exists(self, cn: 'ConnectionWrapper', view_name: str,
                            schema_name: str | None = None) -> bool:
        view = self.get_view(cn, view_name, schema_name)
        if view is None:
            return False
        return self._run_ddl(cn, [self.drop_view_sql(view.name, self._schema_for_ddl(schema_name))],
                             race='missing')

    def rename_view_if_exists(self, cn: 'ConnectionWrapper', view_name: str, new_name: str,
                              schema_name: str | None = None) -> bool:
        """Rename a view; False if it does not exist or the new name is taken.

        Dialects without a rename statement drop the view and create it again
        from its stored definition, in one transaction.
        """
        view = self.get_view(cn, view_name, schema_name)
        if view is None or not view.definition or self.view_exists(cn, new_name, schema_name):
            return False
        schema = self._schema_for_ddl(schema_name)
        new_name = self.normalize_name(new_name)
        statements = self.rename_view_sql(view.name, new_name, schema)
        if statements is None:
            statements = [self.drop_view_sql(view.name, schema),
                          self.create_view_sql(View(new_name, view.definition, schema))]
        renamed = self._run_ddl(cn, statements, race='missing')
        if renamed:
            logger.info(f'Renamed view {view.name} to {new_name} ({self.dialect_name})')
        return renamed

    def rename_view_sql(self, view_name: str, new_name: str, schema_name: str | None) -> list[str] | None:
        return None

    def _normalize_view_definition(self, definition: str) -> str:
        """Reduce a stored view to its SELECT text."""
        text = (definition or '').strip()
        match = re.match(r'^\s*CREATE\s+.*?\bVIEW\b.*?\bAS\b\s*(.*)$', text,
                         flags=re.IGNORECASE | re.DOTALL)
        if match:
            text = match.group(1)
        return text.strip().rstrip(';').strip()

    # -- schemas --------------------------------------------------------------

    def _require_schemas(self, operation: str) -> None:
        if not self.supports_schemas:
            raise DialectUnsupportedOperation(self.dialect_name, operation)

    def schema_exists(self, cn: 'ConnectionWrapper', schema_name: str) -> bool:
        target = self.normalize_name(schema_name).lower()
        return any(name.lower() == target for name in self.get_schema_names(cn))

    def get_schema_names(self, cn: 'ConnectionWrapper') -> list[str]:
        self._require_schemas('listing schemas')
        return self._get_schema_names(cn)

    def _get_schema_names(self, cn: 'ConnectionWrapper') -> list[str]:
        raise DialectUnsupportedOperation(self.dialect_name, 'listing schemas')

    def create_schema_if_not_exists(self, cn: 'ConnectionWrapper', schema_name: str) -> bool:
        self._require_schemas('creating schemas')
        if self.schema_exists(cn, schema_name):
            return False
        return self._run_ddl(cn, [self.create_schema_sql(self.normalize_name(schema_name))], race='exists')

    def drop_schema_if_exists(self, cn: 'ConnectionWrapper', schema_name: str) -> bool:
        self._require_schemas('dropping schemas')
        if not self.schema_exists(cn, schema_name):
            return False
        return self._run_ddl(cn, [f'DROP SCHEMA {self.quote_identifier(self.normalize_name(schema_name))}'],
                             race='missing')

    def create_schema_sql(self, schema_name: str) -> str:
        return f'CREATE SCHEMA {self.quote_identifier(schema_name)}'


def _without_column(table: Table, column_name: str) -> Table:
    """The table minus a column and every member that uses it."""
    key = column_name.lower()
    word = re.compile(rf'\b{re.escape(column_name)}\b', re.IGNORECASE)

    def uses(names: Iterable[str]) -> bool:
        return any(name.lower() == key for name in names)

    pk = table.primary_key
    return Table(
        name=table.name,
        schema_name=table.schema_name,
        columns=tuple(c for c in table.columns if c.name.lower() != key),
        primary_key=None if pk is not None and uses(pk.column_names) else pk,
        unique_constraints=tuple(u for u in table.unique_constraints if not uses(u.columns)),
        check_constraints=tuple(
            c for c in table.check_constraints
            if (c.column_name or '').lower() != key and not word.search(c.expression)),
        default_constraints=tuple(d for d in table.default_constraints if d.column_name.lower() != key),
        foreign_keys=tuple(f for f in table.foreign_keys if not uses(f.columns)),
        indexes=tuple(i for i in table.indexes if not uses(i.column_names)),
        )
