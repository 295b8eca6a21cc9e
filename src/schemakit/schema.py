"""
Schema operations as module functions.

Each function resolves the dialect strategy of the connection and delegates
to it, so callers holding a ConnectionWrapper need no strategy object:

    >>> import schemakit
    >>> schemakit.create_table_if_not_exists(cn, table)  # doctest: +SKIP

Functions in this module handle:
- Tables: existence, introspection, create, drop, rename, truncate, ensure
- Columns, indexes and the five constraint kinds
- Views and schemas
"""
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from schemakit.strategy import EnsureResult, get_db_strategy

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.models import CheckConstraint, Column, DefaultConstraint
    from schemakit.models import ForeignKeyConstraint, Index, PrimaryKeyConstraint
    from schemakit.models import Table, UniqueConstraint, View

logger = logging.getLogger(__name__)


# == tables


def table_exists(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> bool:
    """Check whether a table exists.
    """
    return get_db_strategy(cn).table_exists(cn, table_name, schema_name)


def get_table_names(cn: 'ConnectionWrapper', pattern: str | None = None,
                    schema_name: str | None = None) -> list[str]:
    """List table names; `pattern` uses ``*`` as wildcard.
    """
    return get_db_strategy(cn).get_table_names(cn, pattern, schema_name)


def get_table(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> 'Table | None':
    """Read a table model from the catalog.
    """
    return get_db_strategy(cn).get_table(cn, table_name, schema_name)


def get_tables(cn: 'ConnectionWrapper', pattern: str | None = None,
               schema_name: str | None = None) -> list['Table']:
    return get_db_strategy(cn).get_tables(cn, pattern, schema_name)


def create_table_if_not_exists(cn: 'ConnectionWrapper', table: 'Table') -> bool:
    """Create a table with its constraints and indexes.

    Returns
        True if the table was created, False if it already existed
    """
    return get_db_strategy(cn).create_table_if_not_exists(cn, table)


def create_tables_if_not_exist(cn: 'ConnectionWrapper', tables: Sequence['Table']) -> list[bool]:
    """Create several tables, adding foreign keys once all of them exist.
    """
    return get_db_strategy(cn).create_tables_if_not_exist(cn, tables)


def drop_table_if_exists(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_table_if_exists(cn, table_name, schema_name)


def rename_table_if_exists(cn: 'ConnectionWrapper', table_name: str, new_name: str,
                           schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).rename_table_if_exists(cn, table_name, new_name, schema_name)


def truncate_table_if_exists(cn: 'ConnectionWrapper', table_name: str,
                             schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).truncate_table_if_exists(cn, table_name, schema_name)


def ensure_table(cn: 'ConnectionWrapper', table: 'Table') -> EnsureResult:
    """Create a table or alter it until it matches the model.

    This operation varies by database type:
    - PostgreSQL, SQL Server, MySQL: ALTER TABLE statements
    - SQLite: ALTER TABLE where possible, otherwise a table rebuild

    Returns
        EnsureResult with the action taken and the statements executed
    """
    return get_db_strategy(cn).ensure_table(cn, table)


# == columns


def column_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                  schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).column_exists(cn, table_name, column_name, schema_name)


def get_columns(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> list['Column']:
    return get_db_strategy(cn).get_columns(cn, table_name, schema_name)


def get_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
               schema_name: str | None = None) -> 'Column | None':
    return get_db_strategy(cn).get_column(cn, table_name, column_name, schema_name)


def create_column_if_not_exists(cn: 'ConnectionWrapper', table_name: str, column: 'Column',
                                schema_name: str | None = None) -> bool:
    """Add a column to an existing table.
    """
    return get_db_strategy(cn).create_column_if_not_exists(cn, table_name, column, schema_name)


def drop_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                          schema_name: str | None = None) -> bool:
    """Drop a column and the constraints and indexes that depend on it.
    """
    return get_db_strategy(cn).drop_column_if_exists(cn, table_name, column_name, schema_name)


def rename_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str, new_name: str,
                            schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).rename_column_if_exists(cn, table_name, column_name, new_name, schema_name)


# == primary keys


def primary_key_exists(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).primary_key_exists(cn, table_name, schema_name)


def get_primary_key(cn: 'ConnectionWrapper', table_name: str,
                    schema_name: str | None = None) -> 'PrimaryKeyConstraint | None':
    return get_db_strategy(cn).get_primary_key(cn, table_name, schema_name)


def create_primary_key_if_not_exists(cn: 'ConnectionWrapper', table_name: str,
                                     primary_key: 'PrimaryKeyConstraint',
                                     schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).create_primary_key_if_not_exists(cn, table_name, primary_key, schema_name)


def drop_primary_key_if_exists(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_primary_key_if_exists(cn, table_name, schema_name)


# == foreign keys


def foreign_key_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                       schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).foreign_key_exists(cn, table_name, constraint_name, schema_name)


def get_foreign_key(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                    schema_name: str | None = None) -> 'ForeignKeyConstraint | None':
    return get_db_strategy(cn).get_foreign_key(cn, table_name, constraint_name, schema_name)


def get_foreign_keys(cn: 'ConnectionWrapper', table_name: str,
                     schema_name: str | None = None) -> list['ForeignKeyConstraint']:
    return get_db_strategy(cn).get_foreign_keys(cn, table_name, schema_name)


def create_foreign_key_if_not_exists(cn: 'ConnectionWrapper', table_name: str,
                                     foreign_key: 'ForeignKeyConstraint',
                                     schema_name: str | None = None) -> bool:
    """Add a foreign key; the referenced table must already exist.

    Raises
        SchemaValidationError: If the referenced table does not exist
    """
    return get_db_strategy(cn).create_foreign_key_if_not_exists(cn, table_name, foreign_key, schema_name)


def drop_foreign_key_if_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                               schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_foreign_key_if_exists(cn, table_name, constraint_name, schema_name)


def foreign_key_exists_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                 schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).foreign_key_exists_on_column(cn, table_name, column_name, schema_name)


def get_foreign_key_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                              schema_name: str | None = None) -> 'ForeignKeyConstraint | None':
    return get_db_strategy(cn).get_foreign_key_on_column(cn, table_name, column_name, schema_name)


def drop_foreign_key_on_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                         schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_foreign_key_on_column_if_exists(cn, table_name, column_name, schema_name)


# == unique constraints


def unique_constraint_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                             schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).unique_constraint_exists(cn, table_name, constraint_name, schema_name)


def get_unique_constraint(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                          schema_name: str | None = None) -> 'UniqueConstraint | None':
    return get_db_strategy(cn).get_unique_constraint(cn, table_name, constraint_name, schema_name)


def get_unique_constraints(cn: 'ConnectionWrapper', table_name: str,
                           schema_name: str | None = None) -> list['UniqueConstraint']:
    return get_db_strategy(cn).get_unique_constraints(cn, table_name, schema_name)


def create_unique_constraint_if_not_exists(cn: 'ConnectionWrapper', table_name: str,
                                           constraint: 'UniqueConstraint',
                                           schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).create_unique_constraint_if_not_exists(cn, table_name, constraint, schema_name)


def drop_unique_constraint_if_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                                     schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_unique_constraint_if_exists(cn, table_name, constraint_name, schema_name)


def unique_constraint_exists_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                       schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).unique_constraint_exists_on_column(cn, table_name, column_name, schema_name)


def get_unique_constraint_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                    schema_name: str | None = None) -> 'UniqueConstraint | None':
    return get_db_strategy(cn).get_unique_constraint_on_column(cn, table_name, column_name, schema_name)


def drop_unique_constraint_on_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                               schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_unique_constraint_on_column_if_exists(
        cn, table_name, column_name, schema_name)


# == check constraints


def check_constraint_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                            schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).check_constraint_exists(cn, table_name, constraint_name, schema_name)


def get_check_constraint(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                         schema_name: str | None = None) -> 'CheckConstraint | None':
    return get_db_strategy(cn).get_check_constraint(cn, table_name, constraint_name, schema_name)


def get_check_constraints(cn: 'ConnectionWrapper', table_name: str,
                          schema_name: str | None = None) -> list['CheckConstraint']:
    return get_db_strategy(cn).get_check_constraints(cn, table_name, schema_name)


def create_check_constraint_if_not_exists(cn: 'ConnectionWrapper', table_name: str,
                                          constraint: 'CheckConstraint',
                                          schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).create_check_constraint_if_not_exists(cn, table_name, constraint, schema_name)


def drop_check_constraint_if_exists(cn: 'ConnectionWrapper', table_name: str, constraint_name: str,
                                    schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_check_constraint_if_exists(cn, table_name, constraint_name, schema_name)


def check_constraint_exists_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                      schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).check_constraint_exists_on_column(cn, table_name, column_name, schema_name)


def get_check_constraint_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                   schema_name: str | None = None) -> 'CheckConstraint | None':
    """Return the first check constraint bound to the column.

    Where the catalog does not record a check's column (MySQL) the
    constraint matches when its expression names the column.
    """
    return get_db_strategy(cn).get_check_constraint_on_column(cn, table_name, column_name, schema_name)


def drop_check_constraint_on_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                              schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_check_constraint_on_column_if_exists(
        cn, table_name, column_name, schema_name)


# == default constraints (addressed by column)


def default_constraint_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                              schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).default_constraint_exists(cn, table_name, column_name, schema_name)


def get_default_constraint(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                           schema_name: str | None = None) -> 'DefaultConstraint | None':
    return get_db_strategy(cn).get_default_constraint(cn, table_name, column_name, schema_name)


def get_default_constraints(cn: 'ConnectionWrapper', table_name: str,
                            schema_name: str | None = None) -> list['DefaultConstraint']:
    return get_db_strategy(cn).get_default_constraints(cn, table_name, schema_name)


def create_default_constraint_if_not_exists(cn: 'ConnectionWrapper', table_name: str,
                                            constraint: 'DefaultConstraint',
                                            schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).create_default_constraint_if_not_exists(cn, table_name, constraint, schema_name)


def drop_default_constraint_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                      schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_default_constraint_if_exists(cn, table_name, column_name, schema_name)


# == indexes


def index_exists(cn: 'ConnectionWrapper', table_name: str, index_name: str,
                 schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).index_exists(cn, table_name, index_name, schema_name)


def get_index(cn: 'ConnectionWrapper', table_name: str, index_name: str,
              schema_name: str | None = None) -> 'Index | None':
    return get_db_strategy(cn).get_index(cn, table_name, index_name, schema_name)


def get_indexes(cn: 'ConnectionWrapper', table_name: str, schema_name: str | None = None) -> list['Index']:
    return get_db_strategy(cn).get_indexes(cn, table_name, schema_name)


def create_index_if_not_exists(cn: 'ConnectionWrapper', table_name: str, index: 'Index',
                               schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).create_index_if_not_exists(cn, table_name, index, schema_name)


def drop_index_if_exists(cn: 'ConnectionWrapper', table_name: str, index_name: str,
                         schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_index_if_exists(cn, table_name, index_name, schema_name)


def index_exists_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                           schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).index_exists_on_column(cn, table_name, column_name, schema_name)


def get_indexes_on_column(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                          schema_name: str | None = None) -> list['Index']:
    return get_db_strategy(cn).get_indexes_on_column(cn, table_name, column_name, schema_name)


def drop_indexes_on_column_if_exists(cn: 'ConnectionWrapper', table_name: str, column_name: str,
                                     schema_name: str | None = None) -> bool:
    """Drop every index that includes the column, in one change."""
    return get_db_strategy(cn).drop_indexes_on_column_if_exists(cn, table_name, column_name, schema_name)


# == views


def view_exists(cn: 'ConnectionWrapper', view_name: str, schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).view_exists(cn, view_name, schema_name)


def get_view_names(cn: 'ConnectionWrapper', pattern: str | None = None,
                   schema_name: str | None = None) -> list[str]:
    return get_db_strategy(cn).get_view_names(cn, pattern, schema_name)


def get_view(cn: 'ConnectionWrapper', view_name: str, schema_name: str | None = None) -> 'View | None':
    return get_db_strategy(cn).get_view(cn, view_name, schema_name)


def get_views(cn: 'ConnectionWrapper', pattern: str | None = None,
              schema_name: str | None = None) -> list['View']:
    return get_db_strategy(cn).get_views(cn, pattern, schema_name)


def create_view_if_not_exists(cn: 'ConnectionWrapper', view: 'View') -> bool:
    return get_db_strategy(cn).create_view_if_not_exists(cn, view)


def drop_view_if_exists(cn: 'ConnectionWrapper', view_name: str, schema_name: str | None = None) -> bool:
    return get_db_strategy(cn).drop_view_if_exists(cn, view_name, schema_name)


def rename_view_if_exists(cn: 'ConnectionWrapper', view_name: str, new_name: str,
                          schema_name: str | None = None) -> bool:
    """Rename a view.

    This operation varies by database type:
    - PostgreSQL: ALTER VIEW ... RENAME TO
    - MySQL: RENAME TABLE
    - SQLite, SQL Server: drop and create again from the stored definition
    """
    return get_db_strategy(cn).rename_view_if_exists(cn, view_name, new_name, schema_name)


# == schemas


def schema_exists(cn: 'ConnectionWrapper', schema_name: str) -> bool:
    """Check whether a schema exists.

    This operation varies by database type:
    - PostgreSQL, SQL Server: catalog schemas
    - SQLite, MySQL: DialectUnsupportedOperation
    """
    return get_db_strategy(cn).schema_exists(cn, schema_name)


def get_schema_names(cn: 'ConnectionWrapper') -> list[str]:
    return get_db_strategy(cn).get_schema_names(cn)


def create_schema_if_not_exists(cn: 'ConnectionWrapper', schema_name: str) -> bool:
    return get_db_strategy(cn).create_schema_if_not_exists(cn, schema_name)


def drop_schema_if_exists(cn: 'ConnectionWrapper', schema_name: str) -> bool:
    return get_db_strategy(cn).drop_schema_if_exists(cn, schema_name)


__all__ = [
    'table_exists',
    'get_table_names',
    'get_table',
    'get_tables',
    'create_table_if_not_exists',
    'create_tables_if_not_exist',
    'drop_table_if_exists',
    'rename_table_if_exists',
    'truncate_table_if_exists',
    'ensure_table',
    'column_exists',
    'get_columns',
    'get_column',
    'create_column_if_not_exists',
    'drop_column_if_exists',
    'rename_column_if_exists',
    'primary_key_exists',
    'get_primary_key',
    'create_primary_key_if_not_exists',
    'drop_primary_key_if_exists',
    'foreign_key_exists',
    'get_foreign_key',
    'get_foreign_keys',
    'create_foreign_key_if_not_exists',
    'drop_foreign_key_if_exists',
    'foreign_key_exists_on_column',
    'get_foreign_key_on_column',
    'drop_foreign_key_on_column_if_exists',
    'unique_constraint_exists',
    'get_unique_constraint',
    'get_unique_constraints',
    'create_unique_constraint_if_not_exists',
    'drop_unique_constraint_if_exists',
    'unique_constraint_exists_on_column',
    'get_unique_constraint_on_column',
    'drop_unique_constraint_on_column_if_exists',
    'check_constraint_exists',
    'get_check_constraint',
    'get_check_constraints',
    'create_check_constraint_if_not_exists',
    'drop_check_constraint_if_exists',
    'check_constraint_exists_on_column',
    'get_check_constraint_on_column',
    'drop_check_constraint_on_column_if_exists',
    'default_constraint_exists',
    'get_default_constraint',
    'get_default_constraints',
    'create_default_constraint_if_not_exists',
    'drop_default_constraint_if_exists',
    'index_exists',
    'get_index',
    'get_indexes',
    'create_index_if_not_exists',
    'drop_index_if_exists',
    'index_exists_on_column',
    'get_indexes_on_column',
    'drop_indexes_on_column_if_exists',
    'view_exists',
    'get_view_names',
    'get_view',
    'get_views',
    'create_view_if_not_exists',
    'drop_view_if_exists',
    'rename_view_if_exists',
    'schema_exists',
    'get_schema_names',
    'create_schema_if_not_exists',
    'drop_schema_if_exists',
]
