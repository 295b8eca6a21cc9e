"""
Collaborator hooks: authorization and id generation.

schemakit does not decide who may do what. Before dispatching an operation
the engine asks an Authorizer, passing an OperationContext with the caller
identity and the operation name. Operation names are published in
OPERATIONS so a policy can be keyed on them.
"""
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from schemakit.exceptions import NotAuthorized

logger = logging.getLogger(__name__)

# engine method -> operation name
OPERATIONS = {
    'get_schema_names': 'schemas/list',
    'schema_exists': 'schemas/exists',
    'create_schema_if_not_exists': 'schemas/create',
    'drop_schema_if_exists': 'schemas/drop',
    'get_view_names': 'views/list',
    'get_views': 'views/list',
    'get_view': 'views/get',
    'view_exists': 'views/exists',
    'create_view_if_not_exists': 'views/create',
    'drop_view_if_exists': 'views/drop',
    'rename_view_if_exists': 'views/rename',
    'get_table_names': 'tables/list',
    'get_tables': 'tables/list',
    'get_table': 'tables/get',
    'table_exists': 'tables/exists',
    'create_table_if_not_exists': 'tables/create',
    'create_tables_if_not_exist': 'tables/create',
    'ensure_table': 'tables/update',
    'drop_table_if_exists': 'tables/drop',
    'rename_table_if_exists': 'tables/rename',
    'truncate_table_if_exists': 'tables/truncate',
    'get_columns': 'columns/list',
    'get_column': 'columns/get',
    'column_exists': 'columns/exists',
    'create_column_if_not_exists': 'columns/add',
    'rename_column_if_exists': 'columns/update',
    'drop_column_if_exists': 'columns/drop',
    'get_indexes': 'indexes/list',
    'get_index': 'indexes/get',
    'index_exists': 'indexes/exists',
    'create_index_if_not_exists': 'indexes/create',
    'drop_index_if_exists': 'indexes/drop',
    'get_indexes_on_column': 'indexes/list',
    'index_exists_on_column': 'indexes/exists',
    'drop_indexes_on_column_if_exists': 'indexes/drop',
    'get_primary_key': 'constraints/primarykey/get',
    'primary_key_exists': 'constraints/primarykey/exists',
    'create_primary_key_if_not_exists': 'constraints/primarykey/create',
    'drop_primary_key_if_exists': 'constraints/primarykey/drop',
    'get_foreign_keys': 'constraints/foreignkeys/list',
    'get_foreign_key': 'constraints/foreignkeys/get',
    'foreign_key_exists': 'constraints/foreignkeys/exists',
    'create_foreign_key_if_not_exists': 'constraints/foreignkeys/create',
    'drop_foreign_key_if_exists': 'constraints/foreignkeys/drop',
    'get_foreign_key_on_column': 'constraints/foreignkeys/get',
    'foreign_key_exists_on_column': 'constraints/foreignkeys/exists',
    'drop_foreign_key_on_column_if_exists': 'constraints/foreignkeys/drop',
    'get_check_constraints': 'constraints/checks/list',
    'get_check_constraint': 'constraints/checks/get',
    'check_constraint_exists': 'constraints/checks/exists',
    'create_check_constraint_if_not_exists': 'constraints/checks/create',
    'drop_check_constraint_if_exists': 'constraints/checks/drop',
    'get_check_constraint_on_column': 'constraints/checks/get',
    'check_constraint_exists_on_column': 'constraints/checks/exists',
    'drop_check_constraint_on_column_if_exists': 'constraints/checks/drop',
    'get_unique_constraints': 'constraints/uniques/list',
    'get_unique_constraint': 'constraints/uniques/get',
    'unique_constraint_exists': 'constraints/uniques/exists',
    'create_unique_constraint_if_not_exists': 'constraints/uniques/create',
    'drop_unique_constraint_if_exists': 'constraints/uniques/drop',
    'get_unique_constraint_on_column': 'constraints/uniques/get',
    'unique_constraint_exists_on_column': 'constraints/uniques/exists',
    'drop_unique_constraint_on_column_if_exists': 'constraints/uniques/drop',
    'get_default_constraints': 'constraints/defaults/list',
    'get_default_constraint': 'constraints/defaults/get',
    'default_constraint_exists': 'constraints/defaults/exists',
    'create_default_constraint_if_not_exists': 'constraints/defaults/create',
    'drop_default_constraint_if_exists': 'constraints/defaults/drop',
    }

# operations of the datasource layer built on top of the engine
DATASOURCE_OPERATIONS = (
    'datasources/list',
    'datasources/get',
    'datasources/add',
    'datasources/update',
    'datasources/remove',
    'datasources/test',
    'datatypes/list',
    )


@dataclass(frozen=True)
class OperationContext:
    """What is being attempted and by whom."""
    identity: Any
    operation: str
    details: dict[str, Any] = field(default_factory=dict)


Authorizer = Callable[[OperationContext], bool]


def allow_all(context: OperationContext) -> bool:
    return True


def authorize(authorizer: Authorizer | None, context: OperationContext) -> None:
    """Raise NotAuthorized unless the authorizer allows the operation."""
    if authorizer is None:
        return
    if not authorizer(context):
        logger.warning(f'Denied {context.operation} for {context.identity!r}')
        raise NotAuthorized(context.operation, context.identity)


class IdFactory(Protocol):
    """Names newly registered data sources."""

    def generate_id(self, request: Any = None) -> str: ...


class UuidIdFactory:
    """Default id factory: random uuid4 hex strings."""

    def generate_id(self, request: Any = None) -> str:
        return uuid.uuid4().hex


def generate_id(request: Any = None, factory: IdFactory | None = None) -> str:
    """Generate an id for a request with the given (or default) factory."""
    return (factory or UuidIdFactory()).generate_id(request)
