"""
Provider-agnostic schema management for PostgreSQL, SQLite, SQL Server and MySQL.

Schema operations can be called either as:
- Module functions: schemakit.table_exists(cn, 'users')
- Engine methods: SchemaEngine(options).table_exists('users')

The module functions use the built-in type rules; an engine carries its own
TypeConverterRegistry, authorization hook and cancellation support.
"""
__version__ = '0.1.0'

from schemakit.adapters.type_mapping import ConversionRule, TypeConverterRegistry
from schemakit.cancellation import CancellationToken
from schemakit.config.resolver_rules import ResolverRules
from schemakit.config.type_mapping import TypeMappingConfig
from schemakit.connection import ConnectionWrapper, connect
from schemakit.engine import AsyncSchemaEngine, SchemaEngine
from schemakit.exceptions import AmbiguousConnectionString, ConnectionFailure
from schemakit.exceptions import DatabaseError, DbConnectionError, DDLExecutionError
from schemakit.exceptions import DialectUnsupportedOperation, NotAuthorized
from schemakit.exceptions import OperationCancelled, RebuildError
from schemakit.exceptions import SchemaValidationError, UnsupportedType
from schemakit.exceptions import ValidationError
from schemakit.hooks import OPERATIONS, OperationContext, generate_id
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import DefaultExpression, ForeignKeyAction, ForeignKeyConstraint
from schemakit.models import Index, OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint, View
from schemakit.options import DatabaseOptions
from schemakit.resolver import ConnectionResolver, ResolvedConnection
from schemakit.resolver import resolve_connection
from schemakit.schema import *
from schemakit.strategy import EnsureResult, get_db_strategy, get_strategy
from schemakit.types import SqlTypeDescriptor, TypeDescriptor
