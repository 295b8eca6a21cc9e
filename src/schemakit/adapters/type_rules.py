"""
Built-in conversion rules for SQLite, PostgreSQL, SQL Server and MySQL.

Round trips that widen (documented, everything else maps back unchanged):

- unspecified string length becomes the default length (255)
- unspecified decimal precision/scale becomes (16, 4)
- ``datetimetz`` becomes ``datetime`` on SQLite
- ``timedelta`` becomes ``time`` everywhere except PostgreSQL
- ``json``, ``object`` and arrays become max-length ``str`` on SQLite and
  SQL Server; ``object`` and arrays become ``json`` on MySQL
- fixed-length strings of 36 characters come back as ``uuid``
- byte lengths are dropped on SQLite
- auto-increment ``int16``/``int64`` come back as ``int`` on SQLite (INTEGER PRIMARY KEY)
"""
import dataclasses

from schemakit.adapters.type_mapping import TO_PYTHON, TO_SQL, ConversionRule
from schemakit.adapters.type_mapping import TypeConverterRegistry, create_python_rule
from schemakit.adapters.type_mapping import create_sql_rule
from schemakit.types import DEFAULT_DECIMAL_PRECISION, DEFAULT_DECIMAL_SCALE
from schemakit.types import DEFAULT_STRING_LENGTH, GUID_STRING_LENGTH, INTEGER_TYPES
from schemakit.types import MAX_LENGTH, SqlTypeDescriptor, TypeDescriptor
from schemakit.types import render_sql_type


def _precision(td: TypeDescriptor) -> int:
    return td.precision if td.precision is not None else DEFAULT_DECIMAL_PRECISION


def _scale(td: TypeDescriptor) -> int:
    return td.scale if td.scale is not None else DEFAULT_DECIMAL_SCALE


def _length(td: TypeDescriptor) -> int:
    return td.length if td.length is not None else DEFAULT_STRING_LENGTH


def _is_max(td: TypeDescriptor) -> bool:
    return td.length == MAX_LENGTH


def _fixed(td: TypeDescriptor) -> bool:
    return bool(td.is_fixed_length)


def _guid_length(st: SqlTypeDescriptor) -> bool:
    return st.length == GUID_STRING_LENGTH


def _const(sql: str):
    def produce(td: TypeDescriptor) -> SqlTypeDescriptor:
        return render_sql_type(sql)
    return produce


def _host(name: str, **facets):
    def produce(st: SqlTypeDescriptor) -> TypeDescriptor:
        return TypeDescriptor(name, **facets)
    return produce


def _decimal(st: SqlTypeDescriptor) -> TypeDescriptor:
    return TypeDescriptor(
        'decimal',
        precision=st.precision if st.precision is not None else DEFAULT_DECIMAL_PRECISION,
        scale=st.scale if st.scale is not None else DEFAULT_DECIMAL_SCALE)


def _string(unicode: bool = False, fixed: bool = False, max_when_missing: bool = False):
    def produce(st: SqlTypeDescriptor) -> TypeDescriptor:
        length = st.length
        if length is None:
            length = MAX_LENGTH if max_when_missing else DEFAULT_STRING_LENGTH
        return TypeDescriptor('str', length=length,
                              is_unicode=True if unicode else None,
                              is_fixed_length=True if fixed else None)
    return produce


def _bytes(fixed: bool = False):
    def produce(st: SqlTypeDescriptor) -> TypeDescriptor:
        length = None if st.length in {None, MAX_LENGTH} else st.length
        return TypeDescriptor('bytes', length=length, is_fixed_length=True if fixed else None)
    return produce


def _array_to_sql(registry: TypeConverterRegistry, dialect: str) -> ConversionRule:
    """Arrays of a convertible element type become ``element[]``."""
    def produce(td: TypeDescriptor) -> SqlTypeDescriptor | None:
        element = registry.to_sql(dialect, td.element)
        if element is None:
            return None
        return dataclasses.replace(element, sql_type_name=f'{element.sql_type_name}[]', is_array=True)
    return ConversionRule(lambda td: td.is_array, produce, 'array')


def _array_to_python(registry: TypeConverterRegistry, dialect: str) -> ConversionRule:
    def produce(st: SqlTypeDescriptor) -> TypeDescriptor | None:
        element = registry.to_python(dialect, dataclasses.replace(
            st, sql_type_name=st.sql_type_name.removesuffix('[]'), is_array=False))
        if element is None:
            return None
        return dataclasses.replace(element, is_array=True)
    return ConversionRule(lambda st: st.is_array, produce, 'array')


def sqlite_rules(registry: TypeConverterRegistry) -> tuple[list, list]:
    """SQLite declared types.

    SQLite stores any declared type name; the names below are the ones the
    type affinity rules and most tools agree on.
    """
    to_sql = [
        create_sql_rule(INTEGER_TYPES, _const('integer'),
                        where=lambda td: td.is_auto_increment, name='autoincrement'),
        ConversionRule(lambda td: td.is_array, _const('text'), 'array'),
        create_sql_rule('bool', _const('boolean')),
        create_sql_rule('int16', _const('smallint')),
        create_sql_rule('int', _const('integer')),
        create_sql_rule('int64', _const('bigint')),
        create_sql_rule('float32', _const('real')),
        create_sql_rule('float', _const('double')),
        create_sql_rule('decimal', lambda td: render_sql_type(
            'numeric', precision=_precision(td), scale=_scale(td))),
        create_sql_rule('str', lambda td: render_sql_type(
            'nchar' if td.is_unicode else 'char', length=_length(td)),
            where=lambda td: _fixed(td) and not _is_max(td), name='fixed str'),
        create_sql_rule('str', _const('text'), where=_is_max, name='max str'),
        create_sql_rule('str', lambda td: render_sql_type(
            'nvarchar' if td.is_unicode else 'varchar', length=_length(td))),
        create_sql_rule('bytes', _const('blob')),
        create_sql_rule('date', _const('date')),
        create_sql_rule({'datetime', 'datetimetz'}, _const('datetime')),
        create_sql_rule({'time', 'timedelta'}, _const('time')),
        create_sql_rule('uuid', lambda td: render_sql_type('varchar', length=GUID_STRING_LENGTH)),
        create_sql_rule({'json', 'object'}, _const('text')),
        ]
    to_python = [
        create_python_rule({'boolean', 'bool'}, _host('bool')),
        create_python_rule({'tinyint', 'smallint', 'int2'}, _host('int16')),
        create_python_rule({'int', 'integer', 'mediumint', 'int4'}, _host('int')),
        create_python_rule({'bigint', 'int8', 'unsigned big int'}, _host('int64')),
        create_python_rule({'real', 'float4'}, _host('float32')),
        create_python_rule({'double', 'double precision', 'float', 'float8'}, _host('float')),
        create_python_rule({'numeric', 'decimal'}, _decimal),
        create_python_rule({'char', 'varchar', 'nchar', 'nvarchar'}, _host('uuid'),
                           where=_guid_length, name='guid'),
        create_python_rule({'char', 'character'}, _string(fixed=True)),
        create_python_rule('nchar', _string(unicode=True, fixed=True)),
        create_python_rule({'varchar', 'varying character'}, _string()),
        create_python_rule('nvarchar', _string(unicode=True)),
        create_python_rule({'text', 'clob'}, _host('str', length=MAX_LENGTH)),
        create_python_rule('blob', _bytes()),
        create_python_rule('date', _host('date')),
        create_python_rule({'datetime', 'timestamp'}, _host('datetime')),
        create_python_rule('time', _host('time')),
        create_python_rule('json', _host('json')),
        ]
    return to_sql, to_python


def postgres_rules(registry: TypeConverterRegistry) -> tuple[list, list]:
    """PostgreSQL types as spelled by ``format_type``.

    Identity columns keep their integer type; the identity clause is added
    by the column definition.
    """
    to_sql = [
        _array_to_sql(registry, 'postgresql'),
        create_sql_rule('bool', _const('boolean')),
        create_sql_rule('int16', _const('smallint')),
        create_sql_rule('int', _const('integer')),
        create_sql_rule('int64', _const('bigint')),
        create_sql_rule('float32', _const('real')),
        create_sql_rule('float', _const('double precision')),
        create_sql_rule('decimal', lambda td: render_sql_type(
            'numeric', precision=_precision(td), scale=_scale(td))),
        create_sql_rule('str', lambda td: render_sql_type('character', length=_length(td)),
                        where=lambda td: _fixed(td) and not _is_max(td), name='fixed str'),
        create_sql_rule('str', _const('text'), where=_is_max, name='max str'),
        create_sql_rule('str', lambda td: render_sql_type('character varying', length=_length(td))),
        create_sql_rule('bytes', _const('bytea')),
        create_sql_rule('date', _const('date')),
        create_sql_rule('datetime', _const('timestamp without time zone')),
        create_sql_rule('datetimetz', _const('timestamp with time zone')),
        create_sql_rule('time', _const('time without time zone')),
        create_sql_rule('timedelta', _const('interval')),
        create_sql_rule('uuid', _const('uuid')),
        create_sql_rule('json', _const('jsonb')),
        create_sql_rule('object', _const('text')),
        ]
    to_python = [
        _array_to_python(registry, 'postgresql'),
        create_python_rule({'boolean', 'bool'}, _host('bool')),
        create_python_rule({'smallint', 'int2', 'smallserial'}, _host('int16')),
        create_python_rule({'integer', 'int', 'int4', 'serial'}, _host('int')),
        create_python_rule({'bigint', 'int8', 'bigserial'}, _host('int64')),
        create_python_rule({'real', 'float4'}, _host('float32')),
        create_python_rule({'double precision', 'float8'}, _host('float')),
        create_python_rule({'numeric', 'decimal'}, _decimal),
        create_python_rule('money', _host('decimal', precision=19, scale=2)),
        create_python_rule({'character', 'char', 'bpchar'}, _host('uuid'),
                           where=_guid_length, name='guid'),
        create_python_rule({'character', 'char', 'bpchar'}, _string(fixed=True)),
        create_python_rule({'character varying', 'varchar'}, _string(max_when_missing=True)),
        create_python_rule({'text', 'citext', 'xml', 'name'}, _host('str', length=MAX_LENGTH)),
        create_python_rule('bytea', _bytes()),
        create_python_rule('date', _host('date')),
        create_python_rule({'timestamp', 'timestamp without time zone'}, _host('datetime')),
        create_python_rule({'timestamptz', 'timestamp with time zone'}, _host('datetimetz')),
        create_python_rule({'time', 'time without time zone', 'timetz', 'time with time zone'},
                           _host('time')),
        create_python_rule('interval', _host('timedelta')),
        create_python_rule('uuid', _host('uuid')),
        create_python_rule({'json', 'jsonb'}, _host('json')),
        ]
    return to_sql, to_python


def sqlserver_rules(registry: TypeConverterRegistry) -> tuple[list, list]:
    """SQL Server types as reported by ``sys.types``."""
    to_sql = [
        ConversionRule(lambda td: td.is_array, lambda td: render_sql_type(
            'nvarchar', length=MAX_LENGTH, max_token='max'), 'array'),
        create_sql_rule('bool', _const('bit')),
        create_sql_rule('int16', _const('smallint')),
        create_sql_rule('int', _const('int')),
        create_sql_rule('int64', _const('bigint')),
        create_sql_rule('float32', _const('real')),
        create_sql_rule('float', _const('float')),
        create_sql_rule('decimal', lambda td: render_sql_type(
            'decimal', precision=_precision(td), scale=_scale(td))),
        create_sql_rule('str', lambda td: render_sql_type(
            'nchar' if td.is_unicode else 'char', length=_length(td)),
            where=lambda td: _fixed(td) and not _is_max(td), name='fixed str'),
        create_sql_rule('str', lambda td: render_sql_type(
            'nvarchar' if td.is_unicode else 'varchar', length=_length(td), max_token='max')),
        create_sql_rule('bytes', lambda td: render_sql_type('binary', length=td.length),
                        where=lambda td: _fixed(td) and td.length not in {None, MAX_LENGTH},
                        name='fixed bytes'),
        create_sql_rule('bytes', lambda td: render_sql_type(
            'varbinary', length=td.length if td.length is not None else MAX_LENGTH,
            max_token='max')),
        create_sql_rule('date', _const('date')),
        create_sql_rule('datetime', _const('datetime2')),
        create_sql_rule('datetimetz', _const('datetimeoffset')),
        create_sql_rule({'time', 'timedelta'}, _const('time')),
        create_sql_rule('uuid', _const('uniqueidentifier')),
        create_sql_rule({'json', 'object'}, lambda td: render_sql_type(
            'nvarchar', length=MAX_LENGTH, max_token='max')),
        ]
    to_python = [
        create_python_rule('bit', _host('bool')),
        create_python_rule({'tinyint', 'smallint'}, _host('int16')),
        create_python_rule('int', _host('int')),
        create_python_rule('bigint', _host('int64')),
        create_python_rule('real', _host('float32')),
        create_python_rule('float', _host('float')),
        create_python_rule({'decimal', 'numeric'}, _decimal),
        create_python_rule('money', _host('decimal', precision=19, scale=4)),
        create_python_rule('smallmoney', _host('decimal', precision=10, scale=4)),
        create_python_rule('char', _string(fixed=True)),
        create_python_rule('nchar', _string(unicode=True, fixed=True)),
        create_python_rule('varchar', _string()),
        create_python_rule('nvarchar', _string(unicode=True)),
        create_python_rule({'text', 'xml'}, _host('str', length=MAX_LENGTH)),
        create_python_rule('ntext', _host('str', length=MAX_LENGTH, is_unicode=True)),
        create_python_rule('binary', _bytes(fixed=True)),
        create_python_rule({'varbinary', 'image', 'rowversion', 'timestamp'}, _bytes()),
        create_python_rule('date', _host('date')),
        create_python_rule({'datetime', 'datetime2', 'smalldatetime'}, _host('datetime')),
        create_python_rule('datetimeoffset', _host('datetimetz')),
        create_python_rule('time', _host('time')),
        create_python_rule('uniqueidentifier', _host('uuid')),
        ]
    return to_sql, to_python


def mysql_rules(registry: TypeConverterRegistry) -> tuple[list, list]:
    """MySQL/MariaDB types as reported by ``information_schema.columns``."""
    to_sql = [
        ConversionRule(lambda td: td.is_array, _const('json'), 'array'),
        create_sql_rule('bool', lambda td: render_sql_type('tinyint', length=1)),
        create_sql_rule('int16', _const('smallint')),
        create_sql_rule('int', _const('int')),
        create_sql_rule('int64', _const('bigint')),
        create_sql_rule('float32', _const('float')),
        create_sql_rule('float', _const('double')),
        create_sql_rule('decimal', lambda td: render_sql_type(
            'decimal', precision=_precision(td), scale=_scale(td))),
        create_sql_rule('str', lambda td: render_sql_type('char', length=_length(td)),
                        where=lambda td: _fixed(td) and not _is_max(td), name='fixed str'),
        create_sql_rule('str', _const('longtext'), where=_is_max, name='max str'),
        create_sql_rule('str', lambda td: render_sql_type('varchar', length=_length(td))),
        create_sql_rule('bytes', lambda td: render_sql_type('binary', length=td.length),
                        where=lambda td: _fixed(td) and td.length not in {None, MAX_LENGTH},
                        name='fixed bytes'),
        create_sql_rule('bytes', lambda td: render_sql_type('varbinary', length=td.length),
                        where=lambda td: td.length not in {None, MAX_LENGTH}, name='sized bytes'),
        create_sql_rule('bytes', _const('longblob')),
        create_sql_rule('date', _const('date')),
        create_sql_rule('datetime', _const('datetime')),
        create_sql_rule('datetimetz', _const('timestamp')),
        create_sql_rule({'time', 'timedelta'}, _const('time')),
        create_sql_rule('uuid', lambda td: render_sql_type('char', length=GUID_STRING_LENGTH)),
        create_sql_rule({'json', 'object'}, _const('json')),
        ]
    to_python = [
        create_python_rule('tinyint', _host('bool'), where=lambda st: st.length == 1, name='tinyint(1)'),
        create_python_rule({'bool', 'boolean'}, _host('bool')),
        create_python_rule({'tinyint', 'smallint', 'year'}, _host('int16')),
        create_python_rule({'mediumint', 'int', 'integer'}, _host('int')),
        create_python_rule('bigint', _host('int64')),
        create_python_rule('float', _host('float32')),
        create_python_rule({'double', 'real', 'double precision'}, _host('float')),
        create_python_rule({'decimal', 'numeric'}, _decimal),
        create_python_rule('char', _host('uuid'), where=_guid_length, name='guid'),
        create_python_rule('char', _string(fixed=True)),
        create_python_rule('varchar', _string()),
        create_python_rule({'tinytext', 'text', 'mediumtext', 'longtext'},
                           _host('str', length=MAX_LENGTH)),
        create_python_rule('json', _host('json')),
        create_python_rule('binary', _bytes(fixed=True)),
        create_python_rule('varbinary', _bytes()),
        create_python_rule({'tinyblob', 'blob', 'mediumblob', 'longblob'}, _bytes()),
        create_python_rule('date', _host('date')),
        create_python_rule('datetime', _host('datetime')),
        create_python_rule('timestamp', _host('datetimetz')),
        create_python_rule('time', _host('time')),
        ]
    return to_sql, to_python


BUILTIN_RULES = {
    'sqlite': sqlite_rules,
    'postgresql': postgres_rules,
    'mssql': sqlserver_rules,
    'mysql': mysql_rules,
    'mariadb': mysql_rules,
    }


def register_builtin_rules(registry: TypeConverterRegistry) -> None:
    """Append the built-in rules of every dialect to a registry."""
    for dialect, factory in BUILTIN_RULES.items():
        to_sql, to_python = factory(registry)
        for rule in to_sql:
            registry.register(dialect, TO_SQL, rule)
        for rule in to_python:
            registry.register(dialect, TO_PYTHON, rule)
