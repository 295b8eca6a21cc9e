"""
Tests for strategy lookup, dialect aliases and server version caching.
"""
import pytest
from schemakit.adapters.type_mapping import TypeConverterRegistry
from schemakit.strategy import MariaDBStrategy, MySQLStrategy, PostgresStrategy, SQLiteStrategy
from schemakit.strategy import SQLServerStrategy, get_available_dialects
from schemakit.strategy import get_db_strategy, get_strategy, get_strategy_class
from schemakit.strategy import is_supported_dialect
from schemakit.strategy.base import parse_version


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('postgresql', PostgresStrategy),
    ('postgres', PostgresStrategy),
    ('sqlite', SQLiteStrategy),
    ('mssql', SQLServerStrategy),
    ('sqlserver', SQLServerStrategy),
    ('mysql', MySQLStrategy),
    ('MariaDB', MariaDBStrategy),
])
def test_dialect_names_and_aliases(dialect, expected):
    assert isinstance(get_strategy(dialect), expected)
    assert get_strategy_class(dialect) is expected
    assert is_supported_dialect(dialect)


def test_unknown_dialect():
    assert not is_supported_dialect('oracle')
    with pytest.raises(ValueError, match='Unsupported dialect: oracle'):
        get_strategy('oracle')


def test_available_dialects():
    assert set(get_available_dialects()) == {'postgresql', 'sqlite', 'mssql', 'mysql', 'mariadb'}


def test_shared_instance_without_registry():
    assert get_strategy('postgresql') is get_strategy('postgres')


def test_custom_registry_gets_fresh_instance():
    registry = TypeConverterRegistry.with_builtin_rules()
    strategy = get_strategy('postgresql', registry)
    assert strategy is not get_strategy('postgresql')
    assert strategy.registry is registry


def test_strategy_from_connection(recording_connection):
    assert isinstance(get_db_strategy(recording_connection('mssql')), SQLServerStrategy)


def test_strategy_from_driver_connection_type(create_simple_mock_connection):
    assert isinstance(get_db_strategy(create_simple_mock_connection('mysql')), MySQLStrategy)


@pytest.mark.parametrize(('banner', 'expected'), [
    ('16.2 (Debian 16.2-1.pgdg120+2)', (16, 2)),
    ('8.0.36', (8, 0, 36)),
    ('10.11.6-MariaDB-0+deb12u1', (10, 11, 6)),
    ('3.45.1', (3, 45, 1)),
    ('unknown', ()),
])
def test_parse_version(banner, expected):
    assert parse_version(banner) == expected


class TestServerVersion:

    def test_cached_per_connection(self, mocker, recording_connection):
        strategy = PostgresStrategy()
        select = mocker.patch.object(strategy, '_select_column_raw', return_value=['16.2 (Debian)'])
        cn = recording_connection()
        assert strategy.get_server_version(cn) == (16, 2)
        assert strategy.get_server_version(cn) == (16, 2)
        select.assert_called_once_with(cn, 'show server_version')

    def test_bypass_cache(self, mocker, recording_connection):
        strategy = PostgresStrategy()
        select = mocker.patch.object(strategy, '_select_column_raw', return_value=['15.1'])
        cn = recording_connection()
        strategy.get_server_version(cn)
        strategy.get_server_version(cn, bypass_cache=True)
        assert select.call_count == 2

    def test_empty_result(self, mocker, recording_connection):
        strategy = MySQLStrategy()
        mocker.patch.object(strategy, '_select_column_raw', return_value=[])
        assert strategy.get_server_version(recording_connection('mysql')) == ()


def test_mariadb_server_behind_mysql_url(mocker):
    engine = mocker.Mock(spec=['dialect'])
    engine.dialect = mocker.Mock(spec=['name', 'is_mariadb'])
    engine.dialect.name = 'mysql'
    engine.dialect.is_mariadb = True
    assert isinstance(get_db_strategy(engine), MariaDBStrategy)

    engine.dialect.is_mariadb = False
    assert type(get_db_strategy(engine)) is MySQLStrategy
