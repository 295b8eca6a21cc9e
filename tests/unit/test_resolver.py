"""
Tests for choosing a client library from a connection string.
"""
import pytest
from schemakit.config.resolver_rules import ResolverRules
from schemakit.exceptions import AmbiguousConnectionString
from schemakit.resolver import ConnectionResolver, parse_connection_string
from schemakit.resolver import resolve_connection, split_connection_string
from schemakit.resolver import strip_provider


class TestParsing:
    """Connection string splitting and quoting"""

    def test_plain_pairs(self):
        params = parse_connection_string('Server=db; Initial  Catalog=app;User Id=sa;')
        assert params == {'server': 'db', 'initial catalog': 'app', 'user id': 'sa'}

    def test_quoted_values_keep_semicolons(self):
        params = parse_connection_string("Server=db;Password='a;b';Database=\"x y\"")
        assert params['password'] == 'a;b'
        assert params['database'] == 'x y'

    def test_braced_value_with_doubled_closing(self):
        assert parse_connection_string('Pwd={a}}b};Server=db')['pwd'] == 'a}b'

    def test_last_value_wins(self):
        assert parse_connection_string('Server=a;Server=b')['server'] == 'b'

    def test_segments_keep_raw_text(self):
        assert split_connection_string('Server=db') == [('Server=db', 'server', 'db')]

    @pytest.mark.parametrize('text', [
        'Server=db;Password={abc',
        'Server=db;novalue',
        "Password='a' b",
    ])
    def test_malformed(self, text):
        with pytest.raises(ValueError):
            parse_connection_string(text)

    def test_strip_provider(self):
        cleaned, provider = strip_provider('Provider=MySqlConnector;Server=db;Database=app')
        assert provider == 'MySqlConnector'
        assert cleaned == 'Server=db;Database=app'

    def test_strip_provider_absent(self):
        assert strip_provider('Server=db') == ('Server=db', None)


class TestResolve:
    """Driver selection order: provider token, heuristics, validators"""

    def test_first_accepting_candidate_wins(self):
        resolved = resolve_connection('MySql', 'Server=db;Database=app;Uid=root;Pwd=x')
        assert (resolved.family, resolved.driver) == ('mysql', 'pymysql')

    def test_provider_token_forces_driver(self):
        resolved = resolve_connection('MySql', 'Provider=MySqlConnector;Server=db;Database=app;UseUsageAdvisor=true')
        assert resolved.driver == 'pymysql'
        assert 'provider' not in resolved.params
        assert 'Provider' not in resolved.connection_string

    def test_provider_of_other_family_is_ignored(self):
        resolved = resolve_connection('MySql', 'Provider=npgsql;Server=db;Database=app')
        assert resolved.driver == 'pymysql'

    def test_heuristic_keyword(self):
        resolved = resolve_connection('MySql', 'Server=db;Database=app;UseUsageAdvisor=true')
        assert resolved.driver == 'mysqlconnector'

    def test_heuristic_key_value(self):
        resolved = resolve_connection(
            'SqlServer', 'Server=db;Database=app;Authentication=Active Directory Integrated')
        assert resolved.driver == 'pyodbc'

    def test_tds_version_selects_pymssql(self):
        resolved = resolve_connection('mssql', 'Server=db;Database=app;TDS_Version=7.4')
        assert resolved.driver == 'pymssql'

    @pytest.mark.parametrize(('keyword', 'driver'), [
        ('Enclave Attestation Url=https://attest.example', 'pyodbc'),
        ('Attestation Protocol=HGS', 'pyodbc'),
        ('User Instance=True', 'pymssql'),
        ('Context Connection=true', 'pymssql'),
        ('Asynchronous Processing=TRUE', 'pymssql'),
    ])
    def test_sqlserver_client_hints(self, keyword, driver):
        resolved = resolve_connection('SqlServer', f'Server=db;Database=app;{keyword}')
        assert resolved.driver == driver

    def test_sqlcipher_for_encrypted_sqlite(self):
        resolved = resolve_connection('Microsoft.Data.Sqlite', 'Data Source=app.db;Password=secret')
        assert (resolved.family, resolved.driver) == ('sqlite', 'pysqlcipher')

    def test_plain_sqlite(self):
        assert resolve_connection('sqlite', 'Data Source=app.db').driver == 'pysqlite'

    def test_candidate_order_from_rules(self):
        rules = ResolverRules.default().with_candidates('mysql', ['mysqlconnector', 'pymysql'])
        resolver = ConnectionResolver(rules)
        assert resolver.resolve('mysql', 'Server=db;Database=app').driver == 'mysqlconnector'

    @pytest.mark.parametrize(('provider_key', 'connection_string', 'reason'), [
        ('oracle', 'Server=db', 'unknown provider family'),
        ('', 'Server=db', 'unknown provider family'),
        ('MySql', '  ', 'empty'),
        ('MySql', 'Server=db;Bogus=1', 'no mysql client library'),
        ('MySql', 'Server=db;Password={x', 'Unterminated'),
    ])
    def test_ambiguous(self, provider_key, connection_string, reason):
        with pytest.raises(AmbiguousConnectionString, match=reason) as exc_info:
            resolve_connection(provider_key, connection_string)
        assert exc_info.value.provider_key == provider_key


class TestToOptions:
    """Translating a resolved connection into DatabaseOptions"""

    def test_postgres(self):
        resolved = resolve_connection(
            'npgsql', 'Host=db;Port=5433;Database=app;Username=u;Password=p;Timeout=15')
        options = resolved.to_options()
        assert options.drivername == 'postgresql'
        assert options.driver == 'psycopg'
        assert (options.hostname, options.port) == ('db', 5433)
        assert (options.database, options.username, options.password) == ('app', 'u', 'p')
        assert options.timeout == 15

    def test_sqlserver_port_after_comma(self):
        resolved = resolve_connection('SqlServer', 'Server=tcp:db,1433;Database=app;User Id=sa;Password=x')
        options = resolved.to_options()
        assert (options.hostname, options.port) == ('db', 1433)
        assert options.driver == 'pyodbc'
        assert options.query == {}

    def test_odbc_string_passed_through(self):
        text = 'Driver={ODBC Driver 18 for SQL Server};Server=db;Database=app'
        resolved = resolve_connection('SqlServer', text)
        options = resolved.to_options()
        assert options.query == {'odbc_connect': text}
        url = resolved.to_url()
        assert url.drivername == 'mssql+pyodbc'
        assert url.query['odbc_connect'] == text

    def test_sqlcipher_password(self):
        options = resolve_connection('sqlite', 'Data Source=app.db;Key=secret').to_options()
        assert (options.driver, options.database, options.password) == ('pysqlcipher', 'app.db', 'secret')

    def test_mysql_url(self):
        url = resolve_connection('MySql', 'Server=db:3307;Database=app;Uid=root;Pwd=x').to_url()
        assert url.drivername == 'mysql+pymysql'
        assert (url.host, url.port, url.database) == ('db', 3307, 'app')
