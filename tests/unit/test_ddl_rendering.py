"""
DDL rendering per dialect. No connection is needed to render statements.
"""
import datetime

import pytest
from schemakit.exceptions import SchemaValidationError
from schemakit.models import CheckConstraint, Column, DefaultExpression
from schemakit.models import ForeignKeyAction, ForeignKeyConstraint, Index
from schemakit.models import PrimaryKeyConstraint, Table
from schemakit.strategy import get_strategy
from schemakit.types import TypeDescriptor


@pytest.fixture
def orders():
    return Table(
        'orders',
        [Column('id', TypeDescriptor('int', is_auto_increment=True)),
         Column('status', TypeDescriptor('str', length=20), is_nullable=False, default_value="'new'"),
         Column('qty', int)],
        primary_key=PrimaryKeyConstraint(['id']),
        check_constraints=[CheckConstraint('qty >= 0', 'qty')],
        indexes=[Index(['status'])])


CREATE_TABLE_CASES = [
    ('sqlite', '"orders"', [
        '"id" integer CONSTRAINT "orders_pk_id" PRIMARY KEY AUTOINCREMENT NOT NULL',
        '"status" varchar(20) NOT NULL CONSTRAINT "orders_df_status" DEFAULT \'new\'',
        '"qty" integer NULL CONSTRAINT "orders_ck_qty" CHECK (qty >= 0)',
        ], ''),
    ('postgresql', '"orders"', [
        '"id" integer GENERATED BY DEFAULT AS IDENTITY NOT NULL',
        '"status" character varying(20) NOT NULL DEFAULT \'new\'',
        '"qty" integer NULL',
        'CONSTRAINT "orders_pk_id" PRIMARY KEY ("id")',
        'CONSTRAINT "orders_ck_qty" CHECK (qty >= 0)',
        ], ''),
    ('mssql', '[orders]', [
        '[id] int IDENTITY(1,1) NOT NULL',
        "[status] varchar(20) NOT NULL CONSTRAINT [orders_df_status] DEFAULT ('new')",
        '[qty] int NULL',
        'CONSTRAINT [orders_pk_id] PRIMARY KEY ([id])',
        'CONSTRAINT [orders_ck_qty] CHECK (qty >= 0)',
        ], ''),
    ('mysql', '`orders`', [
        '`id` int AUTO_INCREMENT NOT NULL',
        "`status` varchar(20) NOT NULL DEFAULT 'new'",
        '`qty` int NULL',
        'CONSTRAINT `orders_pk_id` PRIMARY KEY (`id`)',
        'CONSTRAINT `orders_ck_qty` CHECK (qty >= 0)',
        ], ' DEFAULT CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci ENGINE = InnoDB'),
]


@pytest.mark.parametrize(('dialect', 'quoted', 'lines', 'suffix'), CREATE_TABLE_CASES)
def test_create_table(orders, dialect, quoted, lines, suffix):
    statements = get_strategy(dialect).create_table_statements(orders)
    body = ',\n    '.join(lines)
    assert statements[0] == f'CREATE TABLE {quoted} (\n    {body}\n){suffix}'
    assert len(statements) == 2


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('sqlite', 'CREATE INDEX "orders_ix_status" ON "orders" ("status" ASC)'),
    ('postgresql', 'CREATE INDEX "orders_ix_status" ON "orders" ("status" ASC)'),
    ('mssql', 'CREATE INDEX [orders_ix_status] ON [orders] ([status] ASC)'),
    ('mysql', 'CREATE INDEX `orders_ix_status` ON `orders` (`status` ASC)'),
])
def test_create_index_follows_table(orders, dialect, expected):
    assert get_strategy(dialect).create_table_statements(orders)[1] == expected


def test_table_without_columns_is_rejected():
    with pytest.raises(SchemaValidationError, match='no columns'):
        get_strategy('postgresql').create_table_statements(Table('empty'))


class TestForeignKeys:

    @pytest.fixture
    def lines(self):
        return Table(
            'lines',
            [Column('order_id', int), Column('line', int)],
            schema_name='app',
            foreign_keys=[ForeignKeyConstraint(['order_id'], 'orders', ['id'],
                                               on_delete=ForeignKeyAction.CASCADE,
                                               on_update=ForeignKeyAction.RESTRICT)])

    def test_postgres_qualifies_with_table_schema(self, lines):
        clause = get_strategy('postgresql').foreign_key_clause(lines, lines.foreign_keys[0])
        assert clause == ('CONSTRAINT "lines_fk_order_id_orders_id" FOREIGN KEY ("order_id") '
                          'REFERENCES "app"."orders" ("id") ON DELETE CASCADE ON UPDATE RESTRICT')

    def test_sqlserver_has_no_restrict(self, lines):
        clause = get_strategy('mssql').foreign_key_clause(lines, lines.foreign_keys[0])
        assert clause.endswith('REFERENCES [app].[orders] ([id]) ON DELETE CASCADE ON UPDATE NO ACTION')

    def test_sqlite_reference_is_unqualified(self, lines):
        clause = get_strategy('sqlite').foreign_key_clause(lines, lines.foreign_keys[0])
        assert 'REFERENCES "orders" ("id")' in clause


class TestDefaults:

    @pytest.mark.parametrize(('dialect', 'value', 'expected'), [
        ('postgresql', True, 'TRUE'),
        ('postgresql', False, 'FALSE'),
        ('mssql', True, '1'),
        ('sqlite', 0, '0'),
        ('mysql', 2.5, '2.5'),
        ('postgresql', datetime.date(2024, 1, 31), "'2024-01-31'"),
        ('postgresql', datetime.datetime(2024, 1, 31, 12, 30), "'2024-01-31 12:30:00'"),
        ('postgresql', "'n/a'", "'n/a'"),
        ('postgresql', DefaultExpression.NEW_UUID, 'gen_random_uuid()'),
        ('mssql', DefaultExpression.CURRENT_TIMESTAMP, 'SYSDATETIME()'),
        ('mysql', DefaultExpression.NEW_UUID, '(uuid())'),
    ])
    def test_render_default(self, dialect, value, expected):
        assert get_strategy(dialect).render_default(value) == expected

    def test_unrenderable_default(self):
        with pytest.raises(TypeError):
            get_strategy('sqlite').render_default(object())

    def test_postgres_ignores_catalog_casts(self):
        pg = get_strategy('postgresql')
        assert pg.normalize_default("('new'::character varying)") == pg.normalize_default("'new'")

    def test_sqlserver_parenthesized_catalog_default(self):
        mssql = get_strategy('mssql')
        assert mssql.normalize_default('((0))') == mssql.normalize_default(0)

    def test_sqlite_wraps_expressions(self):
        sqlite = get_strategy('sqlite')
        assert sqlite._default_sql("'x'") == "'x'"
        assert sqlite._default_sql(DefaultExpression.CURRENT_TIMESTAMP) == 'CURRENT_TIMESTAMP'
        assert sqlite._default_sql("lower('X')") == "(lower('X'))"


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('postgresql', 'ALTER TABLE "app"."a" RENAME TO "b"'),
    ('sqlite', 'ALTER TABLE "app"."a" RENAME TO "b"'),
    ('mssql', "EXEC sp_rename '[app].[a]', 'b'"),
    ('mysql', 'RENAME TABLE `app`.`a` TO `app`.`b`'),
])
def test_rename_table(dialect, expected):
    assert get_strategy(dialect).rename_table_sql('a', 'b', 'app') == expected


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('postgresql', ['ALTER VIEW "app"."v" RENAME TO "w"']),
    ('mysql', ['RENAME TABLE `app`.`v` TO `app`.`w`']),
    ('sqlite', None),
    ('mssql', None),
])
def test_rename_view(dialect, expected):
    assert get_strategy(dialect).rename_view_sql('v', 'w', 'app') == expected


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('postgresql', 'TRUNCATE TABLE "a"'),
    ('sqlite', 'DELETE FROM "a"'),
    ('mssql', 'TRUNCATE TABLE [a]'),
])
def test_truncate_table(dialect, expected):
    assert get_strategy(dialect).truncate_table_sql('a', None) == expected


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('postgresql', 'DROP INDEX "app"."ix"'),
    ('sqlite', 'DROP INDEX "app"."ix"'),
    ('mssql', 'DROP INDEX [ix] ON [app].[t]'),
    ('mysql', 'DROP INDEX `ix` ON `app`.`t`'),
])
def test_drop_index(dialect, expected):
    table = Table('t', [Column('a', int)], schema_name='app')
    assert get_strategy(dialect).drop_index_sql(table, Index(['a'], 'ix')) == expected


def test_sqlserver_create_schema_runs_in_own_batch():
    assert get_strategy('mssql').create_schema_sql('app') == "EXEC('CREATE SCHEMA [app]')"


def test_sqlserver_rename_column():
    table = Table('t', [Column('a', int)], schema_name='dbo')
    statements = get_strategy('mssql')._rename_column_sql(table, table.columns[0], 'b')
    assert statements == ["EXEC sp_rename '[dbo].[t].[a]', 'b', 'COLUMN'"]


class TestNormalizeTable:

    def test_postgres_folds_names_to_lower_case(self):
        table = Table('Orders', [Column('ID', int)], indexes=[Index(['ID'])])
        normalized = get_strategy('postgresql').normalize_table(table)
        assert normalized.name == 'orders'
        assert normalized.column_names == ('id',)
        assert normalized.indexes[0].name == 'orders_ix_id'
        assert normalized.indexes[0].column_names == ('id',)

    def test_sqlserver_keeps_case(self):
        table = Table('Orders', [Column('ID', int)])
        assert get_strategy('mssql').normalize_table(table) is table

    def test_mysql_primary_key_name_is_generated(self):
        table = Table('orders', [Column('id', int)], primary_key=PrimaryKeyConstraint(['id'], 'my_pk'))
        assert get_strategy('mysql').normalize_table(table).primary_key.name == 'orders_pk_id'
