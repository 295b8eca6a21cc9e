"""
Minimal change statements between an observed and a desired table.
"""
import pytest
from schemakit.exceptions import DialectUnsupportedOperation
from schemakit.models import CheckConstraint, Column, DefaultExpression
from schemakit.models import ForeignKeyConstraint, Index, Table, UniqueConstraint
from schemakit.strategy import get_strategy
from schemakit.strategy.base import EnsureResult
from schemakit.types import TypeDescriptor


def items(*extra, **kwargs):
    return Table('t', [Column('id', int, is_nullable=False), *extra], **kwargs)


class TestPostgres:

    @pytest.fixture
    def pg(self):
        return get_strategy('postgresql')

    def test_identical_tables(self, pg):
        assert pg._diff_statements(items(), items()) == []

    def test_add_column_with_default(self, pg):
        statements = pg._diff_statements(items(), items(Column('age', int, default_value=0)))
        assert statements == ['ALTER TABLE "t" ADD "age" integer NULL DEFAULT 0']

    def test_alter_type_and_nullability(self, pg):
        current = items(Column('qty', int))
        desired = items(Column('qty', TypeDescriptor('int64'), is_nullable=False))
        assert pg._diff_statements(current, desired) == [
            'ALTER TABLE "t" ALTER COLUMN "qty" TYPE bigint USING "qty"::bigint',
            'ALTER TABLE "t" ALTER COLUMN "qty" SET NOT NULL',
            ]

    def test_drop_nullability(self, pg):
        current = items(Column('qty', int, is_nullable=False))
        desired = items(Column('qty', int))
        assert pg._diff_statements(current, desired) == ['ALTER TABLE "t" ALTER COLUMN "qty" DROP NOT NULL']

    def test_index_dropped_before_its_column(self, pg):
        current = items(Column('b', int), indexes=[Index(['b'])])
        assert pg._diff_statements(current, items()) == [
            'DROP INDEX "t_ix_b"',
            'ALTER TABLE "t" DROP COLUMN "b"',
            ]

    def test_changed_default(self, pg):
        current = items(Column('age', int, default_value=0))
        desired = items(Column('age', int, default_value=1))
        assert pg._diff_statements(current, desired) == [
            'ALTER TABLE "t" ALTER COLUMN "age" DROP DEFAULT',
            'ALTER TABLE "t" ALTER COLUMN "age" SET DEFAULT 1',
            ]

    def test_catalog_spelling_of_default_is_not_a_change(self, pg):
        current = items(Column('status', TypeDescriptor('str', length=10), default_value="'new'::character varying"))
        desired = items(Column('status', TypeDescriptor('str', length=10), default_value="'new'"))
        assert pg._diff_statements(current, desired) == []

    @pytest.mark.parametrize(('observed', 'desired'), [
        ('character varying(50)', 'varchar(50)'),
        ('integer', 'int'),
        ('character(36)', 'char(36)'),
        ('timestamp  without time zone', 'timestamp'),
    ])
    def test_type_spellings_are_not_a_change(self, pg, observed, desired):
        assert not pg._type_changed(Column('c', str, sql_type=observed), Column('c', str, sql_type=desired))

    def test_type_change_under_explicit_sql_type(self, pg):
        assert pg._type_changed(Column('c', str, sql_type='character varying(50)'),
                                Column('c', str, sql_type='varchar(60)'))

    def test_fixed_36_char_string_reads_back_unchanged(self, pg):
        current = items(Column('code', TypeDescriptor('uuid'), sql_type='character(36)'))
        desired = items(Column('code', TypeDescriptor('str', length=36, is_fixed_length=True)))
        assert pg._diff_statements(current, desired) == []

    def test_checks_compared_by_name(self, pg):
        current = items(Column('qty', int), check_constraints=[CheckConstraint('(qty >= 0)', 'qty')])
        desired = items(Column('qty', int), check_constraints=[CheckConstraint('qty >= 0', 'qty')])
        assert pg._diff_statements(current, desired) == []

    def test_constraints_added_in_dependency_order(self, pg):
        current = items(Column('customer_id', int))
        desired = items(
            Column('customer_id', int),
            unique_constraints=[UniqueConstraint(['customer_id'])],
            foreign_keys=[ForeignKeyConstraint(['customer_id'], 'customers', ['id'])])
        assert pg._diff_statements(current, desired) == [
            'ALTER TABLE "t" ADD CONSTRAINT "t_uc_customer_id" UNIQUE ("customer_id")',
            'ALTER TABLE "t" ADD CONSTRAINT "t_fk_customer_id_customers_id" FOREIGN KEY ("customer_id") '
            'REFERENCES "customers" ("id") ON DELETE NO ACTION ON UPDATE NO ACTION',
            ]

    def test_evolve_runs_changes_in_one_transaction(self, pg, recording_connection):
        cn = recording_connection()
        current = items(Column('qty', int))
        desired = items(Column('qty', TypeDescriptor('int64'), is_nullable=False))
        result = pg._evolve(cn, current, desired)
        assert result.action == 'altered'
        assert cn.executed == ['BEGIN', *result.statements, 'COMMIT']

    def test_evolve_unchanged(self, pg, recording_connection):
        cn = recording_connection()
        assert pg._evolve(cn, items(), items()) == EnsureResult('unchanged')
        assert cn.executed == []


class TestSqlServer:

    @pytest.fixture
    def mssql(self):
        return get_strategy('mssql')

    def test_default_rebound_around_altered_column(self, mssql):
        current = items(Column('qty', int, default_value=0))
        desired = items(Column('qty', int, is_nullable=False, default_value=0))
        assert mssql._diff_statements(current, desired) == [
            'ALTER TABLE [t] DROP CONSTRAINT [t_df_qty]',
            'ALTER TABLE [t] ALTER COLUMN [qty] int NOT NULL',
            'ALTER TABLE [t] ADD CONSTRAINT [t_df_qty] DEFAULT (0) FOR [qty]',
            ]

    def test_new_default_constraint(self, mssql):
        current = items(Column('created', TypeDescriptor('datetime')))
        desired = items(Column('created', TypeDescriptor('datetime'),
                               default_value=DefaultExpression.CURRENT_TIMESTAMP))
        assert mssql._diff_statements(current, desired) == [
            'ALTER TABLE [t] ADD CONSTRAINT [t_df_created] DEFAULT (SYSDATETIME()) FOR [created]',
            ]

    def test_identity_change_cannot_be_altered(self, mssql):
        current = items(Column('seq', int, is_nullable=False))
        desired = items(Column('seq', TypeDescriptor('int', is_auto_increment=True)))
        assert mssql._diff_statements(current, desired) is None

    def test_evolve_without_rebuild_is_unsupported(self, mssql, recording_connection):
        current = items(Column('seq', int, is_nullable=False))
        desired = items(Column('seq', TypeDescriptor('int', is_auto_increment=True)))
        with pytest.raises(DialectUnsupportedOperation):
            mssql._evolve(recording_connection('mssql'), current, desired)


class TestMySql:

    @pytest.fixture
    def mysql(self):
        return get_strategy('mysql')

    def test_drop_foreign_key(self, mysql):
        current = items(Column('customer_id', int),
                        foreign_keys=[ForeignKeyConstraint(['customer_id'], 'customers', ['id'])])
        desired = items(Column('customer_id', int))
        assert mysql._diff_statements(current, desired) == [
            'ALTER TABLE `t` DROP FOREIGN KEY `t_fk_customer_id_customers_id`',
            ]

    def test_drop_unique_and_check(self, mysql):
        current = items(Column('code', int), unique_constraints=[UniqueConstraint(['code'])],
                        check_constraints=[CheckConstraint('code > 0', 'code')])
        desired = items(Column('code', int))
        assert mysql._diff_statements(current, desired) == [
            'ALTER TABLE `t` DROP CHECK `t_ck_code`',
            'ALTER TABLE `t` DROP INDEX `t_uc_code`',
            ]

    def test_mariadb_drops_check_as_constraint(self):
        current = items(Column('code', int), check_constraints=[CheckConstraint('code > 0', 'code')])
        desired = items(Column('code', int))
        assert get_strategy('mariadb')._diff_statements(current, desired) == [
            'ALTER TABLE `t` DROP CONSTRAINT `t_ck_code`',
            ]

    def test_modify_column_keeps_default(self, mysql):
        current = items(Column('qty', int, default_value=0))
        desired = items(Column('qty', TypeDescriptor('int64'), is_nullable=False, default_value=0))
        assert mysql._diff_statements(current, desired) == [
            'ALTER TABLE `t` MODIFY COLUMN `qty` bigint NOT NULL DEFAULT 0',
            ]


class TestSqlite:

    @pytest.fixture
    def sqlite(self):
        return get_strategy('sqlite')

    def test_add_index_in_place(self, sqlite):
        current = items(Column('b', int))
        desired = items(Column('b', int), indexes=[Index(['b'], is_unique=True)])
        assert sqlite._diff_statements(current, desired) == [
            'CREATE UNIQUE INDEX "t_ix_b" ON "t" ("b" ASC)',
            ]

    def test_add_nullable_column_in_place(self, sqlite):
        assert sqlite._diff_statements(items(), items(Column('n', int))) == [
            'ALTER TABLE "t" ADD COLUMN "n" integer NULL',
            ]

    @pytest.mark.parametrize('column', [
        Column('n', int, is_nullable=False),
        Column('n', TypeDescriptor('datetime'), default_value=DefaultExpression.CURRENT_TIMESTAMP),
        Column('n', int, default_value='abs(-1)'),
    ], ids=['not-null-without-default', 'current-timestamp', 'expression'])
    def test_add_column_needs_rebuild(self, sqlite, column):
        assert sqlite._diff_statements(items(), items(column)) is None

    def test_fixed_36_char_string_reads_back_unchanged(self, sqlite):
        current = items(Column('code', TypeDescriptor('uuid'), sql_type='char(36)'))
        desired = items(Column('code', TypeDescriptor('str', length=36, is_fixed_length=True)))
        assert sqlite._diff_statements(current, desired) == []

    def test_unique_column_needs_rebuild(self, sqlite):
        desired = items(Column('n', int), unique_constraints=[UniqueConstraint(['n'])])
        assert sqlite._diff_statements(items(), desired) is None

    @pytest.mark.parametrize(('current', 'desired'), [
        (items(Column('b', int)), items()),
        (items(Column('b', int)), items(Column('b', int, is_nullable=False))),
        (items(Column('b', int)), items(Column('b', int), check_constraints=[CheckConstraint('b > 0')])),
    ], ids=['drop-column', 'alter-column', 'add-check'])
    def test_changes_that_need_rebuild(self, sqlite, current, desired):
        assert sqlite._diff_statements(current, desired) is None

    def test_evolve_falls_back_to_rebuild(self, mocker, sqlite, recording_connection):
        rebuild = mocker.patch.object(sqlite, '_rebuild_table', return_value=['CREATE TABLE ...'])
        cn = recording_connection('sqlite')
        current, desired = items(Column('b', int)), items()
        result = sqlite._evolve(cn, current, desired)
        assert result == EnsureResult('rebuilt', ('CREATE TABLE ...',))
        rebuild.assert_called_once_with(cn, current, desired)
