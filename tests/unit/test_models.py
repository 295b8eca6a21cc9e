"""
Tests for the schema model: generated names, validation and defaults.
"""
import pytest
from schemakit.exceptions import SchemaValidationError
from schemakit.models import CheckConstraint, Column, DefaultConstraint
from schemakit.models import ForeignKeyAction, ForeignKeyConstraint, Index
from schemakit.models import OrderedColumn, PrimaryKeyConstraint, Table
from schemakit.models import UniqueConstraint
from schemakit.sql import expression_digest
from schemakit.types import TypeDescriptor


def orders_table(**kwargs):
    columns = kwargs.pop('columns', (
        Column('id', int, is_auto_increment=True),
        Column('customer_id', int),
        Column('status', str, default_value="'new'"),
        Column('qty', int),
        ))
    return Table('orders', columns=columns, **kwargs)


class TestColumn:

    def test_python_type_converted(self):
        assert Column('name', str).type == TypeDescriptor('str')

    def test_auto_increment_forces_not_null(self):
        col = Column('id', int, is_auto_increment=True)
        assert not col.is_nullable
        assert col.type.is_auto_increment

    def test_auto_increment_from_type(self):
        col = Column('id', TypeDescriptor('int64', is_auto_increment=True))
        assert col.is_auto_increment
        assert not col.is_nullable

    def test_forced_sql_type_ignored_by_equality(self):
        assert Column('a', int, sql_type='int4') == Column('a', int)


class TestGeneratedNames:

    def test_primary_key(self):
        table = orders_table(primary_key=PrimaryKeyConstraint(['id']))
        assert table.primary_key.name == 'orders_pk_id'

    def test_foreign_key(self):
        table = orders_table(foreign_keys=[ForeignKeyConstraint('customer_id', 'customers', 'id')])
        assert table.foreign_keys[0].name == 'orders_fk_customer_id_customers_id'
        assert table.foreign_keys[0].columns == ('customer_id',)

    def test_unique_and_index(self):
        table = orders_table(unique_constraints=[UniqueConstraint(['customer_id', 'status'])],
                             indexes=[Index([OrderedColumn('qty', descending=True)])])
        assert table.unique_constraints[0].name == 'orders_uc_customer_id_status'
        assert table.indexes[0].name == 'orders_ix_qty'

    def test_check_named_after_column(self):
        table = orders_table(check_constraints=[CheckConstraint('qty >= 0', column_name='qty')])
        assert table.check_constraints[0].name == 'orders_ck_qty'

    def test_check_named_after_expression(self):
        table = orders_table(check_constraints=[CheckConstraint('qty >= 0')])
        assert table.check_constraints[0].name == f"orders_ck_{expression_digest('qty >= 0')}"

    def test_explicit_names_kept(self):
        table = orders_table(primary_key=PrimaryKeyConstraint(['id'], name='pk_orders'))
        assert table.primary_key.name == 'pk_orders'


class TestDefaults:

    def test_column_default_creates_constraint(self):
        table = orders_table()
        assert table.default_constraints == (DefaultConstraint('status', "'new'", 'orders_df_status'),)

    def test_constraint_sets_column_default(self):
        table = Table('t', columns=[Column('a', int)],
                      default_constraints=[DefaultConstraint('a', '0', name='df_a')])
        assert table.get_column('a').default_value == '0'
        assert table.get_default_constraint('A').name == 'df_a'

    def test_duplicate_default(self):
        with pytest.raises(SchemaValidationError, match='more than one default'):
            Table('t', columns=[Column('a', int)],
                  default_constraints=[DefaultConstraint('a', '0'), DefaultConstraint('a', '1')])

    def test_replace_keeps_named_default_when_unchanged(self):
        table = Table('t', columns=[Column('a', int)],
                      default_constraints=[DefaultConstraint('a', '0', name='df_custom')])
        changed = table.replace(columns=(Column('a', int, default_value='0'), Column('b', int)))
        assert changed.get_default_constraint('a').name == 'df_custom'
        assert changed.column_names == ('a', 'b')

    def test_replace_renames_changed_default(self):
        table = Table('t', columns=[Column('a', int)],
                      default_constraints=[DefaultConstraint('a', '0', name='df_custom')])
        changed = table.replace(columns=(Column('a', int, default_value='1'),))
        assert changed.get_default_constraint('a') == DefaultConstraint('a', '1', 't_df_a')

    def test_replace_default_constraints_wins(self):
        changed = orders_table().replace(default_constraints=())
        assert changed.default_constraints == ()
        assert changed.get_column('status').default_value is None


class TestValidation:

    def test_duplicate_column(self):
        with pytest.raises(SchemaValidationError, match='Duplicate column'):
            Table('t', columns=[Column('a', int), Column('A', str)])

    @pytest.mark.parametrize('kwargs', [
        {'primary_key': PrimaryKeyConstraint(['missing'])},
        {'unique_constraints': [UniqueConstraint(['missing'])]},
        {'indexes': [Index(['missing'])]},
        {'foreign_keys': [ForeignKeyConstraint('missing', 'customers', 'id')]},
        {'check_constraints': [CheckConstraint('missing > 0', column_name='missing')]},
        {'default_constraints': [DefaultConstraint('missing', '0')]},
    ])
    def test_unknown_columns(self, kwargs):
        with pytest.raises(SchemaValidationError, match='unknown columns'):
            orders_table(**kwargs)

    def test_duplicate_constraint_name(self):
        with pytest.raises(SchemaValidationError, match='Duplicate constraint name'):
            orders_table(unique_constraints=[UniqueConstraint(['qty'], name='dup')],
                         check_constraints=[CheckConstraint('qty > 0', name='dup')])

    def test_foreign_key_column_count(self):
        with pytest.raises(SchemaValidationError):
            ForeignKeyConstraint(['a', 'b'], 'other', ['id'])

    def test_index_needs_columns(self):
        with pytest.raises(SchemaValidationError):
            Index([])


class TestEquality:

    def test_constraint_order_does_not_matter(self):
        uniques = [UniqueConstraint(['qty']), UniqueConstraint(['customer_id'])]
        assert orders_table(unique_constraints=uniques) == orders_table(unique_constraints=uniques[::-1])

    def test_check_column_name_not_compared(self):
        assert CheckConstraint('a > 0', column_name='a', name='ck') == CheckConstraint('a > 0', name='ck')


@pytest.mark.parametrize(('value', 'expected'), [
    (None, ForeignKeyAction.NO_ACTION),
    ('cascade', ForeignKeyAction.CASCADE),
    ('SET_NULL', ForeignKeyAction.SET_NULL),
    (ForeignKeyAction.RESTRICT, ForeignKeyAction.RESTRICT),
])
def test_foreign_key_action_parse(value, expected):
    assert ForeignKeyAction.parse(value) is expected


def test_ordered_column_str():
    assert str(OrderedColumn('qty', descending=True)) == 'qty DESC'
