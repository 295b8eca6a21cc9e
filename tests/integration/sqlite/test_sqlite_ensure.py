"""
ensure_table on SQLite: create, alter in place, or rebuild.
"""
import hashlib

import pytest
import schemakit
from schemakit import CheckConstraint, Column, DefaultExpression, EnsureResult
from schemakit import ForeignKeyConstraint, Index, PrimaryKeyConstraint, Table, TypeDescriptor
from schemakit.exceptions import SchemaValidationError


def content_hash(cn, table_name):
    rows = cn.select(f'select * from "{table_name}" order by id')
    return hashlib.sha256(repr([sorted(row.items()) for row in rows]).encode()).hexdigest()


def test_creates_missing_table(sqlite_conn, orders):
    result = schemakit.ensure_table(sqlite_conn, orders)
    assert result.action == 'created'
    assert result.statements[0].startswith('CREATE TABLE "orders" (')
    assert result.statements[1] == 'CREATE INDEX "orders_ix_status" ON "orders" ("status" ASC)'
    assert schemakit.table_exists(sqlite_conn, 'orders')


def test_matching_table_is_unchanged(orders_conn, orders):
    assert schemakit.ensure_table(orders_conn, orders) == EnsureResult('unchanged')


def test_new_index_is_added_in_place(orders_conn, orders):
    desired = orders.replace(indexes=orders.indexes + (Index(['qty']),))
    result = schemakit.ensure_table(orders_conn, desired)
    assert result == EnsureResult('altered', ('CREATE INDEX "orders_ix_qty" ON "orders" ("qty" ASC)',))
    assert schemakit.ensure_table(orders_conn, desired).action == 'unchanged'


def test_nullable_column_is_added_in_place(orders_conn, orders):
    desired = orders.replace(columns=orders.columns + (Column('note', TypeDescriptor('str', length=50)),))
    result = schemakit.ensure_table(orders_conn, desired)
    assert result.statements == ('ALTER TABLE "orders" ADD COLUMN "note" varchar(50) NULL',)
    assert orders_conn.select_column('select note from orders') == [None, None, None]


def test_dropped_column_rebuilds_and_keeps_rows(orders_conn):
    desired = Table(
        'orders',
        [Column('id', TypeDescriptor('int', is_auto_increment=True)),
         Column('status', TypeDescriptor('str', length=20), is_nullable=False, default_value="'new'")],
        primary_key=PrimaryKeyConstraint(['id']),
        indexes=[Index(['status'])])

    result = schemakit.ensure_table(orders_conn, desired)

    assert result.action == 'rebuilt'
    assert result.statements[-1] == 'CREATE INDEX "orders_ix_status" ON "orders" ("status" ASC)'
    assert orders_conn.select_column('select status from orders order by id') == ['new', 'paid', 'shipped']
    assert schemakit.get_table(orders_conn, 'orders').column_names == ('id', 'status')
    assert schemakit.ensure_table(orders_conn, desired).action == 'unchanged'


def test_changed_nullability_rebuilds(orders_conn, orders):
    columns = tuple(Column('qty', int, is_nullable=False) if c.name == 'qty' else c for c in orders.columns)
    desired = orders.replace(columns=columns)

    assert schemakit.ensure_table(orders_conn, desired).action == 'rebuilt'
    assert not schemakit.get_column(orders_conn, 'orders', 'qty').is_nullable
    assert schemakit.ensure_table(orders_conn, desired).action == 'unchanged'


def test_new_check_rebuilds(orders_conn, orders):
    check = CheckConstraint('length(status) <= 10', name='orders_ck_status')
    desired = orders.replace(check_constraints=orders.check_constraints + (check,))
    assert schemakit.ensure_table(orders_conn, desired).action == 'rebuilt'
    assert schemakit.check_constraint_exists(orders_conn, 'orders', 'orders_ck_status')
    assert schemakit.check_constraint_exists(orders_conn, 'orders', 'orders_ck_qty')


def test_new_foreign_key_must_reference_existing_table(orders_conn, orders):
    desired = orders.replace(
        columns=orders.columns + (Column('customer_id', int),),
        foreign_keys=[ForeignKeyConstraint(['customer_id'], 'customers', ['id'])])
    with pytest.raises(SchemaValidationError, match='customers'):
        schemakit.ensure_table(orders_conn, desired)
    assert not schemakit.column_exists(orders_conn, 'orders', 'customer_id')


def test_rebuild_of_referenced_table_keeps_references(orders_conn, orders):
    lines = Table('order_lines', [Column('order_id', int)],
                  foreign_keys=[ForeignKeyConstraint(['order_id'], 'orders', ['id'])])
    schemakit.create_table_if_not_exists(orders_conn, lines)
    orders_conn.execute('insert into order_lines (order_id) values (%s)', 1)

    paid = Column('paid', TypeDescriptor('datetime'), default_value=DefaultExpression.CURRENT_TIMESTAMP)
    desired = orders.replace(columns=orders.columns + (paid,))
    assert schemakit.ensure_table(orders_conn, desired).action == 'rebuilt'
    assert orders_conn.select_scalar('select count(*) from order_lines join orders on orders.id = order_id') == 1
    assert [fk.referenced_table for fk in schemakit.get_foreign_keys(orders_conn, 'order_lines')] == ['orders']


def test_type_change_rebuilds_with_identical_rows(sqlite_conn):
    def products(length, nullable):
        return Table(
            'products',
            [Column('id', int, is_nullable=False),
             Column('code', TypeDescriptor('str', length=length), is_nullable=nullable)],
            primary_key=PrimaryKeyConstraint(['id']))

    lines = Table('order_lines', [Column('product_id', int)],
                  foreign_keys=[ForeignKeyConstraint(['product_id'], 'products', ['id'])])
    schemakit.create_tables_if_not_exist(sqlite_conn, [products(10, True), lines])
    for product_id, code in ((1, 'A-1'), (2, 'B-22'), (3, 'C-333')):
        sqlite_conn.execute('insert into products (id, code) values (%s, %s)', product_id, code)
        sqlite_conn.execute('insert into order_lines (product_id) values (%s)', product_id)
    before = content_hash(sqlite_conn, 'products')

    widened = products(200, False)
    assert schemakit.ensure_table(sqlite_conn, widened).action == 'rebuilt'

    code = schemakit.get_column(sqlite_conn, 'products', 'code')
    assert (code.sql_type, code.is_nullable) == ('varchar(200)', False)
    assert content_hash(sqlite_conn, 'products') == before
    assert sqlite_conn.select('pragma foreign_key_check') == []
    assert schemakit.ensure_table(sqlite_conn, widened).action == 'unchanged'


def test_fixed_36_char_column_is_stable(sqlite_conn):
    tokens = Table('tokens', [Column('code', TypeDescriptor('str', length=36, is_fixed_length=True))])
    assert schemakit.ensure_table(sqlite_conn, tokens).action == 'created'
    assert schemakit.get_column(sqlite_conn, 'tokens', 'code').sql_type == 'char(36)'
    assert schemakit.ensure_table(sqlite_conn, tokens).action == 'unchanged'
