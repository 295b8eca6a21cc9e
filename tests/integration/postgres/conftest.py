"""
Fixtures for PostgreSQL-specific integration tests.
"""
import pytest
import schemakit
from schemakit import CheckConstraint, Column, Index, PrimaryKeyConstraint, Table
from schemakit import TypeDescriptor


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


@pytest.fixture
def orders_conn(conn, orders):
    """Connection to an empty database holding the orders table with three rows."""
    schemakit.create_table_if_not_exists(conn, orders)
    for status, qty in (('new', 1), ('paid', 2), ('shipped', 2)):
        conn.execute('insert into orders (status, qty) values (%s, %s)', status, qty)
    return conn
