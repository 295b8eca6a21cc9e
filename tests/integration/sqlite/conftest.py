"""
Fixtures for SQLite-specific integration tests.
"""
import pytest
import schemakit
from schemakit import CheckConstraint, Column, Index, PrimaryKeyConstraint, Table
from schemakit import TypeDescriptor


@pytest.fixture
def orders():
    """Orders table model with an identity key, a default, a check and an index."""
    return Table(
        'orders',
        [Column('id', TypeDescriptor('int', is_auto_increment=True)),
         Column('status', TypeDescriptor('str', length=20), is_nullable=False, default_value="'new'"),
         Column('qty', int)],
        primary_key=PrimaryKeyConstraint(['id']),
        check_constraints=[CheckConstraint('qty >= 0', 'qty')],
        indexes=[Index(['status'])])


@pytest.fixture
def customers():
    return Table(
        'customers',
        [Column('id', TypeDescriptor('int', is_auto_increment=True)),
         Column('name', TypeDescriptor('str', length=100), is_nullable=False)],
        primary_key=PrimaryKeyConstraint(['id']))


@pytest.fixture
def orders_conn(sqlite_conn, orders):
    """In-memory connection holding the orders table with three rows."""
    schemakit.create_table_if_not_exists(sqlite_conn, orders)
    for status, qty in (('new', 1), ('paid', 2), ('shipped', 3)):
        sqlite_conn.execute('insert into orders (status, qty) values (%s, %s)', status, qty)
    return sqlite_conn
