"""
Views, schemas and server information on SQLite.
"""
import sqlite3

import pytest
import schemakit
from schemakit import View
from schemakit.exceptions import DialectUnsupportedOperation
from schemakit.strategy import get_strategy

OPEN_ORDERS = "select id, status from orders where status = 'new'"


def test_create_view(orders_conn):
    assert schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS + ';')) is True
    assert schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS)) is False
    assert schemakit.view_exists(orders_conn, 'open_orders')
    assert orders_conn.select_column('select status from open_orders') == ['new']


def test_get_view_returns_select_text(orders_conn):
    schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS))
    view = schemakit.get_view(orders_conn, 'open_orders')
    assert view == View('open_orders', OPEN_ORDERS)
    assert schemakit.get_view(orders_conn, 'closed_orders') is None


def test_view_names_are_not_table_names(orders_conn):
    schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS))
    schemakit.create_view_if_not_exists(orders_conn, View('order_totals', 'select sum(qty) as total from orders'))

    assert schemakit.get_view_names(orders_conn) == ['open_orders', 'order_totals']
    assert schemakit.get_view_names(orders_conn, 'order*') == ['order_totals']
    assert [v.definition for v in schemakit.get_views(orders_conn, 'order*')] == ['select sum(qty) as total from orders']
    assert schemakit.get_table_names(orders_conn) == ['orders']


def test_drop_view(orders_conn):
    schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS))
    assert schemakit.drop_view_if_exists(orders_conn, 'open_orders') is True
    assert not schemakit.view_exists(orders_conn, 'open_orders')
    assert schemakit.drop_view_if_exists(orders_conn, 'open_orders') is False


def test_rename_view(orders_conn):
    schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS))
    assert schemakit.rename_view_if_exists(orders_conn, 'open_orders', 'new_orders') is True
    assert schemakit.get_view_names(orders_conn) == ['new_orders']
    assert schemakit.get_view(orders_conn, 'new_orders') == View('new_orders', OPEN_ORDERS)
    assert orders_conn.select_column('select status from new_orders') == ['new']
    assert schemakit.rename_view_if_exists(orders_conn, 'open_orders', 'new_orders') is False


def test_rename_view_onto_existing_name(orders_conn):
    schemakit.create_view_if_not_exists(orders_conn, View('open_orders', OPEN_ORDERS))
    schemakit.create_view_if_not_exists(orders_conn, View('order_totals', 'select sum(qty) as total from orders'))
    assert schemakit.rename_view_if_exists(orders_conn, 'open_orders', 'order_totals') is False
    assert schemakit.get_view_names(orders_conn) == ['open_orders', 'order_totals']


@pytest.mark.parametrize('operation', [
    lambda cn: schemakit.get_schema_names(cn),
    lambda cn: schemakit.schema_exists(cn, 'sales'),
    lambda cn: schemakit.create_schema_if_not_exists(cn, 'sales'),
    lambda cn: schemakit.drop_schema_if_exists(cn, 'sales'),
], ids=['list', 'exists', 'create', 'drop'])
def test_schemas_are_unsupported(sqlite_conn, operation):
    with pytest.raises(DialectUnsupportedOperation, match='sqlite'):
        operation(sqlite_conn)


def test_server_version(sqlite_conn):
    assert get_strategy('sqlite').get_server_version(sqlite_conn) == sqlite3.sqlite_version_info[:3]
