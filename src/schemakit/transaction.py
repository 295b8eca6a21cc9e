"""
Transaction handling for multi-statement DDL.

Connections run in autocommit mode. `ddl_transaction` opens an explicit
transaction on dialects with transactional DDL (PostgreSQL, SQLite, SQL
Server) and is a no-op elsewhere (MySQL commits implicitly after every DDL
statement, so a failed sequence may be partially applied).
"""
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from schemakit.connection import ConnectionWrapper
    from schemakit.strategy.base import DialectStrategy

logger = logging.getLogger(__name__)


@contextmanager
def ddl_transaction(cn: 'ConnectionWrapper', strategy: 'DialectStrategy'):
    """Run the enclosed statements in one transaction where supported.

    Nested use joins the outer transaction.
    """
    if not strategy.supports_transactional_ddl or cn.in_transaction:
        yield cn
        return

    strategy.begin_transaction(cn)
    cn.in_transaction = True
    try:
        yield cn
    except BaseException:
        cn.in_transaction = False
        try:
            strategy.rollback_transaction(cn)
        except Exception as e:
            logger.warning(f'Rollback failed on {cn.dialect}: {e}')
        raise
    cn.in_transaction = False
    strategy.commit_transaction(cn)
