import logging
import pathlib
import sys

import pytest
import schemakit
from testcontainers.postgres import PostgresContainer

from libb import Setting

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
sys.path.insert(0, HERE)
sys.path.append('..')
import config

logger = logging.getLogger(__name__)


def _docker_available():
    try:
        import docker
        docker.from_env().ping()
        return True
    except Exception as e:
        logger.info(f'Docker is not available: {e}')
        return False


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container using testcontainers.

    Testcontainers automatically:
    - Assigns a random available port
    - Waits for the database to be ready
    - Handles cleanup when the session ends
    """
    if not _docker_available():
        pytest.skip('PostgreSQL tests need a running Docker daemon')

    container = PostgresContainer(
        image='postgres:16',
        username=config.postgresql.username,
        password=config.postgresql.password,
        dbname=config.postgresql.database,
    )

    try:
        container.start()

        # Update config with dynamic host/port
        Setting.unlock()
        config.postgresql.hostname = container.get_container_host_ip()
        config.postgresql.port = int(container.get_exposed_port(5432))
        Setting.lock()

        logger.info(
            f'PostgreSQL container started at '
            f'{config.postgresql.hostname}:{config.postgresql.port}'
        )

        # Verify connection works
        cn = schemakit.connect('postgresql', config=config)
        cn.close()

        def finalizer():
            try:
                container.stop()
                logger.info('PostgreSQL container stopped')
            except Exception as e:
                logger.warning(f'Error stopping container: {e}')

        request.addfinalizer(finalizer)
        return container

    except Exception as e:
        logger.error(f'Error setting up postgres container: {e}')
        try:
            container.stop()
        except Exception:
            pass
        raise


def reset_database(cn):
    """Drop everything the previous test created."""
    for schema in cn.select_column(
            "select nspname from pg_namespace where nspname !~ '^pg_' "
            "and nspname not in ('information_schema', 'public')"):
        cn.execute(f'drop schema "{schema}" cascade')
    cn.execute('drop schema public cascade')
    cn.execute('create schema public')


@pytest.fixture
def conn(psql_docker):
    """
    Connection fixture with function scope for clean tests.
    Each test starts from an empty public schema.
    """
    cn = schemakit.connect('postgresql', config=config)
    try:
        reset_database(cn)
        yield cn
    finally:
        try:
            cn.close()
        except Exception as e:
            logger.warning(f'Error during connection cleanup: {e}')
