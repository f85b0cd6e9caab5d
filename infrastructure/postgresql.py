# ============================================================================
# CLAUDE CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostgreSQL connection management
# PURPOSE: Per-request psycopg connections for the pgSTAC catalog store
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config, util_logger
# SCOPE: Connection lifecycle and small query helpers; no STAC semantics
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository

Connection management for the catalog store with support for:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-request connection creation (no pooling)
- Safe SQL execution with psycopg.sql composition

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository(schema_name='pgstac')
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT id FROM pgstac.collections")
        rows = cursor.fetchall()
"""

from contextlib import contextmanager
from typing import Any, Optional, Tuple, Union

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from config import get_postgres_connection_string
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLRepository")


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Connection Strategy:
    -------------------
    Each operation creates a NEW connection and closes it immediately after use.
    No connection pooling is used - suitable for serverless Azure Functions
    where connection reuse across requests is not beneficial.

    Transactions:
    ------------
    _get_cursor() without a connection commits on success and rolls back on
    error. Pass an explicit connection from _get_connection() to run several
    statements in one transaction.
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: str = 'pgstac',
                 connect_timeout: Optional[int] = None):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided,
            uses get_postgres_connection_string() from config module.

        schema_name : str
            Database schema holding the pgSTAC functions and tables.

        connect_timeout : Optional[int]
            Seconds to wait for a connection; None uses the libpq default.

        No connection is opened here; the first query connects.
        """
        self.schema_name = schema_name
        self.conn_string = connection_string or get_postgres_connection_string()
        self.connect_timeout = connect_timeout
        logger.debug(f"PostgreSQLRepository initialized with schema: {self.schema_name}")

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        Yields:
        ------
        psycopg.Connection
            Active connection with dict_row factory and search_path set to
            the repository schema. Autocommit is OFF.

        Raises:
        ------
        psycopg.Error
            On connection or statement failures; any open transaction is
            rolled back before the error propagates.
        """
        conn = None
        try:
            connect_kwargs = {}
            if self.connect_timeout is not None:
                connect_kwargs['connect_timeout'] = self.connect_timeout
            conn = psycopg.connect(self.conn_string, row_factory=dict_row, **connect_kwargs)
            conn.execute(
                sql.SQL("SET search_path TO {schema}, public").format(
                    schema=sql.Identifier(self.schema_name)
                )
            )
            logger.debug(f"PostgreSQL connection established (schema: {self.schema_name})")

            yield conn

        except psycopg.Error as e:
            logger.error(f"PostgreSQL error ({type(e).__name__}): {e}")
            if conn is not None and not conn.closed:
                try:
                    conn.rollback()
                except psycopg.Error as rollback_error:
                    logger.warning(f"Rollback failed: {rollback_error}")
            raise

        finally:
            if conn is not None and not conn.closed:
                conn.close()
                logger.debug("Connection closed")

    @contextmanager
    def _get_cursor(self, conn=None):
        """
        Context manager for cursors.

        With conn: caller controls the transaction.
        Without conn: a new connection is opened and committed on success.
        """
        if conn is not None:
            with conn.cursor() as cursor:
                yield cursor
        else:
            with self._get_connection() as new_conn:
                with new_conn.cursor() as cursor:
                    yield cursor
                new_conn.commit()

    def _execute_query(self, query: Union[str, sql.Composable],
                       params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute one statement in its own transaction.

        Parameters:
        ----------
        query : str or sql.Composable
            Statement with %s placeholders.
        params : Optional[Tuple]
            Values for the placeholders.
        fetch : Optional[str]
            None | 'one' | 'all'

        Returns:
        -------
        Row (fetch='one'), list of rows (fetch='all') or the row count.

        Raises:
        ------
        ValueError
            If fetch parameter is invalid
        psycopg.Error
            For any database operation failure
        """
        if fetch not in (None, 'one', 'all'):
            raise ValueError(f"Invalid fetch mode: {fetch}")

        logger.debug(f"Executing SQL: {query if isinstance(query, str) else repr(query)}")

        with self._get_cursor() as cursor:
            cursor.execute(query, params)
            if fetch == 'one':
                return cursor.fetchone()
            if fetch == 'all':
                return cursor.fetchall()
            return cursor.rowcount if cursor.rowcount >= 0 else None

    def _schema_exists(self) -> bool:
        """True if the repository schema exists."""
        row = self._execute_query(
            "SELECT EXISTS (SELECT 1 FROM information_schema.schemata "
            "WHERE schema_name = %s) AS exists",
            (self.schema_name,),
            fetch='one'
        )
        return bool(row and row['exists'])

    def _table_exists(self, table_name: str) -> bool:
        """True if table_name exists in the repository schema."""
        row = self._execute_query(
            """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = %s
                AND table_name = %s
            ) AS exists
            """,
            (self.schema_name, table_name),
            fetch='one'
        )
        return bool(row and row['exists'])
