# ============================================================================
# CLAUDE CONTEXT - PGSTAC SEARCH ENGINE
# ============================================================================
# STATUS: Core Infrastructure - pgSTAC-backed SearchEngine
# PURPOSE: Run canonical queries through pgstac.search() and manage collections/items
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PgSTACSearchEngine
# DEPENDENCIES: psycopg, infrastructure.postgresql, stac_api.engine, util_logger
# SOURCE: pgSTAC SQL API (search, get_item, get_queryables, create_/update_/delete_ functions)
# SCOPE: The only module that issues SQL against the pgstac schema
# PATTERNS: Repository pattern, Adapter over the SearchEngine interface
# ============================================================================

"""
pgSTAC Search Engine

Adapts the pgSTAC SQL API to the SearchEngine interface consumed by
STACAPIService. Searches hand the canonical query document to pgSTAC as a
single JSON parameter:

    SELECT search FROM pgstac.search(%s::text::jsonb)

Storage failures surface as ServerError (duplicate ids as ConflictError)
with the psycopg exception chained.
"""

import json
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql

from util_logger import LoggerFactory, ComponentType, log_exceptions
from stac_api.engine import SearchEngine
from stac_api.errors import ConflictError, ServerError
from stac_api.models import Query, SearchPage

from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PgSTACSearchEngine")


@contextmanager
def _storage_errors(action: str):
    """Translate psycopg failures into STAC errors."""
    try:
        yield
    except pg_errors.UniqueViolation as e:
        raise ConflictError(f"{action}: document already exists") from e
    except psycopg.Error as e:
        raise ServerError(f"{action}: database error") from e


class PgSTACSearchEngine(SearchEngine):
    """
    SearchEngine backed by a pgSTAC database.

    Every call opens its own connection through PostgreSQLRepository.
    """

    def __init__(self, repo: Optional[PostgreSQLRepository] = None,
                 schema_name: str = 'pgstac'):
        self.repo = repo or PostgreSQLRepository(schema_name=schema_name)
        self.schema = sql.Identifier(self.repo.schema_name)

    def _function(self, template: str) -> sql.Composed:
        return sql.SQL(template).format(schema=self.schema)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @log_exceptions(logger=logger)
    def search(self, query: Query) -> SearchPage:
        document = json.dumps(query.to_search_json())
        logger.debug(f"pgstac search: {document}")

        with _storage_errors("stac search"):
            row = self.repo._execute_query(
                self._function("SELECT {schema}.search(%s::text::jsonb) AS search"),
                (document,),
                fetch='one'
            )

        page = SearchPage.from_search_result(row['search'] if row else None)
        logger.debug(
            f"pgstac search returned {len(page.features)} features "
            f"(next={'yes' if page.next_token else 'no'}, prev={'yes' if page.prev_token else 'no'})"
        )
        return page

    @log_exceptions(logger=logger)
    def get_queryables(self, collection_id: Optional[str] = None) -> Dict[str, Any]:
        with _storage_errors("get queryables"):
            row = self.repo._execute_query(
                self._function("SELECT {schema}.get_queryables(%s::text) AS queryables"),
                (collection_id,),
                fetch='one'
            )
        return (row or {}).get('queryables') or {}

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @log_exceptions(logger=logger)
    def list_collections(self) -> List[Dict[str, Any]]:
        with _storage_errors("list collections"):
            rows = self.repo._execute_query(
                self._function("SELECT content FROM {schema}.collections ORDER BY id"),
                fetch='all'
            )
        return [row['content'] for row in rows or [] if row['content']]

    @log_exceptions(logger=logger)
    def get_collection(self, collection_id: str) -> Optional[Dict[str, Any]]:
        with _storage_errors(f"get collection '{collection_id}'"):
            row = self.repo._execute_query(
                self._function("SELECT content FROM {schema}.collections WHERE id = %s"),
                (collection_id,),
                fetch='one'
            )
        return row['content'] if row else None

    @log_exceptions(logger=logger)
    def create_collection(self, collection: Dict[str, Any]) -> None:
        with _storage_errors(f"create collection '{collection.get('id')}'"):
            self.repo._execute_query(
                self._function("SELECT {schema}.create_collection(%s::text::jsonb)"),
                (json.dumps(collection),)
            )
        logger.info(f"Created collection '{collection.get('id')}'")

    @log_exceptions(logger=logger)
    def update_collection(self, collection: Dict[str, Any]) -> None:
        with _storage_errors(f"update collection '{collection.get('id')}'"):
            self.repo._execute_query(
                self._function("SELECT {schema}.update_collection(%s::text::jsonb)"),
                (json.dumps(collection),)
            )
        logger.info(f"Updated collection '{collection.get('id')}'")

    @log_exceptions(logger=logger)
    def delete_collection(self, collection_id: str) -> bool:
        with _storage_errors(f"delete collection '{collection_id}'"):
            with self.repo._get_connection() as conn:
                with self.repo._get_cursor(conn) as cursor:
                    cursor.execute(
                        self._function("SELECT 1 FROM {schema}.collections WHERE id = %s"),
                        (collection_id,)
                    )
                    if cursor.fetchone() is None:
                        return False
                    cursor.execute(
                        self._function("SELECT {schema}.delete_collection(%s::text)"),
                        (collection_id,)
                    )
                conn.commit()
        logger.info(f"Deleted collection '{collection_id}'")
        return True

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @log_exceptions(logger=logger)
    def get_item(self, collection_id: str, item_id: str) -> Optional[Dict[str, Any]]:
        with _storage_errors(f"get item '{collection_id}/{item_id}'"):
            row = self.repo._execute_query(
                self._function("SELECT {schema}.get_item(%s::text, %s::text) AS item"),
                (item_id, collection_id),
                fetch='one'
            )
        return row['item'] if row and row['item'] else None

    @log_exceptions(logger=logger)
    def create_item(self, item: Dict[str, Any]) -> None:
        with _storage_errors(f"create item '{item.get('collection')}/{item.get('id')}'"):
            self.repo._execute_query(
                self._function("SELECT {schema}.create_item(%s::text::jsonb)"),
                (json.dumps(item),)
            )
        logger.info(f"Created item '{item.get('collection')}/{item.get('id')}'")

    @log_exceptions(logger=logger)
    def update_item(self, item: Dict[str, Any]) -> None:
        with _storage_errors(f"update item '{item.get('collection')}/{item.get('id')}'"):
            self.repo._execute_query(
                self._function("SELECT {schema}.update_item(%s::text::jsonb)"),
                (json.dumps(item),)
            )
        logger.info(f"Updated item '{item.get('collection')}/{item.get('id')}'")

    @log_exceptions(logger=logger)
    def delete_item(self, collection_id: str, item_id: str) -> bool:
        with _storage_errors(f"delete item '{collection_id}/{item_id}'"):
            with self.repo._get_connection() as conn:
                with self.repo._get_cursor(conn) as cursor:
                    cursor.execute(
                        self._function(
                            "SELECT 1 FROM {schema}.items WHERE id = %s AND collection = %s"
                        ),
                        (item_id, collection_id)
                    )
                    if cursor.fetchone() is None:
                        return False
                    cursor.execute(
                        self._function("SELECT {schema}.delete_item(%s::text, %s::text)"),
                        (item_id, collection_id)
                    )
                conn.commit()
        logger.info(f"Deleted item '{collection_id}/{item_id}'")
        return True

    def ping(self) -> bool:
        """SELECT 1 round trip; False if the database is unreachable."""
        try:
            self.repo._execute_query("SELECT 1 AS ok", fetch='one')
            return True
        except psycopg.Error as e:
            logger.error(f"database ping failed: {e}")
            return False
