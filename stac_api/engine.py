# ============================================================================
# CLAUDE CONTEXT - STAC SEARCH ENGINE INTERFACE
# ============================================================================
# STATUS: Interface - contract between STACAPIService and the catalog store
# PURPOSE: Abstract search/read/write operations so the service can be injected with any backend
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: SearchEngine
# DEPENDENCIES: abc, stac_api.models
# SCOPE: Implemented by infrastructure.pgstac.PgSTACSearchEngine and test fakes
# ============================================================================

"""
Search Engine Interface

The engine is a black box: it accepts a canonical Query and returns a page
of features plus opaque continuation tokens. It also owns collection and
item storage for the read and transaction endpoints.

Missing documents are reported as None (reads) or False (deletes), never as
exceptions; the service decides which HTTP error that becomes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Query, SearchPage


class SearchEngine(ABC):
    """Backend for STACAPIService."""

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @abstractmethod
    def search(self, query: Query) -> SearchPage:
        """Execute a canonical query and return one page."""

    @abstractmethod
    def get_queryables(self, collection_id: Optional[str] = None) -> Dict[str, Any]:
        """JSON Schema of filterable properties, global or per collection."""

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    @abstractmethod
    def list_collections(self) -> List[Dict[str, Any]]:
        """All stored collection documents ordered by id."""

    @abstractmethod
    def get_collection(self, collection_id: str) -> Optional[Dict[str, Any]]:
        """Stored collection document, or None."""

    @abstractmethod
    def create_collection(self, collection: Dict[str, Any]) -> None:
        """Insert a new collection."""

    @abstractmethod
    def update_collection(self, collection: Dict[str, Any]) -> None:
        """Replace an existing collection."""

    @abstractmethod
    def delete_collection(self, collection_id: str) -> bool:
        """Remove a collection; False if it did not exist."""

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    @abstractmethod
    def get_item(self, collection_id: str, item_id: str) -> Optional[Dict[str, Any]]:
        """Stored item document, or None."""

    @abstractmethod
    def create_item(self, item: Dict[str, Any]) -> None:
        """Insert a new item."""

    @abstractmethod
    def update_item(self, item: Dict[str, Any]) -> None:
        """Replace an existing item."""

    @abstractmethod
    def delete_item(self, collection_id: str, item_id: str) -> bool:
        """Remove an item; False if it did not exist."""
