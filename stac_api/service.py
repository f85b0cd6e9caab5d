"""
STAC API Service Layer

Business logic for STAC API endpoints. Requests are normalized into a
canonical Query, run through the injected SearchEngine and decorated with
links. Transactions validate ids and apply merge-patch for PATCH.

All failures are raised as STACError subclasses; rendering them is the
trigger layer's job.

Date: 10 NOV 2025
Updated: 19 OCT 2026 - Canonical query normalization, token pagination, transactions
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from util_logger import LoggerFactory, ComponentType

from .config import STACAPIConfig
from .engine import SearchEngine
from .errors import ConflictError, NotFoundError, ParameterError
from .links import (
    MEDIA_JSON,
    build_link,
    catalog_links,
    enrich_collection_links,
    enrich_item_links,
    items_links,
    search_links,
)
from .merge import merge_json
from .models import Query, RequestTransport, SearchPage
from .query import (
    ITEMS_PARAM_KEYS,
    item_query,
    items_query,
    query_from_body,
    query_from_params,
)
from .validation import validate_collection_ids_match, validate_id

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "STACAPIService")

Body = Union[bytes, str, Mapping[str, Any], None]

CONFORMANCE = [
    "http://www.opengis.net/spec/cql2/1.0/conf/basic-cql2",
    "http://www.opengis.net/spec/cql2/1.0/conf/cql2-json",
    "http://www.opengis.net/spec/ogcapi-features-1/1.0/conf/core",
    "http://www.opengis.net/spec/ogcapi-features-1/1.0/conf/geojson",
    "http://www.opengis.net/spec/ogcapi-features-3/1.0/conf/filter",
    "http://www.opengis.net/spec/ogcapi-features-3/1.0/conf/features-filter",
    "https://api.stacspec.org/v1.0.0/collections",
    "https://api.stacspec.org/v1.0.0/core",
    "https://api.stacspec.org/v1.0.0-rc.3/browseable",
    "https://api.stacspec.org/v1.0.0/item-search",
    "https://api.stacspec.org/v1.0.0-rc.2/item-search#context",
    "https://api.stacspec.org/v1.0.0-rc.3/item-search#fields",
    "https://api.stacspec.org/v1.0.0-rc.2/item-search#filter",
    "https://api.stacspec.org/v1.0.0-rc.2/item-search#sort",
    "https://api.stacspec.org/v1.0.0/ogcapi-features",
    "https://api.stacspec.org/v1.0.0-rc.3/ogcapi-features#fields",
    "https://api.stacspec.org/v1.0.0-rc.2/ogcapi-features#sort",
    "https://api.stacspec.org/v1.0.0-rc.2/ogcapi-features/extensions/transaction",
    "http://www.opengis.net/spec/ogcapi-features-4/1.0/conf/simpletx",
]


def _feature_collection(page: SearchPage, features: List[Dict[str, Any]], links) -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "context": page.context,
        "features": features,
        "links": [link.to_dict() for link in links]
    }


def _require_object(document: Any, what: str) -> Dict[str, Any]:
    if not isinstance(document, dict):
        raise ParameterError(f"{what} must be a JSON object", field="body")
    return document


class STACAPIService:
    """STAC API business logic layer."""

    def __init__(self, config: STACAPIConfig, engine: SearchEngine):
        """Initialize service with configuration and a search engine."""
        self.config = config
        self.engine = engine
        self.prefix = config.api_prefix

    # ========================================================================
    # LANDING / CONFORMANCE
    # ========================================================================

    def get_catalog(self, base_url: str) -> Dict[str, Any]:
        """
        Get STAC catalog descriptor (landing page).

        Args:
            base_url: Base URL for link generation

        Returns:
            STAC Catalog object with one child link per collection
        """
        collections = self.engine.list_collections()
        return {
            "type": "Catalog",
            "id": self.config.catalog_id,
            "title": self.config.catalog_title,
            "description": self.config.catalog_description,
            "stac_version": self.config.stac_version,
            "conformsTo": list(CONFORMANCE),
            "links": [
                link.to_dict()
                for link in catalog_links(base_url, collections, api_prefix=self.prefix)
            ]
        }

    def get_conformance(self) -> Dict[str, Any]:
        """Conformance object with conformsTo array."""
        return {"conformsTo": list(CONFORMANCE)}

    # ========================================================================
    # COLLECTIONS
    # ========================================================================

    def get_collections(self, base_url: str) -> Dict[str, Any]:
        """
        Get all STAC collections, each enriched with server links.
        """
        collections = [
            enrich_collection_links(collection, base_url, api_prefix=self.prefix)
            for collection in self.engine.list_collections()
        ]
        links = [
            build_link(base_url, "self", "/collections", MEDIA_JSON, api_prefix=self.prefix),
            build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=self.prefix),
            build_link(base_url, "parent", "/", MEDIA_JSON, api_prefix=self.prefix),
        ]
        return {
            "collections": collections,
            "links": [link.to_dict() for link in links]
        }

    def _stored_collection(self, collection_id: str) -> Dict[str, Any]:
        collection = self.engine.get_collection(collection_id)
        if collection is None:
            logger.warning(f"collection '{collection_id}' not found")
            raise NotFoundError(f"collection '{collection_id}' not found")
        return collection

    def get_collection(self, collection_id: str, base_url: str) -> Dict[str, Any]:
        """Single collection with server links; NotFoundError if absent."""
        collection = self._stored_collection(collection_id)
        return enrich_collection_links(collection, base_url, api_prefix=self.prefix)

    # ========================================================================
    # ITEMS
    # ========================================================================

    def get_items(
        self,
        collection_id: str,
        base_url: str,
        params: Mapping[str, str]
    ) -> Dict[str, Any]:
        """
        Get one page of items from a collection.

        Args:
            collection_id: Collection ID
            base_url: Base URL for link generation
            params: Query-string parameters (limit, bbox, datetime, token)

        Returns:
            FeatureCollection with item links and token pagination links
        """
        query = items_query(collection_id, params)
        self._stored_collection(collection_id)

        page = self.engine.search(query)
        features = [
            enrich_item_links(item, base_url, api_prefix=self.prefix)
            for item in page.features
        ]
        links = items_links(
            base_url, collection_id, query, page,
            params=params, param_keys=ITEMS_PARAM_KEYS, api_prefix=self.prefix
        )
        return _feature_collection(page, features, links)

    def get_item(self, collection_id: str, item_id: str, base_url: str) -> Dict[str, Any]:
        """Single item with server links; NotFoundError if absent."""
        page = self.engine.search(item_query(collection_id, item_id))
        if not page.features:
            logger.warning(f"item '{collection_id}/{item_id}' not found")
            raise NotFoundError(f"item '{item_id}' not found in collection '{collection_id}'")
        return enrich_item_links(page.features[0], base_url, api_prefix=self.prefix)

    # ========================================================================
    # SEARCH
    # ========================================================================

    def search(
        self,
        base_url: str,
        transport: RequestTransport,
        params: Optional[Mapping[str, str]] = None,
        body: Body = None
    ) -> Dict[str, Any]:
        """
        Item search for GET (query string) or POST (JSON body).

        A token query parameter on a POST request overrides the body token.

        Args:
            base_url: Base URL for link generation
            transport: Encoding the client used
            params: Query-string parameters
            body: Raw POST body

        Returns:
            FeatureCollection with item links and pagination links that
            reproduce the request in the same transport
        """
        params = params or {}
        query = self.normalize(transport, params, body)

        page = self.engine.search(query)
        logger.info(f"search returned {len(page.features)} features")

        features = [
            enrich_item_links(item, base_url, api_prefix=self.prefix)
            for item in page.features
        ]
        links = search_links(
            base_url, query, transport, page, params=params, api_prefix=self.prefix
        )
        return _feature_collection(page, features, links)

    def normalize(
        self,
        transport: RequestTransport,
        params: Mapping[str, str],
        body: Body = None
    ) -> Query:
        """Canonical Query for a search request."""
        if transport is RequestTransport.GET:
            return query_from_params(params)

        query = query_from_body(body)
        if params.get("token"):
            query = query.with_token(params["token"])
        return query

    # ========================================================================
    # QUERYABLES
    # ========================================================================

    def get_queryables(self, collection_id: Optional[str] = None) -> Dict[str, Any]:
        """Queryables JSON Schema, global or for one collection."""
        if collection_id is not None:
            self._stored_collection(collection_id)
        return self.engine.get_queryables(collection_id)

    # ========================================================================
    # TRANSACTIONS - COLLECTIONS
    # ========================================================================

    def create_collection(self, document: Any, base_url: str) -> Dict[str, Any]:
        """POST /collections"""
        collection = _require_object(document, "collection")
        collection_id = validate_id(collection)

        if self.engine.get_collection(collection_id) is not None:
            raise ConflictError(f"collection '{collection_id}' already exists")

        self.engine.create_collection(collection)
        return enrich_collection_links(collection, base_url, api_prefix=self.prefix)

    def replace_collection(self, collection_id: str, document: Any, base_url: str) -> Dict[str, Any]:
        """PUT /collections/{id}"""
        collection = _require_object(document, "collection")
        if validate_id(collection) != collection_id:
            raise ParameterError(
                "collection path id does not match json id",
                field="id",
                value=collection.get("id")
            )

        self._stored_collection(collection_id)
        self.engine.update_collection(collection)
        return enrich_collection_links(collection, base_url, api_prefix=self.prefix)

    def patch_collection(self, collection_id: str, patch: Body, base_url: str) -> Dict[str, Any]:
        """PATCH /collections/{id} - merge-patch onto the stored collection."""
        stored = self._stored_collection(collection_id)

        merged = merge_json(patch, stored)
        merged["id"] = collection_id

        self.engine.update_collection(merged)
        return enrich_collection_links(merged, base_url, api_prefix=self.prefix)

    def delete_collection(self, collection_id: str) -> None:
        """DELETE /collections/{id}"""
        if not self.engine.delete_collection(collection_id):
            raise NotFoundError(f"collection '{collection_id}' not found")

    # ========================================================================
    # TRANSACTIONS - ITEMS
    # ========================================================================

    def _stored_item(self, collection_id: str, item_id: str) -> Dict[str, Any]:
        item = self.engine.get_item(collection_id, item_id)
        if item is None:
            logger.warning(f"item '{collection_id}/{item_id}' not found")
            raise NotFoundError(f"item '{item_id}' not found in collection '{collection_id}'")
        return item

    def create_item(self, collection_id: str, document: Any, base_url: str) -> Dict[str, Any]:
        """POST /collections/{cid}/items"""
        item = _require_object(document, "item")
        item_id = validate_id(item)
        validate_collection_ids_match(item, collection_id)
        self._stored_collection(collection_id)

        if self.engine.get_item(collection_id, item_id) is not None:
            raise ConflictError(f"item '{item_id}' already exists in collection '{collection_id}'")

        self.engine.create_item(item)
        return enrich_item_links(item, base_url, api_prefix=self.prefix)

    def replace_item(self, collection_id: str, item_id: str, document: Any, base_url: str) -> Dict[str, Any]:
        """PUT /collections/{cid}/items/{iid}"""
        item = _require_object(document, "item")
        if validate_id(item) != item_id:
            raise ParameterError(
                "item path id does not match json id",
                field="id",
                value=item.get("id")
            )
        validate_collection_ids_match(item, collection_id)

        self._stored_item(collection_id, item_id)
        self.engine.update_item(item)
        return enrich_item_links(item, base_url, api_prefix=self.prefix)

    def patch_item(self, collection_id: str, item_id: str, patch: Body, base_url: str) -> Dict[str, Any]:
        """PATCH /collections/{cid}/items/{iid} - merge-patch onto the stored item."""
        stored = self._stored_item(collection_id, item_id)

        merged = merge_json(patch, stored)
        merged["id"] = item_id
        merged["collection"] = collection_id

        self.engine.update_item(merged)
        return enrich_item_links(merged, base_url, api_prefix=self.prefix)

    def delete_item(self, collection_id: str, item_id: str) -> None:
        """DELETE /collections/{cid}/items/{iid}"""
        if not self.engine.delete_item(collection_id, item_id):
            raise NotFoundError(f"item '{item_id}' not found in collection '{collection_id}'")
