"""
Shared test fixtures.

Provides an in-memory SearchEngine with two sample collections so the
service and trigger layers run without PostgreSQL.
"""

import copy

import pytest

from stac_api.config import STACAPIConfig
from stac_api.engine import SearchEngine
from stac_api.models import SearchPage
from stac_api.service import STACAPIService

BASE_URL = "https://stac.example.com"


class FakeSearchEngine(SearchEngine):
    """
    Dict-backed engine.

    Tokens are "offset:<n>" so pagination is deterministic. Every query
    handed to search() is recorded in self.queries.
    """

    def __init__(self):
        self.collections = {}
        self.items = {}
        self.queries = []

    def add_collection(self, collection):
        self.collections[collection["id"]] = copy.deepcopy(collection)

    def add_item(self, item):
        self.items[(item["collection"], item["id"])] = copy.deepcopy(item)

    def search(self, query):
        self.queries.append(query)

        matches = [
            copy.deepcopy(item)
            for (collection_id, item_id), item in sorted(self.items.items())
            if (query.collections is None or collection_id in query.collections)
            and (query.ids is None or item_id in query.ids)
        ]

        offset = int(query.token.split(":", 1)[1]) if query.token else 0
        end = offset + query.limit
        return SearchPage(
            features=matches[offset:end],
            next_token=f"offset:{end}" if end < len(matches) else None,
            prev_token=f"offset:{max(offset - query.limit, 0)}" if offset > 0 else None,
            context={"limit": query.limit, "returned": len(matches[offset:end])}
        )

    def get_queryables(self, collection_id=None):
        return {
            "$id": f"queryables/{collection_id or 'global'}",
            "type": "object",
            "properties": {"datetime": {"type": "string", "format": "date-time"}}
        }

    def list_collections(self):
        return [copy.deepcopy(self.collections[key]) for key in sorted(self.collections)]

    def get_collection(self, collection_id):
        collection = self.collections.get(collection_id)
        return copy.deepcopy(collection) if collection is not None else None

    def create_collection(self, collection):
        self.add_collection(collection)

    def update_collection(self, collection):
        self.add_collection(collection)

    def delete_collection(self, collection_id):
        return self.collections.pop(collection_id, None) is not None

    def get_item(self, collection_id, item_id):
        item = self.items.get((collection_id, item_id))
        return copy.deepcopy(item) if item is not None else None

    def create_item(self, item):
        self.add_item(item)

    def update_item(self, item):
        self.add_item(item)

    def delete_item(self, collection_id, item_id):
        return self.items.pop((collection_id, item_id), None) is not None


def make_item(collection_id, item_id, **properties):
    return {
        "type": "Feature",
        "stac_version": "1.0.0",
        "id": item_id,
        "collection": collection_id,
        "geometry": {"type": "Point", "coordinates": [-77.0, 38.9]},
        "bbox": [-77.0, 38.9, -77.0, 38.9],
        "properties": {"datetime": "2024-06-01T00:00:00Z", **properties},
        "links": [
            {"rel": "collection", "href": f"s3://bucket/{collection_id}.json", "type": "application/json"}
        ],
        "assets": {}
    }


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def stac_config():
    """Config with fixed catalog metadata, independent of the environment."""
    return STACAPIConfig(
        catalog_id="test-catalog",
        catalog_title="Test Catalog",
        catalog_description="Catalog used by the test suite",
        stac_base_url=None
    )


@pytest.fixture
def engine():
    """Engine holding two collections; 'landsat' has five items, 'naip' none."""
    engine = FakeSearchEngine()
    engine.add_collection({
        "type": "Collection",
        "id": "landsat",
        "title": "Landsat",
        "description": "Landsat scenes",
        "license": "proprietary",
        "extent": {"spatial": {"bbox": [[-180, -90, 180, 90]]}, "temporal": {"interval": [[None, None]]}},
        "links": [{"rel": "license", "href": "https://example.com/license"}]
    })
    engine.add_collection({
        "type": "Collection",
        "id": "naip",
        "title": "NAIP",
        "description": "Aerial imagery",
        "license": "public-domain",
        "extent": {"spatial": {"bbox": [[-125, 24, -66, 50]]}, "temporal": {"interval": [[None, None]]}},
        "links": []
    })
    for index in range(5):
        engine.add_item(make_item("landsat", f"scene-{index}", cloud_cover=index * 10))
    return engine


@pytest.fixture
def service(stac_config, engine):
    return STACAPIService(stac_config, engine)
