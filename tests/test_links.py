"""Tests for the Link Builder."""

from urllib.parse import parse_qs, urlparse

import pytest

from stac_api.links import (
    build_link,
    build_post_link,
    catalog_links,
    enrich_collection_links,
    enrich_item_links,
    items_links,
    pagination_links,
    search_links,
)
from stac_api.models import Link, Query, RequestTransport, SearchPage
from stac_api.query import ITEMS_PARAM_KEYS, query_from_body, query_from_params

BASE = "https://stac.example.com"
PREFIX = "/api/stac/v1"


def _rels(links):
    return [link.rel for link in links]


def _reparse(href):
    """Query-string params of an href, one value per key."""
    return {key: values[0] for key, values in parse_qs(urlparse(href).query).items()}


class TestPrimitives:
    """build_link / build_post_link."""

    def test_build_link_href(self):
        link = build_link(BASE, "root", "/", "application/json")
        assert link.href == f"{BASE}{PREFIX}/"
        assert link.method is None
        assert link.to_dict() == {"rel": "root", "type": "application/json", "href": f"{BASE}{PREFIX}/"}

    def test_custom_prefix(self):
        link = build_link(BASE, "data", "/collections", "application/json", api_prefix="/stac")
        assert link.href == f"{BASE}/stac/collections"

    def test_post_link(self):
        link = build_post_link(BASE, "next", "/search", "application/geo+json", {"limit": 5})
        assert link.method == "POST"
        assert link.body == {"limit": 5}
        assert link.to_dict()["method"] == "POST"


class TestGetPagination:
    """Links for query-string requests."""

    def test_next_without_previous(self):
        params = {"limit": "5"}
        links = search_links(
            BASE, query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1"), params=params
        )
        assert _rels(links).count("next") == 1
        assert _rels(links).count("previous") == 0

    def test_ordering(self):
        params = {"limit": "5"}
        links = search_links(
            BASE, query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1", prev_token="p1"), params=params
        )
        assert _rels(links) == ["self", "root", "parent", "next", "previous"]

    def test_no_tokens_no_continuations(self):
        links = search_links(BASE, query_from_params({}), RequestTransport.GET, SearchPage(), params={})
        assert _rels(links) == ["self", "root", "parent"]
        assert links[0].href == f"{BASE}{PREFIX}/search"

    def test_previous_carries_previous_token(self):
        params = {"limit": "5"}
        links = pagination_links(
            BASE, "/search", query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1", prev_token="p1"), params=params
        )
        assert _reparse(links["next"].href)["token"] == "n1"
        assert _reparse(links["previous"].href)["token"] == "p1"

    def test_self_omits_token_unless_supplied(self):
        params = {"limit": "5"}
        links = pagination_links(
            BASE, "/search", query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1"), params=params
        )
        assert "token" not in _reparse(links["self"].href)

        params = {"limit": "5", "token": "t0"}
        links = pagination_links(
            BASE, "/search", query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1"), params=params
        )
        assert _reparse(links["self"].href)["token"] == "t0"
        assert _reparse(links["next"].href)["token"] == "n1"

    def test_only_supplied_params_in_fixed_order(self):
        params = {"sortby": "id", "bbox": "1,2,3,4", "limit": "5", "ids": "a", "collections": "c1"}
        links = pagination_links(
            BASE, "/search", query_from_params(params), RequestTransport.GET,
            SearchPage(), params=params
        )
        assert links["self"].href == f"{BASE}{PREFIX}/search?collections=c1&limit=5&bbox=1,2,3,4&sortby=id&ids=a"

    def test_plus_sign_survives(self):
        params = {"sortby": "+datetime,-id"}
        links = pagination_links(
            BASE, "/search", query_from_params(params), RequestTransport.GET,
            SearchPage(next_token="n1"), params=params
        )
        assert "sortby=%2Bdatetime,-id" in links["next"].href
        assert _reparse(links["next"].href)["sortby"] == "+datetime,-id"

    @pytest.mark.parametrize("params", [
        {"limit": "5", "bbox": "1,2,3,4"},
        {"collections": "landsat,naip", "datetime": "2024-01-01T00:00:00Z/..", "sortby": "+datetime,-id"},
        {"filter": "cloud_cover < 10", "filter-lang": "cql2-text", "fields": "id,-assets"},
    ])
    def test_self_link_round_trip(self, params):
        query = query_from_params(params)
        links = pagination_links(BASE, "/search", query, RequestTransport.GET, SearchPage(), params=params)
        assert query_from_params(_reparse(links["self"].href)) == query

    @pytest.mark.parametrize("params", [
        {"ids": "scene-1,scene-4", "limit": "1"},
        {"intersects": '{"type": "Point", "coordinates": [1.5, 2]}', "limit": "1"},
    ])
    def test_next_link_keeps_ids_and_intersects(self, params):
        query = query_from_params(params)
        links = pagination_links(
            BASE, "/search", query, RequestTransport.GET, SearchPage(next_token="n1"), params=params
        )
        assert query_from_params(_reparse(links["next"].href)) == query.with_token("n1")

    def test_next_link_round_trip(self):
        params = {"limit": "5", "bbox": "1,2,3,4"}
        query = query_from_params(params)
        links = pagination_links(
            BASE, "/search", query, RequestTransport.GET, SearchPage(next_token="n1"), params=params
        )
        assert query_from_params(_reparse(links["next"].href)) == query.with_token("n1")


class TestPostPagination:
    """Links for JSON-body requests."""

    def test_body_carries_whole_query(self):
        query = query_from_body({"collections": ["landsat"], "limit": 5, "sortby": "-datetime"})
        links = pagination_links(
            BASE, "/search", query, RequestTransport.POST,
            SearchPage(next_token="n1", prev_token="p1")
        )
        assert links["self"].body == query.to_search_json()
        assert links["next"].body == query.with_token("n1").to_search_json()
        assert links["previous"].body == query.with_token("p1").to_search_json()

    def test_post_shape(self):
        query = query_from_body({"limit": 5})
        links = search_links(BASE, query, RequestTransport.POST, SearchPage(next_token="n1"))
        assert _rels(links) == ["self", "root", "parent", "next"]
        for link in (links[0], links[-1]):
            assert link.method == "POST"
            assert link.href == f"{BASE}{PREFIX}/search"
        assert links[1].method is None

    def test_body_reparses_to_same_query(self):
        query = query_from_body({"bbox": [1, 2, 3, 4], "limit": 7, "conf": {"nohydrate": True}})
        links = pagination_links(BASE, "/search", query, RequestTransport.POST, SearchPage(next_token="n1"))
        assert query_from_body(links["next"].body) == query.with_token("n1")

    def test_text_filter_body_reposts(self):
        query = query_from_body({"filter": "eo:cloud_cover < 10", "filter-lang": "cql2-text"})
        links = pagination_links(BASE, "/search", query, RequestTransport.POST, SearchPage(next_token="n1"))

        assert links["next"].body["filter-lang"] == "cql2-text"
        assert query_from_body(links["next"].body) == query.with_token("n1")

    def test_get_text_filter_reposts_as_body(self):
        query = query_from_params({"filter": "id = 'a'"})
        links = pagination_links(BASE, "/search", query, RequestTransport.POST, SearchPage())
        assert query_from_body(links["self"].body).filter == "id = 'a'"

    def test_self_keeps_original_token(self):
        query = query_from_body({"token": "t0"})
        links = pagination_links(BASE, "/search", query, RequestTransport.POST, SearchPage())
        assert links["self"].body["token"] == "t0"
        assert set(links) == {"self"}


class TestItemsLinks:
    """Collection items listing."""

    def test_ordering_and_paths(self):
        params = {"limit": "2", "sortby": "id"}
        links = items_links(
            BASE, "landsat", query_from_params({"limit": "2"}),
            SearchPage(next_token="n1", prev_token="p1"),
            params=params, param_keys=ITEMS_PARAM_KEYS
        )
        assert _rels(links) == ["self", "root", "parent", "collection", "next", "previous"]
        assert links[0].href == f"{BASE}{PREFIX}/collections/landsat/items?limit=2"
        assert links[2].href == f"{BASE}{PREFIX}/collections/landsat"
        assert links[4].href == f"{BASE}{PREFIX}/collections/landsat/items?limit=2&token=n1"
        assert links[5].href == f"{BASE}{PREFIX}/collections/landsat/items?limit=2&token=p1"


class TestEnrichment:
    """Server links on items, collections and the catalog."""

    def test_item_links(self, item_factory):
        item = item_factory("landsat", "scene-1")
        enriched = enrich_item_links(item, BASE)

        assert [link["rel"] for link in enriched["links"]] == ["collection", "parent", "root", "self"]
        assert enriched["links"][0]["href"] == f"{BASE}{PREFIX}/collections/landsat"
        assert enriched["links"][-1]["href"] == f"{BASE}{PREFIX}/collections/landsat/items/scene-1"
        assert enriched["links"][-1]["type"] == "application/geo+json"
        # input untouched
        assert item["links"][0]["href"] == "s3://bucket/landsat.json"
        assert len(item["links"]) == 1

    def test_item_without_links(self):
        enriched = enrich_item_links({"id": "a", "collection": "c"}, BASE)
        assert [link["rel"] for link in enriched["links"]] == ["parent", "root", "self"]

    def test_collection_links(self):
        enriched = enrich_collection_links({"id": "landsat", "links": [{"rel": "license", "href": "x"}]}, BASE)
        assert [link["rel"] for link in enriched["links"]] == ["license", "self", "root", "parent", "items"]
        assert enriched["links"][-1]["href"] == f"{BASE}{PREFIX}/collections/landsat/items"

    def test_catalog_links(self):
        links = catalog_links(BASE, [{"id": "landsat", "title": "Landsat"}, {"id": "naip"}])
        assert _rels(links) == [
            "self", "root", "data", "conformance", "search", "search",
            "http://www.opengis.net/def/rel/ogc/1.0/queryables", "child", "child",
        ]
        assert [link.method for link in links if link.rel == "search"] == ["GET", "POST"]
        assert links[-2].title == "Landsat"
        assert links[-1].href == f"{BASE}{PREFIX}/collections/naip"
        assert "title" not in links[-1].to_dict()


class TestSearchPage:
    """Token extraction from pgSTAC results."""

    def test_top_level_tokens(self):
        page = SearchPage.from_search_result({"features": [{"id": "a"}], "next": "n1", "prev": "p1"})
        assert page.next_token == "n1"
        assert page.prev_token == "p1"
        assert len(page.features) == 1

    def test_tokens_from_links(self):
        page = SearchPage.from_search_result({
            "features": [],
            "links": [
                {"rel": "next", "href": "http://db/search?token=next%3Aabc"},
                {"rel": "prev", "body": {"token": "prev:xyz"}},
            ],
        })
        assert page.next_token == "next:abc"
        assert page.prev_token == "prev:xyz"

    def test_empty_result(self):
        page = SearchPage.from_search_result(None)
        assert page.features == []
        assert page.next_token is None

    def test_link_model_excludes_unset(self):
        link = Link(rel="self", type="application/json", href="http://x")
        assert set(link.to_dict()) == {"rel", "type", "href"}

    def test_query_equality_ignores_identity(self):
        assert Query(limit=5) == Query(limit=5)
