"""Tests for the Query Normalizer."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from stac_api.errors import ParameterError, STACError
from stac_api.models import FilterLang, Query, SortDirection
from stac_api.query import item_query, items_query, query_from_body, query_from_params


def _without_conf(query):
    document = query.to_search_json()
    document.pop("conf", None)
    return document


class TestQueryFromParams:
    """GET /search query-string form."""

    def test_empty_params(self):
        query = query_from_params({})
        assert query.collections is None
        assert query.ids is None
        assert query.bbox is None
        assert query.limit == 10
        assert query.filter is None
        assert query.filter_lang is None
        assert query.extra_config == {"nohydrate": False}

    def test_full_query(self):
        query = query_from_params({
            "collections": "landsat,naip",
            "ids": "a,b",
            "limit": "25",
            "bbox": "-10,-5,10,5",
            "datetime": "2024-01-01T00:00:00Z/..",
            "sortby": "-datetime,id",
            "fields": "id,-assets",
            "token": "next:abc",
            "unknown": "ignored",
        })
        assert query.collections == ("landsat", "naip")
        assert query.ids == ("a", "b")
        assert query.limit == 25
        assert query.bbox == (-10.0, -5.0, 10.0, 5.0)
        assert query.datetime == "2024-01-01T00:00:00Z/.."
        assert [s.direction for s in query.sortby] == [SortDirection.DESC, SortDirection.ASC]
        assert query.fields.include == ("id",)
        assert query.fields.exclude == ("assets",)
        assert query.token == "next:abc"

    def test_limit_zero_allowed(self):
        assert query_from_params({"limit": "0"}).limit == 0

    def test_limit_clamped(self):
        assert query_from_params({"limit": "50000"}).limit == 10000

    def test_negative_limit(self):
        with pytest.raises(ParameterError):
            query_from_params({"limit": "-5"})

    @pytest.mark.parametrize("bbox", ["1,2,3,4", "not,a,bbox", "1,2"])
    def test_bbox_and_intersects_exclusive(self, bbox):
        with pytest.raises(ParameterError) as exc:
            query_from_params({
                "bbox": bbox,
                "intersects": '{"type": "Point", "coordinates": [0, 0]}'
            })
        assert exc.value.field == "bbox,intersects"

    def test_text_filter_default_language(self):
        query = query_from_params({"filter": "cloud_cover < 10"})
        assert query.filter == "cloud_cover < 10"
        assert query.filter_lang is FilterLang.CQL2_TEXT
        assert query.to_search_json()["filter-lang"] == "cql2-text"

    def test_json_filter_string(self):
        query = query_from_params({
            "filter": '{"op": "<", "args": [{"property": "cloud_cover"}, 10]}',
            "filter-lang": "cql2-json",
        })
        assert query.filter == {"op": "<", "args": [{"property": "cloud_cover"}, 10]}

    def test_filter_lang_checked_without_filter(self):
        with pytest.raises(ParameterError):
            query_from_params({"filter-lang": "cql-text"})

    def test_first_failure_wins(self):
        # collections is validated before limit
        with pytest.raises(ParameterError) as exc:
            query_from_params({"collections": "a,,b", "limit": "x"})
        assert exc.value.field == "collections"

    def test_errors_are_validation_errors(self):
        with pytest.raises(STACError) as exc:
            query_from_params({"datetime": "nope"})
        assert exc.value.code == "ParameterError"
        assert exc.value.status_code == 400


class TestQueryFromBody:
    """POST /search JSON body form."""

    def test_empty_body(self):
        query = query_from_body(b"")
        assert query.limit == 10
        assert query.extra_config is None

    @pytest.mark.parametrize("limit", [None, 0])
    def test_missing_or_zero_limit_is_default(self, limit):
        body = {} if limit is None else {"limit": limit}
        assert query_from_body(json.dumps(body)).limit == 10

    @pytest.mark.parametrize("limit", [False, True])
    def test_boolean_limit_rejected(self, limit):
        with pytest.raises(ParameterError) as exc:
            query_from_body({"limit": limit})
        assert exc.value.field == "limit"

    def test_large_limit_clamped(self):
        assert query_from_body(b'{"limit": 20000}').limit == 10000

    def test_negative_limit(self):
        with pytest.raises(ParameterError):
            query_from_body(b'{"limit": -1}')

    def test_structured_members(self):
        query = query_from_body(json.dumps({
            "collections": ["landsat"],
            "intersects": {"type": "Point", "coordinates": [1, 2]},
            "sortby": [{"field": "datetime", "direction": "desc"}],
            "fields": {"include": ["id"], "exclude": []},
            "filter": {"op": "=", "args": [{"property": "id"}, "a"]},
            "conf": {"nohydrate": True},
        }))
        assert query.collections == ("landsat",)
        assert query.intersects == {"type": "Point", "coordinates": [1, 2]}
        assert query.sortby[0].direction is SortDirection.DESC
        assert query.fields.include == ("id",)
        assert query.filter_lang is FilterLang.CQL2_JSON
        assert query.extra_config == {"nohydrate": True}

    def test_extra_config_alias(self):
        query = query_from_body({"extraConfig": {"nohydrate": True}})
        assert query.extra_config == {"nohydrate": True}

    def test_bbox_and_intersects_exclusive(self):
        with pytest.raises(ParameterError):
            query_from_body({
                "bbox": [1, 2, 3, 4],
                "intersects": {"type": "Point", "coordinates": [0, 0]}
            })

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b'"text"'])
    def test_malformed_body(self, body):
        with pytest.raises(ParameterError) as exc:
            query_from_body(body)
        assert exc.value.code == "ParameterError"

    def test_non_string_token(self):
        with pytest.raises(ParameterError):
            query_from_body({"token": 5})

    def test_same_rules_as_query_string(self):
        from_params = query_from_params({
            "collections": "landsat",
            "limit": "5",
            "bbox": "1,2,3,4",
            "datetime": "2024-01-01T00:00:00Z",
            "sortby": "-datetime",
            "fields": "id,-assets",
        })
        from_body = query_from_body({
            "collections": ["landsat"],
            "limit": 5,
            "bbox": [1, 2, 3, 4],
            "datetime": "2024-01-01T00:00:00Z",
            "sortby": "-datetime",
            "fields": "id,-assets",
        })
        assert _without_conf(from_params) == _without_conf(from_body)


class TestCollectionScopedQueries:
    """Items listing and single-item lookup."""

    def test_items_query_scoped(self):
        query = items_query("landsat", {"limit": "3", "bbox": "1,2,3,4", "collections": "other"})
        assert query.collections == ("landsat",)
        assert query.limit == 3
        assert query.bbox == (1.0, 2.0, 3.0, 4.0)

    def test_items_query_token(self):
        assert items_query("landsat", {"token": "offset:5"}).token == "offset:5"

    def test_item_query(self):
        query = item_query("landsat", "scene-1")
        assert query.collections == ("landsat",)
        assert query.ids == ("scene-1",)
        assert query.limit == 1


class TestQueryModel:
    """Canonical Query behavior."""

    def test_frozen(self):
        query = Query(limit=5)
        with pytest.raises(PydanticValidationError):
            query.limit = 6

    def test_with_token_copies(self):
        query = Query(limit=5)
        paged = query.with_token("abc")
        assert paged.token == "abc"
        assert query.token is None

    def test_search_json_omits_unset(self):
        assert Query().to_search_json() == {"limit": 10}

    def test_search_json_wire_names(self):
        document = query_from_params({
            "filter": '{"op": "=", "args": [{"property": "id"}, "a"]}',
            "filter-lang": "cql2-json",
            "sortby": "id",
        }).to_search_json()
        assert document["filter-lang"] == "cql2-json"
        assert document["sortby"] == [{"field": "id", "direction": "asc"}]
        assert document["conf"] == {"nohydrate": False}
