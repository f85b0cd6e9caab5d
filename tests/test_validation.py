"""Tests for the per-field validation rules."""

import pytest

from stac_api import cql2
from stac_api.errors import ParameterError
from stac_api.models import MAX_LIMIT, FilterLang, SortDirection
from stac_api.validation import (
    parse_bbox,
    parse_fields,
    parse_filter,
    parse_filter_lang,
    parse_intersects,
    parse_limit,
    parse_sortby,
    parse_string_list,
    validate_collection_ids_match,
    validate_datetime,
    validate_id,
    validate_limit,
)


class TestBbox:
    """bbox length and latitude ordering."""

    @pytest.mark.parametrize("raw, expected", [
        ("1,2,3,4", (1.0, 2.0, 3.0, 4.0)),
        ("-180,-90,180,90", (-180.0, -90.0, 180.0, 90.0)),
        ("0.5,1.5,0.5,1.5", (0.5, 1.5, 0.5, 1.5)),
        ("1,2,0,3,4,100", (1.0, 2.0, 0.0, 3.0, 4.0, 100.0)),
        (" 1, 2, 3, 4", (1.0, 2.0, 3.0, 4.0)),
    ])
    def test_well_formed(self, raw, expected):
        assert parse_bbox(raw) == expected

    def test_json_array(self):
        assert parse_bbox([1, 2, 3, 4]) == (1.0, 2.0, 3.0, 4.0)

    @pytest.mark.parametrize("raw", [
        "1,2,3",
        "1,2,3,4,5",
        "1,2,3,4,5,6,7",
        "0,5,1,4",
        "0,5,0,1,4,10",
    ])
    def test_length_or_latitude_violation(self, raw):
        with pytest.raises(ParameterError) as exc:
            parse_bbox(raw)
        assert raw in exc.value.description
        assert exc.value.field == "bbox"

    def test_six_coordinates_use_index_four_for_upper_latitude(self):
        # index 3 is smaller than index 1, but index 4 is the upper latitude
        assert parse_bbox("0,5,0,1,6,10") == (0.0, 5.0, 0.0, 1.0, 6.0, 10.0)

    def test_names_offending_token(self):
        with pytest.raises(ParameterError) as exc:
            parse_bbox("1,abc,3,4")
        assert exc.value.value == "abc"
        assert "abc" in exc.value.description

    @pytest.mark.parametrize("raw", ["nan,0,1,1", "0,0,inf,1"])
    def test_non_finite_rejected(self, raw):
        with pytest.raises(ParameterError):
            parse_bbox(raw)

    def test_boolean_coordinate_rejected(self):
        with pytest.raises(ParameterError):
            parse_bbox([True, 0, 1, 1])


class TestLimit:
    """limit parsing and clamping."""

    def test_absent_is_default(self):
        assert parse_limit(None) == 10
        assert parse_limit("") == 10

    @pytest.mark.parametrize("raw, expected", [
        ("0", 0),
        ("5", 5),
        ("10000", 10000),
        ("10001", MAX_LIMIT),
        ("999999", MAX_LIMIT),
    ])
    def test_in_range_and_clamped(self, raw, expected):
        assert parse_limit(raw) == expected

    @pytest.mark.parametrize("raw", ["-1", "-10000"])
    def test_negative_rejected(self, raw):
        with pytest.raises(ParameterError):
            parse_limit(raw)

    def test_unparsable_names_value(self):
        with pytest.raises(ParameterError) as exc:
            parse_limit("ten")
        assert "ten" in exc.value.description

    def test_validate_limit_rejects_non_integers(self):
        with pytest.raises(ParameterError):
            validate_limit(2.5)
        with pytest.raises(ParameterError):
            validate_limit(True)


class TestDatetime:
    """RFC 3339 instants and intervals."""

    @pytest.mark.parametrize("value", [
        "2024-01-01T00:00:00Z",
        "2024-01-01 00:00:00Z",
        "2024-01-01T12:30:45+05:30",
        "2024-01-01T12:30:45.123Z",
        "2024-01-01T00:00:00",
        "2024-02-31T00:00:00Z",
        "../2024-01-01T00:00:00Z",
        "2024-01-01T00:00:00Z/..",
        "2023-01-01T00:00:00Z/2024-01-01T00:00:00Z",
    ])
    def test_accepted(self, value):
        assert validate_datetime(value) == value

    @pytest.mark.parametrize("value", [
        "../..",
        "2024-13-01T00:00:00Z",
        "2024-01-32T00:00:00Z",
        "2024-01-01",
        "yesterday",
        "2024-01-01T00:00:00Z/tomorrow",
        "2024-01-01T25:00:00Z",
    ])
    def test_rejected(self, value):
        with pytest.raises(ParameterError) as exc:
            validate_datetime(value)
        assert exc.value.field == "datetime"

    def test_absent(self):
        assert validate_datetime(None) is None


class TestLists:
    """collections and ids."""

    def test_comma_separated(self):
        assert parse_string_list("a,b,c", "collections") == ("a", "b", "c")

    def test_json_array(self):
        assert parse_string_list(["a", "b"], "ids") == ("a", "b")

    def test_absent_is_unset(self):
        assert parse_string_list(None, "collections") is None
        assert parse_string_list("", "collections") is None

    def test_empty_name_rejected(self):
        with pytest.raises(ParameterError):
            parse_string_list("a,,b", "collections")

    def test_non_string_entries_rejected(self):
        with pytest.raises(ParameterError):
            parse_string_list(["a", 1], "ids")


class TestSortAndFields:
    """sortby and fields tokenization."""

    def test_sortby_directions(self):
        terms = parse_sortby("foo,-bar,+baz")
        assert [(t.field, t.direction) for t in terms] == [
            ("foo", SortDirection.ASC),
            ("bar", SortDirection.DESC),
            ("baz", SortDirection.ASC),
        ]

    def test_sortby_plus_decoded_as_space(self):
        terms = parse_sortby(" datetime")
        assert terms[0].field == "datetime"
        assert terms[0].direction is SortDirection.ASC

    def test_sortby_body_objects(self):
        terms = parse_sortby([{"field": "datetime", "direction": "desc"}, {"field": "id"}])
        assert [(t.field, t.direction) for t in terms] == [
            ("datetime", SortDirection.DESC),
            ("id", SortDirection.ASC),
        ]

    def test_sortby_bad_direction(self):
        with pytest.raises(ParameterError):
            parse_sortby([{"field": "id", "direction": "sideways"}])

    def test_sortby_non_string(self):
        with pytest.raises(ParameterError):
            parse_sortby(42)

    def test_fields_include_exclude(self):
        fields_spec = parse_fields("foo,-bar")
        assert fields_spec.include == ("foo",)
        assert fields_spec.exclude == ("bar",)

    def test_fields_last_mention_wins(self):
        fields_spec = parse_fields("foo,-foo")
        assert fields_spec.include == ()
        assert fields_spec.exclude == ("foo",)

    def test_fields_body_form(self):
        fields_spec = parse_fields({"include": ["id", "geometry"], "exclude": ["assets"]})
        assert fields_spec.include == ("id", "geometry")
        assert fields_spec.exclude == ("assets",)

    def test_fields_empty_name(self):
        with pytest.raises(ParameterError):
            parse_fields("foo,,bar")


class TestFilter:
    """filter-lang enumeration and filter normalization."""

    @pytest.mark.parametrize("value", ["cql-text", "cql2", "CQL2-JSON", "sql"])
    def test_unknown_filter_lang(self, value):
        with pytest.raises(ParameterError) as exc:
            parse_filter_lang(value, FilterLang.CQL2_TEXT)
        assert exc.value.field == "filter-lang"

    def test_filter_lang_default(self):
        assert parse_filter_lang(None, FilterLang.CQL2_JSON) is FilterLang.CQL2_JSON

    def test_json_string_decoded(self):
        expression, lang = parse_filter('{"op": "=", "args": [{"property": "id"}, "a"]}', FilterLang.CQL2_JSON)
        assert expression == {"op": "=", "args": [{"property": "id"}, "a"]}
        assert lang is FilterLang.CQL2_JSON

    def test_untranslated_text_keeps_text_tag(self):
        expression, lang = parse_filter("id = 'a'", FilterLang.CQL2_TEXT)
        assert expression == "id = 'a'"
        assert lang is FilterLang.CQL2_TEXT

    def test_text_translator_hook(self):
        cql2.set_text_translator(lambda text: {"op": "text", "args": [text]})
        try:
            expression, lang = parse_filter("id = 'a'", FilterLang.CQL2_TEXT)
        finally:
            cql2.set_text_translator(None)
        assert expression == {"op": "text", "args": ["id = 'a'"]}
        assert lang is FilterLang.CQL2_JSON

    def test_bad_json_filter(self):
        with pytest.raises(ParameterError):
            parse_filter("{not json", FilterLang.CQL2_JSON)

    def test_no_filter(self):
        assert parse_filter(None, FilterLang.CQL2_TEXT) == (None, None)


class TestIntersects:
    """GeoJSON geometry parsing."""

    def test_point_string(self):
        geometry = parse_intersects('{"type": "Point", "coordinates": [0, 0]}')
        assert geometry["type"] == "Point"

    def test_object(self):
        polygon = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]}
        assert parse_intersects(polygon) == polygon

    @pytest.mark.parametrize("value", [
        "{not json",
        '{"type": "Feature", "geometry": null}',
        '{"type": "Point"}',
        "[1, 2]",
    ])
    def test_rejected(self, value):
        with pytest.raises(ParameterError):
            parse_intersects(value)


class TestDocumentIds:
    """Transaction id checks."""

    @pytest.mark.parametrize("doc_id", ["abc", "a-b_c.d", "Scene_01"])
    def test_valid(self, doc_id):
        assert validate_id({"id": doc_id}) == doc_id

    @pytest.mark.parametrize("document", [{}, {"id": 5}, {"id": "has space"}, {"id": "a/b"}, {"id": ""}])
    def test_invalid(self, document):
        with pytest.raises(ParameterError):
            validate_id(document)

    def test_collection_match(self):
        validate_collection_ids_match({"collection": "landsat"}, "landsat")

    @pytest.mark.parametrize("document", [{}, {"collection": 1}, {"collection": "naip"}])
    def test_collection_mismatch(self, document):
        with pytest.raises(ParameterError):
            validate_collection_ids_match(document, "landsat")
