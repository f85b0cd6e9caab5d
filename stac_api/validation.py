# ============================================================================
# CLAUDE CONTEXT - STAC QUERY FIELD VALIDATION
# ============================================================================
# STATUS: Standalone Module - pure per-field validators
# PURPOSE: Parse and validate each search parameter into its canonical form
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: parse_string_list, parse_limit, validate_limit, parse_bbox, validate_bbox,
#          parse_intersects, validate_datetime, parse_sortby, parse_fields,
#          parse_filter, validate_id, validate_collection_ids_match
# DEPENDENCIES: re, json, math, util_logger
# SCOPE: Used by stac_api.query (search/items) and stac_api.service (transactions)
# VALIDATION: Raises ParameterError with offending field and value
# PATTERNS: One pure function per field, no response side effects
# ============================================================================

"""
STAC Query Field Validation

Each function takes the raw client value for one field and either returns
the canonical value or raises ParameterError naming the field and the
offending token. Nothing here writes a response; rendering belongs to the
HTTP triggers.

The same functions serve both the query-string and the JSON body form, so
every rule is applied identically whichever way the client sent the search.
"""

import json
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from util_logger import LoggerFactory, ComponentType

from . import cql2
from .errors import ParameterError
from .models import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    FieldsSpec,
    FilterLang,
    SortDirection,
    SortField,
)

logger = LoggerFactory.create_logger(ComponentType.VALIDATOR, "QueryValidation")

OPEN_INTERVAL = ".."

_TIMESTAMP = (
    r"\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])"
    r"[T ]([01]\d|2[0-3]):[0-5]\d:[0-5]\d(\.\d+)?"
    r"(Z|[+-]([01]\d|2[0-3]):[0-5]\d)?"
)
TIMESTAMP_RE = re.compile(_TIMESTAMP)

_TERM_RE = re.compile(r"^([+-]?)(.*)$", re.DOTALL)

ID_RE = re.compile(r"^([a-zA-Z0-9\-_\.]+)$")

GEOMETRY_TYPES = {
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
}

BBOX_HELP = (
    "bbox must be 4 or 6 numbers separated by commas. The coordinate order is: "
    "lower left axis-1, lower left axis-2, minimum axis-3 (optional), "
    "upper right axis-1, upper right axis-2, maximum axis-3 (optional)"
)


# ============================================================================
# LISTS
# ============================================================================

def parse_string_list(value: Any, field: str) -> Optional[Tuple[str, ...]]:
    """
    Parse a collections/ids value.

    Accepts a comma-separated string or a JSON array of strings. None and
    the empty string mean "not supplied" and return None.

    Raises:
        ParameterError: non-string entries or empty names ("a,,b")
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        tokens = [token.strip() for token in value.split(",")]
    elif isinstance(value, (list, tuple)):
        if not all(isinstance(token, str) for token in value):
            raise ParameterError(
                f"{field} must be a list of strings",
                field=field,
                value=value
            )
        tokens = [token.strip() for token in value]
    else:
        raise ParameterError(
            f"{field} must be a comma separated string or a list of strings",
            field=field,
            value=value
        )

    if any(token == "" for token in tokens):
        raise ParameterError(
            f"{field} '{value}' contains an empty name",
            field=field,
            value=value
        )
    return tuple(tokens)


# ============================================================================
# LIMIT
# ============================================================================

def parse_limit(value: Optional[str]) -> int:
    """
    Parse a query-string limit.

    Absent means the default page size.

    Raises:
        ParameterError: not an integer, or negative
    """
    if value is None or value == "":
        return DEFAULT_LIMIT

    try:
        limit = int(value.strip())
    except ValueError:
        raise ParameterError(
            f"limit '{value}' could not be converted to int",
            field="limit",
            value=value
        )

    return validate_limit(limit)


def validate_limit(limit: Any) -> int:
    """
    Range-check a limit.

    Values above MAX_LIMIT are capped rather than rejected.
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ParameterError(
            f"limit '{limit}' must be an integer",
            field="limit",
            value=limit
        )

    if limit < 0:
        raise ParameterError(
            f"limit '{limit}' must be between 0 and {MAX_LIMIT:,}",
            field="limit",
            value=limit
        )

    if limit > MAX_LIMIT:
        logger.warning(f"limit {limit} exceeds maximum, capped to {MAX_LIMIT}")
        return MAX_LIMIT

    return limit


# ============================================================================
# SPATIAL
# ============================================================================

def parse_bbox(value: Any) -> Tuple[float, ...]:
    """
    Parse a bbox from a comma-separated string or a JSON array.

    Raises:
        ParameterError: first unparsable coordinate, or a length/latitude
            violation (see validate_bbox)
    """
    if isinstance(value, str):
        tokens: Sequence[Any] = value.split(",")
        raw = value
    elif isinstance(value, (list, tuple)):
        tokens = value
        raw = ",".join(str(token) for token in value)
    else:
        raise ParameterError(
            f"could not parse bbox: '{value}'; {BBOX_HELP}",
            field="bbox",
            value=value
        )

    coords: List[float] = []
    for token in tokens:
        coord = _to_coordinate(token)
        if coord is None:
            raise ParameterError(
                f"could not parse bbox: '{raw}'; offending coordinate '{token}'. {BBOX_HELP}",
                field="bbox",
                value=token
            )
        coords.append(coord)

    return validate_bbox(coords, raw)


def _to_coordinate(token: Any) -> Optional[float]:
    if isinstance(token, bool):
        return None
    if isinstance(token, (int, float)):
        coord = float(token)
    elif isinstance(token, str):
        try:
            coord = float(token.strip())
        except ValueError:
            return None
    else:
        return None
    return coord if math.isfinite(coord) else None


def validate_bbox(coords: Sequence[float], raw: str) -> Tuple[float, ...]:
    """
    Check bbox length and latitude ordering.

    4 coordinates: miny is index 1, maxy index 3.
    6 coordinates: miny is index 1, maxy index 4.
    """
    if len(coords) not in (4, 6):
        raise ParameterError(
            f"could not parse bbox: '{raw}'; {BBOX_HELP}",
            field="bbox",
            value=raw
        )

    upper = 3 if len(coords) == 4 else 4
    if coords[1] > coords[upper]:
        raise ParameterError(
            f"invalid bbox: '{raw}'; lower left axis-2 ({coords[1]}) "
            f"must not exceed upper right axis-2 ({coords[upper]})",
            field="bbox",
            value=raw
        )

    return tuple(coords)


def parse_intersects(value: Any) -> Dict[str, Any]:
    """
    Parse a GeoJSON geometry from a JSON string or an already-decoded object.

    Raises:
        ParameterError: malformed JSON or not a geometry object
    """
    if isinstance(value, str):
        try:
            geometry = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"error parsing GeoJSON intersects query: {value}")
            raise ParameterError(
                "could not parse intersects query",
                field="intersects",
                value=value
            )
    else:
        geometry = value

    if not isinstance(geometry, dict) or geometry.get("type") not in GEOMETRY_TYPES:
        raise ParameterError(
            f"intersects must be a GeoJSON geometry object of type "
            f"{', '.join(sorted(GEOMETRY_TYPES))}",
            field="intersects",
            value=value
        )

    member = "geometries" if geometry["type"] == "GeometryCollection" else "coordinates"
    if not isinstance(geometry.get(member), list):
        raise ParameterError(
            f"intersects {geometry['type']} is missing '{member}'",
            field="intersects",
            value=value
        )

    return geometry


# ============================================================================
# TEMPORAL
# ============================================================================

def validate_datetime(value: Any) -> Optional[str]:
    """
    Validate an RFC 3339 instant or a start/end interval.

    Either side of an interval may be open (".."), not both. Calendar
    validity is not checked: 2024-02-31 passes.
    """
    if value is None or value == "":
        return None

    if not isinstance(value, str):
        raise ParameterError(
            f"datetime '{value}' must be a string",
            field="datetime",
            value=value
        )

    if "/" in value:
        first, second = value.split("/", 1)

        if first == OPEN_INTERVAL and second == OPEN_INTERVAL:
            raise ParameterError(
                f"datetime '{value}': both sides of the interval cannot be open",
                field="datetime",
                value=value
            )

        if not _is_interval_bound(first):
            raise ParameterError(
                f"first datetime '{first}' is not RFC 3339 formatted or open",
                field="datetime",
                value=value
            )

        if not _is_interval_bound(second):
            raise ParameterError(
                f"second datetime '{second}' is not RFC 3339 formatted or open",
                field="datetime",
                value=value
            )

    elif not TIMESTAMP_RE.fullmatch(value):
        raise ParameterError(
            f"datetime '{value}' is not RFC 3339 formatted",
            field="datetime",
            value=value
        )

    return value


def _is_interval_bound(bound: str) -> bool:
    return bound == OPEN_INTERVAL or TIMESTAMP_RE.fullmatch(bound) is not None


# ============================================================================
# SORT AND FIELDS
# ============================================================================

def _split_terms(value: Any, field: str) -> Iterable[Tuple[str, str]]:
    """Yield (prefix, name) for each comma-separated term."""
    if not isinstance(value, str):
        raise ParameterError(
            f"{field} expression must be a string of the form ([+-]?)(name)",
            field=field,
            value=value
        )

    for term in value.split(","):
        match = _TERM_RE.match(term.strip())
        prefix, name = match.group(1), match.group(2).strip()
        if not name:
            raise ParameterError(
                f"{field} '{value}' contains an empty field name",
                field=field,
                value=value
            )
        yield prefix, name


def parse_sortby(value: Any) -> Tuple[SortField, ...]:
    """
    Parse sortby into ordered sort terms.

    Accepts "foo,-bar,+baz" or the JSON body form
    [{"field": "foo", "direction": "desc"}].
    """
    if value is None or value == "":
        return ()

    if isinstance(value, list):
        return tuple(_sort_from_object(entry) for entry in value)

    return tuple(
        SortField(
            field=name,
            direction=SortDirection.DESC if prefix == "-" else SortDirection.ASC
        )
        for prefix, name in _split_terms(value, "sortby")
    )


def _sort_from_object(entry: Any) -> SortField:
    if isinstance(entry, str):
        terms = parse_sortby(entry)
        if len(terms) != 1:
            raise ParameterError(
                f"sortby entry '{entry}' must name exactly one field",
                field="sortby",
                value=entry
            )
        return terms[0]

    if not isinstance(entry, dict) or not isinstance(entry.get("field"), str) or not entry["field"]:
        raise ParameterError(
            "sortby entries must be objects with a 'field' name",
            field="sortby",
            value=entry
        )

    direction = str(entry.get("direction", "asc")).lower()
    if direction not in (SortDirection.ASC.value, SortDirection.DESC.value):
        raise ParameterError(
            f"sortby direction '{entry.get('direction')}' must be 'asc' or 'desc'",
            field="sortby",
            value=entry
        )

    return SortField(field=entry["field"], direction=SortDirection(direction))


def parse_fields(value: Any) -> Optional[FieldsSpec]:
    """
    Parse the fields extension.

    "foo,-bar" -> include (foo), exclude (bar). The body form
    {"include": [...], "exclude": [...]} is also accepted. A name mentioned
    more than once lands wherever it was mentioned last.
    """
    if value is None or value == "":
        return None

    include: Dict[str, None] = {}
    exclude: Dict[str, None] = {}

    def add(name: str, excluded: bool) -> None:
        include.pop(name, None)
        exclude.pop(name, None)
        (exclude if excluded else include)[name] = None

    if isinstance(value, dict):
        for key in ("include", "exclude"):
            names = value.get(key) or []
            if not isinstance(names, list) or not all(isinstance(n, str) and n for n in names):
                raise ParameterError(
                    f"fields.{key} must be a list of field names",
                    field="fields",
                    value=value
                )
            for name in names:
                add(name, key == "exclude")
    else:
        for prefix, name in _split_terms(value, "fields"):
            add(name, prefix == "-")

    return FieldsSpec(include=tuple(include), exclude=tuple(exclude))


# ============================================================================
# FILTER
# ============================================================================

def parse_filter_lang(value: Any, default: FilterLang) -> FilterLang:
    """Resolve filter-lang, rejecting anything but cql2-text or cql2-json."""
    if value is None or value == "":
        return default

    try:
        return FilterLang(value)
    except ValueError:
        logger.warning(f"invalid filter-lang provided: {value}")
        raise ParameterError(
            f"invalid filter-lang '{value}'; must be one of 'cql2-text' or 'cql2-json'",
            field="filter-lang",
            value=value
        )


def parse_filter(
    value: Any,
    filter_lang: FilterLang
) -> Tuple[Optional[Any], Optional[FilterLang]]:
    """
    Normalize a filter and its language tag.

    cql2-text goes through the cql2 translation hook and is tagged cql2-json
    once translated. An expression the hook hands back as text keeps the
    cql2-text tag, so the query re-parses from its own search document.
    A cql2-json filter arriving as a string (query-string form) is decoded.

    Returns:
        (filter, FilterLang), or (None, None) if no filter
    """
    if value is None or value == "":
        return None, None

    if filter_lang is FilterLang.CQL2_TEXT:
        if not isinstance(value, str):
            raise ParameterError(
                "a cql2-text filter must be a string",
                field="filter",
                value=value
            )
        translated = cql2.text_to_json(value)
        if isinstance(translated, str):
            return translated, FilterLang.CQL2_TEXT
        return translated, FilterLang.CQL2_JSON

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ParameterError(
                f"filter '{value}' is not valid cql2-json",
                field="filter",
                value=value
            )

    if not isinstance(value, dict):
        raise ParameterError(
            "a cql2-json filter must be a JSON object",
            field="filter",
            value=value
        )

    return value, FilterLang.CQL2_JSON


# ============================================================================
# DOCUMENT IDENTIFIERS (transactions)
# ============================================================================

def validate_id(document: Mapping[str, Any]) -> str:
    """
    Require a document id matching ^([a-zA-Z0-9\\-_\\.]+)$.
    """
    if "id" not in document:
        raise ParameterError("id field is required", field="id")

    doc_id = document["id"]
    if not isinstance(doc_id, str):
        raise ParameterError(
            f"cannot parse id; must be a string conforming to format '{ID_RE.pattern}'",
            field="id",
            value=doc_id
        )

    if not ID_RE.match(doc_id):
        raise ParameterError(
            f"id must conform to format '{ID_RE.pattern}'",
            field="id",
            value=doc_id
        )

    return doc_id


def validate_collection_ids_match(document: Mapping[str, Any], expected: str) -> None:
    """Require an item's collection member to equal the path collection id."""
    if "collection" not in document:
        raise ParameterError(
            "invalid item json - collection parameter missing",
            field="collection"
        )

    specified = document["collection"]
    if not isinstance(specified, str):
        raise ParameterError(
            "invalid item json - collection parameter must be a string",
            field="collection",
            value=specified
        )

    if specified != expected:
        logger.warning(f"collection path id '{expected}' does not match json collection id '{specified}'")
        raise ParameterError(
            "collection path id does not match json collection id",
            field="collection",
            value=specified
        )
