# ============================================================================
# CLAUDE CONTEXT - STAC QUERY NORMALIZER
# ============================================================================
# STATUS: Standalone Module - request-to-query compiler
# PURPOSE: Turn query-string parameters or a JSON body into one canonical Query
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: query_from_params, query_from_body, items_query, item_query,
#          SEARCH_PARAM_KEYS, ITEMS_PARAM_KEYS, DEFAULT_CONF
# DEPENDENCIES: json, pydantic, stac_api.validation
# SCOPE: Called by STACAPIService for GET/POST /search and collection items
# VALIDATION: First failing field raises ParameterError
# PATTERNS: Pure functions, no I/O
# ============================================================================

"""
STAC Query Normalizer

Two entry points, one result:

    query_from_params({"bbox": "1,2,3,4", "limit": "5"})      # GET /search
    query_from_body(b'{"bbox": [1, 2, 3, 4], "limit": 5}')    # POST /search

Both apply the same per-field rules from stac_api.validation and return a
frozen Query. Validation stops at the first failure; fields are checked in
the order bbox/intersects exclusivity, collections, ids, limit, bbox,
intersects, datetime, filter-lang, filter, sortby, fields.
"""

import json
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from util_logger import LoggerFactory, ComponentType

from .errors import ParameterError, ServerError
from .models import DEFAULT_LIMIT, FilterLang, Query
from .validation import (
    parse_bbox,
    parse_fields,
    parse_filter,
    parse_filter_lang,
    parse_intersects,
    parse_limit,
    parse_sortby,
    parse_string_list,
    validate_datetime,
    validate_limit,
)

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "QueryNormalizer")

# Query-string parameters re-emitted in pagination links, in link order
SEARCH_PARAM_KEYS: Tuple[str, ...] = (
    "collections", "limit", "bbox", "datetime",
    "filter", "filter-lang", "sortby", "fields",
    "ids", "intersects",
)
ITEMS_PARAM_KEYS: Tuple[str, ...] = ("limit", "bbox", "datetime")

# pgSTAC search configuration sent with every query-string search
DEFAULT_CONF: Dict[str, Any] = {"nohydrate": False}


def _present(params: Mapping[str, Any], key: str) -> Optional[Any]:
    """Empty values count as absent."""
    value = params.get(key)
    if value is None or value == "":
        return None
    return value


def _check_exclusive(bbox: Any, intersects: Any) -> None:
    if bbox is not None and intersects is not None:
        raise ParameterError(
            "bbox and intersects are mutually exclusive; supply only one",
            field="bbox,intersects"
        )


def _build(**fields: Any) -> Query:
    """
    Construct the Query.

    Every field is validated beforehand, so a model failure here is an
    internal invariant violation.
    """
    try:
        return Query(**fields)
    except PydanticValidationError as e:
        logger.error(f"normalized query failed model validation: {e}")
        raise ServerError(f"could not construct canonical query: {e}") from e


# ============================================================================
# QUERY-STRING FORM
# ============================================================================

def query_from_params(params: Mapping[str, str]) -> Query:
    """
    Normalize GET /search query-string parameters.

    Args:
        params: Decoded query-string key/value pairs

    Returns:
        Canonical Query

    Raises:
        ParameterError: first invalid parameter
    """
    bbox_str = _present(params, "bbox")
    intersects_str = _present(params, "intersects")
    _check_exclusive(bbox_str, intersects_str)

    collections = parse_string_list(_present(params, "collections"), "collections")
    ids = parse_string_list(_present(params, "ids"), "ids")
    limit = parse_limit(_present(params, "limit"))
    bbox = parse_bbox(bbox_str) if bbox_str is not None else None
    intersects = parse_intersects(intersects_str) if intersects_str is not None else None
    datetime = validate_datetime(_present(params, "datetime"))

    filter_lang = parse_filter_lang(_present(params, "filter-lang"), FilterLang.CQL2_TEXT)
    cql_filter, filter_lang = parse_filter(_present(params, "filter"), filter_lang)

    sortby = parse_sortby(_present(params, "sortby"))
    fields = parse_fields(_present(params, "fields"))

    query = _build(
        collections=collections,
        ids=ids,
        bbox=bbox,
        intersects=intersects,
        datetime=datetime,
        limit=limit,
        sortby=sortby,
        fields=fields,
        filter=cql_filter,
        filter_lang=filter_lang,
        token=_present(params, "token"),
        extra_config=dict(DEFAULT_CONF)
    )

    logger.debug(f"normalized query-string search: {query.to_search_json()}")
    return query


# ============================================================================
# JSON BODY FORM
# ============================================================================

def _decode_body(body: Union[bytes, str, Mapping[str, Any], None]) -> Dict[str, Any]:
    if body is None or body == b"" or body == "":
        return {}

    if isinstance(body, Mapping):
        return dict(body)

    try:
        document = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("could not parse search body")
        raise ParameterError("could not parse search body as JSON", field="body")

    if not isinstance(document, dict):
        raise ParameterError("search body must be a JSON object", field="body")

    return document


def query_from_body(body: Union[bytes, str, Mapping[str, Any], None]) -> Query:
    """
    Normalize a POST /search JSON body.

    A missing or zero limit means the default page size. A filter without
    filter-lang is taken to be cql2-json.

    Args:
        body: Raw request body bytes/str, or an already-decoded mapping

    Returns:
        Canonical Query

    Raises:
        ParameterError: malformed JSON or first invalid member
    """
    document = _decode_body(body)

    raw_bbox = _present(document, "bbox")
    raw_intersects = _present(document, "intersects")
    _check_exclusive(raw_bbox, raw_intersects)

    collections = parse_string_list(_present(document, "collections"), "collections")
    ids = parse_string_list(_present(document, "ids"), "ids")

    raw_limit = document.get("limit")
    # False == 0, so booleans must not take the default branch
    if raw_limit is None or (raw_limit == 0 and not isinstance(raw_limit, bool)):
        limit = DEFAULT_LIMIT
    elif isinstance(raw_limit, str):
        limit = parse_limit(raw_limit)
    else:
        limit = validate_limit(raw_limit)

    bbox = parse_bbox(raw_bbox) if raw_bbox is not None else None
    intersects = parse_intersects(raw_intersects) if raw_intersects is not None else None
    datetime = validate_datetime(_present(document, "datetime"))

    raw_lang = document.get("filter-lang", document.get("filter_lang"))
    filter_lang = parse_filter_lang(raw_lang, FilterLang.CQL2_JSON)
    cql_filter, filter_lang = parse_filter(_present(document, "filter"), filter_lang)

    sortby = parse_sortby(_present(document, "sortby"))
    fields = parse_fields(_present(document, "fields"))

    token = document.get("token")
    if token is not None and not isinstance(token, str):
        raise ParameterError("token must be a string", field="token", value=token)

    conf = document.get("conf", document.get("extraConfig"))
    if conf is not None and not isinstance(conf, dict):
        raise ParameterError("conf must be a JSON object", field="conf", value=conf)

    query = _build(
        collections=collections,
        ids=ids,
        bbox=bbox,
        intersects=intersects,
        datetime=datetime,
        limit=limit,
        sortby=sortby,
        fields=fields,
        filter=cql_filter,
        filter_lang=filter_lang,
        token=token or None,
        extra_config=conf
    )

    logger.debug(f"normalized body search: {query.to_search_json()}")
    return query


# ============================================================================
# COLLECTION-SCOPED QUERIES
# ============================================================================

def items_query(collection_id: str, params: Mapping[str, str]) -> Query:
    """
    Normalize GET /collections/{id}/items parameters.

    Only limit, bbox, datetime and token apply; the query is always scoped
    to the path collection.
    """
    limit = parse_limit(_present(params, "limit"))
    bbox_str = _present(params, "bbox")
    bbox = parse_bbox(bbox_str) if bbox_str is not None else None
    datetime = validate_datetime(_present(params, "datetime"))

    return _build(
        collections=(collection_id,),
        bbox=bbox,
        datetime=datetime,
        limit=limit,
        token=_present(params, "token"),
        extra_config=dict(DEFAULT_CONF)
    )


def item_query(collection_id: str, item_id: str) -> Query:
    """Query for a single item by collection and id."""
    return _build(
        collections=(collection_id,),
        ids=(item_id,),
        limit=1,
        extra_config=dict(DEFAULT_CONF)
    )
