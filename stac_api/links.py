# ============================================================================
# CLAUDE CONTEXT - STAC LINK BUILDER
# ============================================================================
# STATUS: Standalone Module - HATEOAS link construction
# PURPOSE: Static links, pagination links that mirror the original request, link enrichment
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: build_link, build_post_link, pagination_links, search_links, items_links,
#          enrich_item_links, enrich_collection_links, catalog_links
# DEPENDENCIES: json, urllib.parse, stac_api.models
# SCOPE: Used by STACAPIService for every response carrying links
# PATTERNS: Pure functions returning Link models
# ============================================================================

"""
STAC Link Builder

Static links are always GET-shaped:

    build_link("https://host", "root", "/", MEDIA_JSON)
    -> href "https://host/api/stac/v1/"

Pagination links reproduce the originating request exactly, changing only
the continuation token:

    GET  -> every query parameter the client supplied, re-encoded into the
            href query string, plus token=<next|prev>
    POST -> the whole canonical Query as the link body, method POST, href is
            the bare endpoint

next/previous are only emitted when the search engine reported a token.
"""

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import quote, urlencode

from util_logger import LoggerFactory, ComponentType

from .errors import ServerError
from .models import Link, Query, RequestTransport, SearchPage
from .query import SEARCH_PARAM_KEYS

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "LinkBuilder")

API_PREFIX = "/api/stac/v1"

MEDIA_JSON = "application/json"
MEDIA_GEOJSON = "application/geo+json"


# ============================================================================
# PRIMITIVES
# ============================================================================

def build_link(
    base_url: str,
    rel: str,
    path: str,
    media_type: str,
    title: Optional[str] = None,
    api_prefix: str = API_PREFIX
) -> Link:
    """
    GET-shaped link: href = base_url + api_prefix + path.
    """
    return Link(
        rel=rel,
        type=media_type,
        title=title,
        href=f"{base_url}{api_prefix}{path}"
    )


def build_post_link(
    base_url: str,
    rel: str,
    path: str,
    media_type: str,
    body: Dict[str, Any],
    title: Optional[str] = None,
    api_prefix: str = API_PREFIX
) -> Link:
    """POST-shaped link carrying a request body."""
    return Link(
        rel=rel,
        type=media_type,
        title=title,
        href=f"{base_url}{api_prefix}{path}",
        method="POST",
        body=body
    )


def _serialize_query(query: Query) -> Dict[str, Any]:
    """
    Render a query as a detached JSON-safe body.

    A canonical Query always serializes; failure here is a server bug.
    """
    try:
        return json.loads(json.dumps(query.to_search_json()))
    except (TypeError, ValueError) as e:
        logger.error(f"error serializing query: {e}", exc_info=True)
        raise ServerError("error serializing query for link body") from e


def _encode_params(
    params: Mapping[str, str],
    keys: Sequence[str],
    token: Optional[str]
) -> str:
    pairs = [(key, params[key]) for key in keys if params.get(key)]
    if token:
        pairs.append(("token", token))
    # '+' must be percent-encoded or sortby=+name decodes to a space
    return urlencode(pairs, safe=",:", quote_via=quote)


def _get_link(
    base_url: str,
    rel: str,
    path: str,
    params: Mapping[str, str],
    keys: Sequence[str],
    token: Optional[str],
    api_prefix: str
) -> Link:
    query_string = _encode_params(params, keys, token)
    href_path = f"{path}?{query_string}" if query_string else path
    return build_link(base_url, rel, href_path, MEDIA_GEOJSON, api_prefix=api_prefix)


# ============================================================================
# PAGINATION
# ============================================================================

def pagination_links(
    base_url: str,
    path: str,
    query: Query,
    transport: RequestTransport,
    page: SearchPage,
    params: Optional[Mapping[str, str]] = None,
    param_keys: Sequence[str] = SEARCH_PARAM_KEYS,
    api_prefix: str = API_PREFIX
) -> Dict[str, Link]:
    """
    Build self/next/previous for a paginated result.

    Args:
        base_url: Scheme and host
        path: Endpoint path below the API prefix, e.g. "/search"
        query: Canonical query the page was produced from
        transport: Encoding of the originating request
        page: Result page with continuation tokens
        params: Original query-string parameters (GET only)
        param_keys: Parameters to carry over, in href order

    Returns:
        Dict keyed by relation; "next"/"previous" only when a token exists
    """
    links: Dict[str, Link] = {}
    continuations = (("next", page.next_token), ("previous", page.prev_token))

    if transport is RequestTransport.POST:
        links["self"] = build_post_link(
            base_url, "self", path, MEDIA_GEOJSON,
            _serialize_query(query), api_prefix=api_prefix
        )
        for rel, token in continuations:
            if token:
                links[rel] = build_post_link(
                    base_url, rel, path, MEDIA_GEOJSON,
                    _serialize_query(query.with_token(token)), api_prefix=api_prefix
                )
        return links

    params = params or {}
    links["self"] = _get_link(
        base_url, "self", path, params, param_keys, params.get("token"), api_prefix
    )
    for rel, token in continuations:
        if token:
            links[rel] = _get_link(base_url, rel, path, params, param_keys, token, api_prefix)
    return links


def _ordered(
    paginated: Dict[str, Link],
    static: Iterable[Link]
) -> List[Link]:
    links = [paginated["self"], *static]
    for rel in ("next", "previous"):
        if rel in paginated:
            links.append(paginated[rel])
    return links


def search_links(
    base_url: str,
    query: Query,
    transport: RequestTransport,
    page: SearchPage,
    params: Optional[Mapping[str, str]] = None,
    api_prefix: str = API_PREFIX
) -> List[Link]:
    """
    Links for a /search response: self, root, parent, next, previous.
    """
    paginated = pagination_links(
        base_url, "/search", query, transport, page,
        params=params, api_prefix=api_prefix
    )
    return _ordered(paginated, [
        build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "parent", "/", MEDIA_JSON, api_prefix=api_prefix),
    ])


def items_links(
    base_url: str,
    collection_id: str,
    query: Query,
    page: SearchPage,
    params: Optional[Mapping[str, str]] = None,
    param_keys: Sequence[str] = SEARCH_PARAM_KEYS,
    api_prefix: str = API_PREFIX
) -> List[Link]:
    """
    Links for a collection items page: self, root, parent, collection,
    next, previous. Items listings are always GET.
    """
    collection_path = f"/collections/{collection_id}"
    paginated = pagination_links(
        base_url, f"{collection_path}/items", query, RequestTransport.GET, page,
        params=params, param_keys=param_keys, api_prefix=api_prefix
    )
    return _ordered(paginated, [
        build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "parent", collection_path, MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "collection", collection_path, MEDIA_JSON, api_prefix=api_prefix),
    ])


# ============================================================================
# DOCUMENT ENRICHMENT
# ============================================================================

def enrich_item_links(
    item: Mapping[str, Any],
    base_url: str,
    api_prefix: str = API_PREFIX
) -> Dict[str, Any]:
    """
    Return a copy of an item with server links.

    An existing collection link is pointed at this server; parent, root and
    self are appended.
    """
    enriched = dict(item)
    item_id = item.get("id")
    collection_id = item.get("collection")
    collection_path = f"/collections/{collection_id}"
    collection_href = f"{base_url}{api_prefix}{collection_path}"

    links = []
    for link in item.get("links") or []:
        link = dict(link)
        if link.get("rel") == "collection":
            link["href"] = collection_href
        links.append(link)

    links.extend(link.to_dict() for link in (
        build_link(base_url, "parent", collection_path, MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "self", f"{collection_path}/items/{item_id}", MEDIA_GEOJSON, api_prefix=api_prefix),
    ))

    enriched["links"] = links
    return enriched


def enrich_collection_links(
    collection: Mapping[str, Any],
    base_url: str,
    api_prefix: str = API_PREFIX
) -> Dict[str, Any]:
    """Return a copy of a collection with self, root, parent and items links appended."""
    enriched = dict(collection)
    collection_path = f"/collections/{collection.get('id')}"

    links = [dict(link) for link in collection.get("links") or []]
    links.extend(link.to_dict() for link in (
        build_link(base_url, "self", collection_path, MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "parent", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "items", f"{collection_path}/items", MEDIA_GEOJSON, api_prefix=api_prefix),
    ))

    enriched["links"] = links
    return enriched


def catalog_links(
    base_url: str,
    collections: Iterable[Mapping[str, Any]],
    api_prefix: str = API_PREFIX
) -> List[Link]:
    """Landing page links followed by one child link per collection."""
    links = [
        build_link(base_url, "self", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "root", "/", MEDIA_JSON, api_prefix=api_prefix),
        build_link(base_url, "data", "/collections", MEDIA_JSON, api_prefix=api_prefix),
        build_link(
            base_url, "conformance", "/conformance", MEDIA_JSON,
            title="STAC/WFS3 conformance classes implemented by this server",
            api_prefix=api_prefix
        ),
        Link(
            rel="search", type=MEDIA_GEOJSON, title="STAC search",
            href=f"{base_url}{api_prefix}/search", method="GET"
        ),
        Link(
            rel="search", type=MEDIA_GEOJSON, title="STAC search",
            href=f"{base_url}{api_prefix}/search", method="POST"
        ),
        build_link(
            base_url, "http://www.opengis.net/def/rel/ogc/1.0/queryables", "/queryables",
            "application/schema+json", title="Queryables available for filtering",
            api_prefix=api_prefix
        ),
    ]

    for collection in collections:
        links.append(build_link(
            base_url, "child", f"/collections/{collection.get('id')}", MEDIA_JSON,
            title=collection.get("title"), api_prefix=api_prefix
        ))

    return links
