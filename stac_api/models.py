# ============================================================================
# CLAUDE CONTEXT - STAC API MODELS
# ============================================================================
# STATUS: Standalone Models - canonical search query and link records
# PURPOSE: Transport-independent Query, Link and search result page models
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: Query, SortField, SortDirection, FieldsSpec, FilterLang, Link, SearchPage, RequestTransport
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: All classes in this file except the enums
# DEPENDENCIES: pydantic, typing, urllib.parse
# SOURCE: pgSTAC search() document format, STAC API - Item Search
# SCOPE: Shared data types for stac_api.query, stac_api.links, stac_api.service
# VALIDATION: Pydantic v2 validation, frozen models
# PATTERNS: Value Objects, Data Transfer Objects (DTOs)
# ENTRY_POINTS: from stac_api.models import Query, Link
# ============================================================================

"""
STAC API Canonical Models

A Query is the single representation of a search request regardless of
whether the client sent it as a query string or a JSON body. It is frozen:
pagination produces a new Query through with_token().

Query.to_search_json() renders the document handed to pgSTAC's
search(query_json) function and used as the body of POST-style links.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

MAX_LIMIT = 10000
DEFAULT_LIMIT = 10


class RequestTransport(str, Enum):
    """How the originating request encoded its query."""
    GET = "GET"
    POST = "POST"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FilterLang(str, Enum):
    CQL2_TEXT = "cql2-text"
    CQL2_JSON = "cql2-json"


class SortField(BaseModel):
    """One sortby term."""
    model_config = ConfigDict(frozen=True)

    field: str
    direction: SortDirection = SortDirection.ASC


class FieldsSpec(BaseModel):
    """
    Fields extension include/exclude lists.

    Both are ordered without duplicates and never share a name.
    """
    model_config = ConfigDict(frozen=True)

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_disjoint(self) -> "FieldsSpec":
        overlap = set(self.include) & set(self.exclude)
        if overlap:
            raise ValueError(f"fields both included and excluded: {sorted(overlap)}")
        return self


class Query(BaseModel):
    """
    Canonical STAC search request.

    Unset optional fields are None so that "no filter" and "empty filter"
    stay distinguishable.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    collections: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="Collection ids to search"
    )
    ids: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="Item ids to return"
    )
    bbox: Optional[Tuple[float, ...]] = Field(
        default=None,
        description="Bounding box, 4 or 6 coordinates"
    )
    intersects: Optional[Dict[str, Any]] = Field(
        default=None,
        description="GeoJSON geometry filter"
    )
    datetime: Optional[str] = Field(
        default=None,
        description="RFC 3339 instant or start/end interval"
    )
    limit: int = Field(
        default=DEFAULT_LIMIT,
        ge=0,
        le=MAX_LIMIT,
        description="Page size"
    )
    sortby: Tuple[SortField, ...] = Field(
        default=(),
        description="Sort terms in priority order"
    )
    fields: Optional[FieldsSpec] = Field(
        default=None,
        description="Fields extension include/exclude"
    )
    filter: Optional[Any] = Field(
        default=None,
        description="CQL2 filter expression"
    )
    filter_lang: Optional[FilterLang] = Field(
        default=None,
        alias="filter-lang",
        description="cql2-json, or cql2-text for an untranslated text expression"
    )
    token: Optional[str] = Field(
        default=None,
        description="Opaque continuation token"
    )
    extra_config: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="conf",
        description="pgSTAC conf object, passed through unexamined"
    )

    @model_validator(mode="after")
    def _check_spatial(self) -> "Query":
        if self.bbox is not None and self.intersects is not None:
            raise ValueError("bbox and intersects are mutually exclusive")
        if self.bbox is not None:
            if len(self.bbox) not in (4, 6):
                raise ValueError("bbox must have 4 or 6 coordinates")
            upper = 3 if len(self.bbox) == 4 else 4
            if self.bbox[1] > self.bbox[upper]:
                raise ValueError("bbox lower latitude exceeds upper latitude")
        return self

    def with_token(self, token: Optional[str]) -> "Query":
        """Same query pointed at another page."""
        return self.model_copy(update={"token": token})

    def to_search_json(self) -> Dict[str, Any]:
        """
        Render the pgSTAC search document.

        Unset fields are omitted; limit is always present.
        """
        doc: Dict[str, Any] = {}
        if self.collections is not None:
            doc["collections"] = list(self.collections)
        if self.ids is not None:
            doc["ids"] = list(self.ids)
        if self.bbox is not None:
            doc["bbox"] = list(self.bbox)
        if self.intersects is not None:
            doc["intersects"] = self.intersects
        if self.datetime is not None:
            doc["datetime"] = self.datetime
        doc["limit"] = self.limit
        if self.sortby:
            doc["sortby"] = [
                {"field": s.field, "direction": s.direction.value}
                for s in self.sortby
            ]
        if self.fields is not None:
            doc["fields"] = {
                "include": list(self.fields.include),
                "exclude": list(self.fields.exclude)
            }
        if self.filter is not None:
            doc["filter"] = self.filter
        if self.filter_lang is not None:
            doc["filter-lang"] = self.filter_lang.value
        if self.token is not None:
            doc["token"] = self.token
        if self.extra_config is not None:
            doc["conf"] = self.extra_config
        return doc


class Link(BaseModel):
    """
    STAC/OGC link object (RFC 8288 Web Linking).

    method and body are only set for links that must be followed with a
    request body, e.g. POST search continuation.
    """
    model_config = ConfigDict(frozen=True)

    rel: str = Field(
        description="Link relation type (self, root, next, previous, etc.)"
    )
    type: str = Field(
        description="Media type of the linked resource"
    )
    title: Optional[str] = Field(
        default=None,
        description="Human-readable title for the link"
    )
    href: str = Field(
        description="URL of the linked resource"
    )
    method: Optional[str] = Field(
        default=None,
        description="HTTP method, omitted for GET"
    )
    body: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Request body for non-GET links"
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class SearchPage(BaseModel):
    """One page of results as reported by the search engine."""

    features: List[Dict[str, Any]] = Field(default_factory=list)
    next_token: Optional[str] = None
    prev_token: Optional[str] = None
    context: Optional[Dict[str, Any]] = None

    @classmethod
    def from_search_result(cls, result: Optional[Dict[str, Any]]) -> "SearchPage":
        """
        Build a page from the JSON returned by pgstac.search().

        Older pgSTAC releases report tokens as top-level "next"/"prev";
        newer ones embed them in next/prev links, either in a POST body
        or in the href query string.
        """
        result = result or {}
        next_token = result.get("next") or None
        prev_token = result.get("prev") or None

        for link in result.get("links") or []:
            rel = link.get("rel")
            if rel == "next" and next_token is None:
                next_token = _token_from_link(link)
            elif rel in ("prev", "previous") and prev_token is None:
                prev_token = _token_from_link(link)

        return cls(
            features=result.get("features") or [],
            next_token=next_token,
            prev_token=prev_token,
            context=result.get("context")
        )


def _token_from_link(link: Dict[str, Any]) -> Optional[str]:
    body = link.get("body")
    if isinstance(body, dict) and body.get("token"):
        return body["token"]
    href = link.get("href")
    if href:
        values = parse_qs(urlparse(href).query).get("token")
        if values:
            return values[0]
    return None
