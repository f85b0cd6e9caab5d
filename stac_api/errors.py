# ============================================================================
# CLAUDE CONTEXT - STAC API ERRORS
# ============================================================================
# STATUS: Standalone Module - STAC API error taxonomy
# PURPOSE: Typed failures raised by the query normalizer, link builder and merge engine
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: STACError, ValidationError, ParameterError, ServerError, NotFoundError, ConflictError, MergeParseError
# DEPENDENCIES: typing
# SCOPE: Raised by stac_api and infrastructure, rendered by stac_api.triggers only
# ============================================================================

"""
STAC API Error Taxonomy

Every failure the core can report carries a machine-readable code and a
human-readable description. Triggers turn these into the JSON error body:

    {"code": "ParameterError", "description": "limit 'abc' could not be converted to int"}

Codes:
    ParameterError - client-supplied input is invalid (HTTP 400)
    ServerError    - internal invariant violated or storage failure (HTTP 500)
    NotFoundError  - referenced collection or item is absent (HTTP 404)
    ConflictError  - create request for an existing id (HTTP 409)
"""

from typing import Any, Dict, Optional


class STACError(Exception):
    """Base class for all errors surfaced to STAC API clients."""

    code = "ServerError"
    status_code = 500

    def __init__(
        self,
        description: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        super().__init__(description)
        self.description = description
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        """Error body in the shape returned to HTTP clients."""
        return {
            "code": self.code,
            "description": self.description
        }


# Validation failures share the base so callers can catch either name
ValidationError = STACError


class ParameterError(STACError):
    """Client input is syntactically or semantically invalid."""

    code = "ParameterError"
    status_code = 400


class ServerError(STACError):
    """A well-formed request hit an internal failure."""

    code = "ServerError"
    status_code = 500


class NotFoundError(STACError):
    """Referenced resource does not exist."""

    code = "NotFoundError"
    status_code = 404


class ConflictError(STACError):
    """Create request for an id that already exists."""

    code = "ConflictError"
    status_code = 409


class MergeParseError(STACError):
    """
    One side of a merge-patch could not be parsed as a JSON object.

    A bad patch is the client's fault; a bad base means the stored
    document is corrupt, which is ours.

    Attributes:
        side: "patch" or "base"
    """

    def __init__(self, side: str, description: str):
        super().__init__(description, field=side)
        self.side = side

    @property
    def code(self) -> str:
        return ParameterError.code if self.side == "patch" else ServerError.code

    @property
    def status_code(self) -> int:
        return ParameterError.status_code if self.side == "patch" else ServerError.status_code
