# ============================================================================
# CLAUDE CONTEXT - STAC API CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - STAC API
# PURPOSE: Environment-based configuration for the STAC API module
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: STACAPIConfig, get_stac_config
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables
# ============================================================================

"""
STAC API Configuration

Environment-based configuration for STAC API module. Read once on first use
and immutable for the life of the process.

Environment Variables:
    Optional:
    - STAC_CATALOG_ID: Catalog identifier (default: "geospatial-stac")
    - STAC_CATALOG_TITLE: Human-readable catalog title (default: "Geospatial STAC API")
    - STAC_CATALOG_DESCRIPTION: Catalog description (default: generic)
    - STAC_BASE_URL: Base URL for STAC links (default: auto-detect from request)

Date: 19 OCT 2026
"""

import os
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from .models import DEFAULT_LIMIT, MAX_LIMIT


class STACAPIConfig(BaseModel):
    """STAC API module configuration - fully configurable via environment variables."""

    model_config = ConfigDict(frozen=True)

    catalog_id: str = Field(
        default_factory=lambda: os.getenv("STAC_CATALOG_ID", "geospatial-stac"),
        description="STAC catalog ID"
    )

    catalog_title: str = Field(
        default_factory=lambda: os.getenv("STAC_CATALOG_TITLE", "Geospatial STAC API"),
        description="Human-readable catalog title"
    )

    catalog_description: str = Field(
        default_factory=lambda: os.getenv(
            "STAC_CATALOG_DESCRIPTION",
            "STAC catalog for geospatial raster and vector data"
        ),
        description="Catalog description"
    )

    stac_version: str = Field(
        default="1.0.0",
        description="STAC specification version"
    )

    stac_base_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("STAC_BASE_URL"),
        description="Base URL for STAC API (auto-detected if None)"
    )

    api_prefix: str = Field(
        default="/api/stac/v1",
        description="Path prefix prepended to every link href"
    )

    default_limit: int = Field(
        default=DEFAULT_LIMIT,
        description="Page size when the client sends none"
    )

    max_limit: int = Field(
        default=MAX_LIMIT,
        description="Largest page size; larger requests are clamped"
    )


# Singleton instance cache
_stac_config_cache: Optional[STACAPIConfig] = None


def get_stac_config() -> STACAPIConfig:
    """
    Get STAC API configuration (singleton pattern).

    Returns:
        Cached configuration instance
    """
    global _stac_config_cache

    if _stac_config_cache is None:
        _stac_config_cache = STACAPIConfig()

    return _stac_config_cache
