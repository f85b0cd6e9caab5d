"""
STAC API Portable Module

STAC API v1.0.0 endpoints over a pgSTAC search engine: item search with
token pagination, catalog browsing, queryables and transactions.

Integration (in function_app.py):
    from stac_api import get_stac_triggers

    stac_triggers = {t['name']: t for t in get_stac_triggers()}

Testing with an in-memory engine:
    from stac_api import STACAPIService, get_stac_config, get_stac_triggers

    service = STACAPIService(get_stac_config(), engine)
    triggers = get_stac_triggers(service)

Date: 10 NOV 2025
Updated: 19 OCT 2026
"""

from .config import get_stac_config
from .engine import SearchEngine
from .service import STACAPIService
from .triggers import get_stac_triggers

__all__ = ['get_stac_triggers', 'get_stac_config', 'STACAPIService', 'SearchEngine']
