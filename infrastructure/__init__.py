# ============================================================================
# CLAUDE CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Database access
# PURPOSE: PostgreSQL connection management and the pgSTAC search engine
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository, PgSTACSearchEngine
# DEPENDENCIES: psycopg, config
# ============================================================================

"""
Infrastructure Module

- PostgreSQL connection management (PostgreSQLRepository)
- pgSTAC-backed SearchEngine for the STAC API (PgSTACSearchEngine)
"""

from .postgresql import PostgreSQLRepository
from .pgstac import PgSTACSearchEngine

__version__ = "1.0.0"
__all__ = [
    "PostgreSQLRepository",
    "PgSTACSearchEngine"
]
