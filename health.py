# ============================================================================
# CLAUDE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Health checks for APIM integration and monitoring
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: psycopg, config, util_logger, infrastructure
# PATTERNS: Two-tier health checks (public/detailed) for APIM
# ============================================================================

"""
Health Check Module

Provides two-tier health monitoring optimized for Azure APIM integration:

1. Public Health (/api/health):
   - Minimal response for external callers
   - Returns only status and timestamp
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency metrics
   - pgSTAC schema validation with collection and item counts
   - STAC API module status
   - Returns 503 if unhealthy

Every check converts its own failure into a "fail" CheckResult; nothing
raises out of this module.

Usage:
    from health import get_public_health, get_detailed_health

    result = get_public_health()
    # {"status": "healthy", "timestamp": "2026-10-19T12:00:00+00:00"}
"""

import time
import uuid
from psycopg import sql
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

from config import get_postgres_connection_string, get_app_config
from util_logger import LoggerFactory, ComponentType

# Create module logger
logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "stac-api"
APP_DESCRIPTION = "STAC API Service (pgSTAC)"

# Tables the pgstac schema check requires and counts
PGSTAC_TABLES = ("collections", "items")


# ============================================================================
# Health Status Enum
# ============================================================================

class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def get_app_identity() -> Dict[str, str]:
    """Name and description reported at startup and by the detailed check."""
    return {
        "name": APP_NAME,
        "description": APP_DESCRIPTION
    }


def _repository(connect_timeout: Optional[int] = None):
    """Repository on the configured pgstac schema."""
    from infrastructure.postgresql import PostgreSQLRepository

    return PostgreSQLRepository(
        connection_string=get_postgres_connection_string(),
        schema_name=get_app_config().pgstac_schema,
        connect_timeout=connect_timeout
    )


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    Check PostgreSQL database connectivity.

    Pings the database through the pgSTAC search engine with a connection
    timeout. This is a critical check - failure means UNHEALTHY status.

    Args:
        timeout_seconds: Connection timeout in seconds

    Returns:
        CheckResult with connection status and latency
    """
    start_time = time.perf_counter()

    try:
        from infrastructure.pgstac import PgSTACSearchEngine

        config = get_app_config()
        engine = PgSTACSearchEngine(repo=_repository(connect_timeout=int(timeout_seconds)))
        details = {
            "host": config.postgis_host,
            "database": config.postgis_database,
            "auth_mode": "managed_identity" if config.use_managed_identity else "password"
        }

        if not engine.ping():
            return CheckResult(
                status="fail",
                latency_ms=_elapsed_ms(start_time),
                message="Database connection failed: ping unsuccessful",
                details=details
            )

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="PostgreSQL connection successful",
            details=details
        )

    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_pgstac_schema() -> CheckResult:
    """
    Check pgstac schema health for the STAC API.

    Verifies the schema and its collections/items tables exist, then counts
    rows in both. This is a critical check - failure means UNHEALTHY status.

    Returns:
        CheckResult with schema status and counts
    """
    start_time = time.perf_counter()

    try:
        repo = _repository()
        schema = repo.schema_name

        if not repo._schema_exists():
            return CheckResult(
                status="fail",
                latency_ms=_elapsed_ms(start_time),
                message=f"Schema '{schema}' does not exist",
                details={"schema": schema, "exists": False}
            )

        missing = [table for table in PGSTAC_TABLES if not repo._table_exists(table)]
        if missing:
            return CheckResult(
                status="fail",
                latency_ms=_elapsed_ms(start_time),
                message=f"Schema '{schema}' is missing tables: {', '.join(missing)}",
                details={"schema": schema, "missing_tables": missing}
            )

        counts = {}
        for table in PGSTAC_TABLES:
            row = repo._execute_query(
                sql.SQL("SELECT COUNT(*) AS count FROM {}.{}").format(
                    sql.Identifier(schema), sql.Identifier(table)
                ),
                fetch='one'
            )
            counts[f"{table}_count"] = row['count']

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message=f"{counts['collections_count']} STAC collections, {counts['items_count']} items",
            details={"schema": schema, **counts}
        )

    except Exception as e:
        logger.error(f"PgSTAC schema check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"PgSTAC schema check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_api_modules() -> CheckResult:
    """
    Check that the STAC API module loads and registers its routes.

    This is a non-critical check - failure means DEGRADED status.
    """
    start_time = time.perf_counter()

    try:
        from stac_api import get_stac_triggers, get_stac_config
        triggers = get_stac_triggers()
        config = get_stac_config()
        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="STAC API module loaded",
            details={
                "stac_api": {
                    "available": True,
                    "routes": len(triggers),
                    "catalog_id": config.catalog_id
                }
            }
        )

    except Exception as e:
        logger.error(f"STAC API module check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message="STAC API module unavailable",
            details={"stac_api": {"available": False, "error": str(e)}}
        )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health() -> Dict[str, Any]:
    """
    Get minimal health status for public endpoint.

    Returns only status and timestamp - no internal details.

    Returns:
        Dict with status and timestamp only
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(_elapsed_ms(start_time), 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """
    Get detailed health status for APIM probes and operations.

    SECURITY NOTE: Block this endpoint from external access via APIM policy.

    Returns:
        Dict with full health metrics
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    # Critical: Database connectivity
    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")

    # Critical: PgSTAC schema
    pgstac_result = check_pgstac_schema()
    checks["pgstac_schema"] = pgstac_result.to_dict()
    if pgstac_result.status == "fail":
        critical_failures.append("pgstac_schema")

    # Non-critical: API module
    modules_result = check_api_modules()
    checks["api_modules"] = modules_result.to_dict()
    if modules_result.status == "fail":
        non_critical_failures.append("api_modules")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = _elapsed_ms(start_time)

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    identity = get_app_identity()
    return {
        "status": status.value,
        "app": identity["name"],
        "description": identity["description"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
