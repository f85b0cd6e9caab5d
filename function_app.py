# ============================================================================
# CLAUDE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with the pgSTAC-backed STAC API
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, stac_api, health
# ============================================================================

"""
Azure Functions Entry Point for the STAC API

This module serves as the main entry point for the Azure Functions runtime.
It registers all HTTP triggers for the STAC API and health checks.

Architecture:
    - STAC API: 9 routes serving search, catalog browsing and transactions
      against a pgSTAC database (pgstac schema)
    - Health checks: 2 endpoints for monitoring and APIM integration
        - /api/health - Public (minimal response for external callers)
        - /api/health/detailed - Internal (full metrics for APIM probes)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json

import azure.functions as func

from util_logger import LoggerFactory, ComponentType
from stac_api import get_stac_triggers
from health import get_app_identity, get_detailed_health, get_public_health, HealthStatus

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "FunctionApp")

# Initialize Azure Function App
app = func.FunctionApp()

# ============================================================================
# STAC API - 9 Routes
# ============================================================================

logger.info("Registering STAC API endpoints...")

# Register all STAC API endpoints with unique function names
stac_triggers = {trigger['name']: trigger for trigger in get_stac_triggers()}


# Landing page (catalog root)
@app.route(route="stac/v1", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_landing_page(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_landing']['handler'](req)


# Conformance
@app.route(route="stac/v1/conformance", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_conformance(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_conformance']['handler'](req)


# Queryables
@app.route(route="stac/v1/queryables", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_queryables(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_queryables']['handler'](req)


# Item search
@app.route(route="stac/v1/search", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_search(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_search']['handler'](req)


# Collections list / create
@app.route(route="stac/v1/collections", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_collections(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_collections']['handler'](req)


# Single collection
@app.route(route="stac/v1/collections/{collection_id}", methods=["GET", "PUT", "PATCH", "DELETE"],
           auth_level=func.AuthLevel.ANONYMOUS)
def stac_collection(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_collection']['handler'](req)


# Collection queryables
@app.route(route="stac/v1/collections/{collection_id}/queryables", methods=["GET"],
           auth_level=func.AuthLevel.ANONYMOUS)
def stac_collection_queryables(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_collection_queryables']['handler'](req)


# Collection items list / create
@app.route(route="stac/v1/collections/{collection_id}/items", methods=["GET", "POST"],
           auth_level=func.AuthLevel.ANONYMOUS)
def stac_items(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_items']['handler'](req)


# Single item
@app.route(route="stac/v1/collections/{collection_id}/items/{item_id}",
           methods=["GET", "PUT", "PATCH", "DELETE"], auth_level=func.AuthLevel.ANONYMOUS)
def stac_item(req: func.HttpRequest) -> func.HttpResponse:
    return stac_triggers['stac_item']['handler'](req)


logger.info(f"STAC API registered successfully ({len(stac_triggers)} routes)")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint - minimal response for external callers.

    Always returns 200 - status in body indicates health.

    Returns:
        JSON: {"status": "healthy|unhealthy", "timestamp": "..."}
    """
    result = get_public_health()

    return func.HttpResponse(
        json.dumps(result, default=str),
        mimetype="application/json",
        status_code=200,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check endpoint - for APIM probes and operations.

    Returns 503 if unhealthy, 200 otherwise.

    SECURITY: Block this endpoint from external access via APIM policy.
    """
    result = get_detailed_health()

    # Return 503 if unhealthy, 200 otherwise (healthy or degraded)
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )

# ============================================================================
# Application Startup
# ============================================================================

_app_identity = get_app_identity()

logger.info("=" * 60)
logger.info(f"{_app_identity['name']} - {_app_identity['description']}")
logger.info("=" * 60)
logger.info("Available endpoints:")
logger.info("  - GET /api/health - Public health check (minimal)")
logger.info("  - GET /api/health/detailed - Detailed health (APIM only)")
logger.info("  - GET /api/stac/v1 - Landing page")
logger.info("  - GET /api/stac/v1/conformance - Conformance")
logger.info("  - GET /api/stac/v1/queryables - Queryables")
logger.info("  - GET/POST /api/stac/v1/search - Item search")
logger.info("  - GET/POST /api/stac/v1/collections - List / create collections")
logger.info("  - GET/PUT/PATCH/DELETE /api/stac/v1/collections/{id} - Collection")
logger.info("  - GET /api/stac/v1/collections/{id}/queryables - Collection queryables")
logger.info("  - GET/POST /api/stac/v1/collections/{id}/items - List / create items")
logger.info("  - GET/PUT/PATCH/DELETE /api/stac/v1/collections/{id}/items/{item_id} - Item")
logger.info("=" * 60)
