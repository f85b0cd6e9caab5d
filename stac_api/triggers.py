"""
STAC API HTTP Triggers

Azure Functions HTTP handlers for STAC API v1.0.0 endpoints.

Endpoints:
- GET    /api/stac/v1 - Landing page (catalog root)
- GET    /api/stac/v1/conformance - Conformance classes
- GET    /api/stac/v1/queryables - Global queryables
- GET    /api/stac/v1/search - Item search (query string)
- POST   /api/stac/v1/search - Item search (JSON body)
- GET    /api/stac/v1/collections - Collections list
- POST   /api/stac/v1/collections - Create collection
- GET    /api/stac/v1/collections/{collection_id} - Collection detail
- PUT    /api/stac/v1/collections/{collection_id} - Replace collection
- PATCH  /api/stac/v1/collections/{collection_id} - Merge-patch collection
- DELETE /api/stac/v1/collections/{collection_id} - Delete collection
- GET    /api/stac/v1/collections/{collection_id}/queryables - Collection queryables
- GET    /api/stac/v1/collections/{collection_id}/items - Items list (token pagination)
- POST   /api/stac/v1/collections/{collection_id}/items - Create item
- GET    /api/stac/v1/collections/{collection_id}/items/{item_id} - Item detail
- PUT    /api/stac/v1/collections/{collection_id}/items/{item_id} - Replace item
- PATCH  /api/stac/v1/collections/{collection_id}/items/{item_id} - Merge-patch item
- DELETE /api/stac/v1/collections/{collection_id}/items/{item_id} - Delete item

Integration (in function_app.py):
    from stac_api import get_stac_triggers

    stac_triggers = {t['name']: t for t in get_stac_triggers()}

    @app.route(route="stac/v1/search", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def stac_search(req: func.HttpRequest) -> func.HttpResponse:
        return stac_triggers['stac_search']['handler'](req)

Date: 10 NOV 2025
Updated: 19 OCT 2026 - Search, queryables and transaction endpoints; typed errors
"""

import azure.functions as func
import json
from typing import Dict, Any, List, Optional

from util_logger import LoggerFactory, ComponentType, LogContext

from .config import STACAPIConfig, get_stac_config
from .errors import ParameterError, STACError
from .models import RequestTransport
from .service import STACAPIService

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "STACTriggers")

# HTTP methods handle() may dispatch to; each maps to a lowercase handler method
DISPATCH_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_stac_triggers(service: Optional[STACAPIService] = None) -> List[Dict[str, Any]]:
    """
    Get list of STAC API trigger configurations for function_app.py.

    This is the ONLY integration point with the main application.

    Args:
        service: Shared service instance. When omitted, a pgSTAC-backed
            service is created on the first request.

    Returns:
        List of dicts with keys:
        - name: Unique function name
        - route: URL route pattern
        - methods: List of HTTP methods
        - handler: Callable trigger handler
    """
    provider = _ServiceProvider(service)
    return [
        {
            'name': 'stac_landing',
            'route': 'stac/v1',
            'methods': ['GET'],
            'handler': STACLandingPageTrigger(provider).handle
        },
        {
            'name': 'stac_conformance',
            'route': 'stac/v1/conformance',
            'methods': ['GET'],
            'handler': STACConformanceTrigger(provider).handle
        },
        {
            'name': 'stac_queryables',
            'route': 'stac/v1/queryables',
            'methods': ['GET'],
            'handler': STACQueryablesTrigger(provider).handle
        },
        {
            'name': 'stac_search',
            'route': 'stac/v1/search',
            'methods': ['GET', 'POST'],
            'handler': STACSearchTrigger(provider).handle
        },
        {
            'name': 'stac_collections',
            'route': 'stac/v1/collections',
            'methods': ['GET', 'POST'],
            'handler': STACCollectionsTrigger(provider).handle
        },
        {
            'name': 'stac_collection',
            'route': 'stac/v1/collections/{collection_id}',
            'methods': ['GET', 'PUT', 'PATCH', 'DELETE'],
            'handler': STACCollectionDetailTrigger(provider).handle
        },
        {
            'name': 'stac_collection_queryables',
            'route': 'stac/v1/collections/{collection_id}/queryables',
            'methods': ['GET'],
            'handler': STACQueryablesTrigger(provider).handle
        },
        {
            'name': 'stac_items',
            'route': 'stac/v1/collections/{collection_id}/items',
            'methods': ['GET', 'POST'],
            'handler': STACItemsTrigger(provider).handle
        },
        {
            'name': 'stac_item',
            'route': 'stac/v1/collections/{collection_id}/items/{item_id}',
            'methods': ['GET', 'PUT', 'PATCH', 'DELETE'],
            'handler': STACItemDetailTrigger(provider).handle
        }
    ]


class _ServiceProvider:
    """Lazily builds the pgSTAC-backed service unless one was injected."""

    def __init__(self, service: Optional[STACAPIService] = None,
                 config: Optional[STACAPIConfig] = None):
        self._service = service
        self.config = service.config if service is not None else (config or get_stac_config())

    def get(self) -> STACAPIService:
        if self._service is None:
            # Import here to avoid circular dependency
            from infrastructure.pgstac import PgSTACSearchEngine
            from config import get_app_config

            engine = PgSTACSearchEngine(schema_name=get_app_config().pgstac_schema)
            self._service = STACAPIService(self.config, engine)
            logger.info("STAC API service initialized with pgSTAC search engine")
        return self._service


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseSTACTrigger:
    """
    Base class for STAC API triggers.

    Provides common functionality:
    - Base URL extraction from request
    - HTTP method dispatch to get/post/put/patch/delete
    - JSON response formatting
    - STACError rendering
    """

    def __init__(self, provider: Optional[_ServiceProvider] = None):
        """Initialize trigger with a service provider."""
        self.provider = provider or _ServiceProvider()
        self.config = self.provider.config

    @property
    def service(self) -> STACAPIService:
        return self.provider.get()

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        """
        Dispatch to the method handler and render failures.

        STACError subclasses become their own status code and JSON body;
        anything else is a 500.
        """
        method = (req.method or "GET").upper()
        handler = None
        if method in DISPATCH_METHODS:
            handler = getattr(self, method.lower(), None)
        if handler is None:
            return self._error_response(
                message=f"method {method} not allowed",
                status_code=405,
                error_type="MethodNotAllowed"
            )

        try:
            logger.info(f"STAC API {method} {req.url}", extra={
                'custom_dimensions': self._log_context(req).to_dict()
            })
            return handler(req)

        except STACError as e:
            if e.status_code >= 500:
                logger.error(f"STAC API {method} failed: {e.description}", exc_info=True)
            else:
                logger.warning(f"STAC API {method} rejected ({e.code}): {e.description}")
            return self._error_response(
                message=e.description,
                status_code=e.status_code,
                error_type=e.code
            )

        except Exception as e:
            logger.error(f"Error processing STAC API {method} request: {e}", exc_info=True)
            return self._error_response(
                message=str(e),
                status_code=500,
                error_type="InternalServerError"
            )

    def _log_context(self, req: func.HttpRequest) -> LogContext:
        return LogContext(
            request_id=req.headers.get("x-ms-request-id"),
            correlation_id=req.headers.get("x-correlation-id"),
            collection_id=req.route_params.get("collection_id")
        )

    def _get_base_url(self, req: func.HttpRequest) -> str:
        """
        Extract base URL from request.

        Args:
            req: Azure Functions HTTP request

        Returns:
            Base URL (e.g., https://example.com)
        """
        # Try configured base URL first
        if self.config.stac_base_url:
            return self.config.stac_base_url.rstrip("/")

        # Auto-detect from request URL
        full_url = req.url
        if "/api/stac" in full_url:
            return full_url.split("/api/stac")[0]

        # Fallback
        return "http://localhost:7071"

    def _route_param(self, req: func.HttpRequest, name: str) -> str:
        value = req.route_params.get(name)
        if not value:
            raise ParameterError(f"{name} is required", field=name)
        return value

    def _json_body(self, req: func.HttpRequest) -> Any:
        """Decoded JSON request body; ParameterError if malformed."""
        try:
            return json.loads(req.get_body() or b"null")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParameterError(f"could not parse request body as JSON: {e}", field="body") from e

    def _json_response(
        self,
        data: Any,
        status_code: int = 200,
        content_type: str = "application/json"
    ) -> func.HttpResponse:
        """
        Create JSON HTTP response.

        Args:
            data: Data to serialize (dict or Pydantic model)
            status_code: HTTP status code
            content_type: Response content type

        Returns:
            Azure Functions HttpResponse
        """
        # Handle Pydantic models
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json', exclude_none=True)

        return func.HttpResponse(
            body=json.dumps(data, indent=2),
            status_code=status_code,
            mimetype=content_type
        )

    def _no_content(self) -> func.HttpResponse:
        return func.HttpResponse(status_code=204)

    def _error_response(
        self,
        message: str,
        status_code: int = 400,
        error_type: str = "BadRequest"
    ) -> func.HttpResponse:
        """
        Create error response.

        Args:
            message: Error message
            status_code: HTTP status code
            error_type: Error type string

        Returns:
            Azure Functions HttpResponse with error JSON
        """
        error_body = {
            "code": error_type,
            "description": message
        }
        return func.HttpResponse(
            body=json.dumps(error_body, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class STACLandingPageTrigger(BaseSTACTrigger):
    """
    Landing page trigger.

    Endpoint: GET /api/stac/v1
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        catalog = self.service.get_catalog(self._get_base_url(req))
        return self._json_response(catalog)


class STACConformanceTrigger(BaseSTACTrigger):
    """
    Conformance classes trigger.

    Endpoint: GET /api/stac/v1/conformance
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        return self._json_response(self.service.get_conformance())


class STACQueryablesTrigger(BaseSTACTrigger):
    """
    Queryables trigger, global or scoped by the collection_id route param.

    Endpoints:
        GET /api/stac/v1/queryables
        GET /api/stac/v1/collections/{collection_id}/queryables
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = req.route_params.get('collection_id') or None
        queryables = self.service.get_queryables(collection_id)
        return self._json_response(queryables, content_type="application/schema+json")


class STACSearchTrigger(BaseSTACTrigger):
    """
    Item search trigger.

    Endpoints:
        GET  /api/stac/v1/search - query-string parameters
        POST /api/stac/v1/search - JSON body; a token query param overrides the body token
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        result = self.service.search(
            self._get_base_url(req), RequestTransport.GET, params=dict(req.params)
        )
        logger.info(f"Returning {len(result['features'])} search results")
        return self._json_response(result, content_type="application/geo+json")

    def post(self, req: func.HttpRequest) -> func.HttpResponse:
        result = self.service.search(
            self._get_base_url(req), RequestTransport.POST,
            params=dict(req.params), body=req.get_body()
        )
        logger.info(f"Returning {len(result['features'])} search results")
        return self._json_response(result, content_type="application/geo+json")


class STACCollectionsTrigger(BaseSTACTrigger):
    """
    Collections list and create trigger.

    Endpoint: GET|POST /api/stac/v1/collections
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        collections = self.service.get_collections(self._get_base_url(req))
        logger.info(f"Returning {len(collections['collections'])} STAC collections")
        return self._json_response(collections)

    def post(self, req: func.HttpRequest) -> func.HttpResponse:
        created = self.service.create_collection(self._json_body(req), self._get_base_url(req))
        return self._json_response(created, status_code=201)


class STACCollectionDetailTrigger(BaseSTACTrigger):
    """
    Single collection trigger.

    Endpoint: GET|PUT|PATCH|DELETE /api/stac/v1/collections/{collection_id}
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        return self._json_response(
            self.service.get_collection(collection_id, self._get_base_url(req))
        )

    def put(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        return self._json_response(
            self.service.replace_collection(collection_id, self._json_body(req), self._get_base_url(req))
        )

    def patch(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        return self._json_response(
            self.service.patch_collection(collection_id, req.get_body(), self._get_base_url(req))
        )

    def delete(self, req: func.HttpRequest) -> func.HttpResponse:
        self.service.delete_collection(self._route_param(req, 'collection_id'))
        return self._no_content()


class STACItemsTrigger(BaseSTACTrigger):
    """
    Collection items trigger.

    Endpoint: GET|POST /api/stac/v1/collections/{collection_id}/items
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        result = self.service.get_items(collection_id, self._get_base_url(req), dict(req.params))
        logger.info(f"Returning {len(result['features'])} items from {collection_id}")
        return self._json_response(result, content_type="application/geo+json")

    def post(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        created = self.service.create_item(collection_id, self._json_body(req), self._get_base_url(req))
        return self._json_response(created, status_code=201, content_type="application/geo+json")


class STACItemDetailTrigger(BaseSTACTrigger):
    """
    Single item trigger.

    Endpoint: GET|PUT|PATCH|DELETE /api/stac/v1/collections/{collection_id}/items/{item_id}
    """

    def get(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        item_id = self._route_param(req, 'item_id')
        item = self.service.get_item(collection_id, item_id, self._get_base_url(req))
        return self._json_response(item, content_type="application/geo+json")

    def put(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        item_id = self._route_param(req, 'item_id')
        item = self.service.replace_item(
            collection_id, item_id, self._json_body(req), self._get_base_url(req)
        )
        return self._json_response(item, content_type="application/geo+json")

    def patch(self, req: func.HttpRequest) -> func.HttpResponse:
        collection_id = self._route_param(req, 'collection_id')
        item_id = self._route_param(req, 'item_id')
        item = self.service.patch_item(
            collection_id, item_id, req.get_body(), self._get_base_url(req)
        )
        return self._json_response(item, content_type="application/geo+json")

    def delete(self, req: func.HttpRequest) -> func.HttpResponse:
        self.service.delete_item(
            self._route_param(req, 'collection_id'),
            self._route_param(req, 'item_id')
        )
        return self._no_content()
