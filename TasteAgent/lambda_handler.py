"""
Lambda handlers for TasteAgent (API Gateway proxy integration)

Routes:
    POST /api/taste               {"vibe": "...", "city": "..."}
    POST /api/ecosystem-analysis  {"vibe", "city", "entities", "connections"?, "themes"?, "culturalInsights"?}
    POST /api/plan-day            {"selectedItems": [...], "city"?, "preferences"?}
    GET  /api/health

Every response carries open CORS headers and a JSON body of the form
{"success": bool, "data"?: ..., "error"?: str}. OPTIONS answers the
preflight with an empty 200.

Each route has its own handler (taste_handler, ...) so it can be deployed
as a separate function; lambda_handler() dispatches on the request path
when a single function serves all of them.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

from TasteAgent.errors import TasteAgentError
from TasteAgent.main import TastePipeline
from shared_utils import (
    build_response,
    error_response,
    success_response,
    parse_event_body,
    log_structured,
    new_request_id
)

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

_pipeline: Optional[TastePipeline] = None


def get_pipeline() -> TastePipeline:
    """Pipeline shared by all invocations of this process; settings are read once."""
    global _pipeline
    if _pipeline is None:
        _pipeline = TastePipeline()
    return _pipeline


def _request_method(event: Dict[str, Any]) -> str:
    method = event.get('httpMethod')
    if not method:
        # HTTP API (payload format 2.0)
        method = ((event.get('requestContext') or {}).get('http') or {}).get('method')
    return (method or 'POST').upper()


def _request_path(event: Dict[str, Any]) -> str:
    return event.get('path') or event.get('rawPath') or ''


def _run(
    event: Dict[str, Any],
    stage: str,
    operation: Callable[[Dict[str, Any], str], Dict[str, Any]]
) -> Dict[str, Any]:
    """Shared POST flow: preflight, method check, body parsing, error mapping."""
    method = _request_method(event)
    if method == 'OPTIONS':
        return build_response(200)
    if method != 'POST':
        return error_response(405, 'Method not allowed')

    request_id = new_request_id()

    try:
        body = parse_event_body(event)
    except ValueError as e:
        log_structured('ERROR', str(e), request_id=request_id, stage='validation')
        return error_response(400, str(e))

    try:
        data = operation(body, request_id)
        return success_response(data)

    except TasteAgentError as e:
        level = 'WARNING' if e.status_code < 500 else 'ERROR'
        log_structured(level, e.message, request_id=request_id, stage=stage,
                       status_code=e.status_code, error_type=type(e).__name__)
        return error_response(e.status_code, e.message)

    except Exception as e:
        logger.error(f"[Request: {request_id}] Unexpected error in {stage}: {e}", exc_info=True)
        return error_response(500, f"Internal server error: {str(e)}")


def taste_handler(event, context, pipeline: Optional[TastePipeline] = None):
    """Seed extraction + recommendations for a vibe and city."""
    pipeline = pipeline or get_pipeline()
    return _run(event, 'taste', pipeline.recommend)


def ecosystem_handler(event, context, pipeline: Optional[TastePipeline] = None):
    """Optional cross-domain ecosystem analysis."""
    pipeline = pipeline or get_pipeline()
    return _run(event, 'ecosystem_analysis', pipeline.analyze)


def plan_day_handler(event, context, pipeline: Optional[TastePipeline] = None):
    """Day plan for the selected items."""
    pipeline = pipeline or get_pipeline()
    return _run(event, 'day_planning', pipeline.plan)


def health_handler(event, context, pipeline: Optional[TastePipeline] = None):
    """Credential presence, exposed functions and LLM call summary."""
    method = _request_method(event)
    if method == 'OPTIONS':
        return build_response(200)
    if method != 'GET':
        return error_response(405, 'Method not allowed')

    pipeline = pipeline or get_pipeline()
    health = pipeline.health()
    logger.info(f"Health check requested: {json.dumps({k: v for k, v in health.items() if k != 'llm'})}")
    return success_response(health)


ROUTES = {
    'taste': taste_handler,
    'ecosystem-analysis': ecosystem_handler,
    'plan-day': plan_day_handler,
    'health': health_handler
}


def lambda_handler(event, context, pipeline: Optional[TastePipeline] = None):
    """
    Single-function entry point: dispatch on the last path segment.

    Args:
        event: API Gateway proxy event (REST or HTTP API payload)
        context: Lambda context

    Returns:
        API Gateway response dict
    """
    print(f"Raw event received: {json.dumps({k: v for k, v in event.items() if k != 'body'}, default=str)}")

    path = _request_path(event).rstrip('/')
    route = path.rsplit('/', 1)[-1] if path else ''

    handler = ROUTES.get(route)
    if handler is None:
        return error_response(404, f"Unknown route: {path or '/'}")

    return handler(event, context, pipeline=pipeline)


# For local testing
if __name__ == "__main__":
    test_event = {
        'httpMethod': 'POST',
        'path': '/api/taste',
        'body': json.dumps({'vibe': 'cozy rainy afternoon with jazz and ramen', 'city': 'Chicago'})
    }

    result = lambda_handler(test_event, None)
    print(json.dumps(result, indent=2))
