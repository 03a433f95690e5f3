"""
Shared utilities for the TasteAgent HTTP functions.

Contains:
- log_structured(): Structured logging with request context
- new_request_id(): Short id used to correlate the log lines of one request
- parse_event_body(): Read the JSON body of an API Gateway style event
- build_response(): API Gateway style response with open CORS headers

Every function answers {"success": bool, "data"?: ..., "error"?: str}.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS'
}


def new_request_id() -> str:
    return uuid.uuid4().hex[:9]


# Helper function for structured logging
def log_structured(level, message, request_id=None, stage=None, **kwargs):
    """
    Log structured messages with request context for better filtering.

    Produces lines like:
    [Request: 3f9a1c2b0] [Stage: seed_extraction] Extracted seeds | {"count": 4}
    """
    log_data = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'request_id': request_id,
        'agent': 'TasteAgent',
        'stage': stage,
        'message': message,
        **kwargs
    }

    log_message = f"[Request: {request_id}] [Stage: {stage}] {message}"
    if kwargs:
        log_message += f" | {json.dumps(kwargs, default=str)}"

    if level == 'INFO':
        logger.info(log_message)
    elif level == 'ERROR':
        logger.error(log_message)
    elif level == 'WARNING':
        logger.warning(log_message)

    return log_data


def parse_event_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the request body of an API Gateway event as a dict.

    Raises:
        ValueError: body is not valid JSON or not a JSON object
    """
    body = event.get('body')

    if body is None or body == '':
        return {}

    # Parse request body if it's a string (API Gateway)
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValueError(f"Request body is not valid JSON: {e}")

    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")

    return body


def build_response(status_code: int, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """API Gateway response with CORS headers and a JSON body."""
    headers = dict(CORS_HEADERS)
    if payload is None:
        return {'statusCode': status_code, 'headers': headers, 'body': ''}

    headers['Content-Type'] = 'application/json'
    return {
        'statusCode': status_code,
        'headers': headers,
        'body': json.dumps(payload, default=str)
    }


def success_response(data: Any, status_code: int = 200) -> Dict[str, Any]:
    return build_response(status_code, {'success': True, 'data': data})


def error_response(status_code: int, error: str) -> Dict[str, Any]:
    return build_response(status_code, {'success': False, 'error': error})
