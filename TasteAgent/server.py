"""
Local development server.

Serves the same routes as the Lambda deployment by translating each Flask
request into an API Gateway-style event and handing it to lambda_handler.

    python -m TasteAgent.server      # listens on PORT (default 3001)
"""

import os
import logging

from flask import Flask, Response, request

from TasteAgent.lambda_handler import lambda_handler

logger = logging.getLogger(__name__)

app = Flask(__name__)


def _to_event() -> dict:
    return {
        'httpMethod': request.method,
        'path': request.path,
        'headers': dict(request.headers),
        'queryStringParameters': request.args.to_dict() or None,
        'body': request.get_data(as_text=True) or None
    }


def _to_response(result: dict) -> Response:
    return Response(
        result.get('body', ''),
        status=result.get('statusCode', 500),
        headers=result.get('headers', {})
    )


@app.route('/api/taste', methods=['POST', 'OPTIONS'])
@app.route('/api/ecosystem-analysis', methods=['POST', 'OPTIONS'])
@app.route('/api/plan-day', methods=['POST', 'OPTIONS'])
@app.route('/api/health', methods=['GET', 'OPTIONS'])
def api_route():
    return _to_response(lambda_handler(_to_event(), None))


if __name__ == '__main__':
    port = int(os.getenv('PORT', '3001'))
    logger.info(f"Starting local Taste Agent server on port {port}")
    app.run(host='0.0.0.0', port=port, debug=False)
