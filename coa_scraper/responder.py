"""
Map scrape outcomes to HTTP responses.

Every surface (Flask app, serverless handler, CLI) renders the same
Response, so status codes and envelopes stay identical across them.
"""

import json
import traceback
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict

from .config import Settings
from .errors import ScrapeError
from .models import ExtractionResult

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}


@dataclass
class Response:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None

    def to_json(self) -> str:
        if self.body is None:
            return ""
        return json.dumps(self.body, ensure_ascii=False)

    def to_lambda(self) -> Dict[str, Any]:
        """Netlify / AWS Lambda style response dict."""
        return {
            "statusCode": self.status,
            "headers": self.headers,
            "body": self.to_json(),
        }


def _headers(extra=None):
    headers = {"Content-Type": "application/json; charset=utf-8"}
    headers.update(CORS_HEADERS)
    if extra:
        headers.update(extra)
    return headers


def reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def success(result: ExtractionResult, settings: Settings) -> Response:
    cache = {"Cache-Control": f"public, max-age={settings.cache_max_age}"}
    return Response(200, _headers(cache), result.to_dict())


def error(status: int, message: str, stack: str = None) -> Response:
    body = {"success": False, "error": reason(status), "message": message}
    if stack:
        body["stack"] = stack
    return Response(status, _headers({"Cache-Control": "no-store"}), body)


def from_error(exc: ScrapeError) -> Response:
    return error(exc.status_code, exc.message)


def internal_error(exc: Exception, settings: Settings) -> Response:
    stack = None
    if not settings.is_production:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return error(500, "Internal server error", stack)


def preflight() -> Response:
    return Response(200, dict(CORS_HEADERS), None)


def method_not_allowed(method: str) -> Response:
    response = error(405, f"Method {method} not allowed")
    response.headers["Allow"] = "GET, HEAD, OPTIONS"
    return response
