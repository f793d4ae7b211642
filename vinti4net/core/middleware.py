"""
Request/response logging middleware for the optional FastAPI integration.

Rules:
    - Gateway callback bodies are never logged (they carry card data and
      fingerprints); only method, path, status and timing are.
    - JSON bodies of other mutation requests are logged at DEBUG level after
      `sanitize_fields()`.
    - Sensitive headers are redacted.
"""

import time
import json
import logging
from typing import Callable, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from vinti4net.core.monitoring import error_monitor, sanitize_fields


# Headers that should never be logged
SENSITIVE_HEADERS: Set[str] = {
    "authorization", "cookie", "set-cookie", "x-api-key",
}

# Paths whose bodies are never logged
SENSITIVE_PATHS = ("/payments/callback",)

MAX_LOGGED_BODY = 10000


def _sanitize_headers(headers: dict) -> dict:
    """Remove sensitive headers before logging."""
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs HTTP requests and responses without leaking gateway secrets."""

    def __init__(self, app, logger_name: str = "vinti4net.requests"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        request_id = f"req_{int(start_time * 1000)}"
        request.state.request_id = request_id

        await self._log_request(request, request_id)

        try:
            response = await call_next(request)
        except Exception as e:
            error_monitor.log_error(e, {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "process_time": time.time() - start_time,
                "context": "middleware_error",
            })
            raise

        process_time = time.time() - start_time
        self._log_response(request, response, request_id, process_time)
        response.headers["X-Request-ID"] = request_id
        return response

    async def _log_request(self, request: Request, request_id: str):
        client_ip = request.client.host if request.client else "unknown"

        self.logger.info(
            f"[{request_id}] {request.method} {request.url.path} - Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": client_ip,
            },
        )

        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await request.body()
            try:
                sanitized = sanitize_fields(json.loads(body.decode()))
            except (json.JSONDecodeError, UnicodeDecodeError):
                return
            self.logger.debug(f"[{request_id}] Request body: {json.dumps(sanitized, default=str)}")

    def _log_response(self, request: Request, response: Response, request_id: str, process_time: float):
        status_code = response.status_code
        level = logging.INFO if status_code < 400 else logging.WARNING if status_code < 500 else logging.ERROR

        self.logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} - {status_code} - {process_time:.3f}s",
            extra={
                "request_id": request_id,
                "status_code": status_code,
                "process_time": process_time,
                "response_headers": _sanitize_headers(dict(response.headers)),
            },
        )

    def _should_log_body(self, request: Request) -> bool:
        if not self.logger.isEnabledFor(logging.DEBUG):
            return False
        if any(request.url.path.startswith(path) for path in SENSITIVE_PATHS):
            return False
        if "json" not in request.headers.get("content-type", ""):
            return False

        content_length = request.headers.get("content-length", "0")
        try:
            if int(content_length) > MAX_LOGGED_BODY:
                return False
        except (ValueError, TypeError):
            return False

        return True
