"""
Beacon Gateway Utilities
Shared utilities for logging, request tracking, body reading and error handling.
"""

import logging
import uuid
import time
import orjson
import structlog
from typing import Dict, Any, Optional
from fastapi import Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured JSON logging to stdout."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(serializer=orjson.dumps)
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.BytesLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def generate_request_id() -> str:
    """Generate unique request ID."""
    return str(uuid.uuid4())


class RequestContextMiddleware:
    """Middleware to inject request_id into all logs."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            request_id = generate_request_id()
            scope["request_id"] = request_id
            structlog.contextvars.clear_contextvars()
            structlog.contextvars.bind_contextvars(request_id=request_id)

        await self.app(scope, receive, send)


class PayloadError(Exception):
    """Request body rejected before it reaches the handler."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.message = message
        self.details = details


async def read_body_limited(request: Request, limit: int) -> bytes:
    """
    Read the request body, refusing anything larger than ``limit`` bytes.

    The declared Content-Length is checked first so oversized uploads are
    refused without being read; the streamed size is checked as well since
    chunked requests carry no length.
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise PayloadError(
            413, "payload_too_large", f"Request body exceeds {limit} bytes", {"limit": limit}
        )

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadError(
                413, "payload_too_large", f"Request body exceeds {limit} bytes", {"limit": limit}
            )

    return bytes(body)


async def read_json_body(request: Request) -> Any:
    """FastAPI dependency: bounded read plus JSON parse of the request body."""
    limit = request.app.state.settings.max_body_bytes
    body = await read_body_limited(request, limit)

    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise PayloadError(400, "malformed_json", "Request body is not valid JSON") from e


def error_response(
    status_code: int,
    error_type: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Build standardized error response."""
    content = {
        "error": {
            "type": error_type,
            "message": message,
        }
    }
    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )


async def payload_error_handler(request: Request, exc: PayloadError) -> JSONResponse:
    """Translate body-reading failures into framework-level 4xx responses."""
    logger.warning(
        "payload_rejected",
        status_code=exc.status_code,
        error_type=exc.error_type,
        path=request.url.path
    )
    return error_response(exc.status_code, exc.error_type, exc.message, exc.details)


class LatencyTracker:
    """Track request latency."""

    def __init__(self):
        self.start_time = None

    def start(self):
        """Start timing."""
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        if self.start_time is None:
            return 0.0
        return (time.perf_counter() - self.start_time) * 1000


def log_request(
    request_id: str,
    outcome: str,
    status_code: int,
    latency_ms: float,
    failure_reason: Optional[str] = None
):
    """
    Log structured ping information.

    Args:
        request_id: Unique request identifier
        outcome: Pipeline outcome (accepted/invalid/failed)
        status_code: HTTP status returned to the sender
        latency_ms: Request latency in milliseconds
        failure_reason: Validation or error message if outcome != accepted
    """
    log_data = {
        "request_id": request_id,
        "outcome": outcome,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    }

    if failure_reason:
        log_data["failure_reason"] = failure_reason

    if status_code < 400:
        logger.info("ping_completed", **log_data)
    elif status_code < 500:
        logger.warning("ping_completed", **log_data)
    else:
        logger.error("ping_completed", **log_data)
