"""
Beacon Gateway - FastAPI Application
Telemetry ingestion endpoint for beacon-style JSON pings.
"""

from typing import Any, List, Optional
from contextlib import asynccontextmanager
import structlog
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import Response
from pydantic_settings import BaseSettings
from starlette.concurrency import run_in_threadpool

from ingest import IngestPipeline, IngestStatus, HTTP_STATUS
from origin_policy import OriginAdmissionMiddleware, OriginPolicy
from telemetry import TelemetryLog
from utils import (
    LatencyTracker,
    PayloadError,
    RequestContextMiddleware,
    configure_logging,
    log_request,
    payload_error_handler,
    read_json_body,
)

logger = structlog.get_logger()

VERSION = "0.1.0"
PING_ENDPOINT = "POST /ping"


class Settings(BaseSettings):
    """Application settings from environment."""
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    log_dir: str = "logs"
    max_body_bytes: int = 1024 * 1024
    echo_records: bool = True

    allowed_origins: List[str] = ["https://limeroolon.pages.dev"]
    allowed_origin_suffixes: List[str] = ["*.ngrok.io"]
    status_message: str = "Beacon Gateway Active"

    class Config:
        env_file = "config/.env"
        env_file_encoding = "utf-8"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings = app.state.settings
    policy = app.state.origin_policy

    logger.info(
        "gateway_startup",
        version=VERSION,
        port=settings.port,
        allowed_origins=policy.describe(),
        endpoint=PING_ENDPOINT
    )
    logger.info("gateway_ready", log_dir=str(app.state.telemetry_log.log_dir))

    yield

    logger.info("gateway_shutdown")


router = APIRouter()


@router.get("/")
async def root(request: Request):
    """Health and info endpoint."""
    policy = request.app.state.origin_policy
    body = {"status": request.app.state.settings.status_message}

    frontends = policy.describe()
    if len(frontends) == 1:
        body["frontend"] = frontends[0]
    else:
        body["allowedFrontends"] = frontends

    body["ping"] = PING_ENDPOINT
    body["logs"] = request.app.state.telemetry_log.file_pattern
    return body


@router.post("/ping")
async def ping(request: Request, payload: Any = Depends(read_json_body)):
    """
    Receive one telemetry ping.

    Always answers with an empty body; beacon senders discard it anyway.
    """
    tracker = LatencyTracker()
    tracker.start()

    request_id = request.scope.get("request_id", "unknown")
    pipeline = request.app.state.pipeline

    try:
        result = await run_in_threadpool(pipeline.ingest, payload)
    except Exception as e:
        logger.error("request_failed", error=str(e), error_type=type(e).__name__)
        status_code = HTTP_STATUS[IngestStatus.FAILED]
        log_request(request_id, IngestStatus.FAILED, status_code, tracker.elapsed_ms(), str(e))
        return Response(status_code=status_code)

    log_request(request_id, result.status, result.status_code, tracker.elapsed_ms(), result.reason)
    return Response(status_code=result.status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Creating the telemetry log creates the log directory; if that fails the
    error propagates and the server never starts serving.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    origin_policy = OriginPolicy(settings.allowed_origins, settings.allowed_origin_suffixes)
    telemetry_log = TelemetryLog(settings.log_dir)
    pipeline = IngestPipeline(telemetry_log, echo_records=settings.echo_records)

    app = FastAPI(
        title="Beacon Gateway",
        description="Telemetry ingestion endpoint",
        version=VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.origin_policy = origin_policy
    app.state.telemetry_log = telemetry_log
    app.state.pipeline = pipeline

    app.add_middleware(OriginAdmissionMiddleware, policy=origin_policy)
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(PayloadError, payload_error_handler)
    app.include_router(router)

    return app


def main():
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "beacon_gateway:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )


if __name__ == "__main__":
    main()
