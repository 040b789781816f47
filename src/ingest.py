"""
Beacon Gateway Ingestion Pipeline
Validation, timestamping and persistence of telemetry pings.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog
from pydantic import BaseModel

from telemetry import TelemetryLog

logger = structlog.get_logger()

RECEIVED_AT = "receivedAt"
TARGET = "target"


class IngestStatus:
    """Pipeline outcomes."""

    ACCEPTED = "accepted"
    INVALID = "invalid"
    FAILED = "failed"


HTTP_STATUS = {
    IngestStatus.ACCEPTED: 200,
    IngestStatus.INVALID: 400,
    IngestStatus.FAILED: 500,
}


class IngestResult(BaseModel):
    """Result of ingesting one ping."""

    status: str
    record: Optional[Dict[str, Any]] = None
    log_path: Optional[str] = None
    reason: Optional[str] = None

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.status]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_payload(payload: Any) -> Optional[str]:
    """Return why ``payload`` is not a telemetry record, or None if it is."""
    if not isinstance(payload, dict):
        return f"payload must be a JSON object, got {type(payload).__name__}"
    if payload.get(TARGET) is None:
        return f"payload is missing '{TARGET}'"
    return None


def stamp_record(payload: Dict[str, Any], moment: datetime) -> Dict[str, Any]:
    """Put receivedAt first; any client-supplied receivedAt is dropped."""
    record = {RECEIVED_AT: format_timestamp(moment)}
    record.update((key, value) for key, value in payload.items() if key != RECEIVED_AT)
    return record


class IngestPipeline:
    """Validate, timestamp and persist telemetry pings."""

    def __init__(
        self,
        telemetry_log: TelemetryLog,
        clock: Callable[[], datetime] = utc_now,
        echo_records: bool = True
    ):
        self.telemetry_log = telemetry_log
        self.clock = clock
        self.echo_records = echo_records

    def ingest(self, payload: Any) -> IngestResult:
        """
        Run one parsed payload through the pipeline.

        Invalid payloads are never written. Errors while stamping or writing
        are logged and reported as FAILED rather than raised.
        """
        reason = validate_payload(payload)
        if reason:
            logger.warning("invalid_payload", reason=reason)
            return IngestResult(status=IngestStatus.INVALID, reason=reason)

        try:
            received_at = self.clock()
            record = stamp_record(payload, received_at)

            if self.echo_records:
                logger.info("telemetry_received", record=record)

            output_path = self.telemetry_log.append(record, received_at)

        except Exception as e:
            logger.error("ingest_failed", error=str(e), error_type=type(e).__name__)
            return IngestResult(status=IngestStatus.FAILED, reason=str(e))

        return IngestResult(
            status=IngestStatus.ACCEPTED,
            record=record,
            log_path=str(output_path)
        )
