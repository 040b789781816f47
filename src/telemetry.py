"""
Daily JSONL telemetry log.
"""

from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Union

import orjson

FILE_PREFIX = "telemetry-"
FILE_SUFFIX = ".jsonl"


def log_file_name(moment: datetime) -> str:
    """File name for the UTC calendar day containing ``moment``."""
    day = moment.astimezone(timezone.utc).date()
    return f"{FILE_PREFIX}{day.isoformat()}{FILE_SUFFIX}"


class TelemetryLog:
    """Append telemetry records as JSONL, one file per UTC day."""

    def __init__(self, log_dir: Union[str, Path] = "logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def file_pattern(self) -> str:
        return f"{self.log_dir.name}/{FILE_PREFIX}YYYY-MM-DD{FILE_SUFFIX}"

    def path_for(self, moment: datetime) -> Path:
        return self.log_dir / log_file_name(moment)

    def append(self, record: Dict[str, Any], moment: datetime) -> Path:
        """Write a single record to the file for ``moment`` and return its path."""
        output_path = self.path_for(moment)
        line = orjson.dumps(record) + b"\n"

        # One unbuffered write per record keeps each line whole.
        with self._lock:
            with open(output_path, "ab", buffering=0) as handle:
                handle.write(line)

        return output_path
