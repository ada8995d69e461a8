"""
Structured Logging Configuration

JSON logs on stdout. Every line carries the request id (HTTP) or the
sync trigger (scheduled / manual / script pass) active when it was
emitted, plus the unit being processed where there is one.
"""

import logging
import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Any, Dict, Iterator

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
sync_trigger_var: ContextVar[str] = ContextVar('sync_trigger', default='')

# Attributes copied from a LogRecord into the JSON payload when present
_CONTEXT_FIELDS = ("unit_id", "ru_property_id", "stage", "duration_ms")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        request_id = request_id_var.get()
        if request_id:
            payload["request_id"] = request_id
        trigger = sync_trigger_var.get()
        if trigger:
            payload["sync_trigger"] = trigger

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if getattr(record, "data", None):
            payload["data"] = record.data

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter with helpers for the sync lifecycle events that
    operators search for.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def _event(self, level: int, msg: str, unit_id: Optional[str] = None,
               ru_property_id: Optional[str] = None, **data):
        extra: Dict[str, Any] = {"data": data}
        if unit_id:
            extra["unit_id"] = unit_id
        if ru_property_id:
            extra["ru_property_id"] = ru_property_id
        self.log(level, msg, extra=extra)

    def unit_sync_failed(self, unit_id: str, ru_property_id: str, stage: str, error: str):
        """Enough context to retry the unit by hand (run_sync.py --unit)."""
        self.log(
            logging.ERROR,
            f"❌ Failed to sync unit {unit_id} (RU {ru_property_id}) at {stage}: {error}",
            extra={"unit_id": unit_id, "ru_property_id": ru_property_id, "stage": stage},
        )

    def unit_sync_skipped(self, unit_id: str, ru_property_id: str, reason: str):
        self._event(
            logging.INFO,
            f"⚠️  Skipping unit {unit_id} (RU {ru_property_id}): {reason}",
            unit_id=unit_id,
            ru_property_id=ru_property_id,
            reason=reason,
        )

    def sync_pass_completed(
        self,
        trigger: str,
        success_count: int,
        error_count: int,
        skipped_count: int,
        duration_seconds: float
    ):
        self.log(
            logging.INFO,
            f"✨ Sync pass ({trigger}) finished in {duration_seconds:.2f}s - "
            f"success: {success_count}, errors: {error_count}, skipped: {skipped_count}",
            extra={
                "duration_ms": round(duration_seconds * 1000, 1),
                "data": {
                    "success_count": success_count,
                    "error_count": error_count,
                    "skipped_count": skipped_count,
                },
            },
        )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines (production) or plain text (local runs)
        include_uvicorn: Route uvicorn loggers through the same handler
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter() if json_format
        else logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    if include_uvicorn:
        for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            logging.getLogger(name).handlers = [handler]

    # Quiet chatty libraries
    for name in ("httpx", "httpcore", "sqlalchemy.engine", "apscheduler"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str):
    request_id_var.set(request_id)


def clear_request_context():
    request_id_var.set('')


@contextmanager
def sync_context(trigger: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with the sync trigger."""
    token = sync_trigger_var.set(trigger)
    try:
        yield
    finally:
        sync_trigger_var.reset(token)
