"""
Logging setup and step logging for the transfer pipeline.
Step events carry structured metadata and are emitted through stdlib logging.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

# log(step, metadata) callback injected into the uploader
StepLog = Callable[[str, Optional[Dict[str, Any]]], None]

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ["botocore", "boto3", "urllib3", "s3transfer", "httpx", "httpcore"]


class JSONFormatter(logging.Formatter):
    """One JSON object per line, in the shape Cloud Logging parses."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "severity": record.levelname,
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            payload.update(context)

        step = getattr(record, "step", None)
        if step:
            payload["step"] = step

        fields = getattr(record, "fields", None)
        if fields:
            payload.update(fields)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure the root logger for the worker process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit JSON lines instead of plain text
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class StepLogger:
    """
    Named step events with structured metadata.

    Instances are callable, so one can be passed wherever a StepLog is
    expected:

        step_log = StepLogger({"renderId": render_id})
        uploader = ResilientUploader(s3, log=step_log)
        step_log("upload_start")
        step_log.log_error("failed", exc)
    """

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.context = dict(context or {})
        self.logger = logger or logging.getLogger("render_transfer.steps")

    def __call__(self, step: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log(step, metadata)

    def log(self, step: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.logger.info(
            step,
            extra={"step": step, "fields": dict(metadata or {}), "context": self.context},
        )

    def log_error(self, step: str, error: BaseException) -> None:
        self.logger.error(
            f"{step}: {error}",
            exc_info=(type(error), error, error.__traceback__),
            extra={
                "step": step,
                "fields": {"error": str(error), "errorType": type(error).__name__},
                "context": self.context,
            },
        )
