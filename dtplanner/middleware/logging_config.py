"""
Logging setup for the approval engine.

Services log through ``logging.getLogger(__name__)`` and attach the ids of
what they touched via ``extra=``. In production each record becomes one
JSON line carrying those ids; in development the ids are appended to a
colored single-line message.

LOG_LEVEL overrides the level (DEBUG in development, INFO otherwise).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Request fields set by the timing middleware
_REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Engine fields set by the services, in display order
_ENGINE_FIELDS = (
    "project_id",
    "assessment_id",
    "section_approval_id",
    "section_name",
    "workflow_id",
    "stakeholder_id",
    "decision",
    "derived_status",
    "skipped",
)

# Short labels for the development formatter
_SCOPE_LABELS = {
    "project_id": "project",
    "assessment_id": "assessment",
    "section_approval_id": "section",
    "workflow_id": "workflow",
    "stakeholder_id": "stakeholder",
}


def _fields(record: logging.LogRecord, names) -> dict:
    return {name: getattr(record, name) for name in names if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped from the record itself."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_fields(record, _REQUEST_FIELDS))
        entry.update(_fields(record, _ENGINE_FIELDS))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line output for a developer terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        scope = " ".join(
            f"{_SCOPE_LABELS[name]}={value}"
            for name, value in _fields(record, _SCOPE_LABELS).items()
        )
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"
        if scope:
            line += f" ({scope})"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger for ``app``."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.setLevel(level)

    # Tests build more than one app; replace rather than stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
