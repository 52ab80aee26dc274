"""
Log formatting for flowforge with per-run trace context.

The execution controller stamps ``workflow_id`` and ``run_id`` into a
ContextVar when a run begins and adds ``node_id`` as each step starts. Both
formatters read that context, so a plain ``logger.info(...)`` from any module
called during a run is tagged with the run it belongs to.

Lifecycle and progress records also carry ``extra`` fields:

    logger.debug("A at 40%", extra={"event": "node_progress", "progress": 40})

``StructuredFormatter`` writes them as JSON keys; ``HumanReadableFormatter``
appends them as a bracketed suffix.
"""

import json
import logging
import os
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

# Record attributes copied from ``extra`` into the output, in this order
LOG_EXTRA_FIELDS = ("event", "status", "progress")

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    """Remove terminal color codes so JSON output stays clean."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """The ``LOG_EXTRA_FIELDS`` a record was logged with, skipping unset ones."""
    extras = {}
    for name in LOG_EXTRA_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            extras[name] = str(value) if name != "progress" else value
    return extras


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message, trace context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
        }
        entry.update(trace_context.get() or {})
        entry.update(record_extras(record))

        if record.exc_info:
            entry["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(entry)


class HumanReadableFormatter(logging.Formatter):
    """Colored single-line output prefixed with the short trace context."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}
        tags = []
        if context.get("workflow_id"):
            tags.append(f"wf:{context['workflow_id']}")
        if context.get("run_id"):
            tags.append(f"run:{context['run_id'][-8:]}")
        if context.get("node_id"):
            tags.append(f"node:{context['node_id']}")
        prefix = f"[{' | '.join(tags)}] " if tags else ""

        extras = record_extras(record)
        if "progress" in extras:
            extras["progress"] = f"{extras['progress']}%"
        suffix = f" [{' '.join(str(v) for v in extras.values())}]" if extras else ""

        color = self.COLORS.get(record.levelname, "")
        level = f"{color}[{record.levelname:<8}]{self.RESET}"
        message = f"{level} {prefix}{record.getMessage()}{suffix}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(level: str = "INFO", format: str = "auto") -> None:
    """
    Install a single stream handler on the root logger.

    Args:
        level: Log level name, case-insensitive.
        format: ``"json"``, ``"human"`` or ``"auto"``. Auto picks JSON when
            ``LOG_FORMAT=json`` or ``ENV=production`` is set.
    """
    if format == "auto":
        wants_json = (
            os.getenv("LOG_FORMAT", "").lower() == "json"
            or os.getenv("ENV", "development").lower() == "production"
        )
        format = "json" if wants_json else "human"

    formatter: logging.Formatter
    if format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


def set_trace_context(**kwargs: Any) -> None:
    """Merge ``kwargs`` into the trace context of the current task."""
    current = trace_context.get() or {}
    trace_context.set({**current, **kwargs})


def get_trace_context() -> dict:
    context = trace_context.get() or {}
    return context.copy()


def clear_trace_context() -> None:
    trace_context.set(None)
