"""Loguru sinks for PitchMatch.

Human-readable lines go to stderr during development. With ``log_json`` each
record becomes one JSON object on stdout, tagged with the caller's
``request_id``, the resolved ``profile_id`` and the current domain
``operation``. ``resolve_caller`` binds ``profile_id`` as soon as an identity
maps to a profile.
"""

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from pitchmatch.config import settings

# =============================================================================
# Per-Call Context
# =============================================================================

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
profile_id_var: ContextVar[int | None] = ContextVar("profile_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


# =============================================================================
# JSON Records
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render a record as a single JSON line.

    Bound extras (``error_code``, ``recipient_id`` and so on) are merged into
    the top level; an attached exception is expanded with its traceback.
    """
    subset = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }

    if request_id := request_id_var.get():
        subset["request_id"] = request_id
    if (profile_id := profile_id_var.get()) is not None:
        subset["profile_id"] = profile_id
    if operation := operation_var.get():
        subset["operation"] = operation

    subset.update(record["extra"])

    if exc := record["exception"]:
        subset["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(
                exc.type, exc.value, exc.traceback
            ),
        }

    return json.dumps(subset, default=str)


def patching(record: dict[str, Any]) -> None:
    record["serialized"] = serialize(record)


def custom_formatter(record: dict[str, Any]) -> str:
    return "{serialized}\n"


# =============================================================================
# Sinks
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace every Loguru sink with the PitchMatch ones.

    Runs once at import with the values from ``settings``, and again from
    the CLI when ``--verbose`` lowers the level.

    Args:
        level: Minimum log level
        json_logs: One JSON object per line on stdout instead of text on stderr
        log_file: Optional rotating file sink under the data directory
        colorize: Color the text format

    Returns:
        The patched logger
    """
    loguru_logger.remove()

    patched_logger = loguru_logger.patch(patching)

    if json_logs:
        patched_logger.add(
            sys.stdout,
            level=level,
            format=custom_formatter,
            serialize=False,
        )
    else:
        format_str = (
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

        patched_logger.add(
            sys.stderr,
            level=level,
            format=format_str,
            colorize=colorize,
        )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        patched_logger.add(
            log_file,
            level=level,
            format=custom_formatter if json_logs else "{time} | {level} | {message}",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )

    return patched_logger


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.data_dir / "pitchmatch.log" if settings.log_to_file else None,
    colorize=not settings.log_json,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    profile_id: int | None = None,
    operation: str | None = None,
) -> None:
    """Bind per-call values; arguments left as None keep their current value.

    Example:
        >>> set_request_context(request_id="req-1", profile_id=42)
        >>> logger.info("Connection requested", recipient_id=7)
    """
    if request_id is not None:
        request_id_var.set(request_id)
    if profile_id is not None:
        profile_id_var.set(profile_id)
    if operation is not None:
        operation_var.set(operation)


def clear_request_context() -> None:
    request_id_var.set(None)
    profile_id_var.set(None)
    operation_var.set(None)


def get_request_context() -> dict[str, Any]:
    """Current ``request_id``, ``profile_id`` and ``operation`` (None when unset)."""
    return {
        "request_id": request_id_var.get(),
        "profile_id": profile_id_var.get(),
        "operation": operation_var.get(),
    }


__all__ = [
    "logger",
    "request_id_var",
    "profile_id_var",
    "operation_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "setup_logging",
]
