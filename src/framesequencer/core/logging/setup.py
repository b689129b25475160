from __future__ import annotations

import logging
import math
import sys
from typing import Any

import orjson
import structlog

SERVICE_NAME = "framesequencer"


def _json_serializer(obj: Any, default: Any) -> str:
    """
    JSON serializer for structured logs, backed by orjson.
    """
    return orjson.dumps(obj, default=default).decode("utf-8")


def tag_service(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def render_non_finite(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Spell out inf / nan floats.

    An empty timeline logs `interval_ms=inf`; orjson would write that as
    null, which reads like a missing field.
    """
    for key, value in event_dict.items():
        if isinstance(value, float) and not math.isfinite(value):
            event_dict[key] = str(value)
    return event_dict


def configure_logging(*, level: str = "INFO", env: str = "local") -> None:
    """
    Configure JSON logging for the sequencer process.

    Every entry carries `service` and `env`; sequencer_id / component come
    from bind_context() (see build_sequencer). The demo app calls this once
    in create_app.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        tag_service,
        structlog.processors.CallsiteParameterAdder(
            {structlog.processors.CallsiteParameter.MODULE},
        ),

        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),

        structlog.processors.format_exc_info,
        render_non_finite,

        structlog.processors.JSONRenderer(serializer=_json_serializer),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(env=env)

    # uvicorn access logs
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def bind_context(**values: Any) -> None:
    """
    Bind fields (sequencer_id, component, ...) to every later log entry.
    """
    structlog.contextvars.bind_contextvars(**values)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
