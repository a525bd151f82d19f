"""Structured logging for the engine and the feedrank CLI."""

import logging
import sys
from typing import TextIO

import structlog


REQUEST_CONTEXT_KEYS: tuple[str, ...] = ("request_id", "operation")


def resolve_level(level: int | str) -> int:
    """Turn a level name such as "debug" into its numeric value.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: int | str = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog and the standard library root logger.

    Engine components log through module-level ``structlog.get_logger()``
    loggers bound with ``component``/``subcomponent``; request context
    bound by ``bind_request_context`` is merged into every event.

    Args:
        level: Minimum level, numeric or by name.
        output: Stream receiving log lines; stdout stays free for command
            output.
        json_format: Render JSON lines instead of the console format.
    """
    numeric = resolve_level(level)
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=output.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=numeric)


def bind_request_context(request_id: str, operation: str | None = None) -> None:
    """Tag subsequent log events on this context with a request id.

    Args:
        request_id: Identifier of one engine call (feed page, sync).
        operation: Engine entry point handling the call.
    """
    fields = {"request_id": request_id}
    if operation:
        fields["operation"] = operation
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    """Remove the request tags bound by ``bind_request_context``."""
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
