"""Logging setup: structlog events rendered through stdlib logging.

Console output is colored key/value lines; workers running under a log
collector set ``LOG_JSON=true`` to get one JSON object per line instead.
Both modes share the processor chain, so the ``topic`` and ``webhook_id``
bound by the webhook actor end up on every line either way.
"""

import logging
import sys

import structlog
from structlog.typing import Processor

from subsku.config import settings

NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "dramatiq": logging.INFO,
    "asyncio": logging.INFO,
}


def _shared_processors(json_output: bool) -> list[Processor]:
    timestamper = (
        structlog.processors.TimeStamper(fmt="iso", utc=True)
        if json_output
        else structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool) -> Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback)


def configure_logging(*, json_output: bool | None = None, level: str | None = None) -> None:
    """Route structlog and stdlib records through one handler on stdout.

    Args:
        json_output: Render JSON lines instead of colored console output.
            Defaults to ``settings.log_json``.
        level: Root log level name. Defaults to ``settings.log_level``.
    """
    if json_output is None:
        json_output = settings.log_json
    level_name = (level or settings.log_level).upper()

    shared = _shared_processors(json_output)
    final_processors: list[Processor] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if json_output:
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(_renderer(json_output))

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        # uvicorn, dramatiq and httpx log through stdlib
        foreign_pre_chain=shared,
        processors=final_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name, logger_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(logger_level)


_configured = False


def setup_logging() -> None:
    """Setup logging once. Safe to call multiple times."""
    global _configured
    if not _configured:
        configure_logging()
        _configured = True
