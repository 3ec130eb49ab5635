"""Logging setup for the server and job entry points.

Modules keep using ``logging.getLogger(__name__)``; the root handler renders
every record through structlog, as JSON lines for Cloud Run or as plain
console lines for local runs.
"""

import logging
import sys

import structlog

SHARED_PROCESSORS = [
    structlog.processors.TimeStamper(fmt='iso', utc=True),
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
]


def build_formatter(json_format: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering stdlib records with structlog processors."""
    if json_format:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False, exception_formatter=structlog.dev.plain_traceback),
        ]
    return structlog.stdlib.ProcessorFormatter(foreign_pre_chain=SHARED_PROCESSORS, processors=processors)


def configure_logging(level: int = logging.INFO, json_format: bool = True) -> None:
    """Install a single stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(json_format))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    # Client libraries are chatty at INFO
    logging.getLogger('google').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
