"""
Root logging configuration for applications embedding tiercache.

Library modules only ever call ``logging.getLogger(__name__)`` and pass
structured context through ``extra={...}``.  This module installs a
single root handler that renders those records either as one JSON
object per line (via structlog's ``ProcessorFormatter``) or as plain
text.
"""

import logging
import sys
from typing import Optional

import structlog

from tiercache.config import LoggingSettings, get_settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _json_formatter() -> logging.Formatter:
    """Formatter that renders stdlib records, including ``extra`` fields, as JSON."""
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
        ],
    )


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    stream=None,
) -> logging.Handler:
    """Install a root handler according to *settings*.

    Any handler previously installed by this function is replaced, so it
    is safe to call more than once.

    Args:
        settings: Logging section; defaults to ``get_settings().logging``.
        stream: Output stream, ``sys.stderr`` when omitted.

    Returns:
        The handler that was installed.
    """
    if settings is None:
        settings = get_settings().logging

    handler = logging.StreamHandler(stream or sys.stderr)
    if settings.format.lower() == "json":
        handler.setFormatter(_json_formatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    handler.set_name("tiercache")

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "tiercache":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.level.upper())
    return handler
