import json
import logging
import sys

from plume.config import LOG_LEVEL

LOGGER_NAME = "plume"


def setup_enhanced_logging():
    """Console logging for the plume core, shared by every module."""
    logger = logging.getLogger(LOGGER_NAME)

    # Modules call this at import time; keep a single console handler
    logger.handlers.clear()

    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def log_with_context(logger, level, message, item_id=None, **context):
    """Log with structured context"""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    # Build enhanced message with context data for console logs
    context_parts = []

    if item_id:
        context_parts.append(f"item_id={item_id[:8]}...")  # Truncate item_id for brevity
    for key, value in context.items():
        if isinstance(value, (dict, list)):
            formatted_value = json.dumps(value, separators=(',', ':'))
        elif isinstance(value, float):
            formatted_value = f"{value:.2f}"
        else:
            formatted_value = str(value)
        context_parts.append(f"{key}={formatted_value}")

    if context_parts:
        enhanced_message = f"{message} | {' | '.join(context_parts)}"
    else:
        enhanced_message = message

    record = logging.LogRecord(
        name=logger.name,
        level=levelno,
        pathname="",
        lineno=0,
        msg=enhanced_message,
        args=(),
        exc_info=None
    )

    # Structured attributes for handlers that want them
    record.item_id = item_id
    record.context = context

    logger.handle(record)
