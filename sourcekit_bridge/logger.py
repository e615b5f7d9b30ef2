import json
import logging
import os
import sys
from contextlib import contextmanager
from loguru import logger as _loguru_logger
from typing import Optional

_LOGGING_CONFIGURED = False
_logger = _loguru_logger


def production_log_sink(message):
    """Flat JSON sink for production.

    loguru serializes the whole record; this reshapes it into one flat JSON
    object per line. Everything goes to stderr because stdout carries the
    tool-calling protocol.
    """
    try:
        full_record = json.loads(message)
        record = full_record.get("record", full_record)
    except (json.JSONDecodeError, AttributeError):
        sys.stderr.write(message)
        sys.stderr.flush()
        return

    exception = None
    exc = record.get("exception")
    if exc:
        exception = {
            "type": exc.get("type", {}).get("name", "Exception")
            if isinstance(exc.get("type"), dict)
            else str(exc.get("type", "Exception")),
            "value": exc.get("value", ""),
            "traceback": exc.get("traceback", ""),
        }

    log_data = {
        "timestamp": record.get("time", {}).get("repr", ""),
        "level": record.get("level", {}).get("name", "INFO"),
        "logger": record.get("extra", {}).get("name", record.get("name", "unknown")),
        "function": record.get("function", ""),
        "line": record.get("line", 0),
        "message": record.get("message", ""),
    }

    extras = record.get("extra", {})
    for key, value in extras.items():
        if key != "name":
            log_data[key] = value

    if exception:
        log_data["exception"] = exception

    sys.stderr.write(json.dumps(log_data, default=str) + "\n")
    sys.stderr.flush()


class InterceptHandler(logging.Handler):
    """Intercept standard library logging and route through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = _logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        _logger.bind(name=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(level: Optional[str] = None, force: bool = False):
    """
    Configure unified logging with loguru.

    The bridge's own modules log through loguru directly; third-party
    libraries (the MCP SDK, asyncio) are intercepted from the standard
    library at reduced verbosity.
    """
    global _LOGGING_CONFIGURED, _logger

    if _LOGGING_CONFIGURED and not force:
        return

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    env = os.getenv("ENV", "development")

    _logger.remove()

    def patcher(record):
        if "name" not in record["extra"]:
            record["extra"]["name"] = record.get(
                "name", record.get("module", "unknown")
            )

    _logger = _loguru_logger.patch(patcher)

    if env == "production":
        _logger.add(
            production_log_sink,
            format="{message}",
            level=level,
            serialize=True,
        )
    else:
        _logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
            level=level,
            colorize=True,
        )

    intercept_handler = InterceptHandler()

    library_levels = {
        "sourcekit_bridge": level,
        "mcp": "WARNING",
        "mcp.server": "WARNING",
        "asyncio": "WARNING",
        "httpx": "WARNING",
    }

    logging.basicConfig(
        handlers=[intercept_handler],
        level=logging.DEBUG if level == "DEBUG" else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        force=True,
    )

    for logger_name, log_level in library_levels.items():
        lib_logger = logging.getLogger(logger_name)
        lib_logger.handlers = [intercept_handler]
        lib_logger.setLevel(log_level)
        lib_logger.propagate = False

    logging.getLogger().setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True


@contextmanager
def log_context(**kwargs):
    """
    Context manager to add identifiers to all logs within the context.

    Usage:
        with log_context(tool="swift-hover", file=path):
            logger.info("Handling tool call")
    """
    with _logger.contextualize(**kwargs):
        yield


def setup_logger(name: str):
    """
    Return a loguru logger bound to ``name``.

    Context can be attached per call:
        logger.bind(uri=uri).debug("Opened document")
    """
    if not _LOGGING_CONFIGURED:
        configure_logging()

    return _logger.bind(name=name)
