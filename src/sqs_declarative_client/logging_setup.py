from __future__ import annotations
import logging
import os
import sys

from colorlog import ColoredFormatter

_DEFAULT_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
_DEFAULT_USE_COLOR = os.environ.get("LOG_USE_COLOR", "1").lower() in ("1", "true", "yes", "y")
_DEFAULT_FORMAT = os.environ.get(
    "LOG_FORMAT",
    "%(log_color)s[%(levelname)s]%(reset)s %(message_log_color)s%(message)s%(reset)s "
    "(%(name)s:%(lineno)d)"
)
_DEFAULT_DATEFMT = os.environ.get("LOG_DATEFMT", "%Y-%m-%d %H:%M:%S")

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

_COLORS = {
    "DEBUG":    "cyan",
    "INFO":     "white",
    "WARNING":  "yellow",
    "ERROR":    "red",
    "CRITICAL": "bold_red",
}

ROOT_LOGGER_NAME = "sqs_declarative_client"
_CONFIGURED_MARKER = "_sqs_declarative_client_handler"


def _is_tty(stream) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


def _formatter() -> logging.Formatter:
    if _DEFAULT_USE_COLOR and _is_tty(sys.stdout):
        return ColoredFormatter(
            _DEFAULT_FORMAT,
            datefmt=_DEFAULT_DATEFMT,
            log_colors=_COLORS,
            secondary_log_colors={"message": _COLORS},
            reset=True,
            style="%",
        )
    # CloudWatch renders best without ANSI
    fmt = os.environ.get("LOG_PLAIN_FORMAT", "[%(levelname)s] %(message)s (%(name)s:%(lineno)d)")
    return logging.Formatter(fmt=fmt, datefmt=_DEFAULT_DATEFMT)


def _attach_handler(logger: logging.Logger) -> logging.Logger:
    if getattr(logger, _CONFIGURED_MARKER, False):
        return logger
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_formatter())
    logger.setLevel(_LEVELS.get(_DEFAULT_LEVEL, logging.INFO))
    logger.handlers[:] = [handler]
    logger.propagate = False
    setattr(logger, _CONFIGURED_MARKER, True)
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Fetch a logger for this package.

    The stdout handler (LOG_LEVEL, LOG_USE_COLOR, LOG_FORMAT, LOG_DATEFMT)
    lives on the ``sqs_declarative_client`` logger only. Module loggers such
    as ``sqs_declarative_client.service`` carry none and propagate to it.
    A name outside the package gets its own handler.
    """
    root = _attach_handler(logging.getLogger(ROOT_LOGGER_NAME))
    if name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return _attach_handler(logging.getLogger(name))
