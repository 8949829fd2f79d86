from __future__ import annotations

import logging

from src.notes_backend.config import settings

_HANDLER_NAME = "notes_backend_stream"


def _build_stream_handler(level: int) -> logging.StreamHandler:
    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s", "%H:%M:%S")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    stream_handler.name = _HANDLER_NAME
    return stream_handler


def _replace_handlers(logger: logging.Logger, handlers: list[logging.Handler]) -> None:
    logger.handlers = [h for h in logger.handlers if h.name != _HANDLER_NAME]
    for handler in handlers:
        logger.addHandler(handler)


def configure_logging(level: str | None = None) -> None:
    """Install a single formatted stream handler on the root and uvicorn loggers.

    Safe to call more than once; the handler is replaced rather than stacked.
    """

    resolved = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    stream_handler = _build_stream_handler(resolved)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    _replace_handlers(root_logger, [stream_handler])

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.setLevel(resolved)
        _replace_handlers(uv_logger, [stream_handler])
        uv_logger.propagate = False
