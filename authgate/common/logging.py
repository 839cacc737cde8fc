"""
Request logging and loguru setup.

Each request gets a trace id (taken from ``X-Request-ID`` when the caller sends one)
bound into the loguru context, so provider flow logs can be correlated with the
request that produced them.
"""
# mypy: ignore-errors

import os
import sys
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

TRACE_HEADER = "X-Request-ID"

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | trace_id={extra[trace_id]} | "
    "{extra[method]} {extra[path]} | {name}:{function}:{line} | {message}"
)
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "trace_id={extra[trace_id]} | {extra[method]} {extra[path]} | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)


def _level_for(status_code: int) -> str:
    if status_code >= 500:
        return "ERROR"
    if status_code >= 400:
        return "WARNING"
    return "INFO"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line when a request starts and one when it ends, tagged with its trace id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
        request.state.trace_id = trace_id

        client = request.client.host if request.client else "unknown"
        log = logger.bind(trace_id=trace_id, method=request.method, path=request.url.path, client=client)
        log.debug("request.start")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            log.opt(exception=True).error(f"request.failed duration={elapsed:.3f}s error={type(e).__name__}")
            raise

        elapsed = time.perf_counter() - started
        log.log(_level_for(response.status_code), f"request.done status={response.status_code} duration={elapsed:.3f}s")

        response.headers["X-Trace-Id"] = trace_id
        return response


def _add_file_sink(path: str, level: str, rotation: str) -> None:
    logger.add(path, rotation=rotation, retention="30 days", compression="zip", format=FILE_FORMAT, level=level)


def setup_logging(level: str = "INFO", log_dir: str | None = "logs"):
    """
    Configure loguru sinks.

    Args:
        level: Minimum level for the console and the main log file
        log_dir: Directory for ``authgate.log`` and ``error.log``; None logs to stderr only
    """
    logger.remove()
    logger.configure(extra={"trace_id": "-", "method": "-", "path": "-", "client": "-"})
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            _add_file_sink(os.path.join(log_dir, "authgate.log"), level, rotation="100 MB")
            _add_file_sink(os.path.join(log_dir, "error.log"), "ERROR", rotation="50 MB")
        except OSError as e:
            logger.warning(f"File logging disabled, can not write to {log_dir}: {e}")

    logger.debug(f"Logging configured level={level} log_dir={log_dir or '-'}")
