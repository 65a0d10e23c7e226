# newsletter_api/telemetry.py
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [request_id=%(request_id)s] %(message)s"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamp every log record with the id of the request being served"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: str = "INFO", stream=None) -> None:
    """Configure root logging once at startup.

    Uvicorn and asyncpg loggers propagate to the root logger, so their
    records carry the request id too.
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    handler.set_name("newsletter_api")

    root = logging.getLogger()
    # calling twice must not duplicate output
    for existing in list(root.handlers):
        if existing.get_name() == "newsletter_api":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())


def setup_request_logging(app: FastAPI):
    """Assign a request id to every request and log its outcome"""

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        status_code: Optional[int] = None
        logger.info(f"{request.method} {request.url.path} started")
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} finished "
                f"status={status_code} elapsed_ms={elapsed_ms:.1f}"
            )
            request_id_var.reset(token)
