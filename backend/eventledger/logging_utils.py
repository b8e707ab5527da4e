import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .config import settings

logger = logging.getLogger("eventledger")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging() -> None:
    root = logging.getLogger()
    if getattr(configure_logging, "_configured", False):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())
    # sqlalchemy echoes every statement at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    configure_logging._configured = True  # type: ignore[attr-defined]


def _render(event: str, level: str, fields: dict[str, Any]) -> str:
    payload: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    request_id = _request_id.get()
    if request_id:
        payload["request_id"] = request_id
    payload.update(fields)
    if settings.log_json:
        return json.dumps(payload, default=str, ensure_ascii=False)
    return " ".join(f"{key}={value}" for key, value in payload.items())


def log_event(event: str, **fields: Any) -> None:
    logger.info(_render(event, "info", fields))


def log_warning(event: str, **fields: Any) -> None:
    logger.warning(_render(event, "warning", fields))


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = _request_id.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
