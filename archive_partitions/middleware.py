"""
Request middleware for the maintenance API.

Every request gets a request_id bound into the structlog context. Handlers
that run or inspect partitions record what they touched on
request.state.maintenance (schema, plan, created_count, run duration); it is
logged with the request and the run duration is echoed back as a header.
"""
import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from structlog.contextvars import bind_contextvars, clear_contextvars

from archive_partitions.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RUN_DURATION_HEADER = "X-Maintenance-Duration-Ms"


def record_maintenance(request: Request, **context: Any) -> None:
    """Attach partition context to the current request for the completion log."""
    current = getattr(request.state, "maintenance", None) or {}
    current.update(context)
    request.state.maintenance = current


def _maintenance_context(request: Request) -> Optional[Dict[str, Any]]:
    return getattr(request.state, "maintenance", None)


async def maintenance_request_middleware(request: Request, call_next: Callable) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id

    clear_contextvars()
    bind_contextvars(request_id=request_id, path=request.url.path, method=request.method)

    started = time.time()
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.error(
            "request_failed",
            exc_info=exc,
            duration_ms=round((time.time() - started) * 1000, 2),
            **(_maintenance_context(request) or {}),
        )
        raise
    else:
        context = _maintenance_context(request)
        duration_ms = round((time.time() - started) * 1000, 2)
        if context:
            # Handler-side values (schema, plan, run_duration_ms) ride along
            logger.info("maintenance_request_completed", status_code=response.status_code,
                        duration_ms=duration_ms, **context)
            if "run_duration_ms" in context:
                response.headers[RUN_DURATION_HEADER] = str(context["run_duration_ms"])
        else:
            logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_contextvars()
