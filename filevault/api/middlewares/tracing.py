import logging
from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response
from opentelemetry.trace import Status
from opentelemetry.trace import StatusCode

from filevault.tracing import set_span_attributes
from filevault.tracing import tracer


logger = logging.getLogger(__name__)


async def tracing_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    if not _should_trace(request.url.path):
        return await call_next(request)

    initial_attributes = {
        "http.method": request.method,
        "http.route": request.url.path,
        "http.url": str(request.url),
    }
    if request.query_params:
        initial_attributes["filevault.query_params"] = str(dict(request.query_params))

    with tracer.start_as_current_span(f"http.{request.method.lower()}", attributes=initial_attributes) as span:
        try:
            response = await call_next(request)

            set_span_attributes(
                span,
                {
                    "filevault.operation": get_operation_name(request),
                    "filevault.user_id": getattr(request.state, "user_id", None) or None,
                    "filevault.ray_id": getattr(request.state, "ray_id", None),
                    "http.status_code": int(response.status_code),
                },
            )

            if 400 <= response.status_code < 600:
                span.set_status(Status(StatusCode.ERROR))
                set_span_attributes(span, {"error": True, "error.type": "http_error"})
            else:
                span.set_status(Status(StatusCode.OK))

            return response

        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            set_span_attributes(
                span,
                {
                    "error": True,
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
            )
            raise


def _should_trace(path: str) -> bool:
    if path.startswith("/health"):
        return False
    if path.startswith("/docs"):
        return False
    if path.startswith("/redoc"):
        return False
    if path.startswith("/openapi.json"):  # noqa: SIM103
        return False
    return True


def get_operation_name(request: Request) -> str:
    route = request.scope.get("route")
    endpoint = getattr(route, "endpoint", None)
    if endpoint is not None and hasattr(endpoint, "__name__"):
        return str(endpoint.__name__)
    return f"{request.method.lower()}_unknown"
