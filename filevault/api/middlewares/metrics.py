import time
from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from filevault.api.middlewares.tracing import get_operation_name
from filevault.monitoring import enrich_span_with_user_info
from filevault.monitoring import get_metrics_collector


async def metrics_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    enrich_span_with_user_info(
        user_id=getattr(request.state, "user_id", None),
        bucket_name=getattr(request.state, "bucket_name", None),
        object_key=getattr(request.state, "object_key", None),
    )

    get_metrics_collector().record_http_request(
        method=request.method,
        handler=get_operation_name(request),
        status_code=response.status_code,
        duration=duration,
    )
    return response
