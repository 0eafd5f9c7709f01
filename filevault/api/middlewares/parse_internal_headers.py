"""Parse identity headers set by the upstream gateway into request.state."""

import logging
import time
from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from filevault.services.ray_id_service import get_logger_with_ray_id
from filevault.services.ray_id_service import ray_id_context
from filevault.services.ray_id_service import resolve_ray_id


logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-Filevault-User-Id"
RAY_ID_HEADER = "X-Filevault-Ray-ID"


async def parse_internal_headers_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """
    Parse X-Filevault-* headers injected by the gateway into request.state.

    The gateway sets these headers after authenticating the request:
    - X-Filevault-User-Id: Opaque, already verified user id
    - X-Filevault-Ray-ID: Request tracing ID (generated here when absent or malformed)
    """
    ray_id = resolve_ray_id(request.headers.get(RAY_ID_HEADER))
    token = ray_id_context.set(ray_id)
    request.state.ray_id = ray_id
    request.state.logger = get_logger_with_ray_id(__name__, ray_id)
    request.state.api_start_time = time.time()
    request.state.user_id = request.headers.get(USER_ID_HEADER, "").strip()

    logger.debug(f"Headers: user={request.state.user_id[:16] or 'NONE'} path={request.url.path}")

    try:
        response = await call_next(request)
    finally:
        ray_id_context.reset(token)

    response.headers[RAY_ID_HEADER] = ray_id
    return response
