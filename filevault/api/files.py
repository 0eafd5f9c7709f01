"""Active namespace endpoints: upload, list, download, delete (move to trash)."""

import logging
import time
from urllib.parse import quote

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.responses import StreamingResponse

from filevault.config import Config
from filevault.dependencies import get_config
from filevault.dependencies import get_lifecycle_manager
from filevault.dependencies import require_user_id
from filevault.errors import InvalidRequest
from filevault.errors import PayloadTooLarge
from filevault.services.lifecycle import LifecycleManager


logger = logging.getLogger(__name__)
router = APIRouter(tags=["files"])


async def read_upload_body(request: Request, max_size: int) -> bytes:
    """Stream the request body, giving up as soon as it exceeds ``max_size`` bytes."""
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_size = int(declared)
        except ValueError as e:
            raise InvalidRequest("Invalid Content-Length header") from e
        if declared_size > max_size:
            raise PayloadTooLarge(f"Upload of {declared_size} bytes exceeds the limit of {max_size} bytes")

    start_time = time.time()
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_size:
            raise PayloadTooLarge(f"Upload exceeds the limit of {max_size} bytes")
        chunks.append(chunk)

    logger.debug(f"Streaming read took {time.time() - start_time:.3f}s, {len(chunks)} chunks, size: {received} bytes")
    return b"".join(chunks)


def content_disposition(file_name: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(file_name, safe='')}"


@router.put("/files/{file_name}")
async def upload_file(
    file_name: str,
    request: Request,
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
    config: Config = Depends(get_config),
) -> JSONResponse:
    request.state.bucket_name = manager.active_bucket
    request.state.object_key = file_name

    data = await read_upload_body(request, config.max_upload_size_bytes)
    stored = await manager.upload_file(user_id, file_name, data, request.headers.get("content-type"))
    request.state.logger.info(f"Uploaded {stored.path} ({stored.size} bytes)")
    return JSONResponse({"success": True, "file": stored.to_dict()})


@router.get("/files")
async def list_files(
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> JSONResponse:
    files = await manager.list_files(user_id)
    return JSONResponse({"success": True, "files": [f.to_dict() for f in files]})


@router.get("/files/{file_name}")
async def download_file(
    file_name: str,
    request: Request,
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> StreamingResponse:
    request.state.bucket_name = manager.active_bucket
    request.state.object_key = file_name

    download = await manager.download_file(user_id, file_name)
    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers={
            "Content-Disposition": content_disposition(file_name),
            "Content-Length": str(download.size),
        },
    )


@router.delete("/files/{file_name}")
async def delete_file(
    file_name: str,
    request: Request,
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> JSONResponse:
    request.state.bucket_name = manager.active_bucket
    request.state.object_key = file_name

    result = await manager.move_to_trash(user_id, file_name)
    request.state.logger.info(f"Moved {file_name} to trash as {result.path}")
    return JSONResponse(result.to_dict())
