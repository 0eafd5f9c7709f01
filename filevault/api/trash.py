"""Trash endpoints: list, restore, permanent delete and the privileged expiry sweep."""

import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi.responses import JSONResponse

from filevault.dependencies import get_expiry_sweeper
from filevault.dependencies import get_lifecycle_manager
from filevault.dependencies import require_cleanup_api_key
from filevault.dependencies import require_user_id
from filevault.models.results import RestoreRequest
from filevault.services.lifecycle import LifecycleManager
from filevault.services.sweeper import ExpirySweeper


logger = logging.getLogger(__name__)
router = APIRouter(tags=["trash"])


@router.get("/trash")
async def list_trash(
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> JSONResponse:
    files = await manager.list_trash(user_id)
    return JSONResponse({"success": True, "files": [f.to_dict() for f in files]})


@router.post("/trash/restore")
async def restore_from_trash(
    body: RestoreRequest,
    request: Request,
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> JSONResponse:
    request.state.bucket_name = manager.trash_bucket
    request.state.object_key = body.path

    result = await manager.restore_from_trash(user_id, body.path)
    request.state.logger.info(f"Restored {body.path} to {result.path}")
    return JSONResponse(result.to_dict())


@router.delete("/trash")
async def permanent_delete(
    request: Request,
    path: str = Query(..., description="Trash key to delete permanently"),
    user_id: str = Depends(require_user_id),
    manager: LifecycleManager = Depends(get_lifecycle_manager),
) -> JSONResponse:
    request.state.bucket_name = manager.trash_bucket
    request.state.object_key = path

    result = await manager.permanent_delete(user_id, path)
    request.state.logger.info(f"Permanently deleted {path}")
    return JSONResponse(result.to_dict())


@router.post("/trash/cleanup", dependencies=[Depends(require_cleanup_api_key)])
async def cleanup_expired_trash(
    dry_run: bool = Query(False, description="Report expired entries without deleting them"),
    sweeper: ExpirySweeper = Depends(get_expiry_sweeper),
) -> JSONResponse:
    result = await sweeper.cleanup_expired_trash(dry_run=dry_run)
    return JSONResponse(result.to_dict())
