import hmac
import logging

from fastapi import Request

from filevault.config import Config
from filevault.errors import Unauthenticated
from filevault.services.lifecycle import LifecycleManager
from filevault.services.sweeper import ExpirySweeper


logger = logging.getLogger(__name__)


def get_config(request: Request) -> Config:
    """Extract the application Config from the request."""
    config: Config = request.app.state.config
    return config


def get_lifecycle_manager(request: Request) -> LifecycleManager:
    manager: LifecycleManager = request.app.state.lifecycle_manager
    return manager


def get_expiry_sweeper(request: Request) -> ExpirySweeper:
    sweeper: ExpirySweeper = request.app.state.expiry_sweeper
    return sweeper


def require_user_id(request: Request) -> str:
    """The caller's user id as injected by the gateway; 401 when absent."""
    user_id = getattr(request.state, "user_id", "")
    if not user_id:
        raise Unauthenticated()
    return user_id


def require_cleanup_api_key(request: Request) -> None:
    """Guard for the privileged sweep endpoint: X-API-Key must equal CLEANUP_API_KEY."""
    expected = get_config(request).cleanup_api_key
    provided = request.headers.get("X-API-Key", "")
    if not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(f"Rejected cleanup request from {request.client.host if request.client else 'unknown'}")
        raise Unauthenticated("Unauthorized")
