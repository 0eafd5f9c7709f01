import contextvars
import logging
import re
import uuid
from typing import Any
from typing import MutableMapping
from typing import Optional


NO_RAY_ID = "no-ray-id"

ray_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("ray_id", default=NO_RAY_ID)

_RAY_ID_PATTERN = re.compile(r"^[0-9a-f]{16}$")


def generate_ray_id() -> str:
    """Generate a 16-character lowercase hex ray ID (first 64 bits of a UUID4)."""
    return uuid.uuid4().hex[:16]


def resolve_ray_id(header_value: Optional[str]) -> str:
    """Reuse a well-formed upstream ray ID, otherwise mint a fresh one."""
    if header_value and _RAY_ID_PATTERN.match(header_value.strip().lower()):
        return header_value.strip().lower()
    return generate_ray_id()


class RayIDLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps every record with a fixed ray_id."""

    def __init__(self, logger: logging.Logger, ray_id: Optional[str] = None):
        super().__init__(logger, {"ray_id": ray_id or NO_RAY_ID})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = kwargs.setdefault("extra", {})
        extra["ray_id"] = self.extra.get("ray_id", NO_RAY_ID) if self.extra else NO_RAY_ID
        return msg, kwargs


def get_logger_with_ray_id(name: str, ray_id: Optional[str] = None) -> RayIDLoggerAdapter:
    return RayIDLoggerAdapter(logging.getLogger(name), ray_id)
