from .files import DEFAULT_CONTENT_TYPE
from .files import StoredObject
from .files import TrashedObject
from .files import TrashMetadata
from .results import OperationResult
from .results import RestoreRequest
from .results import SweepResult


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "StoredObject",
    "TrashedObject",
    "TrashMetadata",
    "OperationResult",
    "RestoreRequest",
    "SweepResult",
]
