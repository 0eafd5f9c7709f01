from typing import Any

from .base import ObjectDownload
from .base import ObjectInfo
from .base import ObjectStore
from .fs import FileSystemObjectStore
from .memory import InMemoryObjectStore


def build_object_store(config: Any) -> ObjectStore:
    """Instantiate the backend selected by ``config.storage_backend``."""
    backend = config.storage_backend
    if backend == "memory":
        return InMemoryObjectStore()
    if backend == "filesystem":
        return FileSystemObjectStore(config.fs_root)
    if backend == "minio":
        from .minio_store import MinioObjectStore

        return MinioObjectStore.from_config(config)
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    "ObjectDownload",
    "ObjectInfo",
    "ObjectStore",
    "InMemoryObjectStore",
    "FileSystemObjectStore",
    "build_object_store",
]
