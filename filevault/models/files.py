from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Mapping
from typing import Optional

from filevault.errors import CorruptState


META_USER_ID = "userId"
META_ORIGINAL_NAME = "originalName"
META_UPLOADED_AT = "uploadedAt"
META_RESTORED_AT = "restoredAt"
META_DELETED_AT = "deletedAt"
META_ORIGINAL_CONTENT_TYPE = "originalContentType"

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def lookup_metadata(metadata: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    """Case-insensitive metadata read; S3-compatible backends lowercase user metadata keys."""
    if not metadata:
        return None
    if name in metadata:
        return metadata[name] or None
    wanted = name.lower()
    for key, value in metadata.items():
        if key.lower() == wanted:
            return value or None
    return None


@dataclass(frozen=True)
class TrashMetadata:
    """Properties stored on every trashed object."""

    user_id: Optional[str] = None
    original_name: Optional[str] = None
    deleted_at: Optional[str] = None
    original_content_type: Optional[str] = None

    @classmethod
    def from_mapping(cls, metadata: Optional[Mapping[str, str]]) -> TrashMetadata:
        return cls(
            user_id=lookup_metadata(metadata, META_USER_ID),
            original_name=lookup_metadata(metadata, META_ORIGINAL_NAME),
            deleted_at=lookup_metadata(metadata, META_DELETED_AT),
            original_content_type=lookup_metadata(metadata, META_ORIGINAL_CONTENT_TYPE),
        )

    def to_mapping(self) -> dict[str, str]:
        pairs = {
            META_USER_ID: self.user_id,
            META_ORIGINAL_NAME: self.original_name,
            META_DELETED_AT: self.deleted_at,
            META_ORIGINAL_CONTENT_TYPE: self.original_content_type,
        }
        return {key: value for key, value in pairs.items() if value is not None}

    def require_original_name(self, key: str) -> str:
        if not self.original_name:
            raise CorruptState(f"Could not determine original file name for {key}")
        return self.original_name


def active_metadata(user_id: str, file_name: str, timestamp_field: str, timestamp: str) -> dict[str, str]:
    return {META_USER_ID: user_id, META_ORIGINAL_NAME: file_name, timestamp_field: timestamp}


@dataclass(frozen=True)
class StoredObject:
    name: str
    path: str
    size: int
    content_type: str
    last_modified: Optional[str] = None
    uploaded_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "contentType": self.content_type,
            "lastModified": self.last_modified,
            "uploadedAt": self.uploaded_at,
        }


@dataclass(frozen=True)
class TrashedObject:
    name: str
    path: str
    size: int
    content_type: str
    user_id: Optional[str]
    deleted_at_millis: int
    deleted_at: str
    expires_at: str
    days_remaining: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "contentType": self.content_type,
            "deletedAt": self.deleted_at,
            "expiresAt": self.expires_at,
            "daysRemaining": self.days_remaining,
        }
