"""Storage key layout for the active and trash namespaces.

Active objects live at ``users/<user_id>/<file_name>``. Trashed objects live in
a separate bucket at ``users/<user_id>/<deleted_at_millis>_<file_name>``, so the
deletion instant travels with the key through any copy or rename.
"""

from __future__ import annotations

import unicodedata
from typing import NamedTuple

from filevault.errors import InvalidRequest


USERS_ROOT = "users/"
TRASH_DELIMITER = "_"
DEFAULT_MAX_FILE_NAME_LENGTH = 1024


class InvalidKey(InvalidRequest):
    """A storage key does not follow the trash key layout."""

    kind = "InvalidKey"


class TrashKey(NamedTuple):
    deleted_at_millis: int
    file_name_fragment: str


def _validate_segment(value: str, label: str, max_length: int) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidRequest(f"{label} must be a non-empty string")
    if value in (".", ".."):
        raise InvalidRequest(f"{label} may not be '.' or '..'")
    if "/" in value:
        raise InvalidRequest(f"{label} may not contain '/'")
    if any(unicodedata.category(ch) == "Cc" for ch in value):
        raise InvalidRequest(f"{label} may not contain control characters")
    if len(value) > max_length:
        raise InvalidRequest(f"{label} exceeds {max_length} characters")
    return value


def validate_user_id(user_id: str) -> str:
    return _validate_segment(user_id, "User id", 256)


def validate_file_name(file_name: str, max_length: int = DEFAULT_MAX_FILE_NAME_LENGTH) -> str:
    return _validate_segment(file_name, "File name", max_length)


def user_prefix(user_id: str) -> str:
    return f"{USERS_ROOT}{validate_user_id(user_id)}/"


def active_key(user_id: str, file_name: str, max_length: int = DEFAULT_MAX_FILE_NAME_LENGTH) -> str:
    return user_prefix(user_id) + validate_file_name(file_name, max_length)


def trash_key(
    user_id: str,
    file_name: str,
    deleted_at_millis: int,
    max_length: int = DEFAULT_MAX_FILE_NAME_LENGTH,
) -> str:
    if deleted_at_millis < 0:
        raise InvalidRequest("Deletion timestamp must be non-negative")
    name = validate_file_name(file_name, max_length)
    return f"{user_prefix(user_id)}{int(deleted_at_millis)}{TRASH_DELIMITER}{name}"


def decode_trash_key(key: str) -> TrashKey:
    """Split a trash key into its deletion timestamp and file name fragment.

    Only the first delimiter separates the timestamp; everything after it is the
    fragment, underscores included.
    """
    leaf = key.rsplit("/", 1)[-1]
    timestamp, delimiter, fragment = leaf.partition(TRASH_DELIMITER)
    if not delimiter or not fragment:
        raise InvalidKey(f"Trash key has no timestamp delimiter: {key}")
    if not (timestamp.isascii() and timestamp.isdigit()):
        raise InvalidKey(f"Trash key has a non-numeric timestamp: {key}")
    return TrashKey(int(timestamp), fragment)


def is_user_key(user_id: str, key: str) -> bool:
    """True when ``key`` is a direct child of the user's namespace."""
    prefix = user_prefix(user_id)
    return key.startswith(prefix) and "/" not in key[len(prefix) :] and len(key) > len(prefix)


def leaf_name(key: str) -> str:
    return key.rsplit("/", 1)[-1]
