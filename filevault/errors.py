"""Error taxonomy shared by the storage adapters, the lifecycle core and the API."""


class FilevaultError(Exception):
    """Base class for domain errors surfaced to callers."""

    kind = "Internal"
    status_code = 500
    default_message = "We encountered an internal error. Please try again."

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class NotFound(FilevaultError):
    """Referenced active or trash object is absent."""

    kind = "NotFound"
    status_code = 404
    default_message = "The specified file does not exist"


class Unauthorized(FilevaultError):
    """Stored ownership metadata does not match the caller."""

    kind = "Unauthorized"
    status_code = 403
    default_message = "File does not belong to user"


class CorruptState(FilevaultError):
    """Trash metadata is missing a field required to complete the operation."""

    kind = "CorruptState"
    status_code = 500
    default_message = "Could not determine original file name"


class BackendUnavailable(FilevaultError):
    """Transport or backend failure, not domain specific."""

    kind = "BackendUnavailable"
    status_code = 503
    default_message = "The storage backend is unavailable. Please retry."


class InvalidRequest(FilevaultError):
    kind = "InvalidRequest"
    status_code = 400
    default_message = "Invalid request"


class PayloadTooLarge(FilevaultError):
    kind = "PayloadTooLarge"
    status_code = 413
    default_message = "Upload exceeds the maximum allowed size"


class Unauthenticated(FilevaultError):
    """Missing caller identity or a bad API key."""

    kind = "Unauthenticated"
    status_code = 401
    default_message = "Unauthorized - Please sign in"
