"""
Custom exceptions for story storage.

All backends and the story store raise (or wrap) these exceptions
so callers can handle failures consistently across backends.
"""


class StoryStorageError(Exception):
    """Base exception for all story storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class BackendUnavailableError(StoryStorageError):
    """Raised when the document store is not configured or not reachable."""

    def __init__(self, backend: str, reason: str | None = None):
        details = {"backend": backend}
        if reason:
            details["reason"] = reason
        message = f"Story backend unavailable: {backend}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, details)
        self.backend = backend
        self.reason = reason


class StorageConnectionError(BackendUnavailableError):
    """Raised when connection to the remote store fails.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        super().__init__(endpoint, f"connection failed: {cause}" if cause else "connection failed")
        self.endpoint = endpoint
        self.cause = cause


class StoryNotFoundError(StoryStorageError):
    """Raised when a story is absent or not owned by the requesting user.

    The two cases are deliberately reported the same way so that the
    existence of other users' stories is never revealed.
    """

    def __init__(self, story_id: str, user_id: str | None = None):
        details = {"story_id": story_id}
        if user_id:
            details["user_id"] = user_id
        super().__init__(f"Story not found: {story_id}", details)
        self.story_id = story_id
        self.user_id = user_id


class DemoFetchError(StoryStorageError):
    """Raised when the bundled demo document cannot be fetched."""

    def __init__(self, location: str, cause: Exception | None = None):
        details = {"location": location}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not load demo story from {location}", details)
        self.location = location
        self.cause = cause


class StoryValidationError(StoryStorageError):
    """Raised when input data is rejected."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value
