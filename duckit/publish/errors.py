"""
Errors raised by the publish workflows.
"""


class PublishError(Exception):
    """Base class for publish workflow failures."""
    reason = "PUBLISH_FAILED"


class RoleNotLoadedError(PublishError):
    """Raised while the caller's role is still being loaded."""
    reason = "ROLE_NOT_LOADED"

    def __init__(self, message: str = "User role is still loading"):
        super().__init__(message)


class PublishInProgressError(PublishError):
    """Raised when a publish is started while another one is running."""
    reason = "PUBLISH_IN_PROGRESS"

    def __init__(self, message: str = "Another publish is already in progress"):
        super().__init__(message)


class RecordPersistError(PublishError):
    """
    Raised when the file record cannot be saved after a successful upload.

    The uploaded artifact stays reachable through `download_url`.
    """
    reason = "RECORD_PERSIST_FAILED"

    def __init__(self, message: str, download_url: str = ""):
        super().__init__(message)
        self.download_url = download_url


class InvalidArtifactError(PublishError):
    """Raised when a supplied file cannot be used by a workflow."""
    reason = "INVALID_ARTIFACT"
