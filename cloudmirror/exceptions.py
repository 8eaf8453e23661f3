"""Exception hierarchy for cloudmirror."""

from typing import Optional


class CloudMirrorError(Exception):
    """Base exception for all cloudmirror errors."""


class ConfigError(CloudMirrorError):
    """Raised when required configuration is missing or invalid."""


# =============================================================================
# Fatal run errors
# =============================================================================


class EnumerationError(CloudMirrorError):
    """Raised when the remote tree cannot be listed.

    Always fatal: a run never continues with a partial enumeration.
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class PlanningError(CloudMirrorError):
    """Raised when listing data is malformed or the destination cannot be read."""


# =============================================================================
# Recoverable per-item errors
# =============================================================================


class FolderCreationError(CloudMirrorError):
    """Raised when a destination folder can be neither created nor found."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        message = f"Could not create or find folder '{path}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.path = path
        self.cause = cause


class TransferError(CloudMirrorError):
    """Base class for per-file transfer failures."""

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path


class StreamTransferError(TransferError):
    """Raised when the remote streaming process fails."""

    def __init__(
        self,
        path: str,
        message: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        if message is None:
            message = f"Streaming '{path}' failed with exit code {returncode}"
            if stderr:
                message = f"{message}: {stderr.strip()}"
        super().__init__(path, message)
        self.returncode = returncode
        self.stderr = stderr


class ContentTooLargeError(StreamTransferError):
    """Raised when a remote file exceeds the configured size ceiling."""

    def __init__(self, path: str, size: int, limit: int):
        super().__init__(
            path,
            message=f"'{path}' is larger than the {limit} byte limit ({size} bytes)",
        )
        self.size = size
        self.limit = limit


class DestinationWriteError(TransferError):
    """Raised when the destination store rejects a blob or entry write."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        message = f"Writing '{path}' to the destination failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(path, message)
        self.cause = cause


# =============================================================================
# Destination store (HTTP) errors
# =============================================================================


class DriveAPIError(CloudMirrorError):
    """Base exception for destination store API errors."""


class DriveAuthenticationError(DriveAPIError):
    """Raised when the access token is invalid or expired."""


class DrivePermissionError(DriveAPIError):
    """Raised when the token lacks access to an item."""


class DriveNotFoundError(DriveAPIError):
    """Raised when an item does not exist."""


class DriveConflictError(DriveAPIError):
    """Raised when an item with the same name already exists."""


class DriveRateLimitError(DriveAPIError):
    """Raised when the API rate limit is exceeded."""


class DriveNetworkError(DriveAPIError):
    """Raised on transport-level failures."""


class DriveInvalidResponseError(DriveAPIError):
    """Raised when the API returns something that is not the expected JSON."""
