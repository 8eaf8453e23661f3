"""cloudmirror - mirror rclone-reachable cloud storage into a document store."""

from .api import DriveClient
from .exceptions import (
    CloudMirrorError,
    ConfigError,
    ContentTooLargeError,
    DestinationWriteError,
    DriveAPIError,
    DriveAuthenticationError,
    DriveConflictError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    EnumerationError,
    FolderCreationError,
    PlanningError,
    StreamTransferError,
    TransferError,
)
from .models import RemoteContext, RemoteEntry, SyncResult
from .utils import remote_name_for_user

__version__ = "0.1.0"

__all__ = [
    "DriveClient",
    "RemoteContext",
    "RemoteEntry",
    "SyncResult",
    "remote_name_for_user",
    "CloudMirrorError",
    "ConfigError",
    "ContentTooLargeError",
    "DestinationWriteError",
    "DriveAPIError",
    "DriveAuthenticationError",
    "DriveConflictError",
    "DriveInvalidResponseError",
    "DriveNetworkError",
    "DriveNotFoundError",
    "DrivePermissionError",
    "DriveRateLimitError",
    "EnumerationError",
    "FolderCreationError",
    "PlanningError",
    "StreamTransferError",
    "TransferError",
]
