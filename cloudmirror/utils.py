"""Utility functions and constants for cloudmirror."""

import re
from pathlib import PurePosixPath

# =============================================================================
# Constants for sync operations
# =============================================================================

# Files transferred concurrently per batch
DEFAULT_BATCH_SIZE: int = 10

# Pause between batches (seconds)
DEFAULT_BATCH_DELAY: float = 0.1

# Two sizes within this many bytes are treated as identical
DEFAULT_SIZE_TOLERANCE: int = 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 2.0  # seconds

# Chunk size used when piping remote content
DEFAULT_STREAM_CHUNK_SIZE: int = 64 * 1024

# Most recent per-file errors kept in a transfer outcome
DEFAULT_MAX_RECORDED_ERRORS: int = 20

SUPPORTED_PROVIDERS = ("dropbox", "googledrive")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def to_kib(size_bytes: int) -> int:
    """Round a byte count to the nearest whole KiB (halves round up).

    Examples:
        >>> to_kib(10240)
        10
        >>> to_kib(1536)
        2
    """
    return (size_bytes + 512) // 1024


# =============================================================================
# MIME type detection
# =============================================================================

MIME_TYPES: dict[str, str] = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": (
        "application/vnd.openxmlformats-officedocument.presentationml.presentation"
    ),
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".odp": "application/vnd.oasis.opendocument.presentation",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".zip": "application/zip",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(file_name: str) -> str:
    """Infer a content type from a file name's extension.

    Args:
        file_name: File name or path

    Returns:
        MIME type string (defaults to 'application/octet-stream')

    Examples:
        >>> get_mime_type("Report.PDF")
        'application/pdf'
        >>> get_mime_type("archive.unknown")
        'application/octet-stream'
    """
    suffix = PurePosixPath(file_name).suffix.lower()
    return MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


# =============================================================================
# Remote naming and path helpers
# =============================================================================


def remote_name_for_user(user_email: str, provider: str = "dropbox") -> str:
    """Derive the rclone remote profile name used for a user's account.

    Args:
        user_email: The user's email address
        provider: Storage provider ("dropbox" or "googledrive")

    Returns:
        Remote profile name

    Raises:
        ValueError: If the provider is not supported

    Examples:
        >>> remote_name_for_user("Jane.Doe@example.com")
        'dropbox_jane_doe_example_com'
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider '{provider}' "
            f"(expected one of: {', '.join(SUPPORTED_PROVIDERS)})"
        )
    sanitized = re.sub(r"[@.]", "_", user_email).lower()
    return f"{provider}_{sanitized}"


def join_remote_path(*parts: str) -> str:
    """Join path segments with '/', ignoring empty parts and stray slashes.

    Examples:
        >>> join_remote_path("Photos/", "", "2024/a.jpg")
        'Photos/2024/a.jpg'
    """
    segments = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(segments)


def split_remote_path(path: str) -> tuple[str, str]:
    """Split a slash-separated path into (parent_path, name).

    Examples:
        >>> split_remote_path("a/b/c.txt")
        ('a/b', 'c.txt')
        >>> split_remote_path("c.txt")
        ('', 'c.txt')
    """
    parent, _, name = path.rpartition("/")
    return parent, name


def path_depth(path: str) -> int:
    """Number of segments in a slash-separated path ('' has depth 0)."""
    if not path:
        return 0
    return path.count("/") + 1


def ancestor_paths(path: str) -> list[str]:
    """Return the proper ancestors of a path, outermost first.

    Examples:
        >>> ancestor_paths("a/b/c")
        ['a', 'a/b']
    """
    segments = path.split("/")
    return ["/".join(segments[:i]) for i in range(1, len(segments))]
