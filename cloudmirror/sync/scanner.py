"""Remote tree enumeration."""

import json
import logging

from ..exceptions import EnumerationError
from ..models import RemoteContext, RemoteEntry

logger = logging.getLogger(__name__)


def parse_listing(output: str) -> list[RemoteEntry]:
    """Parse ``rclone lsjson`` output into RemoteEntry objects.

    Args:
        output: Raw stdout of the listing command

    Returns:
        List of RemoteEntry objects in listing order

    Raises:
        EnumerationError: If the output is not a JSON array
        PlanningError: If an item in the array is malformed
    """
    if not output or not output.strip():
        return []

    try:
        items = json.loads(output)
    except json.JSONDecodeError as e:
        raise EnumerationError(f"Unparsable listing output: {e}") from e

    if not isinstance(items, list):
        raise EnumerationError(
            f"Listing output is not a JSON array (got {type(items).__name__})"
        )

    return [RemoteEntry.from_listing(item) for item in items]


class RemoteTreeScanner:
    """Enumerates a remote tree through a ContentSource.

    Examples:
        >>> scanner = RemoteTreeScanner(RcloneSource())
        >>> entries = scanner.enumerate(RemoteContext("dropbox_me", "Photos"))
    """

    def __init__(self, source):
        """Initialize the scanner.

        Args:
            source: ContentSource used for listing
        """
        self.source = source

    def enumerate(
        self, context: RemoteContext, dirs_only: bool = False
    ) -> list[RemoteEntry]:
        """Recursively list everything below the context root.

        Args:
            context: Remote profile and root path
            dirs_only: Only return directories (folder topology)

        Returns:
            Flat list of RemoteEntry objects

        Raises:
            EnumerationError: If the listing fails (always fatal)
        """
        entries = self.source.list(context, recursive=True, dirs_only=dirs_only)

        folder_count = sum(1 for e in entries if e.is_dir)
        logger.info(
            f"Enumerated {context.remote_path()}: {folder_count} folder(s), "
            f"{len(entries) - folder_count} file(s)"
        )
        return entries
