"""Interfaces between the sync engine and its collaborators.

The engine only talks to the remote through a ContentSource and to the
destination through a DestinationStore, so tests can substitute in-memory
fakes for the rclone process and the HTTP API.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import BinaryIO, Optional, Protocol

from ..models import DestinationListing, RemoteContext, RemoteEntry


class ContentSource(Protocol):
    """Read access to a remote tree."""

    def list(
        self,
        context: RemoteContext,
        path: str = "",
        recursive: bool = True,
        dirs_only: bool = False,
        files_only: bool = False,
    ) -> list[RemoteEntry]:
        """List entries below ``path`` (relative to the context root).

        Raises:
            EnumerationError: If the listing cannot be produced
        """
        ...

    def open(
        self,
        context: RemoteContext,
        path: str,
        max_bytes: Optional[int] = None,
    ) -> AbstractContextManager[BinaryIO]:
        """Open a remote file as a readable binary stream.

        Raises:
            StreamTransferError: While reading, if the transfer fails
        """
        ...


class DestinationStore(Protocol):
    """Write access to the destination document store.

    All methods raise DriveAPIError subclasses on failure.
    """

    def browse_children(self, parent_id: str) -> DestinationListing: ...

    def create_entry(
        self, parent_id: str, name: str, is_directory: bool = True
    ) -> str: ...

    def save_blob(
        self, stream: BinaryIO, filename: str, size: int, content_type: str
    ) -> str: ...

    def create_versioned_entry(
        self,
        blob_id: str,
        parent_id: str,
        name: str,
        size: int,
        content_type: str,
    ) -> str: ...
