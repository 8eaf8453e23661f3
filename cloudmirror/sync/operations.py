"""Stream remote file content into the destination store."""

import logging
from typing import Optional

from ..exceptions import ContentTooLargeError, DestinationWriteError, DriveAPIError
from ..models import RemoteContext, RemoteEntry
from ..utils import get_mime_type, split_remote_path

logger = logging.getLogger(__name__)


class SyncOperations:
    """Moves one remote file into a destination folder."""

    def __init__(self, source, store, max_file_size: Optional[int] = None):
        """Initialize sync operations.

        Args:
            source: ContentSource the content is read from
            store: DestinationStore the content is written to
            max_file_size: Reject files larger than this many bytes
                (None = unlimited)
        """
        self.source = source
        self.store = store
        self.max_file_size = max_file_size

    def stream_to_destination(
        self,
        context: RemoteContext,
        remote_path: str,
        destination_parent_id: str,
        size: Optional[int] = None,
    ) -> str:
        """Pipe a remote file into a new destination file entry.

        The remote content is handed to ``store.save_blob`` as a readable
        stream and is never fully buffered here.

        Args:
            context: Remote profile and root
            remote_path: File path relative to the context root
            destination_parent_id: Destination folder id
            size: Size reported by the listing, if known

        Returns:
            Id of the created destination entry

        Raises:
            StreamTransferError: If the remote process fails
            ContentTooLargeError: If the file exceeds max_file_size
            DestinationWriteError: If the destination rejects the write
        """
        _, name = split_remote_path(remote_path)
        content_type = get_mime_type(name)

        if (
            self.max_file_size is not None
            and size is not None
            and size > self.max_file_size
        ):
            raise ContentTooLargeError(remote_path, size, self.max_file_size)

        logger.debug(
            f"Streaming {context.remote_path(remote_path)} ({content_type}) "
            f"into {destination_parent_id}"
        )

        with self.source.open(
            context, remote_path, max_bytes=self.max_file_size
        ) as stream:
            try:
                blob_id = self.store.save_blob(stream, name, size or 0, content_type)
            except DriveAPIError as e:
                raise DestinationWriteError(remote_path, e) from e

            bytes_read = getattr(stream, "bytes_read", None)
            stored_size = bytes_read if bytes_read is not None else (size or 0)

        try:
            entry_id = self.store.create_versioned_entry(
                blob_id, destination_parent_id, name, stored_size, content_type
            )
        except DriveAPIError as e:
            raise DestinationWriteError(remote_path, e) from e

        logger.debug(f"Stored {remote_path} as {entry_id} ({stored_size} bytes)")
        return entry_id

    def transfer_entry(
        self, context: RemoteContext, entry: RemoteEntry, parent_id: str
    ) -> str:
        """Transfer a listed file; signature used by the transfer pipeline."""
        return self.stream_to_destination(
            context, entry.path, parent_id, size=entry.size
        )
