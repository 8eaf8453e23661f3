"""Batched, concurrent file transfer."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from ..models import RemoteContext, RemoteEntry, TransferOutcome
from ..utils import (
    DEFAULT_BATCH_DELAY,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_RECORDED_ERRORS,
)
from .folders import FolderMap

logger = logging.getLogger(__name__)

TransferFunc = Callable[[RemoteContext, RemoteEntry, str], Any]
ProgressCallback = Callable[[RemoteEntry, Optional[BaseException]], None]


def resolve_parent_id(
    entry: RemoteEntry, folder_map: Optional[FolderMap], root_parent_id: str
) -> str:
    """Destination folder id for a file, falling back to the root."""
    if folder_map is None:
        return root_parent_id
    return folder_map.parent_id_for(entry.path, fallback=root_parent_id)


class TransferPipeline:
    """Runs one transfer per file, in sequential batches of concurrent work.

    A failing file never affects the other files of its batch. Between
    batches the pipeline sleeps ``batch_delay`` seconds and checks the
    cancel event; once it is set the remaining files are counted as
    skipped while the files already in flight finish normally.
    """

    def __init__(
        self,
        transfer_func: TransferFunc,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
        max_recorded_errors: int = DEFAULT_MAX_RECORDED_ERRORS,
    ):
        """Initialize the pipeline.

        Args:
            transfer_func: Called as ``transfer_func(context, entry, parent_id)``
            batch_size: Files per batch
            batch_delay: Pause between batches in seconds
            max_workers: Threads per batch (default: one per file in the batch)
            cancel_event: Event checked before each batch
            progress_callback: Called with (entry, error or None) per file
            max_recorded_errors: Size of the outcome's error list
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if batch_delay < 0:
            raise ValueError("batch_delay must not be negative")
        self.transfer_func = transfer_func
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_workers = max_workers
        self.cancel_event = cancel_event
        self.progress_callback = progress_callback
        self.max_recorded_errors = max_recorded_errors

    def transfer(
        self,
        files: list[RemoteEntry],
        folder_map: Optional[FolderMap],
        root_parent_id: str,
        context: RemoteContext,
    ) -> TransferOutcome:
        """Transfer all files.

        Args:
            files: Files to transfer, in plan order
            folder_map: Resolved destination folders
            root_parent_id: Destination root (fallback parent)
            context: Remote profile and root

        Returns:
            TransferOutcome aggregated over all batches
        """
        outcome = TransferOutcome(max_recorded_errors=self.max_recorded_errors)
        batches = [
            files[i : i + self.batch_size]
            for i in range(0, len(files), self.batch_size)
        ]

        for index, batch in enumerate(batches):
            if self.cancel_event is not None and self.cancel_event.is_set():
                outcome.skipped = sum(len(b) for b in batches[index:])
                logger.warning(
                    f"Transfer cancelled, skipping {outcome.skipped} file(s)"
                )
                break

            logger.debug(
                f"Batch {index + 1}/{len(batches)}: {len(batch)} file(s)"
            )
            self._run_batch(batch, folder_map, root_parent_id, context, outcome)

            if index < len(batches) - 1 and self.batch_delay > 0:
                time.sleep(self.batch_delay)

        logger.info(
            f"Transferred {outcome.succeeded}/{len(files)} file(s), "
            f"{outcome.failed} failed, {outcome.skipped} skipped"
        )
        return outcome

    def _run_one(
        self, context: RemoteContext, entry: RemoteEntry, parent_id: str
    ) -> tuple[float, Optional[Exception]]:
        start = time.time()
        try:
            self.transfer_func(context, entry, parent_id)
        except Exception as e:
            return time.time() - start, e
        return time.time() - start, None

    def _run_batch(
        self,
        batch: list[RemoteEntry],
        folder_map: Optional[FolderMap],
        root_parent_id: str,
        context: RemoteContext,
        outcome: TransferOutcome,
    ) -> None:
        workers = min(self.max_workers or len(batch), len(batch))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(
                    self._run_one,
                    context,
                    entry,
                    resolve_parent_id(entry, folder_map, root_parent_id),
                ): entry
                for entry in batch
            }

            for future in as_completed(futures):
                entry = futures[future]
                elapsed, error = future.result()
                if error is None:
                    outcome.record_success()
                    logger.debug(f"Completed {entry.path} in {elapsed:.2f}s")
                else:
                    outcome.record_failure(entry.path, error)
                    logger.error(f"Failed to transfer {entry.path}: {error}")

                if self.progress_callback is not None:
                    self.progress_callback(entry, error)
