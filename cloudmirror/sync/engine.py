"""Core sync engine orchestrating enumeration, planning and transfer."""

import logging
import threading
import time
from typing import Callable, Optional

from ..exceptions import (
    ContentTooLargeError,
    DestinationWriteError,
    DriveAuthenticationError,
    DriveConflictError,
    DriveNotFoundError,
    DrivePermissionError,
    EnumerationError,
    PlanningError,
)
from ..models import RemoteContext, RemoteEntry, SyncResult, TransferOutcome
from ..output import OutputFormatter
from ..utils import (
    DEFAULT_BATCH_DELAY,
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETRY_DELAY,
    DEFAULT_SIZE_TOLERANCE,
    format_size,
)
from .comparator import DiffPlanner, SizeComparator, SyncPlan
from .folders import FolderMap, FolderMaterializer
from .operations import SyncOperations
from .scanner import RemoteTreeScanner
from .transfer import ProgressCallback, TransferPipeline

logger = logging.getLogger(__name__)

# Destination errors that will not go away by trying again
_PERMANENT_DESTINATION_ERRORS = (
    DriveAuthenticationError,
    DrivePermissionError,
    DriveNotFoundError,
    DriveConflictError,
)


def is_retryable(error: BaseException) -> bool:
    """Whether a per-file transfer error is worth another attempt."""
    if isinstance(error, ContentTooLargeError):
        return False
    if isinstance(error, DestinationWriteError):
        return not isinstance(error.cause, _PERMANENT_DESTINATION_ERRORS)
    return True


class SyncEngine:
    """Mirrors a remote tree into a destination folder.

    A run enumerates the remote, plans against the destination root,
    creates the missing folders and streams the selected files in
    batches. Failures are returned in the SyncResult; ``sync()`` never
    raises for them.
    """

    def __init__(
        self,
        source,
        store,
        output: Optional[OutputFormatter] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        tolerance: int = DEFAULT_SIZE_TOLERANCE,
        round_to_kib: bool = False,
        max_file_size: Optional[int] = None,
        retries: int = 0,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        match_renamed: bool = False,
        max_workers: Optional[int] = None,
    ):
        """Initialize sync engine.

        Args:
            source: ContentSource for the remote tree
            store: DestinationStore for the document tree
            output: Output formatter for displaying progress/status
            batch_size: Files transferred concurrently per batch
            batch_delay: Pause between batches in seconds
            tolerance: Size difference (bytes) treated as identical
            round_to_kib: Compare KiB-rounded sizes instead of bytes
            max_file_size: Reject files larger than this (None = unlimited)
            retries: Extra attempts per file for transient failures
            retry_delay: Delay before the first retry, grows 1.5x per attempt
            match_renamed: Treat ``name-N`` destination items as matches
            max_workers: Threads per batch (default: batch size)
        """
        self.source = source
        self.store = store
        self.output = output or OutputFormatter(quiet=True)
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.retries = retries
        self.retry_delay = retry_delay
        self.max_workers = max_workers

        self.scanner = RemoteTreeScanner(source)
        self.planner = DiffPlanner(
            store,
            comparator=SizeComparator(tolerance, round_to_kib=round_to_kib),
            match_renamed=match_renamed,
        )
        self.materializer = FolderMaterializer(store)
        self.operations = SyncOperations(source, store, max_file_size=max_file_size)

    def analyze(self, context: RemoteContext, destination_root_id: str) -> SyncPlan:
        """Enumerate and plan without changing anything.

        Raises:
            EnumerationError: If the remote cannot be listed
            PlanningError: If the listing is malformed or the destination
                root cannot be browsed
        """
        entries = self.scanner.enumerate(context)
        return self.planner.plan(entries, destination_root_id, context.root_path)

    def sync(
        self,
        context: RemoteContext,
        destination_root_id: str,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
        plan_callback: Optional[Callable[[SyncPlan], None]] = None,
    ) -> SyncResult:
        """Run one synchronization.

        Args:
            context: Remote profile and root
            destination_root_id: Destination folder to mirror into
            dry_run: Plan and report only
            cancel_event: Set to stop between transfer batches
            progress_callback: Called with (entry, error or None) per file
            plan_callback: Called with the plan before anything is created

        Returns:
            SyncResult describing the run
        """
        start = time.time()
        try:
            plan = self.analyze(context, destination_root_id)
        except (EnumerationError, PlanningError) as e:
            logger.error(f"Sync of {context.remote_path()} aborted: {e}")
            self.output.error(f"Sync aborted: {e}")
            return SyncResult(
                success=False,
                message=f"Sync aborted: {e}",
                aborted=True,
            )

        self._display_plan(plan, dry_run)

        if plan.is_empty:
            self.output.success("Nothing to sync - destination is up to date")
            return SyncResult(
                success=True, message="Nothing to sync - destination is up to date"
            )

        if dry_run:
            return SyncResult(
                success=True,
                message=(
                    f"Dry run: would create {len(plan.folders_to_create)} "
                    f"folder(s) and transfer {len(plan.files_to_sync)} file(s)"
                ),
            )

        if cancel_event is not None and cancel_event.is_set():
            return SyncResult(
                success=False,
                message="Sync cancelled before any change was made",
                files_skipped=len(plan.files_to_sync),
            )

        if plan_callback is not None:
            plan_callback(plan)

        folder_map = self.materializer.materialize(
            list(plan.folders_to_create), destination_root_id
        )

        pipeline = TransferPipeline(
            self._transfer_with_retry,
            batch_size=self.batch_size,
            batch_delay=self.batch_delay,
            max_workers=self.max_workers,
            cancel_event=cancel_event,
            progress_callback=progress_callback,
        )
        outcome = pipeline.transfer(
            list(plan.files_to_sync), folder_map, destination_root_id, context
        )

        result = self._build_result(folder_map, outcome)
        logger.info(f"{result.message} ({time.time() - start:.1f}s)")
        self._display_summary(result)
        return result

    def create_folder_tree(
        self, context: RemoteContext, destination_root_id: str
    ) -> SyncResult:
        """Recreate only the remote folder structure at the destination.

        Uses a directories-only listing and creates (or reuses) every folder.
        """
        try:
            entries = self.scanner.enumerate(context, dirs_only=True)
        except EnumerationError as e:
            logger.error(f"Folder listing of {context.remote_path()} failed: {e}")
            self.output.error(f"Folder mirroring aborted: {e}")
            return SyncResult(
                success=False,
                message=f"Folder mirroring aborted: {e}",
                aborted=True,
            )

        folders = [e.path for e in entries if e.is_dir]
        self.output.info(f"Creating {len(folders)} folder(s)...")
        folder_map = self.materializer.materialize(folders, destination_root_id)

        failed = len(folder_map.failures)
        message = (
            f"Folder mirroring completed: {folder_map.created} created, "
            f"{folder_map.reused} already present"
        )
        if failed:
            message = f"{message}, {failed} failed"
            self.output.warning(message)
        else:
            self.output.success(message)

        return SyncResult(
            success=failed == 0,
            message=message,
            folders_created=folder_map.created,
            folders_failed=failed,
            errors=[(f.path, str(f)) for f in folder_map.failures],
        )

    def _transfer_with_retry(
        self, context: RemoteContext, entry: RemoteEntry, parent_id: str
    ) -> str:
        attempt = 0
        delay = self.retry_delay
        while True:
            try:
                return self.operations.transfer_entry(context, entry, parent_id)
            except Exception as e:
                if attempt >= self.retries or not is_retryable(e):
                    raise
                attempt += 1
                logger.debug(
                    f"Transfer of {entry.path} failed "
                    f"(attempt {attempt}/{self.retries + 1}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                time.sleep(delay)
                delay *= 1.5

    def _build_result(
        self, folder_map: FolderMap, outcome: TransferOutcome
    ) -> SyncResult:
        folder_failures = len(folder_map.failures)
        errors = [(f.path, str(f)) for f in folder_map.failures]
        errors.extend(outcome.last_errors)

        if outcome.cancelled:
            message = (
                f"Sync cancelled: {outcome.succeeded} file(s) transferred, "
                f"{outcome.failed} failed, {outcome.skipped} skipped"
            )
        elif outcome.failed or folder_failures:
            message = (
                f"Sync completed with {outcome.failed + folder_failures} "
                f"failure(s): {outcome.succeeded} file(s) transferred, "
                f"{outcome.failed} file(s) and {folder_failures} folder(s) failed"
            )
        else:
            message = (
                f"Sync completed: {folder_map.created} folder(s) created, "
                f"{outcome.succeeded} file(s) transferred"
            )

        return SyncResult(
            success=not (outcome.cancelled or outcome.failed or folder_failures),
            message=message,
            folders_created=folder_map.created,
            files_processed=outcome.succeeded,
            files_failed=outcome.failed,
            folders_failed=folder_failures,
            files_skipped=outcome.skipped,
            errors=errors,
        )

    def _display_plan(self, plan: SyncPlan, dry_run: bool) -> None:
        if self.output.quiet:
            return

        diagnostics = plan.diagnostics
        self.output.info("Sync plan:")
        for comparison in diagnostics.selected_folders:
            self.output.info(
                f"  + Folder {comparison.path} "
                f"({format_size(comparison.remote_size)}, {comparison.reason.value})"
            )
        for comparison in diagnostics.selected_files:
            self.output.info(
                f"  + File {comparison.path} "
                f"({format_size(comparison.remote_size)}, {comparison.reason.value})"
            )
        skipped = (len(diagnostics.folders) - len(diagnostics.selected_folders)) + (
            len(diagnostics.root_files) - len(diagnostics.selected_files)
        )
        if skipped:
            self.output.info(f"  = Unchanged: {skipped} item(s)")
        for path, name in diagnostics.renamed_matches:
            self.output.warning(f"{path} has a renamed counterpart '{name}'")

        total = sum(entry.size for entry in plan.files_to_sync)
        prefix = "Would create" if dry_run else "Creating"
        self.output.info(
            f"{prefix} {len(plan.folders_to_create)} folder(s), "
            f"{len(plan.files_to_sync)} file(s) ({format_size(total)})"
        )
        self.output.print("")

    def _display_summary(self, result: SyncResult) -> None:
        if result.success:
            self.output.success(result.message)
            return

        self.output.warning(result.message)
        for path, error in result.errors:
            self.output.error(f"{path}: {error}")
