"""CLI progress display for sync runs.

Rich-based progress bar fed by the per-file callback of the
transfer pipeline.
"""

import threading
from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .models import RemoteEntry
from .sync.comparator import SyncPlan


class TransferProgressDisplay:
    """Progress bar over the bytes of all files in a run.

    Totals are set from the plan through ``on_plan``; until then the bar
    is indeterminate. Pass the console used for other output so that
    lines printed during the run are rendered above the bar.
    """

    def __init__(
        self,
        total_bytes: Optional[int] = None,
        total_files: int = 0,
        console: Optional[Console] = None,
    ):
        self.total_bytes = total_bytes
        self.total_files = total_files
        self.console = console
        self.files_done = 0
        self.files_failed = 0
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None
        self._lock = threading.Lock()

    def _file_info(self) -> str:
        total = f"/{self.total_files}" if self.total_files else ""
        info = f"{self.files_done}{total} files"
        if self.files_failed:
            info = f"{info}, {self.files_failed} failed"
        return info

    def on_plan(self, plan: SyncPlan) -> None:
        """Engine callback: size the bar from the plan."""
        with self._lock:
            self.total_files = len(plan.files_to_sync)
            self.total_bytes = sum(entry.size for entry in plan.files_to_sync)
            if self._progress is None or self._task is None:
                return
            self._progress.update(
                self._task,
                total=self.total_bytes,
                description="Syncing...",
                file_info=self._file_info(),
            )

    def on_file_done(
        self, entry: RemoteEntry, error: Optional[BaseException]
    ) -> None:
        """Transfer pipeline callback."""
        with self._lock:
            self.files_done += 1
            if error is not None:
                self.files_failed += 1
            if self._progress is None or self._task is None:
                return
            self._progress.update(
                self._task,
                advance=entry.size,
                description=f"Syncing: {entry.name}",
                file_info=self._file_info(),
            )

    def __enter__(self) -> "TransferProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[file_info]}"),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Preparing transfer...",
            total=self.total_bytes,
            file_info=self._file_info(),
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None:
                self._progress.update(self._task, description="Transfer complete")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_sync_with_progress(
    engine,
    context,
    destination_root_id: str,
    dry_run: bool = False,
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = True,
):
    """Run a sync, showing a rich progress bar unless disabled.

    Args:
        engine: SyncEngine instance
        context: RemoteContext to sync
        destination_root_id: Destination folder id
        dry_run: If True, only show what would be done
        cancel_event: Event that stops the run between batches
        show_progress: Whether to render the progress bar

    Returns:
        SyncResult
    """
    if dry_run or not show_progress:
        return engine.sync(
            context,
            destination_root_id,
            dry_run=dry_run,
            cancel_event=cancel_event,
        )

    with TransferProgressDisplay(console=engine.output.console) as display:
        return engine.sync(
            context,
            destination_root_id,
            cancel_event=cancel_event,
            progress_callback=display.on_file_done,
            plan_callback=display.on_plan,
        )
