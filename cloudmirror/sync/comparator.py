"""Diff planning: decide which remote folders and files need syncing."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..exceptions import DriveAPIError, PlanningError
from ..models import DestinationEntry, DestinationListing, RemoteEntry
from ..utils import DEFAULT_SIZE_TOLERANCE, ancestor_paths, path_depth, to_kib

logger = logging.getLogger(__name__)


class SyncReason(str, Enum):
    """Why an item was or was not selected."""

    NEW = "new"
    """No destination item with this name"""

    SIZE_CHANGED = "size_changed"
    """Sizes differ by more than the tolerance"""

    UNCHANGED = "unchanged"
    """Sizes match within the tolerance"""


class SizeComparator:
    """Size-tolerance equivalence test.

    Two sizes are considered identical when they differ by at most
    ``tolerance_bytes``. With ``round_to_kib`` both sizes are first rounded
    to whole KiB and compared with a tolerance of ``tolerance_bytes // 1024``
    KiB instead.
    """

    def __init__(
        self,
        tolerance_bytes: int = DEFAULT_SIZE_TOLERANCE,
        round_to_kib: bool = False,
    ):
        if tolerance_bytes < 0:
            raise ValueError("tolerance_bytes must not be negative")
        self.tolerance_bytes = tolerance_bytes
        self.round_to_kib = round_to_kib

    def is_equivalent(self, remote_size: int, destination_size: int) -> bool:
        """Check whether two sizes match within the tolerance.

        Examples:
            >>> SizeComparator().is_equivalent(10240, 10240 + 1023)
            True
            >>> SizeComparator().is_equivalent(10240, 10240 + 1025)
            False
        """
        if self.round_to_kib:
            diff = abs(to_kib(remote_size) - to_kib(destination_size))
            return diff <= self.tolerance_bytes // 1024
        return abs(remote_size - destination_size) <= self.tolerance_bytes


@dataclass(frozen=True)
class ItemComparison:
    """Comparison of one remote item against the destination root."""

    name: str
    path: str
    is_dir: bool
    remote_size: int
    destination_size: Optional[int]
    selected: bool
    reason: SyncReason
    destination_name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "isDir": self.is_dir,
            "sizeKB": to_kib(self.remote_size),
            "destinationSizeKB": (
                None
                if self.destination_size is None
                else to_kib(self.destination_size)
            ),
            "destinationName": self.destination_name,
            "selected": self.selected,
            "reason": self.reason.value,
        }


@dataclass
class PlanDiagnostics:
    """Comparison summary produced alongside a SyncPlan."""

    folders: list[ItemComparison] = field(default_factory=list)
    """Top-level remote folders, with their aggregate sizes"""

    root_files: list[ItemComparison] = field(default_factory=list)
    """Remote files at the root"""

    destination_folders: list[DestinationEntry] = field(default_factory=list)
    destination_files: list[DestinationEntry] = field(default_factory=list)

    renamed_matches: list[tuple[str, str]] = field(default_factory=list)
    """(remote path, destination name) for items that only match a
    collision-renamed destination item such as ``name-1``"""

    @property
    def selected_folders(self) -> list[ItemComparison]:
        return [c for c in self.folders if c.selected]

    @property
    def selected_files(self) -> list[ItemComparison]:
        return [c for c in self.root_files if c.selected]

    def summary(self) -> str:
        return (
            f"{len(self.selected_folders)}/{len(self.folders)} folder(s) and "
            f"{len(self.selected_files)}/{len(self.root_files)} root file(s) "
            f"to sync"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "remote": {
                "folders": [c.to_dict() for c in self.folders],
                "files": [c.to_dict() for c in self.root_files],
            },
            "destination": {
                "folders": [
                    {"name": f.name, "id": f.destination_id, "sizeKB": to_kib(f.size)}
                    for f in self.destination_folders
                ],
                "files": [
                    {"name": f.name, "id": f.destination_id, "sizeKB": to_kib(f.size)}
                    for f in self.destination_files
                ],
            },
            "toSync": {
                "folders": [c.to_dict() for c in self.selected_folders],
                "files": [c.to_dict() for c in self.selected_files],
            },
            "renamedMatches": [
                {"path": path, "destinationName": name}
                for path, name in self.renamed_matches
            ],
        }


@dataclass(frozen=True)
class SyncPlan:
    """What one run has to create and transfer."""

    folders_to_create: tuple[str, ...]
    """Folder paths, parents before children"""

    files_to_sync: tuple[RemoteEntry, ...]

    diagnostics: PlanDiagnostics = field(
        default_factory=PlanDiagnostics, compare=False
    )

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to create or transfer."""
        return not self.folders_to_create and not self.files_to_sync


def renamed_pattern(name: str, is_dir: bool) -> "re.Pattern[str]":
    """Pattern matching collision-renamed variants of a name.

    Folders match ``name-N``; files match ``stem-N.ext``.

    Examples:
        >>> bool(renamed_pattern("report.pdf", False).match("report-2.pdf"))
        True
        >>> bool(renamed_pattern("docs", True).match("docs-1"))
        True
    """
    if is_dir or "." not in name.lstrip("."):
        return re.compile(rf"^{re.escape(name)}-\d+$")
    stem, _, extension = name.rpartition(".")
    return re.compile(rf"^{re.escape(stem)}-\d+\.{re.escape(extension)}$")


def _find_renamed(
    name: str, is_dir: bool, candidates: list[DestinationEntry]
) -> Optional[DestinationEntry]:
    pattern = renamed_pattern(name, is_dir)
    for candidate in candidates:
        if pattern.match(candidate.name):
            return candidate
    return None


def folder_weights(
    folder_paths: set[str], files: list[RemoteEntry]
) -> dict[str, int]:
    """Aggregate size of every folder: the sum of all files below it."""
    weights = dict.fromkeys(folder_paths, 0)
    for file in files:
        for ancestor in ancestor_paths(file.path):
            if ancestor in weights:
                weights[ancestor] += file.size
    return weights


class _TreeIndex:
    """Remote entries split into folders and files, with implied ancestors."""

    def __init__(self, remote_entries: list[RemoteEntry]):
        seen: set[str] = set()
        self.files: list[RemoteEntry] = []
        folders: dict[str, RemoteEntry] = {}

        for entry in remote_entries:
            if entry.path in seen:
                raise PlanningError(f"Duplicate path in listing: {entry.path}")
            seen.add(entry.path)
            if entry.is_dir:
                folders[entry.path] = entry
            else:
                self.files.append(entry)

        file_paths = {f.path for f in self.files}
        for path in seen:
            for ancestor in ancestor_paths(path):
                if ancestor in file_paths:
                    raise PlanningError(
                        f"Listing has '{path}' below the file '{ancestor}'"
                    )
                if ancestor not in folders:
                    folders[ancestor] = RemoteEntry(
                        path=ancestor,
                        name=ancestor.rpartition("/")[2],
                        is_dir=True,
                    )

        self.folders = folders
        self.weights = folder_weights(set(folders), self.files)

    @property
    def top_level_folders(self) -> list[RemoteEntry]:
        return [self.folders[p] for p in sorted(self.folders) if "/" not in p]

    @property
    def root_files(self) -> list[RemoteEntry]:
        return [f for f in self.files if f.is_root_level]


class _Selector:
    def __init__(self, comparator: SizeComparator, match_renamed: bool):
        self.comparator = comparator
        self.match_renamed = match_renamed
        self.renamed_matches: list[tuple[str, str]] = []

    def compare(
        self,
        entry: RemoteEntry,
        remote_size: int,
        candidates: list[DestinationEntry],
    ) -> ItemComparison:
        kind = "FOLDER" if entry.is_dir else "FILE"
        match = next((c for c in candidates if c.name == entry.name), None)

        if match is None:
            renamed = _find_renamed(entry.name, entry.is_dir, candidates)
            if renamed is not None:
                self.renamed_matches.append((entry.path, renamed.name))
                logger.debug(
                    f"{kind} '{entry.name}' only matches renamed '{renamed.name}'"
                )
                if self.match_renamed:
                    match = renamed

        if match is None:
            logger.debug(f"{kind} TO SYNC: '{entry.path}' (new, {remote_size} B)")
            return ItemComparison(
                name=entry.name,
                path=entry.path,
                is_dir=entry.is_dir,
                remote_size=remote_size,
                destination_size=None,
                selected=True,
                reason=SyncReason.NEW,
            )

        if self.comparator.is_equivalent(remote_size, match.size):
            logger.debug(
                f"{kind} SKIPPED: '{entry.path}' (identical, {remote_size} B)"
            )
            selected, reason = False, SyncReason.UNCHANGED
        else:
            logger.debug(
                f"{kind} TO SYNC: '{entry.path}' (size differs: "
                f"{remote_size} B vs {match.size} B)"
            )
            selected, reason = True, SyncReason.SIZE_CHANGED

        return ItemComparison(
            name=entry.name,
            path=entry.path,
            is_dir=entry.is_dir,
            remote_size=remote_size,
            destination_size=match.size,
            selected=selected,
            reason=reason,
            destination_name=match.name,
        )


def build_plan(
    remote_entries: list[RemoteEntry],
    listing: DestinationListing,
    comparator: Optional[SizeComparator] = None,
    match_renamed: bool = False,
) -> SyncPlan:
    """Compare a remote listing against the destination root's children.

    Top-level remote folders are compared by aggregate size against
    same-named destination folders, root files by their own size against
    destination files. Everything below a selected folder is synced.

    Args:
        remote_entries: Full recursive remote listing
        listing: Immediate children of the destination root
        comparator: Size comparator (default: 1 KiB tolerance)
        match_renamed: Treat ``name-N`` destination items as matches

    Returns:
        SyncPlan

    Raises:
        PlanningError: If the listing is inconsistent
    """
    comparator = comparator or SizeComparator()
    tree = _TreeIndex(remote_entries)
    selector = _Selector(comparator, match_renamed)

    folder_comparisons = [
        selector.compare(folder, tree.weights[folder.path], listing.folders)
        for folder in tree.top_level_folders
    ]
    file_comparisons = [
        selector.compare(file, file.size, listing.files) for file in tree.root_files
    ]

    selected_roots = {c.path for c in folder_comparisons if c.selected}
    selected_files = {c.path for c in file_comparisons if c.selected}

    folders_to_create = sorted(
        (p for p in tree.folders if p.split("/", 1)[0] in selected_roots),
        key=lambda p: (path_depth(p), p),
    )

    files_to_sync = [f for f in tree.root_files if f.path in selected_files]
    files_to_sync.extend(
        f
        for f in tree.files
        if not f.is_root_level and f.path.split("/", 1)[0] in selected_roots
    )

    diagnostics = PlanDiagnostics(
        folders=folder_comparisons,
        root_files=file_comparisons,
        destination_folders=list(listing.folders),
        destination_files=list(listing.files),
        renamed_matches=selector.renamed_matches,
    )
    return SyncPlan(
        folders_to_create=tuple(folders_to_create),
        files_to_sync=tuple(files_to_sync),
        diagnostics=diagnostics,
    )


class DiffPlanner:
    """Builds a SyncPlan from a remote listing and the destination root."""

    def __init__(
        self,
        store,
        comparator: Optional[SizeComparator] = None,
        match_renamed: bool = False,
    ):
        """Initialize the planner.

        Args:
            store: DestinationStore used to browse the destination root
            comparator: Size comparator (default: 1 KiB tolerance)
            match_renamed: Treat collision-renamed destination items as matches
        """
        self.store = store
        self.comparator = comparator or SizeComparator()
        self.match_renamed = match_renamed

    def plan(
        self,
        remote_entries: list[RemoteEntry],
        destination_root_id: str,
        remote_root: str = "",
    ) -> SyncPlan:
        """Plan a run against the destination folder ``destination_root_id``.

        Args:
            remote_entries: Full recursive remote listing
            destination_root_id: Destination folder being synced into
            remote_root: Remote root path (for logging)

        Returns:
            SyncPlan

        Raises:
            PlanningError: If the listing is malformed or the destination
                cannot be browsed
        """
        try:
            listing = self.store.browse_children(destination_root_id)
        except DriveAPIError as e:
            raise PlanningError(
                f"Could not browse destination folder {destination_root_id}: {e}"
            ) from e

        plan = build_plan(
            remote_entries,
            listing,
            comparator=self.comparator,
            match_renamed=self.match_renamed,
        )

        logger.info(
            f"Plan for '{remote_root or '/'}' -> {destination_root_id}: "
            f"{plan.diagnostics.summary()}, {len(plan.folders_to_create)} "
            f"folder(s) to create, {len(plan.files_to_sync)} file(s) to transfer"
        )
        for path, name in plan.diagnostics.renamed_matches:
            logger.info(f"'{path}' has a renamed counterpart '{name}' at destination")
        return plan
