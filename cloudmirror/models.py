"""Data models shared by the sync stages."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import DriveInvalidResponseError, PlanningError
from .utils import join_remote_path, path_depth, split_remote_path


@dataclass(frozen=True)
class RemoteContext:
    """Identifies the remote account and subtree a run works on.

    Passed explicitly to every call so that concurrent runs for
    different accounts never share state.
    """

    profile: str
    """rclone remote profile name (e.g. "dropbox_jane_example_com")"""

    root_path: str = ""
    """Path inside the remote that is mirrored ('' for the remote root)"""

    def full_path(self, relative_path: str = "") -> str:
        """Path inside the remote, relative to the remote's own root."""
        return join_remote_path(self.root_path, relative_path)

    def remote_path(self, relative_path: str = "") -> str:
        """Render the ``profile:path`` argument understood by rclone.

        Examples:
            >>> RemoteContext("dropbox_me", "Photos").remote_path("2024/a.jpg")
            'dropbox_me:Photos/2024/a.jpg'
        """
        return f"{self.profile}:{self.full_path(relative_path)}"


@dataclass(frozen=True)
class RemoteEntry:
    """A file or folder reported by the remote listing."""

    path: str
    """Slash-separated path relative to the enumerated root"""

    name: str
    """Entry name (last path segment)"""

    is_dir: bool
    """Whether this entry is a directory"""

    size: int = 0
    """Size in bytes (always 0 for directories)"""

    @property
    def parent(self) -> str:
        """Directory component of the path ('' for root-level entries)."""
        return split_remote_path(self.path)[0]

    @property
    def depth(self) -> int:
        """Number of path segments."""
        return path_depth(self.path)

    @property
    def is_root_level(self) -> bool:
        return "/" not in self.path

    @classmethod
    def from_listing(cls, item: Any) -> "RemoteEntry":
        """Create a RemoteEntry from one ``rclone lsjson`` object.

        Args:
            item: Dictionary with ``Path``, ``Name``, ``IsDir`` and ``Size`` keys

        Returns:
            RemoteEntry instance

        Raises:
            PlanningError: If a field is missing or has the wrong type
        """
        if not isinstance(item, dict):
            raise PlanningError(f"Listing item is not an object: {item!r}")

        path = item.get("Path")
        if not isinstance(path, str) or not path.strip("/"):
            raise PlanningError(f"Listing item has no usable Path: {item!r}")
        path = path.strip("/")

        is_dir = item.get("IsDir", False)
        if not isinstance(is_dir, bool):
            raise PlanningError(f"Listing item has a non-boolean IsDir: {item!r}")

        name = item.get("Name")
        if name is None:
            name = split_remote_path(path)[1]
        elif not isinstance(name, str):
            raise PlanningError(f"Listing item has a non-string Name: {item!r}")

        size = 0
        if not is_dir:
            raw_size = item.get("Size", 0)
            # bool is an int subclass, reject it explicitly
            if isinstance(raw_size, bool) or not isinstance(raw_size, int):
                raise PlanningError(f"Listing item has a non-integer Size: {item!r}")
            # rclone reports -1 when the size is unknown
            size = max(raw_size, 0)

        return cls(path=path, name=name, is_dir=is_dir, size=size)


@dataclass(frozen=True)
class DestinationEntry:
    """A child item of a destination folder."""

    name: str
    destination_id: str
    is_dir: bool
    size: int = 0

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "DestinationEntry":
        """Create a DestinationEntry from a document store item.

        Raises:
            DriveInvalidResponseError: If the item size is not an integer
        """
        try:
            size = int(item.get("size") or 0)
        except (TypeError, ValueError) as e:
            raise DriveInvalidResponseError(
                f"Item {item.get('id')!r} has an invalid size: {item.get('size')!r}"
            ) from e
        return cls(
            name=item.get("name", ""),
            destination_id=str(item.get("id", "")),
            is_dir=bool(item.get("is_directory", False)),
            size=size,
        )


@dataclass
class DestinationListing:
    """Immediate children of one destination folder."""

    folders: list[DestinationEntry] = field(default_factory=list)
    files: list[DestinationEntry] = field(default_factory=list)

    @classmethod
    def from_children(cls, children: list[DestinationEntry]) -> "DestinationListing":
        return cls(
            folders=[c for c in children if c.is_dir],
            files=[c for c in children if not c.is_dir],
        )

    def find_folder(self, name: str) -> Optional[DestinationEntry]:
        """Find a child folder by exact name."""
        for folder in self.folders:
            if folder.name == name:
                return folder
        return None

    def find_file(self, name: str) -> Optional[DestinationEntry]:
        """Find a child file by exact name."""
        for file in self.files:
            if file.name == name:
                return file
        return None


@dataclass
class TransferOutcome:
    """Aggregated result of the file transfer pipeline."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    """Files never started because the run was cancelled"""

    last_errors: list[tuple[str, str]] = field(default_factory=list)
    """Most recent (path, cause) pairs"""

    max_recorded_errors: int = 20

    @property
    def cancelled(self) -> bool:
        return self.skipped > 0

    def record_success(self) -> None:
        self.attempted += 1
        self.succeeded += 1

    def record_failure(self, path: str, cause: BaseException) -> None:
        self.attempted += 1
        self.failed += 1
        self.last_errors.append((path, str(cause)))
        if len(self.last_errors) > self.max_recorded_errors:
            del self.last_errors[0]


@dataclass
class SyncResult:
    """Structured result of one synchronization run."""

    success: bool
    message: str
    folders_created: int = 0
    files_processed: int = 0
    files_failed: int = 0
    folders_failed: int = 0
    files_skipped: int = 0
    aborted: bool = False
    """True when the run stopped before creating anything"""

    errors: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert the result to a JSON-serializable dictionary."""
        return {
            "success": self.success,
            "message": self.message,
            "foldersCreated": self.folders_created,
            "filesProcessed": self.files_processed,
            "filesFailed": self.files_failed,
            "foldersFailed": self.folders_failed,
            "filesSkipped": self.files_skipped,
            "aborted": self.aborted,
            "errors": [{"path": p, "error": e} for p, e in self.errors],
        }
