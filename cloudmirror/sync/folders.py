"""Folder materialization: recreate the remote folder tree at the destination."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import DriveAPIError, FolderCreationError
from ..utils import ancestor_paths, path_depth, split_remote_path

logger = logging.getLogger(__name__)


@dataclass
class FolderMap:
    """Remote folder path to destination folder id.

    Seeded with the destination root under the empty path. Only the
    materializer adds entries; the transfer pipeline reads it.
    """

    root_id: str
    ids: dict[str, str] = field(default_factory=dict)
    created: int = 0
    """Folders created by this run"""

    reused: int = 0
    """Folders that already existed and were looked up instead"""

    failures: list[FolderCreationError] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.ids.setdefault("", self.root_id)

    def __contains__(self, path: str) -> bool:
        return path in self.ids

    def __len__(self) -> int:
        return len(self.ids) - 1

    def get(self, path: str) -> Optional[str]:
        """Destination id of a folder path, or None when unresolved."""
        return self.ids.get(path)

    def add(self, path: str, destination_id: str) -> None:
        self.ids[path] = destination_id

    def nearest_resolved(self, path: str) -> str:
        """Id of the closest resolved proper ancestor of ``path``."""
        for ancestor in reversed(ancestor_paths(path)):
            if ancestor in self.ids:
                return self.ids[ancestor]
        return self.root_id

    def parent_id_for(self, file_path: str, fallback: Optional[str] = None) -> str:
        """Destination id of the folder a file belongs in.

        Args:
            file_path: Slash-separated file path
            fallback: Id used when the directory is unresolved (default: root)
        """
        directory, _ = split_remote_path(file_path)
        destination_id = self.ids.get(directory)
        if destination_id is not None:
            return destination_id
        return fallback if fallback is not None else self.root_id

    @property
    def failed_paths(self) -> list[str]:
        return [f.path for f in self.failures]


class FolderMaterializer:
    """Creates destination folders for a list of remote folder paths."""

    def __init__(self, store):
        """Initialize the materializer.

        Args:
            store: DestinationStore used to create and browse folders
        """
        self.store = store

    def materialize(self, folders: list[str], root_parent_id: str) -> FolderMap:
        """Create (or find) a destination folder for every path.

        Paths are processed parents first. A folder that can be neither
        created nor found is recorded in ``FolderMap.failures`` and the run
        continues with the remaining paths; its descendants are placed
        under the nearest ancestor that resolved.

        Args:
            folders: Slash-separated folder paths
            root_parent_id: Destination folder the tree is created in

        Returns:
            FolderMap with one entry per resolved path
        """
        folder_map = FolderMap(root_id=root_parent_id)
        ordered = sorted(set(folders), key=lambda p: (path_depth(p), p))

        for path in ordered:
            if not path:
                continue
            parent_id = folder_map.nearest_resolved(path)
            _, name = split_remote_path(path)
            try:
                folder_id, created = self._create_or_find(parent_id, name)
            except FolderCreationError as e:
                error = FolderCreationError(path, e.cause)
                logger.warning(str(error))
                folder_map.failures.append(error)
                continue

            folder_map.add(path, folder_id)
            if created:
                folder_map.created += 1
                logger.debug(f"Created folder '{path}' -> {folder_id}")
            else:
                folder_map.reused += 1
                logger.debug(f"Reusing existing folder '{path}' -> {folder_id}")

        logger.info(
            f"Materialized {len(folder_map)} folder(s): {folder_map.created} "
            f"created, {folder_map.reused} reused, "
            f"{len(folder_map.failures)} failed"
        )
        return folder_map

    def _create_or_find(self, parent_id: str, name: str) -> tuple[str, bool]:
        """Create a folder, falling back to a same-named existing one.

        Returns:
            Tuple of (folder id, whether it was created)

        Raises:
            FolderCreationError: If neither creating nor finding succeeded
        """
        try:
            return self.store.create_entry(parent_id, name, is_directory=True), True
        except DriveAPIError as create_error:
            logger.debug(
                f"Creating folder '{name}' in {parent_id} failed "
                f"({create_error}), looking for an existing one"
            )
            try:
                listing = self.store.browse_children(parent_id)
            except DriveAPIError as browse_error:
                raise FolderCreationError(name, browse_error) from browse_error

            existing = listing.find_folder(name)
            if existing is None:
                raise FolderCreationError(name, create_error) from create_error
            return existing.destination_id, False
