"""Shared fixtures: in-memory fakes for the remote and the destination store."""

import io
import itertools
import threading
from contextlib import contextmanager
from typing import Optional

import pytest

from cloudmirror.exceptions import (
    DriveAPIError,
    DriveConflictError,
    DriveNetworkError,
    DriveNotFoundError,
    StreamTransferError,
)
from cloudmirror.models import (
    DestinationEntry,
    DestinationListing,
    RemoteContext,
    RemoteEntry,
)
from cloudmirror.utils import ancestor_paths


class FakeStream:
    """Readable stream over bytes, optionally failing like a dead process."""

    def __init__(self, path: str, data: bytes, fail: bool = False):
        self.path = path
        self.bytes_read = 0
        self._buffer = io.BytesIO(data)
        self._fail = fail

    def read(self, size: int = -1) -> bytes:
        if self._fail:
            raise StreamTransferError(self.path, returncode=1, stderr="remote error")
        chunk = self._buffer.read(size)
        self.bytes_read += len(chunk)
        return chunk


class FakeSource:
    """In-memory ContentSource.

    ``files`` maps paths to content; directories are derived from the file
    paths plus ``dirs``.
    """

    def __init__(
        self,
        files: Optional[dict[str, bytes]] = None,
        dirs: Optional[list[str]] = None,
        fail_paths: Optional[set[str]] = None,
        fail_once_paths: Optional[set[str]] = None,
        list_error: Optional[Exception] = None,
    ):
        self.files = dict(files or {})
        self.dirs = set(dirs or [])
        for path in self.files:
            self.dirs.update(ancestor_paths(path))
        self.fail_paths = set(fail_paths or [])
        self.fail_once_paths = set(fail_once_paths or [])
        self.list_error = list_error
        self.list_calls: list[dict] = []
        self.opened: list[str] = []
        self._lock = threading.Lock()

    def list(
        self,
        context: RemoteContext,
        path: str = "",
        recursive: bool = True,
        dirs_only: bool = False,
        files_only: bool = False,
    ) -> list[RemoteEntry]:
        self.list_calls.append(
            {"context": context, "dirs_only": dirs_only, "files_only": files_only}
        )
        if self.list_error is not None:
            raise self.list_error

        entries = []
        if not files_only:
            for d in sorted(self.dirs):
                entries.append(RemoteEntry(d, d.rpartition("/")[2], True))
        if not dirs_only:
            for p, data in self.files.items():
                entries.append(RemoteEntry(p, p.rpartition("/")[2], False, len(data)))
        return entries

    @contextmanager
    def open(self, context: RemoteContext, path: str, max_bytes=None):
        with self._lock:
            self.opened.append(path)
            fail = path in self.fail_paths
            if path in self.fail_once_paths:
                self.fail_once_paths.discard(path)
                fail = True
        yield FakeStream(path, self.files.get(path, b""), fail=fail)


class FakeStore:
    """In-memory DestinationStore holding a folder tree."""

    def __init__(self, root_id: str = "root"):
        self.root_id = root_id
        self.items: dict[str, dict] = {
            root_id: {
                "id": root_id,
                "name": "",
                "is_directory": True,
                "parent_id": None,
                "size": 0,
            }
        }
        self.blobs: dict[str, bytes] = {}
        self.versions: dict[str, dict] = {}
        self.fail_create_names: set[str] = set()
        self.fail_blob_names: set[str] = set()
        self.fail_entry_names: set[str] = set()
        self.browse_error: Optional[Exception] = None
        self.create_calls: list[tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __enter__(self) -> "FakeStore":
        return self

    def __exit__(self, *exc_info) -> None:
        pass

    def _add(self, parent_id: str, name: str, is_directory: bool, size: int) -> str:
        item_id = f"id-{next(self._ids)}"
        self.items[item_id] = {
            "id": item_id,
            "name": name,
            "is_directory": is_directory,
            "parent_id": parent_id,
            "size": size,
        }
        return item_id

    def add_folder(self, parent_id: str, name: str) -> str:
        return self._add(parent_id, name, True, 0)

    def add_file(self, parent_id: str, name: str, size: int) -> str:
        return self._add(parent_id, name, False, size)

    def children(self, parent_id: str) -> list[dict]:
        return [i for i in self.items.values() if i["parent_id"] == parent_id]

    def size_of(self, item_id: str) -> int:
        item = self.items[item_id]
        if not item["is_directory"]:
            return item["size"]
        return sum(self.size_of(c["id"]) for c in self.children(item_id))

    def tree(self, parent_id: Optional[str] = None) -> dict:
        """Nested {name: size or subtree} view of a folder."""
        parent_id = parent_id or self.root_id
        result = {}
        for child in self.children(parent_id):
            if child["is_directory"]:
                result[child["name"]] = self.tree(child["id"])
            else:
                result[child["name"]] = child["size"]
        return result

    def browse_children(self, parent_id: str) -> DestinationListing:
        if self.browse_error is not None:
            raise self.browse_error
        if parent_id not in self.items:
            raise DriveNotFoundError("Item not found")
        return DestinationListing.from_children(
            [
                DestinationEntry(
                    name=c["name"],
                    destination_id=c["id"],
                    is_dir=c["is_directory"],
                    size=self.size_of(c["id"]),
                )
                for c in self.children(parent_id)
            ]
        )

    def create_entry(self, parent_id: str, name: str, is_directory: bool = True) -> str:
        with self._lock:
            self.create_calls.append((parent_id, name))
            if name in self.fail_create_names:
                raise DriveAPIError("API request failed with status 500")
            for child in self.children(parent_id):
                if child["name"] == name and child["is_directory"] == is_directory:
                    raise DriveConflictError("An item with this name already exists")
            return self._add(parent_id, name, is_directory, 0)

    def save_blob(self, stream, filename: str, size: int, content_type: str) -> str:
        data = stream.read()
        if filename in self.fail_blob_names:
            raise DriveNetworkError("Network error during upload")
        with self._lock:
            blob_id = f"blob-{next(self._ids)}"
            self.blobs[blob_id] = data
        return blob_id

    def create_versioned_entry(
        self, blob_id: str, parent_id: str, name: str, size: int, content_type: str
    ) -> str:
        if name in self.fail_entry_names:
            raise DriveAPIError("API request failed with status 500")
        with self._lock:
            item_id = self._add(parent_id, name, False, size)
            self.versions[item_id] = {
                "blob_id": blob_id,
                "content_type": content_type,
                "size": size,
            }
        return item_id


@pytest.fixture
def context():
    return RemoteContext(profile="dropbox_jane_example_com")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def scenario_source():
    """Remote tree {a.txt: 100 B, docs/b.txt: 2048 B, docs/sub/c.txt: 4096 B}."""
    return FakeSource(
        files={
            "a.txt": b"a" * 100,
            "docs/b.txt": b"b" * 2048,
            "docs/sub/c.txt": b"c" * 4096,
        }
    )
