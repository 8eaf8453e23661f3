"""Unit tests for data models."""

import pytest

from cloudmirror.exceptions import DriveInvalidResponseError, PlanningError
from cloudmirror.models import (
    DestinationEntry,
    DestinationListing,
    RemoteContext,
    RemoteEntry,
    SyncResult,
    TransferOutcome,
)


class TestRemoteContext:
    """Tests for RemoteContext path rendering."""

    def test_remote_path_with_root(self):
        """Paths should be joined below the context root."""
        context = RemoteContext("dropbox_me", "Photos")
        assert context.remote_path("2024/a.jpg") == "dropbox_me:Photos/2024/a.jpg"

    def test_remote_path_at_remote_root(self):
        """Without a root, paths should follow the profile colon directly."""
        context = RemoteContext("dropbox_me")
        assert context.remote_path() == "dropbox_me:"
        assert context.remote_path("a.txt") == "dropbox_me:a.txt"


class TestRemoteEntryFromListing:
    """Tests for parsing one listing object."""

    def test_file(self):
        """File objects should parse with size, parent and depth."""
        entry = RemoteEntry.from_listing(
            {"Path": "docs/b.txt", "Name": "b.txt", "IsDir": False, "Size": 2048}
        )
        assert entry == RemoteEntry("docs/b.txt", "b.txt", False, 2048)
        assert entry.parent == "docs"
        assert entry.depth == 2
        assert not entry.is_root_level

    def test_directory_size_is_ignored(self):
        """Directory sizes from the listing should be ignored."""
        entry = RemoteEntry.from_listing(
            {"Path": "docs", "Name": "docs", "IsDir": True, "Size": -1}
        )
        assert entry.is_dir
        assert entry.size == 0
        assert entry.is_root_level

    def test_name_defaults_to_last_segment(self):
        """A missing Name should default to the last path segment."""
        entry = RemoteEntry.from_listing({"Path": "a/b/c.txt", "Size": 3})
        assert entry.name == "c.txt"

    def test_unknown_size_clamped(self):
        """An unknown size (-1) should become zero."""
        entry = RemoteEntry.from_listing({"Path": "x.bin", "IsDir": False, "Size": -1})
        assert entry.size == 0

    @pytest.mark.parametrize(
        "item",
        [
            "not a dict",
            {"Name": "x"},
            {"Path": ""},
            {"Path": "/"},
            {"Path": "x", "IsDir": "yes"},
            {"Path": "x", "Name": 5},
            {"Path": "x", "Size": "12"},
            {"Path": "x", "Size": True},
        ],
    )
    def test_malformed_items(self, item):
        """Malformed listing objects should raise PlanningError."""
        with pytest.raises(PlanningError):
            RemoteEntry.from_listing(item)


class TestDestinationModels:
    """Tests for destination entries and listings."""

    def test_from_api(self):
        """Store items should convert with a string id and a zero default size."""
        entry = DestinationEntry.from_api(
            {"id": 42, "name": "docs", "is_directory": True, "size": None}
        )
        assert entry == DestinationEntry("docs", "42", True, 0)

    @pytest.mark.parametrize("size", ["12.5", "n/a", [1]])
    def test_from_api_invalid_size(self, size):
        """Non-integer store sizes should raise DriveInvalidResponseError."""
        with pytest.raises(DriveInvalidResponseError, match="invalid size"):
            DestinationEntry.from_api({"id": "d1", "name": "docs", "size": size})

    def test_listing_split_and_lookup(self):
        """Children should be split into folders and files and found by name."""
        listing = DestinationListing.from_children(
            [
                DestinationEntry("docs", "1", True, 10),
                DestinationEntry("a.txt", "2", False, 100),
            ]
        )
        assert listing.find_folder("docs").destination_id == "1"
        assert listing.find_folder("a.txt") is None
        assert listing.find_file("a.txt").size == 100
        assert listing.find_file("missing") is None


class TestTransferOutcome:
    """Tests for outcome aggregation."""

    def test_counts(self):
        """Successes and failures should be counted separately."""
        outcome = TransferOutcome()
        outcome.record_success()
        outcome.record_failure("b.txt", RuntimeError("boom"))
        assert outcome.attempted == 2
        assert outcome.succeeded == 1
        assert outcome.failed == 1
        assert outcome.last_errors == [("b.txt", "boom")]
        assert not outcome.cancelled

    def test_error_list_is_bounded(self):
        """Only the most recent errors should be kept."""
        outcome = TransferOutcome(max_recorded_errors=3)
        for i in range(5):
            outcome.record_failure(f"f{i}", RuntimeError(str(i)))
        assert outcome.failed == 5
        assert [p for p, _ in outcome.last_errors] == ["f2", "f3", "f4"]


class TestSyncResult:
    """Tests for SyncResult serialization."""

    def test_to_dict(self):
        """Results should serialize with camelCase keys."""
        result = SyncResult(
            success=False,
            message="Sync completed with 1 failure(s)",
            folders_created=2,
            files_processed=4,
            files_failed=1,
            errors=[("c.txt", "boom")],
        )
        data = result.to_dict()
        assert data["success"] is False
        assert data["foldersCreated"] == 2
        assert data["filesProcessed"] == 4
        assert data["filesFailed"] == 1
        assert data["aborted"] is False
        assert data["errors"] == [{"path": "c.txt", "error": "boom"}]
