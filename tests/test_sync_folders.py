"""Unit tests for folder materialization."""

from cloudmirror.exceptions import DriveNetworkError, FolderCreationError
from cloudmirror.sync.folders import FolderMap, FolderMaterializer

from conftest import FakeStore


class TestFolderMap:
    """Tests for FolderMap lookups."""

    def test_seeded_with_root(self):
        """The empty path should map to the root and not be counted."""
        folder_map = FolderMap(root_id="root")
        assert folder_map.get("") == "root"
        assert len(folder_map) == 0

    def test_parent_id_for(self):
        """Files should resolve to their folder id or the fallback."""
        folder_map = FolderMap(root_id="root")
        folder_map.add("docs", "d1")

        assert folder_map.parent_id_for("docs/b.txt") == "d1"
        assert folder_map.parent_id_for("a.txt") == "root"
        assert folder_map.parent_id_for("missing/x.txt") == "root"
        assert folder_map.parent_id_for("missing/x.txt", fallback="other") == "other"

    def test_nearest_resolved(self):
        """Unresolved paths should use the closest resolved ancestor."""
        folder_map = FolderMap(root_id="root")
        folder_map.add("a", "ida")
        assert folder_map.nearest_resolved("a/b/c") == "ida"
        assert folder_map.nearest_resolved("x/y") == "root"


class TestFolderMaterializer:
    """Tests for FolderMaterializer."""

    def test_creates_tree_parents_first(self):
        """Parents should be created before children."""
        store = FakeStore()
        folder_map = FolderMaterializer(store).materialize(
            ["docs/sub", "docs", "other"], "root"
        )

        assert [name for _, name in store.create_calls] == ["docs", "other", "sub"]
        assert store.tree() == {"docs": {"sub": {}}, "other": {}}
        assert folder_map.created == 3
        assert folder_map.failures == []
        sub_id = folder_map.get("docs/sub")
        assert store.items[sub_id]["parent_id"] == folder_map.get("docs")

    def test_existing_folder_is_reused(self):
        """A folder that already exists should be reused."""
        store = FakeStore()
        existing = store.add_folder("root", "docs")

        folder_map = FolderMaterializer(store).materialize(["docs", "docs/new"], "root")

        assert folder_map.get("docs") == existing
        assert folder_map.reused == 1
        assert folder_map.created == 1
        assert store.tree() == {"docs": {"new": {}}}

    def test_failure_is_recorded_and_run_continues(self):
        """A failed folder should be recorded without stopping the others."""
        store = FakeStore()
        store.fail_create_names = {"broken"}

        folder_map = FolderMaterializer(store).materialize(
            ["broken", "broken/child", "fine"], "root"
        )

        assert folder_map.failed_paths == ["broken"]
        assert isinstance(folder_map.failures[0], FolderCreationError)
        assert folder_map.get("broken") is None
        assert folder_map.get("fine") is not None
        # Descendants of a failed folder land under the nearest resolved ancestor
        child_id = folder_map.get("broken/child")
        assert store.items[child_id]["parent_id"] == "root"

    def test_browse_failure_after_create_failure(self):
        """A failed browse fallback should record the folder as failed."""
        store = FakeStore()
        store.fail_create_names = {"docs"}
        store.browse_error = DriveNetworkError("down")

        folder_map = FolderMaterializer(store).materialize(["docs"], "root")

        assert folder_map.failed_paths == ["docs"]
        assert "down" in str(folder_map.failures[0])

    def test_empty_input(self):
        """No folders should mean no store calls."""
        folder_map = FolderMaterializer(FakeStore()).materialize([], "root")
        assert len(folder_map) == 0
        assert folder_map.created == 0
