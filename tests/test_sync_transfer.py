"""Unit tests for the batched transfer pipeline."""

import threading
from unittest.mock import patch

import pytest

from cloudmirror.models import RemoteEntry
from cloudmirror.sync.folders import FolderMap
from cloudmirror.sync.transfer import TransferPipeline, resolve_parent_id


def files(*paths):
    return [RemoteEntry(p, p.rpartition("/")[2], False, 10) for p in paths]


class Recorder:
    """Transfer function recording calls; fails for selected paths."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.lock = threading.Lock()

    def __call__(self, context, entry, parent_id):
        with self.lock:
            self.calls.append((entry.path, parent_id))
        if entry.path in self.fail:
            raise RuntimeError(f"cannot transfer {entry.path}")
        return f"new-{entry.path}"


class TestResolveParentId:
    """Tests for parent folder resolution."""

    def test_lookup_and_fallback(self):
        """Parent ids should come from the folder map, falling back to the root."""
        folder_map = FolderMap(root_id="root")
        folder_map.add("docs", "d1")

        assert resolve_parent_id(files("docs/b.txt")[0], folder_map, "root") == "d1"
        assert resolve_parent_id(files("a.txt")[0], folder_map, "root") == "root"
        assert resolve_parent_id(files("gone/x")[0], folder_map, "root") == "root"
        assert resolve_parent_id(files("docs/b.txt")[0], None, "root") == "root"


class TestTransferPipeline:
    """Tests for TransferPipeline."""

    def test_failure_isolation(self, context):
        """One failing file should not affect the others."""
        transfer = Recorder(fail={"3.txt"})
        pipeline = TransferPipeline(transfer, batch_size=10, batch_delay=0)

        outcome = pipeline.transfer(
            files("1.txt", "2.txt", "3.txt", "4.txt", "5.txt"), None, "root", context
        )

        assert outcome.attempted == 5
        assert outcome.succeeded == 4
        assert outcome.failed == 1
        assert outcome.last_errors == [("3.txt", "cannot transfer 3.txt")]
        assert len(transfer.calls) == 5

    def test_parents_resolved_from_folder_map(self, context):
        """Each file should be sent to its resolved folder."""
        transfer = Recorder()
        folder_map = FolderMap(root_id="root")
        folder_map.add("docs", "d1")

        TransferPipeline(transfer, batch_delay=0).transfer(
            files("a.txt", "docs/b.txt"), folder_map, "root", context
        )

        assert sorted(transfer.calls) == [("a.txt", "root"), ("docs/b.txt", "d1")]

    @patch("cloudmirror.sync.transfer.time.sleep")
    def test_delay_between_batches_only(self, mock_sleep, context):
        """The delay should apply between batches, not after the last."""
        pipeline = TransferPipeline(Recorder(), batch_size=2, batch_delay=0.05)

        outcome = pipeline.transfer(files("a", "b", "c", "d", "e"), None, "r", context)

        assert outcome.succeeded == 5
        # 3 batches, 2 pauses
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.05)

    def test_batches_run_sequentially(self, context):
        """A batch should finish before the next one starts."""
        events = []
        lock = threading.Lock()

        def transfer(ctx, entry, parent_id):
            with lock:
                events.append(("start", entry.path))
            with lock:
                events.append(("end", entry.path))

        TransferPipeline(transfer, batch_size=2, batch_delay=0).transfer(
            files("a", "b", "c"), None, "r", context
        )

        # Every file of the first batch ends before the second batch starts
        c_start = events.index(("start", "c"))
        assert events.index(("end", "a")) < c_start
        assert events.index(("end", "b")) < c_start

    def test_cancellation_between_batches(self, context):
        """Cancelling should skip the remaining batches."""
        cancel = threading.Event()
        seen = []

        def on_done(entry, error):
            seen.append(entry.path)
            cancel.set()

        pipeline = TransferPipeline(
            Recorder(),
            batch_size=1,
            batch_delay=0,
            cancel_event=cancel,
            progress_callback=on_done,
        )
        outcome = pipeline.transfer(files("a", "b", "c", "d", "e"), None, "r", context)

        assert seen == ["a"]
        assert outcome.succeeded == 1
        assert outcome.skipped == 4
        assert outcome.cancelled

    def test_progress_callback_receives_errors(self, context):
        """The callback should get None on success and the error on failure."""
        results = {}

        def on_done(entry, error):
            results[entry.path] = error

        TransferPipeline(
            Recorder(fail={"bad"}), batch_delay=0, progress_callback=on_done
        ).transfer(files("good", "bad"), None, "r", context)

        assert results["good"] is None
        assert isinstance(results["bad"], RuntimeError)

    def test_empty_input(self, context):
        """An empty file list should do nothing."""
        outcome = TransferPipeline(Recorder()).transfer([], None, "r", context)
        assert outcome.attempted == 0
        assert not outcome.cancelled

    def test_invalid_batch_size(self):
        """A batch size below one should be rejected."""
        with pytest.raises(ValueError):
            TransferPipeline(Recorder(), batch_size=0)
