"""Unit tests for listing parsing and remote enumeration."""

import json

import pytest

from cloudmirror.exceptions import EnumerationError, PlanningError
from cloudmirror.models import RemoteEntry
from cloudmirror.sync.scanner import RemoteTreeScanner, parse_listing

from conftest import FakeSource


class TestParseListing:
    """Tests for parse_listing."""

    def test_parses_entries_in_order(self):
        """Listing output should parse into entries in order."""
        output = json.dumps(
            [
                {"Path": "docs", "Name": "docs", "IsDir": True, "Size": -1},
                {"Path": "docs/b.txt", "Name": "b.txt", "IsDir": False, "Size": 2048},
            ]
        )
        assert parse_listing(output) == [
            RemoteEntry("docs", "docs", True, 0),
            RemoteEntry("docs/b.txt", "b.txt", False, 2048),
        ]

    @pytest.mark.parametrize("output", ["", "   \n", "[]"])
    def test_empty_output(self, output):
        """Blank output or an empty array should yield no entries."""
        assert parse_listing(output) == []

    def test_invalid_json(self):
        """Unparsable output should raise EnumerationError."""
        with pytest.raises(EnumerationError, match="Unparsable"):
            parse_listing("[{")

    def test_not_an_array(self):
        """A JSON object instead of an array should raise EnumerationError."""
        with pytest.raises(EnumerationError, match="not a JSON array"):
            parse_listing('{"Path": "a"}')

    def test_malformed_item(self):
        """A malformed item should raise PlanningError."""
        with pytest.raises(PlanningError):
            parse_listing('[{"Path": "a", "IsDir": "no"}]')


class TestRemoteTreeScanner:
    """Tests for RemoteTreeScanner."""

    def test_enumerate_recursive(self, context):
        """Recursive enumeration should return folders and files."""
        source = FakeSource(files={"docs/b.txt": b"bb", "a.txt": b"a"})
        entries = RemoteTreeScanner(source).enumerate(context)

        assert {e.path for e in entries} == {"docs", "docs/b.txt", "a.txt"}
        assert source.list_calls[0]["dirs_only"] is False

    def test_enumerate_dirs_only(self, context):
        """Directory-only enumeration should return folders only."""
        source = FakeSource(files={"docs/sub/c.txt": b"c"})
        entries = RemoteTreeScanner(source).enumerate(context, dirs_only=True)

        assert [e.path for e in entries] == ["docs", "docs/sub"]
        assert source.list_calls[0]["dirs_only"] is True

    def test_errors_propagate(self, context):
        """Listing errors should propagate to the caller."""
        source = FakeSource(list_error=EnumerationError("exit 1"))
        with pytest.raises(EnumerationError):
            RemoteTreeScanner(source).enumerate(context)
