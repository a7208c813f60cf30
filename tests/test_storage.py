"""
Tests for the storage engine
"""

import pytest
from unittest.mock import Mock

from skatos.exceptions import (
    InvalidNameError,
    LegacyToolMissingError,
    ValidationError,
    ValueTooLargeError,
)
from skatos.legacy import SkateCLI, UnparsedLine
from skatos.models import Entry
from skatos.storage import SkatosStore


class TestSetGetDelete:
    """Test single-entry operations"""

    def test_set_then_get(self, store: SkatosStore):
        store.set("foo", "bar")
        assert store.get("foo") == "bar"

    def test_last_set_wins(self, store: SkatosStore):
        for value in ("one", "two", "three"):
            store.set("k", value, "work")
        assert store.get("k", "work") == "three"

    def test_get_missing_returns_none(self, store: SkatosStore):
        assert store.get("nope") is None
        assert store.get("nope", "other") is None

    def test_keys_are_case_sensitive(self, store: SkatosStore):
        store.set("Token", "upper")
        store.set("token", "lower")
        assert store.get("Token") == "upper"
        assert store.get("token") == "lower"

    def test_databases_are_disjoint(self, store: SkatosStore):
        store.set("url", "default-url")
        store.set("url", "work-url", "work")
        assert store.get("url") == "default-url"
        assert store.get("url", "work") == "work-url"

    def test_values_round_trip_exactly(self, store: SkatosStore):
        value = "  leading\ttabs \"quotes\" 'single' \\back\nline2\r\n"
        store.set("raw", value)
        assert store.get("raw") == value

    def test_delete(self, store: SkatosStore):
        store.set("k", "v")
        assert store.delete("k") is True
        assert store.get("k") is None
        assert store.delete("k") is False

    def test_delete_missing_database(self, store: SkatosStore):
        assert store.delete("k", "ghost") is False

    def test_invalid_key(self, store: SkatosStore):
        with pytest.raises(InvalidNameError):
            store.set("a@b", "v")
        with pytest.raises(InvalidNameError):
            store.set("", "v")

    def test_empty_value_rejected(self, store: SkatosStore):
        with pytest.raises(ValidationError, match="non-empty"):
            store.set("k", "")
        assert store.get("k") is None
        assert not store.path.exists()

    def test_invalid_database(self, store: SkatosStore):
        with pytest.raises(InvalidNameError):
            store.set("k", "v", "a@b")

    def test_value_too_large(self, store: SkatosStore):
        with pytest.raises(ValueTooLargeError):
            store.set("k", "x" * (1024 * 1024 + 1))

    def test_instances_share_state_through_disk(self, store: SkatosStore, store_path):
        other = SkatosStore(store_path)
        store.set("k", "v")
        assert other.get("k") == "v"


class TestListing:
    """Test ordered listings"""

    def test_list_orders_by_key_then_database(self, store: SkatosStore):
        store.set("b", "2", "work")
        store.set("a", "1", "work")
        store.set("b", "3")
        store.set("c", "4", "alpha")

        assert store.list() == [
            Entry("a", "1", "work"),
            Entry("b", "3", "default"),
            Entry("b", "2", "work"),
            Entry("c", "4", "alpha"),
        ]

    def test_list_single_database(self, store: SkatosStore):
        store.set("b", "2", "work")
        store.set("a", "1", "work")
        store.set("z", "9")
        assert [e.key for e in store.list("work")] == ["a", "b"]
        assert store.list("missing") == []

    def test_list_keys(self, store: SkatosStore):
        store.set("b", "1")
        store.set("a", "1", "work")
        store.set("b", "2", "work")
        assert store.list_keys() == ["a", "b"]
        assert store.list_keys("default") == ["b"]

    def test_list_databases_sorted_unique(self, store: SkatosStore):
        assert store.list_databases() == []
        store.set("k", "v", "zeta")
        store.set("k2", "v", "zeta")
        store.set("k", "v", "alpha")
        store.set("k", "v")
        assert store.list_databases() == ["alpha", "default", "zeta"]

    def test_database_disappears_with_last_entry(self, store: SkatosStore):
        store.set("k", "v", "temp")
        assert store.has_database("temp")
        store.delete("k", "temp")
        assert store.list_databases() == []
        assert not store.has_database("temp")


class TestSetMany:
    """Test batch writes"""

    def test_invalid_entries_are_skipped(self, store: SkatosStore):
        stored, skipped = store.set_many(
            [
                Entry("good", "1"),
                Entry("bad@key", "2"),
                Entry("other", "3", "work"),
                Entry("", "4"),
            ]
        )
        assert (stored, skipped) == (2, 2)
        assert store.get("good") == "1"
        assert store.get("other", "work") == "3"


class TestImportFromSkate:
    """Test legacy import through an injected adapter"""

    def _store(self, store_path, items):
        legacy = Mock(spec=SkateCLI)
        legacy.entries.return_value = iter(items)
        return SkatosStore(store_path, legacy=legacy)

    def test_import_counts(self, store_path):
        store = self._store(
            store_path,
            [
                Entry("token", "abc"),
                Entry("url", "https://x", "work"),
                UnparsedLine(3, "garbage", "no tab separator"),
                Entry("bad\x00key", "v"),
            ],
        )
        result = store.import_from_skate()
        assert result.imported == 2
        assert result.skipped == 2
        assert store.get("token") == "abc"
        assert store.get("url", "work") == "https://x"

    def test_import_tool_missing(self, store_path):
        legacy = Mock(spec=SkateCLI)
        legacy.entries.side_effect = LegacyToolMissingError("'skate' was not found on PATH")
        store = SkatosStore(store_path, legacy=legacy)
        with pytest.raises(LegacyToolMissingError):
            store.import_from_skate()
        assert not store_path.exists()
