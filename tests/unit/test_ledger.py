"""
Tests for Version Ledger.

This test suite covers:
1. Pure enabled/disabled logic over SentinelState entries
2. Version directory listing and ordering on disk
3. Marker file mutation (idempotent)
4. Local definition loading
"""

import json
import tempfile
from pathlib import Path

import pytest

from plugmaster.repository.definition import DefinitionError
from plugmaster.repository.ledger import (
    DISABLED_MARKER,
    TESTING_MARKER,
    SentinelState,
    VersionEntry,
    VersionLedger,
    VersionStatus,
    entries_enabled,
    sort_entries,
)


def entry(name: str, disabled: bool = False, testing: bool = False) -> VersionEntry:
    return VersionEntry(
        name=name,
        path=Path("/plugins/Foo") / name,
        state=SentinelState(disabled=disabled, testing=testing),
    )


def make_version(plugin_dir: Path, name: str, *markers: str) -> Path:
    version_dir = plugin_dir / name
    version_dir.mkdir(parents=True)
    for marker in markers:
        (version_dir / marker).touch()
    return version_dir


class TestSentinelState:
    """Test the tagged status."""

    def test_status(self):
        assert SentinelState().status is VersionStatus.ACTIVE
        assert SentinelState(testing=True).status is VersionStatus.TESTING
        assert SentinelState(disabled=True).status is VersionStatus.DISABLED
        assert SentinelState(disabled=True, testing=True).status is VersionStatus.DISABLED


class TestEntriesEnabled:
    """Test enabled resolution without the file system."""

    def test_single_enabled_version(self):
        """A lone version without disabled marker is enabled."""
        assert entries_enabled([entry("1.0.0")])

    def test_single_disabled_version(self):
        """A lone disabled version is disabled."""
        assert not entries_enabled([entry("1.0.0", disabled=True)])

    def test_no_versions(self):
        assert not entries_enabled([])

    def test_disabled_testing_latest_with_enabled_sibling(self):
        """An enabled stable sibling keeps the plugin enabled."""
        entries = [entry("1.0.0"), entry("1.1.0", disabled=True, testing=True)]
        assert entries_enabled(entries)

    def test_disabled_testing_latest_without_enabled_sibling(self):
        entries = [
            entry("1.0.0", disabled=True),
            entry("1.1.0", disabled=True, testing=True),
        ]
        assert not entries_enabled(entries)

    def test_disabled_stable_latest_ignores_siblings(self):
        """Fallback only applies when the latest is a testing build."""
        entries = [entry("1.0.0"), entry("1.1.0", disabled=True)]
        assert not entries_enabled(entries)

    def test_order_of_input_does_not_matter(self):
        entries = [entry("1.1.0", disabled=True, testing=True), entry("1.0.0")]
        assert entries_enabled(entries)

    def test_sort_entries_unparsable_first(self):
        ordered = sort_entries([entry("2.0.0"), entry("junk"), entry("1.0.0")])
        assert [e.name for e in ordered] == ["junk", "1.0.0", "2.0.0"]


class TestVersionLedger:
    """Test the file-system backed ledger."""

    def test_versions_sorted(self):
        """Should list version directories ascending, unparsable first."""
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin_dir = Path(tmpdir) / "Foo"
            for name in ["1.10.0", "1.2.0", "not-a-version", "1.9.0"]:
                make_version(plugin_dir, name)
            (plugin_dir / "stray.txt").write_text("ignored")

            ledger = VersionLedger()
            names = [e.name for e in ledger.versions(plugin_dir)]

            assert names == ["not-a-version", "1.2.0", "1.9.0", "1.10.0"]
            assert ledger.latest(plugin_dir).name == "1.10.0"

    def test_latest_none_without_versions(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin_dir = Path(tmpdir) / "Foo"
            plugin_dir.mkdir()

            ledger = VersionLedger()
            assert ledger.versions(plugin_dir) == []
            assert ledger.latest(plugin_dir) is None

    def test_latest_only_unparsable(self):
        """Latest exists but carries no parsed version."""
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin_dir = Path(tmpdir) / "Foo"
            make_version(plugin_dir, "dev")

            latest = VersionLedger().latest(plugin_dir)
            assert latest.name == "dev"
            assert latest.version is None

    def test_is_enabled_reads_markers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin_dir = Path(tmpdir) / "Foo"
            make_version(plugin_dir, "1.0.0")
            make_version(plugin_dir, "1.1.0", DISABLED_MARKER, TESTING_MARKER)

            ledger = VersionLedger()
            assert ledger.is_enabled(plugin_dir)
            assert ledger.active(plugin_dir).name == "1.0.0"

    def test_active_none_when_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugin_dir = Path(tmpdir) / "Foo"
            make_version(plugin_dir, "1.0.0", DISABLED_MARKER)

            ledger = VersionLedger()
            assert not ledger.is_enabled(plugin_dir)
            assert ledger.active(plugin_dir) is None

    def test_set_disabled_idempotent(self):
        """Should create and remove the marker without failing on repeats."""
        with tempfile.TemporaryDirectory() as tmpdir:
            version_dir = make_version(Path(tmpdir) / "Foo", "1.0.0")
            ledger = VersionLedger()

            ledger.set_disabled(version_dir, True)
            ledger.set_disabled(version_dir, True)
            assert (version_dir / DISABLED_MARKER).exists()

            ledger.set_disabled(version_dir, False)
            ledger.set_disabled(version_dir, False)
            assert not (version_dir / DISABLED_MARKER).exists()

    def test_set_testing_keeps_disabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            version_dir = make_version(Path(tmpdir) / "Foo", "1.0.0", DISABLED_MARKER)
            ledger = VersionLedger()

            ledger.set_testing(version_dir, True)

            assert ledger.state(version_dir) == SentinelState(disabled=True, testing=True)

    def test_load_local_definition(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            version_dir = make_version(Path(tmpdir) / "Foo", "1.0.0")
            (version_dir / "Foo.json").write_text(
                json.dumps({"InternalName": "Foo", "AssemblyVersion": "1.0.0"})
            )

            definition = VersionLedger().load_local_definition(version_dir)

            assert definition.internal_name == "Foo"
            assert definition.assembly_version == "1.0.0"

    def test_load_local_definition_missing(self):
        """A missing definition is not an error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            version_dir = make_version(Path(tmpdir) / "Foo", "1.0.0")
            assert VersionLedger().load_local_definition(version_dir) is None

    def test_load_local_definition_corrupt(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            version_dir = make_version(Path(tmpdir) / "Foo", "1.0.0")
            (version_dir / "Foo.json").write_text("{ not json")

            with pytest.raises(DefinitionError):
                VersionLedger().load_local_definition(version_dir)
