"""
Tests for Plugin Cleaner.

This test suite covers:
1. Removing disabled versions
2. Removing versions built for an outdated API level
3. Removing plugin directories left empty
"""

import json
import tempfile
from pathlib import Path

from plugmaster.repository.cleaner import PluginCleaner
from plugmaster.repository.ledger import DISABLED_MARKER

API_LEVEL = 5


def make_version(
    plugins_dir: Path, name: str, version: str, api_level: int = API_LEVEL, disabled=False
) -> Path:
    version_dir = plugins_dir / name / version
    version_dir.mkdir(parents=True)
    (version_dir / f"{name}.py").write_text("VALUE = 1\n")
    (version_dir / f"{name}.json").write_text(
        json.dumps({"InternalName": name, "AssemblyVersion": version, "DalamudApiLevel": api_level})
    )
    if disabled:
        (version_dir / DISABLED_MARKER).touch()
    return version_dir


class TestCleanup:
    """Test a cleanup pass."""

    def test_removes_disabled_versions(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            old = make_version(plugins_dir, "Foo", "1.0.0", disabled=True)
            current = make_version(plugins_dir, "Foo", "2.0.0")

            removed = PluginCleaner(plugins_dir, API_LEVEL).cleanup()

            assert removed == [old]
            assert not old.exists()
            assert current.exists()

    def test_api_level_threshold(self):
        """Two or more levels below the host are removed; one below is kept."""
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            stale = make_version(plugins_dir, "Stale", "1.0.0", api_level=API_LEVEL - 2)
            older = make_version(plugins_dir, "Older", "1.0.0", api_level=API_LEVEL - 1)
            current = make_version(plugins_dir, "Current", "1.0.0", api_level=API_LEVEL)

            removed = PluginCleaner(plugins_dir, API_LEVEL).cleanup()

            assert not stale.exists()
            assert not (plugins_dir / "Stale").exists()
            assert older.exists()
            assert current.exists()
            assert set(removed) == {stale, plugins_dir / "Stale"}

    def test_removes_empty_plugin_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            make_version(plugins_dir, "Foo", "1.0.0", disabled=True)
            (plugins_dir / "Empty").mkdir()

            PluginCleaner(plugins_dir, API_LEVEL).cleanup()

            assert not (plugins_dir / "Foo").exists()
            assert not (plugins_dir / "Empty").exists()

    def test_keeps_directory_with_other_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            make_version(plugins_dir, "Foo", "1.0.0", disabled=True)
            (plugins_dir / "Foo" / "notes.txt").write_text("keep me")

            PluginCleaner(plugins_dir, API_LEVEL).cleanup()

            assert (plugins_dir / "Foo" / "notes.txt").exists()
            assert not (plugins_dir / "Foo" / "1.0.0").exists()

    def test_keeps_versions_without_definition(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            version_dir = make_version(plugins_dir, "Foo", "1.0.0")
            (version_dir / "Foo.json").unlink()

            assert PluginCleaner(plugins_dir, API_LEVEL).cleanup() == []
            assert version_dir.exists()

    def test_unreadable_definition_does_not_stop_scan(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            broken = make_version(plugins_dir, "Broken", "1.0.0")
            (broken / "Broken.json").write_text("{ nope")
            stale = make_version(plugins_dir, "Stale", "1.0.0", api_level=0)

            PluginCleaner(plugins_dir, API_LEVEL).cleanup()

            assert broken.exists()
            assert not stale.exists()

    def test_ignores_files_in_plugin_root(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            plugins_dir = Path(tmpdir)
            (plugins_dir / "README.txt").write_text("not a plugin")

            assert PluginCleaner(plugins_dir, API_LEVEL).cleanup() == []
            assert (plugins_dir / "README.txt").exists()

    def test_missing_plugin_root(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cleaner = PluginCleaner(Path(tmpdir) / "missing", API_LEVEL)
            assert cleaner.cleanup() == []
