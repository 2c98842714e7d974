"""
Version Ledger.

This module answers "is this plugin enabled, and at which version" from the
contents of an installed plugin directory, and mutates per-version state.

Layout:
    <plugin_root>/<internal_name>/<version>/
        <internal_name>.py     loadable payload
        <internal_name>.json   local copy of the plugin definition
        disabled               zero-byte marker
        testing                zero-byte marker

Key features:
- Explicit SentinelState model, evaluated without touching the file system
- SentinelStore adapter translating state to and from marker files
- Version ordering with unparsable names first
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from plugmaster.repository.definition import PluginDefinition, load_definition
from plugmaster.repository.version import Version, parse_version, version_sort_key

logger = logging.getLogger(__name__)

DISABLED_MARKER = "disabled"
TESTING_MARKER = "testing"
PAYLOAD_SUFFIX = ".py"


class VersionStatus(Enum):
    """Effective status of one version directory."""

    ACTIVE = "active"
    TESTING = "testing"
    DISABLED = "disabled"


@dataclass(frozen=True)
class SentinelState:
    """
    Marker flags of a version directory.

    Attributes:
        disabled: The version must not be loaded
        testing: The version came from the testing channel
    """

    disabled: bool = False
    testing: bool = False

    @property
    def status(self) -> VersionStatus:
        if self.disabled:
            return VersionStatus.DISABLED
        if self.testing:
            return VersionStatus.TESTING
        return VersionStatus.ACTIVE


@dataclass(frozen=True)
class VersionEntry:
    """
    One version directory of an installed plugin.

    Attributes:
        name: Directory name (the version string)
        path: Directory path
        state: Marker flags read from the directory
    """

    name: str
    path: Path
    state: SentinelState = SentinelState()

    @property
    def version(self) -> Version | None:
        return parse_version(self.name)

    @property
    def enabled(self) -> bool:
        return not self.state.disabled


def sort_entries(entries: list[VersionEntry]) -> list[VersionEntry]:
    """
    Order version entries ascending, unparsable names first.

    Ties (unparsable names, or equal versions written differently) are broken
    by directory name so the order is deterministic.
    """
    return sorted(entries, key=lambda e: (version_sort_key(e.name), e.name))


def entries_enabled(entries: list[VersionEntry]) -> bool:
    """
    Decide whether a plugin is enabled from its version entries.

    The latest version decides, unless it is a disabled testing build: then
    any enabled sibling (typically the stable release) keeps the plugin
    enabled.

    Args:
        entries: All version entries of one plugin, in any order

    Returns:
        True if the plugin is enabled
    """
    if not entries:
        return False

    latest = sort_entries(entries)[-1]
    if latest.enabled:
        return True

    if latest.state.testing:
        return any(entry.enabled for entry in entries)

    return False


class SentinelStore:
    """Reads and writes SentinelState as marker files."""

    def read(self, version_dir: Path) -> SentinelState:
        return SentinelState(
            disabled=(version_dir / DISABLED_MARKER).exists(),
            testing=(version_dir / TESTING_MARKER).exists(),
        )

    def write(self, version_dir: Path, state: SentinelState) -> None:
        self._set_marker(version_dir / DISABLED_MARKER, state.disabled)
        self._set_marker(version_dir / TESTING_MARKER, state.testing)

    def _set_marker(self, marker: Path, present: bool) -> None:
        if present:
            marker.touch(exist_ok=True)
        else:
            marker.unlink(missing_ok=True)


class VersionLedger:
    """
    File-system backed view of installed plugin versions.

    Example:
        ledger = VersionLedger()
        latest = ledger.latest(Path("plugins/Foo"))
        if ledger.is_enabled(Path("plugins/Foo")):
            ...
    """

    def __init__(self, store: SentinelStore | None = None):
        """
        Initialize VersionLedger.

        Args:
            store: Marker persistence adapter (default: SentinelStore)
        """
        self.store = store or SentinelStore()

    def versions(self, plugin_dir: Path) -> list[VersionEntry]:
        """
        List version directories of a plugin.

        Args:
            plugin_dir: Installed plugin directory

        Returns:
            Entries sorted ascending, unparsable names first
        """
        if not plugin_dir.is_dir():
            return []

        entries = []
        for child in plugin_dir.iterdir():
            if not child.is_dir():
                continue
            if parse_version(child.name) is None:
                logger.debug("Unparsable version: %s", child)
            entries.append(
                VersionEntry(name=child.name, path=child, state=self.store.read(child))
            )

        return sort_entries(entries)

    def latest(self, plugin_dir: Path) -> VersionEntry | None:
        """Return the highest version entry, or None without version directories."""
        entries = self.versions(plugin_dir)
        return entries[-1] if entries else None

    def is_enabled(self, plugin_dir: Path) -> bool:
        """Check if a plugin is enabled, see entries_enabled()."""
        return entries_enabled(self.versions(plugin_dir))

    def active(self, plugin_dir: Path) -> VersionEntry | None:
        """
        The version a host should load.

        Returns:
            Highest enabled version entry, or None if the plugin is disabled
        """
        entries = self.versions(plugin_dir)
        if not entries_enabled(entries):
            return None
        enabled = [entry for entry in entries if entry.enabled]
        return enabled[-1] if enabled else None

    def state(self, version_dir: Path) -> SentinelState:
        return self.store.read(version_dir)

    def set_disabled(self, version_dir: Path, disabled: bool = True) -> None:
        """Create or remove the disabled marker. Idempotent."""
        state = self.store.read(version_dir)
        if state.disabled != disabled:
            self.store.write(version_dir, replace(state, disabled=disabled))

    def set_testing(self, version_dir: Path, testing: bool = True) -> None:
        """Create or remove the testing marker. Idempotent."""
        state = self.store.read(version_dir)
        if state.testing != testing:
            self.store.write(version_dir, replace(state, testing=testing))

    @staticmethod
    def payload_path(version_dir: Path) -> Path:
        """Path of the loadable payload: <version_dir>/<internal_name>.py."""
        return version_dir / f"{version_dir.parent.name}{PAYLOAD_SUFFIX}"

    @staticmethod
    def definition_path(version_dir: Path) -> Path:
        """Path of the local definition file: <version_dir>/<internal_name>.json."""
        return version_dir / f"{version_dir.parent.name}.json"

    def load_local_definition(self, version_dir: Path) -> PluginDefinition | None:
        """
        Read the local definition of a version directory.

        Args:
            version_dir: Version directory

        Returns:
            PluginDefinition, or None if the file does not exist

        Raises:
            DefinitionError: If the file exists but cannot be read or parsed
        """
        path = self.definition_path(version_dir)
        if not path.exists():
            return None
        return load_definition(path)
