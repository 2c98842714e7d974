"""
Plugin Cleaner.

Deletes version directories that are disabled or built for an API level
more than one below the host's, then removes plugin directories left empty.
Every deletion failure is logged and the scan goes on.
"""

import logging
import shutil
from pathlib import Path

from plugmaster.repository.definition import DefinitionError
from plugmaster.repository.ledger import VersionEntry, VersionLedger

logger = logging.getLogger(__name__)


class PluginCleaner:
    """
    Garbage-collects obsolete installed versions.

    Example:
        PluginCleaner(Path("plugins"), api_level=3).cleanup()
    """

    def __init__(self, plugins_dir: Path, api_level: int, ledger: VersionLedger | None = None):
        self.plugins_dir = plugins_dir
        self.api_level = api_level
        self.ledger = ledger or VersionLedger()

    def cleanup(self) -> list[Path]:
        """
        Run a cleanup pass.

        Returns:
            Directories that were deleted
        """
        removed: list[Path] = []

        try:
            plugin_dirs = sorted(p for p in self.plugins_dir.iterdir() if p.is_dir())
        except OSError:
            logger.exception("Plugin cleanup failed")
            return removed

        for plugin_dir in plugin_dirs:
            for entry in self.ledger.versions(plugin_dir):
                if self._should_remove(entry) and self._delete(entry.path):
                    removed.append(entry.path)

            try:
                if any(plugin_dir.iterdir()):
                    continue
            except OSError:
                logger.exception("Could not list %s", plugin_dir)
                continue

            logger.info("Has no versions, cleaning up: %s", plugin_dir)
            try:
                plugin_dir.rmdir()
                removed.append(plugin_dir)
            except OSError:
                logger.exception("Could not clean up %s", plugin_dir)

        return removed

    def _should_remove(self, entry: VersionEntry) -> bool:
        if entry.state.disabled:
            logger.info("Disabled: cleaning up %s", entry.path)
            return True

        try:
            definition = self.ledger.load_local_definition(entry.path)
        except DefinitionError as e:
            logger.warning("Unreadable definition in %s: %s", entry.path, e)
            return False

        if definition is not None and definition.api_level < self.api_level - 1:
            logger.info(
                "Lower API (%d): cleaning up %s", definition.api_level, entry.path
            )
            return True

        return False

    def _delete(self, path: Path) -> bool:
        try:
            shutil.rmtree(path)
            return True
        except OSError:
            logger.exception("Could not clean up %s", path)
            return False
