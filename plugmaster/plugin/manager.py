"""
Plugin Manager.

This module provides the host-side runtime for installed plugins: it loads
payloads, tracks which plugins are loaded, and disables plugins on request.
The update core talks to it as its load and unload collaborator.

Key features:
- Plugin registry and state tracking by internal name
- Load/reload from a version directory's payload
- Disable (unload + mark the version disabled)
- Loading every enabled plugin at startup
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType

from plugmaster.plugin.loader import (
    LoaderError,
    load_plugin_module,
    reload_plugin_module,
    unload_plugin_module,
)
from plugmaster.repository.definition import DefinitionError
from plugmaster.repository.ledger import VersionLedger

logger = logging.getLogger(__name__)


class PluginError(Exception):
    """Base exception for plugin runtime errors."""

    pass


class PluginState(Enum):
    """Plugin state enumeration."""

    UNLOADED = "unloaded"
    LOADED = "loaded"
    ERROR = "error"


class LoadReason(Enum):
    """Why a plugin is being loaded."""

    BOOT = "boot"
    INSTALLER = "installer"
    UPDATE = "update"


@dataclass
class PluginInfo:
    """
    Information about a plugin known to the runtime.

    Attributes:
        internal_name: Plugin internal name
        name: Display name (internal name if no definition was found)
        version: Loaded version string
        path: Version directory the payload came from
        state: Current plugin state
        module: Loaded module (None if not loaded)
        error: Error message if state is ERROR
    """

    internal_name: str
    name: str
    version: str
    path: Path
    state: PluginState = PluginState.UNLOADED
    module: ModuleType | None = None
    error: str | None = None


class PluginManager:
    """
    Runtime registry of loaded plugins.

    Example:
        manager = PluginManager(Path("plugins"))
        manager.load_installed()
        manager.is_loaded("Foo")
    """

    def __init__(self, plugins_dir: Path, ledger: VersionLedger | None = None):
        """
        Initialize PluginManager.

        Args:
            plugins_dir: Plugin root directory
            ledger: Version ledger (default: file-system ledger)
        """
        self.plugins_dir = plugins_dir
        self.ledger = ledger or VersionLedger()
        self._plugins: dict[str, PluginInfo] = {}
        self._lock = threading.Lock()

        self.plugins_dir.mkdir(parents=True, exist_ok=True)

    def load_from_package(
        self,
        payload: Path,
        is_reload: bool = False,
        reason: LoadReason = LoadReason.INSTALLER,
    ) -> bool:
        """
        Load a plugin from its payload file.

        A plugin already loaded from the same version directory is left as is
        unless is_reload is set; one loaded from another version is replaced.

        Args:
            payload: <plugins_dir>/<internal_name>/<version>/<internal_name>.py
            is_reload: Re-import the payload even if already loaded
            reason: Why the plugin is loaded (logged)

        Returns:
            True if the plugin is loaded afterwards

        Raises:
            LoaderError: If the payload cannot be imported
        """
        version_dir = payload.parent
        internal_name = version_dir.parent.name

        with self._lock:
            current = self._plugins.get(internal_name)

        if current is not None and current.state == PluginState.LOADED:
            if current.path == version_dir and not is_reload:
                return True
            self.unload_plugin(internal_name)
            is_reload = True

        name = internal_name
        try:
            definition = self.ledger.load_local_definition(version_dir)
            if definition is not None:
                name = definition.name
        except DefinitionError as e:
            logger.warning("Unreadable definition for %s: %s", internal_name, e)

        info = PluginInfo(
            internal_name=internal_name,
            name=name,
            version=version_dir.name,
            path=version_dir,
        )

        logger.info(
            "Loading %s v%s (reason: %s)", internal_name, info.version, reason.value
        )

        try:
            if is_reload:
                module = reload_plugin_module(payload, internal_name)
            else:
                module = load_plugin_module(payload, internal_name)
        except LoaderError as e:
            info.state = PluginState.ERROR
            info.error = str(e)
            with self._lock:
                self._plugins[internal_name] = info
            raise

        info.module = module
        info.state = PluginState.LOADED
        with self._lock:
            self._plugins[internal_name] = info

        return True

    def unload_plugin(self, internal_name: str) -> None:
        """
        Unload a plugin.

        Raises:
            PluginError: If plugin is not known to the runtime
        """
        with self._lock:
            info = self._plugins.get(internal_name)
            if info is None:
                raise PluginError(f"Plugin not found: {internal_name}")

            if info.state == PluginState.UNLOADED:
                return

            unload_plugin_module(internal_name)
            info.module = None
            info.state = PluginState.UNLOADED

        logger.info("Unloaded %s", internal_name)

    def disable_plugin(self, internal_name: str) -> None:
        """
        Unload a loaded plugin and mark its version directory disabled.

        Raises:
            PluginError: If plugin is not loaded
        """
        with self._lock:
            info = self._plugins.get(internal_name)
            if info is None or info.state != PluginState.LOADED:
                raise PluginError(f"Plugin not loaded: {internal_name}")

        self.unload_plugin(internal_name)
        self.ledger.set_disabled(info.path, True)

    def load_installed(self) -> list[str]:
        """
        Load the active version of every enabled installed plugin.

        Failures are logged and skipped.

        Returns:
            Internal names of plugins loaded
        """
        loaded = []

        for plugin_dir in sorted(self.plugins_dir.iterdir()):
            if not plugin_dir.is_dir():
                continue

            entry = self.ledger.active(plugin_dir)
            if entry is None:
                logger.debug("Not loading %s: disabled or empty", plugin_dir.name)
                continue

            try:
                self.load_from_package(
                    self.ledger.payload_path(entry.path), reason=LoadReason.BOOT
                )
                loaded.append(plugin_dir.name)
            except LoaderError:
                logger.exception("Failed to load plugin %s", plugin_dir.name)

        return loaded

    def get_plugin_info(self, internal_name: str) -> PluginInfo | None:
        with self._lock:
            return self._plugins.get(internal_name)

    def list_plugins(self) -> list[PluginInfo]:
        with self._lock:
            return list(self._plugins.values())

    def is_loaded(self, internal_name: str) -> bool:
        """Check if plugin is loaded."""
        with self._lock:
            info = self._plugins.get(internal_name)
            return info is not None and info.state == PluginState.LOADED

    def get_loaded_plugins(self) -> list[str]:
        """Get list of loaded plugin internal names."""
        with self._lock:
            return [
                name
                for name, info in self._plugins.items()
                if info.state == PluginState.LOADED
            ]
