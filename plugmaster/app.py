"""
Plugin Repository facade.

Wires settings, catalog, installer, orchestrator, cleaner and host runtime
into one object, the way a host application consumes them.
"""

import logging
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path

import httpx

from plugmaster.config import RepositorySettings
from plugmaster.plugin.manager import PluginManager
from plugmaster.repository.aggregator import CatalogSnapshot, RepositoryAggregator
from plugmaster.repository.channel import Channel
from plugmaster.repository.cleaner import PluginCleaner
from plugmaster.repository.definition import PluginDefinition
from plugmaster.repository.installer import PluginInstaller
from plugmaster.repository.ledger import VersionEntry, VersionLedger
from plugmaster.repository.notify import print_updated_plugins
from plugmaster.repository.orchestrator import UpdateOrchestrator, UpdateRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstalledPlugin:
    """An installed plugin directory as seen by the ledger."""

    internal_name: str
    versions: list[VersionEntry]
    enabled: bool

    @property
    def latest(self) -> VersionEntry | None:
        return self.versions[-1] if self.versions else None


class PluginRepository:
    """
    Update-and-installation core of the plugin host.

    Example:
        settings = plugmaster.config.load()
        repo = PluginRepository(settings)
        repo.aggregator.wait()
        ok, records = repo.update_plugins()
        repo.print_updated_plugins(records, "Plugins updated:")
    """

    def __init__(
        self,
        settings: RepositorySettings,
        host: PluginManager | None = None,
        transport: httpx.BaseTransport | None = None,
        refresh_on_start: bool = True,
    ):
        """
        Initialize PluginRepository.

        Args:
            settings: Repository settings (configuration collaborator)
            host: Plugin runtime (default: PluginManager over the plugin dir)
            transport: Optional httpx transport shared by fetches and downloads
            refresh_on_start: Start a catalog refresh immediately
        """
        self.settings = settings
        self.plugins_dir = Path(settings.plugin_dir)
        self.ledger = VersionLedger()
        self.host = host or PluginManager(self.plugins_dir, self.ledger)
        self.plugins_dir.mkdir(parents=True, exist_ok=True)

        self.aggregator = RepositoryAggregator(
            settings.repo_urls, timeout=settings.timeout, transport=transport
        )
        self.installer = PluginInstaller(
            self.plugins_dir,
            self.host,
            self.ledger,
            timeout=settings.timeout,
            transport=transport,
        )

        if refresh_on_start:
            self.reload_plugin_master()

    @property
    def catalog(self) -> CatalogSnapshot:
        return self.aggregator.snapshot

    def reload_plugin_master(self) -> "Future[CatalogSnapshot]":
        """Refresh the catalog in the background."""
        return self.aggregator.refresh()

    def install_plugin(
        self,
        definition: PluginDefinition,
        enable_after_install: bool = True,
        is_update: bool = False,
        channel: Channel = Channel.STABLE,
    ) -> bool:
        return self.installer.install(definition, enable_after_install, is_update, channel)

    def update_plugins(
        self, dry_run: bool = False, max_workers: int = 1
    ) -> tuple[bool, list[UpdateRecord]]:
        """Run an update pass against the current catalog snapshot."""
        orchestrator = UpdateOrchestrator(
            self.plugins_dir,
            self.installer,
            self.host,
            catalog=self.aggregator.snapshot,
            allow_testing=self.settings.allow_testing,
            api_level=self.settings.api_level,
            ledger=self.ledger,
        )
        return orchestrator.update_all(dry_run=dry_run, max_workers=max_workers)

    def print_updated_plugins(
        self,
        records: list[UpdateRecord],
        header: str,
        emit: Callable[[str], None] = print,
    ) -> None:
        print_updated_plugins(records, header, emit)

    def cleanup_plugins(self) -> list[Path]:
        return PluginCleaner(self.plugins_dir, self.settings.api_level, self.ledger).cleanup()

    def installed_plugins(self) -> list[InstalledPlugin]:
        """List installed plugin directories with their versions and state."""
        installed = []
        for plugin_dir in sorted(self.plugins_dir.iterdir()):
            if not plugin_dir.is_dir():
                continue
            versions = self.ledger.versions(plugin_dir)
            installed.append(
                InstalledPlugin(
                    internal_name=plugin_dir.name,
                    versions=versions,
                    enabled=self.ledger.is_enabled(plugin_dir),
                )
            )
        return installed

    def close(self) -> None:
        self.aggregator.close()
