"""
Update Orchestrator.

Walks every installed plugin directory, resolves updates against the
catalog and installs them.

Each plugin is processed independently: one plugin's failure is logged and
the pass continues with the rest.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from plugmaster.plugin.manager import PluginManager
from plugmaster.repository.aggregator import CatalogSnapshot
from plugmaster.repository.definition import DefinitionError
from plugmaster.repository.installer import PluginInstaller
from plugmaster.repository.ledger import VersionLedger
from plugmaster.repository.resolver import resolve_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateRecord:
    """
    Result of one attempted update.

    Attributes:
        internal_name: Plugin internal name
        name: Display name
        version: Version string installed (or that would be, on a dry run)
        was_updated: Whether the installation succeeded
    """

    internal_name: str
    name: str
    version: str
    was_updated: bool


@dataclass(frozen=True)
class _PluginOutcome:
    record: UpdateRecord | None = None
    failed: bool = False


class UpdateOrchestrator:
    """
    Drives an update pass over all installed plugins.

    Example:
        orchestrator = UpdateOrchestrator(
            plugins_dir, installer, host, catalog=aggregator.snapshot,
            allow_testing=False, api_level=3,
        )
        ok, records = orchestrator.update_all()
    """

    def __init__(
        self,
        plugins_dir: Path,
        installer: PluginInstaller,
        host: PluginManager,
        catalog: CatalogSnapshot,
        allow_testing: bool,
        api_level: int,
        ledger: VersionLedger | None = None,
    ):
        """
        Initialize UpdateOrchestrator.

        Args:
            plugins_dir: Plugin root directory
            installer: Installer used for stale plugins
            host: Unload collaborator (is_loaded() / disable_plugin())
            catalog: Catalog snapshot to resolve against
            allow_testing: Testing channel enabled by the user
            api_level: Current host API level
            ledger: Version ledger (default: the installer's)
        """
        self.plugins_dir = plugins_dir
        self.installer = installer
        self.host = host
        self.catalog = catalog
        self.allow_testing = allow_testing
        self.api_level = api_level
        self.ledger = ledger or installer.ledger

    def update_all(
        self, dry_run: bool = False, max_workers: int = 1
    ) -> tuple[bool, list[UpdateRecord]]:
        """
        Update every installed plugin that has a newer catalog version.

        Args:
            dry_run: Only report what would be updated
            max_workers: Plugin directories processed concurrently

        Returns:
            (success, records): success is False if any install failed or the
            scan itself failed; records are in plugin directory order
        """
        logger.info("Starting plugin update... dry:%s", dry_run)

        if self.catalog.plugins is None:
            logger.error("No plugin catalog available (state: %s)", self.catalog.state.value)
            return False, []

        try:
            plugin_dirs = sorted(p for p in self.plugins_dir.iterdir() if p.is_dir())
        except OSError:
            logger.exception("Plugin update failed")
            return False, []

        if max_workers > 1:
            with ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="plugmaster-update"
            ) as pool:
                outcomes = list(pool.map(lambda d: self._update_one(d, dry_run), plugin_dirs))
        else:
            outcomes = [self._update_one(d, dry_run) for d in plugin_dirs]

        records = [o.record for o in outcomes if o.record is not None]
        success = not any(o.failed for o in outcomes)

        logger.info("Plugin update done: %d updates, success:%s", len(records), success)
        return success, records

    def _update_one(self, plugin_dir: Path, dry_run: bool) -> _PluginOutcome:
        try:
            return self._update_plugin(plugin_dir, dry_run)
        except Exception:
            logger.exception("Could not update plugin: %s", plugin_dir)
            return _PluginOutcome()

    def _update_plugin(self, plugin_dir: Path, dry_run: bool) -> _PluginOutcome:
        versions = self.ledger.versions(plugin_dir)
        if not versions:
            logger.info("Has no versions: %s", plugin_dir)
            return _PluginOutcome()

        latest = versions[-1]
        if latest.version is None:
            logger.info("Has no parsable version: %s", plugin_dir)
            return _PluginOutcome()

        is_enabled = self.ledger.is_enabled(plugin_dir)
        if not is_enabled:
            logger.debug("Is disabled: %s", plugin_dir)
            return _PluginOutcome()

        try:
            local = self.ledger.load_local_definition(latest.path)
        except DefinitionError as e:
            logger.info("Unreadable definition in %s: %s", latest.path, e)
            return _PluginOutcome()
        if local is None:
            logger.info("Has no definition: %s", latest.path)
            return _PluginOutcome()

        decision = resolve_update(
            local,
            self.catalog.find(local.internal_name),
            self.allow_testing,
            self.api_level,
        )
        if not decision.update:
            logger.info("No update for %s: %s", local.internal_name, decision.reason)
            return _PluginOutcome()

        remote = decision.remote
        logger.info(
            "Eligible for update: %s -> %s (%s)",
            remote.internal_name,
            decision.version,
            decision.channel.value,
        )

        if dry_run:
            return _PluginOutcome(
                UpdateRecord(remote.internal_name, remote.name, decision.version, True)
            )

        if self.host.is_loaded(local.internal_name):
            try:
                self.host.disable_plugin(local.internal_name)
            except Exception:
                logger.exception("Plugin disable failed: %s", local.internal_name)

        try:
            for entry in versions:
                self.ledger.set_disabled(entry.path, True)
        except OSError:
            logger.exception("Plugin disable old versions failed: %s", plugin_dir)

        installed = self.installer.install(
            remote,
            enable_after_install=is_enabled,
            is_update=True,
            channel=decision.channel,
        )
        if not installed:
            logger.error("Install failed: %s", remote.internal_name)

        return _PluginOutcome(
            UpdateRecord(remote.internal_name, remote.name, decision.version, installed),
            failed=not installed,
        )
