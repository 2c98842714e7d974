"""
Plugin Installer.

Materializes one version of one plugin on disk and hands it to the host's
load collaborator.

Steps:
    1. Reuse an existing payload (re-enable and load, or leave inactive).
    2. Recreate the version directory.
    3. Download the archive, retrying once through a mirror.
    4. Extract, write the local definition if the archive lacks one.
    5. Flip disabled/testing markers and load.

Failures never escape install(); they are logged and reported as False.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from dataclasses import replace
from pathlib import Path

import httpx

from plugmaster.plugin.loader import LoaderError
from plugmaster.plugin.manager import LoadReason, PluginManager
from plugmaster.repository import USER_AGENT
from plugmaster.repository.channel import Channel
from plugmaster.repository.definition import PluginDefinition, save_definition
from plugmaster.repository.ledger import VersionLedger
from plugmaster.repository.mirrors import MIRROR_RULES, MirrorRule, rewrite_url
from plugmaster.repository.version import is_newer, parse_version

logger = logging.getLogger(__name__)


class InstallError(Exception):
    """Raised when a plugin archive cannot be fetched or unpacked."""

    pass


def extract_archive(archive: Path, target: Path) -> None:
    """
    Extract a zip archive into target.

    Raises:
        InstallError: If a member would be written outside target
        zipfile.BadZipFile: If the file is not a zip archive
    """
    root = target.resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            if not (root / member).resolve().is_relative_to(root):
                raise InstallError(f"Unsafe path in archive: {member}")
        zf.extractall(target)


def is_testing_download(definition: PluginDefinition, channel: Channel) -> bool:
    """
    Whether the testing archive should be fetched.

    Only on the testing channel, and only if the testing build is newer than
    the stable one or the plugin is testing-exclusive.
    """
    if channel is not Channel.TESTING:
        return False
    if definition.is_testing_exclusive:
        return True
    if parse_version(definition.testing_assembly_version) is None:
        return False
    return is_newer(definition.testing_assembly_version, definition.assembly_version)


class PluginInstaller:
    """
    Downloads and installs plugin versions.

    Example:
        installer = PluginInstaller(Path("plugins"), manager)
        ok = installer.install(definition, is_update=True, channel=Channel.STABLE)
    """

    def __init__(
        self,
        plugins_dir: Path,
        host: PluginManager,
        ledger: VersionLedger | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        mirror_rules: tuple[MirrorRule, ...] = MIRROR_RULES,
    ):
        """
        Initialize PluginInstaller.

        Args:
            plugins_dir: Plugin root directory
            host: Load collaborator (anything with load_from_package())
            ledger: Version ledger (default: file-system ledger)
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
            mirror_rules: URL rewrites for the retry after a failed download
        """
        self.plugins_dir = plugins_dir
        self.host = host
        self.ledger = ledger or VersionLedger()
        self.timeout = timeout
        self.transport = transport
        self.mirror_rules = mirror_rules

    def version_dir(self, definition: PluginDefinition, channel: Channel) -> Path:
        """
        Target directory for a definition on a channel.

        Raises:
            InstallError: If the version string cannot be used as a directory name
        """
        version = definition.version_for(channel)
        if not version or version in (".", "..") or "/" in version or "\\" in version:
            raise InstallError(
                f"Invalid version {version!r} for {definition.internal_name}"
            )
        return self.plugins_dir / definition.internal_name / version

    def install(
        self,
        definition: PluginDefinition,
        enable_after_install: bool = True,
        is_update: bool = False,
        channel: Channel = Channel.STABLE,
    ) -> bool:
        """
        Install one plugin version.

        Args:
            definition: Catalog entry to install
            enable_after_install: Load the plugin once installed
            is_update: Prefer the update download link
            channel: Release channel

        Returns:
            True on success; False on any failure (details are logged)
        """
        try:
            return self._install(definition, enable_after_install, is_update, channel)
        except Exception as e:
            logger.exception("Plugin install failed hard: %s", definition.internal_name)
            if isinstance(e, LoaderError):
                for error in e.errors:
                    logger.error("Loader error:", exc_info=error)
            return False

    def _install(
        self,
        definition: PluginDefinition,
        enable_after_install: bool,
        is_update: bool,
        channel: Channel,
    ) -> bool:
        output_dir = self.version_dir(definition, channel)
        payload = self.ledger.payload_path(output_dir)
        was_disabled = self.ledger.state(output_dir).disabled
        reason = LoadReason.UPDATE if is_update else LoadReason.INSTALLER

        if payload.exists():
            if not enable_after_install:
                return True
            self.ledger.set_disabled(output_dir, False)
            return self.host.load_from_package(payload, False, reason)

        self._recreate_dir(output_dir)

        testing = is_testing_download(definition, channel)
        url = definition.download_link(testing, is_update)
        if not url:
            raise InstallError(f"No download link for {definition.internal_name}")

        logger.info(
            "Downloading %s from %s testing:%s exclusive:%s",
            definition.internal_name,
            url,
            testing,
            definition.is_testing_exclusive,
        )
        try:
            self._download_and_extract(url, output_dir)
        except Exception as e:
            mirror_url = rewrite_url(url, self.mirror_rules)
            logger.warning("Download failed (%s), retrying from %s", e, mirror_url)
            self._recreate_dir(output_dir)
            self._download_and_extract(mirror_url, output_dir)

        if not payload.exists():
            raise InstallError(f"Archive for {definition.internal_name} has no {payload.name}")

        definition_path = self.ledger.definition_path(output_dir)
        if not definition_path.exists():
            installed = replace(definition, assembly_version=definition.version_for(channel))
            save_definition(installed, definition_path)

        if was_disabled or not enable_after_install:
            self.ledger.set_disabled(output_dir, True)
            return True

        self.ledger.set_testing(output_dir, testing)
        return self.host.load_from_package(payload, False, reason)

    def _recreate_dir(self, output_dir: Path) -> None:
        try:
            if output_dir.exists():
                shutil.rmtree(output_dir)
            output_dir.mkdir(parents=True)
        except OSError as e:
            # The host may still hold files from this directory open
            logger.info("Could not recreate %s: %s", output_dir, e)
            output_dir.mkdir(parents=True, exist_ok=True)

    def _download_and_extract(self, url: str, output_dir: Path) -> None:
        with tempfile.NamedTemporaryFile(suffix=".zip", delete=False) as tmp_file:
            tmp_path = Path(tmp_file.name)

        try:
            with httpx.Client(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(tmp_path, "wb") as f:
                        for chunk in response.iter_bytes():
                            f.write(chunk)

            logger.info("Extracting to %s", output_dir)
            extract_archive(tmp_path, output_dir)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
