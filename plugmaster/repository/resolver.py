"""
Update Resolver.

Decides, for one installed plugin, whether an update should be installed and
from which channel.
"""

import logging
from dataclasses import dataclass

from plugmaster.repository.channel import Channel
from plugmaster.repository.definition import PluginDefinition
from plugmaster.repository.version import is_newer, parse_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateDecision:
    """
    Outcome of resolving one plugin.

    Attributes:
        update: An update should be installed
        channel: Channel to install from (meaningful only when update is True)
        version: Version string that would be installed
        remote: Matching catalog entry, if any
        reason: Short explanation, used for logging
    """

    update: bool
    channel: Channel = Channel.STABLE
    version: str | None = None
    remote: PluginDefinition | None = None
    reason: str = ""


def testing_eligible(
    local: PluginDefinition, remote: PluginDefinition, allow_testing: bool
) -> bool:
    """
    Check whether the testing build of remote should replace local.

    Requires the testing channel to be allowed. Testing-exclusive plugins are
    eligible unless that exact build is already installed; otherwise the
    testing version must parse and be newer than the installed version.
    """
    if not allow_testing:
        return False
    if remote.is_testing_exclusive:
        return local.assembly_version != remote.version_for(Channel.TESTING)
    if not remote.testing_assembly_version:
        return False
    return is_newer(remote.testing_assembly_version, local.assembly_version)


def resolve_update(
    local: PluginDefinition,
    remote: PluginDefinition | None,
    allow_testing: bool,
    api_level: int,
) -> UpdateDecision:
    """
    Decide whether an installed plugin needs an update.

    Args:
        local: Definition stored next to the installed version
        remote: Catalog entry with the same internal name, or None
        allow_testing: Testing channel enabled by the user
        api_level: Current host API level

    Returns:
        UpdateDecision; never raises for bad version strings
    """
    if remote is None:
        return UpdateDecision(False, reason="not in catalog")

    if remote.api_level != api_level:
        # Older builds cannot load; newer ones target a host we are not yet
        return UpdateDecision(
            False,
            remote=remote,
            reason=f"API level {remote.api_level} not applicable (host {api_level})",
        )

    if parse_version(remote.assembly_version) is None:
        logger.warning(
            "Unparsable remote version %r for %s, skipping",
            remote.assembly_version,
            remote.internal_name,
        )
        return UpdateDecision(False, remote=remote, reason="unparsable remote version")

    if parse_version(local.assembly_version) is None:
        logger.debug(
            "Unparsable local version %r for %s",
            local.assembly_version,
            local.internal_name,
        )

    if testing_eligible(local, remote, allow_testing):
        return UpdateDecision(
            True,
            channel=Channel.TESTING,
            version=remote.version_for(Channel.TESTING),
            remote=remote,
            reason="testing build available",
        )

    if is_newer(remote.assembly_version, local.assembly_version):
        return UpdateDecision(
            True,
            channel=Channel.STABLE,
            version=remote.assembly_version,
            remote=remote,
            reason="stable build available",
        )

    return UpdateDecision(False, remote=remote, reason="up to date")
