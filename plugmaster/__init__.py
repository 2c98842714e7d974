"""
plugmaster - plugin repository, update and installation core.

This is the main package that exports the public API.
"""

__version__ = "0.1.0"

from plugmaster.app import InstalledPlugin, PluginRepository
from plugmaster.repository.aggregator import CatalogSnapshot, CatalogState
from plugmaster.repository.channel import Channel
from plugmaster.repository.definition import PluginDefinition
from plugmaster.repository.orchestrator import UpdateRecord

__all__ = [
    "__version__",
    "CatalogSnapshot",
    "CatalogState",
    "Channel",
    "InstalledPlugin",
    "PluginDefinition",
    "PluginRepository",
    "UpdateRecord",
]
