"""
Shared helpers for pm commands.
"""

from typing import Any

import plugmaster.config
from plugmaster.app import PluginRepository
from plugmaster.repository.aggregator import CatalogSnapshot, CatalogState


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def open_repository(args: Any) -> PluginRepository:
    """
    Build a PluginRepository from the --config settings file.

    Raises:
        PMError: If the settings cannot be loaded
    """
    try:
        settings = plugmaster.config.load(args.config)
    except plugmaster.config.ConfigError as e:
        raise PMError(f"Invalid config {args.config}: {e}") from e

    return PluginRepository(settings, refresh_on_start=False)


def fetch_catalog(repo: PluginRepository) -> CatalogSnapshot:
    """
    Refresh the catalog and wait for it.

    Raises:
        PMError: If any repository could not be fetched
    """
    snapshot = repo.aggregator.refresh_sync()

    if snapshot.state is CatalogState.FAIL:
        raise PMError("Could not fetch the plugin catalog")
    if snapshot.state is CatalogState.FAIL_THIRD_REPO:
        raise PMError(
            "Could not fetch the plugin catalog; check your third-party repositories"
        )

    return snapshot


def genconfig_command(args: Any) -> int:
    """Write a commented default settings file to --config."""
    if args.config.exists():
        raise PMError(f"{args.config} already exists")

    args.config.parent.mkdir(parents=True, exist_ok=True)
    args.config.write_text(plugmaster.config.default_config_text(), encoding="utf-8")
    print(f"Wrote {args.config}")
    return 0
