"""
plugmaster Configuration - TOML-based settings.

This module provides:
- The [repository] settings section (repositories, testing flag, paths)
- Runtime typed access with auto-flush
- Config file generation from the schema

Example usage:
    import plugmaster.config

    settings = plugmaster.config.load(Path("config/plugmaster.toml"))
    print(settings.allow_testing)        # Read
    settings.allow_testing = True        # Write (auto-flushes)
    settings.repo_urls()                 # primary + enabled third-party repos
"""

from dataclasses import dataclass
from pathlib import Path

from plugmaster.config.runtime import ConfigAccessError, ConfigProxy
from plugmaster.config.schema import (
    REPOSITORY_SCHEMA,
    ConfigField,
    SchemaError,
    ValidationError,
    generate_default_config,
)
from plugmaster.config.toml_handler import TOMLError, generate_toml_from_schema

SECTION = "repository"

DEFAULT_CONFIG_FILE = Path("config/plugmaster.toml")


class ConfigError(Exception):
    """Base exception for config API errors."""

    pass


@dataclass(frozen=True)
class ThirdRepo:
    """An additional plugin repository."""

    url: str
    enabled: bool = True


class RepositorySettings(ConfigProxy):
    """
    The [repository] section.

    Serves as the configuration collaborator of the update core: it supplies
    the ordered repository list and the testing-channel flag.
    """

    def __init__(self, config_file: Path = DEFAULT_CONFIG_FILE):
        super().__init__(SECTION, REPOSITORY_SCHEMA, config_file)

    def third_party_repos(self) -> list[ThirdRepo]:
        return [
            ThirdRepo(url=entry["url"], enabled=entry.get("enabled", True))
            for entry in self.third_repos
        ]

    def repo_urls(self) -> list[str]:
        """Primary repository followed by every enabled third-party repository."""
        urls = [self.primary_repo]
        urls.extend(repo.url for repo in self.third_party_repos() if repo.enabled)
        return urls

    def add_repo(self, url: str, enabled: bool = True) -> None:
        """Append a third-party repository and flush."""
        self.third_repos = [*self.third_repos, {"url": url, "enabled": enabled}]


def load(config_file: Path | None = None) -> RepositorySettings:
    """
    Load repository settings.

    Args:
        config_file: TOML file (default: config/plugmaster.toml); a missing
            file yields the defaults

    Returns:
        RepositorySettings instance

    Raises:
        ConfigError: If the file cannot be parsed or fails validation
    """
    try:
        return RepositorySettings(config_file or DEFAULT_CONFIG_FILE)
    except (ConfigAccessError, ValidationError) as e:
        raise ConfigError(str(e)) from e


def default_config_text() -> str:
    """Commented TOML document holding the default settings."""
    return generate_toml_from_schema(
        SECTION, REPOSITORY_SCHEMA, generate_default_config(REPOSITORY_SCHEMA)
    )


__all__ = [
    "ConfigError",
    "ConfigField",
    "DEFAULT_CONFIG_FILE",
    "RepositorySettings",
    "SchemaError",
    "TOMLError",
    "ThirdRepo",
    "ValidationError",
    "default_config_text",
    "load",
]
