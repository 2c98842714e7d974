"""
Plugin Definition Codec.

This module provides parsing and serialization of plugin definitions, both
as published in repository manifests and as stored locally in each
installed version directory.

Key features:
- Publisher wire keys (InternalName, AssemblyVersion, ...) mapped to fields
- Structural validation of required fields
- Unknown keys preserved for round-tripping to disk
- Channel-aware version and download link selection
"""

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from plugmaster.repository.channel import Channel


class DefinitionError(Exception):
    """Base exception for definition-related errors."""

    pass


class ValidationError(DefinitionError):
    """Raised when definition validation fails."""

    pass


# Wire key -> attribute name
_WIRE_KEYS = {
    "InternalName": "internal_name",
    "Name": "name",
    "Author": "author",
    "Description": "description",
    "AssemblyVersion": "assembly_version",
    "TestingAssemblyVersion": "testing_assembly_version",
    "IsTestingExclusive": "is_testing_exclusive",
    "DalamudApiLevel": "api_level",
    "DownloadLinkInstall": "download_link_install",
    "DownloadLinkUpdate": "download_link_update",
    "DownloadLinkTesting": "download_link_testing",
}

_API_LEVEL_ALIASES = ("DalamudApiLevel", "ApiLevel")


@dataclass(frozen=True)
class PluginDefinition:
    """
    A plugin as published by a repository.

    Attributes:
        internal_name: Stable identifier, used to match installed plugins
        name: Display name
        assembly_version: Stable release version
        testing_assembly_version: Testing release version (optional)
        is_testing_exclusive: Only published on the testing channel
        api_level: Host API level the build targets
        download_link_install: Archive URL for fresh installs
        download_link_update: Archive URL for updates
        download_link_testing: Archive URL for the testing build
        author: Plugin author
        description: Plugin description
        repo_number: Index of the source repository (assigned on fetch)
        extra: Unrecognized keys, kept for round-tripping
    """

    internal_name: str
    name: str
    assembly_version: str
    testing_assembly_version: str | None = None
    is_testing_exclusive: bool = False
    api_level: int = 0
    download_link_install: str = ""
    download_link_update: str = ""
    download_link_testing: str = ""
    author: str = ""
    description: str = ""
    repo_number: int = 0
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def version_for(self, channel: Channel) -> str:
        """
        Version string installed for a channel.

        Testing-exclusive plugins without a testing version fall back to the
        stable version string.
        """
        if channel is Channel.TESTING and self.testing_assembly_version:
            return self.testing_assembly_version
        return self.assembly_version

    def download_link(self, testing: bool, is_update: bool) -> str:
        """
        Select the archive URL.

        Args:
            testing: Download the testing build
            is_update: This install replaces an older version

        Returns:
            URL, falling back to the install link when the preferred one is empty
        """
        if testing and self.download_link_testing:
            return self.download_link_testing
        if is_update and self.download_link_update:
            return self.download_link_update
        return self.download_link_install

    def with_repo_number(self, repo_number: int) -> "PluginDefinition":
        """Return a copy tagged with its source repository index."""
        return replace(self, repo_number=repo_number)


def parse_definition(data: dict[str, Any]) -> PluginDefinition:
    """
    Build a PluginDefinition from decoded JSON.

    Args:
        data: Decoded definition object

    Returns:
        PluginDefinition object

    Raises:
        ValidationError: If the definition is invalid
    """
    validate_definition_structure(data)

    api_level = 0
    for key in _API_LEVEL_ALIASES:
        if key in data:
            api_level = data[key]
            break

    testing_version = data.get("TestingAssemblyVersion")
    if testing_version == "":
        testing_version = None

    known = set(_WIRE_KEYS) | set(_API_LEVEL_ALIASES) | {"RepoNumber"}

    return PluginDefinition(
        internal_name=data["InternalName"],
        name=data.get("Name") or data["InternalName"],
        assembly_version=data["AssemblyVersion"],
        testing_assembly_version=testing_version,
        is_testing_exclusive=bool(data.get("IsTestingExclusive", False)),
        api_level=int(api_level),
        download_link_install=data.get("DownloadLinkInstall") or "",
        download_link_update=data.get("DownloadLinkUpdate") or "",
        download_link_testing=data.get("DownloadLinkTesting") or "",
        author=data.get("Author") or "",
        description=data.get("Description") or "",
        extra={k: v for k, v in data.items() if k not in known},
    )


def parse_definition_list(payload: Any) -> list[PluginDefinition]:
    """
    Parse a repository manifest.

    Args:
        payload: Decoded manifest (must be a list of definition objects)

    Returns:
        List of PluginDefinition objects, in manifest order

    Raises:
        ValidationError: If the manifest is not a list or any entry is invalid
    """
    if not isinstance(payload, list):
        raise ValidationError(
            f"Manifest must be a list of plugin definitions, got {type(payload).__name__}"
        )

    return [parse_definition(item) for item in payload]


def definition_to_dict(definition: PluginDefinition) -> dict[str, Any]:
    """
    Serialize a PluginDefinition to its wire form.

    Args:
        definition: Definition to serialize

    Returns:
        JSON-compatible dictionary
    """
    data: dict[str, Any] = dict(definition.extra)
    for key, attr in _WIRE_KEYS.items():
        data[key] = getattr(definition, attr)
    if data["TestingAssemblyVersion"] is None:
        del data["TestingAssemblyVersion"]
    data["RepoNumber"] = definition.repo_number
    return data


def load_definition(path: Path) -> PluginDefinition:
    """
    Read a definition file.

    Args:
        path: Path to the JSON file

    Returns:
        PluginDefinition object

    Raises:
        DefinitionError: If file cannot be read or parsed
        ValidationError: If the definition is invalid
    """
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise DefinitionError(f"Definition file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise DefinitionError(f"Failed to parse definition JSON: {e}") from e
    except OSError as e:
        raise DefinitionError(f"Failed to read definition file: {e}") from e

    definition = parse_definition(data)

    repo_number = data.get("RepoNumber")
    if isinstance(repo_number, int) and not isinstance(repo_number, bool):
        definition = definition.with_repo_number(repo_number)

    return definition


def save_definition(definition: PluginDefinition, path: Path) -> None:
    """
    Write a definition file.

    Args:
        definition: Definition to write
        path: Destination JSON file

    Raises:
        DefinitionError: If file cannot be written
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(definition_to_dict(definition), f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise DefinitionError(f"Failed to write definition file {path}: {e}") from e


def validate_definition_structure(data: Any) -> None:
    """
    Validate definition structure and required fields.

    Args:
        data: Decoded definition object

    Raises:
        ValidationError: If definition structure is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(
            f"Plugin definition must be an object, got {type(data).__name__}"
        )

    for required in ("InternalName", "AssemblyVersion"):
        if required not in data:
            raise ValidationError(f"Missing required field: {required}")

    internal_name = data["InternalName"]
    if not isinstance(internal_name, str) or not internal_name.strip():
        raise ValidationError(f"Invalid internal name: {internal_name!r}")
    if "/" in internal_name or "\\" in internal_name or internal_name in (".", ".."):
        raise ValidationError(
            f"Invalid internal name: {internal_name!r}. Must not contain path separators"
        )

    if not isinstance(data["AssemblyVersion"], str):
        raise ValidationError("'AssemblyVersion' field must be a string")

    testing = data.get("TestingAssemblyVersion")
    if testing is not None and not isinstance(testing, str):
        raise ValidationError("'TestingAssemblyVersion' field must be a string")

    for key in _API_LEVEL_ALIASES:
        if key in data:
            level = data[key]
            if isinstance(level, bool) or not isinstance(level, int):
                raise ValidationError(f"'{key}' field must be an integer")

    for key in ("Name", "Author", "Description", "DownloadLinkInstall",
                "DownloadLinkUpdate", "DownloadLinkTesting"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"'{key}' field must be a string")

    if "IsTestingExclusive" in data and not isinstance(data["IsTestingExclusive"], bool):
        raise ValidationError("'IsTestingExclusive' field must be a boolean")
