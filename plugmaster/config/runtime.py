"""
Runtime Configuration Access.

This module provides runtime access to a configuration section with
auto-flush on write.

Key features:
- ConfigProxy class with attribute-based access
- Defaults merged under values read from the file
- Auto-flush to TOML file on attribute write
- Thread-safe writes with locking
"""

import copy
import threading
from pathlib import Path
from typing import Any

from plugmaster.config.schema import ConfigField, generate_default_config, validate_config
from plugmaster.config.toml_handler import read_toml, write_toml


class ConfigAccessError(Exception):
    """Raised when a configuration section cannot be loaded or flushed."""

    pass


class ConfigProxy:
    """
    Proxy object for one configuration section.

    Reads return the file value, or the schema default when the key is
    absent. Writes are validated against the schema and immediately
    flushed to the TOML file.

    Example:
        cfg = ConfigProxy('repository', REPOSITORY_SCHEMA, config_file)
        value = cfg.allow_testing   # Read
        cfg.allow_testing = True    # Write (auto-flushes to file)
    """

    def __init__(
        self,
        section: str,
        schema: dict[str, ConfigField],
        config_file: Path,
    ):
        """
        Initialize ConfigProxy.

        Args:
            section: TOML table name
            schema: Schema dictionary (field_name -> ConfigField)
            config_file: Path to the TOML config file
        """
        # Bypass our own __setattr__
        object.__setattr__(self, "_section", section)
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_config_file", config_file)
        object.__setattr__(self, "_lock", threading.Lock())
        object.__setattr__(self, "_cache", {})

        self._load_config()

    def _load_config(self) -> None:
        values = copy.deepcopy(generate_default_config(self._schema))

        try:
            data = read_toml(self._config_file) if self._config_file.exists() else {}
        except Exception as e:
            raise ConfigAccessError(f"Failed to load config: {e}") from e

        section = data.get(self._section, {})
        if not isinstance(section, dict):
            raise ConfigAccessError(f"[{self._section}] must be a table")

        validate_config(section, self._schema)
        values.update(section)
        object.__setattr__(self, "_cache", values)

    def reload(self) -> None:
        """Re-read the section from disk."""
        with self._lock:
            self._load_config()

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._cache)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)

        if name not in self._schema:
            raise AttributeError(
                f"Configuration field '{name}' not found in schema for [{self._section}]"
            )

        return self._cache[name]

    def __setattr__(self, name: str, value: Any) -> None:
        """
        Set configuration value with auto-flush.

        Raises:
            AttributeError: If field doesn't exist in schema
            ValidationError: If value fails validation
        """
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return

        if name not in self._schema:
            raise AttributeError(
                f"Configuration field '{name}' not found in schema for [{self._section}]"
            )

        self._schema[name].validate(value)

        with self._lock:
            self._cache[name] = value
            self._flush()

    def _flush(self) -> None:
        try:
            data = read_toml(self._config_file) if self._config_file.exists() else {}
            data[self._section] = copy.deepcopy(self._cache)
            write_toml(self._config_file, data)
        except Exception as e:
            raise ConfigAccessError(f"Failed to flush config to file: {e}") from e

    def __repr__(self) -> str:
        return f"ConfigProxy({self._section}, {self._cache})"
