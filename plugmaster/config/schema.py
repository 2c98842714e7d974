"""
Configuration Schema.

This module provides declarative field definitions and the schema of the
[repository] settings section.

Key features:
- Type-safe field definitions with constraints
- Per-item validation for list fields
- Validation of partial sections (missing keys take defaults)
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_PRIMARY_REPO = "https://plugins.plugmaster.dev/pluginmaster.json"


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for strings/lists)
        max: Maximum value (for numbers) or maximum length (for strings/lists)
        item_validator: Called with each element of a list value
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    item_validator: Callable[[Any], None] | None = None

    def __post_init__(self):
        if not self._is_type(self.default):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
            str,
            list,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str, list. Got {self.type_.__name__}"
            )

        if self.item_validator is not None and self.type_ is not list:
            raise SchemaError("item_validator only supported for list fields")

    def _is_type(self, value: Any) -> bool:
        # bool is an int subclass; keep the two apart
        if self.type_ is not bool and isinstance(value, bool):
            return False
        if self.type_ is float and isinstance(value, int):
            return True
        return isinstance(value, self.type_)

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Raises:
            ValidationError: If validation fails
        """
        if not self._is_type(value):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.type_ in (int, float):
            if self.min is not None and value < self.min:
                raise ValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ValidationError(
                    f"Value {value} is greater than maximum {self.max}"
                )

        if self.type_ in (str, list):
            if self.min is not None and len(value) < self.min:
                raise ValidationError(
                    f"Length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ValidationError(
                    f"Length {len(value)} is greater than maximum {self.max}"
                )

        if self.item_validator is not None:
            for index, item in enumerate(value):
                try:
                    self.item_validator(item)
                except ValidationError as e:
                    raise ValidationError(f"Item {index}: {e}") from e


def validate_repo_entry(entry: Any) -> None:
    """
    Validate one [[repository.third_repos]] table.

    Raises:
        ValidationError: If the entry is not {url: str, enabled: bool}
    """
    if not isinstance(entry, dict):
        raise ValidationError(f"Expected a table, got {type(entry).__name__}")

    url = entry.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("'url' must be a non-empty string")

    if "enabled" in entry and not isinstance(entry["enabled"], bool):
        raise ValidationError("'enabled' must be a boolean")

    unknown = set(entry) - {"url", "enabled"}
    if unknown:
        raise ValidationError(f"Unknown keys: {', '.join(sorted(unknown))}")


REPOSITORY_SCHEMA: dict[str, ConfigField] = {
    "primary_repo": ConfigField(
        str, DEFAULT_PRIMARY_REPO, "Primary plugin manifest URL, always fetched first", min=1
    ),
    "third_repos": ConfigField(
        list,
        [],
        "Additional repositories, fetched in order: {url = \"...\", enabled = true}",
        item_validator=validate_repo_entry,
    ),
    "allow_testing": ConfigField(bool, False, "Install testing builds when available"),
    "plugin_dir": ConfigField(str, "plugins", "Directory holding installed plugins", min=1),
    "api_level": ConfigField(int, 3, "Host API level", min=0),
    "timeout": ConfigField(float, 30.0, "HTTP timeout in seconds", min=1.0),
}


def validate_config(config: dict[str, Any], schema: dict[str, ConfigField]) -> None:
    """
    Validate a configuration section against a schema.

    Missing fields are allowed; they take their defaults.

    Args:
        config: The configuration dictionary to validate
        schema: The schema dictionary (field_name -> ConfigField)

    Raises:
        ValidationError: If validation fails
    """
    for key in config:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    for field_name, value in config.items():
        try:
            schema[field_name].validate(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{field_name}': {e}") from e


def generate_default_config(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Return a dictionary with the default value of every field."""
    return {field_name: field.default for field_name, field in schema.items()}
