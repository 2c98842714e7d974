"""
Dynamic Payload Loader.

This module imports the payload module of an installed plugin version.

Key features:
- importlib integration for dynamic loading
- Module caching keyed by internal name
- Reload support after an update replaced the payload
"""

import importlib.util
import sys
from pathlib import Path
from types import ModuleType


class LoaderError(Exception):
    """
    Raised when a payload cannot be imported.

    Attributes:
        errors: Individual failures, when the payload raised several at once
    """

    def __init__(self, message: str, errors: list[BaseException] | None = None):
        super().__init__(message)
        self.errors = errors or []


# internal_name -> module
_module_cache: dict[str, ModuleType] = {}


def _module_name(internal_name: str) -> str:
    return f"plugmaster_plugin_{internal_name}"


def load_plugin_module(payload: Path, internal_name: str) -> ModuleType:
    """
    Import a plugin payload.

    Args:
        payload: Path to the payload file (<version_dir>/<internal_name>.py)
        internal_name: Plugin internal name

    Returns:
        Loaded module (cached after the first load)

    Raises:
        LoaderError: If the payload is missing or raises on import
    """
    if not payload.exists():
        raise LoaderError(f"Payload not found: {payload}")

    if internal_name in _module_cache:
        return _module_cache[internal_name]

    module_name = _module_name(internal_name)
    try:
        spec = importlib.util.spec_from_file_location(module_name, payload)

        if spec is None or spec.loader is None:
            raise LoaderError(f"Failed to create module spec for {payload}")

        module = importlib.util.module_from_spec(spec)

        # Register before execution so the payload can import itself
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        _module_cache[internal_name] = module
        return module

    except LoaderError:
        sys.modules.pop(module_name, None)
        raise
    except Exception as e:
        sys.modules.pop(module_name, None)
        errors = list(e.exceptions) if isinstance(e, ExceptionGroup) else [e]
        raise LoaderError(f"Failed to load plugin module {payload}: {e}", errors) from e


def reload_plugin_module(payload: Path, internal_name: str) -> ModuleType:
    """Drop the cached module and import the payload again."""
    unload_plugin_module(internal_name)
    return load_plugin_module(payload, internal_name)


def unload_plugin_module(internal_name: str) -> None:
    """Remove a plugin module from the cache and sys.modules."""
    _module_cache.pop(internal_name, None)
    sys.modules.pop(_module_name(internal_name), None)


def is_module_cached(internal_name: str) -> bool:
    return internal_name in _module_cache


def clear_cache() -> None:
    """Unload all cached plugin modules."""
    for internal_name in list(_module_cache.keys()):
        unload_plugin_module(internal_name)
