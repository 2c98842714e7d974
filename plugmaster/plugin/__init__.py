"""
plugmaster Plugin Runtime - loading installed plugins into the host.

This module handles:
- Payload import via importlib
- Loaded plugin tracking
- Disabling loaded plugins
"""

__all__ = []
