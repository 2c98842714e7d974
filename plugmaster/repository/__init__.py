"""
plugmaster Repository - plugin discovery, update and installation.

This package handles:
- Version parsing and ordering
- Installed version bookkeeping (disabled/testing markers)
- Catalog aggregation across repositories
- Update resolution, installation and cleanup
"""

from plugmaster import __version__

USER_AGENT = f"plugmaster/{__version__}"

__all__ = ["USER_AGENT"]
