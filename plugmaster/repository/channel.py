"""Release channels."""

from enum import Enum


class Channel(Enum):
    """Release track a plugin version is installed from."""

    STABLE = "stable"
    TESTING = "testing"
