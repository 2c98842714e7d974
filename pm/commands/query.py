"""
pm query command (-Q).

List installed plugins with their versions and state.
"""

from typing import Any

from pm.commands.common import open_repository


def query_command(args: Any) -> int:
    """
    Execute query command.

    With targets, only the named plugins are listed; -v shows every version
    directory instead of the latest only.
    """
    repo = open_repository(args)
    try:
        installed = repo.installed_plugins()
        if args.targets:
            wanted = set(args.targets)
            installed = [p for p in installed if p.internal_name in wanted]

        for plugin in installed:
            if plugin.latest is None:
                print(f"{plugin.internal_name} (no versions)")
                continue

            state = "enabled" if plugin.enabled else "disabled"
            print(f"{plugin.internal_name} {plugin.latest.name} [{state}]")

            if args.verbose:
                for entry in plugin.versions:
                    print(f"    {entry.name} {entry.state.status.value}")

        return 0
    finally:
        repo.close()
