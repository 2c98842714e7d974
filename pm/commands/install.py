"""
pm sync command (-S).

Refresh and search the catalog, install plugins from it, or clean up.
"""

import sys
from typing import Any

from plugmaster.app import PluginRepository
from plugmaster.repository.channel import Channel
from pm.commands.common import PMError, fetch_catalog, open_repository


def sync_command(args: Any) -> int:
    """
    Execute sync command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    repo = open_repository(args)
    try:
        if args.clean:
            return clean(repo, args)

        if args.search:
            return search(repo, args)

        if not args.targets:
            if args.refresh:
                snapshot = fetch_catalog(repo)
                print(f"Catalog: {len(snapshot.plugins)} plugins")
                return 0
            print("Error: No targets specified", file=sys.stderr)
            print("Usage: pm -S <plugin>...", file=sys.stderr)
            return 1

        return install(repo, args)
    finally:
        repo.close()


def search(repo: PluginRepository, args: Any) -> int:
    snapshot = fetch_catalog(repo)
    query = " ".join(args.targets)

    for definition in snapshot.search(query):
        testing = ""
        if definition.testing_assembly_version:
            testing = f" (testing {definition.testing_assembly_version})"
        print(
            f"{definition.internal_name} {definition.assembly_version}{testing}"
            f" [repo {definition.repo_number}]"
        )
        if definition.description:
            print(f"    {definition.description}")

    return 0


def clean(repo: PluginRepository, args: Any) -> int:
    removed = repo.cleanup_plugins()
    if args.verbose:
        for path in removed:
            print(f"removed {path}")
    print(f"Cleaned up {len(removed)} director{'y' if len(removed) == 1 else 'ies'}")
    return 0


def install(repo: PluginRepository, args: Any) -> int:
    snapshot = fetch_catalog(repo)
    channel = Channel.TESTING if args.testing else Channel.STABLE
    if channel is Channel.TESTING and not repo.settings.allow_testing:
        raise PMError("Testing builds are disabled (set allow_testing = true)")

    success_count = 0
    fail_count = 0

    for target in args.targets:
        definition = snapshot.find(target)
        if definition is None:
            print(f"Error: target not found: {target}", file=sys.stderr)
            fail_count += 1
            continue

        if definition.api_level != repo.settings.api_level:
            print(
                f"Error: {target} targets API level {definition.api_level}, "
                f"host is {repo.settings.api_level}",
                file=sys.stderr,
            )
            fail_count += 1
            continue

        version = definition.version_for(channel)
        if repo.install_plugin(definition, channel=channel):
            print(f"Installed {definition.name} v{version}")
            success_count += 1
        else:
            print(f"Failed to install {target}", file=sys.stderr)
            fail_count += 1

    if args.verbose:
        print(f"\nInstalled: {success_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1
