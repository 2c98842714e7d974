"""
pm upgrade command (-U).

Update every installed plugin that has a newer version in the catalog.
"""

from typing import Any

from pm.commands.common import fetch_catalog, open_repository


def upgrade_command(args: Any) -> int:
    """
    Execute upgrade command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if every update succeeded)
    """
    repo = open_repository(args)
    try:
        fetch_catalog(repo)

        success, records = repo.update_plugins(
            dry_run=args.dry_run, max_workers=max(1, args.jobs)
        )

        if not records:
            print("All plugins are up to date")
        elif args.dry_run:
            print("Updates available:")
            for record in records:
                print(f"    {record.name} -> v{record.version}")
        else:
            repo.print_updated_plugins(records, "Plugins updated:")

        return 0 if success else 1
    finally:
        repo.close()
