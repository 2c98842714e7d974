"""
pm CLI - plugmaster Package Manager.

Pacman-style interface for managing installed plugins.

Usage:
    pm -Sy                       Refresh the plugin catalog
    pm -Ss <query>               Search the catalog
    pm -S <plugin>...            Install plugin(s) from the catalog
    pm -Sc                       Clean up disabled and outdated versions
    pm -U [--dry-run]            Update all installed plugins
    pm -Q                        List installed plugins
"""

import argparse
import logging
import sys
from pathlib import Path

from pm.commands.common import PMError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="plugmaster Package Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Sync with the catalog")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Update all plugins")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")
    ops.add_argument(
        "--genconfig", action="store_true", help="Write a default config file"
    )

    # Sync sub-flags
    parser.add_argument("-y", "--refresh", action="store_true", help="Refresh (-Sy)")
    parser.add_argument("-s", "--search", action="store_true", help="Search (-Ss)")
    parser.add_argument("-c", "--clean", action="store_true", help="Clean up (-Sc)")

    # Common options
    parser.add_argument(
        "--testing", action="store_true", help="Install from the testing channel"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Report updates without installing"
    )
    parser.add_argument(
        "-j", "--jobs", type=int, default=1, help="Plugins updated concurrently"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config/plugmaster.toml"),
        help="Settings file",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin names or queries")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - plugmaster Package Manager

Usage:
    pm -Sy                       Refresh the plugin catalog
    pm -Ss <query>               Search the catalog
    pm -S <plugin>...            Install plugin(s) from the catalog
    pm -Sc                       Clean up disabled and outdated versions
    pm -U                        Update all installed plugins
    pm -Q                        List installed plugins
    pm --genconfig               Write a default config file

Options:
    --testing                    Install from the testing channel (-S)
    --dry-run                    Report updates without installing (-U)
    -j, --jobs N                 Plugins updated concurrently (-U)
    --config PATH                Settings file (default: config/plugmaster.toml)
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        if args.help or not (
            args.sync or args.upgrade or args.query or args.genconfig
        ):
            print_help()
            return 0

        if args.genconfig:
            from pm.commands.common import genconfig_command

            return genconfig_command(args)

        if args.sync:
            # -S: Sync
            from pm.commands.install import sync_command

            return sync_command(args)

        elif args.upgrade:
            # -U: Update
            from pm.commands.upgrade import upgrade_command

            return upgrade_command(args)

        elif args.query:
            # -Q: Query
            from pm.commands.query import query_command

            return query_command(args)

    except PMError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
