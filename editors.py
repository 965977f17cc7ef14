#!/usr/bin/env python3
"""
Editor Catalog - Release discovery and install-state queries.

Resolves the catalog of installable editor versions from the release API,
the Hub's local manifest and a persisted cache, then reconciles it with the
editors installed on this machine.

Usage:
    editors.py available --lts          # List LTS releases
    editors.py available --latest       # Newest release per stream
    editors.py streams                  # List release streams
    editors.py installed 2022.3.60f1    # Is a version installed?
    editors.py changeset 2022.3.60f1    # Changeset for a version
    editors.py missing 2022.3.60f1 ios android
    editors.py request 2022.3.60f1 ios  # Install request as JSON
    editors.py cache clear              # Delete the release cache
"""

import argparse
import json
import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import modules
from editor_catalog.collectors import CollectionError
from editor_catalog.config import load_config
from editor_catalog.installation import RegistryError
from editor_catalog.logging_config import setup_logging
from editor_catalog.merge import filter_releases, latest_per_stream
from editor_catalog.release_cache import CacheCorruptError, ReleaseCache
from editor_catalog.render import (
    print_summary,
    render_releases_json,
    render_releases_table,
    render_releases_tsv,
    render_streams_json,
    render_streams_table,
)
from editor_catalog.resolver import CatalogResolver


def build_resolver(args: argparse.Namespace) -> CatalogResolver:
    config = load_config(args.config, verbose=args.verbose)
    return CatalogResolver(config, no_cache=True if args.no_cache else None)


def resolve_catalog(resolver: CatalogResolver) -> list:
    """Resolve the catalog, rebuilding the cache once if it is corrupt."""
    try:
        return resolver.resolve()
    except CacheCorruptError as e:
        print(f"# Release cache is corrupt, rebuilding: {e}", file=sys.stderr)
        resolver.cache.clear()
        return resolver.resolve()


def cmd_available(args: argparse.Namespace) -> int:
    """List available releases."""
    resolver = build_resolver(args)
    releases = resolve_catalog(resolver)
    total = len(releases)

    installed = None
    if args.installed:
        installed = True
    elif args.not_installed:
        installed = False

    shown = filter_releases(
        releases,
        lts=args.lts,
        stream=args.stream,
        installed=installed,
        major=args.major,
        prefix=args.version or "",
    )
    if args.latest:
        shown = latest_per_stream(shown)
    if args.count and args.count > 0:
        shown = shown[:args.count]

    if args.format == "json":
        render_releases_json(shown)
    elif args.format == "tsv":
        render_releases_tsv(shown)
    else:
        render_releases_table(shown)
        print_summary(shown, total)
    return 0


def cmd_streams(args: argparse.Namespace) -> int:
    """List release streams."""
    resolver = build_resolver(args)
    try:
        streams = resolver.streams()
    except CacheCorruptError as e:
        print(f"# Release cache is corrupt, ignoring: {e}", file=sys.stderr)
        resolver.cache.clear()
        streams = resolver.streams()

    if args.format == "json":
        render_streams_json(streams)
    else:
        render_streams_table(streams)
    return 0


def cmd_installed(args: argparse.Namespace) -> int:
    """Report whether a version is installed (exit 1 if not)."""
    resolver = build_resolver(args)
    try:
        installed, path = resolver.is_installed(args.version)
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if installed:
        print(path)
        return 0
    print(f"{args.version} is not installed", file=sys.stderr)
    return 1


def cmd_changeset(args: argparse.Namespace) -> int:
    """Print the changeset of a version."""
    resolver = build_resolver(args)

    try:
        installed, path = resolver.is_installed(args.version)
    except RegistryError:
        installed, path = False, ""
    if installed:
        changeset = resolver.inspector.editor_changeset(path)
        if changeset:
            print(changeset)
            return 0

    try:
        print(resolver.changeset_for(args.version))
    except CollectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_missing(args: argparse.Namespace) -> int:
    """Print requested modules that are missing (exit 1 if any)."""
    resolver = build_resolver(args)
    try:
        missing = resolver.missing_modules(args.version, args.modules)
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    for module in missing:
        print(module)
    return 1 if missing else 0


def cmd_request(args: argparse.Namespace) -> int:
    """Print the install request for a version as JSON."""
    resolver = build_resolver(args)
    request = resolver.build_install_request(args.version, args.modules)
    print(json.dumps(request.to_dict(), indent=2))
    return 0


def cmd_cache(args: argparse.Namespace) -> int:
    """Manage the release cache."""
    cache = ReleaseCache()
    if args.cache_command == "clear":
        try:
            cache.clear()
        except OSError as e:
            print(f"Error: failed to clear cache: {e}", file=sys.stderr)
            return 1
        print("Cache cleared successfully")
        return 0
    print(str(cache.path))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Editor Catalog - Release discovery and install-state queries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore the release cache when reading",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a configuration file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write DEBUG logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    available = subparsers.add_parser("available", help="List available releases")
    available.add_argument("version", nargs="?", help="Only versions containing this text")
    available.add_argument("--lts", action="store_true", help="Only LTS releases")
    available.add_argument("--stream", default="", help="Only this stream (LTS, TECH, BETA, SUPPORTED)")
    group = available.add_mutually_exclusive_group()
    group.add_argument("--installed", action="store_true", help="Only installed releases")
    group.add_argument("--not-installed", action="store_true", help="Only releases not installed")
    available.add_argument("--major", default="", help="Only this major version (e.g., 6000, 2022)")
    available.add_argument("--latest", action="store_true", help="Only the newest release per stream")
    available.add_argument("--count", "-n", type=int, default=0, help="Show at most N releases")
    available.add_argument("--format", choices=("table", "json", "tsv"), default="table")
    available.set_defaults(func=cmd_available)

    streams = subparsers.add_parser("streams", help="List release streams")
    streams.add_argument("--format", choices=("table", "json"), default="table")
    streams.set_defaults(func=cmd_streams)

    installed = subparsers.add_parser("installed", help="Check whether a version is installed")
    installed.add_argument("version")
    installed.set_defaults(func=cmd_installed)

    changeset = subparsers.add_parser("changeset", help="Print the changeset of a version")
    changeset.add_argument("version")
    changeset.set_defaults(func=cmd_changeset)

    missing = subparsers.add_parser("missing", help="List requested modules that are not installed")
    missing.add_argument("version")
    missing.add_argument("modules", nargs="+")
    missing.set_defaults(func=cmd_missing)

    request = subparsers.add_parser("request", help="Print the install request for a version")
    request.add_argument("version")
    request.add_argument("modules", nargs="*")
    request.set_defaults(func=cmd_request)

    cache = subparsers.add_parser("cache", help="Manage the release cache")
    cache.add_argument("cache_command", choices=("clear", "path"))
    cache.set_defaults(func=cmd_cache)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the editor catalog."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(level="WARNING", log_file=args.log_file, verbose=args.verbose)

    try:
        return args.func(args)
    except ValueError as e:
        # Invalid configuration
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
