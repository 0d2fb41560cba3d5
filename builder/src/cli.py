"""Command-line interface for the publish tool.

Usage::

    python -m builder.src restore [SELECTOR]
    python -m builder.src publish [SELECTOR] -c Release -o out [--no-restore]
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from builder.src.config import Configuration, get_build_settings
from builder.src.errors import AmbiguousTargetError, BuildError
from builder.src.publisher import Publisher
from shared.logging.structured_logger import configure_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = get_build_settings()
    parser = argparse.ArgumentParser(
        prog="catalog-build",
        description="Restore, compile, and publish a project into a self-contained output directory"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "selector",
            nargs="?",
            default=".",
            help="Manifest path, project directory, or glob pattern (default: current directory)"
        )
        p.add_argument("--cache-dir", type=Path, default=None, help="Build cache directory")
        p.add_argument(
            "--strict",
            action="store_true",
            default=settings.strict_restore,
            help="Fail when a dependency is missing or out of range"
        )

    restore_p = sub.add_parser("restore", help="Resolve dependencies into the build cache")
    add_common(restore_p)

    publish_p = sub.add_parser("publish", help="Compile and assemble the output directory")
    add_common(publish_p)
    publish_p.add_argument(
        "-c", "--configuration",
        choices=[c.value for c in Configuration],
        default=settings.default_configuration.value,
        help="Build configuration (default: %(default)s)"
    )
    publish_p.add_argument("-o", "--output", type=Path, required=True, help="Output directory")
    publish_p.add_argument(
        "--no-restore",
        action="store_true",
        help="Reuse the dependency record from a previous restore"
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns the process exit code."""
    settings = get_build_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        service_name="catalog-build"
    )
    args = parse_args(argv)
    publisher = Publisher(cache_dir=args.cache_dir, strict_restore=args.strict)

    try:
        if args.command == "restore":
            record = publisher.restore(args.selector)
            print(f"Restored {len(record.dependencies)} dependencies for {record.project}")
        else:
            result = publisher.publish(
                args.selector,
                output=args.output,
                configuration=Configuration(args.configuration),
                no_restore=args.no_restore,
            )
            print(f"{result.manifest.parent.name} -> {result.output_dir}")
    except AmbiguousTargetError as e:
        print(f"error {e.error_code}: {e}", file=sys.stderr)
        for candidate in e.candidates:
            print(f"  candidate: {candidate}", file=sys.stderr)
        return 1
    except BuildError as e:
        print(f"error {e.error_code}: {e}", file=sys.stderr)
        return 1

    return 0
