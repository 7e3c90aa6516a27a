#!/usr/bin/env python3
"""
vibechecc - sitemap and robots.txt exporter.

Command-line entry point for the sitemap export:
  - Collect public vibes, user profiles and tags from storage
  - Render sitemap.xml (split with an index when needed) and robots.txt
  - Write the files to an output directory
  - Print execution summary

Usage:
    python main.py                          # Export to ./public
    python main.py --dry-run                # Render only, no writes
    python main.py --output-dir dist        # Write somewhere else
    python main.py --base-url https://vibechecc.io

Examples:
    # Check what would be exported
    python main.py --dry-run --verbose

    # Production export
    python main.py --base-url https://vibechecc.io --output-dir public
"""

import argparse
import sys

from vibechecc import __version__
from vibechecc.pipeline import PipelineConfig, PipelineResult, SitemapPipeline
from vibechecc.config import (
    SITE_URL,
    SITEMAP_MAX_ENTRIES,
    print_config_summary,
    validate_config,
)


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="vibechecc-sitemap",
        description="Export sitemap(s) and robots.txt for vibechecc.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              Export to ./public
  %(prog)s --dry-run                    Render only, skip writing files
  %(prog)s --output-dir dist            Write files to ./dist
  %(prog)s --base-url https://x.io      Use another site URL in entries
  %(prog)s --max-entries 1000           Split sitemaps every 1000 URLs
  %(prog)s -v --dry-run                 Verbose dry-run
        """,
    )

    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Collect and render but skip writing files",
    )

    parser.add_argument(
        "--output-dir", "-o",
        default="public",
        metavar="DIR",
        help="Directory for sitemap.xml and robots.txt (default: public)",
    )

    parser.add_argument(
        "--base-url", "-b",
        default=None,
        metavar="URL",
        help=f"Site URL used in sitemap entries (default: {SITE_URL})",
    )

    parser.add_argument(
        "--max-entries",
        type=int,
        default=None,
        metavar="N",
        help=f"Maximum URLs per sitemap file (default: {SITEMAP_MAX_ENTRIES})",
    )

    parser.add_argument(
        "--skip-robots",
        action="store_true",
        help="Do not write robots.txt",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed progress and debug info",
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only show errors and final summary",
    )

    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Show current configuration and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def show_config() -> int:
    """Display current configuration. Returns 1 when it has problems."""
    print("=" * 60)
    print("vibechecc Configuration")
    print("=" * 60)
    print_config_summary()

    errors = validate_config()
    if errors:
        print("\nConfiguration warnings:")
        for error in errors:
            print(f"  ⚠️  {error}")
    else:
        print("\n✓ Configuration valid")
    print("=" * 60)
    return 1 if errors else 0


def print_result_summary(result: PipelineResult) -> None:
    print(result.to_summary())


def main(argv: list = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 = success, 1 = error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.check_config:
        return show_config()

    if args.max_entries is not None and not (1 <= args.max_entries <= 50000):
        parser.error("--max-entries must be between 1 and 50000")

    config = PipelineConfig.from_args(args)

    if not args.quiet:
        print("=" * 60)
        print("vibechecc Sitemap Export")
        print("=" * 60)

        if args.dry_run:
            print("Mode: DRY RUN (no files written)")

        if args.verbose:
            print("\nConfiguration:")
            print_config_summary()
            print()

        print("Settings:")
        print(f"  Output dir: {config.output_dir}")
        print(f"  Base URL: {config.base_url}")
        print(f"  Max entries: {config.max_entries}")
        print(f"  Dry run: {config.dry_run}")
        print()

    try:
        result = SitemapPipeline(config).run()
        print_result_summary(result)

        if result.errors:
            return 1
        if result.collections_failed > 0 and result.collections_succeeded == 0:
            return 1
        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        print(f"\n❌ Export error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
