#!/usr/bin/env python3
"""
Wikispaces Importer

A tool for migrating a Wikispaces space (pages, history, files, tags and
discussions) into a MediaWiki installation.

Usage:
    # Test connections
    python import_wikispaces.py test-connection

    # List pages of the space
    python import_wikispaces.py list-pages

    # Import every page (latest versions only)
    python import_wikispaces.py import

    # Import one page with its full history, overwriting older content
    python import_wikispaces.py import --page "Home" --with-history --overwrite
"""

import argparse
import logging
import sys
import time

import requests

from wikispaces_migration.api import WikispacesApi, WikispacesAPIError
from wikispaces_migration.cache import RemoteRecordCache
from wikispaces_migration.coordinator import BatchCoordinator
from wikispaces_migration.discussion import DiscussionImporter
from wikispaces_migration.downloader import Downloader
from wikispaces_migration.importer import AuthorResolver, RevisionImporter
from wikispaces_migration.markup import MarkupTranslator
from wikispaces_migration.outcome import ImportOutcome
from wikispaces_migration.policy import ConflictPolicy, WriteMode
from wikispaces_migration.target import MediaWikiTarget, TargetError
from wikispaces_migration.utils import (
    load_app_config,
    setup_logging,
    validate_config,
    AppConfig,
)


logger = logging.getLogger(__name__)


def create_api(config: AppConfig) -> WikispacesApi:
    return WikispacesApi(
        user=config.source.user,
        password=config.source.password,
        space_name=config.source.space,
        timeout=config.timeout,
        api_delay=config.api_delay,
    )


def create_target(config: AppConfig) -> MediaWikiTarget:
    return MediaWikiTarget(
        url=config.target.url,
        username=config.target.user,
        password=config.target.password,
        interwiki_prefix=config.interwiki_prefix,
        timeout=config.timeout,
    )


def resolve_write_mode(args: argparse.Namespace, config: AppConfig) -> WriteMode:
    """--force wins over --overwrite, which wins over the config file."""
    if args.force:
        return WriteMode.ALWAYS
    if args.overwrite:
        return WriteMode.IF_OLDER
    return config.overwrite


def create_coordinator(
    args: argparse.Namespace,
    config: AppConfig,
    api: WikispacesApi,
    target: MediaWikiTarget,
) -> BatchCoordinator:
    """Wire the importers together for one run."""
    downloader = Downloader(
        user=config.source.user,
        password=config.source.password,
        space_name=config.source.space,
        timeout=config.timeout,
    )
    cache = RemoteRecordCache(api, downloader, config.cache_dir)
    translator = MarkupTranslator()
    policy = ConflictPolicy(
        mode=resolve_write_mode(args, config),
        use_timestamp=args.use_timestamp or config.use_timestamp,
    )
    authors = AuthorResolver(target, config.importer_username)
    revisions = RevisionImporter(
        store=target,
        cache=cache,
        translator=translator,
        policy=policy,
        authors=authors,
        summary=config.summary,
        footer_summary=config.footer_summary,
    )
    discussions = DiscussionImporter(
        api=api,
        store=target,
        translator=translator,
        authors=authors,
        talk_summary=config.talk_summary,
    )
    return BatchCoordinator(
        api=api,
        cache=cache,
        revisions=revisions,
        discussions=discussions,
        authors=authors,
        with_tags=config.with_tags and not args.no_tags,
        with_comments=config.with_comments and not args.no_comments,
    )


def print_summary(outcome: ImportOutcome, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("Import Summary:")
    print(f"  Succeeded:  {outcome.success_count}")
    print(f"  Skipped:    {outcome.skip_count}")
    print(f"  Failed:     {outcome.fail_count}")
    print(f"  Duration:   {elapsed:.1f}s")
    for code, message in outcome.failures():
        print(f"    ✗ {code.key}: {message}")
    print("=" * 60)


def cmd_test_connection(args: argparse.Namespace, config: AppConfig) -> int:
    """Test connections to Wikispaces and MediaWiki."""
    errors = []

    print(f"Testing Wikispaces connection: space '{config.source.space}'")
    try:
        create_api(config).test_connection()
        print("  ✓ Wikispaces connection successful")
    except WikispacesAPIError as e:
        print(f"  ✗ Wikispaces connection failed: {e}")
        errors.append("wikispaces")

    print(f"Testing MediaWiki connection: {config.target.url}")
    try:
        create_target(config).test_connection()
        print("  ✓ MediaWiki connection successful")
    except (TargetError, requests.RequestException) as e:
        print(f"  ✗ MediaWiki connection failed: {e}")
        errors.append("mediawiki")

    if errors:
        print(f"\nConnection test failed for: {', '.join(errors)}")
        return 1

    print("\nAll connection tests passed!")
    return 0


def cmd_list_pages(args: argparse.Namespace, config: AppConfig) -> int:
    """List pages of the Wikispaces space."""
    print(f"Listing pages in space '{config.source.space}'")
    print()

    try:
        pages = create_api(config).list_pages().unwrap()
    except WikispacesAPIError as e:
        print(f"Error: {e}")
        return 1

    if not pages:
        print("No pages found.")
        return 0

    print(f"{'ID':<12} {'Versions':<10} {'Name':<50}")
    print("-" * 72)
    for page in pages:
        name = page.name[:47] + "..." if len(page.name) > 50 else page.name
        versions = page.versions if page.versions is not None else "?"
        print(f"{page.id:<12} {versions!s:<10} {name:<50}")

    print()
    print(f"Total: {len(pages)} pages")
    return 0


def cmd_import(args: argparse.Namespace, config: AppConfig) -> int:
    """Import pages (and optionally users) into MediaWiki."""
    errors = validate_config(config)
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        return 1

    with_history = args.with_history or config.with_history
    api = create_api(config)
    target = create_target(config)
    coordinator = create_coordinator(args, config, api, target)

    start = time.time()
    outcome = ImportOutcome()
    try:
        if args.with_users:
            print("Importing users...")
            outcome.merge(coordinator.import_users())
        if args.page:
            print(f"Importing page '{args.page}'...")
            outcome.merge(coordinator.import_page(args.page, with_history))
        else:
            print(f"Importing all pages of space '{config.source.space}'...")
            outcome.merge(coordinator.import_all_pages(with_history))
    except WikispacesAPIError as e:
        logger.error(f"Unrecoverable remote fault: {e.fault.signature_with_values()}")
        print(f"Aborted: {e}", file=sys.stderr)
        return 2

    print_summary(outcome, time.time() - start)
    print(f"Done! {outcome.success_count} succeeded, {outcome.skip_count} skipped.")
    if not outcome.ok:
        print(f"Import failed with {outcome.fail_count} failed items.", file=sys.stderr)
        return 1
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Wikispaces Importer - Migrate a Wikispaces space into MediaWiki",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Test connections
  python import_wikispaces.py test-connection

  # Import everything, users first
  python import_wikispaces.py import --with-users --with-history

  # Re-run, updating pages whose content changed
  python import_wikispaces.py import --overwrite
"""
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)"
    )
    parser.add_argument(
        "--config-file",
        default="config.yaml",
        help="Path to config.yaml file (default: config.yaml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser(
        "test-connection",
        help="Test Wikispaces and MediaWiki connections"
    )
    subparsers.add_parser(
        "list-pages",
        help="List pages of the Wikispaces space"
    )

    import_parser = subparsers.add_parser(
        "import",
        help="Import pages into MediaWiki"
    )
    import_parser.add_argument(
        "--page",
        help="Import only this page (default: all pages)"
    )
    import_parser.add_argument(
        "--with-history",
        action="store_true",
        help="Import every version instead of only the latest"
    )
    import_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Update existing pages when the content changed"
    )
    import_parser.add_argument(
        "--force",
        action="store_true",
        help="Always write, even over newer or identical content"
    )
    import_parser.add_argument(
        "--use-timestamp",
        action="store_true",
        help="Use the Wikispaces edit time as the revision timestamp"
    )
    import_parser.add_argument(
        "--no-tags",
        action="store_true",
        help="Do not turn tags into categories"
    )
    import_parser.add_argument(
        "--no-comments",
        action="store_true",
        help="Do not import discussions"
    )
    import_parser.add_argument(
        "--with-users",
        action="store_true",
        help="Create all Wikispaces users before importing pages"
    )

    args = parser.parse_args()

    setup_logging(verbose=args.verbose)

    try:
        config = load_app_config(args.env_file, args.config_file)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if config.verbose_logging and not args.verbose:
        setup_logging(verbose=True)

    if args.command == "test-connection":
        return cmd_test_connection(args, config)
    elif args.command == "list-pages":
        return cmd_list_pages(args, config)
    elif args.command == "import":
        return cmd_import(args, config)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
