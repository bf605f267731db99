"""CLI command for running one sync batch per documentation source"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from docsync.config import config
from docsync.models.sync import DocumentStatus, SyncBatchResult
from docsync.services.doc_sync import SyncError
from docsync.services.pipeline import Pipeline
from docsync.utils.sources_loader import load_sources_config

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI (stdout for K8s)"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sync the next batch of documentation into the index"
    )
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help=(
            f"Process only the first {config.test_mode_documents} documents "
            "without advancing the cursor"
        ),
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help=f"Documents per source (default: {config.sync_batch_size})",
    )
    parser.add_argument(
        "--reset", action="store_true", help="Rewind the sync cursor to the first document"
    )
    parser.add_argument("--source", default=None, help="Only sync the source with this name")
    parser.add_argument(
        "--sources-config",
        default=config.sources_config_path,
        help="Path to sources.yaml",
    )
    parser.add_argument("--db-path", default=None, help=f"Database (default: {config.db_path})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def print_summary(results: list[SyncBatchResult]) -> None:
    """Print a per-source summary of a sync run"""
    print("=" * 80)
    print("Sync Summary")
    print("=" * 80)
    for result in results:
        marker = "✓" if result.success else "✗"
        print(f"{marker} {result.source_key}: {result.message}")
        if not result.success:
            continue
        print(
            f"    window: {result.batch_start}..{result.batch_end - 1}  "
            f"chunks: {result.total_chunks}  progress: {result.percentage:.1f}%"
        )
        if result.next_batch_start is not None:
            print(f"    next batch starts at {result.next_batch_start}")
        for document in result.documents:
            if document.status == DocumentStatus.FAILED:
                print(f"    ✗ {document.identifier}: {document.error}")
    print("=" * 80)


async def run(args: argparse.Namespace) -> int:
    """
    Execute one sync batch

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    sources_config = load_sources_config(args.sources_config)
    pipeline = await Pipeline.create(sources_config, args.db_path)

    try:
        results = await pipeline.sync(
            source=args.source,
            test_mode=args.test_mode,
            batch_size=args.batch_size,
            reset_progress=args.reset,
        )
    finally:
        await pipeline.close()

    print_summary(results)
    return 0 if all(result.success for result in results) else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    # Load .env file first (won't override existing env vars)
    if Path(".env").exists():
        load_dotenv()

    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        return asyncio.run(run(args))
    except SyncError as e:
        logger.error(f"✗ {e}")
        return 1
    except KeyError as e:
        logger.error(f"✗ Unknown source: {e}")
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"✗ Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
