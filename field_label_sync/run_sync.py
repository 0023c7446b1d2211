"""
Run one label refresh right now, without the queue worker.

Usage:
    python -m field_label_sync.run_sync [--mode batch|fanout]

Batch mode rebuilds and overwrites the label set in this process. Fan-out
mode only publishes the per-context units; a running worker processes them.
"""

import argparse
import asyncio
import sys

from field_label_sync.core.cache import get_cache_manager
from field_label_sync.core.config import SYNC_MODES
from field_label_sync.core.exceptions import LabelSyncError
from field_label_sync.core.logging_config import setup_logging, get_logger
from field_label_sync.etl.orchestrator import LabelSyncOrchestrator

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one label refresh now")
    parser.add_argument(
        "--mode",
        choices=SYNC_MODES,
        default=None,
        help="Sync mode (defaults to SYNC_MODE)",
    )
    return parser.parse_args(argv)


async def run_once(mode=None):
    try:
        return await LabelSyncOrchestrator().run(mode)
    finally:
        await get_cache_manager().close()


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    print("⏰ Running label sync now")
    print("=" * 40)

    try:
        result = asyncio.run(run_once(args.mode))
    except LabelSyncError as e:
        logger.error(f"❌ Label sync failed: {e}")
        return 1

    if isinstance(result, list):
        print(f"\n✅ Enqueued {len(result)} contexts")
        return 0

    print(f"\n✅ Saved {result.label_count} labels from {len(result.succeeded)} contexts")
    if result.failed:
        print(f"⚠️ {len(result.failed)} contexts failed:")
        for context_id, error in sorted(result.failed.items()):
            print(f"   - {context_id}: {error}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
