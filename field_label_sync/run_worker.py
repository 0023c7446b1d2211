"""
Label sync worker runner.

Usage:
    python -m field_label_sync.run_worker
"""

import signal
import sys

from field_label_sync.core.logging_config import setup_logging, get_logger
from field_label_sync.etl.workers.label_sync_worker import LabelSyncWorker
from field_label_sync.etl.workers.queue_manager import QueueManager

logger = get_logger(__name__)


def main() -> int:
    setup_logging()

    queue_manager = QueueManager()
    try:
        queue_manager.setup_queues()
    except Exception as e:
        logger.error(f"❌ Could not set up queues: {e}")
        return 1

    worker = LabelSyncWorker(queue_manager=queue_manager)

    def signal_handler(signum, frame):
        print(f"\n[INFO] Received signal {signum}, shutting down gracefully...")
        worker.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    worker.start_consuming()
    return 0


if __name__ == "__main__":
    sys.exit(main())
