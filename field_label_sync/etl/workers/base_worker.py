"""
Base worker class for queue processing.

Provides common functionality for all queue workers including the polling
loop, per-message event loop handling and graceful shutdown.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from field_label_sync.etl.workers.queue_manager import QueueManager
from field_label_sync.core.logging_config import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """
    Base class for all queue workers.

    Provides common functionality:
    - RabbitMQ consumption through QueueManager.consume_one
    - A fresh event loop per message
    - Error handling (failed messages go back to the queue)
    - Graceful shutdown handling
    """

    def __init__(self, queue_names: list, queue_manager: Optional[QueueManager] = None):
        """
        Initialize base worker.

        Args:
            queue_names: Names of the queues to consume from, polled in order
            queue_manager: Queue manager to use (defaults to a new QueueManager)
        """
        self.queue_names = list(queue_names)
        self.queue_manager = queue_manager or QueueManager()
        self.running = False
        self.poll_interval = 0.1

        logger.info(f"Initialized {self.__class__.__name__} for queues: {self.queue_names}")

    @abstractmethod
    async def process_message(self, message: Dict[str, Any]) -> None:
        """
        Process a single message from the queue.

        Raise to have the message redelivered.
        """

    async def release_resources(self) -> None:
        """
        Release loop-bound resources before the message's event loop closes.

        Subclasses holding async clients close them here.
        """

    def start_consuming(self):
        """
        Start consuming messages from the queues.
        Runs indefinitely until stopped.
        """
        logger.info(f"🚀 Starting {self.__class__.__name__} consumer for queues: {self.queue_names}")
        self.running = True

        try:
            while self.running:
                try:
                    if not self.poll_once():
                        time.sleep(self.poll_interval)
                except Exception as e:
                    logger.error(f"❌ Error processing message in {self.__class__.__name__}: {e}")
                    time.sleep(1.0)  # Wait before retrying
        except KeyboardInterrupt:
            logger.info(f"Received shutdown signal for {self.__class__.__name__}")
            self.stop()

        logger.info(f"{self.__class__.__name__} consumer stopped")

    def poll_once(self) -> bool:
        """
        Take at most one message from each queue.

        Returns:
            bool: True if any message was handled
        """
        handled = False
        for queue_name in self.queue_names:
            if self.queue_manager.consume_one(queue_name, self._handle_message):
                handled = True
        return handled

    def stop(self):
        """Stop the worker gracefully."""
        logger.info(f"Stopping {self.__class__.__name__}")
        self.running = False

    def _handle_message(self, message: Dict[str, Any]):
        """
        Run process_message on a fresh event loop.

        Exceptions propagate so the queue manager requeues the message.
        """
        logger.info(f"📨 {self.__class__.__name__} received message: {message}")
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self.process_message(message))

            # Give pending tasks (like HTTP connection cleanup) time to complete
            pending = asyncio.all_tasks(loop)
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        except Exception as e:
            logger.error(f"Error processing message in {self.__class__.__name__}: {e}")
            logger.error(f"Message data: {message}")
            raise
        finally:
            try:
                try:
                    loop.run_until_complete(self.release_resources())
                except Exception as e:
                    logger.warning(f"Error releasing resources in {self.__class__.__name__}: {e}")
                loop.run_until_complete(loop.shutdown_asyncgens())
            finally:
                asyncio.set_event_loop(None)
                loop.close()

        logger.debug(f"Message processed successfully: {message.get('type', 'unknown')}")
