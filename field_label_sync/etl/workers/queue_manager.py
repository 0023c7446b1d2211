"""
RabbitMQ Queue Manager for the label sync pipeline
Handles RabbitMQ connectivity, queue topology, and message publishing/consuming.
"""

import pika
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Any, Optional, Callable
from contextlib import contextmanager

from field_label_sync.core.config import get_settings

logger = logging.getLogger(__name__)

HEARTBEAT_POLL_SECONDS = 1.0

# Message types
BATCH_REFRESH = 'batch_refresh'
LOAD_CONTEXTS = 'load_contexts'
LOAD_CONTEXT_OPTIONS = 'load_context_options'


def root_job_type(mode: str) -> str:
    """Queue message type that starts a refresh in the given sync mode."""
    return BATCH_REFRESH if mode == 'batch' else LOAD_CONTEXTS


class RejectMessage(Exception):
    """Raised by a handler for a message that must not be redelivered."""


class QueueManager:
    """
    Manages RabbitMQ connections and queue operations for the label pipeline.

    Queue Topology:
    - label_sync_jobs: root jobs ('batch_refresh', 'load_contexts')
    - label_sync_context_options: one 'load_context_options' job per context
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        vhost: Optional[str] = None
    ):
        """
        Initialize Queue Manager with RabbitMQ connection parameters.

        Args:
            host: RabbitMQ host (default: RABBITMQ_HOST setting)
            port: RabbitMQ port (default: RABBITMQ_PORT setting)
            username: RabbitMQ username (default: RABBITMQ_USER setting)
            password: RabbitMQ password (default: RABBITMQ_PASSWORD setting)
            vhost: RabbitMQ virtual host (default: RABBITMQ_VHOST setting)
        """
        settings = get_settings()
        self.host: str = host or settings.RABBITMQ_HOST
        self.port: int = port if port is not None else settings.RABBITMQ_PORT
        self.username: str = username or settings.RABBITMQ_USER
        self.password: str = password or settings.RABBITMQ_PASSWORD
        self.vhost: str = vhost or settings.RABBITMQ_VHOST

        self.jobs_queue: str = settings.SYNC_JOBS_QUEUE
        self.context_options_queue: str = settings.CONTEXT_OPTIONS_QUEUE

        logger.info(f"QueueManager initialized: {self.username}@{self.host}:{self.port}/{self.vhost}")

    def _get_connection(self) -> pika.BlockingConnection:
        """
        Create a new RabbitMQ connection.

        Returns:
            pika.BlockingConnection: Active RabbitMQ connection
        """
        credentials = pika.PlainCredentials(self.username, self.password)
        parameters = pika.ConnectionParameters(
            host=self.host,
            port=self.port,
            virtual_host=self.vhost,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300
        )

        try:
            return pika.BlockingConnection(parameters)
        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            raise

    @contextmanager
    def get_channel(self):
        """
        Context manager for RabbitMQ channel.
        Automatically closes connection when done.

        Usage:
            with queue_manager.get_channel() as channel:
                channel.basic_publish(...)
        """
        connection = None
        channel = None
        try:
            connection = self._get_connection()
            channel = connection.channel()
            yield channel
        finally:
            if channel and channel.is_open:
                channel.close()
            if connection and connection.is_open:
                connection.close()

    def setup_queues(self):
        """Declare the durable job queues."""
        with self.get_channel() as channel:
            for queue_name in (self.jobs_queue, self.context_options_queue):
                channel.queue_declare(
                    queue=queue_name,
                    durable=True,  # Survive broker restart
                    arguments={'x-message-ttl': 86400000}  # 24 hours TTL
                )
                logger.info(f"Queue declared: {queue_name}")

    def publish_sync_job(self, job_type: str, **fields: Any) -> bool:
        """
        Publish a root sync job ('batch_refresh' or 'load_contexts').

        Returns:
            bool: True if published successfully
        """
        if job_type not in (BATCH_REFRESH, LOAD_CONTEXTS):
            raise ValueError(f"Unknown sync job type: {job_type}")
        message = {'type': job_type, **fields}
        return self._publish_message(self.jobs_queue, message)

    def publish_context_job(self, context_id: str, **fields: Any) -> bool:
        """
        Publish one per-context refresh unit.

        Returns:
            bool: True if published successfully
        """
        message = {'type': LOAD_CONTEXT_OPTIONS, 'contextId': context_id, **fields}
        return self._publish_message(self.context_options_queue, message)

    def _publish_message(self, queue_name: str, message: Dict[str, Any]) -> bool:
        try:
            with self.get_channel() as channel:
                channel.basic_publish(
                    exchange='',
                    routing_key=queue_name,
                    body=json.dumps(message),
                    properties=pika.BasicProperties(
                        delivery_mode=2,  # Make message persistent
                        content_type='application/json'
                    )
                )
            logger.info(f"Message published to {queue_name}: {message}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish message to {queue_name}: {e}")
            return False

    def consume_one(self, queue_name: str, handler: Callable[[Dict[str, Any]], Any]) -> bool:
        """
        Take one message from the queue and hand it to handler.

        The message is acknowledged only after handler returns. If handler
        raises, the message is rejected with requeue so the broker redelivers
        it, and the exception propagates. Bodies that are not JSON objects, and
        messages the handler rejects with RejectMessage, are dropped.

        Returns:
            bool: True if a message was taken, False if the queue was empty
        """
        with self.get_channel() as channel:
            method_frame, header_frame, body = channel.basic_get(queue=queue_name, auto_ack=False)
            if not method_frame:
                return False

            try:
                message = json.loads(body)
                if not isinstance(message, dict):
                    raise ValueError("message body is not a JSON object")
            except ValueError as e:
                logger.error(f"Dropping unparseable message from {queue_name}: {e}")
                channel.basic_nack(delivery_tag=method_frame.delivery_tag, requeue=False)
                return True

            try:
                self._run_handler(channel, handler, message)
            except RejectMessage as e:
                logger.error(f"Rejecting message from {queue_name} without requeue: {e}")
                channel.basic_nack(delivery_tag=method_frame.delivery_tag, requeue=False)
                return True
            except Exception:
                channel.basic_nack(delivery_tag=method_frame.delivery_tag, requeue=True)
                raise

            channel.basic_ack(delivery_tag=method_frame.delivery_tag)
            return True

    def _run_handler(self, channel, handler: Callable[[Dict[str, Any]], Any], message: Dict[str, Any]) -> Any:
        """
        Run handler on a helper thread while this thread services the held
        connection's heartbeats until handler finishes.
        """
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="label-sync-handler") as executor:
            future = executor.submit(handler, message)
            while not future.done():
                channel.connection.process_data_events(time_limit=HEARTBEAT_POLL_SECONDS)
            return future.result()

    def get_queue_stats(self, queue_name: str) -> Optional[Dict[str, int]]:
        """
        Get statistics for a queue.

        Returns:
            Dict with message_count and consumer_count, or None if error
        """
        try:
            with self.get_channel() as channel:
                method = channel.queue_declare(queue=queue_name, passive=True)
                return {
                    'message_count': method.method.message_count,
                    'consumer_count': method.method.consumer_count
                }
        except Exception as e:
            logger.error(f"Failed to get queue stats for {queue_name}: {e}")
            return None


# Global queue manager instance
_queue_manager: Optional[QueueManager] = None


def get_queue_manager() -> QueueManager:
    """
    Get the global queue manager instance.
    Creates it if it doesn't exist.
    """
    global _queue_manager
    if _queue_manager is None:
        _queue_manager = QueueManager()
    return _queue_manager
