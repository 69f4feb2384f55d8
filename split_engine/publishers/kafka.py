"""Kafka publisher for settlement messages."""

import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from split_engine.config import KafkaConfig
from split_engine.publishers.base import Publisher
from split_engine.serialization import to_json

logger = logging.getLogger(__name__)

# Settlement messages are keyed by transaction so one sale's allocations
# share a partition.
KEY_FIELD = "transaction_id"


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    timed_out: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed + self.timed_out
        return self.delivered / total if total > 0 else 0.0


class KafkaPublisher(Publisher):
    """Publish settlement messages to Kafka, waiting a bounded time per message."""

    def __init__(
        self,
        config: KafkaConfig | str,
        timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize Kafka publisher.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        timeout_seconds : float
            Longest wait for a delivery report before the publish counts
            as failed.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.timeout_seconds = timeout_seconds
        self.producer = self._create_producer()
        self.stats = ProducerStats()

    def _create_producer(self) -> Producer:
        """Create Kafka producer with configuration."""
        return Producer(self.config.to_dict())

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def publish(self, topic: str, message: dict[str, Any]) -> bool:
        """Send one message and wait for its delivery report.

        Returns
        -------
        bool
            True when the broker acknowledged the message.
        """
        report: dict[str, Any] = {}

        def on_delivery(err: Any, msg: Any) -> None:
            self._delivery_callback(err, msg)
            report["error"] = err

        key = message.get(KEY_FIELD)
        value = to_json(message).encode("utf-8")

        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=value,
                callback=on_delivery,
            )
        except (BufferError, KafkaException) as e:
            self.stats.failed += 1
            logger.error("Could not enqueue message for %s: %s", topic, e)
            return False

        self.stats.sent += 1
        remaining = self.producer.flush(self.timeout_seconds)

        if remaining > 0 or "error" not in report:
            self.stats.timed_out += 1
            logger.error(
                "Delivery to %s not confirmed within %.1fs", topic, self.timeout_seconds
            )
            return False

        return report["error"] is None

    def close(self) -> None:
        """Flush and close the producer."""
        self.producer.flush(self.timeout_seconds)
        logger.info(
            "Kafka publisher closed: sent=%d, delivered=%d, failed=%d, timed_out=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
            self.stats.timed_out,
        )
