"""Queue publishers for settlement messages."""

from split_engine.publishers.base import Publisher
from split_engine.publishers.console import ConsolePublisher
from split_engine.publishers.kafka import KafkaPublisher
from split_engine.publishers.memory import InMemoryPublisher

__all__ = ["ConsolePublisher", "InMemoryPublisher", "KafkaPublisher", "Publisher"]
