"""Queue publisher contract for settlement messages."""

from abc import ABC, abstractmethod
from typing import Any


class Publisher(ABC):
    """Publishes settlement messages to a topic.

    ``publish`` returns ``True`` once the broker accepted the message and
    ``False`` on failure or timeout. Implementations may also raise
    ``PublishError``; the distributor treats both the same way.
    """

    @abstractmethod
    def publish(self, topic: str, message: dict[str, Any]) -> bool: ...

    def close(self) -> None:
        """Release broker resources."""
