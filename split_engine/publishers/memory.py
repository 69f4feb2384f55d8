"""In-memory publisher for tests and offline runs."""

from typing import Any

from split_engine.publishers.base import Publisher
from split_engine.serialization import to_dict


class InMemoryPublisher(Publisher):
    """Keep published messages in a list.

    Set ``available`` to False to simulate a broker that rejects every
    message; ``publish`` then returns False and records nothing.
    """

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.messages: list[tuple[str, dict[str, Any]]] = []

    def publish(self, topic: str, message: dict[str, Any]) -> bool:
        if not self.available:
            return False
        self.messages.append((topic, to_dict(message)))
        return True

    def messages_for(self, topic: str) -> list[dict[str, Any]]:
        """Get the messages published to ``topic``, oldest first."""
        return [message for t, message in self.messages if t == topic]
