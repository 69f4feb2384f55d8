"""Console publisher for local runs and debugging."""

from typing import Any

from split_engine.publishers.base import Publisher
from split_engine.serialization import to_json


class ConsolePublisher(Publisher):
    """Print settlement messages to stdout instead of a broker."""

    def __init__(self, pretty: bool = True) -> None:
        """Initialize console publisher.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        """
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def publish(self, topic: str, message: dict[str, Any]) -> bool:
        """Print one message and count it under its topic."""
        print(f"[{topic}]")
        print(to_json(message, pretty=self.pretty))

        self._counts[topic] = self._counts.get(topic, 0) + 1
        return True

    def close(self) -> None:
        """Print summary and close."""
        print(f"\n{'='*60}")
        print("Console Publisher Summary")
        print("=" * 60)
        for topic, count in self._counts.items():
            print(f"  {topic}: {count} messages")
