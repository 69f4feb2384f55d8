#!/usr/bin/env python3
"""Generate a sample marketplace and split its sales.

Recipients, rules and sales are generated with Faker, distributed through
the in-memory store, and written as JSON files to the output folder.
Settlement messages go to the selected publisher: kept in memory and saved
as ``messages.json``, printed to the console, or sent to Kafka.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from split_engine.config import EngineConfig
from split_engine.logging import setup_logging
from split_engine.publishers import ConsolePublisher, InMemoryPublisher, KafkaPublisher
from split_engine.publishers.base import Publisher
from split_engine.scenarios import MarketplaceScenario
from split_engine.serialization import to_dict


def save_json(data: list, filename: str, output_dir: Path) -> None:
    """Save entities to a JSON file."""
    filepath = output_dir / filename
    serialized = [to_dict(item) for item in data]
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(serialized, f, indent=2, ensure_ascii=False)
    print(f"Saved {len(data)} records to {filepath}")


def build_publisher(kind: str, config: EngineConfig) -> Publisher:
    """Create the publisher selected on the command line."""
    if kind == "kafka":
        return KafkaPublisher(config.kafka, timeout_seconds=config.settlement.publish_timeout_seconds)
    if kind == "console":
        return ConsolePublisher(pretty=True)
    return InMemoryPublisher()


def print_summary(summary: dict[str, Any], output_dir: Path) -> None:
    """Print generation summary."""
    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    for name, value in summary.items():
        print(f"{name + ':':26}{value}")
    print(f"\nAll files saved to: {output_dir}")
    print("=" * 60)


def main() -> None:
    """Generate sample split data."""
    parser = argparse.ArgumentParser(description="Generate sample split-payment data")
    parser.add_argument("--owners", type=int, default=3, help="Number of merchants (default: 3)")
    parser.add_argument(
        "--recipients", type=int, default=4, help="Recipients per merchant (default: 4)"
    )
    parser.add_argument("--rules", type=int, default=2, help="Rules per merchant (default: 2)")
    parser.add_argument("--sales", type=int, default=20, help="Sales per merchant (default: 20)")
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=None,
        help="Simulate settlement with this share of failed payouts (default: no settlement)",
    )
    parser.add_argument(
        "--publisher",
        choices=["memory", "console", "kafka"],
        default="memory",
        help="Where settlement messages go (default: memory)",
    )
    parser.add_argument(
        "--output-dir", type=Path, default=project_root / "local", help="Output folder"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: SEED env)")
    args = parser.parse_args()

    config = EngineConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    seed = args.seed if args.seed is not None else config.seed

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    publisher = build_publisher(args.publisher, config)
    scenario = MarketplaceScenario(
        publisher,
        num_owners=args.owners,
        recipients_per_owner=args.recipients,
        rules_per_owner=args.rules,
        sales_per_owner=args.sales,
        settlement_failure_rate=args.failure_rate,
        settlement=config.settlement,
        seed=seed,
    )

    try:
        store = scenario.generate()
    finally:
        publisher.close()

    save_json(list(store.recipients.values()), "recipients.json", output_dir)
    save_json(list(store.rules.values()), "rules.json", output_dir)
    save_json(list(store.transactions.values()), "transactions.json", output_dir)
    if isinstance(publisher, InMemoryPublisher):
        save_json(
            [{"topic": topic, **message} for topic, message in publisher.messages],
            "messages.json",
            output_dir,
        )

    print_summary(scenario.get_summary(), output_dir)


if __name__ == "__main__":
    main()
