"""Marketplace scenario: merchants splitting sales with partners."""

import logging
import random
from collections import Counter
from typing import Any

from split_engine.config import SettlementConfig
from split_engine.distributor import TransactionDistributor
from split_engine.generators import RecipientGenerator, RuleGenerator, SaleGenerator
from split_engine.models import SplitStatus
from split_engine.publishers.base import Publisher
from split_engine.registry import RecipientRegistry
from split_engine.rules import RuleStore
from split_engine.store.memory import InMemorySplitStore

logger = logging.getLogger(__name__)


class MarketplaceScenario:
    """Seed merchants, recipients and rules, then split a batch of sales.

    This scenario creates:
    - Merchants (owners), each with its own recipients and rules
    - Paid sales distributed through a random rule of their merchant
    - Optionally, simulated settlement-worker outcomes for the published
      allocations, failing a share of them
    """

    def __init__(
        self,
        publisher: Publisher,
        num_owners: int = 3,
        recipients_per_owner: int = 4,
        rules_per_owner: int = 2,
        sales_per_owner: int = 20,
        settlement_failure_rate: float | None = None,
        settlement: SettlementConfig | None = None,
        seed: int | None = None,
    ) -> None:
        """Initialize marketplace scenario.

        Parameters
        ----------
        publisher : Publisher
            Receives the settlement messages.
        num_owners : int
            Number of merchants.
        recipients_per_owner : int
            Recipients registered per merchant.
        rules_per_owner : int
            Rules created per merchant.
        sales_per_owner : int
            Sales distributed per merchant.
        settlement_failure_rate : float | None
            When set, every published allocation is settled and this share
            (0.0 to 1.0) of them fails. When None, allocations stay processing.
        settlement : SettlementConfig | None
            Settlement topic and currency for the distributor.
        seed : int | None
            Random seed for reproducibility.
        """
        self.num_owners = num_owners
        self.recipients_per_owner = recipients_per_owner
        self.rules_per_owner = rules_per_owner
        self.sales_per_owner = sales_per_owner
        self.settlement_failure_rate = settlement_failure_rate
        self.seed = seed

        if seed is not None:
            random.seed(seed)

        self.store = InMemorySplitStore()
        self.registry = RecipientRegistry(self.store)
        self.rules = RuleStore(self.store)
        self.distributor = TransactionDistributor(self.store, publisher, settlement)

        self._recipient_gen = RecipientGenerator(seed=seed)
        self._rule_gen = RuleGenerator(seed=seed)
        self._sale_gen = SaleGenerator(seed=seed)
        self.owner_ids: list[str] = []

    def generate(self) -> InMemorySplitStore:
        """Run the scenario and return the populated store."""
        logger.info("Generating marketplace scenario for %d merchants", self.num_owners)

        for n in range(self.num_owners):
            owner_id = f"merchant-{n + 1:03d}"
            self.owner_ids.append(owner_id)
            self._generate_owner(owner_id)

        if self.settlement_failure_rate is not None:
            self._simulate_settlement()

        logger.info("Scenario complete: %s", self.store.summary())
        return self.store

    def _generate_owner(self, owner_id: str) -> None:
        recipient_ids = [
            self.registry.create(owner_id, payload).recipient_id
            for payload in self._recipient_gen.generate_batch(self.recipients_per_owner)
        ]
        rules = [
            self.rules.create(owner_id, self._rule_gen.generate(recipient_ids))
            for _ in range(self.rules_per_owner)
        ]
        if not rules:
            return

        for _ in range(self.sales_per_owner):
            sale = self._sale_gen.generate()
            self.distributor.distribute(
                sale["sale_id"],
                random.choice(rules),
                sale["total_value"],
                charge_id=sale["charge_id"],
            )

    def _simulate_settlement(self) -> None:
        """Play the settlement worker for every processing allocation."""
        for record in list(self.store.allocations.values()):
            if record.status != SplitStatus.PROCESSING:
                continue
            if random.random() < self.settlement_failure_rate:
                self.distributor.report_status(
                    record.allocation_id, SplitStatus.FAILED, "Simulated payout failure"
                )
            else:
                self.distributor.report_status(record.allocation_id, SplitStatus.COMPLETED)

    def get_summary(self) -> dict[str, Any]:
        """Get summary statistics of the generated splits."""
        transactions = list(self.store.transactions.values())
        allocations = list(self.store.allocations.values())
        return {
            "transactions": len(transactions),
            "allocations": len(allocations),
            "total_value": sum(tx.total_value for tx in transactions),
            "commission_total": sum(tx.commission_amount for tx in transactions),
            "allocated_total": sum(a.amount for a in allocations),
            "underfunded_allocations": sum(1 for a in allocations if a.underfunded),
            "transaction_status": dict(Counter(tx.status.value for tx in transactions)),
            "allocation_status": dict(Counter(a.status.value for a in allocations)),
        }
