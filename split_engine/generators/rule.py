"""Rule and sale generators."""

from __future__ import annotations

import random
from decimal import ROUND_DOWN, Decimal
from typing import Any, Sequence

from split_engine.generators.base import BaseGenerator
from split_engine.models import AllocationKind, Rule, new_id
from split_engine.rules import parse_decimal, parse_lines

CENT = Decimal("0.01")


class RuleGenerator(BaseGenerator):
    """Generate split rules that pass ``RuleValidator``.

    Commission and percentage lines always fit the 100% budget; fixed
    lines carry amounts between ``MIN_FIXED`` and ``MAX_FIXED`` minor units.
    """

    COMMISSION_CHOICES = [Decimal(v) for v in ("0", "5", "10", "12.5", "15", "20", "30", "50", "85", "100")]
    MIN_FIXED = 100
    MAX_FIXED = 50_000

    def __init__(
        self,
        seed: int | None = None,
        max_lines: int = 4,
        fixed_line_rate: float = 0.3,
    ) -> None:
        super().__init__(seed)
        self.max_lines = max_lines
        self.fixed_line_rate = fixed_line_rate

    def generate(self, recipient_ids: Sequence[str]) -> dict[str, Any]:
        """Generate a rule payload paying some of ``recipient_ids``.

        Parameters
        ----------
        recipient_ids : Sequence[str]
            Active recipients of the rule's owner.

        Returns
        -------
        dict[str, Any]
            Payload accepted by ``RuleStore.create``.
        """
        commission = random.choice(self.COMMISSION_CHOICES)
        budget = Decimal("100") - commission

        num_lines = random.randint(0, min(self.max_lines, len(recipient_ids)))
        chosen = random.sample(list(recipient_ids), num_lines)

        lines = []
        for recipient_id in chosen:
            if random.random() < self.fixed_line_rate:
                lines.append({
                    "recipient_id": recipient_id,
                    "kind": AllocationKind.FIXED.value,
                    "value": random.randint(self.MIN_FIXED, self.MAX_FIXED),
                    "description": "Flat fee",
                })
            else:
                share = Decimal(str(random.uniform(0, float(budget)))).quantize(
                    CENT, rounding=ROUND_DOWN
                )
                share = min(share, budget)
                budget -= share
                lines.append({
                    "recipient_id": recipient_id,
                    "kind": AllocationKind.PERCENTAGE.value,
                    "value": str(share),
                    "description": "Partner share",
                })

        return {
            "name": f"{self.fake.catch_phrase()} split",
            "description": self.fake.sentence(nb_words=6),
            "commission_percentage": str(commission),
            "lines": lines,
        }

    def generate_rule(self, owner_id: str, recipient_ids: Sequence[str]) -> Rule:
        """Generate a ``Rule`` directly, without going through a store."""
        payload = self.generate(recipient_ids)
        return Rule(
            rule_id=new_id(),
            owner_id=owner_id,
            name=payload["name"],
            description=payload["description"],
            commission_percentage=parse_decimal(
                payload["commission_percentage"], "commission_percentage"
            ),
            lines=parse_lines(payload["lines"]),
        )


class SaleGenerator(BaseGenerator):
    """Generate paid sales: ids and totals in minor units."""

    MAX_TOTAL = 5_000_000  # R$ 50.000,00

    def generate(self) -> dict[str, Any]:
        """Generate one paid sale.

        Totals follow a Pareto distribution: mostly small tickets with a
        long tail of large ones.
        """
        total_value = int(random.paretovariate(1.5) * 2_000)
        return {
            "sale_id": self.fake.uuid4(),
            "charge_id": self.fake.bothify("txid-????????????????").lower(),
            "total_value": min(total_value, self.MAX_TOTAL),
        }
