"""Split rule model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from split_engine.models.enums import AllocationKind


@dataclass(frozen=True)
class AllocationLine:
    """One entry of a rule: a percentage or a fixed amount to a recipient.

    ``value`` is a percentage in [0, 100] for percentage lines and an amount
    in minor units (centavos) for fixed lines.
    """

    recipient_id: str
    kind: AllocationKind
    value: Decimal
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "recipient_id": self.recipient_id,
            "kind": self.kind.value,
            "value": str(self.value),
        }
        if self.description:
            d["description"] = self.description
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AllocationLine":
        return cls(
            recipient_id=data["recipient_id"],
            kind=AllocationKind(data["kind"]),
            value=Decimal(str(data["value"])),
            description=data.get("description"),
        )


@dataclass
class Rule:
    """Reusable split policy: a commission plus ordered allocation lines."""

    rule_id: str
    owner_id: str
    name: str
    commission_percentage: Decimal
    lines: list[AllocationLine] = field(default_factory=list)
    description: str | None = None
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def percentage_lines(self) -> list[AllocationLine]:
        return [line for line in self.lines if line.kind == AllocationKind.PERCENTAGE]

    @property
    def fixed_lines(self) -> list[AllocationLine]:
        return [line for line in self.lines if line.kind == AllocationKind.FIXED]

    @property
    def percentage_budget(self) -> Decimal:
        """Commission plus every percentage line; must not exceed 100."""
        return self.commission_percentage + sum(
            (line.value for line in self.percentage_lines), Decimal("0")
        )

    def references(self, recipient_id: str) -> bool:
        """Return True if any line pays ``recipient_id``."""
        return any(line.recipient_id == recipient_id for line in self.lines)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON columns and rule snapshots."""
        return {
            "rule_id": self.rule_id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "commission_percentage": str(self.commission_percentage),
            "lines": [line.to_dict() for line in self.lines],
            "active": self.active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")
        return cls(
            rule_id=data["rule_id"],
            owner_id=data["owner_id"],
            name=data["name"],
            description=data.get("description"),
            commission_percentage=Decimal(str(data["commission_percentage"])),
            lines=[AllocationLine.from_dict(line) for line in data.get("lines", [])],
            active=data.get("active", True),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
