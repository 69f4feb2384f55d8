"""Split rule store and the validator that gates every rule mutation."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping

from split_engine.calculator import PERCENT_PLACES
from split_engine.exceptions import (
    ConflictError,
    EntityNotFoundError,
    OwnershipError,
    ReferentialIntegrityError,
    ValidationError,
)
from split_engine.models import AllocationKind, AllocationLine, Rule, new_id, utcnow
from split_engine.store.base import SplitStore

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def parse_decimal(raw: Any, field_name: str) -> Decimal:
    """Convert ``raw`` to a finite Decimal or raise ValidationError."""
    if isinstance(raw, bool):
        raise ValidationError(f"Field '{field_name}' must be a number, got {raw!r}")
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Field '{field_name}' must be a number, got {raw!r}") from e
    if not value.is_finite():
        raise ValidationError(f"Field '{field_name}' must be finite, got {raw!r}")
    return value


def parse_lines(raw: Iterable[Any] | None) -> list[AllocationLine]:
    """Build allocation lines from dataclasses or mappings."""
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)):
        raise ValidationError("Allocation lines must be a list")

    lines = []
    for i, item in enumerate(raw):
        if isinstance(item, AllocationLine):
            lines.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ValidationError(f"Allocation line {i} must be a mapping")
        recipient_id = item.get("recipient_id")
        if not recipient_id:
            raise ValidationError(f"Allocation line {i} has no recipient_id")
        try:
            kind = AllocationKind(item.get("kind"))
        except ValueError as e:
            raise ValidationError(
                f"Allocation line {i} kind must be 'percentage' or 'fixed', got {item.get('kind')!r}"
            ) from e
        lines.append(
            AllocationLine(
                recipient_id=str(recipient_id),
                kind=kind,
                value=parse_decimal(item.get("value"), f"lines[{i}].value"),
                description=item.get("description") or None,
            )
        )
    return lines


class RuleValidator:
    """Check a rule's arithmetic and its references to recipients."""

    def __init__(self, store: SplitStore) -> None:
        self.store = store

    def validate(self, rule: Rule) -> None:
        """Validate a rule before it is persisted or distributed.

        Raises
        ------
        ValidationError
            On a missing name, an out-of-range commission or line value,
            a percentage with more than four decimal places, or
            when commission plus percentage lines exceed 100.
        ReferentialIntegrityError
            When a line points at a recipient that is missing, inactive or
            owned by someone else.
        """
        if not rule.name or not rule.name.strip():
            raise ValidationError("Rule name is required")

        if not 0 <= rule.commission_percentage <= HUNDRED:
            raise ValidationError(
                f"Commission percentage must be between 0 and 100, got {rule.commission_percentage}"
            )
        _check_precision(rule.commission_percentage, "Commission percentage")

        for line in rule.lines:
            self._check_recipient(rule.owner_id, line.recipient_id)

            if line.kind == AllocationKind.PERCENTAGE:
                if not 0 <= line.value <= HUNDRED:
                    raise ValidationError(
                        f"Percentage for recipient {line.recipient_id} must be between "
                        f"0 and 100, got {line.value}"
                    )
                _check_precision(line.value, f"Percentage for recipient {line.recipient_id}")
            elif line.value <= 0:
                raise ValidationError(
                    f"Fixed amount for recipient {line.recipient_id} must be greater "
                    f"than zero, got {line.value}"
                )
            elif line.value != line.value.to_integral_value():
                raise ValidationError(
                    f"Fixed amount for recipient {line.recipient_id} must be whole "
                    f"minor units, got {line.value}"
                )

        # Fixed lines are settled against the transaction amount, not this budget
        budget = rule.percentage_budget
        if budget > HUNDRED:
            raise ValidationError(
                f"Commission plus percentage lines sum to {budget}%, which exceeds 100%"
            )

    def _check_recipient(self, owner_id: str, recipient_id: str) -> None:
        recipient = self.store.get_recipient(recipient_id)
        if recipient is None or recipient.owner_id != owner_id:
            raise ReferentialIntegrityError(f"Recipient {recipient_id} not found")
        if not recipient.is_active:
            raise ReferentialIntegrityError(f"Recipient {recipient_id} is inactive")


def _check_precision(value: Decimal, label: str) -> None:
    # Stored percentages keep four decimal places
    if value != value.quantize(PERCENT_PLACES):
        raise ValidationError(f"{label} allows at most 4 decimal places, got {value}")


class RuleStore:
    """Create, update, look up and remove split rules.

    Parameters
    ----------
    store : SplitStore
        Persistence backend.
    validator : RuleValidator | None
        Validator run before every write; defaults to one over ``store``.
    clock : Callable[[], datetime]
        Source of timestamps (UTC).
    """

    def __init__(
        self,
        store: SplitStore,
        validator: RuleValidator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.validator = validator or RuleValidator(store)
        self.clock = clock

    def create(self, owner_id: str, data: Mapping[str, Any]) -> Rule:
        """Validate and persist a new rule for ``owner_id``."""
        if not owner_id:
            raise ValidationError("Owner id is required")
        if data.get("commission_percentage") is None:
            raise ValidationError("Field 'commission_percentage' is required")

        now = self.clock()
        rule = Rule(
            rule_id=new_id(),
            owner_id=owner_id,
            name=str(data.get("name") or "").strip(),
            description=data.get("description") or None,
            commission_percentage=parse_decimal(
                data["commission_percentage"], "commission_percentage"
            ),
            lines=parse_lines(data.get("lines")),
            active=bool(data.get("active", True)),
            created_at=now,
            updated_at=now,
        )
        self.validator.validate(rule)

        self.store.save_rule(rule)
        logger.info(
            "Rule %s created for owner %s with %d lines",
            rule.rule_id,
            owner_id,
            len(rule.lines),
        )
        return rule

    def update(
        self,
        rule_id: str,
        data: Mapping[str, Any],
        owner_id: str | None = None,
    ) -> Rule:
        """Merge ``data`` over the stored rule and re-validate the result.

        Existing split transactions keep the snapshot they were created with.
        """
        current = self._get_owned(rule_id, owner_id)

        changes: dict[str, Any] = {}
        if "name" in data:
            changes["name"] = str(data["name"] or "").strip()
        if "description" in data:
            changes["description"] = data["description"] or None
        if "commission_percentage" in data:
            changes["commission_percentage"] = parse_decimal(
                data["commission_percentage"], "commission_percentage"
            )
        if "lines" in data:
            changes["lines"] = parse_lines(data["lines"])
        if "active" in data:
            changes["active"] = bool(data["active"])

        updated = replace(current, **changes, updated_at=self.clock())
        self.validator.validate(updated)

        self.store.save_rule(updated)
        logger.info("Rule %s updated", rule_id)
        return updated

    def get(self, rule_id: str) -> Rule:
        rule = self.store.get_rule(rule_id)
        if rule is None:
            raise EntityNotFoundError(f"Rule {rule_id} not found")
        return rule

    def delete(self, rule_id: str, owner_id: str | None = None) -> None:
        """Remove a rule with no distribution still in flight.

        Raises
        ------
        ConflictError
            If a split transaction produced from this rule still has an
            allocation that is neither completed nor failed.
        """
        self._get_owned(rule_id, owner_id)

        in_flight = [
            tx.transaction_id
            for tx in self.store.list_transactions_for_rule(rule_id)
            if tx.has_unsettled_allocations
        ]
        if in_flight:
            raise ConflictError(
                f"Rule {rule_id} has split transactions still settling: {', '.join(in_flight)}"
            )

        self.store.delete_rule(rule_id)
        logger.info("Rule %s deleted", rule_id)

    def list(self, owner_id: str) -> list[Rule]:
        """Get all rules of an owner."""
        return self.store.list_rules(owner_id)

    def _get_owned(self, rule_id: str, owner_id: str | None) -> Rule:
        rule = self.get(rule_id)
        if owner_id is not None and rule.owner_id != owner_id:
            raise OwnershipError(f"Rule {rule_id} does not belong to {owner_id}")
        return rule
