"""Tests for the rule store and validator."""

from decimal import Decimal
from typing import Any, Callable

import pytest

from split_engine.distributor import TransactionDistributor
from split_engine.exceptions import (
    ConflictError,
    EntityNotFoundError,
    OwnershipError,
    ReferentialIntegrityError,
    ValidationError,
)
from split_engine.models import AllocationKind, AllocationLine, Recipient, SplitStatus
from split_engine.registry import RecipientRegistry
from split_engine.rules import RuleStore, parse_decimal, parse_lines


def rule_payload(*lines: dict[str, Any], commission: Any = "10") -> dict[str, Any]:
    return {
        "name": "Marketplace split",
        "description": "Default partner split",
        "commission_percentage": commission,
        "lines": list(lines),
    }


def pct_line(recipient: Recipient, value: Any) -> dict[str, Any]:
    return {"recipient_id": recipient.recipient_id, "kind": "percentage", "value": value}


def fixed_line(recipient: Recipient, value: Any) -> dict[str, Any]:
    return {"recipient_id": recipient.recipient_id, "kind": "fixed", "value": value}


class TestParsing:
    """Tests for parse_decimal and parse_lines."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("12.5", Decimal("12.5")), (10, Decimal("10")), (Decimal("0.01"), Decimal("0.01"))],
    )
    def test_parse_decimal(self, raw: Any, expected: Decimal) -> None:
        assert parse_decimal(raw, "value") == expected

    def test_parse_decimal_from_float_keeps_short_repr(self) -> None:
        assert parse_decimal(0.1, "value") == Decimal("0.1")

    @pytest.mark.parametrize("raw", ["ten", None, True, "NaN", "Infinity", [1]])
    def test_parse_decimal_rejects(self, raw: Any) -> None:
        with pytest.raises(ValidationError):
            parse_decimal(raw, "value")

    def test_parse_lines(self) -> None:
        lines = parse_lines(
            [
                {"recipient_id": "rcp-a", "kind": "percentage", "value": "20", "description": "A"},
                AllocationLine("rcp-b", AllocationKind.FIXED, Decimal("500")),
            ]
        )

        assert lines[0] == AllocationLine("rcp-a", AllocationKind.PERCENTAGE, Decimal("20"), "A")
        assert lines[1].kind == AllocationKind.FIXED

    def test_parse_lines_none(self) -> None:
        assert parse_lines(None) == []

    @pytest.mark.parametrize(
        "raw",
        [
            "rcp-a",
            {"recipient_id": "rcp-a"},
            [1],
            [{"kind": "fixed", "value": 1}],
            [{"recipient_id": "rcp-a", "kind": "share", "value": 1}],
            [{"recipient_id": "rcp-a", "kind": "fixed", "value": "abc"}],
        ],
    )
    def test_parse_lines_rejects(self, raw: Any) -> None:
        with pytest.raises(ValidationError):
            parse_lines(raw)


class TestRuleValidation:
    """Tests for RuleValidator through RuleStore.create."""

    def test_create_valid_rule(
        self,
        rule_store: RuleStore,
        owner_id: str,
        recipient_a: Recipient,
        recipient_b: Recipient,
    ) -> None:
        rule = rule_store.create(
            owner_id,
            rule_payload(pct_line(recipient_a, "20"), fixed_line(recipient_b, 500)),
        )

        assert rule.owner_id == owner_id
        assert rule.commission_percentage == Decimal("10")
        assert rule.percentage_budget == Decimal("30")
        assert rule.active is True
        assert rule_store.get(rule.rule_id) == rule

    def test_rule_without_lines(self, rule_store: RuleStore, owner_id: str) -> None:
        rule = rule_store.create(owner_id, rule_payload(commission=100))

        assert rule.lines == []

    @pytest.mark.parametrize("commission", ["-0.01", "100.01", "250"])
    def test_commission_out_of_range(
        self, rule_store: RuleStore, owner_id: str, commission: str
    ) -> None:
        with pytest.raises(ValidationError, match="Commission"):
            rule_store.create(owner_id, rule_payload(commission=commission))

    def test_commission_required(self, rule_store: RuleStore, owner_id: str) -> None:
        with pytest.raises(ValidationError, match="commission_percentage"):
            rule_store.create(owner_id, {"name": "No commission", "lines": []})

    def test_name_required(self, rule_store: RuleStore, owner_id: str) -> None:
        with pytest.raises(ValidationError, match="name"):
            rule_store.create(owner_id, {**rule_payload(), "name": " "})

    def test_budget_over_hundred_reports_sum(
        self,
        rule_store: RuleStore,
        owner_id: str,
        recipient_a: Recipient,
        recipient_b: Recipient,
    ) -> None:
        payload = rule_payload(pct_line(recipient_a, "60"), pct_line(recipient_b, "35.5"))

        with pytest.raises(ValidationError, match="105.5"):
            rule_store.create(owner_id, payload)

    def test_budget_of_exactly_hundred(
        self,
        rule_store: RuleStore,
        owner_id: str,
        recipient_a: Recipient,
        recipient_b: Recipient,
    ) -> None:
        payload = rule_payload(pct_line(recipient_a, "60"), pct_line(recipient_b, "30"))

        assert rule_store.create(owner_id, payload).percentage_budget == Decimal("100")

    def test_fixed_lines_outside_budget(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        payload = rule_payload(fixed_line(recipient_a, 1_000_000), commission="100")

        assert rule_store.create(owner_id, payload).fixed_lines

    @pytest.mark.parametrize("value", ["-1", "100.5"])
    def test_percentage_line_out_of_range(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient, value: str
    ) -> None:
        with pytest.raises(ValidationError, match="between 0 and 100"):
            rule_store.create(owner_id, rule_payload(pct_line(recipient_a, value), commission=0))

    def test_commission_more_than_four_places(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        payload = rule_payload(pct_line(recipient_a, "0.00005"), commission="99.99995")

        with pytest.raises(ValidationError, match="4 decimal places"):
            rule_store.create(owner_id, payload)
        assert rule_store.list(owner_id) == []

    def test_percentage_line_more_than_four_places(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        with pytest.raises(ValidationError, match="4 decimal places"):
            rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "12.34565")))

    def test_four_places_and_trailing_zeros_accepted(
        self,
        rule_store: RuleStore,
        owner_id: str,
        recipient_a: Recipient,
        recipient_b: Recipient,
    ) -> None:
        payload = rule_payload(
            pct_line(recipient_a, "45.12340"),
            pct_line(recipient_b, "44.8766"),
            commission="10.000000",
        )

        assert rule_store.create(owner_id, payload).percentage_budget == Decimal("100")

    def test_recipient_on_several_lines(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        payload = rule_payload(pct_line(recipient_a, "15"), fixed_line(recipient_a, 300))

        rule = rule_store.create(owner_id, payload)

        assert [line.recipient_id for line in rule.lines] == [recipient_a.recipient_id] * 2

    @pytest.mark.parametrize("value", [0, -500])
    def test_fixed_line_must_be_positive(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient, value: int
    ) -> None:
        with pytest.raises(ValidationError, match="greater than zero"):
            rule_store.create(owner_id, rule_payload(fixed_line(recipient_a, value)))

    def test_fixed_line_must_be_whole_units(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        with pytest.raises(ValidationError, match="whole minor units"):
            rule_store.create(owner_id, rule_payload(fixed_line(recipient_a, "10.5")))

    def test_unknown_recipient(self, rule_store: RuleStore, owner_id: str) -> None:
        payload = rule_payload({"recipient_id": "rcp-404", "kind": "percentage", "value": "10"})

        with pytest.raises(ReferentialIntegrityError):
            rule_store.create(owner_id, payload)

    def test_inactive_recipient(
        self,
        rule_store: RuleStore,
        registry: RecipientRegistry,
        owner_id: str,
        recipient_a: Recipient,
    ) -> None:
        registry.deactivate(recipient_a.recipient_id)

        with pytest.raises(ReferentialIntegrityError, match="inactive"):
            rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "10")))

    def test_recipient_of_other_owner(
        self,
        rule_store: RuleStore,
        make_recipient: Callable[..., Recipient],
        owner_id: str,
        other_owner_id: str,
    ) -> None:
        foreign = make_recipient(other_owner_id)

        with pytest.raises(ReferentialIntegrityError):
            rule_store.create(owner_id, rule_payload(pct_line(foreign, "10")))

    def test_invalid_rule_not_stored(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        with pytest.raises(ValidationError):
            rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "95")))

        assert rule_store.list(owner_id) == []


class TestRuleStoreUpdate:
    """Tests for RuleStore.update."""

    def test_update_merges_and_revalidates(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient, clock: Any
    ) -> None:
        rule = rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "20")))
        clock.advance(hours=1)

        updated = rule_store.update(rule.rule_id, {"commission_percentage": "15"})

        assert updated.commission_percentage == Decimal("15")
        assert updated.lines == rule.lines
        assert updated.updated_at > rule.created_at

    def test_update_rejected_keeps_stored_rule(
        self, rule_store: RuleStore, owner_id: str, recipient_a: Recipient
    ) -> None:
        rule = rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "20")))

        with pytest.raises(ValidationError):
            rule_store.update(rule.rule_id, {"commission_percentage": "90"})

        assert rule_store.get(rule.rule_id).commission_percentage == Decimal("10")

    def test_update_can_deactivate(self, rule_store: RuleStore, owner_id: str) -> None:
        rule = rule_store.create(owner_id, rule_payload())

        assert rule_store.update(rule.rule_id, {"active": False}).active is False

    def test_update_by_other_owner(
        self, rule_store: RuleStore, owner_id: str, other_owner_id: str
    ) -> None:
        rule = rule_store.create(owner_id, rule_payload())

        with pytest.raises(OwnershipError):
            rule_store.update(rule.rule_id, {"name": "Mine now"}, owner_id=other_owner_id)

    def test_update_unknown(self, rule_store: RuleStore) -> None:
        with pytest.raises(EntityNotFoundError):
            rule_store.update("rule-404", {"name": "Nothing"})


class TestRuleStoreDelete:
    """Tests for RuleStore.delete and list."""

    def test_delete_unused_rule(self, rule_store: RuleStore, owner_id: str) -> None:
        rule = rule_store.create(owner_id, rule_payload())

        rule_store.delete(rule.rule_id)

        with pytest.raises(EntityNotFoundError):
            rule_store.get(rule.rule_id)

    def test_delete_with_settling_transaction(
        self,
        rule_store: RuleStore,
        distributor: TransactionDistributor,
        owner_id: str,
        recipient_a: Recipient,
    ) -> None:
        rule = rule_store.create(owner_id, rule_payload(pct_line(recipient_a, "20")))
        transaction = distributor.distribute("sale-001", rule, 10000)

        with pytest.raises(ConflictError, match=transaction.transaction_id):
            rule_store.delete(rule.rule_id)

        distributor.report_status(transaction.allocations[0].allocation_id, SplitStatus.COMPLETED)
        rule_store.delete(rule.rule_id)

        assert rule_store.list(owner_id) == []

    def test_delete_by_other_owner(
        self, rule_store: RuleStore, owner_id: str, other_owner_id: str
    ) -> None:
        rule = rule_store.create(owner_id, rule_payload())

        with pytest.raises(OwnershipError):
            rule_store.delete(rule.rule_id, owner_id=other_owner_id)

    def test_list_is_scoped_to_owner(
        self, rule_store: RuleStore, owner_id: str, other_owner_id: str
    ) -> None:
        first = rule_store.create(owner_id, rule_payload())
        second = rule_store.create(owner_id, rule_payload(commission="5"))
        rule_store.create(other_owner_id, rule_payload())

        assert [r.rule_id for r in rule_store.list(owner_id)] == [first.rule_id, second.rule_id]
