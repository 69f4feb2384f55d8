"""Tests for domain models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from split_engine.exceptions import EntityNotFoundError, InvalidEntityStateError
from split_engine.models import (
    AllocationDraft,
    AllocationKind,
    AllocationLine,
    AllocationRecord,
    PayoutDestination,
    PersonType,
    PixKeyType,
    Recipient,
    RecipientStatus,
    Rule,
    SplitComputation,
    SplitStatus,
    SplitTransaction,
    rollup_status,
    utcnow,
)

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def make_rule(**overrides) -> Rule:
    data = {
        "rule_id": "rule-001",
        "owner_id": "merchant-001",
        "name": "Marketplace split",
        "commission_percentage": Decimal("10"),
        "lines": [
            AllocationLine("rcp-a", AllocationKind.PERCENTAGE, Decimal("20"), "Partner"),
            AllocationLine("rcp-b", AllocationKind.FIXED, Decimal("500")),
        ],
    }
    data.update(overrides)
    return Rule(**data)


def make_record(status: SplitStatus = SplitStatus.PENDING, **overrides) -> AllocationRecord:
    data = {
        "allocation_id": "alloc-001",
        "transaction_id": "tx-001",
        "recipient_id": "rcp-a",
        "amount": 2000,
        "percentage_applied": Decimal("20"),
        "status": status,
    }
    data.update(overrides)
    return AllocationRecord(**data)


class TestHelpers:
    """Tests for model helpers."""

    def test_utcnow_is_timezone_aware(self) -> None:
        assert utcnow().tzinfo is not None

    def test_enums_are_strings(self) -> None:
        assert SplitStatus.PENDING == "pending"
        assert AllocationKind("fixed") is AllocationKind.FIXED
        assert PixKeyType("random") is PixKeyType.RANDOM


class TestRecipient:
    """Tests for Recipient model."""

    def test_recipient_defaults(self) -> None:
        recipient = Recipient(
            recipient_id="rcp-001",
            owner_id="merchant-001",
            name="Ana Souza",
            person_type=PersonType.INDIVIDUAL,
            tax_id="123.456.789-09",
            payout_destination=PayoutDestination("12345678909", PixKeyType.CPF),
        )

        assert recipient.status == RecipientStatus.ACTIVE
        assert recipient.is_active is True
        assert recipient.email is None

    def test_inactive_recipient(self) -> None:
        recipient = Recipient(
            recipient_id="rcp-001",
            owner_id="merchant-001",
            name="Ana Souza",
            person_type=PersonType.INDIVIDUAL,
            tax_id="123.456.789-09",
            payout_destination=PayoutDestination("ana@example.com", PixKeyType.EMAIL),
            status=RecipientStatus.INACTIVE,
        )

        assert recipient.is_active is False


class TestRule:
    """Tests for Rule model."""

    def test_line_partitions(self) -> None:
        rule = make_rule()

        assert [line.recipient_id for line in rule.percentage_lines] == ["rcp-a"]
        assert [line.recipient_id for line in rule.fixed_lines] == ["rcp-b"]

    def test_percentage_budget_ignores_fixed_lines(self) -> None:
        assert make_rule().percentage_budget == Decimal("30")

    def test_percentage_budget_without_lines(self) -> None:
        assert make_rule(lines=[]).percentage_budget == Decimal("10")

    def test_references(self) -> None:
        rule = make_rule()

        assert rule.references("rcp-b") is True
        assert rule.references("rcp-z") is False

    def test_dict_round_trip(self) -> None:
        rule = make_rule(description="Default split", created_at=NOW, updated_at=NOW)

        data = rule.to_dict()
        restored = Rule.from_dict(data)

        assert data["commission_percentage"] == "10"
        assert data["lines"][0] == {
            "recipient_id": "rcp-a",
            "kind": "percentage",
            "value": "20",
            "description": "Partner",
        }
        assert "description" not in data["lines"][1]
        assert restored == rule

    def test_allocation_line_is_frozen(self) -> None:
        line = AllocationLine("rcp-a", AllocationKind.PERCENTAGE, Decimal("20"))

        with pytest.raises(AttributeError):
            line.value = Decimal("30")  # type: ignore[misc]


class TestSplitComputation:
    """Tests for SplitComputation."""

    def test_allocated_total_and_underfunded(self) -> None:
        computation = SplitComputation(
            total_value=400,
            commission_amount=40,
            nominal_commission=40,
            drafts=(
                AllocationDraft("rcp-a", 80, Decimal("20")),
                AllocationDraft("rcp-b", 280, Decimal("70.0000"), underfunded=True),
            ),
        )

        assert computation.allocated_total == 360
        assert computation.has_underfunded_lines is True

    def test_empty_computation(self) -> None:
        computation = SplitComputation(total_value=0, commission_amount=0, nominal_commission=0)

        assert computation.allocated_total == 0
        assert computation.has_underfunded_lines is False


class TestAllocationRecord:
    """Tests for allocation status transitions."""

    def test_pending_to_processing_to_completed(self) -> None:
        record = make_record()

        record.transition(SplitStatus.PROCESSING, NOW)
        assert record.status == SplitStatus.PROCESSING
        assert record.processed_at is None

        record.transition(SplitStatus.COMPLETED, NOW)
        assert record.status == SplitStatus.COMPLETED
        assert record.processed_at == NOW
        assert record.is_terminal is True

    def test_pending_to_failed_stores_error(self) -> None:
        record = make_record()

        record.transition(SplitStatus.FAILED, NOW, error="Invalid pix key")

        assert record.status == SplitStatus.FAILED
        assert record.error == "Invalid pix key"
        assert record.processed_at == NOW

    def test_pending_cannot_complete_directly(self) -> None:
        record = make_record()

        with pytest.raises(InvalidEntityStateError):
            record.transition(SplitStatus.COMPLETED, NOW)

    @pytest.mark.parametrize("terminal", [SplitStatus.COMPLETED, SplitStatus.FAILED])
    @pytest.mark.parametrize("target", list(SplitStatus))
    def test_terminal_states_are_final(self, terminal: SplitStatus, target: SplitStatus) -> None:
        record = make_record(status=terminal)

        with pytest.raises(InvalidEntityStateError):
            record.transition(target, NOW)

    def test_amount_is_immutable(self) -> None:
        record = make_record()

        with pytest.raises(InvalidEntityStateError):
            record.amount = 1

        assert record.amount == 2000

    def test_to_message(self) -> None:
        message = make_record().to_message("BRL")

        assert message == {
            "allocation_id": "alloc-001",
            "transaction_id": "tx-001",
            "recipient_id": "rcp-a",
            "amount_minor_units": 2000,
            "currency": "BRL",
        }


class TestRollupStatus:
    """Tests for transaction status roll-up."""

    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([], SplitStatus.COMPLETED),
            ([SplitStatus.PENDING, SplitStatus.PENDING], SplitStatus.PENDING),
            ([SplitStatus.PENDING, SplitStatus.PROCESSING], SplitStatus.PROCESSING),
            ([SplitStatus.COMPLETED, SplitStatus.PENDING], SplitStatus.PROCESSING),
            ([SplitStatus.COMPLETED, SplitStatus.COMPLETED], SplitStatus.COMPLETED),
            ([SplitStatus.COMPLETED, SplitStatus.FAILED], SplitStatus.FAILED),
            ([SplitStatus.FAILED, SplitStatus.PENDING], SplitStatus.PROCESSING),
            ([SplitStatus.FAILED, SplitStatus.PROCESSING], SplitStatus.PROCESSING),
            ([SplitStatus.FAILED], SplitStatus.FAILED),
        ],
    )
    def test_rollup(self, statuses: list[SplitStatus], expected: SplitStatus) -> None:
        assert rollup_status(statuses) == expected


class TestSplitTransaction:
    """Tests for SplitTransaction."""

    def make_transaction(self, *records: AllocationRecord) -> SplitTransaction:
        return SplitTransaction(
            transaction_id="tx-001",
            owner_id="merchant-001",
            sale_id="sale-001",
            rule_id="rule-001",
            total_value=10000,
            commission_amount=7500,
            commission_percentage=Decimal("10"),
            currency="BRL",
            rule_snapshot=make_rule(),
            allocations=list(records),
        )

    def test_allocation_lookup(self) -> None:
        record = make_record()
        transaction = self.make_transaction(record)

        assert transaction.allocation("alloc-001") is record
        with pytest.raises(EntityNotFoundError):
            transaction.allocation("alloc-404")

    def test_refresh_status(self) -> None:
        transaction = self.make_transaction(
            make_record(status=SplitStatus.COMPLETED),
            make_record(allocation_id="alloc-002", status=SplitStatus.PROCESSING),
        )

        assert transaction.refresh_status(NOW) == SplitStatus.PROCESSING
        assert transaction.updated_at == NOW
        assert transaction.has_unsettled_allocations is True

    def test_settled_transaction(self) -> None:
        transaction = self.make_transaction(
            make_record(status=SplitStatus.COMPLETED),
            make_record(allocation_id="alloc-002", status=SplitStatus.FAILED),
        )

        assert transaction.has_unsettled_allocations is False
        assert transaction.refresh_status(NOW) == SplitStatus.FAILED
