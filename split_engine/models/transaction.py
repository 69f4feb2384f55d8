"""Split transaction and allocation models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from split_engine.exceptions import EntityNotFoundError, InvalidEntityStateError
from split_engine.models.enums import TERMINAL_STATUSES, SplitStatus
from split_engine.models.rule import Rule

ALLOWED_TRANSITIONS: dict[SplitStatus, frozenset[SplitStatus]] = {
    SplitStatus.PENDING: frozenset({SplitStatus.PROCESSING, SplitStatus.FAILED}),
    SplitStatus.PROCESSING: frozenset({SplitStatus.COMPLETED, SplitStatus.FAILED}),
    SplitStatus.COMPLETED: frozenset(),
    SplitStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class AllocationDraft:
    """Computed share for one rule line, before it is persisted."""

    recipient_id: str
    amount: int  # minor units
    percentage_applied: Decimal
    underfunded: bool = False
    description: str | None = None


@dataclass(frozen=True)
class SplitComputation:
    """Result of applying a rule to a total.

    ``commission_amount`` is what the merchant keeps: the rate-based
    commission plus every minor unit no line claimed. ``nominal_commission``
    is the rate-based part alone.
    """

    total_value: int
    commission_amount: int
    nominal_commission: int
    drafts: tuple[AllocationDraft, ...] = ()

    @property
    def allocated_total(self) -> int:
        return sum(draft.amount for draft in self.drafts)

    @property
    def has_underfunded_lines(self) -> bool:
        return any(draft.underfunded for draft in self.drafts)


@dataclass
class AllocationRecord:
    """Realized amount for one recipient of a split transaction.

    The amount is fixed at creation; only the settlement fields move.
    """

    allocation_id: str
    transaction_id: str
    recipient_id: str
    amount: int
    percentage_applied: Decimal
    status: SplitStatus = SplitStatus.PENDING
    underfunded: bool = False
    description: str | None = None
    processed_at: datetime | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "amount" and "amount" in self.__dict__:
            raise InvalidEntityStateError(
                f"Allocation {self.allocation_id} amount is immutable"
            )
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(
        self,
        status: SplitStatus,
        at: datetime,
        error: str | None = None,
    ) -> None:
        """Advance the settlement status.

        Raises
        ------
        InvalidEntityStateError
            If ``status`` is not reachable from the current status.
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidEntityStateError(
                f"Allocation {self.allocation_id} cannot move from "
                f"{self.status.value} to {status.value}"
            )
        self.status = status
        self.updated_at = at
        if status in TERMINAL_STATUSES:
            self.processed_at = at
        if status == SplitStatus.FAILED:
            self.error = error

    def to_message(self, currency: str) -> dict[str, Any]:
        """Build the settlement queue message for this allocation."""
        return {
            "allocation_id": self.allocation_id,
            "transaction_id": self.transaction_id,
            "recipient_id": self.recipient_id,
            "amount_minor_units": self.amount,
            "currency": currency,
        }


def rollup_status(statuses: Iterable[SplitStatus]) -> SplitStatus:
    """Derive a transaction status from its allocation statuses."""
    statuses = list(statuses)
    if all(s == SplitStatus.COMPLETED for s in statuses):
        return SplitStatus.COMPLETED
    if all(s in TERMINAL_STATUSES for s in statuses):
        return SplitStatus.FAILED
    if all(s == SplitStatus.PENDING for s in statuses):
        return SplitStatus.PENDING
    return SplitStatus.PROCESSING


@dataclass
class SplitTransaction:
    """One application of a rule to a paid amount."""

    transaction_id: str
    owner_id: str
    sale_id: str
    rule_id: str
    total_value: int  # minor units
    commission_amount: int
    commission_percentage: Decimal
    currency: str
    rule_snapshot: Rule
    allocations: list[AllocationRecord] = field(default_factory=list)
    status: SplitStatus = SplitStatus.PENDING
    charge_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_unsettled_allocations(self) -> bool:
        return any(not a.is_terminal for a in self.allocations)

    def allocation(self, allocation_id: str) -> AllocationRecord:
        for record in self.allocations:
            if record.allocation_id == allocation_id:
                return record
        raise EntityNotFoundError(
            f"Allocation {allocation_id} not found in transaction {self.transaction_id}"
        )

    def refresh_status(self, at: datetime) -> SplitStatus:
        """Recompute the status from the allocations and stamp ``updated_at``."""
        self.status = rollup_status(a.status for a in self.allocations)
        self.updated_at = at
        return self.status
