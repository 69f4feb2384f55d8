"""Domain models for split-payment distribution."""

from split_engine.models.base import new_id, utcnow
from split_engine.models.enums import (
    TERMINAL_STATUSES,
    AllocationKind,
    PersonType,
    PixKeyType,
    RecipientStatus,
    SplitStatus,
)
from split_engine.models.recipient import PayoutDestination, Recipient
from split_engine.models.rule import AllocationLine, Rule
from split_engine.models.transaction import (
    AllocationDraft,
    AllocationRecord,
    SplitComputation,
    SplitTransaction,
    rollup_status,
)

__all__ = [
    "AllocationDraft",
    "AllocationKind",
    "AllocationLine",
    "AllocationRecord",
    "PayoutDestination",
    "PersonType",
    "PixKeyType",
    "Recipient",
    "RecipientStatus",
    "Rule",
    "SplitComputation",
    "SplitStatus",
    "SplitTransaction",
    "TERMINAL_STATUSES",
    "new_id",
    "rollup_status",
    "utcnow",
]
