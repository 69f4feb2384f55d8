"""Persistence contract required by the split engine."""

from abc import ABC, abstractmethod
from datetime import datetime

from split_engine.models import AllocationRecord, Recipient, Rule, SplitTransaction


class SplitStore(ABC):
    """Storage operations the registry, rule store and distributor rely on.

    Lookups return ``None`` for unknown ids; the components turn that into
    ``EntityNotFoundError``. ``insert_transaction`` must store a transaction
    and its allocation records atomically and raise ``DuplicateSaleError``
    when the sale already has a transaction.
    """

    # Recipients
    @abstractmethod
    def save_recipient(self, recipient: Recipient) -> None: ...

    @abstractmethod
    def get_recipient(self, recipient_id: str) -> Recipient | None: ...

    @abstractmethod
    def list_recipients(self, owner_id: str) -> list[Recipient]: ...

    @abstractmethod
    def delete_recipient(self, recipient_id: str) -> bool: ...

    # Rules
    @abstractmethod
    def save_rule(self, rule: Rule) -> None: ...

    @abstractmethod
    def get_rule(self, rule_id: str) -> Rule | None: ...

    @abstractmethod
    def list_rules(self, owner_id: str) -> list[Rule]: ...

    @abstractmethod
    def delete_rule(self, rule_id: str) -> bool: ...

    # Split transactions
    @abstractmethod
    def insert_transaction(self, transaction: SplitTransaction) -> None: ...

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> SplitTransaction | None: ...

    @abstractmethod
    def get_transaction_by_sale(self, sale_id: str) -> SplitTransaction | None: ...

    @abstractmethod
    def list_transactions(self, owner_id: str) -> list[SplitTransaction]: ...

    @abstractmethod
    def list_transactions_for_rule(self, rule_id: str) -> list[SplitTransaction]: ...

    @abstractmethod
    def update_transaction_status(self, transaction: SplitTransaction) -> None: ...

    # Allocation records
    @abstractmethod
    def get_allocation(self, allocation_id: str) -> AllocationRecord | None: ...

    @abstractmethod
    def update_allocation(self, allocation: AllocationRecord) -> None: ...

    @abstractmethod
    def list_pending_allocations(self, created_before: datetime) -> list[AllocationRecord]: ...
