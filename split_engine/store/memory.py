"""In-memory split store with relationship indexes."""

from dataclasses import dataclass, field
from datetime import datetime

from split_engine.exceptions import DuplicateSaleError, EntityNotFoundError
from split_engine.models import (
    AllocationRecord,
    Recipient,
    Rule,
    SplitStatus,
    SplitTransaction,
)
from split_engine.store.base import SplitStore


@dataclass
class InMemorySplitStore(SplitStore):
    """In-memory store for split entities, one instance per engine.

    Suited to tests and local runs; state lives only as long as the object.
    """

    # Primary entities
    recipients: dict[str, Recipient] = field(default_factory=dict)
    rules: dict[str, Rule] = field(default_factory=dict)
    transactions: dict[str, SplitTransaction] = field(default_factory=dict)
    allocations: dict[str, AllocationRecord] = field(default_factory=dict)

    # Relationship indexes
    _owner_recipients: dict[str, list[str]] = field(default_factory=dict)
    _owner_rules: dict[str, list[str]] = field(default_factory=dict)
    _owner_transactions: dict[str, list[str]] = field(default_factory=dict)
    _rule_transactions: dict[str, list[str]] = field(default_factory=dict)
    _sale_transaction: dict[str, str] = field(default_factory=dict)

    # Recipients
    def save_recipient(self, recipient: Recipient) -> None:
        """Insert or replace a recipient."""
        if recipient.recipient_id not in self.recipients:
            self._owner_recipients.setdefault(recipient.owner_id, []).append(
                recipient.recipient_id
            )
        self.recipients[recipient.recipient_id] = recipient

    def get_recipient(self, recipient_id: str) -> Recipient | None:
        return self.recipients.get(recipient_id)

    def list_recipients(self, owner_id: str) -> list[Recipient]:
        """Get all recipients of an owner, in insertion order."""
        ids = self._owner_recipients.get(owner_id, [])
        return [self.recipients[rid] for rid in ids]

    def delete_recipient(self, recipient_id: str) -> bool:
        recipient = self.recipients.pop(recipient_id, None)
        if recipient is None:
            return False
        self._owner_recipients[recipient.owner_id].remove(recipient_id)
        return True

    # Rules
    def save_rule(self, rule: Rule) -> None:
        """Insert or replace a rule."""
        if rule.rule_id not in self.rules:
            self._owner_rules.setdefault(rule.owner_id, []).append(rule.rule_id)
        self.rules[rule.rule_id] = rule

    def get_rule(self, rule_id: str) -> Rule | None:
        return self.rules.get(rule_id)

    def list_rules(self, owner_id: str) -> list[Rule]:
        """Get all rules of an owner, in insertion order."""
        ids = self._owner_rules.get(owner_id, [])
        return [self.rules[rid] for rid in ids]

    def delete_rule(self, rule_id: str) -> bool:
        rule = self.rules.pop(rule_id, None)
        if rule is None:
            return False
        self._owner_rules[rule.owner_id].remove(rule_id)
        return True

    # Split transactions
    def insert_transaction(self, transaction: SplitTransaction) -> None:
        """Store a transaction and its allocation records together."""
        if transaction.sale_id in self._sale_transaction:
            raise DuplicateSaleError(transaction.sale_id)

        self.transactions[transaction.transaction_id] = transaction
        self._sale_transaction[transaction.sale_id] = transaction.transaction_id
        self._owner_transactions.setdefault(transaction.owner_id, []).append(
            transaction.transaction_id
        )
        self._rule_transactions.setdefault(transaction.rule_id, []).append(
            transaction.transaction_id
        )
        for record in transaction.allocations:
            self.allocations[record.allocation_id] = record

    def get_transaction(self, transaction_id: str) -> SplitTransaction | None:
        return self.transactions.get(transaction_id)

    def get_transaction_by_sale(self, sale_id: str) -> SplitTransaction | None:
        transaction_id = self._sale_transaction.get(sale_id)
        return self.transactions[transaction_id] if transaction_id else None

    def list_transactions(self, owner_id: str) -> list[SplitTransaction]:
        ids = self._owner_transactions.get(owner_id, [])
        return [self.transactions[tid] for tid in ids]

    def list_transactions_for_rule(self, rule_id: str) -> list[SplitTransaction]:
        ids = self._rule_transactions.get(rule_id, [])
        return [self.transactions[tid] for tid in ids]

    def update_transaction_status(self, transaction: SplitTransaction) -> None:
        stored = self.transactions.get(transaction.transaction_id)
        if stored is None:
            raise EntityNotFoundError(f"Transaction {transaction.transaction_id} not found")
        stored.status = transaction.status
        stored.updated_at = transaction.updated_at

    # Allocation records
    def get_allocation(self, allocation_id: str) -> AllocationRecord | None:
        return self.allocations.get(allocation_id)

    def update_allocation(self, allocation: AllocationRecord) -> None:
        """Replace an allocation record, keeping its transaction in sync."""
        transaction = self.transactions.get(allocation.transaction_id)
        if transaction is None or allocation.allocation_id not in self.allocations:
            raise EntityNotFoundError(f"Allocation {allocation.allocation_id} not found")

        self.allocations[allocation.allocation_id] = allocation
        for i, record in enumerate(transaction.allocations):
            if record.allocation_id == allocation.allocation_id:
                transaction.allocations[i] = allocation
                break

    def list_pending_allocations(self, created_before: datetime) -> list[AllocationRecord]:
        """Get allocations still pending that were created before the cutoff."""
        return [
            record
            for record in self.allocations.values()
            if record.status == SplitStatus.PENDING
            and record.created_at is not None
            and record.created_at < created_before
        ]

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "recipients": len(self.recipients),
            "rules": len(self.rules),
            "transactions": len(self.transactions),
            "allocations": len(self.allocations),
        }
