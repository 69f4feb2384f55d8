"""Transaction distributor: persists splits and hands allocations to settlement."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from split_engine.calculator import compute
from split_engine.config import SettlementConfig
from split_engine.exceptions import (
    DuplicateSaleError,
    EntityNotFoundError,
    InvalidEntityStateError,
    ValidationError,
)
from split_engine.models import (
    TERMINAL_STATUSES,
    AllocationRecord,
    Rule,
    SplitStatus,
    SplitTransaction,
    new_id,
    utcnow,
)
from split_engine.publishers.base import Publisher
from split_engine.rules import RuleValidator, parse_lines
from split_engine.store.base import SplitStore

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation sweep."""

    scanned: int = 0
    republished: int = 0
    failed: int = 0
    skipped: int = 0


class TransactionDistributor:
    """Create split transactions and track their allocation settlement.

    Parameters
    ----------
    store : SplitStore
        Persistence backend.
    publisher : Publisher
        Settlement queue publisher.
    settlement : SettlementConfig | None
        Topic, currency and reconciliation settings.
    validator : RuleValidator | None
        Validator applied to each rule snapshot; defaults to one over ``store``.
    clock : Callable[[], datetime]
        Source of timestamps (UTC).
    """

    def __init__(
        self,
        store: SplitStore,
        publisher: Publisher,
        settlement: SettlementConfig | None = None,
        validator: RuleValidator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.publisher = publisher
        self.settlement = settlement or SettlementConfig()
        self.settlement.validate()
        self.validator = validator or RuleValidator(store)
        self.clock = clock

    def distribute(
        self,
        sale_id: str,
        rule: Rule,
        total_value: int,
        *,
        charge_id: str | None = None,
        custom_lines: Iterable[Any] | None = None,
    ) -> SplitTransaction:
        """Split a paid sale according to ``rule`` and queue its settlements.

        Safe to retry: a second call with the same ``sale_id`` returns the
        transaction created by the first. Publish failures leave allocations
        pending for :meth:`reconcile_pending` and do not fail the call.

        Parameters
        ----------
        sale_id : str
            Stable id of the paid sale.
        rule : Rule
            Rule to apply; a frozen copy is stored with the transaction.
        total_value : int
            Paid amount in minor units.
        charge_id : str | None
            Payment-provider charge reference.
        custom_lines : Iterable | None
            Lines replacing the rule's lines for this sale only.
        """
        if not sale_id:
            raise ValidationError("Sale id is required")

        existing = self.store.get_transaction_by_sale(sale_id)
        if existing is not None:
            logger.info(
                "Sale %s already split as transaction %s", sale_id, existing.transaction_id
            )
            return existing

        if not rule.active:
            raise ValidationError(f"Rule {rule.rule_id} is inactive")

        snapshot = copy.deepcopy(rule)
        if custom_lines is not None:
            snapshot = replace(snapshot, lines=parse_lines(custom_lines))
        self.validator.validate(snapshot)

        computation = compute(snapshot, total_value)
        now = self.clock()
        transaction_id = new_id()
        transaction = SplitTransaction(
            transaction_id=transaction_id,
            owner_id=snapshot.owner_id,
            sale_id=sale_id,
            charge_id=charge_id,
            rule_id=snapshot.rule_id,
            total_value=total_value,
            commission_amount=computation.commission_amount,
            commission_percentage=snapshot.commission_percentage,
            currency=self.settlement.currency,
            rule_snapshot=snapshot,
            allocations=[
                AllocationRecord(
                    allocation_id=new_id(),
                    transaction_id=transaction_id,
                    recipient_id=draft.recipient_id,
                    amount=draft.amount,
                    percentage_applied=draft.percentage_applied,
                    underfunded=draft.underfunded,
                    description=draft.description,
                    created_at=now,
                    updated_at=now,
                )
                for draft in computation.drafts
            ],
            status=SplitStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        try:
            self.store.insert_transaction(transaction)
        except DuplicateSaleError:
            winner = self.store.get_transaction_by_sale(sale_id)
            if winner is None:
                raise
            logger.info("Sale %s was split concurrently; returning %s", sale_id, winner.transaction_id)
            return winner

        logger.info(
            "Split transaction %s created for sale %s: total=%d commission=%d allocations=%d",
            transaction_id,
            sale_id,
            total_value,
            computation.commission_amount,
            len(transaction.allocations),
        )
        if computation.has_underfunded_lines:
            logger.warning(
                "Transaction %s has fixed allocations capped to the remaining value",
                transaction_id,
            )

        for record in transaction.allocations:
            self._publish(transaction.currency, record)

        transaction.refresh_status(self.clock())
        self.store.update_transaction_status(transaction)
        return transaction

    def report_status(
        self,
        allocation_id: str,
        status: SplitStatus | str,
        error: str | None = None,
    ) -> AllocationRecord:
        """Record a settlement outcome reported by the settlement worker.

        Raises
        ------
        ValidationError
            If ``status`` is not ``completed`` or ``failed``.
        EntityNotFoundError
            If the allocation does not exist.
        InvalidEntityStateError
            If the allocation already ended with the other terminal status.
        """
        try:
            status = SplitStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown settlement status {status!r}") from e
        if status not in TERMINAL_STATUSES:
            raise ValidationError(
                f"Settlement status must be completed or failed, got {status.value}"
            )

        record = self.store.get_allocation(allocation_id)
        if record is None:
            raise EntityNotFoundError(f"Allocation {allocation_id} not found")

        if record.status == status:
            logger.info("Allocation %s already %s", allocation_id, status.value)
            return record
        if record.is_terminal:
            raise InvalidEntityStateError(
                f"Allocation {allocation_id} already {record.status.value}"
            )

        now = self.clock()
        if status == SplitStatus.COMPLETED and record.status == SplitStatus.PENDING:
            # Delivered although the publish was reported as failed
            record.transition(SplitStatus.PROCESSING, now)
        record.transition(status, now, error=error)
        self.store.update_allocation(record)

        if status == SplitStatus.FAILED:
            logger.warning("Allocation %s failed: %s", allocation_id, error)
        else:
            logger.info("Allocation %s completed", allocation_id)

        self._refresh_transaction(record.transaction_id, now)
        return record

    def reconcile_pending(
        self,
        older_than: timedelta | None = None,
        now: datetime | None = None,
    ) -> ReconciliationReport:
        """Republish allocations still pending after the age threshold."""
        now = now or self.clock()
        if older_than is None:
            older_than = timedelta(seconds=self.settlement.reconcile_after_seconds)

        report = ReconciliationReport()
        currencies: dict[str, str | None] = {}
        touched: set[str] = set()

        for record in self.store.list_pending_allocations(now - older_than):
            report.scanned += 1

            if record.transaction_id not in currencies:
                transaction = self.store.get_transaction(record.transaction_id)
                currencies[record.transaction_id] = transaction.currency if transaction else None
            currency = currencies[record.transaction_id]
            if currency is None:
                logger.warning(
                    "Allocation %s references missing transaction %s",
                    record.allocation_id,
                    record.transaction_id,
                )
                report.skipped += 1
                continue

            if self._publish(currency, record):
                report.republished += 1
                touched.add(record.transaction_id)
            else:
                report.failed += 1

        for transaction_id in touched:
            self._refresh_transaction(transaction_id, self.clock())

        logger.info(
            "Reconciliation finished: scanned=%d republished=%d failed=%d skipped=%d",
            report.scanned,
            report.republished,
            report.failed,
            report.skipped,
        )
        return report

    def get_transaction(self, transaction_id: str) -> SplitTransaction:
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise EntityNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def get_transaction_by_sale(self, sale_id: str) -> SplitTransaction:
        transaction = self.store.get_transaction_by_sale(sale_id)
        if transaction is None:
            raise EntityNotFoundError(f"No split transaction for sale {sale_id}")
        return transaction

    def list_transactions(self, owner_id: str) -> list[SplitTransaction]:
        return self.store.list_transactions(owner_id)

    def _publish(self, currency: str, record: AllocationRecord) -> bool:
        """Publish one settlement message; on success the allocation is processing."""
        message = record.to_message(currency)
        context = {
            "extra": {
                "allocation_id": record.allocation_id,
                "transaction_id": record.transaction_id,
                "topic": self.settlement.topic,
            }
        }
        try:
            published = self.publisher.publish(self.settlement.topic, message)
        except Exception:
            logger.exception(
                "Publishing allocation %s raised; left pending for reconciliation",
                record.allocation_id,
                extra=context,
            )
            return False

        if not published:
            logger.error(
                "Allocation %s not published; left pending for reconciliation",
                record.allocation_id,
                extra=context,
            )
            return False

        record.transition(SplitStatus.PROCESSING, self.clock())
        self.store.update_allocation(record)
        return True

    def _refresh_transaction(self, transaction_id: str, at: datetime) -> None:
        transaction = self.get_transaction(transaction_id)
        previous = transaction.status
        if transaction.refresh_status(at) != previous:
            logger.info(
                "Transaction %s is now %s", transaction_id, transaction.status.value
            )
        self.store.update_transaction_status(transaction)
