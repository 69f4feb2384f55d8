"""PostgreSQL split store backed by psycopg 3."""

import logging
from datetime import datetime
from typing import Any

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from split_engine.exceptions import DuplicateSaleError, EntityNotFoundError
from split_engine.models import (
    AllocationLine,
    AllocationRecord,
    PayoutDestination,
    PersonType,
    PixKeyType,
    Recipient,
    RecipientStatus,
    Rule,
    SplitStatus,
    SplitTransaction,
)
from split_engine.store.base import SplitStore

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS split_recipients (
    recipient_id    TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    name            TEXT NOT NULL,
    email           TEXT,
    person_type     TEXT NOT NULL,
    tax_id          TEXT NOT NULL,
    pix_key         TEXT NOT NULL,
    pix_key_type    TEXT NOT NULL,
    status          TEXT NOT NULL,
    created_at      TIMESTAMPTZ,
    updated_at      TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS ix_split_recipients_owner ON split_recipients (owner_id);

CREATE TABLE IF NOT EXISTS split_rules (
    rule_id                TEXT PRIMARY KEY,
    owner_id               TEXT NOT NULL,
    name                   TEXT NOT NULL,
    description            TEXT,
    commission_percentage  NUMERIC(7, 4) NOT NULL,
    lines                  JSONB NOT NULL,
    active                 BOOLEAN NOT NULL DEFAULT TRUE,
    created_at             TIMESTAMPTZ,
    updated_at             TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS ix_split_rules_owner ON split_rules (owner_id);

CREATE TABLE IF NOT EXISTS split_transactions (
    transaction_id         TEXT PRIMARY KEY,
    owner_id               TEXT NOT NULL,
    sale_id                TEXT NOT NULL UNIQUE,
    charge_id              TEXT,
    rule_id                TEXT NOT NULL,
    total_value            BIGINT NOT NULL CHECK (total_value >= 0),
    commission_amount      BIGINT NOT NULL,
    commission_percentage  NUMERIC(7, 4) NOT NULL,
    currency               CHAR(3) NOT NULL,
    rule_snapshot          JSONB NOT NULL,
    status                 TEXT NOT NULL,
    created_at             TIMESTAMPTZ,
    updated_at             TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS ix_split_transactions_owner ON split_transactions (owner_id);
CREATE INDEX IF NOT EXISTS ix_split_transactions_rule ON split_transactions (rule_id);

CREATE TABLE IF NOT EXISTS split_allocations (
    allocation_id       TEXT PRIMARY KEY,
    transaction_id      TEXT NOT NULL REFERENCES split_transactions (transaction_id),
    position            INTEGER NOT NULL,
    recipient_id        TEXT NOT NULL,
    amount              BIGINT NOT NULL CHECK (amount >= 0),
    percentage_applied  NUMERIC(9, 4) NOT NULL,
    underfunded         BOOLEAN NOT NULL DEFAULT FALSE,
    description         TEXT,
    status              TEXT NOT NULL,
    processed_at        TIMESTAMPTZ,
    error               TEXT,
    created_at          TIMESTAMPTZ,
    updated_at          TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS ix_split_allocations_pending
    ON split_allocations (created_at) WHERE status = 'pending';
"""

RECIPIENT_COLUMNS = [
    "recipient_id", "owner_id", "name", "email", "person_type", "tax_id",
    "pix_key", "pix_key_type", "status", "created_at", "updated_at",
]

RULE_COLUMNS = [
    "rule_id", "owner_id", "name", "description", "commission_percentage",
    "lines", "active", "created_at", "updated_at",
]

TRANSACTION_COLUMNS = [
    "transaction_id", "owner_id", "sale_id", "charge_id", "rule_id", "total_value",
    "commission_amount", "commission_percentage", "currency", "rule_snapshot",
    "status", "created_at", "updated_at",
]

ALLOCATION_COLUMNS = [
    "allocation_id", "transaction_id", "position", "recipient_id", "amount",
    "percentage_applied", "underfunded", "description", "status", "processed_at",
    "error", "created_at", "updated_at",
]


def _upsert_sql(table: str, columns: list[str], key: str) -> str:
    placeholders = ", ".join(["%s"] * len(columns))
    updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns if c != key)
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "  # noqa: S608
        f"ON CONFLICT ({key}) DO UPDATE SET {updates}"
    )


def _insert_sql(table: str, columns: list[str]) -> str:
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608


class PostgresSplitStore(SplitStore):
    """Persist recipients, rules and split transactions in PostgreSQL.

    Parameters
    ----------
    conninfo : str | None
        libpq connection string, used when ``conn`` is not given.
    conn : psycopg.Connection | None
        Existing connection, expected in autocommit mode so that every
        ``conn.transaction()`` block is its own database transaction.
    """

    def __init__(self, conninfo: str | None = None, conn: Any = None) -> None:
        if conn is None:
            if not conninfo:
                raise ValueError("Either conninfo or conn is required")
            conn = psycopg.connect(conninfo, autocommit=True)
        self.conn = conn

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        logger.info("Split schema ensured")

    def close(self) -> None:
        self.conn.close()

    # Recipients
    def save_recipient(self, recipient: Recipient) -> None:
        row = [
            recipient.recipient_id,
            recipient.owner_id,
            recipient.name,
            recipient.email,
            recipient.person_type.value,
            recipient.tax_id,
            recipient.payout_destination.pix_key,
            recipient.payout_destination.key_type.value,
            recipient.status.value,
            recipient.created_at,
            recipient.updated_at,
        ]
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(_upsert_sql("split_recipients", RECIPIENT_COLUMNS, "recipient_id"), row)

    def get_recipient(self, recipient_id: str) -> Recipient | None:
        row = self._fetch_one(
            "SELECT * FROM split_recipients WHERE recipient_id = %s", (recipient_id,)
        )
        return _row_to_recipient(row) if row else None

    def list_recipients(self, owner_id: str) -> list[Recipient]:
        rows = self._fetch_all(
            "SELECT * FROM split_recipients WHERE owner_id = %s ORDER BY created_at, recipient_id",
            (owner_id,),
        )
        return [_row_to_recipient(row) for row in rows]

    def delete_recipient(self, recipient_id: str) -> bool:
        return self._delete("DELETE FROM split_recipients WHERE recipient_id = %s", recipient_id)

    # Rules
    def save_rule(self, rule: Rule) -> None:
        row = [
            rule.rule_id,
            rule.owner_id,
            rule.name,
            rule.description,
            rule.commission_percentage,
            Jsonb([line.to_dict() for line in rule.lines]),
            rule.active,
            rule.created_at,
            rule.updated_at,
        ]
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(_upsert_sql("split_rules", RULE_COLUMNS, "rule_id"), row)

    def get_rule(self, rule_id: str) -> Rule | None:
        row = self._fetch_one("SELECT * FROM split_rules WHERE rule_id = %s", (rule_id,))
        return _row_to_rule(row) if row else None

    def list_rules(self, owner_id: str) -> list[Rule]:
        rows = self._fetch_all(
            "SELECT * FROM split_rules WHERE owner_id = %s ORDER BY created_at, rule_id",
            (owner_id,),
        )
        return [_row_to_rule(row) for row in rows]

    def delete_rule(self, rule_id: str) -> bool:
        return self._delete("DELETE FROM split_rules WHERE rule_id = %s", rule_id)

    # Split transactions
    def insert_transaction(self, transaction: SplitTransaction) -> None:
        """Insert the transaction and its allocations in one database transaction."""
        tx_row = [
            transaction.transaction_id,
            transaction.owner_id,
            transaction.sale_id,
            transaction.charge_id,
            transaction.rule_id,
            transaction.total_value,
            transaction.commission_amount,
            transaction.commission_percentage,
            transaction.currency,
            Jsonb(transaction.rule_snapshot.to_dict()),
            transaction.status.value,
            transaction.created_at,
            transaction.updated_at,
        ]
        allocation_rows = [
            _allocation_row(record, position)
            for position, record in enumerate(transaction.allocations)
        ]
        try:
            with self.conn.transaction():
                with self.conn.cursor() as cur:
                    cur.execute(_insert_sql("split_transactions", TRANSACTION_COLUMNS), tx_row)
                    if allocation_rows:
                        cur.executemany(
                            _insert_sql("split_allocations", ALLOCATION_COLUMNS), allocation_rows
                        )
        except UniqueViolation as e:
            raise DuplicateSaleError(transaction.sale_id) from e

    def get_transaction(self, transaction_id: str) -> SplitTransaction | None:
        row = self._fetch_one(
            "SELECT * FROM split_transactions WHERE transaction_id = %s", (transaction_id,)
        )
        return self._load_transaction(row) if row else None

    def get_transaction_by_sale(self, sale_id: str) -> SplitTransaction | None:
        row = self._fetch_one("SELECT * FROM split_transactions WHERE sale_id = %s", (sale_id,))
        return self._load_transaction(row) if row else None

    def list_transactions(self, owner_id: str) -> list[SplitTransaction]:
        rows = self._fetch_all(
            "SELECT * FROM split_transactions WHERE owner_id = %s ORDER BY created_at",
            (owner_id,),
        )
        return [self._load_transaction(row) for row in rows]

    def list_transactions_for_rule(self, rule_id: str) -> list[SplitTransaction]:
        rows = self._fetch_all(
            "SELECT * FROM split_transactions WHERE rule_id = %s ORDER BY created_at",
            (rule_id,),
        )
        return [self._load_transaction(row) for row in rows]

    def update_transaction_status(self, transaction: SplitTransaction) -> None:
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(
                    "UPDATE split_transactions SET status = %s, updated_at = %s "
                    "WHERE transaction_id = %s",
                    (transaction.status.value, transaction.updated_at, transaction.transaction_id),
                )
                if cur.rowcount == 0:
                    raise EntityNotFoundError(
                        f"Transaction {transaction.transaction_id} not found"
                    )

    # Allocation records
    def get_allocation(self, allocation_id: str) -> AllocationRecord | None:
        row = self._fetch_one(
            "SELECT * FROM split_allocations WHERE allocation_id = %s", (allocation_id,)
        )
        return _row_to_allocation(row) if row else None

    def update_allocation(self, allocation: AllocationRecord) -> None:
        """Write the settlement fields; the amount column is never updated."""
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(
                    "UPDATE split_allocations SET status = %s, processed_at = %s, "
                    "error = %s, updated_at = %s WHERE allocation_id = %s",
                    (
                        allocation.status.value,
                        allocation.processed_at,
                        allocation.error,
                        allocation.updated_at,
                        allocation.allocation_id,
                    ),
                )
                if cur.rowcount == 0:
                    raise EntityNotFoundError(f"Allocation {allocation.allocation_id} not found")

    def list_pending_allocations(self, created_before: datetime) -> list[AllocationRecord]:
        rows = self._fetch_all(
            "SELECT * FROM split_allocations WHERE status = %s AND created_at < %s "
            "ORDER BY created_at",
            (SplitStatus.PENDING.value, created_before),
        )
        return [_row_to_allocation(row) for row in rows]

    # Helpers
    def _fetch_one(self, query: str, params: tuple) -> dict[str, Any] | None:
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def _fetch_all(self, query: str, params: tuple) -> list[dict[str, Any]]:
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def _delete(self, query: str, entity_id: str) -> bool:
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(query, (entity_id,))
                return cur.rowcount > 0

    def _load_transaction(self, row: dict[str, Any]) -> SplitTransaction:
        allocation_rows = self._fetch_all(
            "SELECT * FROM split_allocations WHERE transaction_id = %s ORDER BY position",
            (row["transaction_id"],),
        )
        return SplitTransaction(
            transaction_id=row["transaction_id"],
            owner_id=row["owner_id"],
            sale_id=row["sale_id"],
            charge_id=row["charge_id"],
            rule_id=row["rule_id"],
            total_value=row["total_value"],
            commission_amount=row["commission_amount"],
            commission_percentage=row["commission_percentage"],
            currency=row["currency"],
            rule_snapshot=Rule.from_dict(row["rule_snapshot"]),
            allocations=[_row_to_allocation(r) for r in allocation_rows],
            status=SplitStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def _allocation_row(record: AllocationRecord, position: int) -> list[Any]:
    return [
        record.allocation_id,
        record.transaction_id,
        position,
        record.recipient_id,
        record.amount,
        record.percentage_applied,
        record.underfunded,
        record.description,
        record.status.value,
        record.processed_at,
        record.error,
        record.created_at,
        record.updated_at,
    ]


def _row_to_recipient(row: dict[str, Any]) -> Recipient:
    return Recipient(
        recipient_id=row["recipient_id"],
        owner_id=row["owner_id"],
        name=row["name"],
        email=row["email"],
        person_type=PersonType(row["person_type"]),
        tax_id=row["tax_id"],
        payout_destination=PayoutDestination(
            pix_key=row["pix_key"],
            key_type=PixKeyType(row["pix_key_type"]),
        ),
        status=RecipientStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_rule(row: dict[str, Any]) -> Rule:
    return Rule(
        rule_id=row["rule_id"],
        owner_id=row["owner_id"],
        name=row["name"],
        description=row["description"],
        commission_percentage=row["commission_percentage"],
        lines=[AllocationLine.from_dict(line) for line in row["lines"]],
        active=row["active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_allocation(row: dict[str, Any]) -> AllocationRecord:
    return AllocationRecord(
        allocation_id=row["allocation_id"],
        transaction_id=row["transaction_id"],
        recipient_id=row["recipient_id"],
        amount=row["amount"],
        percentage_applied=row["percentage_applied"],
        status=SplitStatus(row["status"]),
        underfunded=row["underfunded"],
        description=row["description"],
        processed_at=row["processed_at"],
        error=row["error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
