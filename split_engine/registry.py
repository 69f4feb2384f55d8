"""Recipient registry: the catalog of payout recipients."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping

from split_engine.exceptions import (
    ConflictError,
    EntityNotFoundError,
    OwnershipError,
    ValidationError,
)
from split_engine.models import (
    PayoutDestination,
    PersonType,
    PixKeyType,
    Recipient,
    RecipientStatus,
    new_id,
    utcnow,
)
from split_engine.store.base import SplitStore

logger = logging.getLogger(__name__)

# Digits expected in a tax id: CPF for individuals, CNPJ for businesses
TAX_ID_DIGITS = {
    PersonType.INDIVIDUAL: 11,
    PersonType.BUSINESS: 14,
}
TAX_ID_PATTERN = re.compile(r"[0-9./-]+")


def parse_payout_destination(raw: Any) -> PayoutDestination:
    """Build a payout destination from a dataclass or a mapping.

    Raises
    ------
    ValidationError
        If the key is empty or its type is not a known Pix key type.
    """
    if isinstance(raw, PayoutDestination):
        pix_key, key_type = raw.pix_key, raw.key_type
    elif isinstance(raw, Mapping):
        pix_key, key_type = raw.get("pix_key"), raw.get("key_type")
    else:
        raise ValidationError("Payout destination with a Pix key and key type is required")

    if not pix_key or not str(pix_key).strip():
        raise ValidationError("Payout destination Pix key is required")
    try:
        key_type = PixKeyType(key_type)
    except ValueError as e:
        allowed = ", ".join(t.value for t in PixKeyType)
        raise ValidationError(
            f"Unknown Pix key type {key_type!r}; expected one of: {allowed}"
        ) from e

    return PayoutDestination(pix_key=str(pix_key).strip(), key_type=key_type)


class RecipientRegistry:
    """Create, update, look up and remove payout recipients.

    Parameters
    ----------
    store : SplitStore
        Persistence backend.
    clock : Callable[[], datetime]
        Source of timestamps (UTC).
    """

    def __init__(self, store: SplitStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    def create(self, owner_id: str, data: Mapping[str, Any]) -> Recipient:
        """Validate and persist a new recipient for ``owner_id``."""
        if not owner_id:
            raise ValidationError("Owner id is required")

        now = self.clock()
        recipient = Recipient(
            recipient_id=new_id(),
            owner_id=owner_id,
            name=_required_text(data, "name"),
            person_type=_parse_person_type(data.get("person_type")),
            tax_id=_required_text(data, "tax_id"),
            payout_destination=parse_payout_destination(data.get("payout_destination")),
            status=_parse_status(data.get("status", RecipientStatus.ACTIVE)),
            email=data.get("email") or None,
            created_at=now,
            updated_at=now,
        )
        _check_tax_id(recipient)

        self.store.save_recipient(recipient)
        logger.info("Recipient %s created for owner %s", recipient.recipient_id, owner_id)
        return recipient

    def update(
        self,
        recipient_id: str,
        data: Mapping[str, Any],
        owner_id: str | None = None,
    ) -> Recipient:
        """Merge ``data`` over the stored recipient and re-validate."""
        current = self._get_owned(recipient_id, owner_id)

        changes: dict[str, Any] = {}
        if "name" in data:
            changes["name"] = _required_text(data, "name")
        if "tax_id" in data:
            changes["tax_id"] = _required_text(data, "tax_id")
        if "person_type" in data:
            changes["person_type"] = _parse_person_type(data["person_type"])
        if "payout_destination" in data:
            changes["payout_destination"] = parse_payout_destination(data["payout_destination"])
        if "status" in data:
            changes["status"] = _parse_status(data["status"])
        if "email" in data:
            changes["email"] = data["email"] or None

        updated = replace(current, **changes, updated_at=self.clock())
        _check_tax_id(updated)

        self.store.save_recipient(updated)
        logger.info("Recipient %s updated", recipient_id)
        return updated

    def deactivate(self, recipient_id: str, owner_id: str | None = None) -> Recipient:
        """Mark a recipient inactive; rules referencing it stop validating."""
        return self.update(recipient_id, {"status": RecipientStatus.INACTIVE}, owner_id)

    def activate(self, recipient_id: str, owner_id: str | None = None) -> Recipient:
        return self.update(recipient_id, {"status": RecipientStatus.ACTIVE}, owner_id)

    def get(self, recipient_id: str) -> Recipient:
        recipient = self.store.get_recipient(recipient_id)
        if recipient is None:
            raise EntityNotFoundError(f"Recipient {recipient_id} not found")
        return recipient

    def delete(self, recipient_id: str, owner_id: str | None = None) -> None:
        """Remove a recipient no rule of its owner references.

        Raises
        ------
        ConflictError
            If a rule still pays this recipient; deactivate it instead.
        """
        recipient = self._get_owned(recipient_id, owner_id)

        in_use = [
            rule.rule_id
            for rule in self.store.list_rules(recipient.owner_id)
            if rule.references(recipient_id)
        ]
        if in_use:
            raise ConflictError(
                f"Recipient {recipient_id} is used by split rules {', '.join(in_use)}; "
                "deactivate it instead"
            )

        self.store.delete_recipient(recipient_id)
        logger.info("Recipient %s deleted", recipient_id)

    def list(self, owner_id: str) -> list[Recipient]:
        """Get all recipients of an owner."""
        return self.store.list_recipients(owner_id)

    def _get_owned(self, recipient_id: str, owner_id: str | None) -> Recipient:
        recipient = self.get(recipient_id)
        if owner_id is not None and recipient.owner_id != owner_id:
            raise OwnershipError(f"Recipient {recipient_id} does not belong to {owner_id}")
        return recipient


def _required_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None or not str(value).strip():
        raise ValidationError(f"Field '{key}' is required")
    return str(value).strip()


def _parse_person_type(raw: Any) -> PersonType:
    try:
        return PersonType(raw)
    except ValueError as e:
        raise ValidationError(
            f"Person type must be 'individual' or 'business', got {raw!r}"
        ) from e


def _parse_status(raw: Any) -> RecipientStatus:
    try:
        return RecipientStatus(raw)
    except ValueError as e:
        raise ValidationError(f"Recipient status must be 'active' or 'inactive', got {raw!r}") from e


def _check_tax_id(recipient: Recipient) -> None:
    if not TAX_ID_PATTERN.fullmatch(recipient.tax_id):
        raise ValidationError(
            f"Tax id may only contain digits and the separators . / -, got {recipient.tax_id!r}"
        )
    digits = sum(ch.isdigit() for ch in recipient.tax_id)
    expected = TAX_ID_DIGITS[recipient.person_type]
    if digits != expected:
        raise ValidationError(
            f"Tax id for a {recipient.person_type.value} recipient must have "
            f"{expected} digits, got {digits}"
        )
