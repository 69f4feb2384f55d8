"""Payout recipient model."""

from dataclasses import dataclass
from datetime import datetime

from split_engine.models.enums import PersonType, PixKeyType, RecipientStatus


@dataclass
class PayoutDestination:
    """Instant-payment (Pix) key a recipient is paid to."""

    pix_key: str
    key_type: PixKeyType


@dataclass
class Recipient:
    """Party eligible to receive part of a split."""

    recipient_id: str
    owner_id: str
    name: str
    person_type: PersonType
    tax_id: str  # CPF for individuals, CNPJ for businesses
    payout_destination: PayoutDestination
    status: RecipientStatus = RecipientStatus.ACTIVE
    email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == RecipientStatus.ACTIVE
