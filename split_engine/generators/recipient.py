"""Recipient payload generator."""

from __future__ import annotations

import random
from typing import Any

from split_engine.generators.base import BaseGenerator
from split_engine.models import PersonType, PixKeyType


class RecipientGenerator(BaseGenerator):
    """Generate recipient payloads accepted by ``RecipientRegistry.create``."""

    PERSON_TYPES = list(PersonType)
    PERSON_TYPE_WEIGHTS = [0.65, 0.35]

    # Businesses mostly register their CNPJ or a random key
    KEY_TYPE_WEIGHTS = {
        PersonType.INDIVIDUAL: {
            PixKeyType.CPF: 0.40,
            PixKeyType.EMAIL: 0.25,
            PixKeyType.PHONE: 0.25,
            PixKeyType.RANDOM: 0.10,
        },
        PersonType.BUSINESS: {
            PixKeyType.CNPJ: 0.50,
            PixKeyType.EMAIL: 0.20,
            PixKeyType.RANDOM: 0.30,
        },
    }

    def generate(self) -> dict[str, Any]:
        """Generate a single recipient payload.

        Returns
        -------
        dict[str, Any]
            Payload with name, email, person type, tax id and payout destination.
        """
        person_type = random.choices(
            self.PERSON_TYPES, weights=self.PERSON_TYPE_WEIGHTS, k=1
        )[0]

        if person_type == PersonType.INDIVIDUAL:
            name = self.fake.name()
            tax_id = self.fake.cpf()
        else:
            name = self.fake.company()
            tax_id = self.fake.cnpj()
        email = self.fake.email()

        weights = self.KEY_TYPE_WEIGHTS[person_type]
        key_type = random.choices(list(weights), weights=list(weights.values()), k=1)[0]

        return {
            "name": name,
            "email": email,
            "person_type": person_type.value,
            "tax_id": tax_id,
            "payout_destination": {
                "pix_key": self._pix_key(key_type, tax_id, email),
                "key_type": key_type.value,
            },
        }

    def _pix_key(self, key_type: PixKeyType, tax_id: str, email: str) -> str:
        if key_type in (PixKeyType.CPF, PixKeyType.CNPJ):
            return "".join(ch for ch in tax_id if ch.isdigit())
        if key_type == PixKeyType.EMAIL:
            return email
        if key_type == PixKeyType.PHONE:
            return self.fake.cellphone_number()
        return self.fake.uuid4()
