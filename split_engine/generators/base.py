"""Base generator class for sample-data generators."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Any, Iterator

from faker import Faker


class BaseGenerator(ABC):
    """Base class for recipient, rule and sale generators.

    Each generator produces plain payloads in the shape the registry, the
    rule store or the distributor accept, so sample data goes through the
    same validation as real input.

    Parameters
    ----------
    seed : int | None
        Seeds both Faker and ``random`` for reproducible data sets.
    locale : str
        Faker locale (default ``pt_BR``, for CPF/CNPJ and phone formats).
    """

    def __init__(self, seed: int | None = None, locale: str = "pt_BR") -> None:
        self.fake = Faker(locale)
        if seed is not None:
            self.fake.seed_instance(seed)
            random.seed(seed)

    @abstractmethod
    def generate(self, *args: Any) -> dict[str, Any]:
        """Generate a single payload."""

    def generate_batch(self, count: int, *args: Any) -> Iterator[dict[str, Any]]:
        """Generate ``count`` payloads, passing ``args`` to each ``generate`` call.

        Parameters
        ----------
        count : int
            Number of payloads to generate.

        Yields
        ------
        dict[str, Any]
            Generated payloads.
        """
        for _ in range(count):
            yield self.generate(*args)
