"""Enumeration types for split-payment entities."""

from enum import Enum


class PersonType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class PixKeyType(str, Enum):
    CPF = "cpf"
    CNPJ = "cnpj"
    EMAIL = "email"
    PHONE = "phone"
    RANDOM = "random"


class RecipientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AllocationKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class SplitStatus(str, Enum):
    """Status shared by allocation records and their split transaction."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({SplitStatus.COMPLETED, SplitStatus.FAILED})
