"""Custom exception hierarchy for split-engine."""


class SplitEngineError(Exception):
    """Base exception for all split-engine errors."""


class ValidationError(SplitEngineError):
    """Raised when input is malformed or out of range."""


class EntityNotFoundError(SplitEngineError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a rule line points at a missing or inactive recipient."""


class ConflictError(SplitEngineError):
    """Raised when an operation is blocked by existing references or in-flight state."""


class DuplicateSaleError(ConflictError):
    """Raised when a split transaction already exists for a sale."""

    def __init__(self, sale_id: str) -> None:
        super().__init__(f"Split transaction for sale {sale_id} already exists")
        self.sale_id = sale_id


class OwnershipError(SplitEngineError):
    """Raised when an owner tries to mutate another owner's entity."""


class InvalidEntityStateError(SplitEngineError):
    """Raised when an entity is in an invalid state for the operation."""


class ConfigurationError(SplitEngineError):
    """Raised when configuration is invalid or missing."""


class PublishError(SplitEngineError):
    """Raised when a settlement message cannot be published."""
