"""Split-payment distribution engine."""

from split_engine.calculator import compute
from split_engine.distributor import ReconciliationReport, TransactionDistributor
from split_engine.registry import RecipientRegistry
from split_engine.rules import RuleStore, RuleValidator

__version__ = "0.1.0"

__all__ = [
    "ReconciliationReport",
    "RecipientRegistry",
    "RuleStore",
    "RuleValidator",
    "TransactionDistributor",
    "compute",
]
