"""Persistence stores for split entities."""

from split_engine.store.base import SplitStore
from split_engine.store.memory import InMemorySplitStore

__all__ = ["InMemorySplitStore", "SplitStore"]
