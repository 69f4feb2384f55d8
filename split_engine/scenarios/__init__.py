"""Scenarios for generating realistic split-payment data sets."""

from split_engine.scenarios.marketplace import MarketplaceScenario

__all__ = ["MarketplaceScenario"]
