"""Faker-based generators for sample recipients, rules and sales."""

from split_engine.generators.recipient import RecipientGenerator
from split_engine.generators.rule import RuleGenerator, SaleGenerator

__all__ = ["RecipientGenerator", "RuleGenerator", "SaleGenerator"]
