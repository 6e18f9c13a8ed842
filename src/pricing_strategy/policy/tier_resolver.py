"""
Tier Resolver - Resolves a customer's loyalty tier from group and spend.
"""
from typing import Optional

from ..config.settings import get_settings, Settings, TierRule
from ..engine.models import to_float

UNKNOWN_TIER = 'Unknown'
UNASSIGNED_TIER = 'Unassigned'


class TierResolver:
    """
    Resolves the tier name for a customer.

    Waterfall precedence:
    1. Normalize the customer group against the known tier tables
    2. Walk that group's rules from the highest threshold down
    3. First rule with min_spend <= annual spend wins
    4. Fallback: Unassigned (only reachable if a table lacks a 0 floor)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        # Tables must be scanned highest threshold first
        self.rules = {
            group: tuple(sorted(rules, key=lambda r: r.min_spend, reverse=True))
            for group, rules in self.settings.tier_rules.items()
        }

    @property
    def groups(self) -> list[str]:
        return list(self.rules)

    def normalize_group(self, customer_group) -> Optional[str]:
        """Map 'dealer ' / 'DEALER' to the canonical group key, or None."""
        if customer_group is None:
            return None
        wanted = str(customer_group).strip().lower()
        for group in self.rules:
            if group.lower() == wanted:
                return group
        return None

    def tiers_for(self, customer_group) -> tuple[TierRule, ...]:
        """Tier rules for a group, top tier first (empty for unknown groups)."""
        group = self.normalize_group(customer_group)
        if group is None:
            return ()
        return self.rules[group]

    def tier_count(self, customer_group) -> int:
        return len(self.tiers_for(customer_group))

    def tier_index(self, customer_group, tier_name: str) -> Optional[int]:
        """Rank of a tier within its group, 0 being the top tier."""
        for idx, rule in enumerate(self.tiers_for(customer_group)):
            if rule.name == tier_name:
                return idx
        return None

    def resolve_tier(self, customer_group, annual_spend) -> str:
        """Resolve the tier name for a group and annual spend."""
        group = self.normalize_group(customer_group)
        if group is None:
            return UNKNOWN_TIER

        spend = to_float(annual_spend, default=0.0)
        for rule in self.rules[group]:
            if spend >= rule.min_spend:
                return rule.name

        return UNASSIGNED_TIER
