"""
Impact Analyzer - Projects customer revenue under a pricing strategy.

Each customer's current spend is split across categories, either by the
customer's own category history or by the global revenue mix, and every
slice is re-priced with markup x tier discount.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Iterable, Optional

import pandas as pd

from ..config.settings import get_settings, Settings, DEFAULT_KEY
from ..engine.models import Customer, PricingStrategy, to_float
from ..engine.price_calculator import PriceCalculator
from ..policy.tier_resolver import TierResolver

logger = logging.getLogger(__name__)

OTHER_GROUP = 'Other'


@dataclass
class CustomerImpact:
    """Current vs projected revenue for one customer."""
    customer_id: str
    name: str
    group: str
    tier: str
    current_revenue: float
    projected_revenue: float

    @property
    def delta(self) -> float:
        return self.projected_revenue - self.current_revenue


@dataclass
class GroupImpact:
    """Revenue totals for one customer group."""
    current: float = 0.0
    projected: float = 0.0
    count: int = 0

    @property
    def delta(self) -> float:
        return self.projected - self.current


@dataclass
class ImpactReport:
    """Projected revenue impact, biggest revenue losses first."""
    customer_impacts: list[CustomerImpact] = field(default_factory=list)
    by_group: dict[str, GroupImpact] = field(default_factory=dict)
    tier_counts: dict[str, int] = field(default_factory=dict)
    total_current_revenue: float = 0.0
    total_projected_revenue: float = 0.0

    @property
    def total_delta(self) -> float:
        return self.total_projected_revenue - self.total_current_revenue

    def to_frame(self) -> pd.DataFrame:
        """Customer impacts as a DataFrame (one row per customer)."""
        rows = [{**asdict(impact), 'delta': impact.delta} for impact in self.customer_impacts]
        return pd.DataFrame(rows, columns=[
            'customer_id', 'name', 'group', 'tier',
            'current_revenue', 'projected_revenue', 'delta',
        ])

    def group_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'group': group,
                'current': totals.current,
                'projected': totals.projected,
                'delta': totals.delta,
                'count': totals.count,
            }
            for group, totals in self.by_group.items()
        ], columns=['group', 'current', 'projected', 'delta', 'count'])


class ImpactAnalyzer:
    """Re-prices every customer's spend under a strategy."""

    def __init__(self, settings: Optional[Settings] = None,
                 calculator: Optional[PriceCalculator] = None,
                 tier_resolver: Optional[TierResolver] = None):
        self.settings = settings or get_settings()
        self.calculator = calculator or PriceCalculator(self.settings)
        self.tier_resolver = tier_resolver or TierResolver(self.settings)

    def _slice_factor(self, strategy: PricingStrategy, group: str, tier: str, key: str) -> float:
        markup = self.calculator.list_multiplier(key, strategy.list_multipliers)
        discount = self.calculator.discount_multiplier(group, tier, key, strategy)
        return markup * discount

    def project(self, customer: Customer, tier: str, strategy: PricingStrategy,
                mix: dict[str, float]) -> float:
        """Projected revenue for one customer."""
        current = to_float(customer.annual_spend)
        group = str(customer.group or '').strip()

        if not mix:
            return current * self._slice_factor(strategy, group, tier, DEFAULT_KEY)

        own_spend = {
            str(k): to_float(v) for k, v in (customer.category_spend or {}).items()
        }
        own_total = sum(own_spend.values())

        projected = 0.0
        for category, share in mix.items():
            if category in own_spend and own_total > 0:
                effective = current * (own_spend[category] / own_total)
            else:
                effective = current * to_float(share)
            projected += effective * self._slice_factor(strategy, group, tier, category)
        return projected

    def analyze(
        self,
        customers: Iterable[Customer],
        strategy: PricingStrategy,
        mix: Optional[dict[str, float]] = None,
    ) -> ImpactReport:
        """Project revenue for every customer and roll up by group and tier."""
        mix = mix or {}
        report = ImpactReport()

        for customer in customers:
            if customer is None:
                continue
            tier = self.tier_resolver.resolve_tier(customer.group, customer.annual_spend)
            group = (
                self.tier_resolver.normalize_group(customer.group)
                or str(customer.group or '').strip()
                or OTHER_GROUP
            )

            impact = CustomerImpact(
                customer_id=customer.id,
                name=customer.name,
                group=group,
                tier=tier,
                current_revenue=to_float(customer.annual_spend),
                projected_revenue=self.project(customer, tier, strategy, mix),
            )
            report.customer_impacts.append(impact)

            totals = report.by_group.setdefault(group, GroupImpact())
            totals.current += impact.current_revenue
            totals.projected += impact.projected_revenue
            totals.count += 1

            report.tier_counts[tier] = report.tier_counts.get(tier, 0) + 1
            report.total_current_revenue += impact.current_revenue
            report.total_projected_revenue += impact.projected_revenue

        report.customer_impacts.sort(key=lambda c: c.delta)

        logger.debug(
            "Impact analysis over %d customers: delta %.2f",
            len(report.customer_impacts), report.total_delta,
        )
        return report
