"""
Auto Discount Calibrator - Derives the tier discount matrix from sales history.

For every category and customer group:
1. Resolve the category's markup (list multiplier)
2. Baseline for the top tier = realized markup / list markup, taken from
   the top tier's history, else the second tier's, else 0.70
3. Raise the baseline to the margin floor, cap it at 1.0
4. Step down the tiers +0.02 per tier (rolled panels keep the second
   tier flat with the top tier)
5. Round to 2 decimals and clamp into [0, 1.5]

The hierarchy pass then runs over the whole matrix.
"""
import copy
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..config.settings import get_settings, Settings, TierRule
from ..engine.classifier import CategoryClassifier, is_rolled
from ..engine.models import (
    CalibrationReport, Category, Customer, PricingStrategy, SalesTransaction,
)
from ..engine.price_calculator import PriceCalculator
from ..policy.margin_floor import MarginFloorPolicy
from ..policy.tier_resolver import TierResolver
from .hierarchy import HierarchyEnforcer
from .history import HistoricalAggregates, HistoricalAggregator

logger = logging.getLogger(__name__)


@dataclass
class CalibrationResult:
    """A calibrated strategy and the diagnostics of the run that produced it."""
    strategy: PricingStrategy
    report: CalibrationReport
    aggregates: HistoricalAggregates


class AutoDiscountCalibrator:
    """Builds a fully populated discount matrix from historical sales."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.tier_resolver = TierResolver(self.settings)
        self.classifier = CategoryClassifier(self.settings)
        self.calculator = PriceCalculator(self.settings, self.classifier)
        self.margin_policy = MarginFloorPolicy()
        self.aggregator = HistoricalAggregator(self.settings, self.tier_resolver)
        self.enforcer = HierarchyEnforcer(self.settings, self.tier_resolver)

    def baseline(
        self,
        aggregates: HistoricalAggregates,
        customer_group: str,
        tiers: tuple[TierRule, ...],
        category: str,
        list_multiplier: float,
    ) -> tuple[float, Optional[str]]:
        """
        Top-tier multiplier implied by history.

        Returns (baseline, tier the history came from); the tier is None
        when neither of the two top tiers has usable history.
        """
        for tier in tiers[:2]:
            bucket = aggregates.get(customer_group, tier.name, category)
            if bucket is not None and bucket.realized_markup is not None:
                return bucket.realized_markup / list_multiplier, tier.name
        return self.settings.default_baseline, None

    def floor_multiplier(self, category_group: str, tier_count: int, list_multiplier: float) -> float:
        """Lowest top-tier multiplier that still meets the margin floor."""
        floor = self.margin_policy.floor(category_group, 0, tier_count)
        return 1 / (list_multiplier * (1 - floor))

    def build_ladder(self, baseline: float, tier_count: int, rolled: bool) -> list[float]:
        """Multipliers for every tier, top tier first, before rounding."""
        step = self.settings.tier_step
        ladder = []
        for idx in range(tier_count):
            if idx == 0 or (idx == 1 and rolled):
                multiplier = baseline
            else:
                step_count = idx - 1 if rolled else idx
                multiplier = baseline + step_count * step
            ladder.append(min(multiplier, 1.0))
        return ladder

    def _finalize(self, multiplier: float) -> float:
        value = round(multiplier, 2)
        return min(max(value, 0.0), self.settings.calibrated_ceiling)

    def calibrate(
        self,
        strategy: PricingStrategy,
        transactions: Iterable[SalesTransaction],
        customers: Iterable[Customer],
        categories: Iterable[Category],
        aliases: Optional[dict[str, str]] = None,
    ) -> CalibrationResult:
        """Calibrate every category for every customer group."""
        report = CalibrationReport()

        aggregates = self.aggregator.aggregate(transactions, customers, aliases)
        report.metrics.update(aggregates.metrics())
        report.unmatched_names = list(aggregates.unmatched_names)
        report.add_trace("History", "Transactions matched to customers",
                         f"{aggregates.matched_count}/{aggregates.transaction_count}")
        if aggregates.unmatched_count:
            report.add_warning(
                f"{aggregates.unmatched_count} transactions matched no customer "
                f"(${aggregates.unmatched_revenue:,.2f} revenue excluded)"
            )
        if aggregates.ambiguous_names:
            report.add_warning(
                f"{len(aggregates.ambiguous_names)} transaction names matched more than one customer"
            )

        matrix = copy.deepcopy(strategy.tier_multipliers)
        for group in self.tier_resolver.groups:
            group_tiers = matrix.setdefault(group, {})
            for tier in self.tier_resolver.tiers_for(group):
                if not group_tiers.get(tier.name):
                    group_tiers[tier.name] = {}

        names = list(dict.fromkeys(
            str(c.name).strip() for c in categories if c is not None and str(c.name or '').strip()
        ))

        for name in names:
            category_group = self.classifier.classify(name)
            rolled = is_rolled(category_group)
            list_multiplier = self.calculator.list_multiplier(name, strategy.list_multipliers)

            for group in self.tier_resolver.groups:
                tiers = self.tier_resolver.tiers_for(group)
                baseline, source = self.baseline(aggregates, group, tiers, name, list_multiplier)
                if source is None:
                    report.no_history_categories.append(f"{group}/{name}")

                floor_mult = self.floor_multiplier(category_group, len(tiers), list_multiplier)
                if baseline < floor_mult:
                    baseline = floor_mult
                    report.floor_raised.append(f"{group}/{name}")
                baseline = min(baseline, 1.0)

                ladder = self.build_ladder(baseline, len(tiers), rolled)
                for tier, multiplier in zip(tiers, ladder):
                    matrix[group][tier.name][name] = self._finalize(multiplier)

                report.add_trace(
                    "Baseline",
                    f"{group} / {name} from {source or 'default'}",
                    f"{baseline:.3f}",
                )

        report.metrics.update({
            "categories": len(names),
            "calibrated_pairs": len(names) * len(self.tier_resolver.groups),
            "no_history_pairs": len(report.no_history_categories),
            "floor_raised_pairs": len(report.floor_raised),
        })
        if report.no_history_categories:
            report.add_warning(
                f"{len(report.no_history_categories)} group/category pairs had no history; "
                f"default baseline {self.settings.default_baseline:.2f} used"
            )

        calibrated = self.enforcer.enforce(strategy.with_tier_multipliers(matrix), report)
        if report.adjustments:
            report.add_warning(
                f"Hierarchy pass raised {len(report.adjustments)} tier multipliers"
            )

        logger.info(
            "Calibrated %d categories across %d customer groups (%d warnings)",
            len(names), len(self.tier_resolver.groups), len(report.warnings),
        )
        return CalibrationResult(strategy=calibrated, report=report, aggregates=aggregates)


def calculate_auto_discounts(
    strategy: PricingStrategy,
    transactions: Iterable[SalesTransaction],
    customers: Iterable[Customer],
    categories: Iterable[Category],
    aliases: Optional[dict[str, str]] = None,
) -> PricingStrategy:
    """Calibrate with global settings and return only the new strategy."""
    return AutoDiscountCalibrator().calibrate(
        strategy, transactions, customers, categories, aliases
    ).strategy
