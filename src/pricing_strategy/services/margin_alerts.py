"""
Margin Alerts - Flags tier prices whose margin is near or below the floor.

Net multiplier over cost = markup x tier discount, so the realized margin
of a tier price is 1 - 1 / (markup x discount).
"""
from dataclasses import dataclass
from typing import Iterable, Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.classifier import CategoryClassifier
from ..engine.models import Category, PricingStrategy
from ..engine.price_calculator import PriceCalculator
from ..policy.margin_floor import MarginFloorPolicy
from ..policy.tier_resolver import TierResolver


@dataclass
class MarginAlert:
    """One tier price whose safety buffer over the floor is too thin."""
    group: str
    tier: str
    category: str
    category_group: str
    list_multiplier: float
    tier_multiplier: float
    net_multiplier: float
    realized_margin: float
    floor_margin: float

    @property
    def buffer(self) -> float:
        return self.realized_margin - self.floor_margin


def realized_margin(net_multiplier: float) -> float:
    """Margin over cost for a price of cost x net_multiplier."""
    if net_multiplier <= 0:
        return 0.0
    return 1 - 1 / net_multiplier


class MarginAlertScanner:
    """Scans every group x tier x category for thin margins."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.classifier = CategoryClassifier(self.settings)
        self.calculator = PriceCalculator(self.settings, self.classifier)
        self.tier_resolver = TierResolver(self.settings)
        self.margin_policy = MarginFloorPolicy()

    def scan(self, strategy: PricingStrategy, categories: Iterable[Category]) -> list[MarginAlert]:
        """Alerts with buffer under the alert threshold, thinnest first."""
        names = list(dict.fromkeys(
            str(c.name).strip() for c in categories if c is not None and str(c.name or '').strip()
        ))
        alerts = []

        for group in self.tier_resolver.groups:
            tiers = self.tier_resolver.tiers_for(group)
            for idx, tier in enumerate(tiers):
                for name in names:
                    category_group = self.classifier.classify(name)
                    floor = self.margin_policy.floor(category_group, idx, len(tiers))
                    list_mult = self.calculator.list_multiplier(name, strategy.list_multipliers)
                    tier_mult = self.calculator.discount_multiplier(group, tier.name, name, strategy)
                    net_mult = list_mult * tier_mult

                    alert = MarginAlert(
                        group=group,
                        tier=tier.name,
                        category=name,
                        category_group=category_group,
                        list_multiplier=list_mult,
                        tier_multiplier=tier_mult,
                        net_multiplier=net_mult,
                        realized_margin=realized_margin(net_mult),
                        floor_margin=floor,
                    )
                    if alert.buffer < self.settings.alert_buffer:
                        alerts.append(alert)

        alerts.sort(key=lambda a: a.buffer)
        return alerts

    def recalibrate(self, strategy: PricingStrategy, alert: MarginAlert,
                    target_buffer: Optional[float] = None) -> PricingStrategy:
        """
        New strategy with the alerted tier multiplier lifted so the price
        sits target_buffer (default 3 points) above its margin floor.
        """
        if target_buffer is None:
            target_buffer = self.settings.recalibration_buffer
        target_margin = alert.floor_margin + target_buffer
        if target_margin >= 1:
            return strategy

        target_net = 1 / (1 - target_margin)
        list_mult = self.calculator.list_multiplier(alert.category, strategy.list_multipliers)
        new_value = round(target_net / list_mult, 3)

        return strategy.with_tier_multiplier(alert.group, alert.tier, alert.category, new_value)


def alerts_frame(alerts: list[MarginAlert]) -> pd.DataFrame:
    """Alerts as a DataFrame for reporting views."""
    return pd.DataFrame([
        {
            'group': a.group,
            'tier': a.tier,
            'category': a.category,
            'category_group': a.category_group,
            'tier_multiplier': a.tier_multiplier,
            'net_multiplier': a.net_multiplier,
            'realized_margin': a.realized_margin,
            'floor_margin': a.floor_margin,
            'buffer': a.buffer,
        }
        for a in alerts
    ], columns=[
        'group', 'tier', 'category', 'category_group', 'tier_multiplier',
        'net_multiplier', 'realized_margin', 'floor_margin', 'buffer',
    ])
