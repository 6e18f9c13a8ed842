"""
Hierarchy Enforcer - Guarantees that a higher tier never pays more than a lower one.

For every customer group and every category key in its matrix the
discount multipliers must rise by at least one tier step (0.02) from the
top tier down, capped at 1.0 (no discount).
"""
import copy
import logging
import math
from typing import Optional

from ..config.settings import get_settings, Settings
from ..engine.models import Adjustment, CalibrationReport, PricingStrategy, to_float
from ..policy.tier_resolver import TierResolver

logger = logging.getLogger(__name__)

CEILING = 1.0
DECIMALS = 3


def step_up(previous: float, step: float) -> float:
    """
    Smallest 3-decimal value at least previous + step, capped at 1.0.

    Rounds up so that 0.8333 + 0.02 gives 0.854, never 0.853.
    """
    scale = 10 ** DECIMALS
    # Re-round the scaled sum first so float noise (0.83 + 0.02) does not tip ceil
    scaled = math.ceil(round((previous + step) * scale, 6))
    return min(scaled / scale, CEILING)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), CEILING)


class HierarchyEnforcer:
    """
    Post-processes a discount matrix into a monotonic ladder.

    Missing entries are treated as 1.0 and written back, so every key
    present in any tier of a group ends up present in all of them.
    Tiers that are not in the group's tier table do not take part in the
    ladder; their values are only clamped into [0, 1].
    Running the pass on its own output changes nothing.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 tier_resolver: Optional[TierResolver] = None):
        self.settings = settings or get_settings()
        self.tier_resolver = tier_resolver or TierResolver(self.settings)

    def _record(self, report, group, tier_name, key, original, value):
        if report is not None:
            report.adjustments.append(
                Adjustment(group, tier_name, key, to_float(original, CEILING), value)
            )

    def enforce(self, strategy: PricingStrategy,
                report: Optional[CalibrationReport] = None) -> PricingStrategy:
        """Return a new strategy with the tier hierarchy enforced."""
        matrix = copy.deepcopy(strategy.tier_multipliers)
        step = self.settings.tier_step
        raised = 0

        for group in self.tier_resolver.groups:
            group_tiers = matrix.get(group) or {}
            tiers = self.tier_resolver.tiers_for(group)
            known = {tier.name for tier in tiers}

            for tier_name, entries in group_tiers.items():
                if tier_name in known or not entries:
                    continue
                for key, original in entries.items():
                    current = _clamp(to_float(original, default=CEILING))
                    if current != original:
                        raised += 1
                        self._record(report, group, tier_name, key, original, current)
                    entries[key] = current

            keys: dict[str, None] = {}
            for tier in tiers:
                for key in group_tiers.get(tier.name) or {}:
                    keys[key] = None
            if not keys:
                continue

            matrix[group] = group_tiers

            for key in keys:
                previous = None
                for tier in tiers:
                    entries = group_tiers.setdefault(tier.name, {})
                    if entries is None:
                        entries = group_tiers[tier.name] = {}
                    original = entries.get(key)
                    current = to_float(original, default=CEILING) if original is not None else CEILING

                    if previous is None:
                        current = _clamp(current)
                    else:
                        minimum = step_up(previous, step)
                        if current < minimum:
                            current = minimum
                        current = min(current, CEILING)

                    if original is not None and current != original:
                        raised += 1
                        self._record(report, group, tier.name, key, original, current)

                    entries[key] = current
                    previous = current

        if raised:
            logger.debug("Hierarchy pass adjusted %d tier multipliers", raised)
        if report is not None:
            report.metrics['hierarchy_adjustments'] = len(report.adjustments)

        return strategy.with_tier_multipliers(matrix)


def enforce_tier_hierarchy(strategy: PricingStrategy) -> PricingStrategy:
    return HierarchyEnforcer().enforce(strategy)
