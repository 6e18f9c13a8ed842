"""
Data models for the pricing strategy engine.

Uses dataclasses for structured, type-safe data representation.
Record types mirror what the persistence layer hands over; the
PricingStrategy is the document the engine produces and consumes.
"""
import copy
import math
from dataclasses import dataclass, field
from typing import Optional, Union

from ..config.settings import DEFAULT_KEY, FASTENERS


def to_float(value, default: float = 0.0) -> float:
    """Coerce loosely formatted numeric input, falling back to a default."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(',', '').replace('$', '')
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


@dataclass
class TraceStep:
    """A single step in a resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class Category:
    """A product category with its aggregate revenue and costs."""
    id: str
    name: str
    revenue: float = 0.0
    material_cost: float = 0.0
    labor_percent: Optional[float] = None
    labor_cost: Optional[float] = None

    @property
    def group(self) -> str:
        """Category group, derived from the name on every access."""
        from .classifier import get_category_group
        return get_category_group(self.name)


@dataclass
class Customer:
    """A customer account. annual_spend is a maintained goal figure."""
    id: str
    name: str
    group: str
    territory: Optional[str] = None
    annual_spend: float = 0.0
    category_spend: Optional[dict[str, float]] = None


@dataclass
class SalesTransaction:
    """A historical sale; names are free-text snapshots, not foreign keys."""
    id: str
    customer_name: str
    category: str
    amount: float = 0.0
    cogs: float = 0.0
    date: Optional[str] = None


@dataclass(frozen=True)
class CategoryKey:
    """
    Key into the multiplier tables.

    Three shapes exist on the wire:
      "FC36"               plain category
      "FC36:29"            gauge variant of a category
      "Fasteners:Type S"   fastener sub-type under the Fasteners group
    """
    category: str
    gauge: Optional[str] = None
    subtype: Optional[str] = None

    @classmethod
    def parse(cls, raw) -> 'CategoryKey':
        """Parse a wire key. The first ':' separates base from qualifier."""
        text = str(raw or '').strip()
        if ':' not in text:
            return cls(category=text)

        base, qualifier = (part.strip() for part in text.split(':', 1))
        if not qualifier:
            return cls(category=base)
        if base == FASTENERS:
            return cls(category=FASTENERS, subtype=qualifier)
        return cls(category=base, gauge=qualifier)

    @classmethod
    def coerce(cls, key: Union['CategoryKey', str]) -> 'CategoryKey':
        if isinstance(key, CategoryKey):
            return key
        return cls.parse(key)

    @property
    def kind(self) -> str:
        if self.gauge:
            return 'variant'
        if self.subtype:
            return 'subtype'
        return 'category'

    @property
    def wire(self) -> str:
        """String form used inside the strategy document."""
        if self.gauge:
            return f"{self.category}:{self.gauge}"
        if self.subtype:
            return f"{FASTENERS}:{self.subtype}"
        return self.category

    @property
    def base(self) -> str:
        """The key with its qualifier dropped."""
        return FASTENERS if self.subtype else self.category

    def list_candidates(self, fastener_type: Optional[str] = None) -> list[str]:
        """
        Markup lookup order, most specific first.

        fastener_type is the sub-type detected from the category name;
        explicit sub-type keys carry their own.
        """
        fastener = self.subtype or fastener_type
        candidates = []
        if self.gauge:
            candidates.append(f"{self.category}:{self.gauge}")
        if fastener:
            candidates.append(f"{FASTENERS}:{fastener}")
        candidates.append(self.base)
        if fastener:
            candidates.append(FASTENERS)
        candidates.append(DEFAULT_KEY)
        return list(dict.fromkeys(candidates))

    def discount_candidates(self) -> list[str]:
        """Discount lookup order: exact key, base category, tier Default."""
        candidates = [self.wire]
        if self.kind != 'category':
            candidates.append(self.base)
        candidates.append(DEFAULT_KEY)
        return list(dict.fromkeys(candidates))

    def __str__(self) -> str:
        return self.wire


TierMatrix = dict[str, dict[str, dict[str, float]]]


@dataclass(frozen=True)
class PricingStrategy:
    """
    Markup and discount multipliers.

    Treated as a value: every transformation returns a new strategy
    built from a deep copy, the original is never modified.
    """
    list_multipliers: dict[str, float] = field(default_factory=dict)
    tier_multipliers: TierMatrix = field(default_factory=dict)

    @classmethod
    def seed(cls, settings=None) -> 'PricingStrategy':
        """The strategy used on first use, before any edits."""
        from ..config.settings import get_settings
        settings = settings or get_settings()
        return cls(
            list_multipliers=dict(settings.seed_list_multipliers),
            tier_multipliers={group: {} for group in settings.tier_rules},
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PricingStrategy':
        """Build from the wire shape, dropping values that are not numbers."""
        data = data or {}
        list_multipliers = {}
        for key, value in (data.get('listMultipliers') or {}).items():
            number = to_float(value, default=math.nan)
            if not math.isnan(number):
                list_multipliers[str(key)] = number

        tier_multipliers: TierMatrix = {}
        for group, tiers in (data.get('tierMultipliers') or {}).items():
            tier_multipliers[str(group)] = {}
            for tier, entries in (tiers or {}).items():
                tier_map = {}
                for key, value in (entries or {}).items():
                    number = to_float(value, default=math.nan)
                    if not math.isnan(number):
                        tier_map[str(key)] = number
                tier_multipliers[str(group)][str(tier)] = tier_map

        return cls(list_multipliers=list_multipliers, tier_multipliers=tier_multipliers)

    def to_dict(self) -> dict:
        """Convert to the wire shape shared with the persistence layer."""
        return {
            'listMultipliers': dict(self.list_multipliers),
            'tierMultipliers': copy.deepcopy(self.tier_multipliers),
        }

    def tier_entry(self, group: str, tier: str) -> dict[str, float]:
        """Read-only view of one tier's discount entries (empty when missing)."""
        return (self.tier_multipliers.get(group) or {}).get(tier) or {}

    def with_list_multiplier(self, key, value: float) -> 'PricingStrategy':
        list_multipliers = dict(self.list_multipliers)
        list_multipliers[CategoryKey.coerce(key).wire] = value
        return PricingStrategy(
            list_multipliers=list_multipliers,
            tier_multipliers=copy.deepcopy(self.tier_multipliers),
        )

    def with_tier_multiplier(self, group: str, tier: str, key, value: float) -> 'PricingStrategy':
        tier_multipliers = copy.deepcopy(self.tier_multipliers)
        tier_multipliers.setdefault(group, {}).setdefault(tier, {})[CategoryKey.coerce(key).wire] = value
        return PricingStrategy(
            list_multipliers=dict(self.list_multipliers),
            tier_multipliers=tier_multipliers,
        )

    def with_tier_multipliers(self, tier_multipliers: TierMatrix) -> 'PricingStrategy':
        """Replace the whole discount matrix."""
        return PricingStrategy(
            list_multipliers=dict(self.list_multipliers),
            tier_multipliers=copy.deepcopy(tier_multipliers),
        )


@dataclass
class Adjustment:
    """A discount value the hierarchy pass had to change."""
    group: str
    tier: str
    key: str
    before: Optional[float]
    after: float


@dataclass
class CalibrationReport:
    """Diagnostics collected while calibrating a strategy."""
    metrics: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    adjustments: list[Adjustment] = field(default_factory=list)
    unmatched_names: list[str] = field(default_factory=list)
    no_history_categories: list[str] = field(default_factory=list)
    floor_raised: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the report trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a warning, ignoring duplicates."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "metrics": dict(self.metrics),
            "warnings": list(self.warnings),
            "unmatched_names": list(self.unmatched_names),
            "no_history_categories": list(self.no_history_categories),
            "floor_raised": list(self.floor_raised),
            "hierarchy_adjustments": [
                {
                    "group": a.group,
                    "tier": a.tier,
                    "key": a.key,
                    "before": a.before,
                    "after": a.after,
                }
                for a in self.adjustments
            ],
        }
