"""
Price Calculator - List price, net price and margin resolution with traceability.

Both multiplier lookups walk an ordered chain of keys, most specific
first, and always end at a Default entry or a hard constant:

    markup:   Cat:Gauge -> Fasteners:<Type> -> Cat -> Fasteners -> Default -> 1.5
    discount: exact key -> base category -> tier Default -> 1.0
"""
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from ..config.settings import get_settings, Settings
from .classifier import CategoryClassifier
from .models import Category, CategoryKey, PricingStrategy, TraceStep, to_float

KeyLike = Union[CategoryKey, str]

FALLBACK = 'fallback'


@dataclass
class PriceQuote:
    """Prices for one cost at one customer tier."""
    cost: float
    key: str
    customer_group: str
    tier: str
    list_multiplier: float
    list_source: str
    list_price: float
    discount_multiplier: float
    discount_source: str
    net_price: float
    margin: float
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this quote."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


def calculate_margin(price, cost) -> float:
    """Margin = (Price - Cost) / Price, 0 for a zero price."""
    price = to_float(price)
    cost = to_float(cost)
    if price == 0:
        return 0.0
    return (price - cost) / price


def calculate_price_from_margin(cost, target_margin) -> float:
    """Price needed to reach a target margin; the cost itself when target >= 100%."""
    cost = to_float(cost)
    target_margin = to_float(target_margin)
    if target_margin >= 1:
        return cost
    return cost / (1 - target_margin)


def calculate_revenue_impact(old_price, new_price, volume=1) -> float:
    return (to_float(new_price) - to_float(old_price)) * to_float(volume, default=1.0)


def calculate_category_margin(category: Category) -> float:
    """Realized margin of a category from its aggregate revenue and costs."""
    total_cost = to_float(category.material_cost) + to_float(category.labor_cost)
    return calculate_margin(category.revenue or 0, total_cost)


class PriceCalculator:
    """
    Resolves markup and discount multipliers from a pricing strategy.

    Lookups never fail: unknown keys fall through to Default entries and
    finally to the configured hard fallbacks.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 classifier: Optional[CategoryClassifier] = None):
        self.settings = settings or get_settings()
        self.classifier = classifier or CategoryClassifier(self.settings)

    # ------------------------------------------------------------------
    # Markup
    # ------------------------------------------------------------------
    def resolve_list_multiplier(
        self,
        key: KeyLike,
        list_multipliers: Union[Mapping[str, float], PricingStrategy, None],
    ) -> tuple[float, str]:
        """
        Resolve the markup multiplier for a key.

        Returns (multiplier, key that supplied it). Zero or unparsable
        entries are treated as missing.
        """
        if isinstance(list_multipliers, PricingStrategy):
            list_multipliers = list_multipliers.list_multipliers
        table = list_multipliers or {}

        category_key = CategoryKey.coerce(key)
        fastener = self.classifier.fastener_type(category_key.category)

        for candidate in category_key.list_candidates(fastener):
            value = to_float(table.get(candidate), default=0.0)
            if value > 0:
                return value, candidate

        return self.settings.fallback_markup, FALLBACK

    def list_multiplier(self, key: KeyLike, list_multipliers) -> float:
        return self.resolve_list_multiplier(key, list_multipliers)[0]

    def list_price(self, cost, key: KeyLike, list_multipliers) -> float:
        """List price = cost x resolved markup."""
        return to_float(cost) * self.list_multiplier(key, list_multipliers)

    # ------------------------------------------------------------------
    # Discount
    # ------------------------------------------------------------------
    def _tier_entry(self, strategy: PricingStrategy, customer_group, tier_name) -> Optional[dict]:
        groups = strategy.tier_multipliers or {}
        group_key = str(customer_group or '').strip()
        tiers = groups.get(group_key)
        if tiers is None:
            # Tolerate 'dealer' vs 'Dealer'
            for name, candidate in groups.items():
                if name.lower() == group_key.lower():
                    tiers = candidate
                    break
        if not tiers:
            return None
        return tiers.get(tier_name)

    def resolve_discount_multiplier(
        self,
        customer_group,
        tier_name: str,
        key: KeyLike,
        strategy: Union[PricingStrategy, dict],
    ) -> tuple[float, str]:
        """
        Resolve the tier discount multiplier for a key.

        Returns (multiplier, key that supplied it). An explicit 0 is a
        valid entry; only missing keys fall through.
        """
        if not isinstance(strategy, PricingStrategy):
            strategy = PricingStrategy.from_dict(strategy)

        tier_entry = self._tier_entry(strategy, customer_group, tier_name)
        if tier_entry:
            for candidate in CategoryKey.coerce(key).discount_candidates():
                if tier_entry.get(candidate) is not None:
                    return to_float(tier_entry[candidate], self.settings.fallback_discount), candidate

        return self.settings.fallback_discount, FALLBACK

    def discount_multiplier(self, customer_group, tier_name: str, key: KeyLike, strategy) -> float:
        return self.resolve_discount_multiplier(customer_group, tier_name, key, strategy)[0]

    def net_price(self, list_price, customer_group, tier_name: str, key: KeyLike, strategy) -> float:
        """Net price = list price x resolved tier discount multiplier."""
        return to_float(list_price) * self.discount_multiplier(customer_group, tier_name, key, strategy)

    # ------------------------------------------------------------------
    # Margin
    # ------------------------------------------------------------------
    @staticmethod
    def margin(price, cost) -> float:
        return calculate_margin(price, cost)

    def quote(self, cost, customer_group: str, tier_name: str, key: KeyLike,
              strategy: PricingStrategy) -> PriceQuote:
        """Full price derivation for one cost with a trace of every lookup."""
        category_key = CategoryKey.coerce(key)
        cost = to_float(cost)

        list_mult, list_source = self.resolve_list_multiplier(category_key, strategy)
        list_price = cost * list_mult
        discount, discount_source = self.resolve_discount_multiplier(
            customer_group, tier_name, category_key, strategy
        )
        net_price = list_price * discount

        quote = PriceQuote(
            cost=cost,
            key=category_key.wire,
            customer_group=customer_group,
            tier=tier_name,
            list_multiplier=list_mult,
            list_source=list_source,
            list_price=list_price,
            discount_multiplier=discount,
            discount_source=discount_source,
            net_price=net_price,
            margin=calculate_margin(net_price, cost),
        )

        quote.add_trace("Key", f"Resolving {category_key.kind} key", category_key.wire)
        if list_source == FALLBACK:
            quote.add_trace("Markup", "No markup entry, using hard fallback", f"{list_mult:.2f}")
        else:
            quote.add_trace("Markup", f"Using markup from '{list_source}'", f"{list_mult:.2f}")
        quote.add_trace("List Price", f"${cost:.2f} × {list_mult:.2f}", f"${list_price:.2f}")
        if discount_source == FALLBACK:
            quote.add_trace("Discount", f"No {tier_name} entry, no discount applied", f"{discount:.2f}")
        else:
            quote.add_trace("Discount", f"Using {tier_name} multiplier from '{discount_source}'", f"{discount:.2f}")
        quote.add_trace("Net Price", f"${list_price:.2f} × {discount:.2f}", f"${net_price:.2f}")
        quote.add_trace("Margin", "Net margin over cost", f"{quote.margin:.1%}")

        return quote
