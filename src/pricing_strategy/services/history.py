"""
Historical Aggregator - Buckets sales history by customer group, tier and category.

Transactions are linked to customers through the NameMatcher. The tier
used for a bucket comes from the customer's *current* annual spend: no
point-in-time spend ledger exists, so history is classified by today's
tier.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.models import Customer, SalesTransaction, to_float
from ..engine.name_matcher import NameMatcher
from ..policy.tier_resolver import TierResolver

logger = logging.getLogger(__name__)

BUCKET_COLUMNS = ['customer_group', 'tier', 'category']
MATCHED_COLUMNS = [
    'transaction_id', 'customer_id', 'customer_name', 'customer_group', 'tier',
    'category', 'revenue', 'cogs', 'match_rule',
]


@dataclass
class BucketTotals:
    """Summed revenue and cost of goods for one bucket."""
    revenue: float = 0.0
    cogs: float = 0.0

    @property
    def profit(self) -> float:
        return self.revenue - self.cogs

    @property
    def realized_markup(self) -> Optional[float]:
        """Revenue / COGS, or None when there is no cost to divide by."""
        if self.cogs <= 0:
            return None
        return self.revenue / self.cogs


@dataclass
class CustomerStats:
    """Actual sales performance for one customer."""
    revenue: float
    cogs: float
    profit: float
    margin: float


@dataclass
class HistoricalAggregates:
    """Result of aggregating sales history, with matching diagnostics."""
    buckets: pd.DataFrame
    matched: pd.DataFrame
    transaction_count: int = 0
    unmatched_count: int = 0
    unmatched_revenue: float = 0.0
    unmatched_names: list[str] = field(default_factory=list)
    ambiguous_names: list[str] = field(default_factory=list)
    excluded_group_count: int = 0

    def __post_init__(self):
        self._lookup = {
            (row.customer_group, row.tier, row.category): BucketTotals(float(row.revenue), float(row.cogs))
            for row in self.buckets.itertuples(index=False)
        }

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    def get(self, customer_group: str, tier: str, category: str) -> Optional[BucketTotals]:
        """Totals for one bucket, or None when no history landed there."""
        return self._lookup.get((customer_group, tier, str(category or '').strip()))

    def to_frame(self) -> pd.DataFrame:
        return self.buckets.copy()

    def metrics(self) -> dict:
        return {
            "transactions": self.transaction_count,
            "matched_transactions": self.matched_count,
            "unmatched_transactions": self.unmatched_count,
            "unmatched_revenue": round(self.unmatched_revenue, 2),
            "ambiguous_matches": len(self.ambiguous_names),
            "excluded_group_transactions": self.excluded_group_count,
            "buckets": len(self.buckets),
        }


class HistoricalAggregator:
    """Sums revenue and COGS per (customer group, tier, category)."""

    def __init__(self, settings: Optional[Settings] = None,
                 tier_resolver: Optional[TierResolver] = None):
        self.settings = settings or get_settings()
        self.tier_resolver = tier_resolver or TierResolver(self.settings)

    def aggregate(
        self,
        transactions: Iterable[SalesTransaction],
        customers: Iterable[Customer],
        aliases: Optional[dict[str, str]] = None,
    ) -> HistoricalAggregates:
        """
        Aggregate transactions into buckets.

        Unmatched names and customers outside the tiered groups are left
        out of the buckets and only counted.
        """
        matcher = NameMatcher(customers, aliases)

        rows = []
        transaction_count = 0
        unmatched_count = 0
        unmatched_revenue = 0.0
        unmatched_names: dict[str, None] = {}
        ambiguous_names: dict[str, None] = {}

        for tx in transactions:
            if tx is None:
                continue
            transaction_count += 1
            amount = to_float(tx.amount)
            match = matcher.match(tx.customer_name)

            if match is None:
                unmatched_count += 1
                unmatched_revenue += amount
                unmatched_names[str(tx.customer_name or '').strip()] = None
                continue

            if match.ambiguous:
                ambiguous_names[match.effective_name] = None

            customer = match.customer
            group = self.tier_resolver.normalize_group(customer.group)
            tier = self.tier_resolver.resolve_tier(group, customer.annual_spend) if group else None

            rows.append({
                'transaction_id': tx.id,
                'customer_id': customer.id,
                'customer_name': customer.name,
                'customer_group': group,
                'tier': tier,
                'category': str(tx.category or '').strip(),
                'revenue': amount,
                'cogs': to_float(tx.cogs),
                'match_rule': match.rule,
            })

        matched = pd.DataFrame(rows, columns=MATCHED_COLUMNS)
        tiered = matched[matched['customer_group'].notna()]
        excluded_group_count = len(matched) - len(tiered)

        if tiered.empty:
            buckets = pd.DataFrame(columns=BUCKET_COLUMNS + ['revenue', 'cogs'])
        else:
            buckets = (
                tiered.groupby(BUCKET_COLUMNS, as_index=False)[['revenue', 'cogs']]
                .sum()
            )

        if unmatched_count:
            logger.debug(
                "%d of %d transactions matched no customer (%.2f revenue)",
                unmatched_count, transaction_count, unmatched_revenue,
            )

        return HistoricalAggregates(
            buckets=buckets,
            matched=matched,
            transaction_count=transaction_count,
            unmatched_count=unmatched_count,
            unmatched_revenue=unmatched_revenue,
            unmatched_names=list(unmatched_names),
            ambiguous_names=list(ambiguous_names),
            excluded_group_count=excluded_group_count,
        )

    def customer_stats(
        self,
        customers: Iterable[Customer],
        transactions: Iterable[SalesTransaction],
        aliases: Optional[dict[str, str]] = None,
    ) -> dict[str, CustomerStats]:
        """
        Actual revenue, COGS and margin per customer id.

        A customer with no matched history falls back to their annual
        spend as revenue with no known cost.
        """
        customers = [c for c in customers if c is not None]
        aggregates = self.aggregate(transactions, customers, aliases)
        totals = aggregates.matched.groupby('customer_id')[['revenue', 'cogs']].sum()

        stats = {}
        for customer in customers:
            revenue = cogs = 0.0
            if customer.id in totals.index:
                revenue = float(totals.at[customer.id, 'revenue'])
                cogs = float(totals.at[customer.id, 'cogs'])

            annual_spend = to_float(customer.annual_spend)
            if revenue == 0 and annual_spend > 0:
                revenue = annual_spend

            margin = (revenue - cogs) / revenue if revenue > 0 else 0.0
            stats[customer.id] = CustomerStats(
                revenue=revenue,
                cogs=cogs,
                profit=revenue - cogs,
                margin=margin,
            )
        return stats


def category_revenue_mix(transactions: Iterable[SalesTransaction]) -> dict[str, float]:
    """Share of total revenue per category name (empty when there is no revenue)."""
    frame = pd.DataFrame(
        [
            {'category': str(tx.category or '').strip(), 'revenue': to_float(tx.amount)}
            for tx in transactions
            if tx is not None
        ],
        columns=['category', 'revenue'],
    )
    frame = frame[frame['category'] != '']
    total = frame['revenue'].sum()
    if frame.empty or total <= 0:
        return {}

    by_category = frame.groupby('category')['revenue'].sum()
    return {category: float(revenue / total) for category, revenue in by_category.items()}
