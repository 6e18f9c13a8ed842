import pytest

from pricing_strategy.engine.models import SalesTransaction
from pricing_strategy.services.history import (
    BucketTotals, HistoricalAggregator, category_revenue_mix,
)


@pytest.fixture
def aggregator(settings, resolver):
    return HistoricalAggregator(settings, resolver)


def test_buckets_by_group_tier_and_category(aggregator, transactions, customers):
    aggregates = aggregator.aggregate(transactions, customers)

    acme = aggregates.get("Dealer", "Authorized Obsidian", "FC36")
    assert acme.revenue == pytest.approx(1500)
    assert acme.cogs == pytest.approx(1200)
    assert acme.realized_markup == pytest.approx(1.25)

    assert aggregates.get("Dealer", "Authorized Gold", "Clips").revenue == pytest.approx(200)
    assert aggregates.get("Commercial", "Gold Partner", "Clips").cogs == pytest.approx(150)
    assert aggregates.get("Dealer", "Authorized Gold", "FC36") is None
    assert len(aggregates.to_frame()) == 3


def test_unmatched_and_excluded_are_counted(aggregator, transactions, customers):
    aggregates = aggregator.aggregate(transactions, customers)

    assert aggregates.transaction_count == 6
    assert aggregates.matched_count == 5
    assert aggregates.unmatched_count == 1
    assert aggregates.unmatched_revenue == pytest.approx(999)
    assert aggregates.unmatched_names == ["Unknown Farm"]
    assert aggregates.excluded_group_count == 1

    metrics = aggregates.metrics()
    assert metrics["unmatched_transactions"] == 1
    assert metrics["excluded_group_transactions"] == 1
    assert metrics["buckets"] == 3


def test_match_rules_are_recorded(aggregator, transactions, customers):
    matched = aggregator.aggregate(transactions, customers).matched.set_index("transaction_id")

    assert matched.at["t1", "match_rule"] == "exact"
    assert matched.at["t2", "match_rule"] == "suffix"
    assert matched.at["t4", "customer_id"] == "c3"


def test_bucket_uses_current_spend_tier(aggregator, transactions, customers):
    customers[0].annual_spend = 60_000
    aggregates = aggregator.aggregate(transactions, customers)

    assert aggregates.get("Dealer", "Authorized Obsidian", "FC36") is None
    assert aggregates.get("Dealer", "Authorized Silver", "FC36").revenue == pytest.approx(1500)


def test_aliases_link_renamed_accounts(aggregator, customers):
    transactions = [SalesTransaction(id="a", customer_name="PB #7", category="Clips", amount=10, cogs=5)]

    without = aggregator.aggregate(transactions, customers)
    with_alias = aggregator.aggregate(transactions, customers, {"PB #7": "Prairie Builders"})

    assert without.unmatched_count == 1
    assert with_alias.get("Dealer", "Authorized Gold", "Clips").revenue == pytest.approx(10)


def test_empty_history(aggregator, customers):
    aggregates = aggregator.aggregate([], customers)

    assert aggregates.transaction_count == 0
    assert aggregates.get("Dealer", "Authorized Obsidian", "FC36") is None
    assert aggregates.buckets.empty


def test_realized_markup_needs_cost():
    assert BucketTotals(revenue=100, cogs=0).realized_markup is None
    assert BucketTotals(revenue=100, cogs=80).profit == pytest.approx(20)


def test_customer_stats(aggregator, customers, transactions):
    stats = aggregator.customer_stats(customers, transactions)

    assert stats["c1"].revenue == pytest.approx(1500)
    assert stats["c1"].margin == pytest.approx(0.2)
    assert stats["c4"].profit == pytest.approx(10)


def test_customer_stats_falls_back_to_annual_spend(aggregator, customers):
    stats = aggregator.customer_stats(customers, [])

    assert stats["c2"].revenue == pytest.approx(300_000)
    assert stats["c2"].cogs == 0
    assert stats["c2"].margin == pytest.approx(1.0)
    assert stats["c4"].margin == 0.0


def test_category_revenue_mix():
    transactions = [
        SalesTransaction(id="1", customer_name="A", category="FC36", amount=500),
        SalesTransaction(id="2", customer_name="B", category="FC36", amount=250),
        SalesTransaction(id="3", customer_name="C", category="Clips", amount=250),
        SalesTransaction(id="4", customer_name="D", category="", amount=1000),
    ]
    mix = category_revenue_mix(transactions)

    assert mix == pytest.approx({"Clips": 0.25, "FC36": 0.75})


def test_category_revenue_mix_without_revenue():
    assert category_revenue_mix([]) == {}
    assert category_revenue_mix([SalesTransaction(id="1", customer_name="A", category="FC36")]) == {}
