import pytest

from pricing_strategy.engine.models import Customer, PricingStrategy
from pricing_strategy.services.impact import ImpactAnalyzer


@pytest.fixture(scope="module")
def analyzer(settings, calculator, resolver):
    return ImpactAnalyzer(settings, calculator, resolver)


@pytest.fixture
def strategy():
    return PricingStrategy.from_dict({
        "listMultipliers": {"Default": 1.5, "FC36": 2.0},
        "tierMultipliers": {
            "Dealer": {"Authorized Gold": {"FC36": 0.5, "Default": 0.6}},
        },
    })


MIX = {"FC36": 0.5, "Clips": 0.5}


def test_projection_uses_global_mix(analyzer, strategy):
    customer = Customer(id="c1", name="Prairie Builders", group="Dealer", annual_spend=300_000)

    # 150k x 2.0 x 0.5 + 150k x 1.5 x 0.6
    assert analyzer.project(customer, "Authorized Gold", strategy, MIX) == pytest.approx(285_000)


def test_projection_prefers_own_category_mix(analyzer, strategy):
    customer = Customer(id="c1", name="Prairie Builders", group="Dealer", annual_spend=300_000,
                        category_spend={"FC36": 100, "Clips": 300})

    assert analyzer.project(customer, "Authorized Gold", strategy, MIX) == pytest.approx(277_500)


def test_projection_without_mix_uses_default_key(analyzer, strategy):
    customer = Customer(id="c1", name="Prairie Builders", group="Dealer", annual_spend=300_000)

    assert analyzer.project(customer, "Authorized Gold", strategy, {}) == pytest.approx(270_000)


def test_analyze_rolls_up_and_sorts(analyzer, strategy):
    customers = [
        Customer(id="c1", name="Walk-in", group="Retail", annual_spend=10_000),
        Customer(id="c2", name="Prairie Builders", group="dealer", annual_spend=300_000),
        Customer(id="c3", name="No Group", group="", annual_spend=0),
    ]
    report = analyzer.analyze(customers, strategy, MIX)

    assert [c.customer_id for c in report.customer_impacts] == ["c2", "c3", "c1"]
    prairie = report.customer_impacts[0]
    assert prairie.group == "Dealer"
    assert prairie.tier == "Authorized Gold"
    assert prairie.delta == pytest.approx(-15_000)

    walk_in = report.customer_impacts[-1]
    assert walk_in.tier == "Unknown"
    assert walk_in.projected_revenue == pytest.approx(17_500)

    assert set(report.by_group) == {"Dealer", "Retail", "Other"}
    assert report.by_group["Dealer"].delta == pytest.approx(-15_000)
    assert report.tier_counts == {"Unknown": 2, "Authorized Gold": 1}
    assert report.total_current_revenue == pytest.approx(310_000)
    assert report.total_delta == pytest.approx(-7_500)


def test_report_frames(analyzer, strategy):
    customers = [Customer(id="c1", name="Prairie Builders", group="Dealer", annual_spend=300_000)]
    report = analyzer.analyze(customers, strategy, MIX)

    frame = report.to_frame()
    assert list(frame.columns) == [
        "customer_id", "name", "group", "tier", "current_revenue", "projected_revenue", "delta",
    ]
    assert frame.loc[0, "delta"] == pytest.approx(-15_000)
    assert report.group_frame().loc[0, "count"] == 1


def test_empty_customer_list(analyzer, strategy):
    report = analyzer.analyze([], strategy, MIX)

    assert report.customer_impacts == []
    assert report.total_delta == 0
    assert report.to_frame().empty
