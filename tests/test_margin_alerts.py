import pytest

from pricing_strategy.engine.models import Category
from pricing_strategy.services.margin_alerts import (
    MarginAlertScanner, alerts_frame, realized_margin,
)


@pytest.fixture(scope="module")
def scanner(settings):
    return MarginAlertScanner(settings)


@pytest.fixture
def strategy(seed_strategy):
    return seed_strategy.with_tier_multiplier("Dealer", "Authorized Obsidian", "FC36", 0.78)


def test_realized_margin():
    assert realized_margin(1.25) == pytest.approx(0.2)
    assert realized_margin(0) == 0.0


def test_scan_flags_thin_margins_only(scanner, strategy):
    alerts = scanner.scan(strategy, [Category(id="1", name="FC36")])

    assert len(alerts) == 1
    alert = alerts[0]
    assert (alert.group, alert.tier, alert.category) == ("Dealer", "Authorized Obsidian", "FC36")
    assert alert.net_multiplier == pytest.approx(1.17)
    assert alert.floor_margin == 0.20
    assert alert.buffer == pytest.approx(1 - 1 / 1.17 - 0.20)


def test_scan_sorts_thinnest_first(scanner, strategy):
    strategy = strategy.with_tier_multiplier("Dealer", "Authorized Platinum", "FC36", 0.70)
    alerts = scanner.scan(strategy, [Category(id="1", name="FC36")])

    assert [a.tier for a in alerts] == ["Authorized Platinum", "Authorized Obsidian"]
    assert alerts[0].buffer < 0


def test_parts_floor_applies(scanner, seed_strategy):
    # 1.5 markup without discount is a 33% margin, under the 40% parts floor
    alerts = scanner.scan(seed_strategy, [Category(id="1", name="Clips")])

    assert len(alerts) == 12
    assert {a.category_group for a in alerts} == {"Parts"}


def test_recalibrate_lifts_multiplier_above_floor(scanner, strategy):
    categories = [Category(id="1", name="FC36")]
    alert = scanner.scan(strategy, categories)[0]

    fixed = scanner.recalibrate(strategy, alert)

    assert fixed.tier_entry("Dealer", "Authorized Obsidian")["FC36"] == 0.866
    assert scanner.scan(fixed, categories) == []
    assert strategy.tier_entry("Dealer", "Authorized Obsidian")["FC36"] == 0.78


def test_alerts_frame(scanner, strategy):
    frame = alerts_frame(scanner.scan(strategy, [Category(id="1", name="FC36")]))

    assert len(frame) == 1
    assert frame.loc[0, "tier_multiplier"] == pytest.approx(0.78)
    assert alerts_frame([]).empty
