import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from pricing_strategy.config.settings import get_settings
from pricing_strategy.engine.models import Category, Customer, PricingStrategy, SalesTransaction
from pricing_strategy.engine.price_calculator import PriceCalculator
from pricing_strategy.policy.tier_resolver import TierResolver


DEALER_TIERS = [
    'Authorized Obsidian', 'Authorized Platinum', 'Authorized Diamond',
    'Authorized Gold', 'Authorized Silver', 'Authorized Bronze',
]
COMMERCIAL_TIERS = [
    'Obsidian Partner', 'Platinum Partner', 'Diamond Partner',
    'Gold Partner', 'Silver Partner', 'Bronze Partner',
]


@pytest.fixture(scope="module")
def settings():
    return get_settings()


@pytest.fixture(scope="module")
def calculator(settings):
    return PriceCalculator(settings)


@pytest.fixture(scope="module")
def resolver(settings):
    return TierResolver(settings)


@pytest.fixture
def customers():
    return [
        Customer(id="c1", name="Acme Roofing", group="Dealer", annual_spend=2_500_000),
        Customer(id="c2", name="Prairie Builders", group="Dealer", annual_spend=300_000),
        Customer(id="c3", name="Metro Construction Inc", group="Commercial", annual_spend=600_000),
        Customer(id="c4", name="Walk-in Cash", group="Retail", annual_spend=0),
    ]


@pytest.fixture
def transactions():
    return [
        SalesTransaction(id="t1", customer_name="Acme Roofing", category="FC36", amount=1000, cogs=800),
        SalesTransaction(id="t2", customer_name="ACME ROOFING LLC", category="FC36", amount=500, cogs=400),
        SalesTransaction(id="t3", customer_name="Prairie Builders", category="Clips", amount=200, cogs=100),
        SalesTransaction(id="t4", customer_name="Metro Construction", category="Clips", amount=300, cogs=150),
        SalesTransaction(id="t5", customer_name="Unknown Farm", category="FC36", amount=999, cogs=1),
        SalesTransaction(id="t6", customer_name="Walk-in Cash", category="FC36", amount=50, cogs=40),
    ]


@pytest.fixture
def categories():
    return [
        Category(id="k1", name="FC36"),
        Category(id="k2", name="Clips"),
    ]


@pytest.fixture
def seed_strategy(settings):
    return PricingStrategy.seed(settings)
