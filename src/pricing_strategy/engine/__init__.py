"""Engine subpackage - core pricing models and multiplier resolution."""
from .price_calculator import PriceCalculator, PriceQuote
from .models import (
    Category, Customer, SalesTransaction, CategoryKey, PricingStrategy, CalibrationReport,
)

__all__ = [
    'PriceCalculator', 'PriceQuote', 'Category', 'Customer', 'SalesTransaction',
    'CategoryKey', 'PricingStrategy', 'CalibrationReport',
]
