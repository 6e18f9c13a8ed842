"""
Pricing Strategy Package

Tiered B2B pricing engine for Customer Service and sales operations.
Resolves Customer → Tier → List Price → Net Price, and calibrates tier
discounts from sales history under margin-floor and tier-ordering policy.
"""

__version__ = "1.0.0"
