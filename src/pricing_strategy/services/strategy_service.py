"""
Strategy Service - Edits, validation and calibration of the pricing strategy.

Holds the current strategy document. Every change produces a new
strategy value that replaces the current one in a single assignment, so
readers never observe a half-applied edit or calibration.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Protocol

from ..config.settings import get_settings, Settings, DEFAULT_KEY
from ..engine.models import (
    Category, CategoryKey, Customer, PricingStrategy, SalesTransaction, to_float,
)
from ..policy.tier_resolver import TierResolver
from .calibration import AutoDiscountCalibrator, CalibrationResult
from .hierarchy import HierarchyEnforcer

logger = logging.getLogger(__name__)

# Tolerance when checking the tier step on stored values
STEP_TOLERANCE = 1e-6


class StrategyStore(Protocol):
    """Persistence for the strategy document, owned by the host application."""

    def load(self) -> Optional[dict]:
        ...

    def save(self, data: dict) -> None:
        ...


class JsonStrategyStore:
    """Keeps the strategy document in a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        with open(self.path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)


@dataclass
class ValidationResult:
    """Result of strategy validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class StrategyService:
    """Service for managing the pricing strategy document."""

    def __init__(self, settings: Optional[Settings] = None,
                 store: Optional[StrategyStore] = None):
        self.settings = settings or get_settings()
        self.store = store
        self.tier_resolver = TierResolver(self.settings)
        self.calibrator = AutoDiscountCalibrator(self.settings)
        self.enforcer = HierarchyEnforcer(self.settings, self.tier_resolver)
        self._lock = threading.RLock()
        self._strategy = PricingStrategy.seed(self.settings)
        self.last_calibration: Optional[CalibrationResult] = None

    @property
    def strategy(self) -> PricingStrategy:
        return self._strategy

    def load(self) -> PricingStrategy:
        """Load from the store, seeding defaults on first use."""
        with self._lock:
            data = self.store.load() if self.store else None
            if data:
                self._strategy = PricingStrategy.from_dict(data)
            else:
                self._strategy = PricingStrategy.seed(self.settings)
            return self._strategy

    def is_seed(self, strategy: Optional[PricingStrategy] = None) -> bool:
        """True when the strategy is still the untouched seed."""
        strategy = strategy or self._strategy
        return strategy == PricingStrategy.seed(self.settings)

    def save(self) -> bool:
        """Persist the current strategy; the untouched seed is not written."""
        with self._lock:
            if self.store is None or self.is_seed():
                return False
            self.store.save(self._strategy.to_dict())
            return True

    def replace(self, strategy: PricingStrategy) -> PricingStrategy:
        with self._lock:
            self._strategy = strategy
            return strategy

    def reset(self) -> PricingStrategy:
        return self.replace(PricingStrategy.seed(self.settings))

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_value(value) -> float:
        number = to_float(value, default=-1.0)
        if number < 0:
            raise ValueError(f"Multiplier must be a non-negative number, got {value!r}")
        return number

    def set_list_multiplier(self, key, value) -> PricingStrategy:
        """Set the markup for a category, variant or fastener sub-type key."""
        number = self._parse_value(value)
        with self._lock:
            self._strategy = self._strategy.with_list_multiplier(CategoryKey.coerce(key), number)
            return self._strategy

    def set_default_markup(self, value) -> PricingStrategy:
        """Sync the global markup setting into the Default entry."""
        return self.set_list_multiplier(DEFAULT_KEY, value)

    def set_tier_multiplier(self, customer_group, tier_name: str, key, value) -> PricingStrategy:
        """Set one tier discount multiplier."""
        number = self._parse_value(value)
        group = self.tier_resolver.normalize_group(customer_group)
        if group is None:
            raise ValueError(f"Unknown customer group '{customer_group}'")
        if self.tier_resolver.tier_index(group, tier_name) is None:
            raise ValueError(f"Tier '{tier_name}' not found for group '{group}'")

        with self._lock:
            self._strategy = self._strategy.with_tier_multiplier(
                group, tier_name, CategoryKey.coerce(key), number
            )
            return self._strategy

    def enforce_hierarchy(self) -> PricingStrategy:
        with self._lock:
            self._strategy = self.enforcer.enforce(self._strategy)
            return self._strategy

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------
    def calibrate(
        self,
        transactions: Iterable[SalesTransaction],
        customers: Iterable[Customer],
        categories: Iterable[Category],
        aliases: Optional[dict[str, str]] = None,
        auto_save: bool = True,
    ) -> CalibrationResult:
        """
        Replace the whole discount matrix from sales history.

        Overlapping calls are serialized; the current strategy is swapped
        only once the full pass has finished.
        """
        transactions = list(transactions)
        if not transactions:
            raise ValueError("No sales data available to analyze")

        with self._lock:
            result = self.calibrator.calibrate(
                self._strategy, transactions, customers, categories, aliases
            )
            self._strategy = result.strategy
            self.last_calibration = result
            if auto_save:
                self.save()

        logger.info("Strategy replaced by calibration: %s", result.report.metrics)
        return result

    # ------------------------------------------------------------------
    # Validation and stats
    # ------------------------------------------------------------------
    def validate(self, strategy: Optional[PricingStrategy] = None) -> ValidationResult:
        """Check a strategy for negative values, tier inversions and unknown tiers."""
        strategy = strategy or self._strategy
        result = ValidationResult(valid=True)
        step = self.settings.tier_step

        for key, value in strategy.list_multipliers.items():
            if value <= 0:
                result.errors.append(f"Markup for '{key}' must be positive ({value})")
                result.valid = False
        if DEFAULT_KEY not in strategy.list_multipliers:
            result.warnings.append(
                f"No Default markup; hard fallback {self.settings.fallback_markup} applies"
            )

        for group, tiers in strategy.tier_multipliers.items():
            canonical = self.tier_resolver.normalize_group(group)
            if canonical is None:
                result.warnings.append(f"Customer group '{group}' has no tier table")
                continue

            known = {t.name for t in self.tier_resolver.tiers_for(canonical)}
            for tier_name, entries in tiers.items():
                if tier_name not in known:
                    result.warnings.append(f"Tier '{tier_name}' is not defined for {canonical}")
                for key, value in (entries or {}).items():
                    if value < 0:
                        result.errors.append(f"{canonical}/{tier_name}/{key} is negative ({value})")
                        result.valid = False
                    elif value > 1.0:
                        result.warnings.append(
                            f"{canonical}/{tier_name}/{key} is above list price ({value})"
                        )

            result.warnings.extend(self._check_inversions(canonical, tiers, step))

        return result

    def _check_inversions(self, group: str, tiers: dict, step: float) -> list[str]:
        warnings = []
        ladder = self.tier_resolver.tiers_for(group)
        keys = {key for entries in tiers.values() for key in (entries or {})}

        for key in sorted(keys):
            for upper, lower in zip(ladder, ladder[1:]):
                upper_value = (tiers.get(upper.name) or {}).get(key)
                lower_value = (tiers.get(lower.name) or {}).get(key)
                if upper_value is None or lower_value is None:
                    continue
                required = min(upper_value + step, 1.0)
                if lower_value < required - STEP_TOLERANCE:
                    warnings.append(
                        f"Tier inversion for {group}/{key}: {lower.name} ({lower_value}) "
                        f"should be at least {required:.2f} after {upper.name} ({upper_value})"
                    )
        return warnings

    def get_stats(self) -> dict:
        """Get statistics about the current strategy."""
        strategy = self._strategy
        by_group = {}
        for group, tiers in strategy.tier_multipliers.items():
            by_group[group] = sum(len(entries or {}) for entries in tiers.values())

        variant_keys = [
            k for k in strategy.list_multipliers
            if CategoryKey.parse(k).kind != 'category'
        ]
        return {
            'list_multipliers': len(strategy.list_multipliers),
            'variant_markups': len(variant_keys),
            'tier_entries_by_group': by_group,
            'is_seed': self.is_seed(strategy),
        }
