"""
Centralized settings, pricing policy tables and path configuration.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


# Customer groups that carry a tier table
DEALER = 'Dealer'
COMMERCIAL = 'Commercial'

# Category groups
LARGE_ROLLED_PANEL = 'Large Rolled Panel'
SMALL_ROLLED_PANELS = 'Small Rolled Panels'
CLADDING_SERIES = 'Cladding Series'
FASTENERS = 'Fasteners'
PARTS = 'Parts'

DEFAULT_KEY = 'Default'


@dataclass(frozen=True)
class TierRule:
    """A named tier and the minimum annual spend that qualifies for it."""
    name: str
    min_spend: float


DEFAULT_TIER_RULES: dict[str, tuple[TierRule, ...]] = {
    DEALER: (
        TierRule('Authorized Obsidian', 2_000_000),
        TierRule('Authorized Platinum', 1_000_000),
        TierRule('Authorized Diamond', 500_000),
        TierRule('Authorized Gold', 225_000),
        TierRule('Authorized Silver', 50_000),
        TierRule('Authorized Bronze', 0),
    ),
    COMMERCIAL: (
        TierRule('Obsidian Partner', 4_000_000),
        TierRule('Platinum Partner', 2_000_000),
        TierRule('Diamond Partner', 1_000_000),
        TierRule('Gold Partner', 500_000),
        TierRule('Silver Partner', 150_000),
        TierRule('Bronze Partner', 0),
    ),
}

DEFAULT_CATEGORY_GROUPS: dict[str, tuple[str, ...]] = {
    LARGE_ROLLED_PANEL: (
        'FC36', 'FR', 'I9', 'II6', '32 7/8" Corrugated', '37 7/8 Corrugated', 'FA',
    ),
    SMALL_ROLLED_PANELS: (
        '1 1/2" Mechanical Loc', '1" Nail Strip 11 3/4"', '1" Nail Strip 16"',
        '1" Nail Strip 17 1/2"', '1" Nail Strip 18"', '1 1/2" Clip Loc',
        '1 1/2" Nail Strip 12 1/8"', '1 1/2" Nail Strip 16"', '8" Inter Loc',
        '12" Interloc', '12" Forma Loc', '16" Forma Loc', '17" Forma Loc',
        '10" Forma Batten', '12 3/8" Forma Batten', '7 1/5" Inter Loc',
    ),
    CLADDING_SERIES: (
        '13 1/2" Board & Batten', '9 3/4" Board & Batten', 'Expand Modular', 'ShipLap',
        '5.2" Box Rib', '6" Box Rib', '6" Box Rib Reverse', '7.2 " Box Rib',
        '6 1/4" Forma Plank', '8 1/2" Forma Plank', '5.625" Slimline',
        '7.125" Slimline Wide', '6" Shiplap',
    ),
}

# Order matters: 'Pan Socket Type S' must be checked before 'Type S'
DEFAULT_FASTENER_TYPES: tuple[str, ...] = (
    'Pan Socket Type S',
    'Driller',
    'Pancake',
    'Lap Stitch',
    'Type 17',
    'Type A',
    'Type S',
)
GENERAL_FASTENERS = 'General Fasteners'


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Input files (supplied by the persistence collaborator)
    customers_csv: Path
    categories_csv: Path
    sales_csv: Path
    aliases_csv: Path

    # Strategy document
    strategy_json: Path

    # Static business policy
    tier_rules: dict[str, tuple[TierRule, ...]] = field(
        default_factory=lambda: dict(DEFAULT_TIER_RULES)
    )
    category_groups: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_GROUPS)
    )
    fastener_types: tuple[str, ...] = DEFAULT_FASTENER_TYPES

    # Resolution fallbacks
    fallback_markup: float = 1.5
    fallback_discount: float = 1.0

    # Calibration
    tier_step: float = 0.02
    default_baseline: float = 0.70
    calibrated_ceiling: float = 1.5

    # Margin alerts
    alert_buffer: float = 0.02
    recalibration_buffer: float = 0.03

    # Seed strategy
    seed_list_multipliers: dict[str, float] = field(
        default_factory=lambda: {DEFAULT_KEY: 1.5, FASTENERS: 1.65}
    )

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        data_dir = Path(os.getenv('PRICING_DATA_DIR', root / 'data'))

        return cls(
            project_root=root,
            data_dir=data_dir,
            customers_csv=data_dir / 'customers.csv',
            categories_csv=data_dir / 'categories.csv',
            sales_csv=data_dir / 'sales.csv',
            aliases_csv=data_dir / 'customer_aliases.csv',
            strategy_json=data_dir / 'pricing_strategy.json',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
