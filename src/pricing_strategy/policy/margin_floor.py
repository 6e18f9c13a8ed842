"""
Margin Floor Policy - Minimum acceptable gross margin per category group.
"""
from ..config.settings import (
    LARGE_ROLLED_PANEL, SMALL_ROLLED_PANELS, CLADDING_SERIES, FASTENERS, PARTS,
)

ROLLED_FLOOR = 0.20
PARTS_FLOOR = 0.40
CLADDING_TOP_FLOOR = 0.30
CLADDING_SPREAD = 0.10
DEFAULT_FLOOR = 0.20


class MarginFloorPolicy:
    """
    Table-driven margin floors.

    Cladding is the only group whose floor depends on the tier: it scales
    linearly from 30% at the top tier to 40% at the bottom tier.
    """

    FIXED_FLOORS = {
        LARGE_ROLLED_PANEL: ROLLED_FLOOR,
        SMALL_ROLLED_PANELS: ROLLED_FLOOR,
        FASTENERS: PARTS_FLOOR,
        PARTS: PARTS_FLOOR,
    }

    def floor(self, category_group: str, tier_index: int = 0, tier_count: int = 6) -> float:
        if category_group in self.FIXED_FLOORS:
            return self.FIXED_FLOORS[category_group]

        if category_group == CLADDING_SERIES:
            ratio = tier_index / (tier_count - 1) if tier_count > 1 else 0
            return CLADDING_TOP_FLOOR + ratio * CLADDING_SPREAD

        return DEFAULT_FLOOR


def get_margin_floor(category_group: str, tier_index: int = 0, tier_count: int = 6) -> float:
    return MarginFloorPolicy().floor(category_group, tier_index, tier_count)
