"""
Category Classifier - Maps product category names to category groups.

Also recognizes fastener sub-types so that markup lookups can fall back
to the shared "Fasteners" multipliers.
"""
import re
from typing import Optional

from ..config.settings import (
    get_settings, Settings, PARTS, LARGE_ROLLED_PANEL, SMALL_ROLLED_PANELS,
    GENERAL_FASTENERS,
)


ROLLED_GROUPS = (LARGE_ROLLED_PANEL, SMALL_ROLLED_PANELS)


def is_rolled(group: str) -> bool:
    """True for the two rolled-panel groups that get a flat second tier."""
    return group in ROLLED_GROUPS


class CategoryClassifier:
    """
    Static classification of category names.

    Groups are checked in the order they are configured; anything not
    listed is a Part.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._groups = [
            (group, frozenset(names))
            for group, names in self.settings.category_groups.items()
        ]
        self._fastener_patterns = [
            (fastener, re.compile(r'\b' + re.escape(fastener) + r'\b', re.IGNORECASE))
            for fastener in self.settings.fastener_types
        ]

    def classify(self, category_name) -> str:
        """Return the category group for a category name (default Parts)."""
        name = str(category_name or '').strip()
        for group, names in self._groups:
            if name in names:
                return group
        return PARTS

    def fastener_type(self, category_name) -> Optional[str]:
        """
        Return the fastener sub-type named by a category, if any.

        Specific types win over the generic "General Fasteners" bucket,
        which only applies when the name mentions fasteners at all.
        """
        name = str(category_name or '').strip()
        if not name:
            return None
        for fastener, pattern in self._fastener_patterns:
            if pattern.search(name):
                return fastener
        if 'fastener' in name.lower():
            return GENERAL_FASTENERS
        return None


_classifier: Optional[CategoryClassifier] = None


def get_classifier() -> CategoryClassifier:
    """Get a classifier bound to the global settings."""
    global _classifier
    if _classifier is None:
        _classifier = CategoryClassifier()
    return _classifier


def get_category_group(category_name) -> str:
    return get_classifier().classify(category_name)
