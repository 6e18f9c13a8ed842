"""
Name Matcher - Matches free-text transaction names to customer records.

Sales imports carry the customer name as typed on the invoice, so a
transaction is linked to a customer by name, not by id. Matching is
attempted in three passes over the whole customer list, strictest first:

1. exact (case-insensitive, trimmed)
2. equal after stripping corporate suffixes (Inc, LLC, Co, Ltd, Corp)
3. one cleaned name contains the other, when the shorter is over 4 chars
"""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Customer

SUFFIX_PATTERN = re.compile(r',?\s+(?:inc|llc|co|ltd|corp)\b\.?', re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r'\s+')

# Containment only applies when the shorter cleaned name is longer than this
MIN_CONTAINMENT_LENGTH = 4

EXACT = 'exact'
SUFFIX = 'suffix'
CONTAINS = 'contains'


def normalize_name(name) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return WHITESPACE_PATTERN.sub(' ', str(name or '').strip().lower())


def strip_suffixes(name) -> str:
    """Normalized name with corporate suffixes removed."""
    return normalize_name(SUFFIX_PATTERN.sub('', normalize_name(name)))


@dataclass
class NameMatch:
    """A customer matched to a transaction name, with the rule that matched."""
    customer: Customer
    rule: str
    effective_name: str
    candidates: int = 1

    @property
    def ambiguous(self) -> bool:
        return self.candidates > 1


class NameMatcher:
    """
    Matches transaction names against a customer list.

    An alias table (raw name -> canonical customer name) is consulted
    before matching. When several customers satisfy the same pass, the
    first in list order wins and the match is flagged as ambiguous.
    """

    def __init__(self, customers: Iterable[Customer], aliases: Optional[dict[str, str]] = None):
        self.customers = [c for c in customers if c is not None]
        self.aliases = {str(k).strip(): str(v) for k, v in (aliases or {}).items() if k and v}
        self._aliases_folded = {k.lower(): v for k, v in self.aliases.items()}
        self._index = [
            (customer, normalize_name(customer.name), strip_suffixes(customer.name))
            for customer in self.customers
        ]
        self._cache: dict[str, Optional[NameMatch]] = {}

    def resolve_alias(self, raw_name) -> str:
        """The canonical name for a raw transaction name (itself if no alias)."""
        raw = str(raw_name or '').strip()
        if raw in self.aliases:
            return self.aliases[raw]
        return self._aliases_folded.get(raw.lower(), raw)

    def match(self, raw_name) -> Optional[NameMatch]:
        """Find the customer a transaction name refers to, or None."""
        effective = self.resolve_alias(raw_name)
        if effective in self._cache:
            return self._cache[effective]

        result = self._match(effective)
        self._cache[effective] = result
        return result

    def _match(self, effective: str) -> Optional[NameMatch]:
        exact = normalize_name(effective)
        if not exact:
            return None

        hits = [c for c, name, _ in self._index if name == exact]
        if hits:
            return NameMatch(hits[0], EXACT, effective, len(hits))

        cleaned = strip_suffixes(effective)
        if not cleaned:
            return None

        hits = [c for c, _, clean in self._index if clean and clean == cleaned]
        if hits:
            return NameMatch(hits[0], SUFFIX, effective, len(hits))

        hits = [
            c for c, _, clean in self._index
            if clean and self._contains(cleaned, clean)
        ]
        if hits:
            return NameMatch(hits[0], CONTAINS, effective, len(hits))

        return None

    @staticmethod
    def _contains(left: str, right: str) -> bool:
        shorter, longer = sorted((left, right), key=len)
        if len(shorter) <= MIN_CONTAINMENT_LENGTH:
            return False
        return shorter in longer
