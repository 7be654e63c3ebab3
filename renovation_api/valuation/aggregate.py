"""Current Home Value from scored comparables.

Rules, first applicable wins:
  1. a candidate matching all three dimensions exactly is used as-is;
  2. a candidate with >= 2 exact matches on the caller's street is used as-is;
  3. otherwise a match-score weighted mean (simple mean if all weights are 0).
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from .matching import ScoredCandidate

PAIR_EXACT_BOOST = 2.5      # >= 2 exact matches
SINGLE_EXACT_BOOST = 1.5    # exactly 1 exact match

PERFECT_MATCH = "perfect_match"
SAME_STREET = "same_street_match"
WEIGHTED_AVERAGE = "weighted_average"
SIMPLE_AVERAGE = "simple_average"

STREET_SUFFIXES = frozenset({
    "rd", "road", "st", "street", "ave", "avenue", "blvd", "boulevard",
    "ln", "lane", "dr", "drive", "ct", "court", "pl", "place", "way",
})


@dataclass(frozen=True)
class CurrentValueEstimate:
    value: float
    rule: str
    used: int                      # how many comparables fed the value
    source: Optional[str] = None   # address of the single comparable, if one was used


def extract_street_name(address: str) -> Optional[str]:
    """
    '2554 Druid Park Dr, Baltimore, MD' -> 'druid park dr'.

    The first comma segment counts as a street only if it carried a house
    number or ends in a street suffix; 'Baltimore, MD' has no street.
    """
    first = address.split(",")[0].strip().lower()
    street, numbered = re.subn(r"^\d+[a-z]?\s+", "", first)
    street = street.strip()
    if not street:
        return None
    if numbered or street.split()[-1] in STREET_SUFFIXES:
        return street
    return None


def estimate_current_value(
    scored: Sequence[ScoredCandidate], original_address: str
) -> Optional[CurrentValueEstimate]:
    """Return None when no candidate has a positive current value."""
    priced = [c for c in scored if c.current_value is not None and c.current_value > 0]
    if not priced:
        return None

    for c in priced:
        if c.exact_matches == 3:
            return CurrentValueEstimate(c.current_value, PERFECT_MATCH, 1, c.address)

    street = extract_street_name(original_address) if original_address else None
    if street:
        for c in priced:
            if c.exact_matches >= 2 and street in c.address.lower():
                return CurrentValueEstimate(c.current_value, SAME_STREET, 1, c.address)

    total_weight = 0.0
    weighted = 0.0
    for c in priced:
        weight = c.match_score
        if c.exact_matches >= 2:
            weight *= PAIR_EXACT_BOOST
        elif c.exact_matches == 1:
            weight *= SINGLE_EXACT_BOOST
        weighted += c.current_value * weight
        total_weight += weight

    if total_weight > 0:
        return CurrentValueEstimate(weighted / total_weight, WEIGHTED_AVERAGE, len(priced))
    mean = sum(c.current_value for c in priced) / len(priced)
    return CurrentValueEstimate(mean, SIMPLE_AVERAGE, len(priced))


def aggregate_current_value(scored: Sequence[ScoredCandidate], original_address: str) -> Optional[float]:
    est = estimate_current_value(scored, original_address)
    return est.value if est else None
