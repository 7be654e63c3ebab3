"""Similarity scoring of neighbouring properties against caller-supplied details.

Each of the three dimensions (square footage, bedrooms, bathrooms) contributes
a bonus and a factor weight. A dimension that is missing on either side is left
out of both the bonus sum and the weight sum, so a candidate is never punished
for data the oracle did not return.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..data.base import PropertyRecord, UserDetails

# Factor weights (denominator of the final score)
SQFT_WEIGHT = 3
BEDROOM_WEIGHT = 3
BATHROOM_WEIGHT = 2

# Square footage: relative difference bands
SQFT_EXACT_TOLERANCE = 0.05
SQFT_CLOSE_TOLERANCE = 0.15
SQFT_EXACT_BONUS = 5.0
SQFT_CLOSE_BONUS = 3.0

BEDROOM_EXACT_BONUS = 4.0
BEDROOM_CLOSE_BONUS = 2.0
BEDROOM_DECAY_SCALE = 2.0

BATHROOM_EXACT_BONUS = 3.0
BATHROOM_CLOSE_BONUS = 1.5
BATHROOM_CLOSE_TOLERANCE = 0.5
BATHROOM_DECAY_SCALE = 1.5

# Combination bonuses
MULTI_EXACT_BONUS = 3.0         # >= 2 exact matches
EXACT_AND_CLOSE_BONUS = 1.5     # 1 exact + >= 1 close

TOP_MATCHES = 5


@dataclass(frozen=True)
class ScoredCandidate:
    record: PropertyRecord
    match_score: float
    exact_matches: int
    close_matches: int

    @property
    def current_value(self) -> Optional[float]:
        return self.record.current_value

    @property
    def address(self) -> str:
        return self.record.address

    def to_dict(self) -> dict:
        out = self.record.to_dict()
        out.update(
            matchScore=round(self.match_score, 4),
            exactMatches=self.exact_matches,
            closeMatches=self.close_matches,
        )
        return out


def score_candidate(record: PropertyRecord, target: UserDetails) -> ScoredCandidate:
    score = 0.0
    factors = 0
    exact = 0
    close = 0

    # Square footage
    if record.living_area is not None and target.square_footage:
        diff = abs(record.living_area - target.square_footage) / target.square_footage
        if diff <= SQFT_EXACT_TOLERANCE:
            score += SQFT_EXACT_BONUS
            exact += 1
        elif diff <= SQFT_CLOSE_TOLERANCE:
            score += SQFT_CLOSE_BONUS
            close += 1
        else:
            score += max(0.0, 1 - diff) * SQFT_WEIGHT
        factors += SQFT_WEIGHT

    # Bedrooms
    if record.bedrooms is not None and target.bedrooms is not None:
        diff = abs(record.bedrooms - target.bedrooms)
        if diff == 0:
            score += BEDROOM_EXACT_BONUS
            exact += 1
        elif diff == 1:
            score += BEDROOM_CLOSE_BONUS
            close += 1
        else:
            score += max(0.0, 1 - diff * 0.5) * BEDROOM_DECAY_SCALE
        factors += BEDROOM_WEIGHT

    # Bathrooms
    if record.bathrooms is not None and target.bathrooms is not None:
        diff = abs(record.bathrooms - target.bathrooms)
        if diff == 0:
            score += BATHROOM_EXACT_BONUS
            exact += 1
        elif diff <= BATHROOM_CLOSE_TOLERANCE:
            score += BATHROOM_CLOSE_BONUS
            close += 1
        else:
            score += max(0.0, 1 - diff * 0.5) * BATHROOM_DECAY_SCALE
        factors += BATHROOM_WEIGHT

    if exact >= 2:
        score += MULTI_EXACT_BONUS
    elif exact == 1 and close >= 1:
        score += EXACT_AND_CLOSE_BONUS

    return ScoredCandidate(
        record=record,
        match_score=score / factors if factors else 0.0,
        exact_matches=exact,
        close_matches=close,
    )


def find_matching_properties(
    candidates: Iterable[PropertyRecord],
    target: UserDetails,
    limit: int = TOP_MATCHES,
) -> list[ScoredCandidate]:
    """
    Score every candidate and return the best `limit`, best first.

    Exact matches outrank the blended score: two exact dimensions beat a
    smoother but inexact candidate regardless of match_score.
    """
    scored = [score_candidate(c, target) for c in candidates]
    scored.sort(key=lambda s: (-s.exact_matches, -s.match_score))
    return scored[:limit]
