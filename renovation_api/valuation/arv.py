"""After-Renovated Value.

ARV = base value x multiplier, where the multiplier starts at 1.14 and adds
independent percentage adjustments, then is clamped to [1.15, 1.35].
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.utils import address_fingerprint, round_half_up

BASE_MULTIPLIER = 1.14
MIN_MULTIPLIER = 1.15
MAX_MULTIPLIER = 1.35

JITTER_BUCKETS = 40     # fingerprint % 40 -> [-2.0%, +1.9%] in 0.1% steps

TYPE_ADJUSTMENTS = {
    "condominium": 0.01,
    "condo": 0.01,
    "townhouse": 0.02,
    "townhome": 0.02,
    "single family": 0.03,
    "single-family": 0.03,
    "single family residence": 0.03,
    "residential": 0.03,
}


def bedroom_adjustment(bedrooms: Optional[float]) -> float:
    if bedrooms is None:
        return 0.0
    if bedrooms >= 4:
        return 0.03
    if bedrooms == 3:
        return 0.02
    if bedrooms == 2:
        return 0.01
    return 0.0


def bathroom_adjustment(bathrooms: Optional[float]) -> float:
    if bathrooms is not None and bathrooms >= 3:
        return 0.03
    if bathrooms == 2:
        return 0.02
    return 0.01


def area_adjustment(living_area: Optional[float]) -> float:
    if not living_area or living_area < 1000:
        return 0.0
    if living_area < 1500:
        return 0.01
    if living_area < 2000:
        return 0.02
    if living_area < 2500:
        return 0.03
    return 0.04


def type_adjustment(property_type: Optional[str]) -> float:
    if not property_type:
        return 0.0
    return TYPE_ADJUSTMENTS.get(property_type.strip().lower(), 0.0)


def age_adjustment(year_built: Optional[int], current_year: int) -> float:
    if not year_built:
        return 0.0
    age = current_year - year_built
    if age > 50:
        return 0.04
    if age > 30:
        return 0.03
    if age > 15:
        return 0.02
    if age > 5:
        return 0.01
    return 0.0


def address_jitter(address: str) -> float:
    """Reproducible per-address nudge so look-alike properties don't share an ARV."""
    return -0.02 + (address_fingerprint(address) % JITTER_BUCKETS) / 1000


@dataclass(frozen=True)
class ArvBreakdown:
    bedrooms: float
    bathrooms: float
    area: float
    property_type: float
    age: float
    jitter: float

    @property
    def raw_multiplier(self) -> float:
        return BASE_MULTIPLIER + (
            self.bedrooms + self.bathrooms + self.area + self.property_type + self.age + self.jitter
        )

    @property
    def multiplier(self) -> float:
        return min(max(self.raw_multiplier, MIN_MULTIPLIER), MAX_MULTIPLIER)


def arv_breakdown(
    living_area: Optional[float],
    bedrooms: Optional[float],
    bathrooms: Optional[float],
    year_built: Optional[int],
    property_type: Optional[str],
    address: str,
    current_year: Optional[int] = None,
) -> ArvBreakdown:
    year = current_year or date.today().year
    return ArvBreakdown(
        bedrooms=bedroom_adjustment(bedrooms),
        bathrooms=bathroom_adjustment(bathrooms),
        area=area_adjustment(living_area),
        property_type=type_adjustment(property_type),
        age=age_adjustment(year_built, year),
        jitter=address_jitter(address),
    )


def compute_arv(
    base_value: float,
    living_area: Optional[float],
    bedrooms: Optional[float],
    bathrooms: Optional[float],
    year_built: Optional[int],
    property_type: Optional[str],
    address: str,
    current_year: Optional[int] = None,
) -> int:
    breakdown = arv_breakdown(living_area, bedrooms, bathrooms, year_built, property_type, address, current_year)
    return round_half_up(base_value * breakdown.multiplier)
