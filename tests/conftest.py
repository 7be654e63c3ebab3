# tests/conftest.py
from __future__ import annotations

import pytest

from renovation_api.data.base import UserDetails
from fakes import make_record


# -------- Target & candidate fixtures --------
@pytest.fixture
def target():
    """The canonical 2000 sqft / 3 bed / 2 bath matching target."""
    return UserDetails(square_footage=2000, bedrooms=3, bathrooms=2)


@pytest.fixture
def record_factory():
    """
    Callable factory for PropertyRecord.

    Usage:
        rec = record_factory("12 Oak St, Baltimore, MD", living_area=2000, bedrooms=3)
    """

    def _factory(address: str = "1 Test St, Baltimore, MD 21215", **fields):
        return make_record(address, **fields)

    return _factory


@pytest.fixture
def neighbourhood(record_factory):
    """
    Candidates around Druid Park Dr:
      - one exact match on all three dimensions (300k)
      - two clearly dissimilar properties at very different prices
    """
    return [
        record_factory("900 Elm Ave, Baltimore, MD", living_area=4200, bedrooms=6, bathrooms=5, current_value=900_000,
                       year_built=2015, property_type="Single Family"),
        record_factory("2510 Druid Park Dr, Baltimore, MD", living_area=2010, bedrooms=3, bathrooms=2,
                       current_value=300_000, year_built=1950, property_type="Residential"),
        record_factory("14 Hill Rd, Baltimore, MD", living_area=700, bedrooms=1, bathrooms=1, current_value=95_000,
                       year_built=1990, property_type="Condominium"),
    ]
