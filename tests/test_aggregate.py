# tests/test_aggregate.py
from __future__ import annotations

import pytest

from renovation_api.valuation import aggregate
from renovation_api.valuation.aggregate import (
    aggregate_current_value,
    estimate_current_value,
    extract_street_name,
)
from renovation_api.valuation.matching import ScoredCandidate, find_matching_properties


def scored(record_factory, address, value, score, exact, close=0):
    return ScoredCandidate(
        record=record_factory(address, current_value=value),
        match_score=score,
        exact_matches=exact,
        close_matches=close,
    )


def test_perfect_match_wins_regardless_of_others(neighbourhood, target):
    ranked = find_matching_properties(neighbourhood, target)
    est = estimate_current_value(ranked, "Druid Park Dr, Baltimore")
    assert est.rule == aggregate.PERFECT_MATCH
    assert est.value == 300_000
    assert est.source == "2510 Druid Park Dr, Baltimore, MD"


def test_perfect_match_is_not_diluted(record_factory):
    cands = [
        scored(record_factory, "1 A St", 950_000, 2.0, 2),
        scored(record_factory, "2 B St", 123_456, 0.1, 3),
        scored(record_factory, "3 C St", 10_000, 1.9, 1),
    ]
    assert aggregate_current_value(cands, "9 Z St") == 123_456


def test_same_street_match(record_factory):
    cands = [
        scored(record_factory, "77 Other Ave, Baltimore", 500_000, 1.8, 2),
        scored(record_factory, "45 Druid Park Dr, Baltimore", 250_000, 1.4, 2),
    ]
    est = estimate_current_value(cands, "12 Druid Park Dr, Baltimore, MD 21215")
    assert est.rule == aggregate.SAME_STREET
    assert est.value == 250_000


def test_same_street_needs_two_exact(record_factory):
    cands = [
        scored(record_factory, "45 Druid Park Dr, Baltimore", 250_000, 1.0, 1),
        scored(record_factory, "77 Other Ave, Baltimore", 500_000, 1.0, 0),
    ]
    est = estimate_current_value(cands, "12 Druid Park Dr, Baltimore")
    assert est.rule == aggregate.WEIGHTED_AVERAGE


def test_weighted_average(record_factory):
    cands = [
        scored(record_factory, "1 A St", 200_000, 1.0, 1),   # weight 1.5
        scored(record_factory, "2 B St", 400_000, 0.5, 0),   # weight 0.5
    ]
    est = estimate_current_value(cands, "9 Z St")
    assert est.rule == aggregate.WEIGHTED_AVERAGE
    assert est.used == 2
    assert est.value == pytest.approx((200_000 * 1.5 + 400_000 * 0.5) / 2.0)


def test_pair_boost(record_factory):
    cands = [
        scored(record_factory, "1 A St", 100_000, 1.0, 2),   # weight 2.5
        scored(record_factory, "2 B St", 200_000, 1.0, 0),   # weight 1.0
    ]
    assert aggregate_current_value(cands, "9 Z Ave") == pytest.approx((250_000 + 200_000) / 3.5)


def test_zero_weights_fall_back_to_mean(record_factory):
    cands = [
        scored(record_factory, "1 A St", 100_000, 0.0, 0),
        scored(record_factory, "2 B St", 300_000, 0.0, 0),
    ]
    est = estimate_current_value(cands, "9 Z St")
    assert est.rule == aggregate.SIMPLE_AVERAGE
    assert est.value == 200_000


def test_unpriced_candidates_are_ignored(record_factory):
    cands = [
        scored(record_factory, "1 A St", None, 1.9, 3),
        scored(record_factory, "2 B St", 0, 1.9, 3),
        scored(record_factory, "3 C St", 180_000, 0.4, 0),
    ]
    assert aggregate_current_value(cands, "9 Z St") == 180_000


def test_no_priced_candidates_signals_none(record_factory):
    cands = [scored(record_factory, "1 A St", None, 1.0, 3), scored(record_factory, "2 B St", -5, 1.0, 1)]
    assert estimate_current_value(cands, "9 Z St") is None
    assert aggregate_current_value([], "9 Z St") is None


@pytest.mark.parametrize(
    "address, street",
    [
        ("2554 Druid Park Dr, Baltimore, MD 21215", "druid park dr"),
        ("Druid Park Dr, Baltimore", "druid park dr"),
        ("12B Main Street", "main street"),
        ("  ", None),
        ("Baltimore, MD", None),
        ("Druid Park, Baltimore", None),
    ],
)
def test_extract_street_name(address, street):
    assert extract_street_name(address) == street


def test_city_only_address_has_no_street(record_factory):
    cands = [
        scored(record_factory, "45 Oak St, Baltimore, MD", 500_000, 1.0, 2),
        scored(record_factory, "9 Elm Ave, Baltimore, MD", 200_000, 1.0, 2),
    ]
    est = estimate_current_value(cands, "Baltimore, MD")
    assert est.rule == aggregate.WEIGHTED_AVERAGE
    assert est.value == pytest.approx(350_000)
