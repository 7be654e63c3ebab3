# tests/test_estimation_service.py
from __future__ import annotations

import asyncio

import pytest

from renovation_api.core.cache import Cache
from renovation_api.core.errors import (
    InvalidInput,
    NoComparablesFound,
    OracleMalformedOutput,
    OracleTimeout,
)
from renovation_api.data.base import DEFAULT_HANDOFF_REASON, DefaultAssumptions, UserDetails
from renovation_api.services import estimation_service
from renovation_api.services.estimation_service import EstimationService
from renovation_api.valuation.allowance import compute_allowance
from renovation_api.valuation.arv import compute_arv
from fakes import AmbiguousOracle, GatedOracle, HtmlOracle, SpecificOracle, make_record

FULL = "2554 Druid Park Dr, Baltimore, MD 21215"
PARTIAL = "Druid Park Dr, Baltimore"


def service(oracle, **kwargs) -> EstimationService:
    kwargs.setdefault("timeout", 2.0)
    kwargs.setdefault("cache_results", False)
    kwargs.setdefault("defaults", DefaultAssumptions(2000, 3, 2))
    kwargs.setdefault("fallback_chv", 400_000)
    return EstimationService(oracle, **kwargs)


# -------- Input validation --------
@pytest.mark.parametrize("address", ["", "   ", None])
async def test_empty_address_rejected_before_oracle(address):
    oracle = SpecificOracle(make_record(FULL))
    with pytest.raises(InvalidInput):
        await service(oracle).estimate(address)
    assert oracle.calls == 0


# -------- Specific property --------
async def test_specific_property_uses_reported_value():
    rec = make_record(FULL, living_area=1620, bedrooms=3, bathrooms=1.5, year_built=1925,
                      property_type="Residential", current_value=250_000)
    result = await service(SpecificOracle(rec)).estimate(FULL)

    arv = compute_arv(250_000, 1620, 3, 1.5, 1925, "Residential", FULL)
    assert result.chv == 250_000
    assert result.arv == arv
    assert result.renovation_allowance == compute_allowance(arv, 250_000)
    assert result.property_address == FULL
    assert result.calculation_details.calculation_method == "specific_property"
    assert result.handoff_event is None
    assert result.requires_user_input is False
    assert result.agent_data.agent_workflow == "specific_property"
    assert result.property_details.living_area == 1620


async def test_specific_property_without_value_uses_fallback():
    result = await service(SpecificOracle(make_record(FULL, bedrooms=3))).estimate(FULL)
    assert result.chv == 400_000
    assert result.calculation_details.calculation_method == "fallback_calculation"
    assert "$400,000" in result.calculation_details.chv_formula


# -------- Neighbouring properties --------
async def test_first_pass_pauses_with_defaults(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood, delay=0.05)
    before = set(estimation_service._background)
    result = await service(oracle).estimate(PARTIAL)
    assert len(estimation_service._background - before) == 1

    assert result.requires_user_input is True
    assert (result.arv, result.chv, result.renovation_allowance) == (0, 0, 0)
    assert result.calculation_details.calculation_method == "pending_user_input"
    event = result.handoff_event
    assert event.address == PARTIAL
    assert event.reason == DEFAULT_HANDOFF_REASON
    assert (event.default_assumptions.square_footage, event.default_assumptions.bedrooms,
            event.default_assumptions.bathrooms) == (2000, 3, 2)

    # the oracle keeps running in the background and is released once done
    await asyncio.sleep(0.15)
    assert not estimation_service._background - before


async def test_pending_returns_before_search_finishes():
    oracle = GatedOracle(signal=True)
    result = await service(oracle, timeout=5.0).estimate(PARTIAL)
    assert result.requires_user_input is True
    assert result.agent_data.neighbouring_properties == []
    oracle.release.set()
    await asyncio.sleep(0.01)


async def test_user_details_produce_final_estimate(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood, delay=0.01, reason="street only")
    result = await service(oracle).estimate(PARTIAL, UserDetails(square_footage=2000, bedrooms=3, bathrooms=2))

    assert result.chv == 300_000
    assert result.arv == compute_arv(300_000, 2000, 3, 2, 1950, "Residential", PARTIAL)
    assert result.renovation_allowance == compute_allowance(result.arv, 300_000)
    assert result.requires_user_input is False
    assert result.calculation_details.calculation_method == "agent_matching"
    assert "Perfect match" in result.calculation_details.chv_formula
    assert result.handoff_event.reason == "street only"
    assert result.comparables.as_is[0]["address"] == "2510 Druid Park Dr, Baltimore, MD"
    assert result.comparables.as_is[0]["exactMatches"] == 3
    assert len(result.agent_data.neighbouring_properties) == 3
    assert result.agent_data.agent_workflow == "neighbouring_properties"


async def test_follow_up_without_details_uses_defaults(neighbourhood):
    result = await service(AmbiguousOracle(neighbourhood)).estimate(PARTIAL, is_follow_up=True)
    assert result.chv == 300_000
    assert result.property_details.living_area == 2000


async def test_partial_details_are_completed_from_defaults(neighbourhood):
    result = await service(AmbiguousOracle(neighbourhood)).estimate(PARTIAL, UserDetails(bedrooms=3))
    assert result.chv == 300_000


async def test_neighbours_without_signal_still_pause(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood, signal=False, reason="nearby only")
    result = await service(oracle).estimate(PARTIAL)

    assert result.requires_user_input is True
    assert result.handoff_event.reason == "nearby only"
    assert len(result.agent_data.neighbouring_properties) == 3


async def test_no_neighbours_found():
    with pytest.raises(NoComparablesFound):
        await service(AmbiguousOracle(())).estimate(PARTIAL, is_follow_up=True)


async def test_neighbours_without_values(record_factory):
    cands = [record_factory("1 Druid Park Dr", bedrooms=3), record_factory("3 Druid Park Dr", current_value=0)]
    with pytest.raises(NoComparablesFound):
        await service(AmbiguousOracle(cands)).estimate(PARTIAL, is_follow_up=True)


# -------- Oracle failures --------
async def test_silent_oracle_times_out():
    oracle = GatedOracle()
    with pytest.raises(OracleTimeout):
        await service(oracle, timeout=0.05).estimate(FULL)
    oracle.release.set()
    await asyncio.sleep(0.01)


async def test_candidates_must_arrive_within_the_same_deadline():
    oracle = GatedOracle(signal=True)
    with pytest.raises(OracleTimeout):
        await service(oracle, timeout=0.05).estimate(PARTIAL, is_follow_up=True)
    oracle.release.set()
    await asyncio.sleep(0.01)


async def test_malformed_oracle_output():
    with pytest.raises(OracleMalformedOutput) as exc:
        await service(HtmlOracle()).estimate(FULL)
    assert exc.value.status_code == 502


# -------- Isolation & caching --------
async def test_concurrent_calls_keep_their_own_handoff(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood, delay=0.02)
    svc = service(oracle)
    addresses = ["Druid Park Dr, Baltimore", "Elm Ave, Towson", "Hill Rd, Catonsville"]

    results = await asyncio.gather(*(svc.estimate(a) for a in addresses))

    assert [r.handoff_event.address for r in results] == addresses
    assert sorted(oracle.handoff_addresses) == sorted(addresses)
    await asyncio.sleep(0.05)


async def test_final_results_are_cached():
    oracle = SpecificOracle(make_record(FULL, current_value=250_000))
    svc = service(oracle, cache_results=True, result_cache=Cache(use_redis=False))

    first = await svc.estimate(FULL)
    second = await svc.estimate(f"  {FULL.lower()} ")

    assert oracle.calls == 1
    assert first.cached is False
    assert second.cached is True
    assert second.arv == first.arv


async def test_pending_results_are_not_cached(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood)
    svc = service(oracle, cache_results=True, result_cache=Cache(use_redis=False))

    await svc.estimate(PARTIAL)
    again = await svc.estimate(PARTIAL)

    assert oracle.calls == 2
    assert again.cached is False
    assert again.requires_user_input is True


async def test_first_pass_and_follow_up_do_not_share_entries(neighbourhood):
    oracle = AmbiguousOracle(neighbourhood)
    svc = service(oracle, cache_results=True, result_cache=Cache(use_redis=False))

    final = await svc.estimate(PARTIAL, is_follow_up=True)
    first_pass = await svc.estimate(PARTIAL)

    assert final.chv == 300_000
    assert first_pass.requires_user_input is True
