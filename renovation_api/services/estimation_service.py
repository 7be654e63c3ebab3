import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..core.cache import Cache, cache, estimate_key
from ..core.config import settings
from ..core.errors import EstimationError, InvalidInput, NoComparablesFound, OracleTimeout
from ..core.metrics import ESTIMATES, oracle_timer
from ..core.utils import round_half_up
from ..data.base import (
    DefaultAssumptions,
    HandoffChannel,
    HandoffRequest,
    NeighbouringProperties,
    OracleResult,
    PropertyOracle,
    PropertyRecord,
    SpecificProperty,
    UserDetails,
)
from ..data.oracle_client import oracle_client
from ..schemas import (
    AgentData,
    CalculationDetails,
    Comparables,
    DefaultAssumptionsOut,
    EstimationResult,
    HandoffEvent,
    PropertyDetails,
)
from ..valuation import aggregate
from ..valuation.allowance import allowance_formula, compute_allowance
from ..valuation.arv import MAX_MULTIPLIER, MIN_MULTIPLIER, arv_breakdown, compute_arv
from ..valuation.matching import find_matching_properties

logger = logging.getLogger(__name__)

SPECIFIC = "specific_property"
NEIGHBOURING = "neighbouring_properties"
PENDING_TEXT = "Pending property details"

# Oracle runs that outlived their call; held so they are not garbage collected mid-flight
_background: set[asyncio.Task] = set()

@dataclass
class OracleOutcome:
    handoff: Optional[HandoffRequest]
    result: Optional[OracleResult]     # None while the oracle is still running
    task: asyncio.Task
    deadline: float                    # loop time by which the oracle must be done

class EstimationService:
    """
    Orchestrates:
      address → oracle, raced against its handoff signal → branch
        specific property:      current value → ARV → allowance
        neighbouring properties: pause for details, or
                                 score → aggregate CHV → ARV → allowance
    One fixed deadline per call; nothing is retried here.
    """
    def __init__(
        self,
        oracle: PropertyOracle | None = None,
        *,
        timeout: float | None = None,
        defaults: DefaultAssumptions | None = None,
        fallback_chv: int | None = None,
        cache_results: bool | None = None,
        result_cache: Cache | None = None,
    ):
        self.oracle = oracle or oracle_client()
        self.timeout = settings.HANDOFF_TIMEOUT_SECONDS if timeout is None else timeout
        self.defaults = defaults or DefaultAssumptions(
            square_footage=settings.DEFAULT_SQUARE_FOOTAGE,
            bedrooms=settings.DEFAULT_BEDROOMS,
            bathrooms=settings.DEFAULT_BATHROOMS,
        )
        self.fallback_chv = settings.FALLBACK_CHV if fallback_chv is None else fallback_chv
        self.cache_results = settings.ESTIMATE_CACHE_ENABLED if cache_results is None else cache_results
        self.cache = result_cache or cache

    @property
    def provider(self) -> str:
        return getattr(self.oracle, "name", type(self.oracle).__name__)

    async def estimate(
        self,
        address: str,
        user_details: UserDetails | None = None,
        is_follow_up: bool = False,
    ) -> EstimationResult:
        address = (address or "").strip()
        if not address:
            raise InvalidInput("address is required")

        follow_up = is_follow_up or user_details is not None
        details = user_details or UserDetails()
        key = estimate_key(address, (details.square_footage, details.bedrooms, details.bathrooms), follow_up)
        if self.cache_results:
            cached = self.cache.get(key)
            if cached:
                result = EstimationResult.model_validate_json(cached)
                result.cached = True
                return result

        workflow = SPECIFIC
        try:
            outcome = await self._race_oracle(address)
            if outcome.handoff is None:
                result = self._specific_result(address, outcome.result.record)
            else:
                workflow = NEIGHBOURING
                if not follow_up:
                    logger.info("address %r is ambiguous; pausing for property details", address)
                    if not outcome.task.done():
                        _detach(outcome.task, address)
                    ESTIMATES.labels(workflow=workflow, outcome="pending").inc()
                    return self._pending_result(address, outcome)
                oracle_result = outcome.result or await self._await_candidates(outcome, address)
                result = self._neighbouring_result(address, outcome.handoff, oracle_result.candidates, details)
        except EstimationError as exc:
            ESTIMATES.labels(workflow=workflow, outcome=exc.code).inc()
            logger.warning("estimate for %r failed: %s", address, exc.detail)
            raise

        ESTIMATES.labels(workflow=workflow, outcome="final").inc()
        if self.cache_results:
            self.cache.set(key, result.model_dump_json(by_alias=True))
        return result

    # ----- oracle race -----

    async def _race_oracle(self, address: str) -> OracleOutcome:
        loop = asyncio.get_running_loop()
        handoff = HandoffChannel(address, self.defaults)
        deadline = loop.time() + self.timeout
        task = asyncio.create_task(self._run_oracle(address, handoff))

        done, _ = await asyncio.wait(
            {task, handoff.signal}, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
        )
        if not done:
            _detach(task, address)
            raise OracleTimeout(f"no property result or handoff signal within {self.timeout:g}s")

        if task in done:
            result = task.result()  # structural errors propagate from here
            if isinstance(result, NeighbouringProperties) and not handoff.fired:
                handoff.request_details(result.reason)
            return OracleOutcome(handoff.request, result, task, deadline)

        logger.info("handoff signalled for %r before the oracle finished", address)
        return OracleOutcome(handoff.request, None, task, deadline)

    async def _run_oracle(self, address: str, handoff: HandoffChannel) -> OracleResult:
        with oracle_timer(self.provider) as outcome:
            result = await self.oracle.resolve(address, handoff)
            outcome["label"] = SPECIFIC if isinstance(result, SpecificProperty) else NEIGHBOURING
        return result

    async def _await_candidates(self, outcome: OracleOutcome, address: str) -> OracleResult:
        remaining = outcome.deadline - asyncio.get_running_loop().time()
        if remaining > 0:
            await asyncio.wait({outcome.task}, timeout=remaining)
        if not outcome.task.done():
            _detach(outcome.task, address)
            raise OracleTimeout(f"neighbouring properties not returned within {self.timeout:g}s")
        return outcome.task.result()

    # ----- branches -----

    def _specific_result(self, address: str, record: PropertyRecord) -> EstimationResult:
        if record.current_value and record.current_value > 0:
            chv = round_half_up(record.current_value)
            method = "specific_property"
            chv_formula = "Current value reported for the subject property"
        else:
            chv = self.fallback_chv
            method = "fallback_calculation"
            chv_formula = f"No current value found; fixed fallback value of ${chv:,}"

        arv, arv_formula = self._arv(
            chv, record.living_area, record.bedrooms, record.bathrooms,
            record.year_built, record.property_type, address,
        )
        allowance = compute_allowance(arv, chv)
        logger.info("specific property estimate for %r: chv=%s arv=%s", address, chv, arv)

        return EstimationResult(
            property_address=record.address or address,
            arv=arv,
            chv=chv,
            renovation_allowance=allowance,
            property_details=PropertyDetails(
                list_price=chv,
                living_area=record.living_area,
                bedrooms=record.bedrooms,
                bathrooms=record.bathrooms,
                year_built=record.year_built,
                property_type=record.property_type,
            ),
            calculation_details=CalculationDetails(
                arv_formula=arv_formula,
                chv_formula=chv_formula,
                renovation_formula=allowance_formula(arv, chv, allowance),
                calculation_method=method,
            ),
            agent_data=AgentData(agent_workflow=SPECIFIC),
        )

    def _neighbouring_result(
        self,
        address: str,
        handoff: HandoffRequest,
        candidates: Sequence[PropertyRecord],
        details: UserDetails,
    ) -> EstimationResult:
        if not candidates:
            raise NoComparablesFound(f"no neighbouring properties found for {address!r}")

        target = details.filled_from(handoff.default_assumptions)
        matches = find_matching_properties(candidates, target)
        estimate = aggregate.estimate_current_value(matches, address)
        if estimate is None:
            raise NoComparablesFound(
                f"none of the {len(candidates)} neighbouring properties has a current value"
            )

        chv = round_half_up(estimate.value)
        best = matches[0].record
        arv, arv_formula = self._arv(
            chv, target.square_footage, target.bedrooms, target.bathrooms,
            best.year_built, best.property_type, address,
        )
        allowance = compute_allowance(arv, chv)
        logger.info(
            "neighbouring estimate for %r: rule=%s comparables=%d chv=%s arv=%s",
            address, estimate.rule, estimate.used, chv, arv,
        )
        matching = [m.to_dict() for m in matches]

        return EstimationResult(
            property_address=address,
            arv=arv,
            chv=chv,
            renovation_allowance=allowance,
            property_details=PropertyDetails(
                list_price=chv,
                living_area=target.square_footage,
                bedrooms=target.bedrooms,
                bathrooms=target.bathrooms,
                year_built=best.year_built,
                property_type=best.property_type,
            ),
            comparables=Comparables(as_is=matching),
            calculation_details=CalculationDetails(
                arv_formula=arv_formula,
                chv_formula=_chv_formula(estimate),
                renovation_formula=allowance_formula(arv, chv, allowance),
                calculation_method="agent_matching",
            ),
            handoff_event=_handoff_event(handoff),
            agent_data=AgentData(
                neighbouring_properties=[c.to_dict() for c in candidates],
                matching_properties=matching,
                agent_workflow=NEIGHBOURING,
            ),
        )

    def _pending_result(self, address: str, outcome: OracleOutcome) -> EstimationResult:
        neighbours = [c.to_dict() for c in outcome.result.candidates] if outcome.result else []
        return EstimationResult(
            property_address=address,
            property_details=PropertyDetails(),
            calculation_details=CalculationDetails(
                arv_formula=PENDING_TEXT,
                chv_formula=PENDING_TEXT,
                renovation_formula=PENDING_TEXT,
                calculation_method="pending_user_input",
            ),
            handoff_event=_handoff_event(outcome.handoff),
            requires_user_input=True,
            agent_data=AgentData(neighbouring_properties=neighbours, agent_workflow=NEIGHBOURING),
        )

    def _arv(self, chv, living_area, bedrooms, bathrooms, year_built, property_type, address) -> tuple[int, str]:
        breakdown = arv_breakdown(living_area, bedrooms, bathrooms, year_built, property_type, address)
        arv = compute_arv(chv, living_area, bedrooms, bathrooms, year_built, property_type, address)
        formula = (
            f"CHV × {breakdown.multiplier:.3f} (base 1.14 + property adjustments, "
            f"clamped to {MIN_MULTIPLIER:.2f}-{MAX_MULTIPLIER:.2f})"
        )
        return arv, formula

def _chv_formula(estimate: aggregate.CurrentValueEstimate) -> str:
    if estimate.rule == aggregate.PERFECT_MATCH:
        return f"Perfect match on square footage, bedrooms and bathrooms: {estimate.source}"
    if estimate.rule == aggregate.SAME_STREET:
        return f"Same-street property matching at least two dimensions: {estimate.source}"
    if estimate.rule == aggregate.WEIGHTED_AVERAGE:
        return f"Match-weighted average of {estimate.used} neighbouring properties"
    return f"Average of {estimate.used} neighbouring properties"

def _handoff_event(req: HandoffRequest) -> HandoffEvent:
    d = req.default_assumptions
    return HandoffEvent(
        address=req.address,
        reason=req.reason,
        default_assumptions=DefaultAssumptionsOut(
            square_footage=d.square_footage, bedrooms=d.bedrooms, bathrooms=d.bathrooms
        ),
    )

def _detach(task: asyncio.Task, address: str) -> None:
    """Let an oracle run finish on its own; only its outcome is logged."""
    _background.add(task)

    def _log_outcome(t: asyncio.Task) -> None:
        _background.discard(t)
        if t.cancelled():
            logger.info("detached oracle run for %r was cancelled", address)
            return
        exc = t.exception()
        if exc is not None:
            logger.warning("detached oracle run for %r failed: %s", address, exc)
        else:
            logger.info("detached oracle run for %r finished with %s", address, type(t.result()).__name__)

    task.add_done_callback(_log_outcome)
