from fastapi import APIRouter, Depends, Query
from ..schemas import EstimateRequest, EstimationResult, ErrorResponse
from ..services.estimation_service import EstimationService
from ..data.base import UserDetails
from ..core.security import require_api_key, rate_limit

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or empty address"},
    404: {"model": ErrorResponse, "description": "No usable comparable properties"},
    502: {"model": ErrorResponse, "description": "Property oracle failed or answered unreadably"},
    504: {"model": ErrorResponse, "description": "Property oracle did not answer in time"},
}

def service_dep() -> EstimationService:
    # Cheap factory; the oracle clients open their connections per call.
    return EstimationService()

@router.post("/estimate-renovation-allowance", response_model=EstimationResult, responses=ERROR_RESPONSES)
async def post_estimate(
    body: EstimateRequest,
    _auth = Depends(require_api_key),     # API key guard
    _lim  = Depends(rate_limit),          # Rate limiting
    svc: EstimationService = Depends(service_dep),
):
    details = None
    if body.user_details is not None:
        details = UserDetails(
            square_footage=body.user_details.square_footage,
            bedrooms=body.user_details.bedrooms,
            bathrooms=body.user_details.bathrooms,
        )
    return await svc.estimate(body.address, details, body.is_follow_up)

@router.get("/estimate-renovation-allowance", response_model=EstimationResult, responses=ERROR_RESPONSES)
async def get_estimate(
    address: str = Query(""),
    _auth = Depends(require_api_key),
    _lim  = Depends(rate_limit),
    svc: EstimationService = Depends(service_dep),
):
    return await svc.estimate(address)
